"""
Guarded HTTP client: every request and every redirect hop is checked
against an allowed-host policy before it is followed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urldefrag, urljoin

import aiohttp
import structlog

from postquarry.config.config import Config
from postquarry.observability.metrics import increment, observe
from postquarry.security.validation import HostPolicy, URLValidationError, is_host_allowed
from postquarry.utils.text import parse_url

logger = structlog.get_logger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
DEFAULT_PORTS = {"http": 80, "https": 443}


def browser_headers(user_agent: str) -> Dict[str, str]:
    """Headers used for page and embed frame requests."""
    return {
        "user-agent": user_agent,
        "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "accept-language": "en-US,en;q=0.9",
        "cache-control": "no-cache",
        "pragma": "no-cache",
    }


def media_headers(user_agent: str) -> Dict[str, str]:
    """Headers used for media downloads."""
    return {
        "user-agent": user_agent,
        "accept": "*/*",
        "accept-language": "en-US,en;q=0.9",
    }


class FetchError(Exception):
    """Raised when a guarded fetch fails at the transport level."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class BlockedRedirectError(FetchError):
    """Raised when a redirect targets a disallowed host or the hop limit is exceeded."""

    pass


@dataclass
class GuardedResponse:
    """Response of a guarded fetch. The body is read on first access, within the fetch deadline."""

    status: int
    headers: Mapping[str, str]
    url: str
    final_url: str
    redirects: int
    _response: aiohttp.ClientResponse = field(repr=False)
    _deadline: float = field(repr=False)
    _body: Optional[bytes] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        """Lower-cased MIME type from the Content-Type header, without parameters."""
        return (self.headers.get("Content-Type") or "").split(";")[0].strip().lower()

    async def read(self) -> bytes:
        if self._body is None:
            try:
                async with asyncio.timeout_at(self._deadline):
                    self._body = await self._response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self._response.close()
                raise FetchError(f"Failed to read body: {e!r}", self.final_url) from e
        return self._body

    async def text(self) -> str:
        body = await self.read()
        encoding = self._response.get_encoding() if self._response.charset else "utf-8"
        return body.decode(encoding, errors="replace")

    def release(self) -> None:
        """Drop the connection without reading the body."""
        if self._body is None:
            self._response.close()


class GuardedHttpClient:
    """HTTP client that refuses to talk to hosts outside an allow policy."""

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.scraper_config = config.scraper
        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())
            self._owns_session = True
            logger.debug("HTTP client session initialized")

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

    async def __aenter__(self) -> "GuardedHttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _check_target(self, url: str, allowed_hosts: HostPolicy, *, previous: Optional[str] = None) -> None:
        parsed = parse_url(url)
        if parsed is None or parsed.scheme.lower() not in ("http", "https"):
            raise URLValidationError(f"Refusing to fetch non-http URL: {url}")
        if previous is not None and previous.startswith("https:") and parsed.scheme.lower() != "https":
            raise BlockedRedirectError("Redirect downgrades https to http", url)
        if parsed.username is not None or parsed.password is not None:
            raise URLValidationError(f"Refusing URL with credentials: {url}")
        if parsed.port not in (None, DEFAULT_PORTS[parsed.scheme.lower()]):
            raise URLValidationError(f"Refusing non-default port {parsed.port}: {url}")
        if not is_host_allowed(parsed.hostname, allowed_hosts):
            if previous is not None:
                raise BlockedRedirectError(f"Redirect to disallowed host: {parsed.hostname}", url)
            raise URLValidationError(f"Host not allowed: {parsed.hostname}")

    async def fetch_guarded(
        self,
        url: str,
        *,
        allowed_hosts: HostPolicy,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
    ) -> GuardedResponse:
        """
        GET ``url`` following at most ``max_redirects`` redirects, each hop
        re-validated against ``allowed_hosts``.

        Args:
            url: URL to fetch
            allowed_hosts: Fixed host set or host predicate
            headers: Request headers
            timeout: Hard timeout in seconds covering every redirect hop and the body read
            max_redirects: Redirect hops permitted (None = config default)

        Returns:
            GuardedResponse whose body has not been read yet

        Raises:
            URLValidationError: If the initial URL is not allowed
            BlockedRedirectError: If a redirect is refused
            FetchError: On transport errors or timeout
        """
        if self.session is None:
            raise RuntimeError("HTTP client not initialized. Call initialize() first.")

        timeout = self.scraper_config.timeout if timeout is None else timeout
        max_redirects = self.scraper_config.max_redirects if max_redirects is None else max_redirects

        self._check_target(url, allowed_hosts)

        start_time = time.monotonic()
        deadline = asyncio.get_running_loop().time() + timeout
        current = url
        redirects = 0
        try:
            async with asyncio.timeout_at(deadline):
                while True:
                    response = await self.session.get(
                        current,
                        headers=dict(headers or {}),
                        allow_redirects=False,
                    )
                    location = response.headers.get("Location")
                    if response.status not in REDIRECT_STATUSES or not location:
                        break

                    response.close()
                    next_url = urldefrag(urljoin(current, location)).url
                    if redirects >= max_redirects:
                        increment("blocked_redirects")
                        raise BlockedRedirectError(f"Exceeded {max_redirects} redirects", next_url)
                    try:
                        self._check_target(next_url, allowed_hosts, previous=current)
                    except URLValidationError as e:
                        increment("blocked_redirects")
                        raise BlockedRedirectError(str(e), next_url) from e
                    except BlockedRedirectError:
                        increment("blocked_redirects")
                        raise

                    logger.debug("Following redirect", url=current, location=next_url)
                    current = next_url
                    redirects += 1
        except asyncio.TimeoutError as e:
            raise FetchError(f"Request timed out after {timeout}s", current) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Request failed: {e!r}", current) from e
        finally:
            observe("fetch_latency_seconds", time.monotonic() - start_time)

        return GuardedResponse(
            status=response.status,
            headers=response.headers,
            url=url,
            final_url=current,
            redirects=redirects,
            _response=response,
            _deadline=deadline,
        )
