"""
URL validation for PostQuarry.

Every network call made by the scraper (post page, embed frame, media file)
is gated by the predicates in this module. The media predicate is shared by
extraction filtering and download guarding so nothing can be fetched that
would not also have survived extraction.
"""

from __future__ import annotations

import ipaddress
from typing import AbstractSet, Callable, List, Union
from urllib.parse import urlunsplit

from pydantic import BaseModel, Field

from postquarry.utils.text import normalize_whitespace, parse_url

HostPolicy = Union[AbstractSet[str], Callable[[str], bool]]


class URLValidationError(ValueError):
    """Raised when URL validation fails."""

    pass


class PostURLRules(BaseModel):
    """Accepted shape of an incoming post URL."""

    allowed_schemes: List[str] = Field(default=["https"])
    allowed_hosts: List[str] = Field(default=["www.linkedin.com", "linkedin.com"])
    canonical_host: str = "www.linkedin.com"
    path_prefixes: List[str] = Field(
        default_factory=lambda: [
            "/posts/",
            "/feed/update/urn:li:",
            "/embed/feed/update/urn:li:",
        ]
    )
    max_url_length: int = 2048


class MediaHostRules(BaseModel):
    """Hosts that discovered media and embed frames may be fetched from."""

    exact_hosts: List[str] = Field(default=["www.linkedin.com", "linkedin.com"])
    host_suffixes: List[str] = Field(default=[".licdn.com"])


POST_URL_RULES = PostURLRules()
MEDIA_HOST_RULES = MediaHostRules()
PAGE_ALLOWED_HOSTS: AbstractSet[str] = frozenset({POST_URL_RULES.canonical_host})


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        return False


def validate_post_url(url: str, rules: PostURLRules = POST_URL_RULES) -> str:
    """
    Validate an incoming post URL and return its canonical form.

    The canonical form uses the canonical host and drops the fragment.

    Raises:
        URLValidationError: If the URL is malformed or not a post URL
    """
    value = normalize_whitespace(url)
    if not value:
        raise URLValidationError("Empty URL")
    if len(value) > rules.max_url_length:
        raise URLValidationError(f"URL exceeds maximum length of {rules.max_url_length}")

    parsed = parse_url(value)
    if parsed is None:
        raise URLValidationError(f"Invalid URL format: {value}")
    if parsed.scheme.lower() not in rules.allowed_schemes:
        raise URLValidationError(f"Invalid URL scheme: {parsed.scheme}")
    if parsed.username or parsed.password:
        raise URLValidationError("Credentials are not allowed in post URLs")
    if parsed.port not in (None, 443):
        raise URLValidationError(f"Unexpected port: {parsed.port}")

    host = (parsed.hostname or "").lower()
    if host not in rules.allowed_hosts:
        raise URLValidationError(f"Host not allowed: {host}")
    if not any(parsed.path.startswith(prefix) for prefix in rules.path_prefixes):
        raise URLValidationError(f"Not a post URL path: {parsed.path}")

    return urlunsplit(("https", rules.canonical_host, parsed.path, parsed.query, ""))


def is_allowed_media_host(host: str | None, rules: MediaHostRules = MEDIA_HOST_RULES) -> bool:
    """Check whether media may be fetched from ``host``."""
    if not host:
        return False
    normalized = host.lower().rstrip(".")
    if _is_ip_literal(normalized):
        return False
    if normalized in rules.exact_hosts:
        return True
    return any(normalized.endswith(suffix) for suffix in rules.host_suffixes)


def is_allowed_media_url(url: str | None, rules: MediaHostRules = MEDIA_HOST_RULES) -> bool:
    """Check whether ``url`` is an https URL on an allowed media host."""
    parsed = parse_url(url)
    if parsed is None:
        return False
    if parsed.scheme.lower() != "https":
        return False
    if parsed.username or parsed.password:
        return False
    if parsed.port not in (None, 443):
        return False
    return is_allowed_media_host(parsed.hostname, rules)


def is_host_allowed(host: str | None, policy: HostPolicy) -> bool:
    """Apply a host policy that is either a fixed host set or a predicate."""
    if not host:
        return False
    if callable(policy):
        return bool(policy(host))
    return host.lower() in policy
