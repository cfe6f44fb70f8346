"""
Resolution of embedded viewer frames (document and slide embeds).

Some post media is only referenced from a nested frame document served by a
separate embed endpoint. Frames are fetched through the guarded client with
a bounded semaphore and scanned with the broad embed-document scan. A frame
that fails contributes nothing; it never fails the scrape.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set

import structlog
from bs4 import BeautifulSoup

from postquarry.config.config import ScraperConfig
from postquarry.crawler.http_client import FetchError, GuardedHttpClient, browser_headers
from postquarry.observability.metrics import increment
from postquarry.security.validation import URLValidationError, is_allowed_media_host

from .media_extractor import MediaExtractor, MediaUrls

logger = structlog.get_logger(__name__)


class EmbedFrameResolver:
    """Fetch and scan embed frames referenced by a post page."""

    def __init__(
        self,
        client: GuardedHttpClient,
        extractor: MediaExtractor,
        config: ScraperConfig,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> None:
        self.client = client
        self.extractor = extractor
        self.config = config
        self.semaphore = semaphore or asyncio.Semaphore(config.embed_fetch_concurrency)

    async def resolve(self, soup: BeautifulSoup) -> MediaUrls:
        """Media found in the page's embed frames, merged in frame order."""
        return await self._resolve(soup, self.config.max_embed_depth, set())

    async def _resolve(self, soup: BeautifulSoup, depth: int, visited: Set[str]) -> MediaUrls:
        if depth <= 0:
            return MediaUrls()

        frame_urls = [
            url
            for url in self.extractor.extract_embed_frame_urls(soup, self.config.max_embed_fetches)
            if url not in visited
        ]
        if not frame_urls:
            return MediaUrls()
        visited.update(frame_urls)

        results: List[MediaUrls] = await asyncio.gather(
            *(self._resolve_frame(frame_url, depth, visited) for frame_url in frame_urls)
        )
        return MediaUrls().merged(results, self.config.max_media_count)

    async def _resolve_frame(self, frame_url: str, depth: int, visited: Set[str]) -> MediaUrls:
        html = await self._fetch_frame(frame_url)
        if html is None:
            return MediaUrls()

        frame_soup = BeautifulSoup(html, "html.parser")
        media = self.extractor.extract_from_embed_document(frame_soup)
        # Nested frames are fetched after the semaphore slot for this frame is released
        nested = await self._resolve(frame_soup, depth - 1, visited)
        return media.merged([nested], self.config.max_media_count)

    async def _fetch_frame(self, frame_url: str) -> Optional[str]:
        async with self.semaphore:
            try:
                response = await self.client.fetch_guarded(
                    frame_url,
                    allowed_hosts=is_allowed_media_host,
                    headers=browser_headers(self.config.user_agent),
                    timeout=self.config.timeout,
                    max_redirects=self.config.max_redirects,
                )
                if not response.ok:
                    response.release()
                    raise FetchError(f"Embed fetch returned {response.status}", frame_url)
                html = await response.text()
            except (FetchError, URLValidationError) as e:
                logger.warning("Failed to fetch embed frame", frame_url=frame_url, error=str(e))
                increment("embed_frames", {"outcome": "failed"})
                return None

        increment("embed_frames", {"outcome": "fetched"})
        return html
