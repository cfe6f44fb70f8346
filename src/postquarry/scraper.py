"""
Post scraping entry points.

``PostScraper.extract_post`` validates a post URL, fetches the page through
the guarded client and recovers text and media URLs, retrying whole
attempts on failure. ``PostScraper.download_media`` retrieves media the
caller selected from an extraction result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, List, Optional

import structlog
from bs4 import BeautifulSoup

from postquarry.config.config import Config
from postquarry.crawler.http_client import FetchError, GuardedHttpClient, browser_headers
from postquarry.crawler.retry import with_retries
from postquarry.downloader.media_downloader import MediaDownloader, MediaEntry
from postquarry.extractor.embed_resolver import EmbedFrameResolver
from postquarry.extractor.media_extractor import MediaExtractor, MediaUrls
from postquarry.extractor.models import DownloadedMedia, ErrorCode, ExtractionError, ExtractionResult
from postquarry.extractor.tables import DEFAULT_TABLES, PROTECTED_STATUS_CODES, HeuristicTables
from postquarry.extractor.text_extractor import extract_post_text, has_auth_wall
from postquarry.observability.metrics import increment
from postquarry.security.validation import PAGE_ALLOWED_HOSTS, URLValidationError, validate_post_url

logger = structlog.get_logger(__name__)

RetryObserver = Callable[[BaseException, int], None]


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, ExtractionError) and error.retryable


class PostScraper:
    """Extract post content and download its media."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        client: Optional[GuardedHttpClient] = None,
        tables: HeuristicTables = DEFAULT_TABLES,
        embed_semaphore: Optional[asyncio.Semaphore] = None,
        download_semaphore: Optional[asyncio.Semaphore] = None,
        on_retry: Optional[RetryObserver] = None,
    ) -> None:
        self.config = config or Config()
        self.scraper_config = self.config.scraper
        self.client = client or GuardedHttpClient(self.config)
        self.tables = tables
        self.on_retry = on_retry

        self.media_extractor = MediaExtractor(
            tables,
            max_media_count=self.scraper_config.max_media_count,
            script_scan_limit=self.scraper_config.script_scan_limit,
            min_image_dimension=self.scraper_config.min_image_dimension,
        )
        self.embed_resolver = EmbedFrameResolver(
            self.client, self.media_extractor, self.scraper_config, semaphore=embed_semaphore
        )
        self.downloader = MediaDownloader(
            self.client, self.scraper_config, semaphore=download_semaphore, tables=tables
        )

    async def initialize(self) -> None:
        await self.client.initialize()

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "PostScraper":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def extract_post(self, url: str) -> ExtractionResult:
        """
        Extract text and media URLs from a post page.

        Raises:
            ExtractionError: INVALID_URL without any network call, otherwise
                the error of the last attempt once retries are exhausted
        """
        try:
            post_url = validate_post_url(url)
        except URLValidationError as e:
            increment("scrape_attempts", {"outcome": ErrorCode.INVALID_URL.value})
            raise ExtractionError(ErrorCode.INVALID_URL, "Invalid post URL") from e

        with structlog.contextvars.bound_contextvars(post_url=post_url):
            return await with_retries(
                lambda: self.scrape_once(post_url),
                retries=self.scraper_config.retry_count,
                on_retry=self._handle_retry,
                should_retry=is_retryable,
                backoff_seconds=self.scraper_config.retry_backoff_seconds,
            )

    def _handle_retry(self, error: BaseException, attempt: int) -> None:
        logger.warning("Retrying post scrape", attempt=attempt, error=str(error))
        if self.on_retry is not None:
            self.on_retry(error, attempt)

    async def scrape_once(self, post_url: str) -> ExtractionResult:
        """One fetch / parse / extract pass over an already validated post URL."""
        try:
            result = await self._scrape(post_url)
        except ExtractionError as e:
            increment("scrape_attempts", {"outcome": e.code.value})
            raise
        except Exception as e:
            logger.error("Unexpected scrape failure", url=post_url, error=repr(e))
            increment("scrape_attempts", {"outcome": ErrorCode.SCRAPE_FAILED.value})
            raise ExtractionError(ErrorCode.SCRAPE_FAILED, f"Unexpected scrape failure: {e!r}") from e
        increment("scrape_attempts", {"outcome": "success"})
        return result

    async def _scrape(self, post_url: str) -> ExtractionResult:
        if self.scraper_config.enable_headless:
            logger.warning("Headless flag enabled but only markup extraction is implemented", url=post_url)

        html = await self._fetch_page(post_url)
        soup = BeautifulSoup(html, "html.parser")

        if has_auth_wall(soup, self.tables):
            raise ExtractionError(ErrorCode.PRIVATE_OR_PROTECTED, "Post page requires authentication")

        text = extract_post_text(soup, self.tables)
        page_media = self.media_extractor.extract(soup)
        embed_media = await self.embed_resolver.resolve(soup)
        media = page_media.merged([embed_media], self.scraper_config.max_media_count)

        if media.is_empty():
            media = MediaUrls(images=self.media_extractor.extract_meta_image_fallback(soup))

        if not text:
            raise ExtractionError(ErrorCode.TEXT_NOT_FOUND, "Could not extract post text")

        logger.info(
            "Post extracted",
            url=post_url,
            images=len(media.images),
            videos=len(media.videos),
            documents=len(media.documents),
        )
        return ExtractionResult(
            text=text,
            image_urls=media.images,
            video_urls=media.videos,
            document_urls=media.documents,
        )

    async def _fetch_page(self, post_url: str) -> str:
        try:
            response = await self.client.fetch_guarded(
                post_url,
                allowed_hosts=PAGE_ALLOWED_HOSTS,
                headers=browser_headers(self.scraper_config.user_agent),
                timeout=self.scraper_config.timeout,
                max_redirects=self.scraper_config.max_redirects,
            )
        except (FetchError, URLValidationError) as e:
            raise ExtractionError(ErrorCode.SCRAPE_FAILED, f"Post page fetch failed: {e}") from e

        if response.status in PROTECTED_STATUS_CODES:
            response.release()
            raise ExtractionError(ErrorCode.PRIVATE_OR_PROTECTED, f"Post page returned {response.status}")
        if not response.ok:
            response.release()
            raise ExtractionError(ErrorCode.SCRAPE_FAILED, f"Post page returned {response.status}")

        try:
            return await response.text()
        except FetchError as e:
            raise ExtractionError(ErrorCode.SCRAPE_FAILED, f"Post page body could not be read: {e}") from e

    async def download_media(self, entries: Optional[Iterable[MediaEntry]]) -> List[DownloadedMedia]:
        """Download the requested media; failed items are omitted, nothing is raised for them."""
        return await self.downloader.download(entries)


async def extract_post(url: str, config: Optional[Config] = None) -> ExtractionResult:
    """Extract a post with a short-lived scraper."""
    async with PostScraper(config) as scraper:
        return await scraper.extract_post(url)


async def download_media(
    entries: Optional[Iterable[MediaEntry]], config: Optional[Config] = None
) -> List[DownloadedMedia]:
    """Download media with a short-lived scraper."""
    async with PostScraper(config) as scraper:
        return await scraper.download_media(entries)
