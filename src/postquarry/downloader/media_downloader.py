"""
Concurrent retrieval of discovered media.

Each request is fetched through the guarded client with its own failure
isolation: a request that fails is logged and left out of the result while
its siblings continue. Filenames and result order follow the de-duplicated
request list, never completion order.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Iterable, List, Mapping, Optional, Union

import structlog

from postquarry.config.config import ScraperConfig
from postquarry.crawler.http_client import GuardedHttpClient, media_headers
from postquarry.extractor.media_extractor import is_document_path, is_image_path, is_video_path
from postquarry.extractor.models import DownloadedMedia, MediaKind, MediaRequest
from postquarry.extractor.tables import (
    DEFAULT_TABLES,
    MIME_TO_EXTENSION,
    SITE_NAME,
    VIDEO_FILE_EXTENSIONS,
    HeuristicTables,
)
from postquarry.observability.metrics import increment
from postquarry.security.validation import is_allowed_media_host, is_allowed_media_url
from postquarry.utils.text import normalize_whitespace, url_path

logger = structlog.get_logger(__name__)

DEFAULT_EXTENSION = "jpg"
GENERIC_BINARY_MIME_TYPES = frozenset({"", "application/octet-stream"})

_URL_EXTENSION_PATTERN = re.compile(r"\.([a-z0-9]{2,5})$", re.IGNORECASE)
_VIDEO_EXTENSION_PATTERN = re.compile(rf"\.(?:{'|'.join(VIDEO_FILE_EXTENSIONS)})$", re.IGNORECASE)

MediaEntry = Union[MediaRequest, Mapping[str, Any]]


class MediaDownloadError(Exception):
    """A single media item could not be retrieved or classified."""

    pass


def coerce_request(entry: MediaEntry) -> Optional[MediaRequest]:
    """
    Build a MediaRequest from a request object or a ``{"url", "type"}`` mapping.

    A missing or unknown type is treated as an image request.
    """
    if isinstance(entry, MediaRequest):
        url, raw_type = entry.url, entry.requested_type
    elif isinstance(entry, Mapping):
        url, raw_type = entry.get("url"), entry.get("type")
    else:
        return None

    url = normalize_whitespace(url)
    if not url:
        return None

    requested_type = MediaKind.coerce(raw_type)
    if requested_type is None:
        logger.debug("Media request without a known type, assuming image", url=url, requested_type=raw_type)
        requested_type = MediaKind.IMAGE
    return MediaRequest(url=url, requested_type=requested_type)


def prepare_requests(entries: Optional[Iterable[MediaEntry]], limit: int) -> List[MediaRequest]:
    """De-duplicate by URL (first wins), drop disallowed URLs and cap at ``limit``."""
    seen: set[str] = set()
    prepared: List[MediaRequest] = []
    for entry in entries or ():
        request = coerce_request(entry)
        if request is None or request.url in seen or not is_allowed_media_url(request.url):
            continue
        seen.add(request.url)
        prepared.append(request)
    return prepared[:limit]


def extension_from_url(url: str) -> Optional[str]:
    match = _URL_EXTENSION_PATTERN.search(url_path(url))
    return match.group(1).lower() if match else None


def infer_media_type(
    requested_type: MediaKind,
    mime_type: str,
    url: str,
    tables: HeuristicTables = DEFAULT_TABLES,
) -> Optional[MediaKind]:
    """
    Classify a downloaded resource, or return None when it is unsupported.

    The MIME type decides first; path shape and file extension come next;
    the requested type is trusted only for empty or generic binary MIME types.
    """
    mime = (mime_type or "").split(";")[0].strip().lower()
    path = url_path(url)

    if mime.startswith("text/html"):
        return None
    if mime.startswith("image/"):
        return MediaKind.IMAGE
    if mime.startswith("video/"):
        return MediaKind.VIDEO
    if mime == "application/pdf":
        return MediaKind.DOCUMENT
    if is_document_path(path, tables) or path.endswith(".pdf"):
        return MediaKind.DOCUMENT
    if is_video_path(path, tables) or _VIDEO_EXTENSION_PATTERN.search(path):
        return MediaKind.VIDEO
    if is_image_path(path, tables):
        return MediaKind.IMAGE
    if mime in GENERIC_BINARY_MIME_TYPES:
        return requested_type
    return None


def media_filename(index: int, media_type: MediaKind, mime_type: str, url: str) -> str:
    """``<site>-<kind>-<index + 1>.<ext>`` with the extension taken from MIME, then URL."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    extension = MIME_TO_EXTENSION.get(mime) or extension_from_url(url) or DEFAULT_EXTENSION
    return f"{SITE_NAME}-{media_type.value}-{index + 1}.{extension}"


class MediaDownloader:
    """Download media requests with bounded concurrency and per-item isolation."""

    def __init__(
        self,
        client: GuardedHttpClient,
        config: ScraperConfig,
        semaphore: Optional[asyncio.Semaphore] = None,
        tables: HeuristicTables = DEFAULT_TABLES,
    ) -> None:
        self.client = client
        self.config = config
        self.semaphore = semaphore or asyncio.Semaphore(config.download_concurrency)
        self.tables = tables

    async def download(self, entries: Optional[Iterable[MediaEntry]]) -> List[DownloadedMedia]:
        """
        Retrieve every allowed request; failed or unsupported items are omitted.

        Never raises for individual item failures.
        """
        requests = prepare_requests(entries, self.config.max_download_count)
        if not requests:
            return []

        results = await asyncio.gather(
            *(self._download_one(index, request) for index, request in enumerate(requests))
        )
        downloaded = [item for item in results if item is not None]
        logger.info("Media download finished", requested=len(requests), downloaded=len(downloaded))
        return downloaded

    async def _download_one(self, index: int, request: MediaRequest) -> Optional[DownloadedMedia]:
        async with self.semaphore:
            try:
                media = await self._fetch_media(index, request)
            except Exception as e:
                logger.warning("Skipping media after download failure", url=request.url, error=str(e))
                increment("media_downloads", {"outcome": "failed"})
                return None

        increment("media_downloads", {"outcome": media.media_type.value})
        return media

    async def _fetch_media(self, index: int, request: MediaRequest) -> DownloadedMedia:
        response = await self.client.fetch_guarded(
            request.url,
            allowed_hosts=is_allowed_media_host,
            headers=media_headers(self.config.user_agent),
            timeout=self.config.timeout,
            max_redirects=self.config.max_redirects,
        )
        if not response.ok:
            response.release()
            raise MediaDownloadError(f"Media download returned {response.status}")

        mime_type = response.content_type
        media_type = infer_media_type(request.requested_type, mime_type, request.url, self.tables)
        if media_type is None:
            response.release()
            raise MediaDownloadError(f"Unsupported content type: {mime_type or 'unknown'}")

        content = await response.read()
        if not content:
            raise MediaDownloadError("Empty media body")

        return DownloadedMedia(
            url=request.url,
            content=content,
            media_type=media_type,
            mime_type=mime_type,
            filename=media_filename(index, media_type, mime_type, request.url),
        )
