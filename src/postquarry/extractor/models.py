"""
Data models for extraction and download results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MediaKind(str, Enum):
    """Kind of a discovered or downloaded resource."""

    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"

    @classmethod
    def coerce(cls, value: Any, default: "MediaKind | None" = None) -> "MediaKind | None":
        """Return the matching kind, or ``default`` for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class ErrorCode(str, Enum):
    """Closed set of extraction failure codes."""

    INVALID_URL = "INVALID_URL"
    PRIVATE_OR_PROTECTED = "PRIVATE_OR_PROTECTED"
    SCRAPE_FAILED = "SCRAPE_FAILED"
    TEXT_NOT_FOUND = "TEXT_NOT_FOUND"


class ExtractionError(Exception):
    """Extraction failure tagged with an ErrorCode."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.code is not ErrorCode.INVALID_URL

    def __repr__(self) -> str:
        return f"ExtractionError({self.code.value}, {self.message!r})"


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Text and media URLs recovered from a post page."""

    text: str
    image_urls: tuple[str, ...] = ()
    video_urls: tuple[str, ...] = ()
    document_urls: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from callers but store immutable tuples
        for name in ("image_urls", "video_urls", "document_urls"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def media_requests(self) -> list[MediaRequest]:
        """All discovered URLs as download requests, images first."""
        requests = [MediaRequest(url, MediaKind.IMAGE) for url in self.image_urls]
        requests.extend(MediaRequest(url, MediaKind.VIDEO) for url in self.video_urls)
        requests.extend(MediaRequest(url, MediaKind.DOCUMENT) for url in self.document_urls)
        return requests

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "image_urls": list(self.image_urls),
            "video_urls": list(self.video_urls),
            "document_urls": list(self.document_urls),
        }


@dataclass(slots=True, frozen=True)
class MediaRequest:
    """A URL the caller wants downloaded, with the kind it expects."""

    url: str
    requested_type: MediaKind = MediaKind.IMAGE


@dataclass(slots=True, frozen=True)
class DownloadedMedia:
    """A successfully retrieved and classified media file."""

    url: str
    content: bytes = field(repr=False)
    media_type: MediaKind
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content)
