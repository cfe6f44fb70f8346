"""
PostQuarry - post text and media extraction with guarded media retrieval.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .extractor.models import DownloadedMedia, ErrorCode, ExtractionError, ExtractionResult, MediaKind, MediaRequest
from .scraper import PostScraper, download_media, extract_post

__all__ = [
    "__version__",
    "Config",
    "DownloadedMedia",
    "ErrorCode",
    "ExtractionError",
    "ExtractionResult",
    "MediaKind",
    "MediaRequest",
    "PostScraper",
    "download_media",
    "extract_post",
]
