"""
PostQuarry Extraction Module

Heuristic recovery of post text and media URLs from post page markup:
1. Text: primary selectors, then description/title metadata
2. Media: selector/attribute scan, inline script and style patterns, metadata fallback
3. Embed frames: nested viewer documents fetched and scanned separately
"""

from .embed_resolver import EmbedFrameResolver
from .media_extractor import MediaExtractor, MediaUrls, UrlSet, normalize_candidate_url
from .models import DownloadedMedia, ErrorCode, ExtractionError, ExtractionResult, MediaKind, MediaRequest
from .tables import DEFAULT_TABLES, HeuristicTables
from .text_extractor import extract_post_text, has_auth_wall

__all__ = [
    "EmbedFrameResolver",
    "MediaExtractor",
    "MediaUrls",
    "UrlSet",
    "normalize_candidate_url",
    "DownloadedMedia",
    "ErrorCode",
    "ExtractionError",
    "ExtractionResult",
    "MediaKind",
    "MediaRequest",
    "DEFAULT_TABLES",
    "HeuristicTables",
    "extract_post_text",
    "has_auth_wall",
]
