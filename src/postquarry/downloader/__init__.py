"""Media retrieval for discovered post media."""

from .media_downloader import (
    MediaDownloader,
    MediaDownloadError,
    extension_from_url,
    infer_media_type,
    media_filename,
    prepare_requests,
)

__all__ = [
    "MediaDownloader",
    "MediaDownloadError",
    "extension_from_url",
    "infer_media_type",
    "media_filename",
    "prepare_requests",
]
