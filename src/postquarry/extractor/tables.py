"""
Heuristic tables for post markup.

Selectors and hint lists change whenever the site's markup drifts. They are
kept here as data so the extraction functions never need editing for it;
callers may pass a modified ``HeuristicTables`` instead of the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

CANONICAL_ORIGIN = "https://www.linkedin.com"
SITE_NAME = "linkedin"

MIME_TO_EXTENSION: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
    "image/heif": "heif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/mpeg": "mpeg",
    "application/pdf": "pdf",
    "application/octet-stream": "bin",
}

VIDEO_FILE_EXTENSIONS: Tuple[str, ...] = ("mp4", "mov", "webm", "mpeg")

PROTECTED_STATUS_CODES = frozenset({401, 403, 999})


@dataclass(frozen=True)
class HeuristicTables:
    primary_text_selectors: Tuple[str, ...] = (
        ".attributed-text-segment-list__content",
        ".update-components-update-v2__commentary",
    )
    auth_wall_phrases: Tuple[str, ...] = ("sign in", "log in", "join linkedin", "linkedin login")
    low_value_text_phrases: Tuple[str, ...] = ("join linkedin", "sign in", "log in", "linkedin: log in")
    text_meta_fields: Tuple[str, ...] = ("og:description", "og:title")

    post_media_container_selectors: Tuple[str, ...] = (
        ".update-components-image",
        ".update-components-image__container",
        ".update-components-carousel",
        ".update-components-carousel__container",
        ".update-components-document",
        ".update-components-document__container",
        ".update-components-video",
        ".update-components-linkedin-video",
        ".feed-shared-update-v2__content",
    )

    image_selectors: Tuple[str, ...] = (
        ".update-components-image__container img",
        ".update-components-image img",
        ".update-components-carousel__container img",
        ".update-components-document__container img",
        ".update-components-article__image img",
        "img.carousel-slide__image",
        ".feed-shared-update-v2__content img[data-delayed-url]",
    )
    image_attributes: Tuple[str, ...] = ("src", "srcset", "data-delayed-url", "data-ghost-url")

    video_selectors: Tuple[str, ...] = (
        ".update-components-video video[src]",
        ".update-components-video video source[src]",
        ".update-components-linkedin-video video[src]",
        ".update-components-linkedin-video video source[src]",
        ".update-components-linkedin-video__container video[src]",
        ".update-components-linkedin-video__container video source[src]",
        '.update-components-linkedin-video__container video[id*="_html5_api"][src]',
        ".update-components-linkedin-video__container .vjs-tech[src]",
        ".video-s-loader__video-container video[src]",
        ".video-s-loader__video-container video source[src]",
        "[data-player-id][data-sources]",
        ".feed-shared-update-v2__content video[src]",
        ".feed-shared-update-v2__content video source[src]",
        'a[href*="/dms/video/"]',
        'a[href*="/dms/videoplayback/"]',
    )
    video_attributes: Tuple[str, ...] = (
        "src",
        "href",
        "data-delayed-url",
        "data-mp4-source-url",
        "data-video-url",
        "data-source-url",
        "data-manifest-url",
        "data-sources",
        "data-player-config",
        "style",
    )

    document_selectors: Tuple[str, ...] = (
        ".update-components-document__container a[href]",
        ".update-components-document__container [data-document-url]",
        'a[href*="/dms/document/"]',
        '[data-document-url*="/dms/document/"]',
    )
    document_attributes: Tuple[str, ...] = ("href", "data-document-url", "src")

    embed_frame_selectors: Tuple[str, ...] = (
        ".update-components-document__container iframe[src]",
        ".update-components-document iframe[src]",
        'iframe[src*="/embeds/native-document"]',
        'iframe[src*="media.licdn.com/embeds/"]',
        '[data-document-url*="/embeds/native-document"]',
    )
    embed_frame_attributes: Tuple[str, ...] = ("src", "data-document-url", "data-embed-url", "href")

    embed_media_selectors: Tuple[str, ...] = (
        "img",
        "source",
        "video",
        "a",
        "iframe",
        "[style]",
        "[data-src]",
        "[data-sources]",
        "[data-player-config]",
        "[data-video-url]",
        "[data-document-url]",
        "[data-slide-image-url]",
        "[data-carousel-image-url]",
    )
    embed_media_attributes: Tuple[str, ...] = (
        "src",
        "srcset",
        "href",
        "data-src",
        "data-delayed-url",
        "data-ghost-url",
        "data-lazy-src",
        "data-thumb-url",
        "data-url",
        "data-document-url",
        "data-video-url",
        "data-slide-image-url",
        "data-carousel-image-url",
        "data-mp4-source-url",
        "data-source-url",
        "data-manifest-url",
        "data-sources",
        "data-player-config",
        "style",
    )

    included_image_class_hints: Tuple[str, ...] = (
        "update-components-image",
        "update-components-carousel",
        "update-components-document",
        "carousel-slide__image",
        "feed-shared-image",
    )
    excluded_image_class_hints: Tuple[str, ...] = (
        "feed-shared-actor__avatar",
        "entityphoto",
        "presence-entity__image",
        "ivm-view-attr__img--centered",
        "global-nav",
        "org-top-card-primary-content__logo",
    )
    excluded_image_url_hints: Tuple[str, ...] = (
        "profile-displayphoto",
        "company-logo",
        "school-logo",
        "profile-framedphoto",
        "ghost-person",
    )

    image_meta_fields: Tuple[str, ...] = ("og:image", "og:image:secure_url")
    video_meta_fields: Tuple[str, ...] = ("og:video", "og:video:secure_url")

    image_path_segments: Tuple[str, ...] = ("/dms/image/",)
    video_path_segments: Tuple[str, ...] = ("/dms/video/", "/dms/videoplayback/")
    document_path_segments: Tuple[str, ...] = ("/dms/document/",)
    embed_path_segments: Tuple[str, ...] = ("/embeds/",)

    # Resource path names used by the inline script/style patterns
    script_kinds: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: {
            "image": ("image",),
            "video": ("video", "videoplayback"),
            "document": ("document",),
        }
    )

    @property
    def media_container_selector(self) -> str:
        return ", ".join(self.post_media_container_selectors)


DEFAULT_TABLES = HeuristicTables()
