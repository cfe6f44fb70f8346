"""
Media URL extraction from post markup.

Three channels feed the result: element attributes matched by the selector
tables, URL patterns found in inline scripts and attribute values, and page
metadata as a last resort. Every candidate goes through the same
resolve / validate / de-duplicate step before it is kept.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional
from urllib.parse import urldefrag, urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from postquarry.security.validation import is_allowed_media_url
from postquarry.utils.text import normalize_whitespace, url_path

from .tables import CANONICAL_ORIGIN, DEFAULT_TABLES, VIDEO_FILE_EXTENSIONS, HeuristicTables
from .text_extractor import meta_content

logger = structlog.get_logger(__name__)

DEFAULT_MAX_MEDIA_COUNT = 40
DEFAULT_SCRIPT_SCAN_LIMIT = 2_000_000
DEFAULT_MIN_IMAGE_DIMENSION = 140

# A forward slash inside a JSON string: "\/" or "\u002F"
_ESCAPED_SLASH = r"(?:\\/|\\u002[fF])"
_ESCAPED_AMPERSAND = r"\\u0026"
_STYLE_URL_PATTERN = re.compile(r"url\(([\'\"]?)(.*?)\1\)", re.IGNORECASE)
_LEADING_INT_PATTERN = re.compile(r"^\s*\+?(\d+)")
# Characters that never occur in a usable URL token (JSON and markup debris)
_INVALID_TOKEN_CHARS = re.compile(r"[\"'<>{}\[\]\\^`|]")


def normalize_candidate_url(raw: str, base: str = CANONICAL_ORIGIN) -> Optional[str]:
    """Resolve ``raw`` against ``base`` and drop the fragment."""
    try:
        resolved = urljoin(base, raw.strip())
    except ValueError:
        return None
    return urldefrag(resolved).url or None


def split_url_tokens(raw_value: object) -> List[str]:
    """Split an attribute value (plain URL, srcset or comma list) into URL tokens."""
    value = normalize_whitespace(raw_value)
    if not value:
        return []
    tokens = []
    for part in value.split(","):
        words = part.strip().split()
        if words and not _INVALID_TOKEN_CHARS.search(words[0]):
            tokens.append(words[0])
    return tokens


class UrlSet:
    """Insertion-ordered set of validated, fragment-free absolute URLs."""

    def __init__(self, validator: Callable[[str], bool] = is_allowed_media_url):
        self._urls: Dict[str, None] = {}
        self._validator = validator

    def add_candidates(self, raw_value: object) -> List[str]:
        """Add every valid URL token in ``raw_value``; return the newly added ones."""
        added = []
        for token in split_url_tokens(raw_value):
            normalized = normalize_candidate_url(token)
            if not normalized or normalized in self._urls or not self._validator(normalized):
                continue
            self._urls[normalized] = None
            added.append(normalized)
        return added

    def add(self, url: str) -> None:
        self._urls.setdefault(url, None)

    def update(self, urls: Iterable[str]) -> None:
        for url in urls:
            self.add(url)

    def discard(self, url: str) -> None:
        self._urls.pop(url, None)

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._urls))

    def __len__(self) -> int:
        return len(self._urls)

    def to_list(self, limit: int, predicate: Optional[Callable[[str], bool]] = None) -> List[str]:
        urls = [url for url in self._urls if predicate is None or predicate(url)]
        return urls[:limit]


@dataclass
class MediaUrls:
    """Image, video and document URL lists in discovery order."""

    images: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.images or self.videos or self.documents)

    def merged(self, others: Iterable["MediaUrls"], limit: int) -> "MediaUrls":
        """Order-preserving union of this and ``others``, each list capped at ``limit``."""
        images, videos, documents = UrlSet(), UrlSet(), UrlSet()
        for media in (self, *others):
            images.update(media.images)
            videos.update(media.videos)
            documents.update(media.documents)
        return MediaUrls(images.to_list(limit), videos.to_list(limit), documents.to_list(limit))


# --- Path predicates ---


def _has_any_hint(value: object, hints: Iterable[str]) -> bool:
    normalized = normalize_whitespace(value).lower()
    return any(hint in normalized for hint in hints)


def is_image_path(path: str, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    path = path.lower()
    if not any(segment in path for segment in tables.image_path_segments):
        return False
    return not _has_any_hint(path, tables.excluded_image_url_hints)


def is_video_path(path: str, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    path = path.lower()
    return any(segment in path for segment in tables.video_path_segments)


def is_document_path(path: str, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    path = path.lower()
    return any(segment in path for segment in tables.document_path_segments)


def is_embed_path(path: str, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    path = path.lower()
    return any(segment in path for segment in tables.embed_path_segments)


# --- Text pattern channel ---


def decode_escaped_url(value: str) -> str:
    """Undo JSON and HTML escaping commonly found around embedded URLs."""
    decoded = re.sub(r"\\u002[fF]", "/", value)
    decoded = decoded.replace("\\/", "/")
    decoded = re.sub(r"\\u0026", "&", decoded, flags=re.IGNORECASE)
    return decoded.replace("&amp;", "&").rstrip("\\")


def _plain_patterns(kind: str) -> List[re.Pattern[str]]:
    patterns = [re.compile(rf"https://[a-z0-9.-]+/dms/{kind}[^\"'\s<>,]*", re.IGNORECASE)]
    if kind == "video":
        extensions = "|".join(VIDEO_FILE_EXTENSIONS)
        patterns.append(re.compile(r"https://[a-z0-9.-]+/dms/videoplayback[^\"'\s<>,]*", re.IGNORECASE))
        patterns.append(
            re.compile(
                rf"https://[a-z0-9.-]+/dms/video/[^\"'\s<>,]*\.(?:{extensions})(?:\?[^\"'\s<>,]*)?",
                re.IGNORECASE,
            )
        )
    return patterns


def extract_embedded_media_urls(raw_value: Optional[str], kind: str) -> List[str]:
    """Find ``kind`` media URLs inside free text such as JSON player configs."""
    source = decode_escaped_url(raw_value or "")
    if not source:
        return []
    matches: Dict[str, None] = {}
    for pattern in _plain_patterns(kind):
        for match in pattern.finditer(source):
            matches.setdefault(match.group(0), None)
    return list(matches)


def _script_patterns(path_name: str) -> List[re.Pattern[str]]:
    escaped = re.compile(
        rf"https:{_ESCAPED_SLASH}{_ESCAPED_SLASH}[a-z0-9.-]+{_ESCAPED_SLASH}dms{_ESCAPED_SLASH}"
        rf"{path_name}(?:{_ESCAPED_SLASH}|{_ESCAPED_AMPERSAND}|[^\"\\\s<])*",
        re.IGNORECASE,
    )
    plain = re.compile(rf"https://[a-z0-9.-]+/dms/{path_name}[^\"'\s<]*", re.IGNORECASE)
    return [escaped, plain]


def iter_script_bodies(soup: BeautifulSoup, size_limit: int = DEFAULT_SCRIPT_SCAN_LIMIT) -> Iterator[str]:
    """Yield inline script bodies, skipping empty ones and those above ``size_limit``."""
    for script in soup.find_all("script"):
        body = script.string if script.string is not None else script.get_text()
        if not body or len(body) > size_limit:
            continue
        yield str(body)


def extract_script_media_urls(
    soup: BeautifulSoup,
    kind: str,
    tables: HeuristicTables = DEFAULT_TABLES,
    size_limit: int = DEFAULT_SCRIPT_SCAN_LIMIT,
) -> List[str]:
    """Scan inline scripts for literal and JSON-escaped ``kind`` resource URLs."""
    found = UrlSet()
    patterns = [pattern for name in tables.script_kinds.get(kind, (kind,)) for pattern in _script_patterns(name)]
    for body in iter_script_bodies(soup, size_limit):
        for pattern in patterns:
            for match in pattern.finditer(body):
                found.add_candidates(decode_escaped_url(match.group(0)))
    return list(found)


def extract_style_urls(style_value: Optional[str]) -> List[str]:
    """Return the targets of ``url(...)`` references in a style value."""
    source = str(style_value or "")
    if "url(" not in source.lower():
        return []
    return [match.group(2) for match in _STYLE_URL_PATTERN.finditer(source) if match.group(2)]


# --- Image element heuristics ---


def _attr(element: Tag, name: str) -> Optional[str]:
    value = element.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def parse_dimension(value: Optional[str]) -> Optional[int]:
    """Leading integer of a width/height attribute, or None if absent or not positive."""
    if not value:
        return None
    match = _LEADING_INT_PATTERN.match(str(value))
    if not match:
        return None
    parsed = int(match.group(1))
    return parsed if parsed > 0 else None


def element_class_blob(element: Tag) -> str:
    """Classes of the element, its parent and its nearest classed ancestor-or-self."""
    parts = [_attr(element, "class")]
    parent = element.parent
    if isinstance(parent, Tag):
        parts.append(_attr(parent, "class"))
    node: Optional[Tag] = element
    while isinstance(node, Tag):
        if node.get("class"):
            parts.append(_attr(node, "class"))
            break
        node = node.parent
    return " ".join(part for part in parts if part).lower()


def is_likely_post_image(
    element: Tag,
    url: str,
    tables: HeuristicTables = DEFAULT_TABLES,
    min_dimension: int = DEFAULT_MIN_IMAGE_DIMENSION,
) -> bool:
    """
    Decide whether an image element carrying ``url`` is post media rather
    than an avatar, logo or other page chrome.
    """
    if not is_image_path(url_path(url), tables):
        return False

    class_blob = element_class_blob(element)
    if _has_any_hint(class_blob, tables.excluded_image_class_hints):
        return False

    in_media_container = element.css.closest(tables.media_container_selector) is not None
    strong_class_signal = _has_any_hint(class_blob, tables.included_image_class_hints)
    if not in_media_container and not strong_class_signal:
        return False

    width = parse_dimension(_attr(element, "width"))
    height = parse_dimension(_attr(element, "height"))
    too_small = (width is not None and width < min_dimension) or (height is not None and height < min_dimension)
    return not (too_small and not strong_class_signal)


class MediaExtractor:
    """Extract post media URLs from a parsed post page."""

    name = "post_media"

    def __init__(
        self,
        tables: HeuristicTables = DEFAULT_TABLES,
        *,
        max_media_count: int = DEFAULT_MAX_MEDIA_COUNT,
        script_scan_limit: int = DEFAULT_SCRIPT_SCAN_LIMIT,
        min_image_dimension: int = DEFAULT_MIN_IMAGE_DIMENSION,
    ) -> None:
        self.tables = tables
        self.max_media_count = max_media_count
        self.script_scan_limit = script_scan_limit
        self.min_image_dimension = min_image_dimension

    def extract(self, soup: BeautifulSoup) -> MediaUrls:
        """Run the image, video and document channels over the page."""
        media = MediaUrls(
            images=self.extract_image_urls(soup),
            videos=self.extract_video_urls(soup),
            documents=self.extract_document_urls(soup),
        )
        logger.debug(
            "Extracted page media",
            images=len(media.images),
            videos=len(media.videos),
            documents=len(media.documents),
        )
        return media

    def extract_image_urls(self, soup: BeautifulSoup) -> List[str]:
        images = UrlSet()
        for selector in self.tables.image_selectors:
            for element in soup.select(selector):
                for attr_name in self.tables.image_attributes:
                    for url in images.add_candidates(_attr(element, attr_name)):
                        if not is_likely_post_image(element, url, self.tables, self.min_image_dimension):
                            images.discard(url)
        return images.to_list(self.max_media_count)

    def extract_video_urls(self, soup: BeautifulSoup) -> List[str]:
        videos = UrlSet()
        for selector in self.tables.video_selectors:
            for element in soup.select(selector):
                for attr_name in self.tables.video_attributes:
                    value = _attr(element, attr_name)
                    videos.add_candidates(value)
                    for match in extract_embedded_media_urls(value, "video"):
                        videos.add_candidates(match)

                for match in extract_embedded_media_urls(element.decode_contents(), "video"):
                    videos.add_candidates(match)

        videos.update(extract_script_media_urls(soup, "video", self.tables, self.script_scan_limit))

        if not videos:
            for prop in self.tables.video_meta_fields:
                videos.add_candidates(meta_content(soup, prop))

        return videos.to_list(self.max_media_count, lambda url: is_video_path(url_path(url), self.tables))

    def extract_document_urls(self, soup: BeautifulSoup) -> List[str]:
        documents = UrlSet()
        for selector in self.tables.document_selectors:
            for element in soup.select(selector):
                for attr_name in self.tables.document_attributes:
                    documents.add_candidates(_attr(element, attr_name))

        if not documents:
            documents.update(extract_script_media_urls(soup, "document", self.tables, self.script_scan_limit))

        return documents.to_list(self.max_media_count, lambda url: is_document_path(url_path(url), self.tables))

    def extract_meta_image_fallback(self, soup: BeautifulSoup) -> List[str]:
        """Page-level image metadata, still restricted to post-image paths."""
        images = UrlSet()
        for prop in self.tables.image_meta_fields:
            images.add_candidates(meta_content(soup, prop))
        return images.to_list(self.max_media_count, lambda url: is_image_path(url_path(url), self.tables))

    def extract_embed_frame_urls(self, soup: BeautifulSoup, limit: int) -> List[str]:
        """Embed frame URLs on allowed hosts under an embed path, at most ``limit``."""
        frames = UrlSet()
        for selector in self.tables.embed_frame_selectors:
            for element in soup.select(selector):
                for attr_name in self.tables.embed_frame_attributes:
                    frames.add_candidates(_attr(element, attr_name))
        return frames.to_list(limit, lambda url: is_embed_path(url_path(url), self.tables))

    def extract_from_embed_document(self, soup: BeautifulSoup) -> MediaUrls:
        """
        Broad scan of an embed frame document.

        Frame markup does not follow the post page layout, so every element
        carrying a URL-like attribute is considered and the results are
        classified by path shape only.
        """
        candidates = UrlSet()
        selector = ", ".join(self.tables.embed_media_selectors)
        for element in soup.select(selector):
            for attr_name in self.tables.embed_media_attributes:
                value = _attr(element, attr_name)
                if not value:
                    continue
                candidates.add_candidates(value)
                for style_url in extract_style_urls(value):
                    candidates.add_candidates(style_url)
                for kind in ("image", "video", "document"):
                    for match in extract_embedded_media_urls(value, kind):
                        candidates.add_candidates(match)

        for kind in ("image", "video", "document"):
            candidates.update(extract_script_media_urls(soup, kind, self.tables, self.script_scan_limit))

        media = MediaUrls()
        for url in candidates:
            path = url_path(url)
            if is_image_path(path, self.tables):
                media.images.append(url)
            elif is_video_path(path, self.tables):
                media.videos.append(url)
            elif is_document_path(path, self.tables):
                media.documents.append(url)

        limit = self.max_media_count
        return MediaUrls(media.images[:limit], media.videos[:limit], media.documents[:limit])
