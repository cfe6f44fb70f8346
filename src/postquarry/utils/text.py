"""
Small text and URL helpers shared by the extraction layer.
"""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import SplitResult, urlsplit

WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_whitespace(value: Any) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends.

    ``None`` and other non-string values are treated as empty / stringified.
    """
    if value is None:
        return ""
    if isinstance(value, list):
        # BeautifulSoup returns multi-valued attributes (class, rel) as lists
        value = " ".join(str(item) for item in value)
    return WHITESPACE_PATTERN.sub(" ", str(value)).strip()


def parse_url(value: Any) -> Optional[SplitResult]:
    """Parse an absolute URL, returning None when it has no scheme or host."""
    if not value:
        return None
    try:
        parsed = urlsplit(str(value).strip())
        # Accessing .port validates the port component
        parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed


def url_path(value: Any) -> str:
    """Lower-cased path of an absolute URL, or an empty string."""
    parsed = parse_url(value)
    return parsed.path.lower() if parsed else ""
