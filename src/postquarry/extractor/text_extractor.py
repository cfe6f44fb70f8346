"""
Post text recovery and auth-wall detection.
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup

from postquarry.utils.text import normalize_whitespace

from .tables import DEFAULT_TABLES, HeuristicTables


def meta_content(soup: BeautifulSoup, prop: str) -> str:
    """Normalized ``content`` of the first ``<meta property=...>`` tag."""
    tag = soup.find("meta", attrs={"property": prop})
    if tag is None:
        return ""
    return normalize_whitespace(tag.get("content"))


def has_auth_wall(soup: BeautifulSoup, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    """True if the page title or og:title is a login/sign-up prompt."""
    title_tag = soup.find("title")
    title = normalize_whitespace(title_tag.get_text() if title_tag else "")
    combined = f"{title} {meta_content(soup, 'og:title')}".lower()
    return any(phrase in combined for phrase in tables.auth_wall_phrases)


def is_low_value_text(text: Optional[str], tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    normalized = normalize_whitespace(text).lower()
    if not normalized:
        return True
    return any(phrase in normalized for phrase in tables.low_value_text_phrases)


def extract_post_text(soup: BeautifulSoup, tables: HeuristicTables = DEFAULT_TABLES) -> str:
    """
    Recover the post body text.

    The first primary selector that yields any text wins; its chunks are
    de-duplicated and joined by blank lines. Otherwise the first non-empty
    metadata field is used unless it reads like a login prompt.
    """
    for selector in tables.primary_text_selectors:
        chunks = []
        for element in soup.select(selector):
            text = normalize_whitespace(element.get_text())
            if text and text not in chunks:
                chunks.append(text)
        if chunks:
            return "\n\n".join(chunks)

    fallback = ""
    for prop in tables.text_meta_fields:
        fallback = meta_content(soup, prop)
        if fallback:
            break

    if is_low_value_text(fallback, tables):
        return ""
    return fallback
