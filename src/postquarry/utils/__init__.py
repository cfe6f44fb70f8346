"""Utility modules for PostQuarry."""

from .text import normalize_whitespace, parse_url, url_path

__all__ = ["normalize_whitespace", "parse_url", "url_path"]
