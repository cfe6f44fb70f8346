"""
PostQuarry Crawler Module - guarded fetching and scrape retries.

- Same-origin-only redirect policy re-validated on every hop
- Hard per-request timeout
- Bounded whole-attempt retries with an observer hook
"""

from .http_client import (
    BlockedRedirectError,
    FetchError,
    GuardedHttpClient,
    GuardedResponse,
    browser_headers,
    media_headers,
)
from .retry import calculate_backoff_delay, with_retries

__all__ = [
    "BlockedRedirectError",
    "FetchError",
    "GuardedHttpClient",
    "GuardedResponse",
    "browser_headers",
    "media_headers",
    "calculate_backoff_delay",
    "with_retries",
]
