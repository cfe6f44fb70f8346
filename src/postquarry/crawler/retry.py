"""
Bounded retry loop for whole scrape attempts.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[BaseException, int], None]
RetryPredicate = Callable[[BaseException], bool]


def calculate_backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff with ±20% jitter. ``attempt`` is 1-based."""
    if base_delay <= 0:
        return 0.0
    return base_delay * (2 ** (attempt - 1)) * random.uniform(0.8, 1.2)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    on_retry: Optional[RetryObserver] = None,
    should_retry: Optional[RetryPredicate] = None,
    backoff_seconds: float = 0.0,
) -> T:
    """
    Run ``operation`` until it succeeds or ``retries`` retries are used up.

    Each attempt calls ``operation`` afresh. Before retry number ``n``
    (1-based) ``on_retry(error, n)`` is invoked. Errors for which
    ``should_retry`` returns False propagate immediately. After the budget
    is exhausted the last error propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if attempt >= retries or (should_retry is not None and not should_retry(error)):
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(error, attempt)
            delay = calculate_backoff_delay(attempt, backoff_seconds)
            if delay:
                await asyncio.sleep(delay)
