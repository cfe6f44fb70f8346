"""
Tests for the scrape retry loop and backoff calculation.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from postquarry.crawler.retry import calculate_backoff_delay, with_retries


class FlakyError(Exception):
    pass


class TestWithRetries:
    @pytest.mark.asyncio
    async def test_success_after_two_failures(self):
        operation = AsyncMock(side_effect=[FlakyError("first"), FlakyError("second"), "done"])
        observed = []

        def record(error, attempt):
            observed.append((str(error), attempt))

        result = await with_retries(operation, retries=2, on_retry=record)

        assert result == "done"
        assert operation.await_count == 3
        assert observed == [("first", 1), ("second", 2)]

    @pytest.mark.asyncio
    async def test_last_error_propagates_unchanged(self):
        last = FlakyError("third")
        operation = AsyncMock(side_effect=[FlakyError("first"), FlakyError("second"), last])

        with pytest.raises(FlakyError) as exc_info:
            await with_retries(operation, retries=2)

        assert exc_info.value is last
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_no_retries(self):
        operation = AsyncMock(side_effect=FlakyError("once"))
        observer = Mock()

        with pytest.raises(FlakyError):
            await with_retries(operation, retries=0, on_retry=observer)

        assert operation.await_count == 1
        observer.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self):
        operation = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            await with_retries(operation, retries=5, should_retry=lambda error: not isinstance(error, ValueError))

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_sleeps_between_attempts(self):
        operation = AsyncMock(side_effect=[FlakyError("first"), "done"])

        with patch("postquarry.crawler.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await with_retries(operation, retries=1, backoff_seconds=0.5)

        sleep.assert_awaited_once()
        assert 0.4 <= sleep.await_args.args[0] <= 0.6

    @pytest.mark.asyncio
    async def test_zero_backoff_does_not_sleep(self):
        operation = AsyncMock(side_effect=[FlakyError("first"), "done"])

        with patch("postquarry.crawler.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await with_retries(operation, retries=1, backoff_seconds=0.0)

        sleep.assert_not_awaited()


class TestBackoffDelay:
    def test_exponential_growth_with_jitter(self):
        for attempt, base in [(1, 1.0), (2, 2.0), (3, 4.0)]:
            delay = calculate_backoff_delay(attempt, 1.0)
            assert base * 0.8 <= delay <= base * 1.2

    def test_disabled_backoff(self):
        assert calculate_backoff_delay(3, 0) == 0.0
