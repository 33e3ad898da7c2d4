"""Tests for retry utilities."""

from unittest.mock import AsyncMock

import pytest

from roomkey.core.retry import RetryConfig, calculate_backoff_delay, retry_async
from roomkey.services.errors import TransientStoreConflict
from roomkey.services.refresh_tokens import ROTATION_RETRY

pytestmark = pytest.mark.asyncio


class TestCalculateBackoffDelay:
    """Tests for backoff delay calculation."""

    def test_exponential_growth(self):
        """Delay should grow exponentially."""
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, max_delay=10.0, jitter=False)

        assert calculate_backoff_delay(0, config) == 1.0
        assert calculate_backoff_delay(1, config) == 2.0
        assert calculate_backoff_delay(2, config) == 4.0

    def test_max_delay_cap(self):
        """Delay should not exceed max_delay."""
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, max_delay=5.0, jitter=False)
        assert calculate_backoff_delay(10, config) == 5.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(base_delay=0.1, max_delay=1.0, jitter=True)
        for _ in range(20):
            assert 0.05 <= calculate_backoff_delay(0, config) <= 0.15


class TestRetryAsync:
    """Tests for retry_async behavior."""

    async def test_returns_on_success(self):
        func = AsyncMock(return_value=42)
        assert await retry_async(func) == 42
        assert func.call_count == 1

    async def test_retries_on_retryable_error(self):
        func = AsyncMock(side_effect=[ConnectionError("fail"), ConnectionError("fail"), "ok"])
        config = RetryConfig(max_retries=3, base_delay=0.001)
        assert await retry_async(func, config=config) == "ok"
        assert func.call_count == 3

    async def test_no_retry_on_non_retryable_error(self):
        func = AsyncMock(side_effect=ValueError("bad"))
        config = RetryConfig(max_retries=3, base_delay=0.001)
        with pytest.raises(ValueError):
            await retry_async(func, config=config)
        assert func.call_count == 1

    async def test_raises_last_error_when_exhausted(self):
        func = AsyncMock(side_effect=TransientStoreConflict("locked"))
        config = RetryConfig(
            max_retries=2, base_delay=0.001, retryable_exceptions=(TransientStoreConflict,)
        )
        with pytest.raises(TransientStoreConflict):
            await retry_async(func, config=config)
        assert func.call_count == 3

    async def test_arguments_are_passed_through(self):
        func = AsyncMock(return_value="ok")
        await retry_async(func, 1, 2, config=RetryConfig(), key="value")
        func.assert_called_once_with(1, 2, key="value")


class TestRotationRetryPolicy:
    """The rotation policy only retries store conflicts, a bounded number of times."""

    def test_only_conflicts_are_retryable(self):
        assert ROTATION_RETRY.retryable_exceptions == (TransientStoreConflict,)

    def test_bounded_attempts(self):
        assert ROTATION_RETRY.max_retries == 2
