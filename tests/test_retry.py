"""Tests for retry policies and the model call rate limiter."""

import pytest

from linguaspark.core.exceptions import NetworkTimeoutError, QuotaExceededError
from linguaspark.core.retry import RateLimiter, get_retry_decorator


def test_rate_limiter_waits_for_second_window():
    limiter = RateLimiter(calls_per_minute=120, calls_per_second=2)
    limiter.second_calls = [100.0, 100.25]
    limiter.minute_calls = [100.0, 100.25]

    assert limiter._sleep_needed(100.5) == pytest.approx(0.5)
    assert limiter._sleep_needed(101.1) == 0.0


def test_rate_limiter_waits_for_minute_window():
    limiter = RateLimiter(calls_per_minute=3, calls_per_second=10)
    limiter.minute_calls = [10.0, 20.0, 30.0]

    assert limiter._sleep_needed(40.0) == pytest.approx(30.0)
    assert limiter.second_calls == []


@pytest.mark.anyio
async def test_acquire_records_calls():
    limiter = RateLimiter(calls_per_minute=60)
    await limiter.acquire()
    assert len(limiter.minute_calls) == 1
    assert len(limiter.second_calls) == 1


@pytest.mark.anyio
async def test_retry_only_listed_exceptions():
    calls = []

    @get_retry_decorator(max_attempts=3, wait_strategy="exponential", exceptions=(NetworkTimeoutError,))
    async def flaky():
        calls.append(1)
        raise QuotaExceededError("quota")

    with pytest.raises(QuotaExceededError):
        await flaky()
    assert len(calls) == 1
