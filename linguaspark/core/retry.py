"""
Retry policies and rate limiting for upstream model calls
"""
import asyncio
import time
from typing import Optional, List
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
    retry_if_exception_type,
    before_sleep_log,
    after_log
)
import structlog

import logging as py_logging
from linguaspark.core.exceptions import NetworkTimeoutError
from linguaspark.config import settings

logger = structlog.get_logger(__name__)
py_logger = py_logging.getLogger(__name__)


def get_retry_decorator(
    max_attempts: int = 3,
    wait_strategy: str = "exponential",
    exceptions: tuple = (Exception,)
):
    """Get configured retry decorator"""

    if wait_strategy == "random_exponential":
        wait = wait_random_exponential(multiplier=1, max=30)
    else:
        wait = wait_exponential(multiplier=1, min=2, max=30)

    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(py_logger, py_logging.WARNING),
        after=after_log(py_logger, py_logging.INFO),
        reraise=True
    )


# Only transport-level failures are retried; quota and content errors
# go straight to the section policy.
llm_retry = get_retry_decorator(
    max_attempts=settings.llm_max_retries,
    wait_strategy="exponential",
    exceptions=(NetworkTimeoutError,)
)

auth_retry = get_retry_decorator(
    max_attempts=2,
    wait_strategy="random_exponential",
    exceptions=(NetworkTimeoutError,)
)


class RateLimiter:
    """Sliding-window rate limiter for API calls"""

    def __init__(self, calls_per_minute: int = 60, calls_per_second: Optional[int] = None):
        self.calls_per_minute = max(1, calls_per_minute)
        self.calls_per_second = max(1, calls_per_second or self.calls_per_minute // 60)
        self.minute_calls: List[float] = []
        self.second_calls: List[float] = []
        self._lock = asyncio.Lock()

    def _sleep_needed(self, now: float) -> float:
        self.minute_calls = [t for t in self.minute_calls if now - t < 60]
        self.second_calls = [t for t in self.second_calls if now - t < 1]

        if len(self.second_calls) >= self.calls_per_second:
            return 1 - (now - self.second_calls[0])
        if len(self.minute_calls) >= self.calls_per_minute:
            return 60 - (now - self.minute_calls[0])
        return 0.0

    async def acquire(self):
        """Acquire permission to make a call"""
        async with self._lock:
            while True:
                now = time.time()
                sleep_time = self._sleep_needed(now)
                if sleep_time <= 0:
                    break
                if sleep_time > 1:
                    logger.warning(
                        "Rate limit reached, sleeping",
                        sleep_seconds=sleep_time,
                        calls_per_minute=self.calls_per_minute
                    )
                await asyncio.sleep(sleep_time)

            # Record call
            self.minute_calls.append(now)
            self.second_calls.append(now)


# Global instances
llm_rate_limiter = RateLimiter(calls_per_minute=settings.rate_limit_rpm)
