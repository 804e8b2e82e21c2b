"""Retry Policy - exponential backoff for async operations."""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from aicommit.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryPolicy:
    """Re-run a failing coroutine with exponential backoff.

    Delay before attempt n+1 is base_delay * 2**(n-1), capped by max_delay.
    Client errors (4xx except 429) are raised on the first failure. After
    max_attempts failures the last error is raised as-is.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    async def run(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation(*args, **kwargs)
            except Exception as e:
                if not is_retryable(e):
                    logger.debug("Not retrying %s: %s", type(e).__name__, e)
                    raise
                if attempt == self.max_attempts:
                    logger.info("Giving up after %d attempts: %s", attempt, e)
                    raise

                delay = self.delay_for(attempt)
                logger.info("Attempt %d/%d failed (%s), retrying in %.2fs",
                            attempt, self.max_attempts, e, delay)
                await self._sleep(delay)

    def wrap(self, operation: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(operation)
        async def wrapper(*args, **kwargs) -> T:
            return await self.run(operation, *args, **kwargs)
        return wrapper


async def with_retry(operation: Callable[[], Awaitable[T]], max_attempts: int = 3,
                     base_delay: float = 1.0) -> T:
    """Run `operation` under a one-off RetryPolicy."""
    return await RetryPolicy(max_attempts=max_attempts, base_delay=base_delay).run(operation)
