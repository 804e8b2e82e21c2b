"""Circuit Breaker - stop calling a backend that keeps failing.

States:
- CLOSED: calls pass through
- OPEN: calls are rejected without touching the backend
- HALF_OPEN: one probe call is let through to test recovery

Counters belong to one breaker instance and are shared by every coroutine
that calls it. Updates are not atomic across an await: a failure recorded by
one in-flight call can open the breaker while a sibling call is already past
the gate check.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from aicommit.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerStats:
    state: CircuitState
    failure_count: int
    success_count: int
    total_requests: int
    rejected_requests: int
    last_failure_time: float | None
    failure_threshold: int
    timeout: float
    monitoring_period: float

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.success_count / self.total_requests * 100


class CircuitBreaker:
    """Failure-counting gate around an async operation.

    Args:
        failure_threshold: failures that trip the breaker to OPEN
        timeout: seconds to stay OPEN before allowing a probe
        monitoring_period: reporting window, exposed in stats
        clock: monotonic time source, injectable for tests
        name: label used in logs and error messages
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60.0,
        monitoring_period: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "provider",
    ):
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be at least 1, got {failure_threshold}")
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.monitoring_period = monitoring_period
        self.name = name
        self._clock = clock
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._total_requests = 0
        self._rejected_requests = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_state(self) -> CircuitState:
        return self._state

    def _set_state(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        old_state, self._state = self._state, new_state
        level = logging.WARNING if new_state == CircuitState.OPEN else logging.INFO
        logger.log(level, "Circuit breaker for %s: %s -> %s",
                   self.name, old_state.value, new_state.value)

    def _remaining_open_time(self) -> float:
        if self._last_failure_time is None:
            return 0.0
        return self.timeout - (self._clock() - self._last_failure_time)

    def _admit(self) -> bool:
        """Gate check. Returns True when this call is the half-open probe."""
        if self._state == CircuitState.OPEN:
            remaining = self._remaining_open_time()
            if remaining > 0:
                self._rejected_requests += 1
                raise CircuitOpenError(remaining, provider=self.name)
            self._set_state(CircuitState.HALF_OPEN)

        if self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                self._rejected_requests += 1
                raise CircuitOpenError(max(self._remaining_open_time(), 0.0), provider=self.name)
            self._probe_in_flight = True
            return True

        return False

    async def execute(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        is_probe = self._admit()

        try:
            result = await operation(*args, **kwargs)
        except asyncio.CancelledError:
            if is_probe:
                self._probe_in_flight = False
            raise
        except Exception as e:
            if is_probe:
                self._probe_in_flight = False
            self._on_failure(e)
            raise

        if is_probe:
            self._probe_in_flight = False
        self._on_success()
        return result

    def _on_success(self) -> None:
        self._success_count += 1
        self._total_requests += 1

        if self._state == CircuitState.HALF_OPEN:
            self._failure_count = 0
            self._set_state(CircuitState.CLOSED)
        else:
            self._failure_count = max(0, self._failure_count - 1)

    def _on_failure(self, error: Exception) -> None:
        self._failure_count += 1
        self._total_requests += 1
        self._last_failure_time = self._clock()

        logger.debug("Circuit breaker failure for %s (%d/%d): %s",
                     self.name, self._failure_count, self.failure_threshold, error)

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._set_state(CircuitState.OPEN)

    def reset(self) -> None:
        """Force CLOSED with every counter zeroed."""
        self._reset_counters()
        logger.info("Circuit breaker for %s reset to CLOSED", self.name)

    def get_stats(self) -> CircuitBreakerStats:
        return CircuitBreakerStats(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            total_requests=self._total_requests,
            rejected_requests=self._rejected_requests,
            last_failure_time=self._last_failure_time,
            failure_threshold=self.failure_threshold,
            timeout=self.timeout,
            monitoring_period=self.monitoring_period,
        )

    def get_status(self) -> dict:
        """Flat summary for display."""
        stats = self.get_stats()
        return {
            "state": stats.state.value,
            "failure_count": stats.failure_count,
            "failure_threshold": stats.failure_threshold,
            "success_rate": round(stats.success_rate, 2),
            "total_requests": stats.total_requests,
            "rejected_requests": stats.rejected_requests,
            "is_open": stats.state == CircuitState.OPEN,
            "is_half_open": stats.state == CircuitState.HALF_OPEN,
        }
