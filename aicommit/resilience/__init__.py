"""Resilience Package - circuit breaker and retry policy"""

from aicommit.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerStats, CircuitState
from aicommit.resilience.retry import RetryPolicy, with_retry

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitState",
    "RetryPolicy",
    "with_retry",
]
