"""Retry strategies for failed execution plans.

A failed plan is not retried in place: the scheduler increments its
``retry_count`` and, when the strategy allows another attempt, re-arms it
as ``pending`` with ``due_at = now + next_delay(retry_count - 1)``. The
next tick that sees it due claims it again like any other plan.

Example:
    >>> strategy = ExponentialBackoff(max_retries=3, base_delay=60.0, max_delay=3600.0)
    >>> [strategy.next_delay(attempt) for attempt in range(3)]
    [60.0, 120.0, 240.0]
    >>> strategy.should_retry(3)
    False
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cadence.core.errors import CadenceError
from cadence.core.settings import CadenceSettings, RetryBackoff


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_retries: int = 0

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before re-running, for zero-based ``attempt``."""
        ...

    @abstractmethod
    def should_retry(self, failures: int, error: Exception | None = None) -> bool:
        """True if a plan that has failed ``failures`` times may run again."""
        ...


def _error_allows_retry(error: Exception | None) -> bool:
    if isinstance(error, CadenceError):
        return error.retryable
    return True


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Delay = min(base_delay * multiplier ** attempt, max_delay), optional jitter."""

    max_retries: int = 3
    base_delay: float = 60.0
    max_delay: float = 3600.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))
        return delay

    def should_retry(self, failures: int, error: Exception | None = None) -> bool:
        return failures < self.max_retries and _error_allows_retry(error)


@dataclass
class LinearBackoff(RetryStrategy):
    """Delay = base_delay + increment * attempt, capped at max_delay."""

    max_retries: int = 3
    base_delay: float = 60.0
    increment: float = 60.0
    max_delay: float = 3600.0

    def next_delay(self, attempt: int) -> float:
        return min(self.base_delay + (self.increment * attempt), self.max_delay)

    def should_retry(self, failures: int, error: Exception | None = None) -> bool:
        return failures < self.max_retries and _error_allows_retry(error)


@dataclass
class ConstantBackoff(RetryStrategy):
    """Same delay before every retry; ``delay=0`` re-arms immediately."""

    max_retries: int = 3
    delay: float = 60.0

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def should_retry(self, failures: int, error: Exception | None = None) -> bool:
        return failures < self.max_retries and _error_allows_retry(error)


@dataclass
class NoRetry(RetryStrategy):
    """Every failure is terminal."""

    def next_delay(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, failures: int, error: Exception | None = None) -> bool:
        return False


def build_retry_strategy(settings: CadenceSettings) -> RetryStrategy:
    """Strategy described by the ``retry_*`` settings."""
    if not settings.retry_enabled or settings.max_retries == 0:
        return NoRetry()
    if settings.retry_backoff is RetryBackoff.IMMEDIATE:
        return ConstantBackoff(max_retries=settings.max_retries, delay=0.0)
    if settings.retry_backoff is RetryBackoff.CONSTANT:
        return ConstantBackoff(
            max_retries=settings.max_retries, delay=settings.retry_base_delay_seconds
        )
    if settings.retry_backoff is RetryBackoff.LINEAR:
        return LinearBackoff(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay_seconds,
            increment=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )
    return ExponentialBackoff(
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )


__all__ = [
    "ConstantBackoff",
    "ExponentialBackoff",
    "LinearBackoff",
    "NoRetry",
    "RetryStrategy",
    "build_retry_strategy",
]
