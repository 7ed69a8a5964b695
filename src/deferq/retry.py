"""Retry backoff policy."""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deferq.config import Settings


class BackoffStrategy(str, enum.Enum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


def next_delay(
    attempt_number: int,
    strategy: BackoffStrategy | str,
    base_delay: int,
    max_delay: int,
) -> timedelta:
    """Compute how long to wait before the next attempt.

    Args:
        attempt_number: Retry count after the failing attempt (1 for the first retry)
        strategy: Backoff strategy
        base_delay: Base delay in milliseconds
        max_delay: Cap in milliseconds (not applied to the fixed strategy)

    Returns:
        The delay as a timedelta
    """
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")

    strategy = BackoffStrategy(strategy)
    if strategy is BackoffStrategy.EXPONENTIAL:
        delay_ms = min(base_delay * 2 ** (attempt_number - 1), max_delay)
    elif strategy is BackoffStrategy.LINEAR:
        delay_ms = min(base_delay * attempt_number, max_delay)
    else:
        delay_ms = base_delay
    return timedelta(milliseconds=delay_ms)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration for failed tasks."""

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay: int = 1000
    max_delay: int = 3_600_000

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            strategy=BackoffStrategy(settings.backoff_strategy),
            base_delay=settings.base_retry_delay,
            max_delay=settings.max_retry_delay,
        )

    def delay_for(self, attempt_number: int) -> timedelta:
        return next_delay(attempt_number, self.strategy, self.base_delay, self.max_delay)

    def next_attempt_at(self, now: datetime, attempt_number: int) -> datetime:
        return now + self.delay_for(attempt_number)
