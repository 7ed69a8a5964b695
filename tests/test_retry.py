"""Tests for the retry backoff policy."""

from datetime import datetime, timedelta, timezone

import pytest

from deferq.config import Settings
from deferq.retry import BackoffStrategy, RetryPolicy, next_delay


def ms(value: int) -> timedelta:
    return timedelta(milliseconds=value)


class TestNextDelay:
    """Tests for next_delay."""

    @pytest.mark.parametrize(
        "attempt,expected",
        [(1, 1000), (2, 2000), (3, 4000), (4, 8000), (10, 512_000)],
    )
    def test_exponential(self, attempt, expected):
        assert next_delay(attempt, "exponential", 1000, 3_600_000) == ms(expected)

    def test_exponential_is_capped(self):
        assert next_delay(20, BackoffStrategy.EXPONENTIAL, 1000, 60_000) == ms(60_000)

    @pytest.mark.parametrize("attempt,expected", [(1, 500), (2, 1000), (5, 2500)])
    def test_linear(self, attempt, expected):
        assert next_delay(attempt, "linear", 500, 3_600_000) == ms(expected)

    def test_linear_is_capped(self):
        assert next_delay(100, "linear", 1000, 5000) == ms(5000)

    @pytest.mark.parametrize("attempt", [1, 2, 50])
    def test_fixed(self, attempt):
        assert next_delay(attempt, "fixed", 750, 100) == ms(750)

    def test_zero_attempt_rejected(self):
        with pytest.raises(ValueError):
            next_delay(0, "exponential", 1000, 3_600_000)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            next_delay(1, "random", 1000, 3_600_000)


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.strategy is BackoffStrategy.EXPONENTIAL
        assert policy.delay_for(1) == ms(1000)

    def test_from_settings(self):
        settings = Settings(
            backoff_strategy="linear", base_retry_delay=200, max_retry_delay=900
        )
        policy = RetryPolicy.from_settings(settings)

        assert policy.strategy is BackoffStrategy.LINEAR
        assert policy.delay_for(3) == ms(600)
        assert policy.delay_for(10) == ms(900)

    def test_next_attempt_at(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        policy = RetryPolicy(base_delay=1000)

        assert policy.next_attempt_at(now, 2) == now + timedelta(seconds=2)
