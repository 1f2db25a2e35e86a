from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from instoredealz.redemption.rate_limit import check_rate_limit
from instoredealz.redemption.types import RateLimitPolicy

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
POLICY = RateLimitPolicy(window=timedelta(minutes=15), max_failures=5, daily_limit=10)


def _attempt(minutes_ago: float, *, success: bool = False) -> SimpleNamespace:
    return SimpleNamespace(attempted_at=NOW - timedelta(minutes=minutes_ago), success=success)


def test_threshold_failures_deny_until_oldest_leaves_window() -> None:
    attempts = [_attempt(minutes) for minutes in (1, 2, 3, 4, 10)]

    decision = check_rate_limit(attempts, now_utc=NOW, policy=POLICY)

    assert decision.allowed is False
    assert decision.next_attempt_at == NOW - timedelta(minutes=10) + timedelta(minutes=15)
    assert "Too many failed PIN attempts" in decision.message


def test_one_below_threshold_is_allowed() -> None:
    attempts = [_attempt(minutes) for minutes in (1, 2, 3, 4)]

    decision = check_rate_limit(attempts, now_utc=NOW, policy=POLICY)

    assert decision.allowed is True
    assert decision.next_attempt_at is None


def test_failures_outside_window_are_not_counted() -> None:
    attempts = [_attempt(minutes) for minutes in (1, 2, 3, 4, 15, 20, 30)]

    assert check_rate_limit(attempts, now_utc=NOW, policy=POLICY).allowed is True


def test_success_does_not_reset_earlier_failures() -> None:
    attempts = [
        _attempt(1),
        _attempt(2),
        _attempt(3, success=True),
        _attempt(4),
        _attempt(5),
        _attempt(6),
    ]

    decision = check_rate_limit(attempts, now_utc=NOW, policy=POLICY)

    assert decision.allowed is False
    assert decision.next_attempt_at == NOW - timedelta(minutes=6) + timedelta(minutes=15)


def test_lockout_lasts_until_count_drops_below_threshold() -> None:
    attempts = [_attempt(minutes) for minutes in (1, 2, 3, 4, 12, 13)]

    decision = check_rate_limit(attempts, now_utc=NOW, policy=POLICY)

    # Six failures: access reopens when the second oldest one expires.
    assert decision.next_attempt_at == NOW - timedelta(minutes=12) + timedelta(minutes=15)


def test_unavailable_log_fails_closed() -> None:
    decision = check_rate_limit(None, now_utc=NOW, policy=POLICY)

    assert decision.allowed is False
    assert decision.next_attempt_at is None
    assert "temporarily unavailable" in decision.message


def test_daily_cap_counts_every_outcome() -> None:
    attempts = [_attempt(60 * hours, success=True) for hours in range(1, 11)]

    decision = check_rate_limit(attempts, now_utc=NOW, policy=POLICY)

    assert decision.allowed is False
    assert decision.next_attempt_at == NOW - timedelta(hours=10) + timedelta(hours=24)
    assert "Daily PIN attempt limit" in decision.message


def test_daily_cap_allows_one_below_limit_and_can_be_disabled() -> None:
    nine = [_attempt(60 * hours, success=True) for hours in range(1, 10)]
    ten = nine + [_attempt(60 * 10, success=True)]

    assert check_rate_limit(nine, now_utc=NOW, policy=POLICY).allowed is True
    no_daily_cap = RateLimitPolicy(daily_limit=None)
    assert check_rate_limit(ten, now_utc=NOW, policy=no_daily_cap).allowed is True
