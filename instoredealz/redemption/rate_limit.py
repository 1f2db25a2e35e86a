from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from instoredealz.redemption.types import AttemptEntry, RateLimitDecision, RateLimitPolicy

LOG_UNAVAILABLE_MESSAGE = "PIN verification is temporarily unavailable. Please try again shortly"


def _format_retry_message(prefix: str, next_attempt_at: datetime) -> str:
    return f"{prefix}. Please try again after {next_attempt_at.strftime('%H:%M:%S')} UTC"


def check_rate_limit(
    attempts: Sequence[AttemptEntry] | None,
    *,
    now_utc: datetime,
    policy: RateLimitPolicy,
) -> RateLimitDecision:
    """Decide whether one more PIN attempt is allowed for an already scoped history.

    ``attempts=None`` means the attempt log could not be read; the limiter
    then denies. The failure window is purely time based: a success inside
    the window does not clear earlier failures.
    """
    if attempts is None:
        return RateLimitDecision(allowed=False, message=LOG_UNAVAILABLE_MESSAGE)

    window_start = now_utc - policy.window
    failures = sorted(
        attempt.attempted_at
        for attempt in attempts
        if not attempt.success and window_start < attempt.attempted_at <= now_utc
    )
    if len(failures) >= policy.max_failures:
        # Access reopens once the count drops below the threshold.
        next_attempt_at = failures[-policy.max_failures] + policy.window
        return RateLimitDecision(
            allowed=False,
            message=_format_retry_message("Too many failed PIN attempts", next_attempt_at),
            next_attempt_at=next_attempt_at,
        )

    if policy.daily_limit is not None:
        day_start = now_utc - policy.daily_window
        daily = sorted(
            attempt.attempted_at
            for attempt in attempts
            if day_start < attempt.attempted_at <= now_utc
        )
        if len(daily) >= policy.daily_limit:
            next_attempt_at = daily[-policy.daily_limit] + policy.daily_window
            return RateLimitDecision(
                allowed=False,
                message=_format_retry_message("Daily PIN attempt limit reached", next_attempt_at),
                next_attempt_at=next_attempt_at,
            )

    return RateLimitDecision(allowed=True, message="Attempt allowed")
