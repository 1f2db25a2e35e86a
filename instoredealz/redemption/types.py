from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Protocol, TypeAlias

from instoredealz.redemption.constants import (
    DAILY_ATTEMPT_WINDOW,
    DEFAULT_ATTEMPT_DAILY_LIMIT,
    DEFAULT_ATTEMPT_MAX_FAILURES,
    DEFAULT_ATTEMPT_WINDOW,
)


class ClaimStatus(str, Enum):
    PENDING = "pending"
    USED = "used"
    CLAIMED = "claimed"
    EXPIRED = "expired"


class PinAttemptResult(str, Enum):
    ACCEPTED = "ACCEPTED"
    INVALID_FORMAT = "INVALID_FORMAT"
    DEAL_NOT_FOUND = "DEAL_NOT_FOUND"
    DEAL_UNAVAILABLE = "DEAL_UNAVAILABLE"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_PIN = "INVALID_PIN"


class AttemptEntry(Protocol):
    attempted_at: datetime
    success: bool


@dataclass(frozen=True, slots=True)
class LegacyPin:
    plaintext: str


@dataclass(frozen=True, slots=True)
class HashedPin:
    hashed_pin: str
    salt: str
    expires_at: datetime | None


@dataclass(frozen=True, slots=True)
class RotatingPin:
    deal_id: int


PinScheme: TypeAlias = LegacyPin | HashedPin | RotatingPin


@dataclass(frozen=True, slots=True)
class PinCheck:
    is_valid: bool
    message: str


@dataclass(frozen=True, slots=True)
class HashedPinResult:
    hashed_pin: str
    salt: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class IssuedPin:
    plain_pin: str
    hashed_pin: str
    salt: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RotatingPinResult:
    pin: str
    next_rotation_at: datetime
    rotation_interval_seconds: int
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    window: timedelta = DEFAULT_ATTEMPT_WINDOW
    max_failures: int = DEFAULT_ATTEMPT_MAX_FAILURES
    daily_limit: int | None = DEFAULT_ATTEMPT_DAILY_LIMIT
    daily_window: timedelta = DAILY_ATTEMPT_WINDOW


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    message: str
    next_attempt_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class RequestContext:
    ip_address: str
    user_agent: str | None = None


@dataclass(slots=True)
class ClaimResult:
    claim_id: int
    user_id: int
    deal_id: int
    status: str
    claimed_at: datetime
    savings_amount: Decimal


@dataclass(slots=True)
class VerifyPinResult:
    claim_id: int
    status: str
    savings_amount: Decimal
    deal_title: str
    discount_percentage: int
    scheme: str
    first_verification: bool


@dataclass(slots=True)
class BillUpdateResult:
    claim_id: int
    bill_amount: Decimal
    actual_savings: Decimal
    new_total_savings: Decimal


@dataclass(slots=True)
class PinStatus:
    deal_id: int
    security_level: str
    created_at: datetime | None
    expires_at: datetime | None
    is_expired: bool
