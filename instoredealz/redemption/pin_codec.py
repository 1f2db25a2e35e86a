from __future__ import annotations

import hmac
import re
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt

from instoredealz.db.models.deals import Deal
from instoredealz.redemption.constants import (
    DEFAULT_PIN_TTL,
    PIN_LENGTH,
    PIN_SALT_BYTES,
    WEAK_PIN_SEQUENCES,
)
from instoredealz.redemption.errors import HashingError, InvalidPinFormatError, WeakPinError
from instoredealz.redemption.types import (
    HashedPin,
    HashedPinResult,
    IssuedPin,
    LegacyPin,
    PinCheck,
)

# ASCII only: \d would also accept other unicode digits.
_PIN_PATTERN = re.compile(r"[0-9]{4}")
_REPEATED_DIGIT_PATTERN = re.compile(r"(\d)\1\1")
_MAX_STRONG_PIN_DRAWS = 100


def normalize_pin(raw_pin: object) -> str:
    if raw_pin is None:
        return ""
    return str(raw_pin).strip()


def validate_pin_format(raw_pin: object) -> PinCheck:
    pin = normalize_pin(raw_pin)
    if not pin:
        return PinCheck(is_valid=False, message="PIN is required")
    if len(pin) != PIN_LENGTH or _PIN_PATTERN.fullmatch(pin) is None:
        return PinCheck(is_valid=False, message="PIN must be exactly 4 digits")
    return PinCheck(is_valid=True, message="PIN format is valid")


def check_pin_strength(pin: str) -> PinCheck:
    """Rules for issued and rotating PINs. Never applied to verification input."""
    if len(set(pin)) < 2:
        return PinCheck(is_valid=False, message="PIN must use at least two different digits")
    if _REPEATED_DIGIT_PATTERN.search(pin):
        return PinCheck(is_valid=False, message="PIN must not repeat a digit three times in a row")
    if any(sequence in pin for sequence in WEAK_PIN_SEQUENCES):
        return PinCheck(is_valid=False, message="PIN must not be a simple sequence")
    return PinCheck(is_valid=True, message="PIN is strong")


def generate_pin() -> str:
    return f"{secrets.randbelow(10**PIN_LENGTH):0{PIN_LENGTH}d}"


def generate_strong_pin() -> str:
    for _ in range(_MAX_STRONG_PIN_DRAWS):
        pin = generate_pin()
        if check_pin_strength(pin).is_valid:
            return pin
    raise HashingError("Failed to generate a secure PIN")


def hash_pin(
    pin: str,
    *,
    rounds: int = 12,
    ttl: timedelta = DEFAULT_PIN_TTL,
    now_utc: datetime | None = None,
) -> HashedPinResult:
    created_at = now_utc or datetime.now(timezone.utc)
    salt = secrets.token_hex(PIN_SALT_BYTES)
    try:
        hashed = bcrypt.hashpw(f"{pin}{salt}".encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    except (TypeError, ValueError) as exc:
        raise HashingError from exc
    return HashedPinResult(
        hashed_pin=hashed.decode("utf-8"),
        salt=salt,
        created_at=created_at,
        expires_at=created_at + ttl,
    )


def verify_hashed_pin(
    raw_pin: object,
    hashed_pin: str | None,
    salt: str | None,
    expires_at: datetime | None = None,
    *,
    now_utc: datetime | None = None,
) -> PinCheck:
    now_utc = now_utc or datetime.now(timezone.utc)
    if expires_at is not None and expires_at <= now_utc:
        return PinCheck(is_valid=False, message="PIN has expired")
    if not hashed_pin or not salt or not validate_pin_format(raw_pin).is_valid:
        return PinCheck(is_valid=False, message="Invalid PIN")

    candidate = f"{normalize_pin(raw_pin)}{salt}".encode("utf-8")
    try:
        matched = bcrypt.checkpw(candidate, hashed_pin.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return PinCheck(is_valid=False, message="Invalid PIN")
    if not matched:
        return PinCheck(is_valid=False, message="Invalid PIN")
    return PinCheck(is_valid=True, message="PIN verified")


def verify_legacy_pin(raw_pin: object, stored_pin: str | None) -> bool:
    if not stored_pin:
        return False
    return hmac.compare_digest(
        normalize_pin(raw_pin).encode("utf-8"),
        stored_pin.strip().encode("utf-8"),
    )


def issue_pin(
    requested_pin: str | None = None,
    *,
    rounds: int = 12,
    ttl: timedelta = DEFAULT_PIN_TTL,
    now_utc: datetime | None = None,
) -> IssuedPin:
    if requested_pin is None:
        pin = generate_strong_pin()
    else:
        pin = normalize_pin(requested_pin)
        format_check = validate_pin_format(pin)
        if not format_check.is_valid:
            raise InvalidPinFormatError(format_check.message)
        strength = check_pin_strength(pin)
        if not strength.is_valid:
            raise WeakPinError(strength.message)

    hashed = hash_pin(pin, rounds=rounds, ttl=ttl, now_utc=now_utc)
    return IssuedPin(
        plain_pin=pin,
        hashed_pin=hashed.hashed_pin,
        salt=hashed.salt,
        created_at=hashed.created_at,
        expires_at=hashed.expires_at,
    )


def static_scheme_for(deal: Deal) -> LegacyPin | HashedPin | None:
    if not deal.verification_pin:
        return None
    if deal.pin_salt:
        return HashedPin(
            hashed_pin=deal.verification_pin,
            salt=deal.pin_salt,
            expires_at=deal.pin_expires_at,
        )
    return LegacyPin(plaintext=deal.verification_pin)
