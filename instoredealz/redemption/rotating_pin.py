from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone

from instoredealz.redemption.constants import DEFAULT_ROTATION_INTERVAL, PIN_LENGTH
from instoredealz.redemption.pin_codec import check_pin_strength, normalize_pin, validate_pin_format
from instoredealz.redemption.types import RotatingPinResult

_MAX_WEAK_PIN_REDERIVATIONS = 10


class RotatingPinGenerator:
    """Time-bucketed per-deal PIN derived from a shared secret.

    The PIN for a bucket is ``HMAC-SHA256(secret, "<deal_id>:<bucket>")``
    reduced to four digits, so it needs no stored state and cannot be
    predicted from earlier PINs without the secret. Weak values (repeated
    digits, simple sequences) are re-derived from ``"<deal_id>:<bucket>:<n>"``.
    """

    def __init__(
        self,
        secret: str,
        *,
        interval_seconds: int = int(DEFAULT_ROTATION_INTERVAL.total_seconds()),
    ) -> None:
        if not secret:
            raise ValueError("rotating PIN secret must not be empty")
        if interval_seconds <= 0:
            raise ValueError("rotation interval must be positive")
        self._secret = secret.encode("utf-8")
        self.interval_seconds = interval_seconds

    def bucket_for(self, now_utc: datetime) -> int:
        return int(now_utc.timestamp()) // self.interval_seconds

    def _derive(self, seed: str) -> str:
        digest = hmac.new(self._secret, seed.encode("utf-8"), hashlib.sha256)
        value = int.from_bytes(digest.digest()[:8], "big") % 10**PIN_LENGTH
        return f"{value:0{PIN_LENGTH}d}"

    def pin_for_bucket(self, deal_id: int, bucket: int) -> str:
        seed = f"{deal_id}:{bucket}"
        pin = self._derive(seed)
        for offset in range(1, _MAX_WEAK_PIN_REDERIVATIONS + 1):
            if check_pin_strength(pin).is_valid:
                break
            pin = self._derive(f"{seed}:{offset}")
        return pin

    def current_pin(self, deal_id: int, now_utc: datetime | None = None) -> RotatingPinResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        bucket = self.bucket_for(now_utc)
        return RotatingPinResult(
            pin=self.pin_for_bucket(deal_id, bucket),
            next_rotation_at=datetime.fromtimestamp(
                (bucket + 1) * self.interval_seconds, tz=timezone.utc
            ),
            rotation_interval_seconds=self.interval_seconds,
            is_active=True,
        )

    def verify(
        self,
        deal_id: int,
        raw_pin: object,
        now_utc: datetime | None = None,
        *,
        accept_previous: bool = True,
    ) -> bool:
        if not validate_pin_format(raw_pin).is_valid:
            return False
        pin = normalize_pin(raw_pin).encode("utf-8")
        now_utc = now_utc or datetime.now(timezone.utc)
        bucket = self.bucket_for(now_utc)
        buckets = (bucket, bucket - 1) if accept_previous else (bucket,)
        # No early exit between buckets.
        matches = [
            hmac.compare_digest(pin, self.pin_for_bucket(deal_id, candidate).encode("utf-8"))
            for candidate in buckets
        ]
        return any(matches)
