from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import structlog

from instoredealz.db.models.deals import Deal
from instoredealz.db.storage import DealsStorage
from instoredealz.redemption.constants import ACTION_DEAL_PIN_ISSUED, DEFAULT_PIN_TTL
from instoredealz.redemption.errors import DealAccessDeniedError, DealNotFoundError
from instoredealz.redemption.pin_codec import issue_pin, static_scheme_for
from instoredealz.redemption.rotating_pin import RotatingPinGenerator
from instoredealz.redemption.types import (
    HashedPin,
    IssuedPin,
    LegacyPin,
    PinStatus,
    RequestContext,
    RotatingPinResult,
)
from instoredealz.services.system_logs import write_system_log

logger = structlog.get_logger(__name__)


class VendorPinService:
    def __init__(
        self,
        storage: DealsStorage,
        *,
        rotating_pins: RotatingPinGenerator,
        hash_rounds: int = 12,
        pin_ttl: timedelta = DEFAULT_PIN_TTL,
    ) -> None:
        self._storage = storage
        self._rotating_pins = rotating_pins
        self._hash_rounds = hash_rounds
        self._pin_ttl = pin_ttl

    async def get_owned_deal(self, *, vendor_user_id: int, deal_id: int) -> Deal:
        deal = await self._storage.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError
        vendor = await self._storage.get_vendor_by_user_id(vendor_user_id)
        if vendor is None or vendor.id != deal.vendor_id:
            logger.warning("vendor_deal_access_denied", deal_id=deal_id, user_id=vendor_user_id)
            raise DealAccessDeniedError
        return deal

    async def current_pin(
        self,
        *,
        vendor_user_id: int,
        deal_id: int,
        now_utc: datetime | None = None,
    ) -> tuple[Deal, RotatingPinResult]:
        deal = await self.get_owned_deal(vendor_user_id=vendor_user_id, deal_id=deal_id)
        rotating = self._rotating_pins.current_pin(deal.id, now_utc)
        return deal, replace(rotating, is_active=bool(deal.is_active and deal.is_approved))

    async def reissue_pin(
        self,
        *,
        vendor_user_id: int,
        deal_id: int,
        requested_pin: str | None = None,
        context: RequestContext | None = None,
        now_utc: datetime | None = None,
    ) -> IssuedPin:
        """Replace the deal's static PIN with a freshly salted hash.

        The returned ``plain_pin`` is the only copy of the plaintext.
        """
        now_utc = now_utc or datetime.now(timezone.utc)
        deal = await self.get_owned_deal(vendor_user_id=vendor_user_id, deal_id=deal_id)
        issued = await asyncio.to_thread(
            issue_pin,
            requested_pin,
            rounds=self._hash_rounds,
            ttl=self._pin_ttl,
            now_utc=now_utc,
        )
        await self._storage.update_deal(
            deal.id,
            verification_pin=issued.hashed_pin,
            pin_salt=issued.salt,
            pin_created_at=issued.created_at,
            pin_expires_at=issued.expires_at,
        )
        await write_system_log(
            self._storage,
            action=ACTION_DEAL_PIN_ISSUED,
            user_id=vendor_user_id,
            details={
                "dealId": deal.id,
                "generated": requested_pin is None,
                "expiresAt": issued.expires_at.isoformat(),
            },
            context=context,
            now_utc=now_utc,
        )
        logger.info("deal_pin_issued", deal_id=deal.id, user_id=vendor_user_id)
        return issued

    async def pin_status(
        self,
        *,
        vendor_user_id: int,
        deal_id: int,
        now_utc: datetime | None = None,
    ) -> PinStatus:
        now_utc = now_utc or datetime.now(timezone.utc)
        deal = await self.get_owned_deal(vendor_user_id=vendor_user_id, deal_id=deal_id)
        match static_scheme_for(deal):
            case HashedPin(expires_at=expires_at):
                return PinStatus(
                    deal_id=deal.id,
                    security_level="hashed",
                    created_at=deal.pin_created_at,
                    expires_at=expires_at,
                    is_expired=expires_at is not None and expires_at <= now_utc,
                )
            case LegacyPin():
                return PinStatus(
                    deal_id=deal.id,
                    security_level="legacy",
                    created_at=deal.pin_created_at,
                    expires_at=None,
                    is_expired=False,
                )
            case _:
                return PinStatus(
                    deal_id=deal.id,
                    security_level="none",
                    created_at=None,
                    expires_at=None,
                    is_expired=False,
                )
