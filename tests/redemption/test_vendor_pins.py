from __future__ import annotations

from datetime import timedelta

import pytest

from instoredealz.db.memory_storage import MemoryStorage
from instoredealz.db.models.users import User
from instoredealz.db.models.vendors import Vendor
from instoredealz.redemption.errors import DealAccessDeniedError, DealNotFoundError, WeakPinError
from instoredealz.redemption.pin_codec import verify_hashed_pin
from instoredealz.redemption.vendor_pins import VendorPinService
from tests.redemption.redemption_fixtures import (
    CONTEXT,
    NOW,
    TEST_HASH_ROUNDS,
    _rotating_pins,
    _seed,
)


def _vendor_service(storage: MemoryStorage) -> VendorPinService:
    return VendorPinService(
        storage,
        rotating_pins=_rotating_pins(),
        hash_rounds=TEST_HASH_ROUNDS,
        pin_ttl=timedelta(days=90),
    )


@pytest.mark.asyncio
async def test_current_pin_matches_rotating_generator() -> None:
    storage = MemoryStorage()
    _, vendor, deal = await _seed(storage)

    returned_deal, rotating = await _vendor_service(storage).current_pin(
        vendor_user_id=vendor.user_id, deal_id=deal.id, now_utc=NOW
    )

    assert returned_deal is deal
    assert rotating.pin == _rotating_pins().current_pin(deal.id, NOW).pin
    assert rotating.is_active is True


@pytest.mark.asyncio
async def test_current_pin_reports_inactive_for_unapproved_deal() -> None:
    storage = MemoryStorage()
    _, vendor, deal = await _seed(storage, is_approved=False)

    _, rotating = await _vendor_service(storage).current_pin(
        vendor_user_id=vendor.user_id, deal_id=deal.id, now_utc=NOW
    )

    assert rotating.is_active is False


@pytest.mark.asyncio
async def test_other_vendor_cannot_read_deal_pin() -> None:
    storage = MemoryStorage()
    _, _, deal = await _seed(storage)
    intruder = await storage.create_user(User(email="other@example.com", name="Other", role="vendor"))
    await storage.create_vendor(
        Vendor(user_id=intruder.id, business_name="Other", city="Pune", state="Maharashtra")
    )
    service = _vendor_service(storage)

    with pytest.raises(DealAccessDeniedError):
        await service.current_pin(vendor_user_id=intruder.id, deal_id=deal.id, now_utc=NOW)
    with pytest.raises(DealNotFoundError):
        await service.pin_status(vendor_user_id=intruder.id, deal_id=404, now_utc=NOW)


@pytest.mark.asyncio
async def test_reissue_pin_stores_only_the_hash() -> None:
    storage = MemoryStorage()
    _, vendor, deal = await _seed(storage, pin="4821", hashed=False)

    issued = await _vendor_service(storage).reissue_pin(
        vendor_user_id=vendor.user_id,
        deal_id=deal.id,
        requested_pin="7391",
        context=CONTEXT,
        now_utc=NOW,
    )

    assert issued.plain_pin == "7391"
    assert deal.verification_pin != "7391"
    assert deal.pin_salt == issued.salt
    assert deal.pin_created_at == NOW
    assert deal.pin_expires_at == NOW + timedelta(days=90)
    assert verify_hashed_pin("7391", deal.verification_pin, deal.pin_salt, deal.pin_expires_at, now_utc=NOW).is_valid
    assert storage.system_logs[-1].action == "DEAL_PIN_ISSUED"
    assert "7391" not in str(storage.system_logs[-1].details)


@pytest.mark.asyncio
async def test_reissue_pin_rejects_weak_pin_without_touching_deal() -> None:
    storage = MemoryStorage()
    _, vendor, deal = await _seed(storage, pin="4821", hashed=False)

    with pytest.raises(WeakPinError):
        await _vendor_service(storage).reissue_pin(
            vendor_user_id=vendor.user_id, deal_id=deal.id, requested_pin="1234", now_utc=NOW
        )

    assert deal.verification_pin == "4821"
    assert deal.pin_salt is None


@pytest.mark.asyncio
async def test_pin_status_reports_security_level() -> None:
    storage = MemoryStorage()
    _, vendor, legacy_deal = await _seed(storage, pin="4821", hashed=False)
    service = _vendor_service(storage)

    legacy = await service.pin_status(vendor_user_id=vendor.user_id, deal_id=legacy_deal.id, now_utc=NOW)
    await service.reissue_pin(vendor_user_id=vendor.user_id, deal_id=legacy_deal.id, now_utc=NOW)
    hashed = await service.pin_status(vendor_user_id=vendor.user_id, deal_id=legacy_deal.id, now_utc=NOW)
    expired = await service.pin_status(
        vendor_user_id=vendor.user_id, deal_id=legacy_deal.id, now_utc=NOW + timedelta(days=91)
    )

    assert (legacy.security_level, legacy.expires_at) == ("legacy", None)
    assert hashed.security_level == "hashed"
    assert hashed.expires_at == NOW + timedelta(days=90)
    assert hashed.is_expired is False
    assert expired.is_expired is True
