from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from instoredealz.db.memory_storage import MemoryStorage
from instoredealz.db.models.deal_claims import DealClaim
from instoredealz.db.models.deals import Deal
from instoredealz.db.models.users import User

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _deal(**overrides: object) -> Deal:
    values: dict[str, object] = {
        "vendor_id": 1,
        "title": "Deal",
        "category": "restaurants",
        "discount_percentage": 20,
        "valid_until": NOW + timedelta(days=1),
        "verification_pin": "4821",
        "is_approved": True,
    }
    values.update(overrides)
    return Deal(**values)


@pytest.mark.asyncio
async def test_create_applies_column_defaults_and_allocates_ids() -> None:
    storage = MemoryStorage()

    first = await storage.create_user(User(email="a@example.com", name="A"))
    second = await storage.create_user(User(email="b@example.com", name="B"))

    assert (first.id, second.id) == (1, 2)
    assert first.role == "customer"
    assert first.membership_plan == "basic"
    assert first.total_savings == Decimal("0")
    assert first.is_active is True
    assert first.created_at is not None


@pytest.mark.asyncio
async def test_ids_are_per_instance() -> None:
    first_store = MemoryStorage()
    second_store = MemoryStorage()

    await first_store.create_deal(_deal())
    created = await second_store.create_deal(_deal())

    assert created.id == 1


@pytest.mark.asyncio
async def test_explicit_ids_advance_the_counter() -> None:
    storage = MemoryStorage()

    await storage.create_deal(_deal(id=10))
    created = await storage.create_deal(_deal())

    assert created.id == 11


@pytest.mark.asyncio
async def test_active_deals_exclude_inactive_unapproved_and_expired() -> None:
    storage = MemoryStorage()
    active = await storage.create_deal(_deal())
    await storage.create_deal(_deal(is_active=False))
    await storage.create_deal(_deal(is_approved=False))
    await storage.create_deal(_deal(valid_until=NOW - timedelta(seconds=1)))

    assert await storage.get_active_deals(now_utc=NOW) == [active]


@pytest.mark.asyncio
async def test_update_and_increment_mutate_stored_entity() -> None:
    storage = MemoryStorage()
    deal = await storage.create_deal(_deal())

    await storage.update_deal(deal.id, title="Renamed")
    count = await storage.increment_deal_redemptions(deal.id)

    assert (deal.title, deal.current_redemptions, count) == ("Renamed", 1, 1)
    assert await storage.update_deal(999, title="missing") is None
    assert await storage.increment_deal_redemptions(999) is None


@pytest.mark.asyncio
async def test_user_claims_are_ordered_by_claim_time() -> None:
    storage = MemoryStorage()
    late = await storage.claim_deal(DealClaim(user_id=1, deal_id=1, claimed_at=NOW))
    early = await storage.claim_deal(DealClaim(user_id=1, deal_id=2, claimed_at=NOW - timedelta(hours=1)))
    await storage.claim_deal(DealClaim(user_id=2, deal_id=1, claimed_at=NOW))

    claims = await storage.get_user_claims(1)

    assert [claim.id for claim in claims] == [early.id, late.id]
    assert claims[0].status == "pending"
    assert claims[0].savings_amount == Decimal("0")


@pytest.mark.asyncio
async def test_pin_attempts_filter_by_scope_newest_first() -> None:
    storage = MemoryStorage()
    for minutes, user_id, ip in ((3, 1, "10.0.0.1"), (2, 1, "10.0.0.2"), (1, 2, "10.0.0.1"), (0, 1, "10.0.0.1")):
        await storage.record_pin_attempt(
            deal_id=5,
            user_id=user_id,
            ip_address=ip,
            user_agent=None,
            success=False,
            result="INVALID_PIN",
            attempted_at=NOW - timedelta(minutes=minutes),
        )

    scoped = await storage.get_pin_attempts(5, user_id=1, ip_address="10.0.0.1")
    recent = await storage.get_pin_attempts(5, since_utc=NOW - timedelta(minutes=1))

    assert [attempt.attempted_at for attempt in scoped] == [NOW, NOW - timedelta(minutes=3)]
    assert len(recent) == 2
    assert await storage.get_pin_attempts(6) == []


@pytest.mark.asyncio
async def test_claim_lock_serializes_same_key_only() -> None:
    storage = MemoryStorage()
    order: list[str] = []

    async def _hold(name: str, deal_id: int) -> None:
        async with storage.claim_lock(deal_id, 1):
            order.append(f"{name}:enter")
            await asyncio.sleep(0.01)
            order.append(f"{name}:exit")

    await asyncio.gather(_hold("a", 1), _hold("b", 1))

    assert order == ["a:enter", "a:exit", "b:enter", "b:exit"]
