from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import inspect

from instoredealz.db.base import Base
from instoredealz.db.models.deal_claims import DealClaim
from instoredealz.db.models.deals import Deal
from instoredealz.db.models.pin_attempts import PinAttempt
from instoredealz.db.models.system_logs import SystemLog
from instoredealz.db.models.users import User
from instoredealz.db.models.vendors import Vendor
from instoredealz.db.storage import DealsStorage


def _apply_column_defaults(entity: Base) -> None:
    for attribute in inspect(type(entity)).column_attrs:
        column = attribute.columns[0]
        default = column.default
        if getattr(entity, attribute.key, None) is None and default is not None and default.is_scalar:
            setattr(entity, attribute.key, default.arg)


class MemoryStorage(DealsStorage):
    """Dict-backed storage for tests and local demos.

    Ids are allocated per instance. Returned entities are the stored objects,
    so updates through the storage are visible to earlier readers.
    """

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.vendors: dict[int, Vendor] = {}
        self.deals: dict[int, Deal] = {}
        self.claims: dict[int, DealClaim] = {}
        self.pin_attempts: list[PinAttempt] = []
        self.system_logs: list[SystemLog] = []
        self._next_ids: dict[str, int] = defaultdict(lambda: 1)
        self._claim_locks: dict[tuple[int, int], asyncio.Lock] = defaultdict(asyncio.Lock)

    def _allocate_id(self, table: str) -> int:
        next_id = self._next_ids[table]
        self._next_ids[table] = next_id + 1
        return next_id

    def _store(self, table: str, entity: Base, bucket: dict) -> None:
        _apply_column_defaults(entity)
        if getattr(entity, "id", None) is None:
            entity.id = self._allocate_id(table)
        else:
            self._next_ids[table] = max(self._next_ids[table], entity.id + 1)
        if hasattr(entity, "created_at") and entity.created_at is None:
            entity.created_at = datetime.now(timezone.utc)
        bucket[entity.id] = entity

    async def get_deal(self, deal_id: int) -> Deal | None:
        return self.deals.get(deal_id)

    async def create_deal(self, deal: Deal) -> Deal:
        self._store("deals", deal, self.deals)
        return deal

    async def update_deal(self, deal_id: int, **fields: object) -> Deal | None:
        deal = self.deals.get(deal_id)
        if deal is None:
            return None
        for name, value in fields.items():
            setattr(deal, name, value)
        return deal

    async def get_active_deals(self, *, now_utc: datetime) -> list[Deal]:
        return [
            deal
            for deal in self.deals.values()
            if deal.is_active and deal.is_approved and deal.valid_until > now_utc
        ]

    async def increment_deal_redemptions(self, deal_id: int) -> int | None:
        deal = self.deals.get(deal_id)
        if deal is None:
            return None
        deal.current_redemptions = (deal.current_redemptions or 0) + 1
        return deal.current_redemptions

    async def get_user(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    async def create_user(self, user: User) -> User:
        self._store("users", user, self.users)
        return user

    async def update_user(self, user_id: int, **fields: object) -> User | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        return user

    async def get_vendor_by_user_id(self, user_id: int) -> Vendor | None:
        for vendor in self.vendors.values():
            if vendor.user_id == user_id:
                return vendor
        return None

    async def get_all_vendors(self) -> list[Vendor]:
        return list(self.vendors.values())

    async def create_vendor(self, vendor: Vendor) -> Vendor:
        self._store("vendors", vendor, self.vendors)
        return vendor

    async def get_user_claims(self, user_id: int) -> list[DealClaim]:
        claims = [claim for claim in self.claims.values() if claim.user_id == user_id]
        return sorted(claims, key=lambda claim: (claim.claimed_at, claim.id))

    async def claim_deal(self, claim: DealClaim) -> DealClaim:
        self._store("deal_claims", claim, self.claims)
        return claim

    async def update_deal_claim(self, claim_id: int, **fields: object) -> DealClaim | None:
        claim = self.claims.get(claim_id)
        if claim is None:
            return None
        for name, value in fields.items():
            setattr(claim, name, value)
        return claim

    async def record_pin_attempt(
        self,
        *,
        deal_id: int,
        user_id: int | None,
        ip_address: str,
        user_agent: str | None,
        success: bool,
        result: str,
        attempted_at: datetime,
    ) -> None:
        self.pin_attempts.append(
            PinAttempt(
                id=len(self.pin_attempts) + 1,
                deal_id=deal_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                success=success,
                result=result,
                attempted_at=attempted_at,
            )
        )

    async def get_pin_attempts(
        self,
        deal_id: int,
        *,
        user_id: int | None = None,
        ip_address: str | None = None,
        since_utc: datetime | None = None,
    ) -> list[PinAttempt]:
        attempts = [
            attempt
            for attempt in self.pin_attempts
            if attempt.deal_id == deal_id
            and (user_id is None or attempt.user_id == user_id)
            and (ip_address is None or attempt.ip_address == ip_address)
            and (since_utc is None or attempt.attempted_at >= since_utc)
        ]
        return sorted(attempts, key=lambda attempt: (attempt.attempted_at, attempt.id), reverse=True)

    async def create_system_log(
        self,
        *,
        user_id: int | None,
        action: str,
        details: dict[str, object],
        ip_address: str | None,
        user_agent: str | None,
        created_at: datetime,
    ) -> None:
        self.system_logs.append(
            SystemLog(
                id=len(self.system_logs) + 1,
                user_id=user_id,
                action=action,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=created_at,
            )
        )

    @asynccontextmanager
    async def claim_lock(self, deal_id: int, user_id: int) -> AsyncIterator[None]:
        async with self._claim_locks[(deal_id, user_id)]:
            yield
