from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.deal_claims import DealClaim


class ClaimsRepo:
    @staticmethod
    async def list_by_user(session: AsyncSession, user_id: int) -> list[DealClaim]:
        stmt = (
            select(DealClaim)
            .where(DealClaim.user_id == user_id)
            .order_by(DealClaim.claimed_at.asc(), DealClaim.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, claim: DealClaim) -> DealClaim:
        session.add(claim)
        await session.flush()
        return claim

    @staticmethod
    async def update_fields(
        session: AsyncSession,
        claim_id: int,
        fields: dict[str, object],
    ) -> DealClaim | None:
        claim = await session.get(DealClaim, claim_id)
        if claim is None:
            return None
        for name, value in fields.items():
            setattr(claim, name, value)
        await session.flush()
        return claim
