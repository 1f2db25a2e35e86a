from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.pin_attempts import PinAttempt


class PinAttemptsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, attempt: PinAttempt) -> PinAttempt:
        session.add(attempt)
        await session.flush()
        return attempt

    @staticmethod
    async def list_for_scope(
        session: AsyncSession,
        *,
        deal_id: int,
        user_id: int | None = None,
        ip_address: str | None = None,
        since_utc: datetime | None = None,
    ) -> list[PinAttempt]:
        stmt = select(PinAttempt).where(PinAttempt.deal_id == deal_id)
        if user_id is not None:
            stmt = stmt.where(PinAttempt.user_id == user_id)
        if ip_address is not None:
            stmt = stmt.where(PinAttempt.ip_address == ip_address)
        if since_utc is not None:
            stmt = stmt.where(PinAttempt.attempted_at >= since_utc)
        stmt = stmt.order_by(PinAttempt.attempted_at.desc(), PinAttempt.id.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())
