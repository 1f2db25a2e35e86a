from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.deals import Deal


class DealsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, deal_id: int) -> Deal | None:
        return await session.get(Deal, deal_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, deal_id: int) -> Deal | None:
        stmt = select(Deal).where(Deal.id == deal_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active(session: AsyncSession, *, now_utc: datetime) -> list[Deal]:
        stmt = (
            select(Deal)
            .where(
                Deal.is_active.is_(True),
                Deal.is_approved.is_(True),
                Deal.valid_until > now_utc,
            )
            .order_by(Deal.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, deal: Deal) -> Deal:
        session.add(deal)
        await session.flush()
        return deal

    @staticmethod
    async def update_fields(
        session: AsyncSession,
        deal_id: int,
        fields: dict[str, object],
    ) -> Deal | None:
        deal = await session.get(Deal, deal_id)
        if deal is None:
            return None
        for name, value in fields.items():
            setattr(deal, name, value)
        await session.flush()
        return deal

    @staticmethod
    async def increment_redemptions(session: AsyncSession, deal_id: int) -> int | None:
        stmt = (
            update(Deal)
            .where(Deal.id == deal_id)
            .values(current_redemptions=Deal.current_redemptions + 1)
            .returning(Deal.current_redemptions)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
