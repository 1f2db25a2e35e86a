from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.vendors import Vendor


class VendorsRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> Vendor | None:
        stmt = select(Vendor).where(Vendor.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(session: AsyncSession) -> list[Vendor]:
        result = await session.execute(select(Vendor).order_by(Vendor.id.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, vendor: Vendor) -> Vendor:
        session.add(vendor)
        await session.flush()
        return vendor
