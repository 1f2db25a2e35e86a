from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.system_logs import SystemLog


class SystemLogsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, entry: SystemLog) -> SystemLog:
        session.add(entry)
        await session.flush()
        return entry
