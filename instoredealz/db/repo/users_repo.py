from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from instoredealz.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def create(session: AsyncSession, *, user: User) -> User:
        session.add(user)
        await session.flush()
        return user

    @staticmethod
    async def update_fields(
        session: AsyncSession,
        user_id: int,
        fields: dict[str, object],
    ) -> User | None:
        user = await session.get(User, user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        await session.flush()
        return user
