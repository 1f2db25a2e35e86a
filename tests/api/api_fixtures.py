from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from instoredealz.api.deps import rotating_pins_from
from instoredealz.core.config import get_settings
from instoredealz.db.memory_storage import MemoryStorage
from instoredealz.db.models.deals import Deal
from instoredealz.db.models.users import User
from instoredealz.db.models.vendors import Vendor
from tests.redemption.redemption_fixtures import _seed
from tests.services.auth_fixtures import _access_token


def _memory_scope(storage: MemoryStorage):
    @asynccontextmanager
    async def _scope() -> AsyncIterator[MemoryStorage]:
        yield storage

    return _scope


def _auth_headers(user_id: int, role: str) -> dict[str, str]:
    settings = get_settings()
    token = _access_token(
        user_id=user_id,
        role=role,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


def _seed_now(storage: MemoryStorage, **kwargs: object) -> tuple[User, Vendor, Deal]:
    return asyncio.run(_seed(storage, now_utc=datetime.now(timezone.utc), **kwargs))


def _pin_rejected_now(deal_id: int, *known_pins: str) -> str:
    generator = rotating_pins_from(get_settings())
    now_utc = datetime.now(timezone.utc)
    bucket = generator.bucket_for(now_utc)
    # Also skip the next bucket in case the test runs across a rotation boundary.
    taken = {generator.pin_for_bucket(deal_id, bucket + offset) for offset in (-1, 0, 1)}
    taken.update(known_pins)
    return next(f"{value:04d}" for value in range(10000) if f"{value:04d}" not in taken)
