from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from instoredealz.db.models.deal_claims import DealClaim
from instoredealz.db.models.deals import Deal
from instoredealz.db.models.pin_attempts import PinAttempt
from instoredealz.db.models.system_logs import SystemLog
from instoredealz.db.models.users import User
from instoredealz.db.models.vendors import Vendor
from instoredealz.db.repo.claims_repo import ClaimsRepo
from instoredealz.db.repo.deals_repo import DealsRepo
from instoredealz.db.repo.pin_attempts_repo import PinAttemptsRepo
from instoredealz.db.repo.system_logs_repo import SystemLogsRepo
from instoredealz.db.repo.users_repo import UsersRepo
from instoredealz.db.repo.vendors_repo import VendorsRepo


class StorageUnavailableError(Exception):
    pass


class DealsStorage(abc.ABC):
    """Persistence contract consumed by the redemption and ranking code.

    Entities are the ORM classes from ``instoredealz.db.models``; in-memory
    implementations hold detached instances of the same classes.
    """

    @abc.abstractmethod
    async def get_deal(self, deal_id: int) -> Deal | None: ...

    @abc.abstractmethod
    async def create_deal(self, deal: Deal) -> Deal: ...

    @abc.abstractmethod
    async def update_deal(self, deal_id: int, **fields: object) -> Deal | None: ...

    @abc.abstractmethod
    async def get_active_deals(self, *, now_utc: datetime) -> list[Deal]: ...

    @abc.abstractmethod
    async def increment_deal_redemptions(self, deal_id: int) -> int | None: ...

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> User | None: ...

    @abc.abstractmethod
    async def create_user(self, user: User) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: int, **fields: object) -> User | None: ...

    @abc.abstractmethod
    async def get_vendor_by_user_id(self, user_id: int) -> Vendor | None: ...

    @abc.abstractmethod
    async def get_all_vendors(self) -> list[Vendor]: ...

    @abc.abstractmethod
    async def create_vendor(self, vendor: Vendor) -> Vendor: ...

    @abc.abstractmethod
    async def get_user_claims(self, user_id: int) -> list[DealClaim]: ...

    @abc.abstractmethod
    async def claim_deal(self, claim: DealClaim) -> DealClaim: ...

    @abc.abstractmethod
    async def update_deal_claim(self, claim_id: int, **fields: object) -> DealClaim | None: ...

    @abc.abstractmethod
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
        """Appends one attempt. Must be durable even if the caller's unit of work fails."""

    @abc.abstractmethod
    async def get_pin_attempts(
        self,
        deal_id: int,
        *,
        user_id: int | None = None,
        ip_address: str | None = None,
        since_utc: datetime | None = None,
    ) -> list[PinAttempt]:
        """Returns attempts for the scope, newest first."""

    @abc.abstractmethod
    async def create_system_log(
        self,
        *,
        user_id: int | None,
        action: str,
        details: dict[str, object],
        ip_address: str | None,
        user_agent: str | None,
        created_at: datetime,
    ) -> None: ...

    @abc.abstractmethod
    def claim_lock(self, deal_id: int, user_id: int) -> AbstractAsyncContextManager[None]:
        """Critical section around reuse-or-create of a user's pending claim."""


class SqlStorage(DealsStorage):
    def __init__(
        self,
        session: AsyncSession,
        *,
        attempt_session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._session = session
        self._attempt_session_factory = attempt_session_factory

    async def get_deal(self, deal_id: int) -> Deal | None:
        return await DealsRepo.get_by_id(self._session, deal_id)

    async def create_deal(self, deal: Deal) -> Deal:
        return await DealsRepo.create(self._session, deal=deal)

    async def update_deal(self, deal_id: int, **fields: object) -> Deal | None:
        return await DealsRepo.update_fields(self._session, deal_id, fields)

    async def get_active_deals(self, *, now_utc: datetime) -> list[Deal]:
        return await DealsRepo.list_active(self._session, now_utc=now_utc)

    async def increment_deal_redemptions(self, deal_id: int) -> int | None:
        return await DealsRepo.increment_redemptions(self._session, deal_id)

    async def get_user(self, user_id: int) -> User | None:
        return await UsersRepo.get_by_id(self._session, user_id)

    async def create_user(self, user: User) -> User:
        return await UsersRepo.create(self._session, user=user)

    async def update_user(self, user_id: int, **fields: object) -> User | None:
        return await UsersRepo.update_fields(self._session, user_id, fields)

    async def get_vendor_by_user_id(self, user_id: int) -> Vendor | None:
        return await VendorsRepo.get_by_user_id(self._session, user_id)

    async def get_all_vendors(self) -> list[Vendor]:
        return await VendorsRepo.list_all(self._session)

    async def create_vendor(self, vendor: Vendor) -> Vendor:
        return await VendorsRepo.create(self._session, vendor=vendor)

    async def get_user_claims(self, user_id: int) -> list[DealClaim]:
        return await ClaimsRepo.list_by_user(self._session, user_id)

    async def claim_deal(self, claim: DealClaim) -> DealClaim:
        return await ClaimsRepo.create(self._session, claim=claim)

    async def update_deal_claim(self, claim_id: int, **fields: object) -> DealClaim | None:
        return await ClaimsRepo.update_fields(self._session, claim_id, fields)

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
        attempt = PinAttempt(
            deal_id=deal_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            result=result,
            attempted_at=attempted_at,
        )
        try:
            if self._attempt_session_factory is None:
                await PinAttemptsRepo.create(self._session, attempt=attempt)
                return
            async with self._attempt_session_factory.begin() as attempt_session:
                await PinAttemptsRepo.create(attempt_session, attempt=attempt)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("pin attempt log write failed") from exc

    async def get_pin_attempts(
        self,
        deal_id: int,
        *,
        user_id: int | None = None,
        ip_address: str | None = None,
        since_utc: datetime | None = None,
    ) -> list[PinAttempt]:
        try:
            return await PinAttemptsRepo.list_for_scope(
                self._session,
                deal_id=deal_id,
                user_id=user_id,
                ip_address=ip_address,
                since_utc=since_utc,
            )
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("pin attempt log read failed") from exc

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
        # Savepoint so a failed audit write cannot poison the outer transaction.
        async with self._session.begin_nested():
            await SystemLogsRepo.create(
                self._session,
                entry=SystemLog(
                    user_id=user_id,
                    action=action,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    created_at=created_at,
                ),
            )

    @asynccontextmanager
    async def claim_lock(self, deal_id: int, user_id: int) -> AsyncIterator[None]:
        # The row lock is released when the surrounding transaction ends, not on exit.
        await DealsRepo.get_by_id_for_update(self._session, deal_id)
        yield
