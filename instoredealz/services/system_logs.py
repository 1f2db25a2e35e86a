from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError

from instoredealz.db.storage import DealsStorage, StorageUnavailableError
from instoredealz.redemption.types import RequestContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AuditWriteResult:
    written: bool
    error: str | None = None


async def write_system_log(
    storage: DealsStorage,
    *,
    action: str,
    user_id: int | None,
    details: dict[str, object],
    context: RequestContext | None,
    now_utc: datetime,
) -> AuditWriteResult:
    """Best-effort audit write. Failures are logged and reported, never raised."""
    try:
        await storage.create_system_log(
            user_id=user_id,
            action=action,
            details=details,
            ip_address=context.ip_address if context is not None else None,
            user_agent=context.user_agent if context is not None else None,
            created_at=now_utc,
        )
    except (SQLAlchemyError, StorageUnavailableError) as exc:
        logger.warning("system_log_write_failed", action=action, user_id=user_id, exc_info=exc)
        return AuditWriteResult(written=False, error=type(exc).__name__)
    return AuditWriteResult(written=True)
