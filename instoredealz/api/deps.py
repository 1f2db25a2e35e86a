from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status

from instoredealz.core.config import Settings, get_settings
from instoredealz.db.session import SessionLocal
from instoredealz.db.storage import DealsStorage, SqlStorage
from instoredealz.redemption.rotating_pin import RotatingPinGenerator
from instoredealz.redemption.service import RedemptionService
from instoredealz.redemption.types import RateLimitPolicy, RequestContext
from instoredealz.redemption.vendor_pins import VendorPinService
from instoredealz.services.auth import (
    Principal,
    decode_access_token,
    extract_bearer_token,
    extract_client_ip,
)

StorageScope = Callable[[], AbstractAsyncContextManager[DealsStorage]]


@asynccontextmanager
async def sql_storage_scope() -> AsyncIterator[DealsStorage]:
    async with SessionLocal.begin() as session:
        yield SqlStorage(session, attempt_session_factory=SessionLocal)


def get_storage_scope() -> StorageScope:
    """One unit of work per request; routes commit by leaving the scope."""
    return sql_storage_scope


def get_current_principal(request: Request) -> Principal:
    settings = get_settings()
    principal = decode_access_token(
        extract_bearer_token(request),
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "E_UNAUTHORIZED"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def get_vendor_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_vendor:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"code": "E_FORBIDDEN"})
    return principal


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=extract_client_ip(request, trusted_proxies=get_settings().trusted_proxies),
        user_agent=request.headers.get("User-Agent"),
    )


def rotating_pins_from(settings: Settings) -> RotatingPinGenerator:
    return RotatingPinGenerator(
        settings.rotating_pin_secret,
        interval_seconds=settings.rotating_pin_interval_seconds,
    )


def rate_limit_policy_from(settings: Settings) -> RateLimitPolicy:
    return RateLimitPolicy(
        window=timedelta(seconds=settings.pin_attempt_window_seconds),
        max_failures=settings.pin_attempt_max_failures,
        daily_limit=settings.pin_attempt_daily_limit,
    )


def build_redemption_service(storage: DealsStorage, settings: Settings) -> RedemptionService:
    return RedemptionService(
        storage,
        rotating_pins=rotating_pins_from(settings),
        rate_limit_policy=rate_limit_policy_from(settings),
    )


def build_vendor_pin_service(storage: DealsStorage, settings: Settings) -> VendorPinService:
    return VendorPinService(
        storage,
        rotating_pins=rotating_pins_from(settings),
        hash_rounds=settings.pin_hash_rounds,
        pin_ttl=timedelta(days=settings.pin_ttl_days),
    )
