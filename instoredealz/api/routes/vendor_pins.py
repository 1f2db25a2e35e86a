from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from instoredealz.api.deps import (
    StorageScope,
    build_vendor_pin_service,
    get_request_context,
    get_storage_scope,
    get_vendor_principal,
)
from instoredealz.api.routes.vendor_pins_models import (
    CurrentPinResponse,
    GeneratedPinResponse,
    PinStatusResponse,
    ReissuePinRequest,
    ReissuePinResponse,
)
from instoredealz.core.config import get_settings
from instoredealz.redemption.pin_codec import generate_strong_pin
from instoredealz.redemption.types import RequestContext
from instoredealz.services.auth import Principal

router = APIRouter(prefix="/api/vendors", tags=["vendors", "pins"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _disable_caching(response: Response) -> None:
    for name, value in NO_CACHE_HEADERS.items():
        response.headers[name] = value


@router.get("/deals/{deal_id}/current-pin", response_model=CurrentPinResponse)
async def current_pin(
    deal_id: int,
    response: Response,
    principal: Principal = Depends(get_vendor_principal),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> CurrentPinResponse:
    _disable_caching(response)
    async with storage_scope() as storage:
        service = build_vendor_pin_service(storage, get_settings())
        deal, rotating = await service.current_pin(vendor_user_id=principal.user_id, deal_id=deal_id)

    return CurrentPinResponse(
        deal_id=deal.id,
        deal_title=deal.title,
        current_pin=rotating.pin,
        next_rotation_at=rotating.next_rotation_at,
        rotation_interval_seconds=rotating.rotation_interval_seconds,
        is_active=rotating.is_active,
    )


@router.post("/generate-pin", response_model=GeneratedPinResponse)
async def generate_pin(
    response: Response,
    principal: Principal = Depends(get_vendor_principal),
) -> GeneratedPinResponse:
    _disable_caching(response)
    return GeneratedPinResponse(
        pin=generate_strong_pin(),
        message="Use this PIN when creating or updating a deal",
    )


@router.post("/deals/{deal_id}/pin", response_model=ReissuePinResponse)
async def reissue_pin(
    deal_id: int,
    payload: ReissuePinRequest,
    response: Response,
    principal: Principal = Depends(get_vendor_principal),
    context: RequestContext = Depends(get_request_context),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> ReissuePinResponse:
    _disable_caching(response)
    async with storage_scope() as storage:
        service = build_vendor_pin_service(storage, get_settings())
        issued = await service.reissue_pin(
            vendor_user_id=principal.user_id,
            deal_id=deal_id,
            requested_pin=payload.pin,
            context=context,
        )

    return ReissuePinResponse(
        message="PIN updated. It will not be shown again",
        deal_id=deal_id,
        pin=issued.plain_pin,
        created_at=issued.created_at,
        expires_at=issued.expires_at,
    )


@router.get("/deals/{deal_id}/pin-status", response_model=PinStatusResponse)
async def pin_status(
    deal_id: int,
    response: Response,
    principal: Principal = Depends(get_vendor_principal),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> PinStatusResponse:
    _disable_caching(response)
    async with storage_scope() as storage:
        service = build_vendor_pin_service(storage, get_settings())
        status_ = await service.pin_status(vendor_user_id=principal.user_id, deal_id=deal_id)

    return PinStatusResponse(
        deal_id=status_.deal_id,
        security_level=status_.security_level,
        created_at=status_.created_at,
        expires_at=status_.expires_at,
        is_expired=status_.is_expired,
    )
