from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status

from instoredealz.api.deps import (
    StorageScope,
    build_redemption_service,
    get_current_principal,
    get_request_context,
    get_storage_scope,
)
from instoredealz.api.routes.deals_models import (
    ClaimDealResponse,
    NearbyDeal,
    NearbyDealsRequest,
    NearbyDealsResponse,
    UpdateBillRequest,
    UpdateBillResponse,
    UserLocation,
    VendorSnippet,
    VerifyPinRequest,
    VerifyPinResponse,
)
from instoredealz.core.config import get_settings
from instoredealz.geo.ranking import NearbyQuery, RankedDeal, rank_nearby_deals
from instoredealz.redemption.types import RequestContext
from instoredealz.services.auth import Principal

router = APIRouter(prefix="/api/deals", tags=["deals"])
logger = structlog.get_logger(__name__)


def _nearby_deal_payload(item: RankedDeal) -> NearbyDeal:
    deal = item.deal
    vendor = item.vendor
    return NearbyDeal(
        id=deal.id,
        title=deal.title,
        description=deal.description or "",
        category=deal.category,
        discount_percentage=deal.discount_percentage,
        original_price=float(deal.original_price) if deal.original_price is not None else None,
        discounted_price=(
            float(deal.discounted_price) if deal.discounted_price is not None else None
        ),
        valid_until=deal.valid_until,
        required_membership=deal.required_membership,
        view_count=deal.view_count or 0,
        address=deal.address or "",
        latitude=float(deal.latitude),
        longitude=float(deal.longitude),
        vendor=VendorSnippet(
            business_name=vendor.business_name,
            address=vendor.address,
            city=vendor.city,
            state=vendor.state,
        ),
        distance=item.distance_km,
        distance_text=item.distance_text,
        location_hint=item.location_hint,
        relevance_score=item.relevance_score,
    )


@router.post("/nearby", response_model=NearbyDealsResponse)
async def nearby_deals(
    payload: NearbyDealsRequest,
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> NearbyDealsResponse:
    settings = get_settings()
    now_utc = datetime.now(timezone.utc)
    query = NearbyQuery(
        latitude=payload.latitude,
        longitude=payload.longitude,
        max_distance_km=payload.max_distance or settings.nearby_default_radius_km,
        categories=frozenset(payload.categories),
        limit=payload.limit or settings.nearby_default_limit,
    )
    async with storage_scope() as storage:
        deals = await storage.get_active_deals(now_utc=now_utc)
        vendors = {vendor.id: vendor for vendor in await storage.get_all_vendors()}

    result = rank_nearby_deals(deals, vendors, query, now_utc=now_utc)
    logger.info(
        "nearby_deals_ranked",
        candidates=len(deals),
        matched=result.total,
        radius_km=query.max_distance_km,
    )
    return NearbyDealsResponse(
        deals=[_nearby_deal_payload(item) for item in result.deals],
        total=result.total,
        user_location=UserLocation(latitude=payload.latitude, longitude=payload.longitude),
        search_radius=query.max_distance_km,
    )


@router.post(
    "/{deal_id}/claim",
    response_model=ClaimDealResponse,
    status_code=status.HTTP_201_CREATED,
)
async def claim_deal(
    deal_id: int,
    principal: Principal = Depends(get_current_principal),
    context: RequestContext = Depends(get_request_context),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> ClaimDealResponse:
    async with storage_scope() as storage:
        service = build_redemption_service(storage, get_settings())
        result = await service.claim_deal(
            user_id=principal.user_id,
            deal_id=deal_id,
            context=context,
        )

    return ClaimDealResponse(
        message="Deal claimed. Visit the store and verify the PIN to redeem it",
        id=result.claim_id,
        user_id=result.user_id,
        deal_id=result.deal_id,
        status=result.status,
        claimed_at=result.claimed_at,
        savings_amount=float(result.savings_amount),
    )


@router.post("/{deal_id}/verify-pin", response_model=VerifyPinResponse)
async def verify_pin(
    deal_id: int,
    payload: VerifyPinRequest,
    principal: Principal = Depends(get_current_principal),
    context: RequestContext = Depends(get_request_context),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> VerifyPinResponse:
    async with storage_scope() as storage:
        service = build_redemption_service(storage, get_settings())
        result = await service.verify_pin(
            user_id=principal.user_id,
            deal_id=deal_id,
            pin=payload.pin,
            context=context,
        )

    return VerifyPinResponse(
        message="PIN verified. Add your bill amount to complete the redemption",
        savings_amount=float(result.savings_amount),
        claim_id=result.claim_id,
        status=result.status,
        deal_title=result.deal_title,
        discount_percentage=result.discount_percentage,
    )


@router.post("/{deal_id}/update-bill", response_model=UpdateBillResponse)
async def update_bill(
    deal_id: int,
    payload: UpdateBillRequest,
    principal: Principal = Depends(get_current_principal),
    context: RequestContext = Depends(get_request_context),
    storage_scope: StorageScope = Depends(get_storage_scope),
) -> UpdateBillResponse:
    savings = payload.actual_savings if payload.actual_savings is not None else payload.savings
    async with storage_scope() as storage:
        service = build_redemption_service(storage, get_settings())
        result = await service.update_bill(
            user_id=principal.user_id,
            deal_id=deal_id,
            bill_amount=payload.bill_amount,
            actual_savings=savings,
            context=context,
        )

    return UpdateBillResponse(
        message="Bill amount updated successfully",
        bill_amount=float(result.bill_amount),
        actual_savings=float(result.actual_savings),
        new_total_savings=float(result.new_total_savings),
    )
