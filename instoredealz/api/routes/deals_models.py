from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from instoredealz.api.routes.base_models import CamelModel


class ClaimDealResponse(CamelModel):
    success: bool = True
    message: str
    id: int
    user_id: int
    deal_id: int
    status: str
    claimed_at: datetime
    savings_amount: float
    requires_verification: bool = True


class VerifyPinRequest(CamelModel):
    pin: str | None = None

    # Format errors are reported by the verifier so the attempt is still logged.
    @field_validator("pin", mode="before")
    @classmethod
    def _coerce_pin(cls, value: object) -> object:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class VerifyPinResponse(CamelModel):
    success: bool = True
    message: str
    savings_amount: float
    claim_id: int
    status: str
    deal_title: str
    discount_percentage: int


class UpdateBillRequest(CamelModel):
    bill_amount: Decimal | None = None
    actual_savings: Decimal | None = None
    savings: Decimal | None = None


class UpdateBillResponse(CamelModel):
    success: bool = True
    message: str
    bill_amount: float
    actual_savings: float
    new_total_savings: float


class NearbyDealsRequest(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    max_distance: float | None = Field(default=None, gt=0, le=20000)
    categories: list[str] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1, le=100)


class VendorSnippet(CamelModel):
    business_name: str
    address: str | None = None
    city: str | None = None
    state: str | None = None


class NearbyDeal(CamelModel):
    id: int
    title: str
    description: str
    category: str
    discount_percentage: int
    original_price: float | None = None
    discounted_price: float | None = None
    valid_until: datetime
    required_membership: str
    view_count: int
    address: str
    latitude: float
    longitude: float
    vendor: VendorSnippet
    distance: float
    distance_text: str
    location_hint: str
    relevance_score: int


class UserLocation(CamelModel):
    latitude: float
    longitude: float


class NearbyDealsResponse(CamelModel):
    success: bool = True
    deals: list[NearbyDeal]
    total: int
    user_location: UserLocation
    search_radius: float
