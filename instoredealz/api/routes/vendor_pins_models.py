from __future__ import annotations

from datetime import datetime

from pydantic import Field

from instoredealz.api.routes.base_models import CamelModel


class CurrentPinResponse(CamelModel):
    success: bool = True
    deal_id: int
    deal_title: str
    current_pin: str
    next_rotation_at: datetime
    rotation_interval_seconds: int
    is_active: bool


class GeneratedPinResponse(CamelModel):
    success: bool = True
    pin: str
    message: str


class ReissuePinRequest(CamelModel):
    pin: str | None = Field(default=None, max_length=32)


class ReissuePinResponse(CamelModel):
    success: bool = True
    message: str
    deal_id: int
    pin: str
    created_at: datetime
    expires_at: datetime


class PinStatusResponse(CamelModel):
    success: bool = True
    deal_id: int
    security_level: str
    created_at: datetime | None = None
    expires_at: datetime | None = None
    is_expired: bool
