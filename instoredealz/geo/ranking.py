from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from instoredealz.db.models.deals import Deal
from instoredealz.db.models.vendors import Vendor
from instoredealz.geo.distance import distance_km, format_distance, location_hint, round_half_up

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True, slots=True)
class NearbyQuery:
    latitude: float
    longitude: float
    max_distance_km: float = 10.0
    categories: frozenset[str] = field(default_factory=frozenset)
    limit: int = 12


@dataclass(slots=True)
class RankedDeal:
    deal: Deal
    vendor: Vendor
    distance_km: float
    distance_text: str
    location_hint: str
    relevance_score: int


@dataclass(slots=True)
class NearbyResult:
    deals: list[RankedDeal]
    total: int


def _discount_bonus(discount_percentage: int) -> int:
    if discount_percentage >= 50:
        return 20
    if discount_percentage >= 30:
        return 10
    if discount_percentage >= 20:
        return 5
    return 0


def _popularity_bonus(view_count: int) -> int:
    if view_count > 100:
        return 15
    if view_count > 50:
        return 10
    if view_count > 20:
        return 5
    return 0


def _urgency_bonus(valid_until: datetime | None, now_utc: datetime) -> int:
    if valid_until is None:
        return 0
    days_left = (valid_until - now_utc).total_seconds() / _SECONDS_PER_DAY
    if days_left <= 1:
        return 10
    if days_left <= 3:
        return 5
    return 0


def relevance_score(deal: Deal, distance: float, *, now_utc: datetime) -> int:
    """Composite 0..100 score: proximity, discount depth, popularity, urgency, accessibility."""
    score = 100.0
    score -= min(distance * 5, 50)
    score += _discount_bonus(deal.discount_percentage or 0)
    score += _popularity_bonus(deal.view_count or 0)
    score += _urgency_bonus(deal.valid_until, now_utc)
    if (deal.required_membership or "basic") == "basic":
        score += 5
    return round_half_up(max(0.0, min(100.0, score)))


def rank_nearby_deals(
    deals: Iterable[Deal],
    vendors_by_id: Mapping[int, Vendor],
    query: NearbyQuery,
    *,
    now_utc: datetime,
) -> NearbyResult:
    ranked: list[RankedDeal] = []
    for deal in deals:
        vendor = vendors_by_id.get(deal.vendor_id)
        if vendor is None or deal.latitude is None or deal.longitude is None:
            continue
        if query.categories and deal.category not in query.categories:
            continue

        deal_lat = float(deal.latitude)
        deal_lon = float(deal.longitude)
        distance = distance_km(query.latitude, query.longitude, deal_lat, deal_lon)
        if distance > query.max_distance_km:
            continue

        ranked.append(
            RankedDeal(
                deal=deal,
                vendor=vendor,
                distance_km=round(distance, 2),
                distance_text=format_distance(distance),
                location_hint=location_hint(
                    query.latitude,
                    query.longitude,
                    deal_lat,
                    deal_lon,
                    vendor.address or deal.address,
                ),
                relevance_score=relevance_score(deal, distance, now_utc=now_utc),
            )
        )

    ranked.sort(key=lambda item: (-item.relevance_score, item.distance_km, item.deal.id))
    return NearbyResult(deals=ranked[: query.limit], total=len(ranked))
