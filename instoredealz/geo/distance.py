from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
DIRECTIONS = (
    "North",
    "Northeast",
    "East",
    "Southeast",
    "South",
    "Southwest",
    "West",
    "Northwest",
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (builtin ``round`` is banker's rounding)."""
    return math.floor(value + 0.5)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round_half_up(km * 1000)}m"
    if km < 10:
        return f"{km:.1f}km"
    return f"{round_half_up(km)}km"


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def direction_label(bearing: float) -> str:
    return DIRECTIONS[round_half_up(bearing / 45) % len(DIRECTIONS)]


def area_label(address: str | None) -> str:
    """Leading segment of a comma separated address; a single segment has no area."""
    if not address or "," not in address:
        return ""
    return address.split(",", 1)[0].strip()


def location_hint(
    user_lat: float,
    user_lon: float,
    deal_lat: float,
    deal_lon: float,
    address: str | None = None,
) -> str:
    km = distance_km(user_lat, user_lon, deal_lat, deal_lon)
    direction = direction_label(bearing_degrees(user_lat, user_lon, deal_lat, deal_lon))
    area = area_label(address)

    if km < 0.5:
        return f"Very close to you near {area}" if area else "Very close to you"
    if km < 2:
        return f"{direction} of you in {area}" if area else f"{direction} of you"
    hint = f"{format_distance(km)} {direction}"
    return f"{hint} in {area}" if area else hint
