"""Deterministic great-circle distance and travel-time estimation."""

from __future__ import annotations

import math

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.models import Coordinate
from itinerary_optimizer.shared.exceptions import ToolError

EARTH_RADIUS_METERS = 6_371_000.0

# meters per minute
SPEED_MAP = {
    TransportMode.WALKING: 66.7,
    TransportMode.PUBLIC_TRANSIT: 333.0,
    TransportMode.DRIVING: 500.0,
}


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def coordinate_distance(origin: Coordinate, destination: Coordinate) -> float:
    return haversine_meters(origin.lat, origin.lng, destination.lat, destination.lng)


def estimate_duration_minutes(distance_meters: float, mode: TransportMode | str = TransportMode.PUBLIC_TRANSIT) -> int:
    try:
        speed = SPEED_MAP[TransportMode(mode)]
    except ValueError as exc:
        raise ToolError("distance_estimator", f"Unknown transport mode: {mode}") from exc
    return int(math.ceil(max(0.0, distance_meters) / speed))


__all__ = [
    "EARTH_RADIUS_METERS",
    "SPEED_MAP",
    "coordinate_distance",
    "estimate_duration_minutes",
    "haversine_meters",
]
