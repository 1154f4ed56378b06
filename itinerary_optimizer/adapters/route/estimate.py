"""Offline route adapter based on haversine distance."""

from __future__ import annotations

from itinerary_optimizer.planner.distance import estimate_duration_minutes, haversine_meters
from itinerary_optimizer.tools.interfaces import RouteDetail, RouteQuery


def estimate_route(params: RouteQuery) -> RouteDetail:
    distance = haversine_meters(params.origin_lat, params.origin_lng, params.dest_lat, params.dest_lng)
    return RouteDetail(
        distance_meters=round(distance),
        duration_minutes=estimate_duration_minutes(distance, params.mode),
        mode=params.mode,
    )
