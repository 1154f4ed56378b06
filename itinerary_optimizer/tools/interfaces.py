"""Routing tool protocol and its I/O schemas."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.models import TransitDetails
from itinerary_optimizer.shared.exceptions import ToolError


class RouteQuery(BaseModel):
    origin_lat: float
    origin_lng: float
    dest_lat: float
    dest_lng: float
    mode: TransportMode = TransportMode.PUBLIC_TRANSIT


class RouteDetail(BaseModel):
    distance_meters: float
    duration_minutes: int
    mode: TransportMode = TransportMode.PUBLIC_TRANSIT
    fare: Optional[float] = None
    polyline: Optional[str] = None
    transit_details: Optional[TransitDetails] = None


@runtime_checkable
class RouteTool(Protocol):
    def estimate_route(self, params: RouteQuery) -> RouteDetail: ...


__all__ = [
    "RouteDetail",
    "RouteQuery",
    "RouteTool",
    "ToolError",
]
