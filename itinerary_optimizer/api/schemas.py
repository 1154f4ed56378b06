"""API request/response models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.planning.editing import ItineraryValidation
from itinerary_optimizer.domain.models import (
    Coordinate,
    DailyItinerary,
    FixedCommitment,
    PlanResult,
    TripInput,
)

_PROVIDER_PATTERN = r"^(estimate|transit|auto)$"


class PlanRequest(BaseModel):
    trip: TripInput
    commitments: list[FixedCommitment] = Field(default_factory=list, description="Fixed-time visits")
    routing_provider: Optional[str] = Field(
        default=None,
        pattern=_PROVIDER_PATTERN,
        description="estimate / transit / auto; defaults to ROUTING_PROVIDER",
    )
    enrich_routes: Optional[bool] = Field(default=None, description="Override PLANNER_ENRICH_ROUTES")


class PlanResponse(BaseModel):
    status: str = Field(default="done", description="done / error")
    plan: Optional[PlanResult] = None
    trace_id: str = Field(default="")


class ReorderInstruction(BaseModel):
    day_number: int = Field(ge=1)
    place_ids: list[str] = Field(min_length=1)
    coordinates: dict[str, Coordinate] = Field(description="Coordinate of every place in the day")
    transport_mode: TransportMode = TransportMode.PUBLIC_TRANSIT
    origin: Optional[Coordinate] = Field(default=None, description="Day start point, if any")
    destination: Optional[Coordinate] = Field(default=None, description="Day end point, if any")


class RecalculateRequest(BaseModel):
    itineraries: list[DailyItinerary] = Field(min_length=1)
    day_numbers: Optional[list[int]] = Field(default=None, description="Days to recompute; all when omitted")
    reorder: Optional[ReorderInstruction] = None
    daily_start_time: Optional[str] = None
    daily_end_time: Optional[str] = None


class RecalculateResponse(BaseModel):
    itineraries: list[DailyItinerary] = Field(default_factory=list)
    validation: ItineraryValidation = Field(default_factory=ItineraryValidation)


class ValidateRequest(BaseModel):
    itineraries: list[DailyItinerary] = Field(min_length=1)
    daily_start_time: Optional[str] = None
    daily_end_time: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = ""


class DiagnosticsResponse(BaseModel):
    tools: dict[str, str] = Field(default_factory=dict)
    route_provider: str = "estimate"
    cache: dict[str, Any] = Field(default_factory=dict)
