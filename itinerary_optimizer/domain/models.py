"""Pydantic domain models."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from itinerary_optimizer.domain.enums import ConflictType, TransportMode
from itinerary_optimizer.domain.planning.timeutil import normalize_time, time_to_minutes


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Waypoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    coordinate: Coordinate
    stay_minutes: int = Field(default=60, ge=0)
    importance: int = Field(default=3, ge=1, le=5)
    is_fixed: bool = False
    day_lock: Optional[int] = Field(default=None, ge=1)


class FixedCommitment(BaseModel):
    """Must-visit-at-time entry. The end time is derived from the waypoint stay."""

    model_config = ConfigDict(frozen=True)

    id: str
    waypoint_id: str
    date: dt.date
    start_time: str
    note: str = ""

    @field_validator("start_time")
    @classmethod
    def _normalize_start(cls, value: str) -> str:
        return normalize_time(value)


class ScheduledCommitment(BaseModel):
    model_config = ConfigDict(frozen=True)

    commitment_id: str
    waypoint_id: str
    date: dt.date
    start_time: str
    end_time: str

    @property
    def start_minute(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return time_to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute


class Zone(BaseModel):
    zone_id: str
    waypoint_ids: list[str] = Field(min_length=1)
    centroid: Coordinate
    estimated_minutes: float = 0.0
    has_fixed: bool = False
    fixed_day_index: Optional[int] = None


class DayAnchor(BaseModel):
    start: Optional[Coordinate] = None
    end: Optional[Coordinate] = None


class Cluster(BaseModel):
    day_index: int = 1
    waypoint_ids: list[str] = Field(default_factory=list)
    zone_ids: list[str] = Field(default_factory=list)
    centroid: Optional[Coordinate] = None
    anchor: DayAnchor = Field(default_factory=DayAnchor)


class TransitSubPath(BaseModel):
    traffic_type: int
    distance: float = 0.0
    section_time: int = 0
    station_count: Optional[int] = None
    start_name: Optional[str] = None
    end_name: Optional[str] = None
    lane_name: Optional[str] = None


class TransitDetails(BaseModel):
    total_fare: float = 0.0
    transfer_count: int = 0
    walking_time: int = 0
    walking_distance: float = 0.0
    sub_paths: list[TransitSubPath] = Field(default_factory=list)


class RouteSegment(BaseModel):
    mode: TransportMode = TransportMode.PUBLIC_TRANSIT
    distance: float = 0.0
    duration: int = 0
    description: Optional[str] = None
    fare: Optional[float] = None
    polyline: Optional[str] = None
    transit_details: Optional[TransitDetails] = None


class ScheduleItem(BaseModel):
    order: int = 1
    place_id: str
    place_name: str = ""
    arrival_time: str = ""
    departure_time: str = ""
    duration: int = 0
    is_fixed: bool = False
    fixed_start_time: Optional[str] = None
    transport_to_next: Optional[RouteSegment] = None


class DailyItinerary(BaseModel):
    day_number: int = 1
    date: Optional[dt.date] = None
    schedule: list[ScheduleItem] = Field(default_factory=list)
    total_distance: float = 0.0
    total_duration: int = 0
    total_stay_duration: int = 0
    place_count: int = 0
    start_time: str = ""
    end_time: str = ""
    daily_start_time: Optional[str] = None
    daily_end_time: Optional[str] = None
    transport_from_origin: Optional[RouteSegment] = None
    transport_to_destination: Optional[RouteSegment] = None
    warnings: list[str] = Field(default_factory=list)


class TripInput(BaseModel):
    days: int = 1
    start_date: dt.date
    start: Coordinate
    end: Optional[Coordinate] = None
    lodging: Optional[Coordinate] = None
    daily_max_minutes: Optional[int] = None
    daily_start_time: Optional[str] = None
    daily_end_time: Optional[str] = None
    transport_mode: TransportMode = TransportMode.PUBLIC_TRANSIT
    waypoints: list[Waypoint] = Field(default_factory=list)


class TripWindow(BaseModel):
    start_date: dt.date
    end_date: dt.date
    daily_start_time: str = "10:00"
    daily_end_time: str = "20:00"


class ScheduleConflict(BaseModel):
    type: ConflictType
    schedule_ids: list[str] = Field(default_factory=list)
    date: dt.date
    message: str = ""


class ConstraintValidationResult(BaseModel):
    is_valid: bool = True
    conflicts: list[ScheduleConflict] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TimeSlot(BaseModel):
    start: int
    end: int
    waypoint_id: Optional[str] = None
    commitment_id: Optional[str] = None


class DailyConstraints(BaseModel):
    date: dt.date
    day_start: int
    day_end: int
    fixed_slots: list[TimeSlot] = Field(default_factory=list)
    available_slots: list[TimeSlot] = Field(default_factory=list)


class EnrichmentStats(BaseModel):
    requested: int = 0
    enriched: int = 0
    fallback: int = 0
    cancelled: bool = False


class PlanStatistics(BaseModel):
    total_places: int = 0
    total_days: int = 0
    total_distance: float = 0.0
    total_duration: int = 0
    total_stay_duration: int = 0
    average_daily_places: float = 0.0
    optimization_time_ms: float = 0.0


class PlanResult(BaseModel):
    itineraries: list[DailyItinerary] = Field(default_factory=list)
    clusters: list[Cluster] = Field(default_factory=list)
    conflicts: list[ScheduleConflict] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    enrichment: EnrichmentStats = Field(default_factory=EnrichmentStats)
    statistics: PlanStatistics = Field(default_factory=PlanStatistics)
    trace_id: str = ""


class ErrorResponse(BaseModel):
    error: bool = True
    code: str = "UNKNOWN"
    message: str = ""
    details: list[str] = Field(default_factory=list)
