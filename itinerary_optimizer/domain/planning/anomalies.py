"""Flags unusually long or transfer-heavy travel segments in finished days."""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

from pydantic import BaseModel

from itinerary_optimizer.domain.enums import AnomalyType
from itinerary_optimizer.domain.models import DailyItinerary, RouteSegment

DEFAULT_LONG_DURATION_MINUTES = 20
DEFAULT_MAX_TRANSFERS = 2

_ORIGIN_LABEL = "start"
_DESTINATION_LABEL = "end"

_SUGGESTIONS = {
    AnomalyType.LONG_DURATION: "consider an intermediate stop or a different order",
    AnomalyType.TOO_MANY_TRANSFERS: "prefer a route with fewer transfers",
}


class SegmentAnomaly(BaseModel):
    type: AnomalyType
    day_number: int
    from_id: str
    to_id: str
    duration: int
    transfer_count: int = 0
    suggestion: str = ""

    def describe(self) -> str:
        if self.type == AnomalyType.TOO_MANY_TRANSFERS:
            detail = f"{self.transfer_count} transfers"
        else:
            detail = f"{self.duration} min"
        return f"day {self.day_number}: {self.from_id} -> {self.to_id} takes {detail}; {self.suggestion}"


def _day_segments(day: DailyItinerary) -> Iterator[tuple[str, str, RouteSegment]]:
    if not day.schedule:
        return
    if day.transport_from_origin is not None:
        yield _ORIGIN_LABEL, day.schedule[0].place_id, day.transport_from_origin
    for item, following in zip(day.schedule, day.schedule[1:]):
        if item.transport_to_next is not None:
            yield item.place_id, following.place_id, item.transport_to_next
    if day.transport_to_destination is not None:
        yield day.schedule[-1].place_id, _DESTINATION_LABEL, day.transport_to_destination


def detect_segment_anomalies(
    itineraries: Sequence[DailyItinerary],
    *,
    long_duration_minutes: int = DEFAULT_LONG_DURATION_MINUTES,
    max_transfers: Optional[int] = DEFAULT_MAX_TRANSFERS,
) -> list[SegmentAnomaly]:
    """One entry per offending segment and rule, in day then travel order."""
    anomalies: list[SegmentAnomaly] = []
    for day in itineraries:
        for from_id, to_id, segment in _day_segments(day):
            transfers = segment.transit_details.transfer_count if segment.transit_details else 0
            found = []
            if segment.duration > long_duration_minutes:
                found.append(AnomalyType.LONG_DURATION)
            if max_transfers is not None and transfers > max_transfers:
                found.append(AnomalyType.TOO_MANY_TRANSFERS)
            anomalies.extend(
                SegmentAnomaly(
                    type=kind,
                    day_number=day.day_number,
                    from_id=from_id,
                    to_id=to_id,
                    duration=segment.duration,
                    transfer_count=transfers,
                    suggestion=_SUGGESTIONS[kind],
                )
                for kind in found
            )
    return anomalies


__all__ = [
    "AnomalyType",
    "DEFAULT_LONG_DURATION_MINUTES",
    "DEFAULT_MAX_TRANSFERS",
    "SegmentAnomaly",
    "detect_segment_anomalies",
]
