"""Arrival/departure computation for daily itineraries.

A day is always recomputed from its segments and stays; nothing here patches
a previous result in place.
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from itinerary_optimizer.domain.exceptions import InvalidTripInput
from itinerary_optimizer.domain.models import (
    DailyItinerary,
    RouteSegment,
    ScheduledCommitment,
    ScheduleItem,
    Waypoint,
)
from itinerary_optimizer.domain.planning.timeutil import minutes_to_time, normalize_time, time_to_minutes

DEFAULT_DAILY_START_TIME = "10:00"
DEFAULT_DAILY_END_TIME = "22:00"


class SegmentSource(Protocol):
    def segment(self, from_id: str, to_id: str) -> RouteSegment:
        ...


def _segment_minutes(segment: Optional[RouteSegment]) -> int:
    return segment.duration if segment is not None else 0


def recalculate_day_times(
    day: DailyItinerary,
    *,
    daily_start_time: str = DEFAULT_DAILY_START_TIME,
    daily_end_time: str = DEFAULT_DAILY_END_TIME,
) -> DailyItinerary:
    start_time = normalize_time(day.daily_start_time or daily_start_time)
    end_time = normalize_time(day.daily_end_time or daily_end_time)
    day_end = time_to_minutes(end_time)

    if not day.schedule:
        return day.model_copy(
            update={
                "start_time": start_time,
                "end_time": start_time,
                "daily_start_time": start_time,
                "daily_end_time": end_time,
                "total_distance": 0.0,
                "total_duration": 0,
                "total_stay_duration": 0,
                "place_count": 0,
                "warnings": [],
            }
        )

    warnings: list[str] = []
    clock = time_to_minutes(start_time) + _segment_minutes(day.transport_from_origin)
    schedule: list[ScheduleItem] = []
    last_index = len(day.schedule) - 1
    for index, item in enumerate(day.schedule):
        arrival = clock
        if item.fixed_start_time:
            fixed_start = time_to_minutes(item.fixed_start_time)
            if arrival < fixed_start:
                arrival = fixed_start
            elif arrival > fixed_start:
                warnings.append(
                    f"arrives at {item.place_name or item.place_id} {minutes_to_time(arrival)}, "
                    f"after its fixed start {normalize_time(item.fixed_start_time)}"
                )
        departure = arrival + item.duration
        if index < last_index:
            clock = departure + _segment_minutes(item.transport_to_next)
        else:
            clock = departure
        schedule.append(
            item.model_copy(
                update={
                    "order": index + 1,
                    "arrival_time": minutes_to_time(arrival),
                    "departure_time": minutes_to_time(departure),
                }
            )
        )

    finish = clock + _segment_minutes(day.transport_to_destination)
    if finish > day_end:
        warnings.append(f"day ends at {minutes_to_time(finish)}, past {end_time}")

    segments = [day.transport_from_origin, *(item.transport_to_next for item in schedule), day.transport_to_destination]
    used = [segment for segment in segments if segment is not None]
    return day.model_copy(
        update={
            "schedule": schedule,
            "start_time": schedule[0].arrival_time,
            "end_time": minutes_to_time(finish),
            "daily_start_time": start_time,
            "daily_end_time": end_time,
            "total_distance": float(sum(segment.distance for segment in used)),
            "total_duration": sum(segment.duration for segment in used),
            "total_stay_duration": sum(item.duration for item in schedule),
            "place_count": len(schedule),
            "warnings": warnings,
        }
    )


def recalculate_itinerary_times(
    days: Sequence[DailyItinerary],
    day_numbers: Optional[Iterable[int]] = None,
    *,
    daily_start_time: str = DEFAULT_DAILY_START_TIME,
    daily_end_time: str = DEFAULT_DAILY_END_TIME,
) -> list[DailyItinerary]:
    """Recompute the requested days; other day objects are returned as-is."""
    wanted = None if day_numbers is None else set(day_numbers)
    return [
        recalculate_day_times(day, daily_start_time=daily_start_time, daily_end_time=daily_end_time)
        if wanted is None or day.day_number in wanted
        else day
        for day in days
    ]


def build_daily_itinerary(
    day_number: int,
    ordered: Sequence[Waypoint],
    matrix: SegmentSource,
    *,
    date: Optional[dt.date] = None,
    origin_id: Optional[str] = None,
    destination_id: Optional[str] = None,
    commitments: Iterable[ScheduledCommitment] = (),
    daily_start_time: str = DEFAULT_DAILY_START_TIME,
    daily_end_time: str = DEFAULT_DAILY_END_TIME,
) -> DailyItinerary:
    commitment_by_wp = {c.waypoint_id: c for c in commitments}
    items: list[ScheduleItem] = []
    for index, wp in enumerate(ordered):
        commitment = commitment_by_wp.get(wp.id)
        next_segment = matrix.segment(wp.id, ordered[index + 1].id) if index + 1 < len(ordered) else None
        items.append(
            ScheduleItem(
                order=index + 1,
                place_id=wp.id,
                place_name=wp.name,
                duration=wp.stay_minutes,
                is_fixed=commitment is not None or wp.is_fixed,
                fixed_start_time=commitment.start_time if commitment is not None else None,
                transport_to_next=next_segment,
            )
        )
    from_origin = None
    to_destination = None
    if ordered and origin_id is not None:
        from_origin = matrix.segment(origin_id, ordered[0].id)
    if ordered and destination_id is not None:
        to_destination = matrix.segment(ordered[-1].id, destination_id)
    day = DailyItinerary(
        day_number=day_number,
        date=date,
        schedule=items,
        daily_start_time=daily_start_time,
        daily_end_time=daily_end_time,
        transport_from_origin=from_origin,
        transport_to_destination=to_destination,
    )
    return recalculate_day_times(day, daily_start_time=daily_start_time, daily_end_time=daily_end_time)


def day_segments(
    day: DailyItinerary,
    *,
    origin_id: Optional[str] = None,
    destination_id: Optional[str] = None,
) -> dict[tuple[str, str], RouteSegment]:
    """Segments a day already carries, keyed by directed ``(from_id, to_id)``."""
    known: dict[tuple[str, str], RouteSegment] = {}
    if not day.schedule:
        return known
    if origin_id is not None and day.transport_from_origin is not None:
        known[(origin_id, day.schedule[0].place_id)] = day.transport_from_origin
    for item, following in zip(day.schedule, day.schedule[1:]):
        if item.transport_to_next is not None:
            known[(item.place_id, following.place_id)] = item.transport_to_next
    if destination_id is not None and day.transport_to_destination is not None:
        known[(day.schedule[-1].place_id, destination_id)] = day.transport_to_destination
    return known


class ReusingSegmentSource:
    """Known segments first, ``fallback`` for pairs never travelled before."""

    def __init__(self, known: Mapping[tuple[str, str], RouteSegment], fallback: SegmentSource) -> None:
        self._known = known
        self._fallback = fallback
        self.reused = 0

    def segment(self, from_id: str, to_id: str) -> RouteSegment:
        known = self._known.get((from_id, to_id))
        if known is not None:
            self.reused += 1
            return known
        return self._fallback.segment(from_id, to_id)


def apply_manual_reorder(
    day: DailyItinerary,
    place_ids: Sequence[str],
    matrix: SegmentSource,
    *,
    origin_id: Optional[str] = None,
    destination_id: Optional[str] = None,
) -> DailyItinerary:
    """Rebuild one day in a user-chosen order; ``place_ids`` must permute the day's places.

    Pairs that were already adjacent keep their current segment (including
    any enriched transit route); only new pairs are read from ``matrix``.
    """
    by_id: Mapping[str, ScheduleItem] = {item.place_id: item for item in day.schedule}
    if sorted(place_ids) != sorted(by_id):
        raise InvalidTripInput(f"reorder for day {day.day_number} must list exactly the day's places")
    source = ReusingSegmentSource(
        day_segments(day, origin_id=origin_id, destination_id=destination_id),
        matrix,
    )

    items: list[ScheduleItem] = []
    for index, place_id in enumerate(place_ids):
        next_segment = source.segment(place_id, place_ids[index + 1]) if index + 1 < len(place_ids) else None
        items.append(by_id[place_id].model_copy(update={"order": index + 1, "transport_to_next": next_segment}))

    update: dict[str, object] = {"schedule": items}
    if items and origin_id is not None:
        update["transport_from_origin"] = source.segment(origin_id, items[0].place_id)
    if items and destination_id is not None:
        update["transport_to_destination"] = source.segment(items[-1].place_id, destination_id)
    return recalculate_day_times(day.model_copy(update=update))


__all__ = [
    "DEFAULT_DAILY_END_TIME",
    "DEFAULT_DAILY_START_TIME",
    "ReusingSegmentSource",
    "SegmentSource",
    "apply_manual_reorder",
    "build_daily_itinerary",
    "day_segments",
    "recalculate_day_times",
    "recalculate_itinerary_times",
]
