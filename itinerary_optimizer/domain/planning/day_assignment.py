"""Greedy placement of zones onto trip days."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional

from itinerary_optimizer.domain.models import Cluster, Coordinate, DayAnchor, TripInput, Waypoint, Zone
from itinerary_optimizer.domain.planning.zoning import DistanceFn, centroid_of

_logger = logging.getLogger("itinerary-optimizer.day-assignment")


@dataclass(frozen=True)
class AssignmentWeights:
    minutes_per_km: float = 5.0
    size_overflow_penalty: float = 5.0
    minutes_overflow_penalty: float = 1.0


def build_day_anchors(trip: TripInput) -> list[DayAnchor]:
    """Day 1 leaves from the trip start, the last day ends at the trip end, lodging in between."""
    anchors: list[DayAnchor] = []
    for index in range(trip.days):
        start = trip.start if index == 0 else trip.lodging
        end = trip.end if index == trip.days - 1 else trip.lodging
        anchors.append(DayAnchor(start=start, end=end))
    return anchors


def target_per_day(waypoint_count: int, days: int) -> int:
    return max(1, math.ceil(waypoint_count / max(1, days)))


def _anchor_cost(
    centroid: Coordinate,
    anchor: Optional[DayAnchor],
    *,
    distance_fn: DistanceFn,
    minutes_per_km: float,
) -> float:
    if anchor is None:
        return 0.0
    meters = 0.0
    for point in (anchor.start, anchor.end):
        if point is not None:
            meters += distance_fn(centroid.lat, centroid.lng, point.lat, point.lng)
    return meters / 1000.0 * minutes_per_km


def assign_zones_to_days(
    zones: list[Zone],
    days: int,
    anchors: list[DayAnchor],
    *,
    target_per_day: int,
    daily_max_minutes: Optional[float],
    distance_fn: DistanceFn,
    weights: AssignmentWeights = AssignmentWeights(),
    warnings: Optional[list[str]] = None,
) -> list[list[Zone]]:
    """Return ``days`` lists of zones; overflow is penalized, never rejected.

    Locked zones go to their day first. The rest are placed largest first on
    the day with the lowest anchor plus overflow score, ties going to the day
    holding fewer zones and then the earlier day. A lock outside the trip is
    reported on ``warnings`` when given.
    """
    day_zones: list[list[Zone]] = [[] for _ in range(days)]
    day_sizes = [0] * days
    day_minutes = [0.0] * days

    def place(zone: Zone, day: int) -> None:
        day_zones[day].append(zone)
        day_sizes[day] += len(zone.waypoint_ids)
        day_minutes[day] += zone.estimated_minutes

    flexible: list[Zone] = []
    for zone in zones:
        day = zone.fixed_day_index
        if day is None:
            flexible.append(zone)
        elif 0 <= day < days:
            place(zone, day)
        else:
            _logger.warning(
                "Zone %s locked to day %s outside a %s-day trip; placing it freely",
                zone.zone_id,
                day + 1,
                days,
            )
            if warnings is not None:
                warnings.append(
                    f"zone {zone.zone_id} is locked to day {day + 1} outside the {days}-day trip; "
                    f"placed freely with {', '.join(zone.waypoint_ids)}"
                )
            flexible.append(zone)

    for zone in sorted(flexible, key=lambda z: (-z.estimated_minutes, z.zone_id)):
        best: Optional[tuple[float, int, int]] = None
        for day in range(days):
            anchor = anchors[day] if day < len(anchors) else None
            size_overflow = max(0, day_sizes[day] + len(zone.waypoint_ids) - target_per_day)
            minutes_overflow = 0.0
            if daily_max_minutes is not None and daily_max_minutes > 0:
                minutes_overflow = max(0.0, day_minutes[day] + zone.estimated_minutes - daily_max_minutes)
            score = (
                _anchor_cost(zone.centroid, anchor, distance_fn=distance_fn, minutes_per_km=weights.minutes_per_km)
                + size_overflow * weights.size_overflow_penalty
                + minutes_overflow * weights.minutes_overflow_penalty
            )
            candidate = (score, len(day_zones[day]), day)
            if best is None or candidate < best:
                best = candidate
        place(zone, best[2])

    return day_zones


def build_clusters(
    day_zones: list[list[Zone]],
    waypoint_map: Mapping[str, Waypoint],
    anchors: list[DayAnchor],
) -> list[Cluster]:
    clusters: list[Cluster] = []
    for index, zones in enumerate(day_zones):
        waypoint_ids = [wid for zone in zones for wid in zone.waypoint_ids]
        clusters.append(
            Cluster(
                day_index=index + 1,
                waypoint_ids=waypoint_ids,
                zone_ids=[zone.zone_id for zone in zones],
                centroid=centroid_of(waypoint_map[wid].coordinate for wid in waypoint_ids),
                anchor=anchors[index] if index < len(anchors) else DayAnchor(),
            )
        )
    return clusters


__all__ = [
    "AssignmentWeights",
    "assign_zones_to_days",
    "build_clusters",
    "build_day_anchors",
    "target_per_day",
]
