"""Intra-day ordering: fixed commitments as pivots, nearest-neighbor + bounded 2-opt between them."""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

from itinerary_optimizer.domain.models import Coordinate, DayAnchor, ScheduledCommitment, Waypoint
from itinerary_optimizer.domain.planning.zoning import DistanceFn

TravelMinutesFn = Callable[[float], float]
DEFAULT_TWO_OPT_MAX_PASSES = 50


def _dist(a: Optional[Coordinate], b: Optional[Coordinate], distance_fn: DistanceFn) -> float:
    if a is None or b is None:
        return 0.0
    return distance_fn(a.lat, a.lng, b.lat, b.lng)


def route_distance_meters(
    waypoints: list[Waypoint],
    *,
    distance_fn: DistanceFn,
    entry: Optional[Coordinate] = None,
    end: Optional[Coordinate] = None,
) -> float:
    points: list[Optional[Coordinate]] = [entry, *(wp.coordinate for wp in waypoints), end]
    return sum(_dist(points[i], points[i + 1], distance_fn) for i in range(len(points) - 1))


def nearest_neighbor_order(
    waypoints: list[Waypoint],
    *,
    distance_fn: DistanceFn,
    entry: Optional[Coordinate] = None,
    end: Optional[Coordinate] = None,
) -> list[Waypoint]:
    if len(waypoints) <= 1:
        return list(waypoints)
    remaining = sorted(waypoints, key=lambda wp: wp.id)
    ordered: list[Waypoint] = []
    current = entry
    if current is None:
        # open start: begin with the stop farthest from the end
        first = remaining[0]
        if end is not None:
            first = max(remaining, key=lambda wp: (_dist(wp.coordinate, end, distance_fn), wp.id))
        remaining.remove(first)
        ordered.append(first)
        current = first.coordinate
    while remaining:
        nxt = min(remaining, key=lambda wp: (_dist(current, wp.coordinate, distance_fn), wp.id))
        remaining.remove(nxt)
        ordered.append(nxt)
        current = nxt.coordinate
    return ordered


def two_opt_order(
    waypoints: list[Waypoint],
    *,
    distance_fn: DistanceFn,
    entry: Optional[Coordinate] = None,
    end: Optional[Coordinate] = None,
    max_passes: int = DEFAULT_TWO_OPT_MAX_PASSES,
) -> list[Waypoint]:
    if len(waypoints) < 2:
        return list(waypoints)
    best = list(waypoints)
    best_dist = route_distance_meters(best, distance_fn=distance_fn, entry=entry, end=end)
    passes = 0
    improved = True
    while improved and passes < max_passes:
        passes += 1
        improved = False
        for left in range(len(best) - 1):
            for right in range(left + 1, len(best)):
                candidate = best[:left] + list(reversed(best[left : right + 1])) + best[right + 1 :]
                distance = route_distance_meters(candidate, distance_fn=distance_fn, entry=entry, end=end)
                if distance + 1e-6 < best_dist:
                    best = candidate
                    best_dist = distance
                    improved = True
                    break
            if improved:
                break
    return best


class _Gap:
    def __init__(self, entry: Optional[Coordinate], end: Optional[Coordinate], capacity: float) -> None:
        self.entry = entry
        self.end = end
        self.capacity = capacity
        self.members: list[Waypoint] = []
        self.used = 0.0

    def path(self) -> list[Coordinate]:
        points = [wp.coordinate for wp in self.members]
        if self.entry is not None:
            points.insert(0, self.entry)
        if self.end is not None:
            points.append(self.end)
        return points

    def detour(self, waypoint: Waypoint, distance_fn: DistanceFn) -> float:
        """Cheapest insertion detour in meters along the gap's current path."""
        points = self.path()
        if not points:
            return 0.0
        if len(points) == 1:
            return _dist(points[0], waypoint.coordinate, distance_fn)
        return min(
            _dist(points[i], waypoint.coordinate, distance_fn)
            + _dist(waypoint.coordinate, points[i + 1], distance_fn)
            - _dist(points[i], points[i + 1], distance_fn)
            for i in range(len(points) - 1)
        )


def _gap_capacity(start: Optional[int], end: Optional[int]) -> float:
    if start is None or end is None:
        return math.inf
    return float(max(0, end - start))


def order_day(
    waypoints: list[Waypoint],
    anchor: DayAnchor,
    *,
    commitments: Sequence[ScheduledCommitment] = (),
    distance_fn: DistanceFn,
    max_passes: int = DEFAULT_TWO_OPT_MAX_PASSES,
    day_start_minute: Optional[int] = None,
    day_end_minute: Optional[int] = None,
    travel_minutes_fn: Optional[TravelMinutesFn] = None,
) -> list[Waypoint]:
    """Order one day's waypoints from ``anchor.start`` to ``anchor.end``.

    Committed waypoints keep their chronological order and split the day
    into gaps; every free waypoint lands in exactly one gap.
    """
    if not waypoints:
        return []
    commitment_by_wp = {c.waypoint_id: c for c in commitments}
    fixed = sorted(
        (wp for wp in waypoints if wp.id in commitment_by_wp),
        key=lambda wp: (commitment_by_wp[wp.id].start_minute, wp.id),
    )
    free = [wp for wp in waypoints if wp.id not in commitment_by_wp]

    gaps: list[_Gap] = []
    entry = anchor.start
    window_start = day_start_minute
    for wp in fixed:
        commitment = commitment_by_wp[wp.id]
        gaps.append(_Gap(entry, wp.coordinate, _gap_capacity(window_start, commitment.start_minute)))
        entry = wp.coordinate
        window_start = commitment.end_minute
    gaps.append(_Gap(entry, anchor.end, _gap_capacity(window_start, day_end_minute)))

    for wp in sorted(free, key=lambda item: (-item.stay_minutes, item.id)):
        candidates = []
        for index, gap in enumerate(gaps):
            detour = gap.detour(wp, distance_fn)
            need = wp.stay_minutes + (travel_minutes_fn(detour) if travel_minutes_fn else 0.0)
            overflow = max(0.0, gap.used + need - gap.capacity)
            candidates.append((overflow > 0, overflow, detour, index, need))
        _, _, _, index, need = min(candidates)
        # members are reordered per gap below; only the choice of gap matters here
        gaps[index].members.append(wp)
        gaps[index].used += need

    ordered: list[Waypoint] = []
    for index, gap in enumerate(gaps):
        seeded = nearest_neighbor_order(gap.members, distance_fn=distance_fn, entry=gap.entry, end=gap.end)
        ordered.extend(
            two_opt_order(seeded, distance_fn=distance_fn, entry=gap.entry, end=gap.end, max_passes=max_passes)
        )
        if index < len(fixed):
            ordered.append(fixed[index])
    return ordered


__all__ = [
    "DEFAULT_TWO_OPT_MAX_PASSES",
    "TravelMinutesFn",
    "nearest_neighbor_order",
    "order_day",
    "route_distance_meters",
    "two_opt_order",
]
