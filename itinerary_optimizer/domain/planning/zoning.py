"""Density-adaptive spatial zoning and zone splitting."""

from __future__ import annotations

import math
import statistics
from collections import defaultdict
from typing import Callable, Iterable, Mapping, Optional

from itinerary_optimizer.domain.models import Coordinate, Waypoint, Zone

DistanceFn = Callable[[float, float, float, float], float]
DEFAULT_K_FOR_RADIUS = 3
DEFAULT_RADIUS_MULTIPLIER = 1.2
DEFAULT_SPLIT_SIZE_FACTOR = 1.5
METERS_PER_DEGREE_LAT = math.pi * 6_371_000.0 / 180.0


class _UnionFind:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, index: int) -> int:
        root = index
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[index] != root:
            self.parent[index], index = root, self.parent[index]
        return root

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1


def _distance(a: Waypoint, b: Waypoint, distance_fn: DistanceFn) -> float:
    return distance_fn(a.coordinate.lat, a.coordinate.lng, b.coordinate.lat, b.coordinate.lng)


def estimate_radius_meters(
    waypoints: list[Waypoint],
    *,
    distance_fn: DistanceFn,
    k_for_radius: int = DEFAULT_K_FOR_RADIUS,
    radius_multiplier: float = DEFAULT_RADIUS_MULTIPLIER,
) -> float:
    """Median k-th nearest neighbour distance, scaled by ``radius_multiplier``."""
    if len(waypoints) <= 1:
        return 0.0
    k = max(1, int(k_for_radius))
    kth: list[float] = []
    for i, current in enumerate(waypoints):
        neighbour = sorted(
            _distance(current, other, distance_fn) for j, other in enumerate(waypoints) if j != i
        )
        kth.append(neighbour[min(k, len(neighbour)) - 1])
    median = statistics.median(kth)
    if not math.isfinite(median) or median <= 0:
        return 0.0
    return median * radius_multiplier


def centroid_of(coordinates: Iterable[Coordinate]) -> Optional[Coordinate]:
    coords = list(coordinates)
    if not coords:
        return None
    return Coordinate(
        lat=sum(c.lat for c in coords) / len(coords),
        lng=sum(c.lng for c in coords) / len(coords),
    )


def build_zone(
    zone_id: str,
    waypoint_ids: list[str],
    waypoint_map: Mapping[str, Waypoint],
    *,
    fixed_ids: Iterable[str] = (),
    fixed_day_index: Optional[int] = None,
) -> Zone:
    members = [waypoint_map[wid] for wid in waypoint_ids]
    fixed = set(fixed_ids)
    return Zone(
        zone_id=zone_id,
        waypoint_ids=list(waypoint_ids),
        centroid=centroid_of(wp.coordinate for wp in members),
        estimated_minutes=float(sum(wp.stay_minutes for wp in members)),
        has_fixed=any(wp.is_fixed or wp.day_lock is not None or wp.id in fixed for wp in members),
        fixed_day_index=fixed_day_index,
    )


def _grid_steps(waypoints: list[Waypoint], radius: float) -> tuple[float, float]:
    lat_step = radius / METERS_PER_DEGREE_LAT
    max_abs_lat = min(89.9, max(abs(wp.coordinate.lat) for wp in waypoints))
    lng_step = radius / (METERS_PER_DEGREE_LAT * math.cos(math.radians(max_abs_lat)))
    return lat_step, lng_step


def build_zones(
    waypoints: list[Waypoint],
    *,
    distance_fn: DistanceFn,
    k_for_radius: int = DEFAULT_K_FOR_RADIUS,
    radius_multiplier: float = DEFAULT_RADIUS_MULTIPLIER,
    fixed_ids: Iterable[str] = (),
) -> list[Zone]:
    """Group waypoints whose pairwise chain distance stays within the local radius.

    Zones are numbered ``zone-1``, ``zone-2``, ... in order of their first
    member in ``waypoints``; members keep input order.
    """
    if not waypoints:
        return []
    fixed = set(fixed_ids)
    waypoint_map = {wp.id: wp for wp in waypoints}
    radius = estimate_radius_meters(
        waypoints,
        distance_fn=distance_fn,
        k_for_radius=k_for_radius,
        radius_multiplier=radius_multiplier,
    )

    uf = _UnionFind(len(waypoints))
    if radius <= 0:
        # only coincident points share a zone
        seen: dict[tuple[float, float], int] = {}
        for index, wp in enumerate(waypoints):
            key = (wp.coordinate.lat, wp.coordinate.lng)
            if key in seen:
                uf.union(seen[key], index)
            else:
                seen[key] = index
    else:
        lat_step, lng_step = _grid_steps(waypoints, radius)
        cells: dict[tuple[int, int], list[int]] = defaultdict(list)
        cell_of: list[tuple[int, int]] = []
        for index, wp in enumerate(waypoints):
            cell = (
                math.floor(wp.coordinate.lat / lat_step),
                math.floor(wp.coordinate.lng / lng_step),
            )
            cells[cell].append(index)
            cell_of.append(cell)
        for index, wp in enumerate(waypoints):
            row, col = cell_of[index]
            for d_row in (-1, 0, 1):
                for d_col in (-1, 0, 1):
                    for other in cells.get((row + d_row, col + d_col), ()):
                        if other <= index:
                            continue
                        if _distance(wp, waypoints[other], distance_fn) <= radius:
                            uf.union(index, other)

    groups: dict[int, list[str]] = {}
    for index, wp in enumerate(waypoints):
        groups.setdefault(uf.find(index), []).append(wp.id)

    return [
        build_zone(f"zone-{number}", ids, waypoint_map, fixed_ids=fixed)
        for number, ids in enumerate(groups.values(), start=1)
    ]


def split_zone_by_fixed_day(
    zone: Zone,
    waypoint_map: Mapping[str, Waypoint],
    fixed_day_by_id: Mapping[str, int],
) -> list[Zone]:
    """Separate members locked to different days (0-based day indices).

    A zone locked to a single day keeps its id and carries its free members
    along; otherwise each day gets ``<id>-fixed-<day>`` and free members move
    to ``<id>-free``.
    """
    day_groups: dict[int, list[str]] = {}
    free_ids: list[str] = []
    for wid in zone.waypoint_ids:
        day = fixed_day_by_id.get(wid)
        if day is None:
            free_ids.append(wid)
        else:
            day_groups.setdefault(day, []).append(wid)

    if not day_groups:
        return [zone]
    fixed = set(fixed_day_by_id)
    if len(day_groups) == 1:
        (day, ids), = day_groups.items()
        return [build_zone(zone.zone_id, ids + free_ids, waypoint_map, fixed_ids=fixed, fixed_day_index=day)]

    parts = [
        build_zone(f"{zone.zone_id}-fixed-{day + 1}", ids, waypoint_map, fixed_ids=fixed, fixed_day_index=day)
        for day, ids in sorted(day_groups.items())
    ]
    if free_ids:
        parts.append(build_zone(f"{zone.zone_id}-free", free_ids, waypoint_map, fixed_ids=fixed))
    return parts


def max_zone_size(target_per_day: int, split_size_factor: float = DEFAULT_SPLIT_SIZE_FACTOR) -> int:
    return max(1, math.ceil(target_per_day * split_size_factor))


def _dominant_axis_order(ids: list[str], waypoint_map: Mapping[str, Waypoint]) -> list[str]:
    coords = [waypoint_map[wid].coordinate for wid in ids]
    lat_range = max(c.lat for c in coords) - min(c.lat for c in coords)
    lng_range = max(c.lng for c in coords) - min(c.lng for c in coords)
    if lat_range >= lng_range:
        return sorted(ids, key=lambda wid: (waypoint_map[wid].coordinate.lat, wid))
    return sorted(ids, key=lambda wid: (waypoint_map[wid].coordinate.lng, wid))


def _chunk_by_minutes(ids: list[str], waypoint_map: Mapping[str, Waypoint], budget: float) -> list[list[str]]:
    chunks: list[list[str]] = []
    current: list[str] = []
    used = 0.0
    for wid in ids:
        stay = waypoint_map[wid].stay_minutes
        if current and used + stay > budget:
            chunks.append(current)
            current, used = [], 0.0
        current.append(wid)
        used += stay
    if current:
        chunks.append(current)
    return chunks


def split_zone_if_over_limit(
    zone: Zone,
    waypoint_map: Mapping[str, Waypoint],
    *,
    daily_max_minutes: Optional[float],
    max_size: int,
    minutes_factor: float = 1.0,
    reserved_minutes: float = 0.0,
    locked_ids: Optional[Iterable[str]] = None,
) -> list[Zone]:
    """Split an oversized zone along its dominant axis into ``<id>-part-<n>``.

    ``reserved_minutes`` shrinks the budget of a locked zone by time already
    claimed on its day. For a locked zone only parts holding a member of
    ``locked_ids`` keep ``fixed_day_index``.
    """
    size = len(zone.waypoint_ids)
    size_limit = max(1, int(max_size))
    budget: Optional[float] = None
    if daily_max_minutes is not None and daily_max_minutes > 0:
        budget = daily_max_minutes * minutes_factor
        if zone.fixed_day_index is not None:
            budget -= reserved_minutes
        budget = max(0.0, budget)

    over_minutes = budget is not None and zone.estimated_minutes > budget
    if size <= 1 or (size <= size_limit and not over_minutes):
        return [zone]

    ordered = _dominant_axis_order(zone.waypoint_ids, waypoint_map)
    bucket_count = max(2, math.ceil(size / size_limit))
    if budget:
        bucket_count = max(bucket_count, math.ceil(zone.estimated_minutes / budget))
    bucket_count = min(bucket_count, size)
    chunk_size = math.ceil(size / bucket_count)
    chunks = [ordered[i:i + chunk_size] for i in range(0, size, chunk_size)]
    if budget is not None:
        chunks = [piece for chunk in chunks for piece in _chunk_by_minutes(chunk, waypoint_map, budget)]

    if locked_ids is None:
        locked = {wid for wid in zone.waypoint_ids if waypoint_map[wid].is_fixed or waypoint_map[wid].day_lock is not None}
    else:
        locked = set(locked_ids)

    parts: list[Zone] = []
    for number, ids in enumerate(chunks, start=1):
        keeps_lock = zone.fixed_day_index is not None and any(wid in locked for wid in ids)
        parts.append(
            build_zone(
                f"{zone.zone_id}-part-{number}",
                ids,
                waypoint_map,
                fixed_ids=locked,
                fixed_day_index=zone.fixed_day_index if keeps_lock else None,
            )
        )
    return parts


__all__ = [
    "DEFAULT_K_FOR_RADIUS",
    "DEFAULT_RADIUS_MULTIPLIER",
    "DEFAULT_SPLIT_SIZE_FACTOR",
    "DistanceFn",
    "build_zone",
    "build_zones",
    "centroid_of",
    "estimate_radius_meters",
    "max_zone_size",
    "split_zone_by_fixed_day",
    "split_zone_if_over_limit",
]
