"""Density-adaptive zoning and zone splitting."""

from __future__ import annotations

from itinerary_optimizer.domain.models import Coordinate, Waypoint
from itinerary_optimizer.domain.planning.zoning import (
    build_zone,
    build_zones,
    estimate_radius_meters,
    max_zone_size,
    split_zone_by_fixed_day,
    split_zone_if_over_limit,
)
from itinerary_optimizer.planner.distance import haversine_meters


def _wp(wid: str, lat: float, lng: float, stay: int = 60, **kwargs) -> Waypoint:
    return Waypoint(id=wid, name=wid, coordinate=Coordinate(lat=lat, lng=lng), stay_minutes=stay, **kwargs)


def _two_groups() -> list[Waypoint]:
    west = [_wp(f"w{i}", 37.50 + i * 0.001, 127.00) for i in range(4)]
    east = [_wp(f"e{i}", 37.60 + i * 0.001, 127.10) for i in range(4)]
    return west + east


def test_radius_is_scaled_median_kth_neighbour():
    points = [_wp(f"p{i}", 37.5, 127.0 + i * 0.01) for i in range(5)]
    base = estimate_radius_meters(points, distance_fn=haversine_meters, radius_multiplier=1.0)
    scaled = estimate_radius_meters(points, distance_fn=haversine_meters, radius_multiplier=1.2)

    assert base > 0
    assert abs(scaled - base * 1.2) < 1e-6


def test_radius_of_single_point_is_zero():
    assert estimate_radius_meters([_wp("solo", 37.5, 127.0)], distance_fn=haversine_meters) == 0.0


def test_build_zones_separates_distant_groups():
    waypoints = _two_groups()
    zones = build_zones(waypoints, distance_fn=haversine_meters)

    assert [z.zone_id for z in zones] == ["zone-1", "zone-2"]
    assert zones[0].waypoint_ids == ["w0", "w1", "w2", "w3"]
    assert zones[1].waypoint_ids == ["e0", "e1", "e2", "e3"]
    assert zones[0].estimated_minutes == 240


def test_build_zones_partitions_waypoints():
    waypoints = _two_groups() + [_wp("far", 35.1, 129.0)]
    zones = build_zones(waypoints, distance_fn=haversine_meters)

    assigned = [wid for zone in zones for wid in zone.waypoint_ids]
    assert sorted(assigned) == sorted(wp.id for wp in waypoints)
    assert len(assigned) == len(set(assigned))


def test_zero_radius_only_merges_coincident_points():
    waypoints = [
        _wp("a1", 37.5, 127.0),
        _wp("a2", 37.5, 127.0),
        _wp("b1", 37.6, 127.1),
        _wp("b2", 37.6, 127.1),
    ]
    zones = build_zones(waypoints, distance_fn=haversine_meters, k_for_radius=1)

    assert [z.waypoint_ids for z in zones] == [["a1", "a2"], ["b1", "b2"]]


def test_committed_members_mark_zone_fixed():
    zones = build_zones(_two_groups(), distance_fn=haversine_meters, fixed_ids={"e2"})

    assert [z.has_fixed for z in zones] == [False, True]


def test_split_by_fixed_day_keeps_single_day_zone():
    waypoints = [_wp("a", 37.5, 127.0), _wp("b", 37.5, 127.001), _wp("c", 37.5, 127.002)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", ["a", "b", "c"], wmap)

    (part,) = split_zone_by_fixed_day(zone, wmap, {"b": 1})

    assert part.zone_id == "zone-1"
    assert part.fixed_day_index == 1
    assert part.waypoint_ids == ["b", "a", "c"]


def test_split_by_fixed_day_separates_days():
    waypoints = [_wp("a", 37.5, 127.0), _wp("b", 37.5, 127.001), _wp("c", 37.5, 127.002)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", ["a", "b", "c"], wmap)

    parts = split_zone_by_fixed_day(zone, wmap, {"a": 0, "b": 2})

    assert [(p.zone_id, p.waypoint_ids, p.fixed_day_index) for p in parts] == [
        ("zone-1-fixed-1", ["a"], 0),
        ("zone-1-fixed-3", ["b"], 2),
        ("zone-1-free", ["c"], None),
    ]


def test_split_by_fixed_day_without_locks_is_identity():
    wmap = {"a": _wp("a", 37.5, 127.0)}
    zone = build_zone("zone-1", ["a"], wmap)
    assert split_zone_by_fixed_day(zone, wmap, {}) == [zone]


def test_max_zone_size():
    assert max_zone_size(4) == 6
    assert max_zone_size(3, 1.5) == 5
    assert max_zone_size(0) == 1


def test_split_oversized_zone_along_dominant_axis():
    waypoints = [_wp(f"p{i}", 37.5, 127.0 + (5 - i) * 0.001) for i in range(6)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", [wp.id for wp in waypoints], wmap)

    parts = split_zone_if_over_limit(zone, wmap, daily_max_minutes=None, max_size=3)

    assert [p.zone_id for p in parts] == ["zone-1-part-1", "zone-1-part-2"]
    # sorted west to east
    assert parts[0].waypoint_ids == ["p5", "p4", "p3"]
    assert parts[1].waypoint_ids == ["p2", "p1", "p0"]


def test_split_by_minutes_budget():
    waypoints = [_wp(f"p{i}", 37.5 + i * 0.001, 127.0, stay=200) for i in range(4)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", [wp.id for wp in waypoints], wmap)

    parts = split_zone_if_over_limit(zone, wmap, daily_max_minutes=500, max_size=10)

    assert len(parts) >= 2
    assert all(p.estimated_minutes <= 500 for p in parts)
    assert sorted(wid for p in parts for wid in p.waypoint_ids) == ["p0", "p1", "p2", "p3"]


def test_zone_within_limits_is_untouched():
    waypoints = [_wp(f"p{i}", 37.5 + i * 0.001, 127.0) for i in range(3)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", [wp.id for wp in waypoints], wmap)

    assert split_zone_if_over_limit(zone, wmap, daily_max_minutes=600, max_size=3) == [zone]


def test_split_locked_zone_keeps_lock_only_on_locked_part():
    waypoints = [_wp(f"p{i}", 37.5 + i * 0.001, 127.0) for i in range(4)]
    wmap = {wp.id: wp for wp in waypoints}
    zone = build_zone("zone-1", [wp.id for wp in waypoints], wmap, fixed_ids={"p0"}, fixed_day_index=0)

    parts = split_zone_if_over_limit(zone, wmap, daily_max_minutes=None, max_size=2, locked_ids={"p0"})

    assert [(p.waypoint_ids, p.fixed_day_index) for p in parts] == [(["p0", "p1"], 0), (["p2", "p3"], None)]
