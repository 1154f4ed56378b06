"""Intra-day ordering around fixed commitments."""

from __future__ import annotations

import datetime as dt

from itinerary_optimizer.domain.models import Coordinate, DayAnchor, ScheduledCommitment, Waypoint
from itinerary_optimizer.domain.planning.ordering import (
    nearest_neighbor_order,
    order_day,
    route_distance_meters,
    two_opt_order,
)
from itinerary_optimizer.planner.distance import haversine_meters

DAY = dt.date(2025, 5, 1)
WEST = Coordinate(lat=37.5, lng=126.99)
EAST = Coordinate(lat=37.5, lng=127.06)


def _wp(wid: str, lng: float, lat: float = 37.5, stay: int = 60) -> Waypoint:
    return Waypoint(id=wid, name=wid, coordinate=Coordinate(lat=lat, lng=lng), stay_minutes=stay)


def _commit(wp: Waypoint, start: str, end: str) -> ScheduledCommitment:
    return ScheduledCommitment(
        commitment_id=f"c-{wp.id}", waypoint_id=wp.id, date=DAY, start_time=start, end_time=end
    )


def _ids(waypoints) -> list[str]:
    return [wp.id for wp in waypoints]


def test_nearest_neighbor_walks_from_entry():
    points = [_wp("c", 127.03), _wp("a", 127.01), _wp("d", 127.04), _wp("b", 127.02)]

    ordered = nearest_neighbor_order(points, distance_fn=haversine_meters, entry=WEST)

    assert _ids(ordered) == ["a", "b", "c", "d"]


def test_nearest_neighbor_open_start_begins_far_from_end():
    points = [_wp("a", 127.01), _wp("b", 127.02), _wp("c", 127.03)]

    ordered = nearest_neighbor_order(points, distance_fn=haversine_meters, end=EAST)

    assert _ids(ordered) == ["a", "b", "c"]


def test_two_opt_removes_detour():
    zigzag = [_wp("a", 127.01), _wp("c", 127.03), _wp("b", 127.02), _wp("d", 127.04)]
    before = route_distance_meters(zigzag, distance_fn=haversine_meters, entry=WEST, end=EAST)

    improved = two_opt_order(zigzag, distance_fn=haversine_meters, entry=WEST, end=EAST)
    after = route_distance_meters(improved, distance_fn=haversine_meters, entry=WEST, end=EAST)

    assert _ids(improved) == ["a", "b", "c", "d"]
    assert after < before


def test_two_opt_with_zero_passes_keeps_order():
    zigzag = [_wp("a", 127.01), _wp("c", 127.03), _wp("b", 127.02)]
    assert _ids(two_opt_order(zigzag, distance_fn=haversine_meters, entry=WEST, max_passes=0)) == ["a", "c", "b"]


def test_route_distance_skips_missing_anchors():
    points = [_wp("a", 127.01), _wp("b", 127.02)]
    open_route = route_distance_meters(points, distance_fn=haversine_meters)
    anchored = route_distance_meters(points, distance_fn=haversine_meters, entry=WEST)

    assert open_route > 0
    assert anchored > open_route


def test_order_day_without_commitments_visits_every_waypoint():
    points = [_wp("c", 127.03), _wp("a", 127.01), _wp("b", 127.02)]

    ordered = order_day(points, DayAnchor(start=WEST, end=EAST), distance_fn=haversine_meters)

    assert _ids(ordered) == ["a", "b", "c"]


def test_order_day_keeps_fixed_waypoints_chronological():
    late = _wp("late", 127.01)
    early = _wp("early", 127.04)
    free = [_wp("x", 127.02), _wp("y", 127.03)]
    commitments = [_commit(late, "16:00", "17:00"), _commit(early, "11:00", "12:00")]

    ordered = order_day(
        [late, *free, early],
        DayAnchor(start=WEST, end=EAST),
        commitments=commitments,
        distance_fn=haversine_meters,
    )

    ids = _ids(ordered)
    assert sorted(ids) == ["early", "late", "x", "y"]
    assert ids.index("early") < ids.index("late")


def test_free_waypoint_avoids_gap_without_room():
    fixed = _wp("show", 127.05)
    near_start = _wp("cafe", 126.995, stay=60)

    ordered = order_day(
        [near_start, fixed],
        DayAnchor(start=WEST),
        commitments=[_commit(fixed, "10:30", "11:30")],
        distance_fn=haversine_meters,
        day_start_minute=600,
        day_end_minute=1320,
    )

    assert _ids(ordered) == ["show", "cafe"]


def test_order_day_empty():
    assert order_day([], DayAnchor(), distance_fn=haversine_meters) == []


def test_gap_order_comes_from_route_not_insertion_sequence():
    # longest stay is placed first but sits in the middle of the route
    free = [_wp("far", 127.05, stay=30), _wp("mid", 127.03, stay=180), _wp("near", 127.00, stay=60)]
    anchor = DayAnchor(start=WEST, end=EAST)

    ordered = order_day(free, anchor, distance_fn=haversine_meters)
    expected = two_opt_order(
        nearest_neighbor_order(free, distance_fn=haversine_meters, entry=WEST, end=EAST),
        distance_fn=haversine_meters,
        entry=WEST,
        end=EAST,
    )

    assert _ids(ordered) == _ids(expected) == ["near", "mid", "far"]
