"""Distance estimation and the travel matrix."""

from __future__ import annotations

import pytest

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.exceptions import InvalidTripInput
from itinerary_optimizer.domain.models import Coordinate, TransitDetails
from itinerary_optimizer.planner.distance import estimate_duration_minutes, haversine_meters
from itinerary_optimizer.planner.distance_matrix import DistanceMatrix
from itinerary_optimizer.shared.exceptions import ToolError


def test_haversine_one_degree_latitude():
    assert abs(haversine_meters(0.0, 0.0, 1.0, 0.0) - 111_195) < 10
    assert haversine_meters(37.5, 127.0, 37.5, 127.0) == 0.0


@pytest.mark.parametrize(
    "mode, meters, minutes",
    [
        (TransportMode.WALKING, 660, 10),
        (TransportMode.PUBLIC_TRANSIT, 3300, 10),
        (TransportMode.DRIVING, 5001, 11),
        ("walking", 0, 0),
    ],
)
def test_duration_is_ceiling_of_distance_over_speed(mode, meters, minutes):
    assert estimate_duration_minutes(meters, mode) == minutes


def test_unknown_mode_raises_tool_error():
    with pytest.raises(ToolError):
        estimate_duration_minutes(100, "teleport")


def _matrix() -> DistanceMatrix:
    return DistanceMatrix.estimate(
        {
            "a": Coordinate(lat=37.50, lng=127.00),
            "b": Coordinate(lat=37.51, lng=127.00),
        },
        TransportMode.PUBLIC_TRANSIT,
    )


def test_estimate_fills_off_diagonal():
    matrix = _matrix()

    assert len(matrix) == 2
    assert matrix.distances[0][0] == 0.0
    assert matrix.distances[0][1] == matrix.distances[1][0] > 1000
    assert matrix.durations[0][1] == estimate_duration_minutes(matrix.distances[0][1], TransportMode.PUBLIC_TRANSIT)


def test_segment_reflects_written_entry():
    matrix = _matrix()
    details = TransitDetails(total_fare=1400, transfer_count=1)
    i, j = matrix.index_of("a"), matrix.index_of("b")

    matrix.set_entry(i, j, distance=1800.0, duration=9, mode=TransportMode.PUBLIC_TRANSIT, polyline="abc", transit_details=details)
    segment = matrix.segment("a", "b")

    assert segment.distance == 1800.0
    assert segment.duration == 9
    assert segment.fare == 1400
    assert segment.polyline == "abc"
    # the reverse direction is untouched
    assert matrix.segment("b", "a").polyline is None


def test_unknown_place_rejected():
    with pytest.raises(InvalidTripInput):
        _matrix().index_of("zzz")


def test_duplicate_places_rejected():
    with pytest.raises(InvalidTripInput):
        DistanceMatrix(["a", "a"], {"a": Coordinate(lat=0, lng=0)})
