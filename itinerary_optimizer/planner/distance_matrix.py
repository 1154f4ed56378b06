"""Index-addressed travel matrix over the places of one planning run."""

from __future__ import annotations

from typing import Callable, Mapping, Optional

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.exceptions import InvalidTripInput
from itinerary_optimizer.domain.models import Coordinate, RouteSegment, TransitDetails
from itinerary_optimizer.planner.distance import estimate_duration_minutes, haversine_meters

DistanceFn = Callable[[float, float, float, float], float]


class DistanceMatrix:
    """Asymmetric ``places x places`` arena.

    ``places`` order is fixed at construction; later writes address cells by
    index and never resize the arena.
    """

    def __init__(self, places: list[str], coordinates: Mapping[str, Coordinate]) -> None:
        if len(set(places)) != len(places):
            raise InvalidTripInput("distance matrix places must be unique")
        self.places = list(places)
        self.index = {place_id: i for i, place_id in enumerate(self.places)}
        self.coordinates = {place_id: coordinates[place_id] for place_id in self.places}
        size = len(self.places)
        self.distances: list[list[float]] = [[0.0] * size for _ in range(size)]
        self.durations: list[list[int]] = [[0] * size for _ in range(size)]
        self.modes: list[list[TransportMode]] = [[TransportMode.PUBLIC_TRANSIT] * size for _ in range(size)]
        self.polylines: list[list[Optional[str]]] = [[None] * size for _ in range(size)]
        self.transit_details: list[list[Optional[TransitDetails]]] = [[None] * size for _ in range(size)]

    @classmethod
    def estimate(
        cls,
        coordinates: Mapping[str, Coordinate],
        mode: TransportMode,
        *,
        distance_fn: DistanceFn = haversine_meters,
    ) -> "DistanceMatrix":
        """Fill every off-diagonal cell from straight-line distance and mode speed."""
        matrix = cls(list(coordinates), coordinates)
        for i, from_id in enumerate(matrix.places):
            a = matrix.coordinates[from_id]
            for j, to_id in enumerate(matrix.places):
                matrix.modes[i][j] = mode
                if i == j:
                    continue
                b = matrix.coordinates[to_id]
                distance = float(round(distance_fn(a.lat, a.lng, b.lat, b.lng)))
                matrix.distances[i][j] = distance
                matrix.durations[i][j] = estimate_duration_minutes(distance, mode)
        return matrix

    def __len__(self) -> int:
        return len(self.places)

    def index_of(self, place_id: str) -> int:
        try:
            return self.index[place_id]
        except KeyError:
            raise InvalidTripInput(f"unknown place in distance matrix: {place_id}") from None

    def set_entry(
        self,
        i: int,
        j: int,
        *,
        distance: float,
        duration: int,
        mode: TransportMode,
        polyline: Optional[str] = None,
        transit_details: Optional[TransitDetails] = None,
    ) -> None:
        self.distances[i][j] = distance
        self.durations[i][j] = duration
        self.modes[i][j] = mode
        self.polylines[i][j] = polyline
        self.transit_details[i][j] = transit_details

    def segment(self, from_id: str, to_id: str) -> RouteSegment:
        i, j = self.index_of(from_id), self.index_of(to_id)
        details = self.transit_details[i][j]
        return RouteSegment(
            mode=self.modes[i][j],
            distance=self.distances[i][j],
            duration=self.durations[i][j],
            fare=details.total_fare if details is not None else None,
            polyline=self.polylines[i][j],
            transit_details=details,
        )


__all__ = ["DistanceMatrix"]
