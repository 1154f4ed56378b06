"""Route detail providers with failure diagnostics."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol

from itinerary_optimizer.adapters.tool_factory import get_route_tool
from itinerary_optimizer.config.settings import resolve_route_provider_default
from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.models import Coordinate
from itinerary_optimizer.tools.interfaces import RouteDetail, RouteQuery

_MAX_DIAGNOSTIC_EVENTS = 50
_LOGGER = logging.getLogger("itinerary-optimizer.routing")


class RouteDetailProvider(Protocol):
    def fetch_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
        *,
        timeout: Optional[float] = None,
    ) -> RouteDetail:
        """Return the route between two points or raise."""

    def get_diagnostics(self) -> dict[str, Any]:
        """Return routing diagnostics for observability."""


def _query(origin: Coordinate, destination: Coordinate, mode: TransportMode) -> RouteQuery:
    return RouteQuery(
        origin_lat=origin.lat,
        origin_lng=origin.lng,
        dest_lat=destination.lat,
        dest_lng=destination.lng,
        mode=mode,
    )


class EstimateRouteProvider:
    """Offline haversine estimates; never fails."""

    def __init__(self) -> None:
        self._route_tool = get_route_tool("estimate")

    def fetch_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
        *,
        timeout: Optional[float] = None,
    ) -> RouteDetail:
        _ = timeout
        return self._route_tool.estimate_route(_query(origin, destination, mode))

    def get_diagnostics(self) -> dict[str, Any]:
        return {"routing_source": "estimate", "failure_count": 0, "events": []}


class TransitApiRouteProvider:
    """Live public-transit search; other modes use the offline estimate."""

    def __init__(self) -> None:
        self._route_tool = get_route_tool("transit")
        self._estimate = EstimateRouteProvider()
        self._failure_count = 0
        self._diagnostic_events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def _record_failure(self, *, origin: Coordinate, destination: Coordinate, error: Exception) -> None:
        event = dict(
            routing_source="transit",
            origin=[origin.lat, origin.lng],
            destination=[destination.lat, destination.lng],
            error_type=type(error).__name__,
            error_message=str(error),
        )
        # called from enrichment worker threads
        with self._lock:
            self._failure_count += 1
            self._diagnostic_events.append(event)
            del self._diagnostic_events[:-_MAX_DIAGNOSTIC_EVENTS]
        _LOGGER.warning(
            "transit route lookup failed: (%s,%s) -> (%s,%s) error=%s",
            origin.lat,
            origin.lng,
            destination.lat,
            destination.lng,
            type(error).__name__,
        )

    def fetch_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
        *,
        timeout: Optional[float] = None,
    ) -> RouteDetail:
        if TransportMode(mode) != TransportMode.PUBLIC_TRANSIT:
            return self._estimate.fetch_route(origin, destination, mode)
        try:
            return self._route_tool.estimate_route(_query(origin, destination, mode), timeout=timeout)
        except Exception as exc:
            self._record_failure(origin=origin, destination=destination, error=exc)
            raise

    def get_failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def get_diagnostics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "routing_source": "transit",
                "failure_count": self._failure_count,
                "events": list(self._diagnostic_events),
            }


def build_routing_provider(mode: Optional[str] = None) -> RouteDetailProvider:
    resolved = str(mode or "").strip().lower() or resolve_route_provider_default()
    if resolved == "transit":
        return TransitApiRouteProvider()
    if resolved == "auto":
        try:
            return TransitApiRouteProvider()
        except Exception as exc:
            _LOGGER.warning(
                "routing provider auto fallback to estimate during init: %s",
                type(exc).__name__,
            )
            return EstimateRouteProvider()
    return EstimateRouteProvider()


__all__ = [
    "EstimateRouteProvider",
    "RouteDetailProvider",
    "TransitApiRouteProvider",
    "build_routing_provider",
]
