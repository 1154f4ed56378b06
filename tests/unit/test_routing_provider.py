"""Routing provider selection and failure diagnostics."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

import itinerary_optimizer.planner.routing_provider as rp
from itinerary_optimizer.adapters.route import estimate as estimate_tool
from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.models import Coordinate
from itinerary_optimizer.shared.exceptions import KeyMissingError, ToolError
from itinerary_optimizer.tools.interfaces import RouteDetail

ORIGIN = Coordinate(lat=37.5547, lng=126.9707)
DESTINATION = Coordinate(lat=37.5796, lng=126.9770)


def _tool_factory(transit_tool):
    def get_route_tool(provider="estimate"):
        return transit_tool if provider == "transit" else estimate_tool

    return get_route_tool


def test_estimate_provider_never_fails():
    provider = rp.EstimateRouteProvider()

    detail = provider.fetch_route(ORIGIN, DESTINATION, TransportMode.PUBLIC_TRANSIT)

    assert detail.distance_meters > 0
    assert detail.duration_minutes > 0
    assert provider.get_diagnostics()["failure_count"] == 0


def test_transit_provider_records_failure_and_reraises(monkeypatch):
    class _FailRouteTool:
        @staticmethod
        def estimate_route(_params, *, timeout=None):
            raise ToolError("odsay_transit", "route backend down")

    monkeypatch.setattr(rp, "get_route_tool", _tool_factory(_FailRouteTool))
    provider = rp.TransitApiRouteProvider()

    with pytest.raises(ToolError):
        provider.fetch_route(ORIGIN, DESTINATION, TransportMode.PUBLIC_TRANSIT)

    diagnostics = provider.get_diagnostics()
    assert provider.get_failure_count() == 1
    assert diagnostics["events"][0]["error_type"] == "ToolError"


def test_transit_provider_uses_estimate_for_walking(monkeypatch):
    class _UnusedRouteTool:
        @staticmethod
        def estimate_route(_params, *, timeout=None):
            raise AssertionError("transit search must not run for walking")

    monkeypatch.setattr(rp, "get_route_tool", _tool_factory(_UnusedRouteTool))
    provider = rp.TransitApiRouteProvider()

    detail = provider.fetch_route(ORIGIN, DESTINATION, TransportMode.WALKING)

    assert detail.mode == TransportMode.WALKING
    assert provider.get_failure_count() == 0


def test_transit_provider_returns_live_route(monkeypatch):
    class _OkRouteTool:
        @staticmethod
        def estimate_route(_params, *, timeout=None):
            return RouteDetail(distance_meters=3100.0, duration_minutes=14)

    monkeypatch.setattr(rp, "get_route_tool", _tool_factory(_OkRouteTool))
    provider = rp.TransitApiRouteProvider()

    detail = provider.fetch_route(ORIGIN, DESTINATION, TransportMode.PUBLIC_TRANSIT, timeout=3)

    assert detail.duration_minutes == 14
    assert provider.get_diagnostics()["events"] == []


def test_build_routing_provider_defaults_to_estimate():
    assert isinstance(rp.build_routing_provider(), rp.EstimateRouteProvider)


def test_build_routing_provider_prefers_transit_when_key_exists(monkeypatch):
    monkeypatch.setenv("ODSAY_API_KEY", "odsay-key")
    assert isinstance(rp.build_routing_provider(), rp.TransitApiRouteProvider)


def test_explicit_transit_without_key_raises():
    with pytest.raises(KeyMissingError):
        rp.build_routing_provider("transit")


def test_auto_falls_back_to_estimate_without_key():
    assert isinstance(rp.build_routing_provider("auto"), rp.EstimateRouteProvider)


def test_routing_provider_env_override(monkeypatch):
    monkeypatch.setenv("ODSAY_API_KEY", "odsay-key")
    monkeypatch.setenv("ROUTING_PROVIDER", "estimate")
    assert isinstance(rp.build_routing_provider(), rp.EstimateRouteProvider)


def test_concurrent_failures_are_all_recorded(monkeypatch):
    workers = 8
    rounds = 25
    barrier = threading.Barrier(workers)

    class _FailRouteTool:
        @staticmethod
        def estimate_route(_params, *, timeout=None):
            raise ToolError("odsay_transit", "route backend down")

    monkeypatch.setattr(rp, "get_route_tool", _tool_factory(_FailRouteTool))
    provider = rp.TransitApiRouteProvider()

    def fail_repeatedly():
        barrier.wait()
        for _ in range(rounds):
            with pytest.raises(ToolError):
                provider.fetch_route(ORIGIN, DESTINATION, TransportMode.PUBLIC_TRANSIT)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        for future in [pool.submit(fail_repeatedly) for _ in range(workers)]:
            future.result()

    diagnostics = provider.get_diagnostics()
    assert diagnostics["failure_count"] == workers * rounds
    assert len(diagnostics["events"]) == 50
