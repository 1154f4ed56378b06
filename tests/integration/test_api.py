"""HTTP API tests."""

from __future__ import annotations

import datetime as dt

from fastapi.testclient import TestClient

from itinerary_optimizer import __version__
from itinerary_optimizer.api.main import app

client = TestClient(app)

START_DATE = dt.date(2025, 5, 1)


def _waypoints() -> list[dict]:
    centers = {"a": (37.50, 127.00), "b": (37.56, 126.97)}
    return [
        {"id": f"{p}{i}", "name": f"Place {p}{i}", "coordinate": {"lat": lat + i * 0.001, "lng": lng}, "stay_minutes": 60}
        for p, (lat, lng) in centers.items()
        for i in range(4)
    ]


def _plan_payload(**trip_overrides) -> dict:
    trip = {
        "days": 2,
        "start_date": START_DATE.isoformat(),
        "start": {"lat": 37.53, "lng": 127.01},
        "lodging": {"lat": 37.53, "lng": 127.01},
        "waypoints": _waypoints(),
    }
    trip.update(trip_overrides)
    return {"trip": trip, "enrich_routes": False}


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "version": __version__}
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_diagnostics_without_keys():
    data = client.get("/diagnostics").json()
    assert data["tools"] == {"route": "estimate"}
    assert data["route_provider"] == "estimate"
    assert "route" in data["cache"]


def test_plan_returns_every_day():
    r = client.post("/v1/plan", json=_plan_payload())
    data = r.json()

    assert r.status_code == 200
    assert data["status"] == "done"
    plan = data["plan"]
    assert len(plan["itineraries"]) == 2
    placed = sorted(item["place_id"] for day in plan["itineraries"] for item in day["schedule"])
    assert placed == sorted(wp["id"] for wp in _waypoints())
    assert data["trace_id"] == plan["trace_id"]


def test_plan_with_estimate_enrichment():
    payload = _plan_payload()
    payload.update({"enrich_routes": True, "routing_provider": "estimate"})

    plan = client.post("/v1/plan", json=payload).json()["plan"]

    assert plan["enrichment"]["requested"] > 0
    assert plan["enrichment"]["fallback"] == 0


def test_plan_reports_commitment_conflicts():
    payload = _plan_payload()
    payload["commitments"] = [
        {"id": "c1", "waypoint_id": "a0", "date": START_DATE.isoformat(), "start_time": "10:00"},
        {"id": "c2", "waypoint_id": "a1", "date": START_DATE.isoformat(), "start_time": "10:30"},
    ]

    plan = client.post("/v1/plan", json=payload).json()["plan"]

    assert [c["type"] for c in plan["conflicts"]] == ["overlap"]


def test_plan_invalid_trip_returns_422():
    r = client.post("/v1/plan", json=_plan_payload(waypoints=[]))

    assert r.status_code == 422
    body = r.json()
    assert body["error"] is True
    assert body["code"] == "INVALID_TRIP_INPUT"


def test_plan_schema_error_returns_422():
    r = client.post("/v1/plan", json={"trip": {"days": 2}})
    assert r.status_code == 422


def test_plan_transit_without_key_returns_503():
    payload = _plan_payload()
    payload.update({"enrich_routes": True, "routing_provider": "transit"})

    r = client.post("/v1/plan", json=payload)

    assert r.status_code == 503
    assert r.json()["code"] == "ROUTE_PROVIDER_UNAVAILABLE"


def _planned_days() -> list[dict]:
    return client.post("/v1/plan", json=_plan_payload()).json()["plan"]["itineraries"]


def test_recalculate_is_idempotent():
    days = _planned_days()

    r = client.post("/v1/itinerary/recalculate", json={"itineraries": days})

    assert r.status_code == 200
    assert r.json()["itineraries"] == days


def test_recalculate_selected_day_after_stay_change():
    days = _planned_days()
    days[0]["schedule"][0]["duration"] += 30
    untouched = dict(days[1])

    r = client.post("/v1/itinerary/recalculate", json={"itineraries": days, "day_numbers": [1]})
    result = r.json()["itineraries"]

    assert result[1] == untouched
    assert result[0]["total_stay_duration"] == days[0]["total_stay_duration"] + 30


def test_reorder_day():
    days = _planned_days()
    first_day = days[0]
    ids = [item["place_id"] for item in first_day["schedule"]]
    coordinates = {wp["id"]: wp["coordinate"] for wp in _waypoints() if wp["id"] in ids}
    new_order = list(reversed(ids))

    r = client.post(
        "/v1/itinerary/recalculate",
        json={
            "itineraries": days,
            "reorder": {
                "day_number": 1,
                "place_ids": new_order,
                "coordinates": coordinates,
                "origin": {"lat": 37.53, "lng": 127.01},
            },
        },
    )
    result = r.json()["itineraries"]

    assert r.status_code == 200
    assert [item["place_id"] for item in result[0]["schedule"]] == new_order
    assert result[1] == days[1]


def test_reorder_with_wrong_places_returns_422():
    days = _planned_days()
    ids = [item["place_id"] for item in days[0]["schedule"]]
    coordinates = {wp["id"]: wp["coordinate"] for wp in _waypoints()}

    r = client.post(
        "/v1/itinerary/recalculate",
        json={
            "itineraries": days,
            "reorder": {"day_number": 1, "place_ids": ids[:-1], "coordinates": coordinates},
        },
    )

    assert r.status_code == 422
    assert r.json()["code"] == "INVALID_TRIP_INPUT"


def test_recalculate_reports_validation():
    days = _planned_days()

    body = client.post("/v1/itinerary/recalculate", json={"itineraries": days}).json()

    assert body["validation"] == {"is_valid": True, "errors": []}


def test_reorder_keeps_segment_of_pair_still_adjacent():
    days = _planned_days()
    ids = [item["place_id"] for item in days[0]["schedule"]]
    days[0]["schedule"][0]["transport_to_next"]["polyline"] = "enc-kept"
    coordinates = {wp["id"]: wp["coordinate"] for wp in _waypoints() if wp["id"] in ids}
    new_order = ids[2:] + ids[:2]

    r = client.post(
        "/v1/itinerary/recalculate",
        json={
            "itineraries": days,
            "reorder": {"day_number": 1, "place_ids": new_order, "coordinates": coordinates},
        },
    )
    schedule = r.json()["itineraries"][0]["schedule"]
    moved = next(item for item in schedule if item["place_id"] == ids[0])

    assert r.status_code == 200
    assert moved["transport_to_next"]["polyline"] == "enc-kept"


def test_validate_flags_empty_day():
    days = _planned_days()
    days[1]["schedule"] = []

    body = client.post("/v1/itinerary/validate", json={"itineraries": days}).json()

    assert body["is_valid"] is False
    assert [(e["code"], e["day_number"]) for e in body["errors"]] == [("EMPTY_DAY", 2)]
