"""ODsay transit adapter: response parsing, polyline encoding, caching."""

from __future__ import annotations

import pytest

import itinerary_optimizer.adapters.route.transit as transit
from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.shared.exceptions import ExternalServiceError, ToolError
from itinerary_optimizer.tools.interfaces import RouteQuery


def _search_response() -> dict:
    return {
        "result": {
            "path": [
                {
                    "info": {"payment": 1400, "totalTime": 23, "totalDistance": 4100},
                    "subPath": [
                        {"trafficType": 3, "distance": 200, "sectionTime": 3},
                        {
                            "trafficType": 1,
                            "distance": 3500,
                            "sectionTime": 12,
                            "stationCount": 4,
                            "startName": "Seoul Station",
                            "endName": "Gyeongbokgung",
                            "lane": [{"name": "Line 4"}],
                            "startX": 126.9707,
                            "startY": 37.5547,
                            "endX": 126.9770,
                            "endY": 37.5796,
                            "passStopList": {"stations": [{"x": "126.9720", "y": "37.5640"}]},
                        },
                        {
                            "trafficType": 2,
                            "distance": 300,
                            "sectionTime": 5,
                            "lane": [{"busNo": "7212"}],
                            "startX": 126.9770,
                            "startY": 37.5796,
                            "endX": 126.9790,
                            "endY": 37.5810,
                        },
                        {"trafficType": 3, "distance": 100, "sectionTime": 3},
                    ],
                }
            ]
        }
    }


def test_parse_search_result():
    detail = transit.parse_search_result(_search_response())

    assert detail.mode == TransportMode.PUBLIC_TRANSIT
    assert detail.distance_meters == 4100
    assert detail.duration_minutes == 23
    assert detail.fare == 1400
    details = detail.transit_details
    assert details.transfer_count == 1
    assert details.walking_time == 6
    assert details.walking_distance == 300
    assert [sp.lane_name for sp in details.sub_paths] == [None, "Line 4", "7212", None]
    assert detail.polyline


def test_parse_no_route_error():
    with pytest.raises(ExternalServiceError) as exc_info:
        transit.parse_search_result({"error": [{"code": "-98", "message": "too close"}]})
    assert exc_info.value.code == "-98"


def test_parse_empty_path_list():
    with pytest.raises(ExternalServiceError):
        transit.parse_search_result({"result": {"path": []}})


def test_encode_polyline_reference_value():
    points = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
    assert transit.encode_polyline(points) == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_missing_key_raises_tool_error():
    query = RouteQuery(origin_lat=37.55, origin_lng=126.97, dest_lat=37.58, dest_lng=126.98)
    with pytest.raises(ToolError):
        transit.estimate_route(query)


def test_estimate_route_caches_by_stop_pair(monkeypatch):
    monkeypatch.setenv("ODSAY_API_KEY", "odsay-test-key")
    calls = []

    def fake_get(url, *, params=None, headers=None, timeout=None):
        calls.append(params)
        return _search_response()

    monkeypatch.setattr(transit._http, "get", fake_get)
    query = RouteQuery(origin_lat=37.5547, origin_lng=126.9707, dest_lat=37.5796, dest_lng=126.9770)

    first = transit.estimate_route(query, timeout=5)
    second = transit.estimate_route(query)

    assert first == second
    assert len(calls) == 1
    assert calls[0]["apiKey"] == "odsay-test-key"
    assert (calls[0]["SX"], calls[0]["SY"]) == (126.9707, 37.5547)
