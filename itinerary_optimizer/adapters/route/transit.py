"""Public-transit route adapter backed by the ODsay path search API.

Environment: ODSAY_API_KEY
API: https://lab.odsay.com/guide/releaseReference#searchPubTransPathT
"""

from __future__ import annotations

from typing import Any, Optional

from itinerary_optimizer.domain.enums import TrafficType, TransportMode
from itinerary_optimizer.domain.models import TransitDetails, TransitSubPath
from itinerary_optimizer.infrastructure.cache import make_cache_key, route_cache
from itinerary_optimizer.security.http_client import SecureHttpClient
from itinerary_optimizer.security.key_manager import get_key_manager
from itinerary_optimizer.shared.exceptions import ExternalServiceError, ToolError
from itinerary_optimizer.tools.interfaces import RouteDetail, RouteQuery

_TOOL = "odsay_transit"
_SEARCH_URL = "https://api.odsay.com/v1/api/searchPubTransPathT"
# "no route between these points" answers
_NO_ROUTE_CODES = {"-98", "-99"}

_http = SecureHttpClient(tool_name=_TOOL, timeout=15.0, max_retries=1)


def _get_api_key() -> str:
    key = get_key_manager().get_odsay_key(required=False)
    if not key:
        raise ToolError(_TOOL, "ODSAY_API_KEY is not set")
    return key


def _raise_for_error(data: dict[str, Any]) -> None:
    error = data.get("error")
    if error is None:
        return
    if isinstance(error, list):
        error = error[0] if error else {}
    if not isinstance(error, dict):
        raise ExternalServiceError(_TOOL, str(error))
    code = str(error.get("code", "UNKNOWN"))
    message = error.get("msg") or error.get("message") or "ODsay returned an error"
    if code in _NO_ROUTE_CODES:
        raise ExternalServiceError(_TOOL, f"no transit route: {message}", code=code)
    raise ExternalServiceError(_TOOL, message, code=code)


def _lane_name(sub_path: dict[str, Any]) -> Optional[str]:
    lanes = sub_path.get("lane") or []
    if not lanes:
        return None
    lane = lanes[0]
    if sub_path.get("trafficType") == TrafficType.BUS:
        return lane.get("busNo") or lane.get("name")
    return lane.get("name")


def _parse_sub_path(sub_path: dict[str, Any]) -> TransitSubPath:
    return TransitSubPath(
        traffic_type=int(sub_path.get("trafficType", TrafficType.WALK)),
        distance=float(sub_path.get("distance", 0) or 0),
        section_time=int(sub_path.get("sectionTime", 0) or 0),
        station_count=sub_path.get("stationCount"),
        start_name=sub_path.get("startName"),
        end_name=sub_path.get("endName"),
        lane_name=_lane_name(sub_path),
    )


def _encode_number(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: list[tuple[float, float]]) -> str:
    """Encoded-polyline string (precision 1e5) for ``(lat, lng)`` points."""
    encoded = []
    prev_lat = prev_lng = 0
    for lat, lng in points:
        lat_e5, lng_e5 = round(lat * 1e5), round(lng * 1e5)
        encoded.append(_encode_number(lat_e5 - prev_lat))
        encoded.append(_encode_number(lng_e5 - prev_lng))
        prev_lat, prev_lng = lat_e5, lng_e5
    return "".join(encoded)


def _path_points(sub_paths: list[dict[str, Any]]) -> list[tuple[float, float]]:
    points: list[tuple[float, float]] = []
    for sub_path in sub_paths:
        if sub_path.get("startX") and sub_path.get("startY"):
            points.append((float(sub_path["startY"]), float(sub_path["startX"])))
        stations = (sub_path.get("passStopList") or {}).get("stations") or []
        for station in stations:
            if station.get("x") and station.get("y"):
                points.append((float(station["y"]), float(station["x"])))
        if sub_path.get("endX") and sub_path.get("endY"):
            points.append((float(sub_path["endY"]), float(sub_path["endX"])))
    return points


def parse_search_result(data: dict[str, Any]) -> RouteDetail:
    """Convert the first recommended ODsay path into a ``RouteDetail``."""
    _raise_for_error(data)
    paths = (data.get("result") or {}).get("path") or []
    if not paths:
        raise ExternalServiceError(_TOOL, "no transit route returned", code="NO_ROUTE")

    path = paths[0]
    info = path.get("info") or {}
    raw_sub_paths = path.get("subPath") or []
    sub_paths = [_parse_sub_path(item) for item in raw_sub_paths]
    walks = [item for item in sub_paths if item.traffic_type == TrafficType.WALK]
    details = TransitDetails(
        total_fare=float(info.get("payment", 0) or 0),
        transfer_count=max(0, len(sub_paths) - len(walks) - 1),
        walking_time=sum(item.section_time for item in walks),
        walking_distance=sum(item.distance for item in walks),
        sub_paths=sub_paths,
    )
    points = _path_points(raw_sub_paths)
    return RouteDetail(
        distance_meters=float(info.get("totalDistance", 0) or 0),
        duration_minutes=int(info.get("totalTime", 0) or 0),
        mode=TransportMode.PUBLIC_TRANSIT,
        fare=details.total_fare,
        polyline=encode_polyline(points) if len(points) >= 2 else None,
        transit_details=details,
    )


def estimate_route(params: RouteQuery, *, timeout: Optional[float] = None) -> RouteDetail:
    """Search a public-transit path; results are cached for 30 minutes per rounded stop pair."""
    cache_key = make_cache_key(
        "transit",
        round(params.origin_lat, 5), round(params.origin_lng, 5),
        round(params.dest_lat, 5), round(params.dest_lng, 5),
    )
    cached = route_cache.get(cache_key)
    if cached is not None:
        return cached

    request_params = {
        "apiKey": _get_api_key(),
        "SX": params.origin_lng,
        "SY": params.origin_lat,
        "EX": params.dest_lng,
        "EY": params.dest_lat,
        "OPT": 0,
        "SearchType": 0,
        "lang": 0,
        "output": "json",
    }
    data = _http.get(_SEARCH_URL, params=request_params, timeout=timeout)
    result = parse_search_result(data)
    route_cache.set(cache_key, result)
    return result
