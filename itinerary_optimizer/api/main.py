"""FastAPI application exposing the planner."""

from __future__ import annotations

import concurrent.futures
import logging
import os
import threading

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from itinerary_optimizer import __version__
from itinerary_optimizer.api.schemas import (
    DiagnosticsResponse,
    HealthResponse,
    PlanRequest,
    PlanResponse,
    RecalculateRequest,
    RecalculateResponse,
    ValidateRequest,
)
from itinerary_optimizer.config.settings import load_planner_config, resolve_provider_snapshot
from itinerary_optimizer.domain.exceptions import InvalidTripInput, PlanningInvariantError
from itinerary_optimizer.domain.models import ErrorResponse
from itinerary_optimizer.domain.planning.editing import ItineraryValidation, validate_itinerary
from itinerary_optimizer.domain.planning.scheduling import (
    DEFAULT_DAILY_END_TIME,
    DEFAULT_DAILY_START_TIME,
    apply_manual_reorder,
    recalculate_itinerary_times,
)
from itinerary_optimizer.planner.core import DESTINATION_ID, ORIGIN_ID, plan_trip
from itinerary_optimizer.planner.distance_matrix import DistanceMatrix
from itinerary_optimizer.planner.routing_provider import build_routing_provider
from itinerary_optimizer.security.key_manager import get_key_manager
from itinerary_optimizer.shared.exceptions import KeyMissingError

_api_logger = logging.getLogger("itinerary-optimizer.api")

load_dotenv()

_PLAN_TIMEOUT = float(os.getenv("PLAN_TIMEOUT_SECONDS", "120"))

app = FastAPI(
    title="itinerary-optimizer",
    version=__version__,
    docs_url="/docs" if os.getenv("ENABLE_DOCS", "false").lower() == "true" else None,
    redoc_url=None,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response


app.add_middleware(SecurityHeadersMiddleware)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(code=code, message=get_key_manager().scrub_text(message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(InvalidTripInput)
async def _invalid_trip_input(request: Request, exc: InvalidTripInput) -> JSONResponse:
    _api_logger.info("rejected %s: %s", request.url.path, exc)
    return _error(422, "INVALID_TRIP_INPUT", str(exc))


@app.exception_handler(PlanningInvariantError)
async def _planning_invariant(request: Request, exc: PlanningInvariantError) -> JSONResponse:
    _api_logger.error("planning invariant violated on %s: %s", request.url.path, exc)
    return _error(500, "PLANNING_INVARIANT", "planning failed an internal consistency check")


@app.exception_handler(KeyMissingError)
async def _key_missing(request: Request, exc: KeyMissingError) -> JSONResponse:
    _api_logger.warning("route provider unavailable on %s: %s", request.url.path, exc.key_name)
    return _error(503, "ROUTE_PROVIDER_UNAVAILABLE", f"routing provider needs {exc.key_name}")


@app.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", version=__version__)


@app.get("/diagnostics", response_model=DiagnosticsResponse)
def diagnostics():
    from itinerary_optimizer.adapters.tool_factory import describe_active_tools
    from itinerary_optimizer.infrastructure.cache import route_cache

    return DiagnosticsResponse(
        tools=describe_active_tools(),
        route_provider=resolve_provider_snapshot().route_provider,
        cache={"route": route_cache.stats},
    )


@app.post("/v1/plan", response_model=PlanResponse)
def plan(req: PlanRequest):
    config = load_planner_config(enrich_routes=req.enrich_routes)
    provider = build_routing_provider(req.routing_provider) if config.enrich_routes else None
    cancel_event = threading.Event()
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(
            plan_trip,
            req.trip,
            req.commitments,
            config=config,
            routing_provider=provider,
            cancel_event=cancel_event,
        )
        try:
            result = future.result(timeout=_PLAN_TIMEOUT)
        except concurrent.futures.TimeoutError:
            cancel_event.set()
            _api_logger.warning("plan timed out after %ss", _PLAN_TIMEOUT)
            return _error(504, "PLAN_TIMEOUT", f"planning exceeded {_PLAN_TIMEOUT:g}s")
    finally:
        pool.shutdown(wait=False)
    return PlanResponse(status="done", plan=result, trace_id=result.trace_id)


@app.post("/v1/itinerary/recalculate", response_model=RecalculateResponse)
def recalculate(req: RecalculateRequest):
    daily_start = req.daily_start_time or DEFAULT_DAILY_START_TIME
    daily_end = req.daily_end_time or DEFAULT_DAILY_END_TIME
    days = list(req.itineraries)
    day_numbers = req.day_numbers

    if req.reorder is not None:
        instruction = req.reorder
        index = next((i for i, day in enumerate(days) if day.day_number == instruction.day_number), None)
        if index is None:
            raise InvalidTripInput(f"no day {instruction.day_number} in itineraries")
        missing = sorted(set(instruction.place_ids) - set(instruction.coordinates))
        if missing:
            raise InvalidTripInput(f"no coordinate for places: {', '.join(missing)}")
        coordinates = {pid: instruction.coordinates[pid] for pid in instruction.place_ids}
        if instruction.origin is not None:
            coordinates[ORIGIN_ID] = instruction.origin
        if instruction.destination is not None:
            coordinates[DESTINATION_ID] = instruction.destination
        matrix = DistanceMatrix.estimate(coordinates, instruction.transport_mode)
        days[index] = apply_manual_reorder(
            days[index],
            instruction.place_ids,
            matrix,
            origin_id=ORIGIN_ID if instruction.origin is not None else None,
            destination_id=DESTINATION_ID if instruction.destination is not None else None,
        )
        # the reordered day is already recomputed
        day_numbers = [n for n in (day_numbers or []) if n != instruction.day_number]

    if req.reorder is None or day_numbers:
        days = recalculate_itinerary_times(
            days,
            day_numbers,
            daily_start_time=daily_start,
            daily_end_time=daily_end,
        )
    return RecalculateResponse(
        itineraries=days,
        validation=validate_itinerary(days, daily_start, daily_end),
    )


@app.post("/v1/itinerary/validate", response_model=ItineraryValidation)
def validate(req: ValidateRequest):
    return validate_itinerary(
        req.itineraries,
        req.daily_start_time or DEFAULT_DAILY_START_TIME,
        req.daily_end_time or DEFAULT_DAILY_END_TIME,
    )


def run() -> None:
    import uvicorn

    uvicorn.run(
        "itinerary_optimizer.api.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    run()
