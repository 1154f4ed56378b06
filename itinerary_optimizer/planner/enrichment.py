"""Selective enrichment of the travel segments a plan actually uses.

Only segments between consecutive stops (plus the day boundaries) are sent
to the routing provider. Lookups run in fixed-size batches; a failed or
timed-out lookup leaves its pre-allocated fallback entry in place, so the
result always holds one entry per requested segment.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Callable, Mapping, Optional, Sequence

from pydantic import BaseModel

from itinerary_optimizer.domain.enums import TransportMode
from itinerary_optimizer.domain.exceptions import InvalidTripInput
from itinerary_optimizer.domain.models import Coordinate, EnrichmentStats, TransitDetails
from itinerary_optimizer.planner.distance import coordinate_distance, estimate_duration_minutes
from itinerary_optimizer.planner.distance_matrix import DistanceMatrix
from itinerary_optimizer.planner.routing_provider import RouteDetailProvider
from itinerary_optimizer.tools.interfaces import RouteDetail

_logger = logging.getLogger("itinerary-optimizer.enrichment")

ProgressFn = Callable[[int, int], None]
DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_BATCH_DELAY_SECONDS = 0.5
DEFAULT_REQUEST_TIMEOUT_SECONDS = 15.0
DEFAULT_WALKING_THRESHOLD_METERS = 500.0


class SegmentRequest(BaseModel):
    from_id: str
    to_id: str
    from_coord: Coordinate
    to_coord: Coordinate
    mode: TransportMode = TransportMode.PUBLIC_TRANSIT

    @property
    def key(self) -> str:
        return segment_key(self.from_id, self.to_id)


class EnrichedRoute(BaseModel):
    from_id: str
    to_id: str
    mode: TransportMode
    distance: Optional[float] = None
    duration: Optional[int] = None
    polyline: Optional[str] = None
    transit_details: Optional[TransitDetails] = None
    enriched: bool = False


def segment_key(from_id: str, to_id: str) -> str:
    return f"{from_id}:{to_id}"


def extract_route_segments(
    day_place_ids: Sequence[Sequence[str]],
    coordinates: Mapping[str, Coordinate],
    anchor_ids: Sequence[tuple[Optional[str], Optional[str]]],
    *,
    mode: TransportMode = TransportMode.PUBLIC_TRANSIT,
) -> list[SegmentRequest]:
    """Segments used by the ordered days, first occurrence wins on duplicates.

    ``anchor_ids[d]`` is the ``(start_id, end_id)`` pair of day ``d``; either
    side may be None, in which case that boundary segment is skipped.
    """
    segments: list[SegmentRequest] = []
    seen: set[str] = set()

    def coordinate_of(place_id: str) -> Coordinate:
        try:
            return coordinates[place_id]
        except KeyError:
            raise InvalidTripInput(f"no coordinate for place {place_id}") from None

    def add(from_id: str, to_id: str) -> None:
        key = segment_key(from_id, to_id)
        if key in seen:
            return
        seen.add(key)
        segments.append(
            SegmentRequest(
                from_id=from_id,
                to_id=to_id,
                from_coord=coordinate_of(from_id),
                to_coord=coordinate_of(to_id),
                mode=mode,
            )
        )

    for day_index, place_ids in enumerate(day_place_ids):
        if not place_ids:
            continue
        start_id, end_id = anchor_ids[day_index] if day_index < len(anchor_ids) else (None, None)
        if start_id is not None:
            add(start_id, place_ids[0])
        for from_id, to_id in zip(place_ids, place_ids[1:]):
            add(from_id, to_id)
        if end_id is not None:
            add(place_ids[-1], end_id)
    return segments


def _fallback_entry(segment: SegmentRequest, walking_threshold_meters: float) -> EnrichedRoute:
    straight = coordinate_distance(segment.from_coord, segment.to_coord)
    if straight <= walking_threshold_meters:
        return EnrichedRoute(
            from_id=segment.from_id,
            to_id=segment.to_id,
            mode=TransportMode.WALKING,
            distance=float(round(straight)),
            duration=estimate_duration_minutes(straight, TransportMode.WALKING),
            enriched=True,
        )
    return EnrichedRoute(from_id=segment.from_id, to_id=segment.to_id, mode=segment.mode)


def _from_detail(segment: SegmentRequest, detail: RouteDetail) -> EnrichedRoute:
    return EnrichedRoute(
        from_id=segment.from_id,
        to_id=segment.to_id,
        mode=detail.mode,
        distance=detail.distance_meters,
        duration=detail.duration_minutes,
        polyline=detail.polyline,
        transit_details=detail.transit_details,
        enriched=True,
    )


def enrich_transit_routes(
    segments: Sequence[SegmentRequest],
    provider: RouteDetailProvider,
    *,
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    walking_threshold_meters: float = DEFAULT_WALKING_THRESHOLD_METERS,
    on_progress: Optional[ProgressFn] = None,
    cancel_event: Optional[threading.Event] = None,
) -> dict[str, EnrichedRoute]:
    """Look up every segment with at most ``concurrency_limit`` calls in flight.

    Never raises for a failed lookup. When ``cancel_event`` is set, no further
    batch is dispatched and entries resolved so far are kept.
    """
    results: dict[str, EnrichedRoute] = {}
    pending: list[SegmentRequest] = []
    for segment in segments:
        if segment.key in results:
            continue
        entry = _fallback_entry(segment, walking_threshold_meters)
        results[segment.key] = entry
        if not entry.enriched:
            pending.append(segment)

    total = len(results)
    completed = total - len(pending)
    if on_progress is not None and completed:
        on_progress(completed, total)
    if not pending:
        return results

    limit = max(1, int(concurrency_limit))
    batches = [pending[i : i + limit] for i in range(0, len(pending), limit)]
    for batch_index, batch in enumerate(batches):
        if cancel_event is not None and cancel_event.is_set():
            _logger.info("Enrichment cancelled with %s of %s batches dispatched", batch_index, len(batches))
            break
        for segment, detail in _run_batch(batch, provider, request_timeout_seconds):
            if detail is not None:
                results[segment.key] = _from_detail(segment, detail)
            completed += 1
            if on_progress is not None:
                on_progress(completed, total)
        if batch_index < len(batches) - 1 and batch_delay_seconds > 0:
            if cancel_event is not None:
                cancel_event.wait(batch_delay_seconds)
            else:
                time.sleep(batch_delay_seconds)
    return results


def _run_batch(
    batch: Sequence[SegmentRequest],
    provider: RouteDetailProvider,
    timeout: float,
) -> list[tuple[SegmentRequest, Optional[RouteDetail]]]:
    """Run one batch on its own workers, one thread per lookup.

    A lookup still running at the deadline is abandoned together with its
    pool, so it never holds a worker the next batch needs.
    """
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="enrich")
    try:
        futures = [
            (
                segment,
                pool.submit(provider.fetch_route, segment.from_coord, segment.to_coord, segment.mode, timeout=timeout),
            )
            for segment in batch
        ]
        # every lookup has a worker, so the deadline starts when the calls do
        done, _ = concurrent.futures.wait([future for _, future in futures], timeout=timeout)
        outcomes: list[tuple[SegmentRequest, Optional[RouteDetail]]] = []
        for segment, future in futures:
            if future not in done:
                _logger.warning("Route lookup timed out: %s", segment.key)
                outcomes.append((segment, None))
                continue
            try:
                outcomes.append((segment, future.result()))
            except Exception as exc:
                _logger.warning("Route lookup failed: %s error=%s", segment.key, type(exc).__name__)
                outcomes.append((segment, None))
        return outcomes
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def enrichment_stats(results: Mapping[str, EnrichedRoute], *, cancelled: bool = False) -> EnrichmentStats:
    enriched = sum(1 for entry in results.values() if entry.enriched)
    return EnrichmentStats(
        requested=len(results),
        enriched=enriched,
        fallback=len(results) - enriched,
        cancelled=cancelled,
    )


def apply_enriched_routes(matrix: DistanceMatrix, results: Mapping[str, EnrichedRoute]) -> int:
    """Write resolved entries into ``matrix`` by index; returns the number of cells written."""
    written = 0
    for entry in results.values():
        if not entry.enriched:
            continue
        i, j = matrix.index_of(entry.from_id), matrix.index_of(entry.to_id)
        matrix.set_entry(
            i,
            j,
            distance=entry.distance if entry.distance is not None else matrix.distances[i][j],
            duration=entry.duration if entry.duration is not None else matrix.durations[i][j],
            mode=entry.mode,
            polyline=entry.polyline,
            transit_details=entry.transit_details,
        )
        written += 1
    return written


def enrich_distance_matrix(
    matrix: DistanceMatrix,
    segments: Sequence[SegmentRequest],
    provider: RouteDetailProvider,
    **options,
) -> EnrichmentStats:
    cancel_event: Optional[threading.Event] = options.get("cancel_event")
    results = enrich_transit_routes(segments, provider, **options)
    apply_enriched_routes(matrix, results)
    return enrichment_stats(results, cancelled=bool(cancel_event is not None and cancel_event.is_set()))


__all__ = [
    "DEFAULT_BATCH_DELAY_SECONDS",
    "DEFAULT_CONCURRENCY_LIMIT",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_WALKING_THRESHOLD_METERS",
    "EnrichedRoute",
    "SegmentRequest",
    "apply_enriched_routes",
    "enrich_distance_matrix",
    "enrich_transit_routes",
    "enrichment_stats",
    "extract_route_segments",
    "segment_key",
]
