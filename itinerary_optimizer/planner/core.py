"""Deterministic multi-day itinerary planner.

Stages: commitment validation, zoning, day assignment, intra-day ordering,
time computation, then route enrichment of the used segments followed by a
second time computation over the enriched segments.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from typing import Optional, Sequence

from itinerary_optimizer.config.settings import PlannerConfig, load_planner_config
from itinerary_optimizer.domain.exceptions import InvalidTripInput, PlanningInvariantError
from itinerary_optimizer.domain.models import (
    Coordinate,
    DailyItinerary,
    EnrichmentStats,
    FixedCommitment,
    PlanResult,
    PlanStatistics,
    ScheduledCommitment,
    TripInput,
    TripWindow,
    Waypoint,
    Zone,
)
from itinerary_optimizer.domain.planning.anomalies import detect_segment_anomalies
from itinerary_optimizer.domain.planning.constraints import resolve_commitments, validate_fixed_commitments
from itinerary_optimizer.domain.planning.day_assignment import (
    AssignmentWeights,
    assign_zones_to_days,
    build_clusters,
    build_day_anchors,
    target_per_day,
)
from itinerary_optimizer.domain.planning.ordering import order_day
from itinerary_optimizer.domain.planning.scheduling import build_daily_itinerary
from itinerary_optimizer.domain.planning.timeutil import day_index_for_date, generate_date_range, time_to_minutes
from itinerary_optimizer.domain.planning.zoning import (
    build_zones,
    max_zone_size,
    split_zone_by_fixed_day,
    split_zone_if_over_limit,
)
from itinerary_optimizer.infrastructure.logging import StructuredLogger
from itinerary_optimizer.planner.distance import estimate_duration_minutes, haversine_meters
from itinerary_optimizer.planner.distance_matrix import DistanceMatrix
from itinerary_optimizer.planner.enrichment import enrich_distance_matrix, extract_route_segments
from itinerary_optimizer.planner.routing_provider import RouteDetailProvider, build_routing_provider

ORIGIN_ID = "__origin__"
DESTINATION_ID = "__destination__"
LODGING_ID = "__lodging__"
_RESERVED_IDS = {ORIGIN_ID, DESTINATION_ID, LODGING_ID}

_logger = logging.getLogger("itinerary-optimizer.planner")


def _validate_trip(trip: TripInput, commitments: Sequence[FixedCommitment]) -> None:
    if trip.days < 1:
        raise InvalidTripInput(f"days must be at least 1, got {trip.days}")
    if not trip.waypoints:
        raise InvalidTripInput("at least one waypoint is required")
    counts = Counter(wp.id for wp in trip.waypoints)
    duplicates = sorted(wid for wid, count in counts.items() if count > 1)
    if duplicates:
        raise InvalidTripInput(f"duplicate waypoint ids: {', '.join(duplicates)}")
    reserved = sorted(set(counts) & _RESERVED_IDS)
    if reserved:
        raise InvalidTripInput(f"reserved waypoint ids: {', '.join(reserved)}")
    commitment_counts = Counter(c.id for c in commitments)
    duplicates = sorted(cid for cid, count in commitment_counts.items() if count > 1)
    if duplicates:
        raise InvalidTripInput(f"duplicate commitment ids: {', '.join(duplicates)}")
    per_waypoint = Counter(c.waypoint_id for c in commitments)
    repeated = sorted(wid for wid, count in per_waypoint.items() if count > 1)
    if repeated:
        raise InvalidTripInput(f"waypoints with more than one commitment: {', '.join(repeated)}")


def _fixed_day_map(
    trip: TripInput,
    commitments: Sequence[ScheduledCommitment],
    warnings: list[str],
) -> dict[str, int]:
    """0-based day per locked waypoint; a dated commitment overrides ``day_lock``."""
    fixed: dict[str, int] = {}
    for wp in trip.waypoints:
        if wp.day_lock is not None:
            fixed[wp.id] = wp.day_lock - 1
    for commitment in commitments:
        day = day_index_for_date(trip.start_date, commitment.date)
        if not 0 <= day < trip.days:
            continue
        previous = fixed.get(commitment.waypoint_id)
        if previous is not None and previous != day:
            warnings.append(
                f"waypoint {commitment.waypoint_id} is locked to day {previous + 1} "
                f"but committed on day {day + 1}; using the commitment"
            )
        fixed[commitment.waypoint_id] = day
    return fixed


def _build_zone_set(
    trip: TripInput,
    waypoint_map: dict[str, Waypoint],
    fixed_day_by_id: dict[str, int],
    committed_ids: set[str],
    *,
    daily_max_minutes: int,
    config: PlannerConfig,
) -> list[Zone]:
    zones = build_zones(
        trip.waypoints,
        distance_fn=haversine_meters,
        k_for_radius=config.k_for_radius,
        radius_multiplier=config.radius_multiplier,
        fixed_ids=committed_ids,
    )
    zones = [part for zone in zones for part in split_zone_by_fixed_day(zone, waypoint_map, fixed_day_by_id)]

    locked_minutes: Counter[int] = Counter()
    for wid, day in fixed_day_by_id.items():
        locked_minutes[day] += waypoint_map[wid].stay_minutes
    max_size = max_zone_size(target_per_day(len(trip.waypoints), trip.days), config.split_size_factor)

    result: list[Zone] = []
    for zone in zones:
        reserved = 0.0
        if zone.fixed_day_index is not None:
            own = sum(
                waypoint_map[wid].stay_minutes
                for wid in zone.waypoint_ids
                if fixed_day_by_id.get(wid) == zone.fixed_day_index
            )
            reserved = locked_minutes[zone.fixed_day_index] - own
        result.extend(
            split_zone_if_over_limit(
                zone,
                waypoint_map,
                daily_max_minutes=daily_max_minutes,
                max_size=max_size,
                minutes_factor=config.split_minutes_factor,
                reserved_minutes=reserved,
                locked_ids=fixed_day_by_id.keys(),
            )
        )
    return result


def _check_partition(expected: Sequence[str], assigned: Sequence[str], stage: str) -> None:
    counts = Counter(assigned)
    missing = sorted(set(expected) - set(counts))
    duplicated = sorted(wid for wid, count in counts.items() if count > 1)
    extra = sorted(set(counts) - set(expected))
    if missing or duplicated or extra:
        raise PlanningInvariantError(
            f"{stage} broke the waypoint partition: missing={missing} duplicated={duplicated} unknown={extra}"
        )


def _anchor_ids(trip: TripInput) -> list[tuple[Optional[str], Optional[str]]]:
    lodging = LODGING_ID if trip.lodging is not None else None
    anchors = []
    for index in range(trip.days):
        start = ORIGIN_ID if index == 0 else lodging
        if index == trip.days - 1:
            end = DESTINATION_ID if trip.end is not None else None
        else:
            end = lodging
        anchors.append((start, end))
    return anchors


def _anchor_coordinates(trip: TripInput) -> dict[str, Coordinate]:
    coordinates = {ORIGIN_ID: trip.start}
    if trip.end is not None:
        coordinates[DESTINATION_ID] = trip.end
    if trip.lodging is not None:
        coordinates[LODGING_ID] = trip.lodging
    return coordinates


def _statistics(itineraries: list[DailyItinerary], started: float) -> PlanStatistics:
    total_places = sum(day.place_count for day in itineraries)
    return PlanStatistics(
        total_places=total_places,
        total_days=len(itineraries),
        total_distance=sum(day.total_distance for day in itineraries),
        total_duration=sum(day.total_duration for day in itineraries),
        total_stay_duration=sum(day.total_stay_duration for day in itineraries),
        average_daily_places=round(total_places / len(itineraries), 2) if itineraries else 0.0,
        optimization_time_ms=round((time.perf_counter() - started) * 1000, 1),
    )


def plan_trip(
    trip: TripInput,
    commitments: Sequence[FixedCommitment] = (),
    *,
    config: Optional[PlannerConfig] = None,
    routing_provider: Optional[RouteDetailProvider] = None,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[StructuredLogger] = None,
) -> PlanResult:
    """Plan ``trip`` into one ``DailyItinerary`` per day.

    Raises ``InvalidTripInput`` for unplannable input and
    ``PlanningInvariantError`` if a stage loses or duplicates a waypoint.
    Commitment conflicts are returned on the result, not raised.
    """
    started = time.perf_counter()
    config = config or load_planner_config()
    slog = logger or StructuredLogger()
    _validate_trip(trip, commitments)

    daily_start = trip.daily_start_time or config.daily_start_time
    daily_end = trip.daily_end_time or config.daily_end_time
    daily_max = trip.daily_max_minutes or config.daily_max_minutes
    dates = generate_date_range(trip.start_date, trip.days)
    window = TripWindow(
        start_date=dates[0],
        end_date=dates[-1],
        daily_start_time=daily_start,
        daily_end_time=daily_end,
    )
    waypoint_map = {wp.id: wp for wp in trip.waypoints}
    waypoint_ids = [wp.id for wp in trip.waypoints]

    slog.stage_start("validate", commitments=len(commitments))
    resolved = resolve_commitments(commitments, trip.waypoints)
    validation = validate_fixed_commitments(resolved, window, max_daily_minutes=daily_max)
    warnings = list(validation.warnings)
    for message in warnings:
        slog.warning("validate", message)
    slog.stage_end("validate", conflicts=len(validation.conflicts))

    slog.stage_start("zoning", waypoints=len(waypoint_ids))
    fixed_day_by_id = _fixed_day_map(trip, resolved, warnings)
    committed_ids = {c.waypoint_id for c in resolved}
    zones = _build_zone_set(
        trip,
        waypoint_map,
        fixed_day_by_id,
        committed_ids,
        daily_max_minutes=daily_max,
        config=config,
    )
    _check_partition(waypoint_ids, [wid for zone in zones for wid in zone.waypoint_ids], "zoning")
    slog.stage_end("zoning", zones=len(zones))

    slog.stage_start("day_assignment", days=trip.days)
    anchors = build_day_anchors(trip)
    day_zones = assign_zones_to_days(
        zones,
        trip.days,
        anchors,
        target_per_day=target_per_day(len(waypoint_ids), trip.days),
        daily_max_minutes=daily_max,
        distance_fn=haversine_meters,
        weights=AssignmentWeights(
            minutes_per_km=config.minutes_per_km,
            size_overflow_penalty=config.size_overflow_penalty,
            minutes_overflow_penalty=config.minutes_overflow_penalty,
        ),
        warnings=warnings,
    )
    clusters = build_clusters(day_zones, waypoint_map, anchors)
    _check_partition(waypoint_ids, [wid for cluster in clusters for wid in cluster.waypoint_ids], "day assignment")
    slog.stage_end("day_assignment", sizes=[len(cluster.waypoint_ids) for cluster in clusters])

    slog.stage_start("ordering")
    coordinates = {wp.id: wp.coordinate for wp in trip.waypoints}
    coordinates.update(_anchor_coordinates(trip))
    matrix = DistanceMatrix.estimate(coordinates, trip.transport_mode)
    day_start_minute = time_to_minutes(daily_start)
    day_end_minute = time_to_minutes(daily_end)
    ordered_days: list[list[Waypoint]] = []
    day_commitments: list[list[ScheduledCommitment]] = []
    for cluster, date in zip(clusters, dates):
        members = [waypoint_map[wid] for wid in cluster.waypoint_ids]
        todays = [c for c in resolved if c.date == date and c.waypoint_id in cluster.waypoint_ids]
        day_commitments.append(todays)
        ordered_days.append(
            order_day(
                members,
                cluster.anchor,
                commitments=todays,
                distance_fn=haversine_meters,
                max_passes=config.two_opt_max_passes,
                day_start_minute=day_start_minute,
                day_end_minute=day_end_minute,
                travel_minutes_fn=lambda meters: estimate_duration_minutes(meters, trip.transport_mode),
            )
        )
    slog.stage_end("ordering")

    anchor_ids = _anchor_ids(trip)

    def build_days() -> list[DailyItinerary]:
        return [
            build_daily_itinerary(
                index + 1,
                ordered,
                matrix,
                date=dates[index],
                origin_id=anchor_ids[index][0],
                destination_id=anchor_ids[index][1],
                commitments=day_commitments[index],
                daily_start_time=daily_start,
                daily_end_time=daily_end,
            )
            for index, ordered in enumerate(ordered_days)
        ]

    slog.stage_start("scheduling")
    itineraries = build_days()
    slog.stage_end("scheduling")

    enrichment = EnrichmentStats()
    if config.enrich_routes:
        slog.stage_start("enrichment")
        segments = extract_route_segments(
            [[wp.id for wp in ordered] for ordered in ordered_days],
            coordinates,
            anchor_ids,
            mode=trip.transport_mode,
        )
        provider = routing_provider or build_routing_provider()
        enrichment = enrich_distance_matrix(
            matrix,
            segments,
            provider,
            concurrency_limit=config.concurrency_limit,
            batch_delay_seconds=config.batch_delay_seconds,
            request_timeout_seconds=config.request_timeout_seconds,
            walking_threshold_meters=config.walking_threshold_meters,
            cancel_event=cancel_event,
        )
        if enrichment.fallback:
            message = f"{enrichment.fallback} of {enrichment.requested} segments kept estimated travel times"
            warnings.append(message)
            slog.warning("enrichment", message)
        slog.stage_end("enrichment", **enrichment.model_dump())
        itineraries = build_days()
        anomalies = detect_segment_anomalies(
            itineraries,
            long_duration_minutes=config.anomaly_long_duration_minutes,
            max_transfers=config.anomaly_max_transfers,
        )
        for anomaly in anomalies:
            warnings.append(anomaly.describe())
        if anomalies:
            slog.warning("anomalies", f"{len(anomalies)} travel segments flagged")

    for day in itineraries:
        warnings.extend(f"day {day.day_number}: {message}" for message in day.warnings)

    result = PlanResult(
        itineraries=itineraries,
        clusters=clusters,
        conflicts=validation.conflicts,
        warnings=warnings,
        enrichment=enrichment,
        statistics=_statistics(itineraries, started),
        trace_id=slog.trace_id,
    )
    slog.summary(
        days=trip.days,
        places=result.statistics.total_places,
        conflicts=len(result.conflicts),
        warnings=len(result.warnings),
        duration_ms=result.statistics.optimization_time_ms,
    )
    _logger.info("Planned %s waypoints over %s days (trace %s)", len(waypoint_ids), trip.days, slog.trace_id)
    return result


__all__ = ["DESTINATION_ID", "LODGING_ID", "ORIGIN_ID", "plan_trip"]
