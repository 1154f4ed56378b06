"""itinerary-optimizer CLI: plan a trip request stored as JSON."""

from __future__ import annotations

import argparse
import concurrent.futures
import json
import os
import sys
import threading

from dotenv import load_dotenv
from pydantic import ValidationError

from itinerary_optimizer.api.schemas import PlanRequest
from itinerary_optimizer.config.settings import load_planner_config
from itinerary_optimizer.domain.exceptions import DomainError
from itinerary_optimizer.domain.models import PlanResult
from itinerary_optimizer.planner.core import plan_trip
from itinerary_optimizer.planner.routing_provider import build_routing_provider
from itinerary_optimizer.shared.exceptions import KeyMissingError

load_dotenv()


def _run_plan(request: PlanRequest, timeout: float) -> PlanResult:
    config = load_planner_config(enrich_routes=request.enrich_routes)
    provider = build_routing_provider(request.routing_provider) if config.enrich_routes else None
    cancel_event = threading.Event()
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(
            plan_trip,
            request.trip,
            request.commitments,
            config=config,
            routing_provider=provider,
            cancel_event=cancel_event,
        )
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            cancel_event.set()
            raise
    finally:
        pool.shutdown(wait=False)


def format_plan(result: PlanResult) -> str:
    """Readable day-by-day rendition of a plan."""
    lines: list[str] = []
    stats = result.statistics
    lines.append(f"{stats.total_days}-day itinerary, {stats.total_places} places")
    lines.append("=" * 50)

    for day in result.itineraries:
        header = f"\nDay {day.day_number}"
        if day.date is not None:
            header += f" ({day.date.isoformat()})"
        if day.schedule:
            header += f"  |  {day.start_time}-{day.end_time}, travel {day.total_duration} min"
        lines.append(header)
        lines.append("-" * 50)
        if day.transport_from_origin is not None and day.schedule:
            lines.append(f"  start -> {day.transport_from_origin.duration} min")
        for item in day.schedule:
            fixed = " [fixed]" if item.is_fixed else ""
            lines.append(f"  {item.arrival_time}-{item.departure_time}  {item.place_name or item.place_id}{fixed}")
            segment = item.transport_to_next
            if segment is not None:
                lines.append(f"     {segment.mode.value} {segment.duration} min, {segment.distance / 1000:.1f} km")
        if day.transport_to_destination is not None and day.schedule:
            lines.append(f"  end <- {day.transport_to_destination.duration} min")

    lines.append("\n" + "=" * 50)
    lines.append(f"Total travel: {stats.total_duration} min over {stats.total_distance / 1000:.1f} km")
    if result.enrichment.requested:
        lines.append(f"Routes: {result.enrichment.enriched}/{result.enrichment.requested} enriched")
    for conflict in result.conflicts:
        lines.append(f"Conflict: {conflict.message}")
    for warning in result.warnings:
        lines.append(f"Warning: {warning}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="itinerary-optimizer", description="Plan a multi-day itinerary")
    parser.add_argument("request", help="path to a JSON plan request, or - for stdin")
    parser.add_argument("--format", choices=("text", "json"), default="text")
    parser.add_argument("--output", help="also write the JSON plan to this file")
    parser.add_argument("--provider", choices=("estimate", "transit", "auto"), help="routing provider override")
    parser.add_argument("--no-enrich", action="store_true", help="skip route enrichment")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    timeout = float(os.getenv("PLAN_TIMEOUT_SECONDS", "120"))

    try:
        if args.request == "-":
            payload = json.load(sys.stdin)
        else:
            with open(args.request, encoding="utf-8") as f:
                payload = json.load(f)
        request = PlanRequest.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"invalid request: {exc}", file=sys.stderr)
        return 2

    if args.provider:
        request = request.model_copy(update={"routing_provider": args.provider})
    if args.no_enrich:
        request = request.model_copy(update={"enrich_routes": False})

    try:
        result = _run_plan(request, timeout)
    except concurrent.futures.TimeoutError:
        print(f"planning timed out after {timeout:g}s", file=sys.stderr)
        return 1
    except (DomainError, KeyMissingError, ValueError) as exc:
        print(f"planning failed: {exc}", file=sys.stderr)
        return 1

    data = result.model_dump(mode="json")
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
    if args.format == "json":
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        print(format_plan(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
