"""Deterministic planning pipeline."""

from __future__ import annotations

import threading
from typing import Optional, Sequence

from itinerary_optimizer.config.settings import PlannerConfig
from itinerary_optimizer.domain.models import FixedCommitment, PlanResult, TripInput
from itinerary_optimizer.planner.routing_provider import RouteDetailProvider


def plan_trip(
    trip: TripInput,
    commitments: Sequence[FixedCommitment] = (),
    *,
    config: Optional[PlannerConfig] = None,
    routing_provider: Optional[RouteDetailProvider] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PlanResult:
    from itinerary_optimizer.planner.core import plan_trip as _plan_trip

    return _plan_trip(
        trip,
        commitments,
        config=config,
        routing_provider=routing_provider,
        cancel_event=cancel_event,
    )


__all__ = ["plan_trip"]
