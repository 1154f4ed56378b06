"""Runtime configuration helpers."""

from itinerary_optimizer.config.settings import (
    PlannerConfig,
    ProviderSnapshot,
    load_planner_config,
    resolve_provider_snapshot,
    resolve_route_provider_default,
)

__all__ = [
    "PlannerConfig",
    "ProviderSnapshot",
    "load_planner_config",
    "resolve_provider_snapshot",
    "resolve_route_provider_default",
]
