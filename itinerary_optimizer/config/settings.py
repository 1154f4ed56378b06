"""Planner tunables and routing provider selection.

Every tunable has a documented default on ``PlannerConfig``; deployments
override them through ``PLANNER_<FIELD>`` environment variables, e.g.
``PLANNER_CONCURRENCY_LIMIT=5``.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from itinerary_optimizer.domain.planning.timeutil import normalize_time

_TRUTHY = {"1", "true", "yes", "on"}
_ENV_PREFIX = "PLANNER_"


def _is_configured(value: str | None) -> bool:
    return bool(value and value.strip())


class PlannerConfig(BaseModel):
    # zoning
    k_for_radius: int = Field(default=3, ge=1)
    radius_multiplier: float = Field(default=1.2, ge=0)
    split_size_factor: float = Field(default=1.5, gt=0)
    split_minutes_factor: float = Field(default=1.0, gt=0)
    # day assignment
    minutes_per_km: float = Field(default=5.0, ge=0)
    size_overflow_penalty: float = Field(default=5.0, ge=0)
    minutes_overflow_penalty: float = Field(default=1.0, ge=0)
    # ordering
    two_opt_max_passes: int = Field(default=50, ge=0)
    # enrichment
    concurrency_limit: int = Field(default=3, ge=1)
    batch_delay_seconds: float = Field(default=0.5, ge=0)
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    walking_threshold_meters: float = Field(default=500.0, ge=0)
    enrich_routes: bool = True
    # segment warnings after enrichment
    anomaly_long_duration_minutes: int = Field(default=20, ge=0)
    anomaly_max_transfers: int = Field(default=2, ge=0)
    # day window
    daily_start_time: str = "10:00"
    daily_end_time: str = "20:00"
    daily_max_minutes: int = Field(default=600, gt=0)

    @field_validator("daily_start_time", "daily_end_time")
    @classmethod
    def _normalize_clock(cls, value: str) -> str:
        return normalize_time(value)


def load_planner_config(
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> PlannerConfig:
    """Defaults, then ``PLANNER_*`` variables, then explicit ``overrides``."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for name, field in PlannerConfig.model_fields.items():
        raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
        if not _is_configured(raw):
            continue
        if field.annotation is bool:
            values[name] = raw.strip().lower() in _TRUTHY
        else:
            values[name] = raw.strip()
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return PlannerConfig(**values)
    except ValidationError as exc:
        raise ValueError(f"invalid planner configuration: {exc}") from exc


def resolve_route_provider_default() -> str:
    mode = str(os.getenv("ROUTING_PROVIDER") or "").strip().lower()
    if mode in {"estimate", "transit", "auto"}:
        return mode
    if _is_configured(os.getenv("ODSAY_API_KEY")):
        # live transit search whenever credentials exist and nothing overrides it
        return "transit"
    return "estimate"


class ProviderSnapshot(BaseModel):
    route_provider: str = Field(default="estimate")
    transit_key_configured: bool = Field(default=False)


def resolve_provider_snapshot(*, route_provider: str | None = None) -> ProviderSnapshot:
    resolved = str(route_provider or "").strip().lower() or resolve_route_provider_default()
    return ProviderSnapshot(
        route_provider=resolved,
        transit_key_configured=_is_configured(os.getenv("ODSAY_API_KEY")),
    )


__all__ = [
    "PlannerConfig",
    "ProviderSnapshot",
    "load_planner_config",
    "resolve_provider_snapshot",
    "resolve_route_provider_default",
]
