"""pytest global fixtures: environment isolation."""

import pytest


@pytest.fixture(autouse=True)
def no_real_apis(monkeypatch):
    """Disable live routing so tests never depend on an external service."""
    monkeypatch.delenv("ODSAY_API_KEY", raising=False)
    monkeypatch.delenv("ROUTING_PROVIDER", raising=False)
    monkeypatch.delenv("PLAN_TIMEOUT_SECONDS", raising=False)
    from itinerary_optimizer.config.settings import PlannerConfig

    for name in PlannerConfig.model_fields:
        monkeypatch.delenv(f"PLANNER_{name.upper()}", raising=False)
    # keep unit tests fast: no pause between enrichment batches
    monkeypatch.setenv("PLANNER_BATCH_DELAY_SECONDS", "0")

    from itinerary_optimizer.infrastructure.cache import route_cache
    from itinerary_optimizer.security.key_manager import reset_key_manager

    reset_key_manager()
    route_cache.clear()
    yield
    reset_key_manager()
    route_cache.clear()
