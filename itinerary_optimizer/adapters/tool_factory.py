"""Concrete route tool selection."""

from __future__ import annotations

import logging

from itinerary_optimizer.adapters.route import estimate as estimate_route_tool
from itinerary_optimizer.security.key_manager import ODSAY_KEY_NAME, get_key_manager
from itinerary_optimizer.shared.exceptions import KeyMissingError

_logger = logging.getLogger("itinerary-optimizer.tools")


def has_transit_key() -> bool:
    return get_key_manager().has_key(ODSAY_KEY_NAME)


def get_route_tool(provider: str = "estimate"):
    """Return the route tool module for ``provider`` (``estimate`` or ``transit``)."""
    if provider != "transit":
        return estimate_route_tool
    if not has_transit_key():
        raise KeyMissingError(ODSAY_KEY_NAME)
    from itinerary_optimizer.adapters.route import transit as transit_route_tool

    _logger.info("Using ODsay transit route tool")
    return transit_route_tool


def describe_active_tools() -> dict[str, str]:
    return {"route": "odsay" if has_transit_key() else "estimate"}


__all__ = ["describe_active_tools", "get_route_tool", "has_transit_key"]
