"""Infrastructure services and cross-cutting utilities."""

from itinerary_optimizer.infrastructure.cache import MemoryCache, make_cache_key, route_cache
from itinerary_optimizer.infrastructure.logging import StructuredLogger

__all__ = [
    "MemoryCache",
    "StructuredLogger",
    "make_cache_key",
    "route_cache",
]
