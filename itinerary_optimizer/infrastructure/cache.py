"""Process-local route cache: TTL entries, least-recently-used eviction."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any, Optional


class MemoryCache:
    """Bounded mapping of lookup key -> value shared by worker threads.

    Expired entries are dropped lazily on read and in bulk when the cache is
    full; if nothing has expired the least recently read entry goes first.
    """

    def __init__(self, default_ttl: float = 300.0, max_size: int = 500):
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._default_ttl = default_ttl
        self._max_size = max(1, max_size)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[1] < now:
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry[0]

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = time.monotonic() + (self._default_ttl if ttl is None else ttl)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._max_size:
                self._make_room()
            self._entries[key] = (value, expires_at)

    def _make_room(self) -> None:
        now = time.monotonic()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at < now]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        while len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
            self._evictions += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            }


def make_cache_key(*parts: Any) -> str:
    """Stable digest of positional parts; order matters."""
    raw = json.dumps(parts, default=str, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


# transit searches for the same stop pair rarely change within half an hour
route_cache = MemoryCache(default_ttl=1800.0, max_size=300)


__all__ = ["MemoryCache", "make_cache_key", "route_cache"]
