"""Central access point for routing provider keys.

Keys are read from the environment once and cached; ``scrub_text`` removes
every loaded key value from arbitrary text before it reaches a log line or
an exception message.
"""

from __future__ import annotations

import os
from typing import Optional

from itinerary_optimizer.security.redact import redact_sensitive
from itinerary_optimizer.shared.exceptions import KeyMissingError

ODSAY_KEY_NAME = "ODSAY_API_KEY"


class KeyManager:
    def __init__(self) -> None:
        self._keys: dict[str, str] = {}

    def get(self, name: str, *, required: bool = False) -> Optional[str]:
        value = self._keys.get(name)
        if value is None:
            raw = os.getenv(name, "").strip()
            if raw:
                value = raw
                self._keys[name] = raw
            elif required:
                raise KeyMissingError(name)
        return value

    def get_odsay_key(self, *, required: bool = True) -> str:
        return self.get(ODSAY_KEY_NAME, required=required) or ""

    def has_key(self, name: str) -> bool:
        if name in self._keys:
            return True
        return bool(os.getenv(name, "").strip())

    def scrub_text(self, text: str) -> str:
        result = str(text) if text is not None else ""
        for name, value in self._keys.items():
            if value and value in result:
                result = result.replace(value, f"[{name}:***REDACTED***]")
        return redact_sensitive(result)

    def reload(self, name: str) -> None:
        """Re-read ``name`` from the environment (key rotation)."""
        raw = os.getenv(name, "").strip()
        if raw:
            self._keys[name] = raw
        else:
            self._keys.pop(name, None)


_manager: Optional[KeyManager] = None


def get_key_manager() -> KeyManager:
    global _manager
    if _manager is None:
        _manager = KeyManager()
    return _manager


def reset_key_manager() -> None:
    global _manager
    _manager = None


__all__ = ["KeyManager", "ODSAY_KEY_NAME", "get_key_manager", "reset_key_manager"]
