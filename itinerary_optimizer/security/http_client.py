"""Secure HTTP client: the single exit point for external routing calls.

Every error message passes through the key manager's scrubber, so a key
embedded in a request URL never leaks into logs or exceptions.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from itinerary_optimizer.security.key_manager import get_key_manager
from itinerary_optimizer.shared.exceptions import ToolError


class SecureHttpClient:
    def __init__(
        self,
        *,
        timeout: float = 10.0,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        tool_name: str = "http",
    ):
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._tool_name = tool_name

    def get(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """GET ``url`` and decode the JSON body, retrying transport failures."""
        effective_timeout = timeout if timeout is not None else self._timeout
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 2):
            try:
                resp = httpx.get(url, params=params, headers=headers, timeout=effective_timeout)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as e:
                safe_msg = get_key_manager().scrub_text(str(e))
                last_error = ToolError(self._tool_name, f"HTTP {e.response.status_code}: {safe_msg}")
            except httpx.TimeoutException:
                last_error = ToolError(
                    self._tool_name, f"request timed out after {effective_timeout}s (attempt {attempt})"
                )
            except httpx.HTTPError as e:
                safe_msg = get_key_manager().scrub_text(str(e))
                last_error = ToolError(self._tool_name, f"network request failed: {safe_msg}")
            except ValueError as e:
                safe_msg = get_key_manager().scrub_text(str(e))
                last_error = ToolError(self._tool_name, f"invalid JSON response: {safe_msg}")

            if attempt <= self._max_retries:
                time.sleep(self._backoff_seconds * attempt)

        raise last_error  # type: ignore[misc]


__all__ = ["SecureHttpClient"]
