"""Structured JSON-line logging for planning runs, with secret scrubbing."""

from __future__ import annotations

import json
import sys
import time
import uuid
from typing import Any, Optional, TextIO

from itinerary_optimizer.security.key_manager import get_key_manager


class StructuredLogger:
    """Emits one JSON object per line, tagged with the run's ``trace_id``."""

    def __init__(self, trace_id: Optional[str] = None, output: Optional[TextIO] = None):
        self.trace_id = trace_id or str(uuid.uuid4())[:8]
        self._output = output or sys.stderr
        self._timers: dict[str, float] = {}

    def _scrub(self, text: str) -> str:
        return get_key_manager().scrub_text(text)

    def _emit(self, data: dict[str, Any]) -> None:
        data["trace_id"] = self.trace_id
        data["timestamp"] = time.time()
        line = self._scrub(json.dumps(data, ensure_ascii=False, default=str))
        try:
            self._output.write(line + "\n")
            self._output.flush()
        except (OSError, ValueError) as exc:
            # closed or broken stream: report once on stderr instead
            sys.stderr.write(
                json.dumps({"event": "logger_internal_error", "trace_id": self.trace_id, "error": str(exc)}) + "\n"
            )

    def stage_start(self, stage: str, **extra: Any) -> None:
        self._timers[stage] = time.perf_counter()
        self._emit({"event": "stage_start", "stage": stage, **extra})

    def stage_end(self, stage: str, **extra: Any) -> float:
        start = self._timers.pop(stage, time.perf_counter())
        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        self._emit({"event": "stage_end", "stage": stage, "duration_ms": duration_ms, **extra})
        return duration_ms

    def tool_call(self, tool_name: str, **extra: Any) -> None:
        self._emit({"event": "tool_call", "tool": tool_name, **extra})

    def error(self, stage: str, error: str, **extra: Any) -> None:
        self._emit({"event": "error", "stage": stage, "error": self._scrub(error), **extra})

    def warning(self, stage: str, message: str, **extra: Any) -> None:
        self._emit({"event": "warning", "stage": stage, "message": self._scrub(message), **extra})

    def summary(self, **extra: Any) -> None:
        self._emit({"event": "summary", **extra})


__all__ = ["StructuredLogger"]
