"""Clock-string and date arithmetic shared by the planning stages.

Clock strings are ``HH:MM``. Minute offsets count from midnight and are not
wrapped at 24h, so a day running past midnight renders as ``24:30``.
"""

from __future__ import annotations

import datetime as dt
import math


def time_to_minutes(text: str) -> int:
    parts = str(text).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"invalid clock string: {text!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours < 0 or not 0 <= minutes < 60:
        raise ValueError(f"invalid clock string: {text!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: float) -> str:
    total = max(0, int(math.floor(minutes + 1e-9)))
    return f"{total // 60:02d}:{total % 60:02d}"


def normalize_time(text: str) -> str:
    """``9:5`` / ``09:05:00`` -> ``09:05``."""
    return minutes_to_time(time_to_minutes(text))


def add_minutes_to_time(text: str, minutes: float) -> str:
    return minutes_to_time(time_to_minutes(text) + minutes)


def minutes_between(start: str, end: str) -> int:
    return time_to_minutes(end) - time_to_minutes(start)


def days_between(start_date: dt.date, end_date: dt.date) -> int:
    """Inclusive day count: the same date twice is one day."""
    return (end_date - start_date).days + 1


def generate_date_range(start_date: dt.date, days: int) -> list[dt.date]:
    return [start_date + dt.timedelta(days=offset) for offset in range(max(0, days))]


def day_index_for_date(start_date: dt.date, date: dt.date) -> int:
    """0-based trip day of ``date``; negative when it precedes the trip."""
    return (date - start_date).days


__all__ = [
    "add_minutes_to_time",
    "day_index_for_date",
    "days_between",
    "generate_date_range",
    "minutes_between",
    "minutes_to_time",
    "normalize_time",
    "time_to_minutes",
]
