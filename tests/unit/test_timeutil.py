"""Clock-string and date helpers."""

from __future__ import annotations

import datetime as dt

import pytest

from itinerary_optimizer.domain.planning.timeutil import (
    add_minutes_to_time,
    day_index_for_date,
    days_between,
    generate_date_range,
    minutes_between,
    minutes_to_time,
    normalize_time,
    time_to_minutes,
)


def test_time_to_minutes_roundtrip():
    assert time_to_minutes("09:30") == 570
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(0) == "00:00"


def test_minutes_to_time_does_not_wrap_past_midnight():
    assert minutes_to_time(24 * 60 + 30) == "24:30"


def test_normalize_time_accepts_loose_forms():
    assert normalize_time("9:5") == "09:05"
    assert normalize_time("09:05:00") == "09:05"


@pytest.mark.parametrize("text", ["0930", "ab:cd", "10:75"])
def test_time_to_minutes_rejects_garbage(text):
    with pytest.raises(ValueError):
        time_to_minutes(text)


def test_add_and_between():
    assert add_minutes_to_time("10:00", 90) == "11:30"
    assert minutes_between("10:00", "11:15") == 75


def test_date_helpers():
    start = dt.date(2025, 3, 1)
    assert days_between(start, start) == 1
    assert days_between(start, dt.date(2025, 3, 3)) == 3
    assert generate_date_range(start, 3) == [start, dt.date(2025, 3, 2), dt.date(2025, 3, 3)]
    assert generate_date_range(start, 0) == []
    assert day_index_for_date(start, dt.date(2025, 3, 2)) == 1
    assert day_index_for_date(start, dt.date(2025, 2, 28)) == -1
