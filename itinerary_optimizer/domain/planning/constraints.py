"""Fixed-commitment checks and per-day free-slot bookkeeping.

Every detector is pure and returns a list of ``ScheduleConflict`` rows;
callers decide whether a conflict blocks planning.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from typing import Iterable

from itinerary_optimizer.domain.enums import ConflictType
from itinerary_optimizer.domain.exceptions import InvalidTripInput
from itinerary_optimizer.domain.models import (
    ConstraintValidationResult,
    DailyConstraints,
    FixedCommitment,
    ScheduleConflict,
    ScheduledCommitment,
    TimeSlot,
    TripWindow,
    Waypoint,
)
from itinerary_optimizer.domain.planning.timeutil import (
    add_minutes_to_time,
    days_between,
    generate_date_range,
    time_to_minutes,
)

DailyConstraintMap = dict[dt.date, DailyConstraints]


def resolve_commitments(
    commitments: Iterable[FixedCommitment],
    waypoints: Iterable[Waypoint],
) -> list[ScheduledCommitment]:
    """Derive each commitment's end time from its waypoint's stay."""
    by_id = {wp.id: wp for wp in waypoints}
    resolved: list[ScheduledCommitment] = []
    for commitment in commitments:
        waypoint = by_id.get(commitment.waypoint_id)
        if waypoint is None:
            raise InvalidTripInput(
                f"commitment {commitment.id} references unknown waypoint {commitment.waypoint_id}"
            )
        resolved.append(
            ScheduledCommitment(
                commitment_id=commitment.id,
                waypoint_id=commitment.waypoint_id,
                date=commitment.date,
                start_time=commitment.start_time,
                end_time=add_minutes_to_time(commitment.start_time, waypoint.stay_minutes),
            )
        )
    return resolved


def _group_by_date(commitments: Iterable[ScheduledCommitment]) -> dict[dt.date, list[ScheduledCommitment]]:
    grouped: dict[dt.date, list[ScheduledCommitment]] = defaultdict(list)
    for commitment in commitments:
        grouped[commitment.date].append(commitment)
    return dict(sorted(grouped.items()))


def _sort_key(commitment: ScheduledCommitment) -> tuple[int, int, str]:
    return commitment.start_minute, commitment.end_minute, commitment.commitment_id


def detect_schedule_conflicts(commitments: Iterable[ScheduledCommitment]) -> list[ScheduleConflict]:
    """Report every overlapping pair on the same date. Touching intervals do not overlap."""
    conflicts: list[ScheduleConflict] = []
    for date, day_items in _group_by_date(commitments).items():
        active: list[ScheduledCommitment] = []
        for current in sorted(day_items, key=_sort_key):
            active = [item for item in active if item.end_minute > current.start_minute]
            for earlier in active:
                conflicts.append(
                    ScheduleConflict(
                        type=ConflictType.OVERLAP,
                        schedule_ids=[earlier.commitment_id, current.commitment_id],
                        date=date,
                        message=(
                            f"commitments {earlier.commitment_id} ({earlier.start_time}-{earlier.end_time}) and "
                            f"{current.commitment_id} ({current.start_time}-{current.end_time}) overlap"
                        ),
                    )
                )
            active.append(current)
    return conflicts


def detect_out_of_hours_conflicts(
    commitments: Iterable[ScheduledCommitment],
    daily_start_time: str,
    daily_end_time: str,
) -> list[ScheduleConflict]:
    day_start = time_to_minutes(daily_start_time)
    day_end = time_to_minutes(daily_end_time)
    conflicts: list[ScheduleConflict] = []
    for commitment in sorted(commitments, key=lambda c: (c.date, *_sort_key(c))):
        if commitment.start_minute < day_start or commitment.end_minute > day_end:
            conflicts.append(
                ScheduleConflict(
                    type=ConflictType.OUTSIDE_HOURS,
                    schedule_ids=[commitment.commitment_id],
                    date=commitment.date,
                    message=(
                        f"commitment {commitment.commitment_id} ({commitment.start_time}-{commitment.end_time}) "
                        f"falls outside daily hours {daily_start_time}-{daily_end_time}"
                    ),
                )
            )
    return conflicts


def detect_daily_limit_conflicts(
    commitments: Iterable[ScheduledCommitment],
    max_daily_minutes: int,
) -> list[ScheduleConflict]:
    conflicts: list[ScheduleConflict] = []
    for date, day_items in _group_by_date(commitments).items():
        total = sum(item.duration_minutes for item in day_items)
        if total > max_daily_minutes:
            conflicts.append(
                ScheduleConflict(
                    type=ConflictType.EXCEEDS_DAILY_LIMIT,
                    schedule_ids=[item.commitment_id for item in sorted(day_items, key=_sort_key)],
                    date=date,
                    message=f"{date.isoformat()} commitments total {total}m exceeds daily limit {max_daily_minutes}m",
                )
            )
    return conflicts


def validate_fixed_commitments(
    commitments: list[ScheduledCommitment],
    window: TripWindow,
    *,
    max_daily_minutes: int | None = None,
) -> ConstraintValidationResult:
    trip_dates = set(generate_date_range(window.start_date, days_between(window.start_date, window.end_date)))
    warnings = [
        f"commitment {item.commitment_id} date {item.date.isoformat()} is outside the trip"
        for item in commitments
        if item.date not in trip_dates
    ]
    conflicts = detect_schedule_conflicts(commitments)
    conflicts.extend(detect_out_of_hours_conflicts(commitments, window.daily_start_time, window.daily_end_time))
    if max_daily_minutes is not None and max_daily_minutes > 0:
        conflicts.extend(detect_daily_limit_conflicts(commitments, max_daily_minutes))
    return ConstraintValidationResult(is_valid=not conflicts, conflicts=conflicts, warnings=warnings)


def _merge_slots(slots: list[TimeSlot]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for slot in sorted(slots, key=lambda s: (s.start, s.end)):
        if merged and slot.start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], slot.end))
        else:
            merged.append((slot.start, slot.end))
    return merged


def _free_slots(day_start: int, day_end: int, fixed_slots: list[TimeSlot]) -> list[TimeSlot]:
    free: list[TimeSlot] = []
    cursor = day_start
    for start, end in _merge_slots(fixed_slots):
        if start > cursor:
            free.append(TimeSlot(start=cursor, end=min(start, day_end)))
        cursor = max(cursor, end)
        if cursor >= day_end:
            break
    if cursor < day_end:
        free.append(TimeSlot(start=cursor, end=day_end))
    return [slot for slot in free if slot.end > slot.start]


def calculate_daily_constraints(
    commitments: Iterable[ScheduledCommitment],
    window: TripWindow,
) -> DailyConstraintMap:
    """Free ``[start, end)`` slots per trip date after subtracting commitments."""
    day_start = time_to_minutes(window.daily_start_time)
    day_end = time_to_minutes(window.daily_end_time)
    dates = generate_date_range(window.start_date, days_between(window.start_date, window.end_date))
    fixed_by_date: dict[dt.date, list[TimeSlot]] = {date: [] for date in dates}
    for commitment in commitments:
        if commitment.date not in fixed_by_date:
            continue
        fixed_by_date[commitment.date].append(
            TimeSlot(
                start=commitment.start_minute,
                end=commitment.end_minute,
                waypoint_id=commitment.waypoint_id,
                commitment_id=commitment.commitment_id,
            )
        )

    result: DailyConstraintMap = {}
    for date in dates:
        fixed = sorted(fixed_by_date[date], key=lambda s: (s.start, s.end, s.commitment_id or ""))
        result[date] = DailyConstraints(
            date=date,
            day_start=day_start,
            day_end=day_end,
            fixed_slots=fixed,
            available_slots=_free_slots(day_start, day_end, fixed),
        )
    return result


def can_place_at(
    constraints: DailyConstraintMap,
    date: dt.date,
    start_minute: int,
    duration_minutes: int,
) -> bool:
    day = constraints.get(date)
    if day is None:
        return False
    end_minute = start_minute + duration_minutes
    if start_minute < day.day_start or end_minute > day.day_end:
        return False
    return all(not (start_minute < fixed.end and fixed.start < end_minute) for fixed in day.fixed_slots)


def find_available_slot(
    constraints: DailyConstraintMap,
    date: dt.date,
    duration_minutes: int,
    preferred_start: int,
) -> int | None:
    """Earliest start at/after ``preferred_start``; else an earlier slot that fits whole."""
    day = constraints.get(date)
    if day is None:
        return None
    for slot in day.available_slots:
        start = max(slot.start, preferred_start)
        if start + duration_minutes <= slot.end:
            return start
    for slot in day.available_slots:
        if slot.end <= preferred_start and slot.end - slot.start >= duration_minutes:
            return slot.start
    return None


def total_fixed_minutes(date: dt.date, commitments: Iterable[ScheduledCommitment]) -> int:
    return sum(item.duration_minutes for item in commitments if item.date == date)


def available_minutes(
    date: dt.date,
    commitments: Iterable[ScheduledCommitment],
    daily_start_time: str,
    daily_end_time: str,
) -> int:
    span = time_to_minutes(daily_end_time) - time_to_minutes(daily_start_time)
    return max(0, span - total_fixed_minutes(date, commitments))


__all__ = [
    "DailyConstraintMap",
    "available_minutes",
    "calculate_daily_constraints",
    "can_place_at",
    "detect_daily_limit_conflicts",
    "detect_out_of_hours_conflicts",
    "detect_schedule_conflicts",
    "find_available_slot",
    "resolve_commitments",
    "total_fixed_minutes",
    "validate_fixed_commitments",
]
