"""Checks run on itineraries after a manual edit."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from itinerary_optimizer.domain.enums import EditErrorCode
from itinerary_optimizer.domain.models import DailyItinerary
from itinerary_optimizer.domain.planning.timeutil import normalize_time, time_to_minutes

MAX_STAY_MINUTES = 720


class EditError(BaseModel):
    code: EditErrorCode
    message: str
    day_number: int
    place_id: Optional[str] = None


class ItineraryValidation(BaseModel):
    is_valid: bool = True
    errors: list[EditError] = Field(default_factory=list)


def validate_itinerary(
    itineraries: Sequence[DailyItinerary],
    daily_start_time: str = "10:00",
    daily_end_time: str = "22:00",
) -> ItineraryValidation:
    """Report empty days, stays outside the day window, bad stay lengths and missed fixed starts.

    A day's own ``daily_start_time``/``daily_end_time`` win over the defaults.
    Items without computed times are skipped by the clock checks.
    """
    errors: list[EditError] = []
    for day in itineraries:
        if not day.schedule:
            errors.append(
                EditError(
                    code=EditErrorCode.EMPTY_DAY,
                    message=f"day {day.day_number} has no places",
                    day_number=day.day_number,
                )
            )
            continue

        start_time = normalize_time(day.daily_start_time or daily_start_time)
        end_time = normalize_time(day.daily_end_time or daily_end_time)
        window_start, window_end = time_to_minutes(start_time), time_to_minutes(end_time)

        for item in day.schedule:
            label = item.place_name or item.place_id

            def add(code: EditErrorCode, message: str) -> None:
                errors.append(EditError(code=code, message=message, day_number=day.day_number, place_id=item.place_id))

            if not 0 <= item.duration <= MAX_STAY_MINUTES:
                add(EditErrorCode.INVALID_DURATION, f"{label}: stay of {item.duration} min is outside 0-{MAX_STAY_MINUTES}")
            if not (item.arrival_time and item.departure_time):
                continue
            arrival = time_to_minutes(item.arrival_time)
            departure = time_to_minutes(item.departure_time)
            if arrival < window_start:
                add(EditErrorCode.OUT_OF_HOURS, f"{label}: arrives {item.arrival_time}, before {start_time}")
            if departure > window_end:
                add(EditErrorCode.OUT_OF_HOURS, f"{label}: leaves {item.departure_time}, after {end_time}")
            if departure < arrival:
                add(EditErrorCode.INVALID_TIME, f"{label}: leaves {item.departure_time} before arriving {item.arrival_time}")
            if item.fixed_start_time and arrival != time_to_minutes(item.fixed_start_time):
                add(
                    EditErrorCode.FIXED_TIME_MISSED,
                    f"{label}: fixed at {normalize_time(item.fixed_start_time)} but arrives {item.arrival_time}",
                )

    return ItineraryValidation(is_valid=not errors, errors=errors)


__all__ = ["EditError", "ItineraryValidation", "MAX_STAY_MINUTES", "validate_itinerary"]
