"""Domain enums."""

from enum import Enum


class TransportMode(str, Enum):
    WALKING = "walking"
    PUBLIC_TRANSIT = "public_transit"
    DRIVING = "driving"


class ConflictType(str, Enum):
    OVERLAP = "overlap"
    OUTSIDE_HOURS = "outside_hours"
    EXCEEDS_DAILY_LIMIT = "exceeds_daily_limit"


class TrafficType(int, Enum):
    SUBWAY = 1
    BUS = 2
    WALK = 3
    TRAIN = 10
    EXPRESS_BUS = 11
    INTERCITY_BUS = 12
    FERRY = 14


class AnomalyType(str, Enum):
    LONG_DURATION = "LONG_DURATION"
    TOO_MANY_TRANSFERS = "TOO_MANY_TRANSFERS"


class EditErrorCode(str, Enum):
    EMPTY_DAY = "EMPTY_DAY"
    OUT_OF_HOURS = "OUT_OF_HOURS"
    INVALID_TIME = "INVALID_TIME"
    INVALID_DURATION = "INVALID_DURATION"
    FIXED_TIME_MISSED = "FIXED_TIME_MISSED"
