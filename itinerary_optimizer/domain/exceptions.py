"""Domain semantic exceptions."""


class DomainError(Exception):
    """Base domain exception."""


class InvalidTripInput(DomainError):
    """Raised when trip input cannot be planned (empty waypoints, bad day count, unknown ids)."""


class PlanningInvariantError(DomainError):
    """Raised when a planning stage loses or duplicates a waypoint."""
