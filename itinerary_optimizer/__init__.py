"""Multi-day itinerary optimization pipeline."""

__version__ = "1.0.0"
