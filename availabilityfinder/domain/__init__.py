"""
Domain layer - Pure business logic without external dependencies.
"""

from .default_window import fetch_bounds, resolve_default_range
from .interval_merger import merge_intervals
from .models import (
    AvailabilityPolicy,
    AvailabilityPreferences,
    AvailabilityRequest,
    AvailabilityResult,
    BusyInterval,
    FreeSlot,
    TimeRange,
    WorkingWindow,
)
from .slot_calculator import SlotCalculator, min_hours_for_total
from .working_windows import generate_working_windows

__all__ = [
    "AvailabilityPolicy",
    "AvailabilityPreferences",
    "AvailabilityRequest",
    "AvailabilityResult",
    "BusyInterval",
    "FreeSlot",
    "TimeRange",
    "WorkingWindow",
    "SlotCalculator",
    "fetch_bounds",
    "generate_working_windows",
    "merge_intervals",
    "min_hours_for_total",
    "resolve_default_range",
]
