"""
Domain models for time ranges, preferences and availability results.
"""

from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import time
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import RequestValidationError

WEEKDAY_NAMES = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}


def validate_timezone(name: str) -> str:
    """Return ``name`` if it is a known IANA zone, raise otherwise."""
    if not name:
        raise RequestValidationError("Timezone must not be empty")
    try:
        pendulum.timezone(name)
    except (ValueError, LookupError) as exc:
        raise RequestValidationError(f"Unknown timezone: {name!r}") from exc
    return name


def to_date(value: date_type) -> Date:
    """Normalise a ``datetime.date`` (or pendulum Date/DateTime) to a pendulum Date."""
    return pendulum.date(value.year, value.month, value.day)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Busy intervals and free slots are both time ranges.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_raw(cls, start: DateTime, end: DateTime) -> "TimeRange | None":
        """Build a range, or return None for zero-length and inverted input."""
        if start >= end:
            return None
        return cls(start=start, end=end)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def duration_hours(self) -> float:
        """Return the duration in (fractional) hours."""
        return (self.end - self.start).total_seconds() / 3600

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def clip_to(self, bounds: "TimeRange") -> "TimeRange | None":
        """Portion of this range inside ``bounds``, or None when outside."""
        return self.intersect(bounds)

    def in_timezone(self, timezone: str) -> "TimeRange":
        return TimeRange(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "start": self.start.in_timezone("UTC").to_iso8601_string(),
            "end": self.end.in_timezone("UTC").to_iso8601_string(),
        }

    def format_display(self, timezone: str) -> str:
        """
        Format the range in the given zone for display.
        Format: Weekday, YYYY-MM-DD | HH:mm – HH:mm (N min)
        """
        local = self.in_timezone(timezone)
        weekday = WEEKDAY_NAMES[weekday_number(local.start.date())]
        date_str = local.start.format("YYYY-MM-DD")
        time_str = f"{local.start.format('HH:mm')} – {local.end.format('HH:mm')}"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


BusyInterval = TimeRange
FreeSlot = TimeRange


def weekday_number(day: date_type) -> int:
    """Weekday as 0-6 with 0 = Sunday and 6 = Saturday."""
    return day.isoweekday() % 7


class AvailabilityPolicy(str, Enum):
    """How per-day free hours combine into a single availability verdict."""

    EVERY_DAY = "every_day"
    ANY_DAY = "any_day"
    TOTAL_ONLY = "total_only"


@dataclass(frozen=True)
class AvailabilityPreferences:
    """
    A person's working-hours preferences.

    ``off_days`` uses 0 = Sunday ... 6 = Saturday. Overnight shifts are not
    supported, so the working day must open before it closes.
    """
    timezone: str
    working_hours_start: time
    working_hours_end: time
    off_days: FrozenSet[int] = frozenset({0, 6})

    def __post_init__(self):
        validate_timezone(self.timezone)
        if self.working_hours_start >= self.working_hours_end:
            raise RequestValidationError(
                f"Working hours start {self.working_hours_start} must be before "
                f"end {self.working_hours_end}"
            )
        invalid = sorted(day for day in self.off_days if day not in range(7))
        if invalid:
            raise RequestValidationError(f"Off days must be between 0 and 6, got {invalid}")
        object.__setattr__(self, "off_days", frozenset(self.off_days))

    def is_working_day(self, day: date_type) -> bool:
        """Check if a given date is not an off day."""
        return weekday_number(day) not in self.off_days

    def hours_per_working_day(self) -> float:
        """Nominal length of the local working day in hours."""
        start = self.working_hours_start
        end = self.working_hours_end
        seconds = (end.hour * 3600 + end.minute * 60 + end.second) - (
            start.hour * 3600 + start.minute * 60 + start.second
        )
        return seconds / 3600


@dataclass
class AvailabilityRequest:
    """
    A single person's availability question.

    ``start_date`` and ``end_date`` are inclusive calendar dates in the
    person's timezone.
    """
    calendar_ids: Tuple[str, ...]
    person_id: str
    start_date: Date
    end_date: Date
    preferences: AvailabilityPreferences
    min_hours_per_day: float = 0.0
    required_total_hours: Optional[float] = None
    policy: AvailabilityPolicy = AvailabilityPolicy.EVERY_DAY

    def __post_init__(self):
        if not self.person_id or not self.person_id.strip():
            raise RequestValidationError("A person identifier is required")

        if isinstance(self.calendar_ids, str):
            self.calendar_ids = (self.calendar_ids,)
        self.calendar_ids = tuple(
            calendar_id.strip() for calendar_id in self.calendar_ids if calendar_id and calendar_id.strip()
        )
        if not self.calendar_ids:
            raise RequestValidationError("At least one calendar id is required")

        self.start_date = to_date(self.start_date)
        self.end_date = to_date(self.end_date)
        if self.start_date > self.end_date:
            raise RequestValidationError(
                f"Start date {self.start_date} must not be after end date {self.end_date}"
            )

        if self.min_hours_per_day < 0:
            raise RequestValidationError("min_hours_per_day must not be negative")
        if self.required_total_hours is not None and self.required_total_hours < 0:
            raise RequestValidationError("required_total_hours must not be negative")

        self.policy = AvailabilityPolicy(self.policy)


@dataclass(frozen=True)
class WorkingWindow:
    """Working hours for one local calendar date, in absolute time."""
    date: Date
    start: DateTime
    end: DateTime

    def as_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class AvailabilityResult:
    """Outcome of one availability computation. Recomputed on every request."""
    is_available: bool
    free_slots: Tuple[TimeRange, ...] = ()
    total_free_hours: float = 0.0
    working_days: int = 0
    hours_per_day: Dict[Date, float] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "AvailabilityResult":
        return cls(is_available=False)

    def qualifying_days(self, min_hours_per_day: float) -> List[Date]:
        """Dates whose free hours meet the per-day bar."""
        return [day for day, hours in self.hours_per_day.items() if hours >= min_hours_per_day]

    def to_dict(self) -> Dict[str, object]:
        return {
            "isAvailable": self.is_available,
            "freeSlots": [slot.to_dict() for slot in self.free_slots],
            "totalFreeHours": self.total_free_hours,
            "workingDays": self.working_days,
            "hoursPerDay": {day.isoformat(): hours for day, hours in self.hours_per_day.items()},
        }
