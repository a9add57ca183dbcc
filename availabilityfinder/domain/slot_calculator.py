"""
Core business logic for calculating free time and the availability verdict.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import math
from datetime import date as date_type
from typing import Dict, Iterable, List, Optional, Sequence

from pendulum import Date

from .interval_merger import merge_intervals
from .models import (
    AvailabilityPolicy,
    AvailabilityResult,
    TimeRange,
    WorkingWindow,
    to_date,
)


def min_hours_for_total(
    required_total_hours: float,
    start_date: date_type,
    end_date: date_type,
) -> float:
    """
    Spread a total hours requirement evenly over an inclusive date range.

    Example: 20 hours over 7 days -> ceil(20 / 7) = 3 hours per day.
    """
    days_in_range = max(1, (to_date(end_date) - to_date(start_date)).days + 1)
    return float(math.ceil(required_total_hours / days_in_range))


class SlotCalculator:
    """
    Calculates free slots and availability from busy times and working windows.

    Algorithm:
    1. Merge busy intervals from all calendars
    2. For each working window, subtract the busy times clipped to it
    3. Sum free hours per day and in total
    4. Apply the availability policy
    """

    def __init__(self, policy: AvailabilityPolicy = AvailabilityPolicy.EVERY_DAY):
        self.policy = AvailabilityPolicy(policy)

    def calculate(
        self,
        busy_intervals: Iterable[TimeRange],
        windows: Sequence[WorkingWindow],
        min_hours_per_day: float = 0.0,
        required_total_hours: Optional[float] = None,
    ) -> AvailabilityResult:
        """
        Compute free slots for every working window.

        Args:
            busy_intervals: Raw busy ranges, unsorted and possibly overlapping
            windows: Working windows, one per eligible date
            min_hours_per_day: Per-day qualification bar
            required_total_hours: Optional bound on the total free time

        Returns:
            AvailabilityResult for the whole range
        """
        if not windows:
            return AvailabilityResult.empty()

        merged_busy = merge_intervals(busy_intervals)

        free_slots: List[TimeRange] = []
        hours_per_day: Dict[Date, float] = {}

        for window in sorted(windows, key=lambda w: w.start):
            day_slots = self._subtract_busy_from_window(window.as_range(), merged_busy)
            free_slots.extend(day_slots)

            # Every window has an entry, even a fully booked one
            hours_per_day[window.date] = hours_per_day.get(window.date, 0.0) + sum(
                slot.duration_hours() for slot in day_slots
            )

        total_free_hours = sum(hours_per_day.values())

        return AvailabilityResult(
            is_available=self._is_available(
                hours_per_day=hours_per_day,
                total_free_hours=total_free_hours,
                working_days=len(windows),
                min_hours_per_day=min_hours_per_day,
                required_total_hours=required_total_hours,
            ),
            free_slots=tuple(free_slots),
            total_free_hours=total_free_hours,
            working_days=len(windows),
            hours_per_day=hours_per_day,
        )

    def _subtract_busy_from_window(
        self,
        window: TimeRange,
        busy_ranges: List[TimeRange],
    ) -> List[TimeRange]:
        """
        Subtract busy times from a working window, yielding free time ranges.

        Example:
        Working: 09:00 - 17:00
        Busy: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        free_ranges: List[TimeRange] = []
        current_start = window.start

        clipped_busy = [
            busy.clip_to(window) for busy in busy_ranges
            if window.overlaps(busy)
        ]

        for busy in clipped_busy:
            # If there's free time before this busy period
            if current_start < busy.start:
                free_ranges.append(
                    TimeRange(start=current_start, end=busy.start)
                )

            # Move current pointer to end of busy period
            current_start = max(current_start, busy.end)

        # Add remaining free time after last busy period
        if current_start < window.end:
            free_ranges.append(
                TimeRange(start=current_start, end=window.end)
            )

        return free_ranges

    def _is_available(
        self,
        *,
        hours_per_day: Dict[Date, float],
        total_free_hours: float,
        working_days: int,
        min_hours_per_day: float,
        required_total_hours: Optional[float],
    ) -> bool:
        if working_days == 0:
            return False

        if self.policy is AvailabilityPolicy.EVERY_DAY:
            available = all(hours >= min_hours_per_day for hours in hours_per_day.values())
        elif self.policy is AvailabilityPolicy.ANY_DAY:
            available = any(hours >= min_hours_per_day for hours in hours_per_day.values())
        else:
            if required_total_hours is not None:
                threshold = required_total_hours
            else:
                threshold = min_hours_per_day * working_days
            available = total_free_hours >= threshold

        if required_total_hours is not None and total_free_hours < required_total_hours:
            return False

        return available
