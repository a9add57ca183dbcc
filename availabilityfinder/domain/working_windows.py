"""
Generation of per-day working windows in absolute time.
"""

import logging
from datetime import date as date_type
from typing import List

import pendulum
from pendulum import Date, DateTime

from .models import AvailabilityPreferences, WorkingWindow, to_date

logger = logging.getLogger(__name__)


def local_instant(day: Date, at, timezone: str) -> DateTime:
    """
    Wall-clock ``at`` on ``day`` in ``timezone``, as a UTC instant.

    The offset comes from the tz database for that specific date, so the
    same nominal hour maps to different instants on either side of a DST
    change. Non-existent local times (spring-forward gaps) are shifted
    forward by pendulum.
    """
    local = pendulum.datetime(
        day.year,
        day.month,
        day.day,
        at.hour,
        at.minute,
        at.second,
        tz=timezone,
    )
    return local.in_timezone("UTC")


def generate_working_windows(
    start_date: date_type,
    end_date: date_type,
    preferences: AvailabilityPreferences,
) -> List[WorkingWindow]:
    """
    Generate one working window per eligible date in ``[start_date, end_date]``.

    Dates whose weekday is an off day produce nothing.
    """
    windows: List[WorkingWindow] = []

    current = to_date(start_date)
    last = to_date(end_date)

    while current <= last:
        if preferences.is_working_day(current):
            start = local_instant(current, preferences.working_hours_start, preferences.timezone)
            end = local_instant(current, preferences.working_hours_end, preferences.timezone)

            if start < end:
                windows.append(WorkingWindow(date=current, start=start, end=end))
            else:
                logger.debug("Skipping empty working window on %s", current)

        current = current.add(days=1)

    return windows
