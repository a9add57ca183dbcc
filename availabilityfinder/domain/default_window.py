"""
Resolution of the default scan range and of upstream query bounds.
"""

from typing import Optional, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from .models import WorkingWindow, to_date, validate_timezone

DEFAULT_RANGE_DAYS = 7


def resolve_default_range(
    timezone: str,
    now: Optional[DateTime] = None,
    days: int = DEFAULT_RANGE_DAYS,
) -> Tuple[Date, Date]:
    """
    Return ``(tomorrow, tomorrow + days - 1)`` as dates in ``timezone``.

    "Tomorrow" is taken from the current instant seen in the person's zone,
    never from the server's local time.
    """
    validate_timezone(timezone)
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")

    instant = now if now is not None else pendulum.now("UTC")
    tomorrow = to_date(instant.in_timezone(timezone)).add(days=1)

    return tomorrow, tomorrow.add(days=days - 1)


def fetch_bounds(windows: Sequence[WorkingWindow]) -> Tuple[DateTime, DateTime]:
    """Smallest absolute range covering every window."""
    if not windows:
        raise ValueError("Cannot compute fetch bounds without working windows")

    return (
        min(window.start for window in windows),
        max(window.end for window in windows),
    )
