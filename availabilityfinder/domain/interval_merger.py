"""
Normalisation of raw busy intervals.

Busy data arrives unsorted, possibly overlapping and possibly duplicated
across several calendars. Merging reduces it to the minimal sorted set of
disjoint intervals covering the same time.
"""

from typing import Iterable, List

from .models import TimeRange


def merge_intervals(intervals: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or touching time ranges into UTC.

    Example: [09:00-10:00, 10:00-11:00, 10:30-12:00] -> [09:00-12:00]
    """
    sorted_ranges = sorted(
        (r.in_timezone("UTC") for r in intervals),
        key=lambda r: r.start,
    )

    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        # Touching ranges (start == previous end) count as one busy block
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(start=last.start, end=current.end)
        else:
            merged.append(current)

    return merged
