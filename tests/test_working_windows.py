"""
Tests for working window generation, including DST transitions.
"""

from datetime import time

import pendulum

from availabilityfinder.domain.models import AvailabilityPreferences
from availabilityfinder.domain.working_windows import generate_working_windows, local_instant
from helpers import utc


def _preferences(timezone: str, off_days=frozenset({0, 6})) -> AvailabilityPreferences:
    return AvailabilityPreferences(
        timezone=timezone,
        working_hours_start=time(9, 0),
        working_hours_end=time(17, 0),
        off_days=off_days,
    )


class TestGenerateWorkingWindows:
    """Tests for generate_working_windows."""

    def test_weekend_skipped(self, weekday_preferences):
        """Saturday 2024-11-23 and Sunday 2024-11-24 produce no windows."""
        windows = generate_working_windows(
            pendulum.date(2024, 11, 23),
            pendulum.date(2024, 11, 25),
            weekday_preferences,
        )

        assert [w.date for w in windows] == [pendulum.date(2024, 11, 25)]
        assert windows[0].start == utc("2024-11-25T09:00:00")
        assert windows[0].end == utc("2024-11-25T17:00:00")

    def test_full_week(self, weekday_preferences):
        windows = generate_working_windows(
            pendulum.date(2024, 11, 25),
            pendulum.date(2024, 12, 1),
            weekday_preferences,
        )

        assert len(windows) == 5
        assert all(w.duration_hours() == 8.0 for w in windows)

    def test_only_off_days(self, weekday_preferences):
        windows = generate_working_windows(
            pendulum.date(2024, 11, 23),
            pendulum.date(2024, 11, 24),
            weekday_preferences,
        )

        assert windows == []

    def test_single_day_range(self, weekday_preferences):
        day = pendulum.date(2024, 11, 26)

        windows = generate_working_windows(day, day, weekday_preferences)

        assert len(windows) == 1

    def test_windows_ordered_and_disjoint(self):
        windows = generate_working_windows(
            pendulum.date(2024, 11, 18),
            pendulum.date(2024, 11, 29),
            _preferences("Asia/Tokyo"),
        )

        for left, right in zip(windows, windows[1:]):
            assert left.end <= right.start

    def test_berlin_autumn_dst(self):
        """09:00 local is 07:00Z before the switch and 08:00Z after it."""
        windows = generate_working_windows(
            pendulum.date(2024, 10, 25),
            pendulum.date(2024, 10, 28),
            _preferences("Europe/Berlin"),
        )

        assert [w.date for w in windows] == [
            pendulum.date(2024, 10, 25),
            pendulum.date(2024, 10, 28),
        ]
        assert windows[0].start == utc("2024-10-25T07:00:00")
        assert windows[0].end == utc("2024-10-25T15:00:00")
        assert windows[1].start == utc("2024-10-28T08:00:00")
        assert windows[1].end == utc("2024-10-28T16:00:00")

    def test_new_york_spring_dst(self):
        windows = generate_working_windows(
            pendulum.date(2025, 3, 8),
            pendulum.date(2025, 3, 10),
            _preferences("America/New_York", off_days=frozenset()),
        )

        assert len(windows) == 3
        assert windows[0].start == utc("2025-03-08T14:00:00")
        # Sunday of the switch: 09:00 is already daylight time
        assert windows[1].start == utc("2025-03-09T13:00:00")
        assert windows[2].start == utc("2025-03-10T13:00:00")
        assert all(w.duration_hours() == 8.0 for w in windows)


class TestLocalInstant:
    """Tests for local_instant."""

    def test_converts_to_utc(self):
        instant = local_instant(pendulum.date(2024, 7, 1), time(9, 30), "Asia/Kolkata")

        assert instant == utc("2024-07-01T04:00:00")
        assert instant.timezone_name == "UTC"
