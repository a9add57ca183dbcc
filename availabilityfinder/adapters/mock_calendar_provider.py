"""
Mock calendar provider for running without a real calendar account.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.models import TimeRange
from .base import TokenPair

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarProvider:
    """
    Mock provider that simulates upstream free/busy responses.

    Events are loaded from mock_calendar_data.json (or passed in directly)
    and every access token is accepted.
    """

    def __init__(
        self,
        events: Optional[List[Dict[str, Any]]] = None,
        data_file: Optional[Path] = None,
    ):
        """
        Initialize the mock provider.

        Args:
            events: Optional event list; overrides the data file
            data_file: Optional path to a JSON event list
        """
        if events is not None:
            self.calendar_events = list(events)
        else:
            self.calendar_events = self._load_calendar_data(data_file or DEFAULT_DATA_FILE)
        self.refresh_count = 0

    @staticmethod
    def _load_calendar_data(data_file: Path) -> List[Dict[str, Any]]:
        """Load mock calendar data from JSON file."""
        if not data_file.exists():
            logger.warning("Mock calendar data not found at %s", data_file)
            return []

        with open(data_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def fetch_busy(
        self,
        access_token: str,
        calendar_ids: Sequence[str],
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[TimeRange]:
        """
        Return busy times from the mock data that overlap the window.
        """
        wanted = set(calendar_ids)
        busy_times: List[TimeRange] = []

        for event in self.calendar_events:
            if event.get("calendarId") not in wanted:
                continue

            try:
                busy = TimeRange.from_raw(
                    pendulum.parse(event["start"]),
                    pendulum.parse(event["end"]),
                )
            except (KeyError, ValueError):
                # Skip invalid events
                continue

            if busy is not None and busy.start < time_max and busy.end > time_min:
                busy_times.append(busy)

        return sorted(busy_times, key=lambda r: r.start)

    def exchange_refresh(self, refresh_token: str) -> TokenPair:
        """Hand out a fresh mock access token."""
        self.refresh_count += 1
        return TokenPair(access_token=f"mock_access_token_{self.refresh_count}")

    def test_connection(self, access_token: str) -> Dict[str, Any]:
        """
        Mock connection test.
        """
        calendar_ids = sorted({event.get("calendarId", "") for event in self.calendar_events})
        return {"calendars": [{"id": cid, "summary": "Mock calendar"} for cid in calendar_ids]}
