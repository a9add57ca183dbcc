"""
Shared test doubles for the availability finder.
"""

from typing import List, Sequence

import pendulum

from availabilityfinder.adapters.base import TokenPair
from availabilityfinder.domain.models import TimeRange


def utc(value: str):
    return pendulum.parse(value, tz="UTC")


def busy(start: str, end: str, tz: str = "UTC") -> TimeRange:
    return TimeRange(
        start=pendulum.parse(start, tz=tz),
        end=pendulum.parse(end, tz=tz),
    )


class StubProvider:
    """
    Scripted calendar provider.

    ``fetch_outcomes`` is consumed one entry per fetch call, the last entry
    repeating: an exception instance is raised, anything else is returned
    as the busy list.
    """

    def __init__(self, fetch_outcomes=None, refresh_outcome=None):
        self.fetch_outcomes = list(fetch_outcomes or [[]])
        self.refresh_outcome = refresh_outcome or TokenPair("new-access", None)
        self.fetch_calls: List[dict] = []
        self.refresh_calls: List[str] = []

    def fetch_busy(self, access_token, calendar_ids: Sequence[str], time_min, time_max):
        self.fetch_calls.append(
            {
                "token": access_token,
                "calendar_ids": tuple(calendar_ids),
                "time_min": time_min,
                "time_max": time_max,
            }
        )
        if len(self.fetch_outcomes) > 1:
            outcome = self.fetch_outcomes.pop(0)
        else:
            outcome = self.fetch_outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    def exchange_refresh(self, refresh_token: str) -> TokenPair:
        self.refresh_calls.append(refresh_token)
        if isinstance(self.refresh_outcome, Exception):
            raise self.refresh_outcome
        return self.refresh_outcome
