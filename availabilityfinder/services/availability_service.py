"""
Application service computing a person's availability.

The service validates the request, builds the working windows, fetches busy
times through the credential-refreshing fetcher and delegates the actual
arithmetic to the domain-level ``SlotCalculator``. Blocking upstream calls
run in worker threads so many people can be checked concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pendulum import DateTime

from ..config import AvailabilityDefaults
from ..domain.default_window import fetch_bounds
from ..domain.exceptions import AvailabilityError
from ..domain.models import AvailabilityRequest, AvailabilityResult, TimeRange, WorkingWindow
from ..domain.slot_calculator import SlotCalculator
from ..domain.working_windows import generate_working_windows
from .credential_refresher import CredentialRefreshingFetcher
from .schemas import AvailabilityQuery

logger = logging.getLogger(__name__)

RosterOutcome = Union[AvailabilityResult, AvailabilityError]


class AvailabilityService:
    """
    Orchestrates busy-time retrieval and availability calculation.

    Holds no per-request state; every call recomputes its result.
    """

    def __init__(
        self,
        fetcher: CredentialRefreshingFetcher,
        defaults: Optional[AvailabilityDefaults] = None,
    ) -> None:
        self._fetcher = fetcher
        self._defaults = defaults or AvailabilityDefaults()

    @property
    def defaults(self) -> AvailabilityDefaults:
        return self._defaults

    async def check_availability(self, request: AvailabilityRequest) -> AvailabilityResult:
        """
        Compute availability for a validated request.

        Typed errors from the fetcher propagate unchanged.
        """
        windows = generate_working_windows(
            request.start_date,
            request.end_date,
            request.preferences,
        )

        if not windows:
            logger.info(
                "No working days for %s between %s and %s",
                request.person_id,
                request.start_date,
                request.end_date,
            )
            return AvailabilityResult.empty()

        busy = await self.fetch_busy_times(request, windows)

        return self.calculate(request, windows, busy)

    async def fetch_busy_times(
        self,
        request: AvailabilityRequest,
        windows: Sequence[WorkingWindow],
    ) -> List[TimeRange]:
        """Fetch busy times covering every working window."""
        time_min, time_max = fetch_bounds(windows)

        return await asyncio.to_thread(
            self._fetcher.fetch,
            request.person_id,
            request.calendar_ids,
            time_min,
            time_max,
        )

    @staticmethod
    def calculate(
        request: AvailabilityRequest,
        windows: Sequence[WorkingWindow],
        busy: Sequence[TimeRange],
    ) -> AvailabilityResult:
        """Calculate the availability result from busy data."""
        calculator = SlotCalculator(policy=request.policy)
        return calculator.calculate(
            busy,
            windows,
            min_hours_per_day=request.min_hours_per_day,
            required_total_hours=request.required_total_hours,
        )

    async def check_payload(
        self,
        payload: Mapping[str, Any],
        now: Optional[DateTime] = None,
    ) -> AvailabilityResult:
        """
        Structured request in, structured result out.

        Raises:
            RequestValidationError: Before any network call, if the payload is malformed
        """
        request = AvailabilityQuery.parse(payload).to_request(self._defaults, now=now)
        return await self.check_availability(request)

    async def check_roster(
        self,
        requests: Sequence[AvailabilityRequest],
        max_concurrency: int = 5,
    ) -> Dict[str, RosterOutcome]:
        """
        Check many people concurrently.

        Each person's typed error is returned in place of their result so one
        failing account does not hide the others.
        """
        semaphore = asyncio.Semaphore(max(1, max_concurrency))

        async def check_one(request: AvailabilityRequest) -> RosterOutcome:
            async with semaphore:
                try:
                    return await self.check_availability(request)
                except AvailabilityError as exc:
                    logger.warning(
                        "Availability check for %s failed [%s]: %s",
                        request.person_id,
                        exc.code,
                        exc,
                    )
                    return exc

        outcomes = await asyncio.gather(*(check_one(request) for request in requests))

        return {
            request.person_id: outcome
            for request, outcome in zip(requests, outcomes)
        }
