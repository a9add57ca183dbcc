"""
Structured request payload accepted by the availability service.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any, List, Optional

from pendulum import DateTime
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..config import AvailabilityDefaults
from ..domain.default_window import resolve_default_range
from ..domain.exceptions import RequestValidationError
from ..domain.models import (
    AvailabilityPolicy,
    AvailabilityPreferences,
    AvailabilityRequest,
    to_date,
)
from ..domain.slot_calculator import min_hours_for_total


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PreferencesPayload(_Payload):
    """Optional per-person overrides; missing values fall back to the defaults."""
    timezone: Optional[str] = None
    working_hours_start: Optional[time] = None
    working_hours_end: Optional[time] = None
    off_days: Optional[List[int]] = None


class AvailabilityQuery(_Payload):
    """
    Availability request as it arrives from the outside world.

    Accepts camelCase or snake_case keys. ``calendarIds`` may be a list or
    a comma-separated string.
    """
    person_id: str = Field(min_length=1)
    calendar_ids: List[str]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    preferences: PreferencesPayload = Field(default_factory=PreferencesPayload)
    min_hours_per_day: Optional[float] = Field(default=None, ge=0)
    required_hours: Optional[float] = Field(default=None, ge=0)
    policy: Optional[AvailabilityPolicy] = None

    @field_validator("calendar_ids", mode="before")
    @classmethod
    def split_calendar_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @classmethod
    def parse(cls, payload: Any) -> "AvailabilityQuery":
        """Validate a raw mapping, raising the domain validation error."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(f"Invalid availability request: {exc}") from exc

    def to_request(
        self,
        defaults: AvailabilityDefaults,
        now: Optional[DateTime] = None,
    ) -> AvailabilityRequest:
        """
        Resolve defaults into a complete domain request.

        Missing dates default to tomorrow onwards in the person's timezone.
        A total hours requirement without a per-day bar is spread evenly
        across the range.
        """
        prefs = self.preferences
        preferences = AvailabilityPreferences(
            timezone=prefs.timezone or defaults.timezone,
            working_hours_start=prefs.working_hours_start or defaults.working_hours_start,
            working_hours_end=prefs.working_hours_end or defaults.working_hours_end,
            off_days=frozenset(defaults.off_days if prefs.off_days is None else prefs.off_days),
        )

        default_start, default_end = resolve_default_range(
            preferences.timezone, now=now, days=defaults.default_range_days
        )
        if self.start_date is not None:
            start_date = to_date(self.start_date)
            end_date = (
                to_date(self.end_date)
                if self.end_date is not None
                else start_date.add(days=defaults.default_range_days - 1)
            )
        else:
            start_date = default_start
            end_date = to_date(self.end_date) if self.end_date is not None else default_end

        required_total = self.required_hours if self.required_hours else None
        if self.min_hours_per_day is not None:
            min_hours = self.min_hours_per_day
        elif required_total is not None and start_date <= end_date:
            min_hours = min_hours_for_total(required_total, start_date, end_date)
        else:
            min_hours = defaults.min_hours_per_day

        return AvailabilityRequest(
            calendar_ids=tuple(self.calendar_ids),
            person_id=self.person_id,
            start_date=start_date,
            end_date=end_date,
            preferences=preferences,
            min_hours_per_day=min_hours,
            required_total_hours=required_total,
            policy=self.policy or defaults.policy,
        )
