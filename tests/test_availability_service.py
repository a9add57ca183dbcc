"""
Tests for AvailabilityService.
"""

import asyncio

import pendulum
import pytest

from availabilityfinder.adapters.base import TokenPair
from availabilityfinder.adapters.secret_store import InMemorySecretStore
from availabilityfinder.config import AvailabilityDefaults
from availabilityfinder.domain.exceptions import (
    CredentialExpiredError,
    CredentialNotFoundError,
    CredentialRevokedError,
    RequestValidationError,
)
from availabilityfinder.domain.models import AvailabilityPolicy, AvailabilityRequest
from availabilityfinder.services.availability_service import AvailabilityService
from availabilityfinder.services.credential_refresher import CredentialRefreshingFetcher
from helpers import StubProvider, busy, utc


def _service(provider, store=None, defaults=None):
    store = store or InMemorySecretStore({"alice": TokenPair("access", "refresh")})
    return AvailabilityService(CredentialRefreshingFetcher(provider, store), defaults=defaults)


def _request(preferences, person_id="alice", **overrides):
    values = {
        "calendar_ids": ("primary",),
        "person_id": person_id,
        "start_date": pendulum.date(2024, 11, 25),
        "end_date": pendulum.date(2024, 11, 29),
        "preferences": preferences,
        "min_hours_per_day": 6,
    }
    values.update(overrides)
    return AvailabilityRequest(**values)


class TestCheckAvailability:
    """Tests for check_availability."""

    def test_week_with_one_meeting(self, weekday_preferences):
        provider = StubProvider([[busy("2024-11-25T10:00:00", "2024-11-25T11:00:00")]])

        result = asyncio.run(_service(provider).check_availability(_request(weekday_preferences)))

        assert result.is_available is True
        assert result.working_days == 5
        assert result.total_free_hours == 39.0
        assert result.hours_per_day[pendulum.date(2024, 11, 25)] == 7.0

    def test_fetch_covers_window_bounds(self, weekday_preferences):
        provider = StubProvider([[]])

        asyncio.run(_service(provider).check_availability(_request(weekday_preferences)))

        call = provider.fetch_calls[0]
        assert call["time_min"] == utc("2024-11-25T09:00:00")
        assert call["time_max"] == utc("2024-11-29T17:00:00")
        assert call["calendar_ids"] == ("primary",)

    def test_no_working_days_skips_fetch(self, weekday_preferences):
        provider = StubProvider([[]])
        request = _request(
            weekday_preferences,
            start_date=pendulum.date(2024, 11, 23),
            end_date=pendulum.date(2024, 11, 24),
        )

        result = asyncio.run(_service(provider).check_availability(request))

        assert result.is_available is False
        assert result.working_days == 0
        assert provider.fetch_calls == []

    def test_typed_error_propagates(self, weekday_preferences):
        provider = StubProvider([[]])
        service = _service(provider, store=InMemorySecretStore())

        with pytest.raises(CredentialNotFoundError):
            asyncio.run(service.check_availability(_request(weekday_preferences)))

    def test_expired_token_refreshed_end_to_end(self, weekday_preferences):
        """A stale token is refreshed once and the result matches a clean run."""
        provider = StubProvider(
            [
                CredentialExpiredError("expired"),
                [busy("2024-11-25T10:00:00", "2024-11-25T11:00:00")],
            ],
            refresh_outcome=TokenPair("fresh-access", None),
        )
        store = InMemorySecretStore({"alice": TokenPair("stale-access", "refresh")})
        day = pendulum.date(2024, 11, 25)
        request = _request(weekday_preferences, start_date=day, end_date=day)

        result = asyncio.run(_service(provider, store=store).check_availability(request))

        assert [(s.start, s.end) for s in result.free_slots] == [
            (utc("2024-11-25T09:00:00"), utc("2024-11-25T10:00:00")),
            (utc("2024-11-25T11:00:00"), utc("2024-11-25T17:00:00")),
        ]
        assert result.total_free_hours == 7.0
        assert [call["token"] for call in provider.fetch_calls] == ["stale-access", "fresh-access"]
        assert store.read_credentials("alice") == TokenPair("fresh-access", "refresh")

    def test_results_not_cached(self, weekday_preferences):
        provider = StubProvider([[], [busy("2024-11-25T09:00:00", "2024-11-29T17:00:00")]])
        service = _service(provider)
        request = _request(weekday_preferences)

        first = asyncio.run(service.check_availability(request))
        second = asyncio.run(service.check_availability(request))

        assert first.is_available is True
        assert second.is_available is False
        assert len(provider.fetch_calls) == 2


class TestCheckPayload:
    """Tests for the structured request path."""

    NOW = utc("2026-10-18T12:00:00")

    def test_camel_case_payload(self):
        provider = StubProvider([[busy("2024-11-25T10:00:00", "2024-11-25T11:00:00")]])
        payload = {
            "personId": "alice",
            "calendarIds": "primary, team",
            "startDate": "2024-11-25",
            "endDate": "2024-11-25",
            "preferences": {"timezone": "UTC", "workingHoursStart": "09:00", "workingHoursEnd": "17:00"},
            "minHoursPerDay": 7,
        }

        result = asyncio.run(_service(provider).check_payload(payload, now=self.NOW))

        assert result.is_available is True
        assert result.total_free_hours == 7.0
        assert provider.fetch_calls[0]["calendar_ids"] == ("primary", "team")

    def test_defaults_fill_missing_fields(self):
        """No dates means tomorrow through a week out, with default hours."""
        provider = StubProvider([[]])
        defaults = AvailabilityDefaults(min_hours_per_day=8)

        result = asyncio.run(
            _service(provider, defaults=defaults).check_payload(
                {"person_id": "alice", "calendar_ids": ["primary"]}, now=self.NOW
            )
        )

        # 2026-10-19 (Monday) through 2026-10-25 (Sunday)
        assert result.working_days == 5
        assert result.is_available is True
        assert provider.fetch_calls[0]["time_min"] == utc("2026-10-19T09:00:00")
        assert provider.fetch_calls[0]["time_max"] == utc("2026-10-23T17:00:00")

    def test_required_hours_sets_per_day_bar(self):
        """20 hours over 7 days needs 3 free hours every working day."""
        provider = StubProvider([[busy("2026-10-20T09:00:00", "2026-10-20T15:00:00")]])
        payload = {
            "personId": "alice",
            "calendarIds": ["primary"],
            "requiredHours": 20,
        }

        result = asyncio.run(_service(provider).check_payload(payload, now=self.NOW))

        assert result.hours_per_day[pendulum.date(2026, 10, 20)] == 2.0
        assert result.is_available is False

    def test_policy_in_payload(self):
        provider = StubProvider([[busy("2026-10-20T09:00:00", "2026-10-20T15:00:00")]])
        payload = {
            "personId": "alice",
            "calendarIds": ["primary"],
            "requiredHours": 20,
            "policy": "total_only",
        }

        result = asyncio.run(_service(provider).check_payload(payload, now=self.NOW))

        assert result.total_free_hours == 34.0
        assert result.is_available is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"calendarIds": ["primary"]},
            {"personId": "alice", "calendarIds": []},
            {"personId": "alice", "calendarIds": ["primary"], "startDate": "2024-11-29", "endDate": "2024-11-25"},
            {"personId": "alice", "calendarIds": ["primary"], "preferences": {"timezone": "Nowhere/Land"}},
            {"personId": "alice", "calendarIds": ["primary"], "minHoursPerDay": -1},
            {"personId": "alice", "calendarIds": ["primary"], "policy": "sometimes"},
        ],
    )
    def test_invalid_payload_rejected_before_fetch(self, payload):
        provider = StubProvider([[]])

        with pytest.raises(RequestValidationError):
            asyncio.run(_service(provider).check_payload(payload, now=self.NOW))

        assert provider.fetch_calls == []


class TestCheckRoster:
    """Tests for concurrent roster checks."""

    def test_one_failure_does_not_hide_others(self, weekday_preferences):
        provider = StubProvider([[]])
        store = InMemorySecretStore({
            "alice": TokenPair("a", "ra"),
            "carol": TokenPair("c", "rc"),
        })
        service = _service(provider, store=store)
        requests = [
            _request(weekday_preferences, person_id="alice"),
            _request(weekday_preferences, person_id="bob"),
            _request(weekday_preferences, person_id="carol"),
        ]

        outcomes = asyncio.run(service.check_roster(requests, max_concurrency=2))

        assert list(outcomes) == ["alice", "bob", "carol"]
        assert outcomes["alice"].is_available is True
        assert isinstance(outcomes["bob"], CredentialNotFoundError)
        assert outcomes["carol"].is_available is True
        assert len(provider.fetch_calls) == 2

    def test_revoked_person_reported(self, weekday_preferences):
        provider = StubProvider(
            [CredentialExpiredError("expired")],
            refresh_outcome=CredentialRevokedError("gone"),
        )

        outcomes = asyncio.run(
            _service(provider).check_roster([_request(weekday_preferences)])
        )

        assert outcomes["alice"].code == "CREDENTIAL_REVOKED"

    def test_empty_roster(self):
        assert asyncio.run(_service(StubProvider()).check_roster([])) == {}

    def test_policy_from_request(self, weekday_preferences):
        provider = StubProvider([[busy("2024-11-26T09:00:00", "2024-11-29T17:00:00")]])
        request = _request(weekday_preferences, policy=AvailabilityPolicy.ANY_DAY)

        outcomes = asyncio.run(_service(provider).check_roster([request]))

        assert outcomes["alice"].is_available is True
