"""
Google Calendar API client for fetching free/busy data and refreshing tokens.
"""

import logging
from typing import Any, Dict, List, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import CredentialRevokedError, ProviderError
from ..domain.models import TimeRange
from .base import (
    FREEBUSY_TIMEOUT_SECONDS,
    LIST_TIMEOUT_SECONDS,
    TokenPair,
    check_calendar_failures,
    error_message,
    raise_for_status,
    read_json,
    send_request,
)

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar API operations.

    Uses the /freeBusy endpoint to fetch busy intervals. The access token is
    passed into every call; the client holds no per-person state.
    """

    FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"
    CALENDAR_LIST_URL = "https://www.googleapis.com/calendar/v3/users/me/calendarList"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str | None = None,
        freebusy_timeout: float = FREEBUSY_TIMEOUT_SECONDS,
        list_timeout: float = LIST_TIMEOUT_SECONDS,
    ):
        """
        Initialize the client.

        Args:
            client_id: OAuth client ID used for token refresh
            client_secret: OAuth client secret used for token refresh
            token_url: Optional custom token endpoint
            freebusy_timeout: Timeout in seconds for free/busy queries
            list_timeout: Timeout in seconds for simple list calls
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url or self.TOKEN_URL
        self.freebusy_timeout = freebusy_timeout
        self.list_timeout = list_timeout

    @staticmethod
    def _headers(access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def fetch_busy(
        self,
        access_token: str,
        calendar_ids: Sequence[str],
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[TimeRange]:
        """
        Get busy intervals for several calendars, flattened and sorted.

        Raises:
            CredentialExpiredError: If the access token was rejected (HTTP 401)
            ProviderError: For other HTTP errors or when every calendar failed
            CalendarTimeoutError / CalendarUnreachableError: Transport failures
        """
        payload = {
            "timeMin": time_min.in_timezone("UTC").to_iso8601_string(),
            "timeMax": time_max.in_timezone("UTC").to_iso8601_string(),
            "items": [{"id": calendar_id} for calendar_id in calendar_ids],
        }

        response = send_request(
            "POST",
            self.FREEBUSY_URL,
            timeout=self.freebusy_timeout,
            headers=self._headers(access_token),
            json=payload,
        )
        raise_for_status(response, "Google Calendar")

        data = read_json(response, "Google Calendar")

        return self._parse_freebusy_response(data, calendar_ids)

    def _parse_freebusy_response(
        self,
        response_data: Dict[str, Any],
        calendar_ids: Sequence[str],
    ) -> List[TimeRange]:
        """
        Parse the freeBusy API response into our domain model.

        Response format:
        {
            "calendars": {
                "primary": {
                    "busy": [{"start": "...", "end": "..."}],
                    "errors": [{"domain": "global", "reason": "notFound"}]
                }
            }
        }
        """
        calendars = response_data.get("calendars", {})
        busy_ranges: List[TimeRange] = []
        failures: Dict[str, str] = {}

        for calendar_id in calendar_ids:
            calendar = calendars.get(calendar_id)
            if calendar is None:
                failures[calendar_id] = "missing from response"
                continue

            errors = calendar.get("errors") or []
            if errors:
                failures[calendar_id] = ", ".join(
                    str(error.get("reason", "unknown")) for error in errors
                )
                continue

            for item in calendar.get("busy", []):
                try:
                    busy = TimeRange.from_raw(
                        pendulum.parse(item["start"]),
                        pendulum.parse(item["end"]),
                    )
                except (KeyError, ValueError, TypeError) as e:
                    logger.warning("Could not parse busy interval %s: %s", item, e)
                    continue

                if busy is None:
                    logger.debug("Discarding zero-length busy interval %s", item)
                    continue

                busy_ranges.append(busy)

        check_calendar_failures(calendar_ids, failures, "Google Calendar")

        return sorted(busy_ranges, key=lambda r: r.start)

    def exchange_refresh(self, refresh_token: str) -> TokenPair:
        """
        Trade a refresh token for a new access token.

        Raises:
            CredentialRevokedError: If Google answers ``invalid_grant``
            ProviderError: For any other token endpoint error
        """
        response = send_request(
            "POST",
            self.token_url,
            timeout=self.list_timeout,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

        if response.status_code >= 400:
            message = error_message(response, "Token refresh failed")
            if self._is_invalid_grant(response):
                raise CredentialRevokedError(
                    f"Refresh token is invalid or revoked: {message}"
                )
            raise ProviderError(message, status=response.status_code)

        data = read_json(response, "Google token endpoint")
        if not isinstance(data, dict) or not data.get("access_token"):
            raise ProviderError("Token endpoint returned no access token", status=response.status_code)

        return TokenPair(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
        )

    @staticmethod
    def _is_invalid_grant(response) -> bool:
        try:
            return response.json().get("error") == "invalid_grant"
        except (ValueError, AttributeError):
            return False

    def test_connection(self, access_token: str) -> Dict[str, Any]:
        """
        Test the connection by listing the calendars visible to the token's owner.
        """
        response = send_request(
            "GET",
            self.CALENDAR_LIST_URL,
            timeout=self.list_timeout,
            headers=self._headers(access_token),
        )
        raise_for_status(response, "Google Calendar")

        return {
            "calendars": [
                {"id": item.get("id"), "summary": item.get("summary", "")}
                for item in read_json(response, "Google Calendar").get("items", [])
            ]
        }
