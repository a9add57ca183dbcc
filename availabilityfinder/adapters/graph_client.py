"""
Microsoft Graph API client for fetching calendar data, with MSAL token refresh.
"""

import logging
from typing import Any, Dict, List, Sequence

import msal
import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import (
    CalendarTimeoutError,
    CalendarUnreachableError,
    CredentialRevokedError,
    ProviderError,
)
from ..domain.models import TimeRange
from .base import (
    FREEBUSY_TIMEOUT_SECONDS,
    LIST_TIMEOUT_SECONDS,
    TokenPair,
    check_calendar_failures,
    raise_for_status,
    read_json,
    send_request,
)

logger = logging.getLogger(__name__)

# MSAL reports these when the refresh token can no longer be used
REVOKED_ERRORS = {"invalid_grant", "interaction_required"}


class GraphCalendarClient:
    """
    Client for Microsoft Graph API calendar operations.

    Uses the /calendar/getSchedule endpoint to fetch free/busy information.
    Calendar ids are the schedule owners' SMTP addresses.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    # Required scopes for calendar access
    SCOPES = ["Calendars.Read.Shared", "Calendars.Read"]

    # We consider these statuses as "busy"
    BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str | None = None,
        authority_url: str | None = None,
        freebusy_timeout: float = FREEBUSY_TIMEOUT_SECONDS,
        list_timeout: float = LIST_TIMEOUT_SECONDS,
    ):
        """
        Initialize the Graph API client.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            client_secret: Optional secret; without it a public client is used
            authority_url: Optional custom authority URL
        """
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.freebusy_timeout = freebusy_timeout
        self.list_timeout = list_timeout
        self._client_secret = client_secret
        self._app = None

    @property
    def app(self) -> msal.ClientApplication:
        """MSAL application, built lazily since it contacts the authority."""
        if self._app is None:
            if self._client_secret:
                self._app = msal.ConfidentialClientApplication(
                    client_id=self.client_id,
                    authority=self.authority,
                    client_credential=self._client_secret,
                )
            else:
                self._app = msal.PublicClientApplication(
                    client_id=self.client_id,
                    authority=self.authority,
                )
        return self._app

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
        Get busy times for multiple schedules, flattened and sorted.

        Times are requested and returned in UTC.
        """
        url = f"{self.GRAPH_API_ENDPOINT}/me/calendar/getSchedule"

        payload = {
            "schedules": list(calendar_ids),
            "startTime": {
                "dateTime": time_min.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": "UTC",
            },
            "endTime": {
                "dateTime": time_max.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": "UTC",
            },
            "availabilityViewInterval": 60,
        }

        response = send_request(
            "POST",
            url,
            timeout=self.freebusy_timeout,
            headers=self._headers(access_token),
            json=payload,
        )
        raise_for_status(response, "Microsoft Graph")

        data = read_json(response, "Microsoft Graph")

        return self._parse_schedule_response(data, calendar_ids)

    def _parse_schedule_response(
        self,
        response_data: Dict[str, Any],
        calendar_ids: Sequence[str],
    ) -> List[TimeRange]:
        """
        Parse the getSchedule API response into our domain model.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "user@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "UTC"},
                            "end": {"dateTime": "...", "timeZone": "UTC"}
                        }
                    ],
                    "error": {"message": "...", "responseCode": "..."}
                }
            ]
        }
        """
        busy_ranges: List[TimeRange] = []
        failures: Dict[str, str] = {}
        seen: set[str] = set()

        for schedule in response_data.get("value", []):
            schedule_id = schedule.get("scheduleId", "")
            seen.add(schedule_id.lower())

            if schedule.get("error"):
                error = schedule["error"]
                failures[schedule_id] = error.get("message") or error.get("responseCode", "unknown")
                continue

            for item in schedule.get("scheduleItems", []):
                status = item.get("status", "").lower()
                if status not in self.BUSY_STATUSES:
                    continue

                try:
                    busy = TimeRange.from_raw(
                        self._parse_datetime(item["start"]),
                        self._parse_datetime(item["end"]),
                    )
                except (KeyError, ValueError) as e:
                    logger.warning("Could not parse schedule item: %s", e)
                    continue

                if busy is not None:
                    busy_ranges.append(busy)

        for calendar_id in calendar_ids:
            if calendar_id.lower() not in seen:
                failures[calendar_id] = "missing from response"

        check_calendar_failures(calendar_ids, failures, "Microsoft Graph")

        return sorted(busy_ranges, key=lambda r: r.start)

    def _parse_datetime(self, value: Dict[str, str]) -> DateTime:
        """
        Parse a Graph dateTimeTimeZone object to a pendulum DateTime.

        Graph sends seven fractional digits, which are dropped.
        """
        datetime_str = value["dateTime"].split(".")[0]
        dt = pendulum.parse(datetime_str, tz=value.get("timeZone") or "UTC")

        if isinstance(dt, DateTime):
            return dt.in_timezone("UTC")

        raise ValueError(f"Could not parse datetime: {value['dateTime']}")

    def exchange_refresh(self, refresh_token: str) -> TokenPair:
        """
        Redeem a refresh token through MSAL.

        Raises:
            CredentialRevokedError: If the refresh token is no longer accepted
            ProviderError: For other token endpoint errors
        """
        try:
            result = self.app.acquire_token_by_refresh_token(refresh_token, scopes=self.SCOPES)
        except requests.exceptions.Timeout as exc:
            raise CalendarTimeoutError(f"Token refresh timed out: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise CalendarUnreachableError(f"Could not reach {self.authority}: {exc}") from exc

        if "access_token" in result:
            return TokenPair(
                access_token=result["access_token"],
                refresh_token=result.get("refresh_token"),
            )

        error = result.get("error", "unknown_error")
        description = result.get("error_description", "Unknown error")
        if error in REVOKED_ERRORS:
            raise CredentialRevokedError(f"Refresh token rejected: {description}")

        raise ProviderError(f"Token refresh failed ({error}): {description}")

    def test_connection(self, access_token: str) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.
        """
        response = send_request(
            "GET",
            f"{self.GRAPH_API_ENDPOINT}/me",
            timeout=self.list_timeout,
            headers=self._headers(access_token),
        )
        raise_for_status(response, "Microsoft Graph")
        return read_json(response, "Microsoft Graph")
