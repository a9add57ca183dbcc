"""
Interfaces shared by upstream calendar providers and secret stores, plus the
HTTP error mapping both real providers use.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import (
    CalendarTimeoutError,
    CalendarUnreachableError,
    CredentialExpiredError,
    ProviderError,
    SecretStoreError,
)
from ..domain.models import TimeRange

logger = logging.getLogger(__name__)

FREEBUSY_TIMEOUT_SECONDS = 30
LIST_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh credential pair for one person."""
    access_token: str
    refresh_token: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "accessToken": self.access_token,
                "refreshToken": self.refresh_token,
                "updatedAt": pendulum.now("UTC").to_iso8601_string(),
            }
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TokenPair":
        try:
            return cls(
                access_token=data["accessToken"],
                refresh_token=data.get("refreshToken"),
            )
        except (KeyError, TypeError) as exc:
            raise SecretStoreError(f"Malformed credential entry: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> "TokenPair":
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise SecretStoreError(f"Credential entry is not valid JSON: {exc}") from exc
        return cls.from_mapping(data)

    def rotated(self, refreshed: "TokenPair") -> "TokenPair":
        """Combine a refresh result with this pair, keeping the old refresh token if not rotated."""
        return TokenPair(
            access_token=refreshed.access_token,
            refresh_token=refreshed.refresh_token or self.refresh_token,
        )


class CalendarProvider(Protocol):
    """Protocol describing the upstream calendar behaviour the fetcher needs."""

    def fetch_busy(
        self,
        access_token: str,
        calendar_ids: Sequence[str],
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[TimeRange]:
        """Return busy ranges across all calendars, or raise a typed error."""

    def exchange_refresh(self, refresh_token: str) -> TokenPair:
        """Trade a refresh token for a new access token (and maybe a new refresh token)."""


class SecretStore(Protocol):
    """Protocol for reading and writing per-person credential pairs."""

    def read_credentials(self, person_id: str) -> TokenPair:
        """Return the stored pair or raise CredentialNotFoundError."""

    def write_credentials(self, person_id: str, pair: TokenPair) -> None:
        """Persist the whole pair, replacing any previous one."""


def send_request(method: str, url: str, *, timeout: float, **kwargs: Any) -> requests.Response:
    """
    Perform an HTTP call, translating transport failures into typed errors.

    A timeout is its own error kind and never looks like an auth failure.
    """
    try:
        return requests.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout as exc:
        raise CalendarTimeoutError(f"Request to {url} timed out after {timeout}s") from exc
    except requests.exceptions.RequestException as exc:
        raise CalendarUnreachableError(f"Could not reach {url}: {exc}") from exc


def error_message(response: requests.Response, default: str) -> str:
    """Extract the provider's error message from a JSON error body."""
    try:
        body: Dict[str, Any] = response.json()
    except ValueError:
        return response.text or default
    if not isinstance(body, dict):
        return default

    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message") or default
    if isinstance(error, str):
        return body.get("error_description") or error
    return default


def read_json(response: requests.Response, provider: str) -> Any:
    """Decode a successful response body, mapping garbage to a provider error."""
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(
            f"{provider} returned invalid JSON: {exc}",
            status=response.status_code,
        ) from exc


def raise_for_status(response: requests.Response, provider: str) -> None:
    """Map HTTP error statuses: 401 is an expired credential, the rest are provider errors."""
    if response.status_code < 400:
        return

    if response.status_code == 401:
        raise CredentialExpiredError(
            error_message(response, f"{provider} rejected the access token")
        )

    raise ProviderError(
        error_message(response, f"{provider} API error"),
        status=response.status_code,
    )


def check_calendar_failures(
    calendar_ids: Sequence[str],
    failures: Mapping[str, str],
    provider: str,
) -> None:
    """
    Log partial failures and raise when every requested calendar failed.
    """
    if not failures:
        return

    if len(failures) >= len(set(calendar_ids)):
        details = "; ".join(f"{cid}: {reason}" for cid, reason in failures.items())
        raise ProviderError(f"{provider} returned errors for every calendar ({details})")

    for calendar_id, reason in failures.items():
        logger.warning("Calendar %s has errors, continuing without it: %s", calendar_id, reason)
