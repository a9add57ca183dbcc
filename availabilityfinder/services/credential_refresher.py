"""
Busy-time fetching with a single transparent credential refresh.

The upstream call is a plain function of the access token. Expiry is
reported by ``CredentialExpiredError``; the fetcher then refreshes through
the secret store and retries exactly once. Only an expired credential leads
to a refresh. Timeouts and other provider errors propagate unchanged.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from pendulum import DateTime

from ..adapters.base import CalendarProvider, SecretStore, TokenPair
from ..domain.exceptions import CredentialExpiredError, CredentialNotFoundError
from ..domain.models import TimeRange

logger = logging.getLogger(__name__)


def attempt_fetch(
    provider: CalendarProvider,
    access_token: str,
    calendar_ids: Sequence[str],
    time_min: DateTime,
    time_max: DateTime,
) -> List[TimeRange]:
    """One upstream call with the given access token. Holds no state."""
    return provider.fetch_busy(access_token, list(calendar_ids), time_min, time_max)


class CredentialRefreshingFetcher:
    """
    Fetches busy intervals for a person, refreshing an expired token once.

    Sequence:
    1. Read the credential pair (fail fast if there is none)
    2. Call upstream with the access token
    3. On expiry: exchange the refresh token, persist the new pair
    4. Call upstream once more with the new access token
    """

    def __init__(self, provider: CalendarProvider, secret_store: SecretStore) -> None:
        self._provider = provider
        self._secret_store = secret_store

    @property
    def provider(self) -> CalendarProvider:
        return self._provider

    def fetch(
        self,
        person_id: str,
        calendar_ids: Sequence[str],
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[TimeRange]:
        """
        Return busy intervals for ``calendar_ids`` between ``time_min`` and ``time_max``.

        Raises:
            CredentialNotFoundError: No credentials stored for the person
            CredentialExpiredError: Token still rejected after one refresh
            CredentialRevokedError: The refresh token was rejected
            ProviderError / CalendarUnreachableError / CalendarTimeoutError:
                Upstream failures, never retried here
        """
        credentials = self._secret_store.read_credentials(person_id)

        try:
            return attempt_fetch(
                self._provider, credentials.access_token, calendar_ids, time_min, time_max
            )
        except CredentialExpiredError:
            logger.info("Access token expired for %s, refreshing and retrying", person_id)

        refreshed = self.refresh(person_id)

        try:
            return attempt_fetch(
                self._provider, refreshed.access_token, calendar_ids, time_min, time_max
            )
        except CredentialExpiredError as exc:
            logger.warning("Refreshed access token for %s was rejected as well", person_id)
            raise CredentialExpiredError(
                f"Access token for {person_id} rejected after refresh: {exc}"
            ) from exc

    def refresh(self, person_id: str) -> TokenPair:
        """
        Exchange the stored refresh token and write the new pair back.

        The pair is persisted before it is returned, so a concurrent caller
        for the same person reads the refreshed token.
        """
        current = self._secret_store.read_credentials(person_id)
        if not current.refresh_token:
            raise CredentialNotFoundError(f"No refresh token stored for {person_id}")

        try:
            exchanged = self._provider.exchange_refresh(current.refresh_token)
        except Exception as exc:
            logger.warning("Token refresh for %s failed: %s", person_id, exc)
            raise

        refreshed = current.rotated(exchanged)
        self._secret_store.write_credentials(person_id, refreshed)
        logger.info("Stored refreshed credentials for %s", person_id)

        return refreshed
