"""
Wiring of providers, secret stores and the service from configuration.
"""

from ..adapters.base import CalendarProvider, SecretStore
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.graph_client import GraphCalendarClient
from ..adapters.mock_calendar_provider import MockCalendarProvider
from ..adapters.secret_store import FileSecretStore, InMemorySecretStore, KeyringSecretStore
from ..config import AppConfig
from .availability_service import AvailabilityService
from .credential_refresher import CredentialRefreshingFetcher


def build_provider(config: AppConfig, mock: bool = False) -> CalendarProvider:
    """
    Create the configured upstream provider.

    Raises:
        ValueError: If the selected provider lacks its OAuth client settings
    """
    if mock or config.provider == "mock":
        return MockCalendarProvider()

    if config.provider == "graph":
        if not config.graph.client_id:
            raise ValueError("graph.client_id is required when provider is 'graph'")
        return GraphCalendarClient(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            client_secret=config.graph.client_secret,
            authority_url=config.graph.get_authority_url(),
            freebusy_timeout=config.timeouts.freebusy_seconds,
            list_timeout=config.timeouts.list_seconds,
        )

    if not config.google.client_id:
        raise ValueError("google.client_id is required when provider is 'google'")
    return GoogleCalendarClient(
        client_id=config.google.client_id,
        client_secret=config.google.client_secret,
        token_url=config.google.token_url,
        freebusy_timeout=config.timeouts.freebusy_seconds,
        list_timeout=config.timeouts.list_seconds,
    )


def build_secret_store(config: AppConfig) -> SecretStore:
    """Create the configured secret store backend."""
    backend = config.secret_store.backend

    if backend == "memory":
        return InMemorySecretStore()
    if backend == "file":
        return FileSecretStore(path=config.secret_store.path)
    return KeyringSecretStore()


def build_service(
    config: AppConfig,
    mock: bool = False,
    secret_store: SecretStore | None = None,
) -> AvailabilityService:
    """Assemble the availability service from configuration."""
    fetcher = CredentialRefreshingFetcher(
        provider=build_provider(config, mock=mock),
        secret_store=secret_store if secret_store is not None else build_secret_store(config),
    )
    return AvailabilityService(fetcher=fetcher, defaults=config.defaults)
