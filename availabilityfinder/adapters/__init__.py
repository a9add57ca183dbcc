"""
Adapters layer - External integrations (calendar providers, secret stores).
"""

from .base import CalendarProvider, SecretStore, TokenPair
from .google_calendar_client import GoogleCalendarClient
from .graph_client import GraphCalendarClient
from .mock_calendar_provider import MockCalendarProvider
from .secret_store import FileSecretStore, InMemorySecretStore, KeyringSecretStore

__all__ = [
    "CalendarProvider",
    "SecretStore",
    "TokenPair",
    "GoogleCalendarClient",
    "GraphCalendarClient",
    "MockCalendarProvider",
    "FileSecretStore",
    "InMemorySecretStore",
    "KeyringSecretStore",
]
