"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService
from .credential_refresher import CredentialRefreshingFetcher, attempt_fetch
from .schemas import AvailabilityQuery

__all__ = [
    "AvailabilityQuery",
    "AvailabilityService",
    "CredentialRefreshingFetcher",
    "attempt_fetch",
]
