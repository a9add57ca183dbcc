"""
Domain-specific exception hierarchy for the availability finder.

Every error carries a stable ``code`` so callers can decide between
"ask the person to re-authenticate" and "try again later" without
inspecting messages.
"""

from __future__ import annotations

from typing import Optional


class AvailabilityError(Exception):
    """Base class for all application-level errors."""

    code = "AVAILABILITY_ERROR"


class RequestValidationError(AvailabilityError, ValueError):
    """Raised when a request is malformed. Never retried."""

    code = "VALIDATION_ERROR"


class AuthenticationError(AvailabilityError):
    """Raised when authentication or token handling fails."""

    code = "AUTHENTICATION_ERROR"


class CredentialNotFoundError(AuthenticationError):
    """The secret store holds no credentials for the person."""

    code = "CREDENTIAL_NOT_FOUND"


class CredentialExpiredError(AuthenticationError):
    """The upstream provider rejected the access token as expired or invalid."""

    code = "CREDENTIAL_EXPIRED"


class CredentialRevokedError(AuthenticationError):
    """The refresh token itself was rejected; the person must sign in again."""

    code = "CREDENTIAL_REVOKED"


class CalendarAPIError(AvailabilityError):
    """Raised when calendar data cannot be fetched or parsed."""

    code = "CALENDAR_API_ERROR"


class ProviderError(CalendarAPIError):
    """The upstream provider answered with a non-auth error."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"


class CalendarUnreachableError(CalendarAPIError):
    """The upstream provider could not be reached."""

    code = "UNREACHABLE"


class CalendarTimeoutError(CalendarUnreachableError):
    """The upstream call did not complete within its timeout."""

    code = "TIMEOUT"


class SecretStoreError(AvailabilityError):
    """Raised when the secret store cannot read or persist credentials."""

    code = "SECRET_STORE_ERROR"


def is_retryable(error: BaseException) -> bool:
    """Return True when the caller may retry the whole computation later."""
    return isinstance(error, CalendarUnreachableError)
