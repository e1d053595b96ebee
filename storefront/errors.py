"""
Error taxonomy and normalization.

Common message constants live here to avoid string duplication, next to
the exception hierarchy every storefront module raises.
"""

from collections.abc import Mapping
from typing import Any, Optional

# Auth errors
ERROR_INVALID_CREDENTIALS = "Invalid email or password"
ERROR_SIGN_UP_FAILED = "Sign up failed"
ERROR_VERIFICATION_FAILED = "Verification failed"
ERROR_NO_USER_RETURNED = "Authentication succeeded but no user data was returned"
ERROR_SESSION_INVALID = "Session is invalid or expired"

# Network errors
ERROR_SERVICE_UNREACHABLE = (
    "Unable to connect to the server. Check your connection and make sure "
    "the API service is running, then try again."
)
ERROR_SERVICE_TIMEOUT = (
    "The server did not respond in time. The API service may be down; "
    "try again in a moment."
)
ERROR_REQUEST_ABORTED = "Request was cancelled"

# Validation errors
ERROR_EMAIL_REQUIRED = "Email is required"
ERROR_EMAIL_INVALID = "Email address is not valid"
ERROR_PASSWORD_REQUIRED = "Password is required"

# Generic errors
ERROR_UNEXPECTED = "An unexpected error occurred"


class StorefrontError(Exception):
    """Base class for all storefront errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, "
            f"status_code={self.status_code!r})"
        )


class NetworkError(StorefrontError):
    """The API service could not be reached (DNS, refused connection, timeout)."""


class RequestAbortedError(StorefrontError):
    """The caller's abort signal was tripped before the response arrived."""


class AuthError(StorefrontError):
    """Credentials or session rejected by the auth provider."""


class ValidationError(StorefrontError):
    """Malformed input caught before any network call."""

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[list[str]] = None):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        self.errors = errors or [message]


class RetryableError(StorefrontError):
    """Collaborator failure. Transient unless status_code is a 4xx."""

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and self.status_code < 500


class ConfigurationError(StorefrontError):
    """Collaborator endpoint or credentials missing or malformed."""


def _read(raw: Any, key: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key)
    return getattr(raw, key, None)


def _as_status(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_error(raw: Any) -> RetryableError:
    """
    Map a provider error into a RetryableError.

    Accepts Supabase auth errors ({code, message, status_code}), PostgREST
    errors ({code, details, message?}), plain dicts and exceptions.
    """
    if isinstance(raw, RetryableError):
        return raw

    code = _read(raw, "code")
    message = _read(raw, "message")
    details = _read(raw, "details")
    status_code = _as_status(_read(raw, "status_code") or _read(raw, "statusCode") or _read(raw, "status"))

    if code is not None:
        code = str(code)

    if not message and code and details:
        message = str(details)

    if not message and isinstance(raw, BaseException) and str(raw):
        message = str(raw)

    return RetryableError(
        message or ERROR_UNEXPECTED,
        code=code,
        status_code=status_code,
        details=details,
    )


def get_error_message(error: BaseException) -> str:
    """Return a user-facing message for any exception."""
    if isinstance(error, StorefrontError):
        return error.message
    if str(error):
        return str(error)
    return ERROR_UNEXPECTED


def is_network_error(error: BaseException) -> bool:
    """True for unreachable-service failures and 5xx/unknown collaborator errors."""
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, RetryableError):
        return not error.is_client_error
    return False


__all__ = [
    "StorefrontError",
    "NetworkError",
    "RequestAbortedError",
    "AuthError",
    "ValidationError",
    "RetryableError",
    "ConfigurationError",
    "normalize_error",
    "get_error_message",
    "is_network_error",
]
