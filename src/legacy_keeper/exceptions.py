"""Error taxonomy shared by the scanner, workflow and collaborators."""

from typing import Any

PERMISSION_DENIED_MESSAGE = (
    "Access denied. You do not have sufficient permissions to perform this action."
)


class LegacyKeeperError(Exception):
    """Base exception for Legacy Keeper operations."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(LegacyKeeperError):
    """Missing or invalid required input."""

    code = "VALIDATION_ERROR"


class PhaseOrderError(LegacyKeeperError):
    """A workflow phase was invoked out of sequence."""

    code = "PHASE_ORDER_ERROR"


class NotFoundError(LegacyKeeperError):
    """Requested resource does not exist."""

    code = "NOT_FOUND"


class SessionNotFoundError(NotFoundError):
    """No workflow session is stored under the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Workflow session {session_id} not found")


class PermissionDeniedError(LegacyKeeperError):
    """Caller lacks permission on an upstream system."""

    code = "PERMISSION_DENIED"

    def __init__(self, service: str = "unknown", details: dict[str, Any] | None = None):
        self.service = service
        super().__init__(PERMISSION_DENIED_MESSAGE, details)


class RateLimitError(LegacyKeeperError):
    """Upstream rate limit exceeded."""

    code = "RATE_LIMITED"

    def __init__(self, retry_after: int = 60, service: str = "unknown"):
        self.retry_after = retry_after
        self.service = service
        super().__init__(f"Rate limited by {service}. Retry after {retry_after}s")


class NetworkError(LegacyKeeperError):
    """Upstream system unreachable or timed out."""

    code = "NETWORK_ERROR"


class ApiError(LegacyKeeperError):
    """Generic upstream failure."""

    code = "API_ERROR"


class StoreError(ApiError):
    """The archive sink could not persist a document."""

    code = "STORE_ERROR"


class ExtractionError(LegacyKeeperError):
    """Internal failure while classifying interview answers."""

    code = "EXTRACTION_ERROR"


def error_from_status(
    status_code: int, service: str, retry_after: int = 60
) -> LegacyKeeperError:
    """Map an upstream HTTP status to the error taxonomy.

    The numeric status is kept in ``details`` for logging only and is never
    part of the message.
    """
    details = {"status_code": status_code, "service": service}
    if status_code in (401, 403):
        return PermissionDeniedError(service, details)
    if status_code == 404:
        return NotFoundError(f"Resource not found in {service}", details)
    if status_code == 429:
        return RateLimitError(retry_after, service)
    if status_code >= 500:
        return NetworkError(f"{service} is temporarily unavailable", details)
    return ApiError(f"{service} rejected the request", details)


def user_message(exc: BaseException) -> str:
    """Return a caller-safe message for any exception."""
    if isinstance(exc, PermissionDeniedError):
        return PERMISSION_DENIED_MESSAGE
    if isinstance(exc, LegacyKeeperError):
        return exc.message
    return "An unexpected error occurred. Please try again later."


def error_code(exc: BaseException) -> str:
    """Return the stable error code for an exception."""
    if isinstance(exc, LegacyKeeperError):
        return exc.code
    return LegacyKeeperError.code
