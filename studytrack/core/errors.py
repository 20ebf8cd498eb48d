"""Error taxonomy shared by the server and the client engine.

Services raise these; the FastAPI exception handler in main.py turns
them into the JSON envelope with `status_code`, and the client maps
HTTP responses back onto the same classes so callers catch one family
regardless of which side of the wire failed.
"""

from __future__ import annotations


class ProgressError(Exception):
    status_code = 500
    default_message = "Progress operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ProgressError):
    """Missing or invalid ids/enum values. Raised before any write."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(ProgressError):
    status_code = 401
    default_message = "Invalid or expired token"


class NotFoundError(ProgressError):
    status_code = 404
    default_message = "Progress not found"


class StoreError(ProgressError):
    """The document store failed underneath a read or write."""

    status_code = 500
    default_message = "Progress store unavailable"


class NetworkError(ProgressError):
    """No response reached us (connection refused, DNS, reset)."""

    status_code = 503
    default_message = "Network unavailable"


class RequestTimeoutError(ProgressError):
    """The request exceeded its deadline.

    Distinct from cancellation: a superseded request is cancelled
    silently, a timed-out one surfaces this error.
    """

    status_code = 504
    default_message = "Request timed out"


_BY_STATUS: dict[int, type[ProgressError]] = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    422: ValidationError,
    503: NetworkError,
    504: RequestTimeoutError,
}


def error_for_status(status_code: int, message: str | None = None) -> ProgressError:
    """Map an HTTP status back to the matching error class (StoreError for other 5xx)."""
    cls = _BY_STATUS.get(status_code)
    if cls is None:
        cls = StoreError if status_code >= 500 else ValidationError
    return cls(message)
