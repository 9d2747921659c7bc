"""Exception hierarchy for availability requests.

Every error a caller can see derives from ``AvailabilityError`` and carries a
stable machine-readable ``code``, the HTTP ``status`` it maps to and a
``public_message`` that is safe to show to end users. Internal detail (HTTP
status of the upstream feed, network error text) goes to the log instead.
"""

from __future__ import annotations

from typing import Any, Optional


class AvailabilityError(Exception):
    """Base exception for all caller-visible availability errors."""

    code = "error"
    status = 500
    public_message = "Unexpected error."

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        """Initialize the error.

        Args:
            message: Human readable message returned to the caller
                (defaults to the class ``public_message``)
            detail: Operator-facing detail, logged but never returned
        """
        self.message = message or self.public_message
        self.detail = detail
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body for this error."""
        return {"error": self.message, "code": self.code}


class ValidationError(AvailabilityError):
    """Request validation failed.

    Raised when:
    - ``start`` or ``end`` is not a strict ``YYYY-MM-DD`` date
    - ``end`` lies before ``start``
    - the requested window is longer than the configured maximum

    Should result in HTTP 400 Bad Request response.
    """

    code = "invalid_request"
    status = 400
    public_message = "Invalid request parameters."


class RateLimitError(AvailabilityError):
    """Caller exceeded its request budget.

    Should result in HTTP 429 Too Many Requests with a Retry-After header.
    """

    code = "rate_limited"
    status = 429
    public_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int = 60, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))


class ConfigurationError(AvailabilityError):
    """The server is misconfigured (no feed URL, unusable feed URL).

    Should result in HTTP 500. The operator-facing reason is kept in ``detail``.
    """

    code = "not_configured"
    status = 500
    public_message = "Calendar not configured. Please contact the administrator."


class UpstreamFetchError(AvailabilityError):
    """Fetching the remote calendar feed failed.

    Raised for network errors, timeouts, non-200 responses and empty bodies.
    Should result in HTTP 500 with a generic retry-later message.
    """

    code = "fetch_failed"
    status = 500
    public_message = "Failed to fetch calendar data. Please try again later."

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(detail=detail)
        self.status_code = status_code


class AuthorizationError(AvailabilityError):
    """Bearer token missing or wrong for an administrative endpoint.

    Should result in HTTP 403 Forbidden.
    """

    code = "forbidden"
    status = 403
    public_message = "Forbidden."
