"""
Application error hierarchy shared by every marketplace app.

Services raise these for failures the caller can act on; views convert
them to JSON with ``to_dict()`` and answer with ``status_code``.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - malformed or missing input (400)
    ├── NotFoundError - record does not exist (404)
    ├── PermissionDeniedError - caller may not perform the action (403)
    ├── ConflictError - record is not in the required state (409)
    ├── RateLimitError - shared rate limit exhausted (429)
    └── ExternalServiceError - payment processor or carrier failure (502)

Usage:
    from core.exceptions import NotFoundError

    listing = Listing.objects.filter(pk=listing_id).first()
    if listing is None:
        raise NotFoundError("Listing not found", error_code="LISTING_NOT_FOUND")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description, safe to show users
        error_code: Machine-readable code for client-side handling
        details: Additional context (field errors, identifiers, limits)
        status_code: HTTP status a view should answer with
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Listing not found",
                "error_code": "LISTING_NOT_FOUND",
                "details": {"listing_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Raised when input is malformed or missing, before any side effect."""

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a single record expected to exist is missing."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks authority for an operation.

    Covers banned accounts, non-party access to a transaction and
    non-admin attempts to resolve disputes. Authentication failures
    (missing or invalid token) stay with DRF.
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current record state.

    Used for invalid lifecycle transitions and compare-and-swap misses
    where another actor changed the row first.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class RateLimitError(BaseApplicationError):
    """
    Raised when a shared rate limit is exhausted.

    Include ``retry_after`` (seconds) in details when it is known.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    status_code: int = 429


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a third-party call fails (Stripe, UPS, FedEx, USPS).

    The message may carry the raw dependency reason; only admin-facing
    endpoints return it unchanged.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
