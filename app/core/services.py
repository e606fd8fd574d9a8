"""
Service layer primitives shared by the marketplace apps.

- ServiceResult: success/failure wrapper returned by every service call
- BaseService: per-class logger and transaction helpers

Views handle HTTP, models hold data, services own the business rules.
Expected failures (stale price, wrong transaction status, refund declined)
come back as ``ServiceResult.failure`` with an ``error_code``; bugs and
infrastructure outages propagate as exceptions.

Usage:
    from core.services import BaseService, ServiceResult

    class ShipmentService(BaseService):
        @classmethod
        def mark_shipped(cls, transaction_id, seller, tracking_number):
            if not tracking_number:
                return ServiceResult.failure(
                    "Tracking number is required",
                    error_code="TRACKING_REQUIRED",
                )
            with cls.atomic():
                ...
            return ServiceResult.success(txn)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Extra context carried from the originating error
        status_code: HTTP status suggested by the originating error
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    status_code: int | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            details: Additional context such as limits or identifiers
            status_code: HTTP status for views (400 when omitted)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
            status_code=status_code,
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to the JSON body returned by API views."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return self.status_code or 400

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods (or are instantiated with injected
    collaborators such as the Stripe adapter) and keep no per-call state.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the enclosed block in a database transaction.

        Keep external calls (Stripe, carriers) outside this block; only
        persist their results inside it.
        """
        with transaction.atomic():
            yield

    @classmethod
    def fail_with(cls, exc: BaseApplicationError) -> ServiceResult:
        """Convert an expected application error to a failed result."""
        cls.get_logger().info(
            f"Rejected: {exc.message}",
            extra={"error_code": exc.error_code},
        )
        return ServiceResult.failure(
            exc.message,
            error_code=exc.error_code,
            details=exc.details or None,
            status_code=exc.status_code,
        )
