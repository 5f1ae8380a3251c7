# backend/franchise_booking/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a stable ``code`` that clients can branch on.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the domain error envelope."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class InvalidInputException(ValidationException):
    """Raised when a calculation receives inputs it cannot price or schedule."""

    default_code = "INVALID_INPUT"


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class DependencyFailureException(DomainException):
    """Raised when the backing store is unavailable; the request may be retried."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "DEPENDENCY_FAILURE"
    retry_after_seconds = 2

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": str(self.retry_after_seconds)}
        return exc


# Specific business exceptions


class SlotConflictException(ConflictException):
    """Raised when a booking overlaps an active booking of the same professional."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Time slot not available",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class InvalidTransitionException(DomainException):
    """Raised when a booking cannot move from its current status to the requested one."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"Cannot transition from {current_status} to {requested_status}",
            code="INVALID_TRANSITION",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class NotEligibleException(DomainException):
    """Raised when a booking is not eligible for a review by the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "NOT_ELIGIBLE"


class DuplicateReviewException(DomainException):
    """Raised when a review already exists for the booking."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "DUPLICATE_REVIEW"

    def __init__(self, booking_id: str):
        super().__init__(
            message="Review already exists for this booking",
            details={"booking_id": booking_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """Check if an exception indicates DB connection pool exhaustion."""
    error_str = str(exc).lower()
    return "queuepool" in error_str or (
        "timeout" in error_str and ("connection" in error_str or "pool" in error_str)
    )
