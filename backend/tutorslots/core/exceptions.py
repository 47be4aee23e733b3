# backend/tutorslots/core/exceptions.py
"""
Domain-specific exceptions for the scheduling backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Slot conflicts and missing payments carry distinct codes so callers
can offer the right corrective action.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
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


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "NOT_FOUND", details=details)


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidRangeException(ValidationException):
    """Raised when an availability window does not start before it ends."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_RANGE", details=details)


class InvalidTimeException(ValidationException):
    """Raised when a booking is requested for a time that is not in the future."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_TIME", details=details)


class DuplicateAvailabilityException(ConflictException):
    """Raised when an identical active availability rule already exists."""

    def __init__(self, day_of_week: int, start_time: str, end_time: str):
        super().__init__(
            message="This time slot already exists",
            code="DUPLICATE",
            details={
                "day_of_week": day_of_week,
                "start_time": start_time,
                "end_time": end_time,
            },
        )


class SlotUnavailableException(ConflictException):
    """Raised when a requested booking window is taken or outside availability."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class PaymentRequiredException(BusinessRuleException):
    """Raised when a booking cannot be confirmed before its payment settles."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, booking_id: str, payment_status: str):
        super().__init__(
            message="Payment must be completed before the booking can be confirmed",
            code="PAYMENT_REQUIRED",
            details={"booking_id": booking_id, "payment_status": payment_status},
        )


class InvalidTransitionException(BusinessRuleException):
    """Raised when a booking status change is not allowed from its current state."""

    def __init__(self, booking_id: str, current_status: str, target: str):
        super().__init__(
            message=f"Cannot {target} a booking that is {current_status}",
            code="INVALID_TRANSITION",
            details={
                "booking_id": booking_id,
                "current_status": current_status,
                "target": target,
            },
        )


class PaymentProviderError(ServiceException):
    """Raised when the payment provider cannot be reached or rejects a call."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="PAYMENT_PROVIDER_ERROR", details=details)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
