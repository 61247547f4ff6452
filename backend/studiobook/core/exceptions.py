# backend/studiobook/core/exceptions.py
"""
Domain-specific exceptions for the studio booking engine.

A policy saying "no" is never an exception; these cover corrupted
configuration, invalid shift data and commit-time races. Surfaces convert
them with ``to_http_exception``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

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
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
                "retryable": self.retryable,
            },
        )


class ValidationException(DomainException):
    """Raised when input data is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a referenced row is missing from the snapshot."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


# Specific business exceptions


class InvalidConfigurationException(ValidationException):
    """Raised when a studio's booking rules are out of their valid ranges."""

    def __init__(self, field: str, value: Any, expected: str):
        super().__init__(
            message=f"Invalid booking configuration: {field}={value!r} (expected {expected})",
            code="INVALID_CONFIGURATION",
            details={"field": field, "value": value, "expected": expected},
        )


class InvalidShiftException(ValidationException):
    """Raised when a shift row is malformed or cannot be found."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_SHIFT", details=details or {})


class ShiftConflictException(ConflictException):
    """Raised when a shift overlaps an existing working shift for the same staff member."""

    def __init__(
        self,
        staff_id: str,
        shift_date: str,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message=(
                f"Overlapping shift on {shift_date}: {new_range} conflicts with {conflicting_range}"
            ),
            code="SHIFT_CONFLICT",
            details={
                "staff_id": staff_id,
                "date": shift_date,
                "new_shift": new_range,
                "conflicting_shift": conflicting_range,
            },
        )


class SlotNoLongerAvailableException(ConflictException):
    """
    Raised at commit time when a slot that passed the earlier check is gone.

    Clients should re-query availability and offer fresh slots.
    """

    retryable = True

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_NO_LONGER_AVAILABLE",
            details=details or {},
        )
