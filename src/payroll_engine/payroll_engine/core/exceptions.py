from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    INVALID_TRANSITION = "InvalidTransition"
    OUT_OF_ORDER = "OutOfOrder"
    BREAK_LIMIT_EXCEEDED = "BreakLimitExceeded"
    MISSING_FIELD = "MissingField"
    MISSING_SIGNATURE = "MissingSignature"
    INVALID_STATE = "InvalidState"
    NOT_FOUND = "NotFound"
    GEOFENCE_VIOLATION = "GeoFenceViolation"
    DUPLICATE_SESSION = "DuplicateSession"
    IMMUTABLE_RECORD = "ImmutableRecord"
    SIGNATURE_MISMATCH = "SignatureMismatch"
    INCOMPLETE_DATA = "IncompleteData"
    CONCURRENCY_CONFLICT = "ConcurrencyConflict"
    FORBIDDEN = "Forbidden"


class DomainError(Exception):
    """Base exception for business rule violations.

    Every error is scoped to one record/employee and carries enough context
    (employee, date, pay period) for the caller to correct or retry.
    """

    default_code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        employee_id: Optional[int] = None,
        work_date: Optional[date] = None,
        period: Optional[tuple[int, int]] = None,
        **details: Any,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.employee_id = employee_id
        self.work_date = work_date
        self.period = period
        self.details = details

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "type": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
        }
        if self.employee_id is not None:
            out["employee_id"] = self.employee_id
        if self.work_date is not None:
            out["work_date"] = self.work_date.isoformat()
        if self.period is not None:
            out["period"] = {"year": self.period[0], "month": self.period[1]}
        if self.details:
            out["details"] = dict(self.details)
        return out


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    default_code = ErrorCode.INVALID_TRANSITION


class AuthorizationError(DomainError):
    """Raised when an actor lacks permission for an action."""

    default_code = ErrorCode.FORBIDDEN


class GeoFenceViolationError(DomainError):
    default_code = ErrorCode.GEOFENCE_VIOLATION


class DuplicateSessionError(DomainError):
    """Another device already opened a session for this employee."""

    default_code = ErrorCode.DUPLICATE_SESSION


class ImmutableRecordError(DomainError):
    default_code = ErrorCode.IMMUTABLE_RECORD


class VerificationError(DomainError):
    """Stored signature hash does not match the recomputed one."""

    default_code = ErrorCode.SIGNATURE_MISMATCH


class CalculationError(DomainError):
    default_code = ErrorCode.INCOMPLETE_DATA


class ConcurrencyConflictError(DomainError):
    """Lost a compare-and-swap race, or the key is already being processed."""

    default_code = ErrorCode.CONCURRENCY_CONFLICT
