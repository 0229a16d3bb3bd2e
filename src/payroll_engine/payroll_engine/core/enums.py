from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles used for workflow permissions."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class EventType(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"


class DayStatus(str, Enum):
    """Normalized day classification stored with each AttendanceDay."""

    PRESENT = "present"
    LATE = "late"
    HALF_DAY = "half-day"
    ABSENT = "absent"
    HOLIDAY = "holiday"
    LEAVE = "leave"


class DayPhase(str, Enum):
    """Lifecycle of an AttendanceDay.

    OPEN accepts same-date events, FINALIZED is read-only, INCOMPLETE is the
    terminal state of a day whose date elapsed without a checkout.
    """

    OPEN = "open"
    FINALIZED = "finalized"
    INCOMPLETE = "incomplete"


class LeaveType(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    SICK = "sick"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PayrollStatus(str, Enum):
    """Forward-only payroll states: draft -> calculated -> approved -> locked -> paid."""

    DRAFT = "draft"
    CALCULATED = "calculated"
    APPROVED = "approved"
    LOCKED = "locked"
    PAID = "paid"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    CALCULATE = "CALCULATE"
    SIGN = "SIGN"
    VERIFY = "VERIFY"
    APPROVE = "APPROVE"
    LOCK = "LOCK"
    PAY = "PAY"


class Permission(str, Enum):
    CALCULATE = "calculate"
    APPROVE = "approve"
    SIGN_AS_EMPLOYEE = "sign_as_employee"
    SIGN_AS_ADMIN = "sign_as_admin"
    VERIFY_SIGNATURE = "verify_signature"
    LOCK = "lock"
    MARK_PAID = "mark_paid"


class PaymentMethod(str, Enum):
    BANK = "bank"
    CASH = "cash"
    CHEQUE = "cheque"
