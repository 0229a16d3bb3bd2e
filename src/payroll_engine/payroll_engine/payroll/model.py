from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from ..core.enums import AuditAction, PaymentMethod, PayrollStatus, Role
from ..core.exceptions import ErrorCode, ImmutableRecordError, ValidationError


@dataclass(frozen=True)
class LeaveDays:
    paid: Decimal = Decimal(0)
    unpaid: Decimal = Decimal(0)
    sick: Decimal = Decimal(0)

    @property
    def total(self) -> Decimal:
        return self.paid + self.unpaid + self.sick


@dataclass(frozen=True)
class Overtime:
    hours: Decimal = Decimal(0)
    amount: int = 0


@dataclass(frozen=True)
class Deductions:
    late_penalty: int = 0
    half_day_penalty: int = 0
    unpaid_leave: int = 0

    @property
    def total(self) -> int:
        return self.late_penalty + self.half_day_penalty + self.unpaid_leave


@dataclass(frozen=True)
class Earnings:
    basic: int = 0
    allowances: int = 0
    overtime_amount: int = 0

    @property
    def total(self) -> int:
        return self.basic + self.allowances + self.overtime_amount


@dataclass(frozen=True)
class PayrollFigures:
    """Everything the calculator derives for one employee and period."""

    working_days: int
    present_days: Decimal
    absent_days: int
    late_days: int
    half_days: int
    half_day_conversions: int
    remainder_lates: int
    per_day_salary: int
    leave_days: LeaveDays
    overtime: Overtime
    deductions: Deductions
    earnings: Earnings

    @property
    def net_payable(self) -> int:
        return self.earnings.total - self.deductions.total

    def to_dict(self) -> dict:
        return {
            "working_days": self.working_days,
            "present_days": str(self.present_days),
            "absent_days": self.absent_days,
            "late_days": self.late_days,
            "half_days": self.half_days,
            "half_day_conversions": self.half_day_conversions,
            "remainder_lates": self.remainder_lates,
            "per_day_salary": self.per_day_salary,
            "leave_days": {
                "paid": str(self.leave_days.paid),
                "unpaid": str(self.leave_days.unpaid),
                "sick": str(self.leave_days.sick),
                "total": str(self.leave_days.total),
            },
            "overtime": {"hours": str(self.overtime.hours), "amount": self.overtime.amount},
            "deductions": {
                "late_penalty": self.deductions.late_penalty,
                "half_day_penalty": self.deductions.half_day_penalty,
                "unpaid_leave": self.deductions.unpaid_leave,
                "total": self.deductions.total,
            },
            "earnings": {
                "basic": self.earnings.basic,
                "allowances": self.earnings.allowances,
                "overtime_amount": self.earnings.overtime_amount,
                "total": self.earnings.total,
            },
            "net_payable": self.net_payable,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PayrollFigures":
        lv, ot, dd, er = data["leave_days"], data["overtime"], data["deductions"], data["earnings"]
        return cls(
            working_days=int(data["working_days"]),
            present_days=Decimal(str(data["present_days"])),
            absent_days=int(data.get("absent_days", 0)),
            late_days=int(data.get("late_days", 0)),
            half_days=int(data.get("half_days", 0)),
            half_day_conversions=int(data.get("half_day_conversions", 0)),
            remainder_lates=int(data.get("remainder_lates", 0)),
            per_day_salary=int(data.get("per_day_salary", 0)),
            leave_days=LeaveDays(
                paid=Decimal(str(lv["paid"])), unpaid=Decimal(str(lv["unpaid"])), sick=Decimal(str(lv["sick"]))
            ),
            overtime=Overtime(hours=Decimal(str(ot["hours"])), amount=int(ot["amount"])),
            deductions=Deductions(
                late_penalty=int(dd["late_penalty"]),
                half_day_penalty=int(dd["half_day_penalty"]),
                unpaid_leave=int(dd["unpaid_leave"]),
            ),
            earnings=Earnings(
                basic=int(er["basic"]), allowances=int(er["allowances"]), overtime_amount=int(er["overtime_amount"])
            ),
        )


@dataclass(frozen=True)
class AuditEntry:
    """One entry of a record's append-only audit log, addressed by (payroll_id, seq)."""

    seq: int
    action: AuditAction
    actor: str
    timestamp: datetime
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"seq": self.seq, "action": self.action.value, "actor": self.actor, "timestamp": self.timestamp.isoformat()}
        if self.detail:
            out["detail"] = self.detail
        return out


@dataclass(frozen=True)
class Signature:
    owner_role: Role
    owner_id: int
    image_hash: str
    device_id: str
    ip_address: str
    timestamp: datetime
    verified: bool = False
    # kept so the hash can be recomputed on verification
    image_data: str = field(default="", repr=False)

    def to_dict(self) -> dict:
        return {
            "owner_role": self.owner_role.value,
            "owner_id": self.owner_id,
            "image_hash": self.image_hash,
            "device_id": self.device_id,
            "ip_address": self.ip_address,
            "timestamp": self.timestamp.isoformat(),
            "verified": self.verified,
        }


# forward-only, except that a recalculation brings an approved record back to calculated
_TRANSITIONS: dict[PayrollStatus, frozenset[PayrollStatus]] = {
    PayrollStatus.DRAFT: frozenset({PayrollStatus.CALCULATED}),
    PayrollStatus.CALCULATED: frozenset({PayrollStatus.CALCULATED, PayrollStatus.APPROVED, PayrollStatus.LOCKED}),
    PayrollStatus.APPROVED: frozenset({PayrollStatus.CALCULATED, PayrollStatus.LOCKED}),
    PayrollStatus.LOCKED: frozenset({PayrollStatus.PAID}),
    PayrollStatus.PAID: frozenset(),
}

_FROZEN_STATUSES = {PayrollStatus.LOCKED, PayrollStatus.PAID}

# settable once a record is locked; the stamps below only while still unset
_ALWAYS_WRITABLE = {"status", "_audit", "version"}
_WRITE_ONCE_AFTER_LOCK = {"paid_at", "paid_by", "payment_method", "payment_reference"}


class PayrollRecord:
    """One employee's payroll for one period.

    Once the record reaches ``locked`` every field except status and the audit
    trail is write-once: assigning it raises ImmutableRecordError and leaves
    the record untouched.
    """

    def __init__(
        self,
        *,
        employee_id: int,
        year: int,
        month: int,
        payroll_id: Optional[int] = None,
        rules_snapshot_id: Optional[int] = None,
        figures: Optional[PayrollFigures] = None,
        employee_signature: Optional[Signature] = None,
        admin_signature: Optional[Signature] = None,
        calculated_at: Optional[datetime] = None,
        approved_at: Optional[datetime] = None,
        approved_by: Optional[str] = None,
        locked_at: Optional[datetime] = None,
        locked_by: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        paid_by: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        payment_reference: Optional[str] = None,
        audit_trail: tuple[AuditEntry, ...] = (),
        status: PayrollStatus = PayrollStatus.DRAFT,
        version: int = 0,
    ):
        self.payroll_id = payroll_id
        self.employee_id = int(employee_id)
        self.year = int(year)
        self.month = int(month)
        self.rules_snapshot_id = rules_snapshot_id
        self.figures = figures
        self.employee_signature = employee_signature
        self.admin_signature = admin_signature
        self.calculated_at = calculated_at
        self.approved_at = approved_at
        self.approved_by = approved_by
        self.locked_at = locked_at
        self.locked_by = locked_by
        self.paid_at = paid_at
        self.paid_by = paid_by
        self.payment_method = payment_method
        self.payment_reference = payment_reference
        self._audit = list(audit_trail)
        self.version = int(version)
        # last, so a record loaded as locked can still be constructed
        self.status = status

    def __setattr__(self, name: str, value: Any) -> None:
        status = self.__dict__.get("status")
        if status in _FROZEN_STATUSES and name not in _ALWAYS_WRITABLE:
            if name in _WRITE_ONCE_AFTER_LOCK and self.__dict__.get(name) is None:
                object.__setattr__(self, name, value)
                return
            raise ImmutableRecordError(
                f"Payroll record is {status.value}; {name} cannot change",
                employee_id=self.__dict__.get("employee_id"),
                period=(self.__dict__.get("year"), self.__dict__.get("month")),
                field=name,
            )
        object.__setattr__(self, name, value)

    # -------- read side --------
    @property
    def period(self) -> tuple[int, int]:
        return self.year, self.month

    @property
    def is_locked(self) -> bool:
        return self.status in _FROZEN_STATUSES

    @property
    def audit_trail(self) -> tuple[AuditEntry, ...]:
        return tuple(self._audit)

    @property
    def earnings(self) -> Optional[Earnings]:
        return self.figures.earnings if self.figures else None

    @property
    def deductions(self) -> Optional[Deductions]:
        return self.figures.deductions if self.figures else None

    @property
    def net_payable(self) -> Optional[int]:
        return self.figures.net_payable if self.figures else None

    def signature_for(self, role: Role) -> Optional[Signature]:
        return self.admin_signature if role == Role.ADMIN else self.employee_signature

    def missing_signatures(self) -> list[str]:
        return [r.value for r in (Role.EMPLOYEE, Role.ADMIN) if self.signature_for(r) is None]

    # -------- write side --------
    def append_audit(self, action: AuditAction, actor: str, at: datetime, *, detail: Optional[str] = None) -> AuditEntry:
        entry = AuditEntry(seq=len(self._audit) + 1, action=action, actor=actor, timestamp=at, detail=detail)
        self._audit.append(entry)
        return entry

    def can_transition(self, target: PayrollStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _require_transition(self, target: PayrollStatus) -> None:
        if self.is_locked and target != PayrollStatus.PAID:
            raise ImmutableRecordError(
                f"Payroll record is {self.status.value}",
                employee_id=self.employee_id,
                period=self.period,
            )
        if not self.can_transition(target):
            raise ValidationError(
                f"Cannot move payroll from {self.status.value} to {target.value}",
                code=ErrorCode.INVALID_TRANSITION,
                employee_id=self.employee_id,
                period=self.period,
            )

    def apply_calculation(self, figures: PayrollFigures, *, rules_snapshot_id: int, actor: str, at: datetime) -> None:
        """Store fresh figures; any earlier signatures or approval no longer apply."""
        self._require_transition(PayrollStatus.CALCULATED)
        self.figures = figures
        self.rules_snapshot_id = int(rules_snapshot_id)
        self.employee_signature = None
        self.admin_signature = None
        self.approved_at = None
        self.approved_by = None
        self.calculated_at = at
        self.status = PayrollStatus.CALCULATED
        self.append_audit(AuditAction.CALCULATE, actor, at, detail=f"net={figures.net_payable}")

    def attach_signature(self, signature: Signature, *, actor: str, at: datetime) -> None:
        if self.is_locked:
            raise ImmutableRecordError(
                "Signatures cannot change once the record is locked",
                employee_id=self.employee_id,
                period=self.period,
            )
        if self.status not in (PayrollStatus.CALCULATED, PayrollStatus.APPROVED):
            raise ValidationError(
                f"Cannot sign a {self.status.value} payroll",
                code=ErrorCode.INVALID_STATE,
                employee_id=self.employee_id,
                period=self.period,
            )
        if signature.owner_role == Role.ADMIN:
            self.admin_signature = signature
        else:
            self.employee_signature = signature
        self.append_audit(AuditAction.SIGN, actor, at, detail=signature.owner_role.value)

    def approve(self, *, actor: str, at: datetime) -> None:
        self._require_transition(PayrollStatus.APPROVED)
        self.approved_at = at
        self.approved_by = actor
        self.status = PayrollStatus.APPROVED
        self.append_audit(AuditAction.APPROVE, actor, at)

    def lock(self, *, verified: tuple[Signature, Signature], actor: str, at: datetime) -> None:
        """Freeze the record; ``verified`` are the re-checked (employee, admin) signatures."""
        self._require_transition(PayrollStatus.LOCKED)
        self.employee_signature, self.admin_signature = verified
        self.locked_at = at
        self.locked_by = actor
        self.status = PayrollStatus.LOCKED
        self.append_audit(AuditAction.LOCK, actor, at)

    def mark_paid(
        self,
        *,
        actor: str,
        at: datetime,
        payment_method: PaymentMethod = PaymentMethod.BANK,
        payment_reference: Optional[str] = None,
    ) -> None:
        self._require_transition(PayrollStatus.PAID)
        self.status = PayrollStatus.PAID
        self.paid_at = at
        self.paid_by = actor
        self.payment_method = payment_method
        self.payment_reference = payment_reference
        self.append_audit(AuditAction.PAY, actor, at, detail=payment_method.value)

    def replace_signature(self, signature: Signature) -> None:
        if signature.owner_role == Role.ADMIN:
            self.admin_signature = signature
        else:
            self.employee_signature = signature

    # -------- export --------
    def to_dict(self) -> dict:
        def _ts(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        out: dict[str, Any] = {
            "payroll_id": self.payroll_id,
            "employee_id": self.employee_id,
            "year": self.year,
            "month": self.month,
            "status": self.status.value,
            "rules_snapshot_id": self.rules_snapshot_id,
            "signatures": {
                "employee": self.employee_signature.to_dict() if self.employee_signature else None,
                "admin": self.admin_signature.to_dict() if self.admin_signature else None,
            },
            "calculated_at": _ts(self.calculated_at),
            "approved_at": _ts(self.approved_at),
            "approved_by": self.approved_by,
            "locked_at": _ts(self.locked_at),
            "locked_by": self.locked_by,
            "paid_at": _ts(self.paid_at),
            "paid_by": self.paid_by,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "payment_reference": self.payment_reference,
            "audit_trail": [e.to_dict() for e in self._audit],
        }
        if self.figures:
            out.update(self.figures.to_dict())
        return out

    def copy(self) -> "PayrollRecord":
        """Detached copy (stores hand these out so callers never share state)."""
        return PayrollRecord(
            payroll_id=self.payroll_id,
            employee_id=self.employee_id,
            year=self.year,
            month=self.month,
            rules_snapshot_id=self.rules_snapshot_id,
            figures=self.figures,
            employee_signature=self.employee_signature,
            admin_signature=self.admin_signature,
            calculated_at=self.calculated_at,
            approved_at=self.approved_at,
            approved_by=self.approved_by,
            locked_at=self.locked_at,
            locked_by=self.locked_by,
            paid_at=self.paid_at,
            paid_by=self.paid_by,
            payment_method=self.payment_method,
            payment_reference=self.payment_reference,
            audit_trail=tuple(self._audit),
            status=self.status,
            version=self.version,
        )


def verified_copy(signature: Signature) -> Signature:
    return replace(signature, verified=True)
