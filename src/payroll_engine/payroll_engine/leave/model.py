from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from ..core.enums import LeaveStatus, LeaveType


@dataclass(frozen=True)
class LeaveRecord:
    """Leave as decided by the (external) approval workflow."""

    leave_id: int
    employee_id: int
    type: LeaveType
    start_date: date
    end_date: date
    status: LeaveStatus
    half_day: bool = False

    @property
    def is_approved(self) -> bool:
        return self.status == LeaveStatus.APPROVED

    def covers(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date

    def days_within(self, dates: Iterable[date]) -> Decimal:
        """Leave days falling on the given dates; a half-day leave counts 0.5 once."""
        covered = sum(1 for d in dates if self.covers(d))
        if covered and self.half_day:
            return Decimal(covered) - Decimal("0.5")
        return Decimal(covered)
