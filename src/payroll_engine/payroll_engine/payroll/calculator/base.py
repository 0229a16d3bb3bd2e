from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ...attendance.model import AttendanceDay
from ...employees.model import Compensation
from ...leave.model import LeaveRecord
from ...rules.model import RulesSnapshot
from ..model import PayrollFigures


@dataclass(frozen=True)
class PayrollInput:
    employee_id: int
    year: int
    month: int
    days: Sequence[AttendanceDay]
    leaves: Sequence[LeaveRecord]
    rules: RulesSnapshot
    compensation: Compensation


class PayrollCalculator(ABC):
    """Calculator interface (Strategy Pattern for payroll)."""

    @abstractmethod
    def calculate(self, data: PayrollInput) -> PayrollFigures:
        raise NotImplementedError
