from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ...attendance.model import AttendanceDay
from ...common.datetime_utils import is_weekend, iter_dates, month_bounds
from ...common.money import divide, multiply, to_minor
from ...core.constants import MINUTES_PER_HOUR
from ...core.enums import DayPhase, DayStatus, LeaveType
from ...core.exceptions import CalculationError
from ..model import Deductions, Earnings, LeaveDays, Overtime, PayrollFigures
from ..smart_late import SmartLateRuleAccumulator
from .base import PayrollCalculator, PayrollInput

logger = logging.getLogger(__name__)

_PRESENT_WEIGHT = {
    DayStatus.PRESENT: Decimal(1),
    DayStatus.LATE: Decimal(1),
    DayStatus.HALF_DAY: Decimal("0.5"),
}


class StandardPayrollCalculator(PayrollCalculator):
    """Monthly payroll from finalized days, approved leave and a rules snapshot.

    Amounts stay integer minor units; rates and fractional days are Decimal
    and each monetary figure is rounded exactly once, half up.
    """

    def expected_working_dates(self, data: PayrollInput) -> list[date]:
        rules = data.rules
        start, end = month_bounds(data.year, data.month)
        out = []
        for d in iter_dates(start, end):
            if is_weekend(d) and not rules.payroll.include_weekends:
                continue
            if rules.is_holiday(d) and not rules.payroll.include_holidays:
                continue
            out.append(d)
        return out

    def _check_coverage(self, data: PayrollInput, expected: list[date], days: dict[date, AttendanceDay]) -> None:
        period = (data.year, data.month)

        unfinished = sorted(d.work_date.isoformat() for d in days.values() if d.phase != DayPhase.FINALIZED)
        if unfinished:
            raise CalculationError(
                "Attendance days without checkout in period",
                employee_id=data.employee_id,
                period=period,
                incomplete_dates=unfinished,
            )

        approved = [lv for lv in data.leaves if lv.is_approved]
        missing = [
            d.isoformat()
            for d in expected
            if d not in days and not data.rules.is_holiday(d) and not any(lv.covers(d) for lv in approved)
        ]
        if missing:
            raise CalculationError(
                f"No attendance, leave or holiday for {len(missing)} working day(s)",
                employee_id=data.employee_id,
                period=period,
                missing_dates=missing,
            )

    def calculate(self, data: PayrollInput) -> PayrollFigures:
        rules = data.rules
        pay = rules.payroll
        comp = data.compensation
        start, end = month_bounds(data.year, data.month)

        days = {d.work_date: d for d in data.days if start <= d.work_date <= end}
        expected = self.expected_working_dates(data)
        self._check_coverage(data, expected, days)

        # 1-2: working and present days
        working_days = len(expected)
        present_days = sum((_PRESENT_WEIGHT.get(d.status, Decimal(0)) for d in days.values()), Decimal(0))
        absent_days = sum(1 for d in days.values() if d.status == DayStatus.ABSENT)
        half_days = sum(1 for d in days.values() if d.status == DayStatus.HALF_DAY)

        # 3: approved leave, clipped to the period's working dates
        per_type = {t: Decimal(0) for t in LeaveType}
        for leave in data.leaves:
            if leave.is_approved:
                per_type[leave.type] += leave.days_within(expected)
        leave_days = LeaveDays(paid=per_type[LeaveType.PAID], unpaid=per_type[LeaveType.UNPAID], sick=per_type[LeaveType.SICK])

        # 4: overtime, summed in minutes and converted once
        overtime_minutes = sum(d.overtime_minutes for d in days.values())
        overtime_hours = (Decimal(overtime_minutes) / MINUTES_PER_HOUR).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        overtime_amount = to_minor(
            Decimal(overtime_minutes) * Decimal(comp.hourly_rate) * pay.overtime_rate_multiplier / MINUTES_PER_HOUR
        )

        # 5-6: smart late rule and penalties
        late = SmartLateRuleAccumulator(pay.lates_for_half_day, enabled=pay.smart_late_rule_enabled).accumulate(
            days.values(), year=data.year, month=data.month
        )
        late_penalty = multiply(pay.late_penalty_amount, late.remainder_lates)
        half_day_penalty = multiply(pay.half_day_penalty_amount, half_days + late.half_day_conversions)

        # 7: unpaid leave at the rounded per-day salary
        per_day_salary = divide(comp.basic_salary, working_days)
        unpaid_deduction = multiply(per_day_salary, leave_days.unpaid)

        # 8: totals live on the value objects
        figures = PayrollFigures(
            working_days=working_days,
            present_days=present_days,
            absent_days=absent_days,
            late_days=late.late_count,
            half_days=half_days,
            half_day_conversions=late.half_day_conversions,
            remainder_lates=late.remainder_lates,
            per_day_salary=per_day_salary,
            leave_days=leave_days,
            overtime=Overtime(hours=overtime_hours, amount=overtime_amount),
            deductions=Deductions(
                late_penalty=late_penalty,
                half_day_penalty=half_day_penalty,
                unpaid_leave=unpaid_deduction,
            ),
            earnings=Earnings(
                basic=int(comp.basic_salary),
                allowances=int(comp.allowances),
                overtime_amount=overtime_amount,
            ),
        )
        self._warn_if_implausible(data, figures)
        return figures

    @staticmethod
    def _warn_if_implausible(data: PayrollInput, figures: PayrollFigures) -> None:
        if figures.net_payable < 0:
            logger.warning(
                "Negative net payable %s: employee=%s period=%s-%02d",
                figures.net_payable,
                data.employee_id,
                data.year,
                data.month,
            )
        if figures.present_days > figures.working_days:
            logger.warning(
                "Present days %s exceed working days %s: employee=%s period=%s-%02d",
                figures.present_days,
                figures.working_days,
                data.employee_id,
                data.year,
                data.month,
            )
