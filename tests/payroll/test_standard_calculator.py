import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from conftest import finalized_day, make_rules, month_of_days
from src.payroll_engine.payroll_engine.core.enums import DayPhase, DayStatus, LeaveStatus, LeaveType
from src.payroll_engine.payroll_engine.core.exceptions import CalculationError, ErrorCode
from src.payroll_engine.payroll_engine.employees.model import Compensation
from src.payroll_engine.payroll_engine.leave.model import LeaveRecord
from src.payroll_engine.payroll_engine.payroll.calculator.base import PayrollInput
from src.payroll_engine.payroll_engine.payroll.calculator.standard_calculator import StandardPayrollCalculator
from src.payroll_engine.payroll_engine.rules.model import PayrollRules

COMP = Compensation(basic_salary=30000, allowances=2000, hourly_rate=200)
PAY_RULES = PayrollRules(late_penalty_amount=500, half_day_penalty_amount=1500, lates_for_half_day=3)


def _leave(leave_type, start, end, *, half_day=False, status=LeaveStatus.APPROVED):
    return LeaveRecord(
        leave_id=1, employee_id=1, type=leave_type, start_date=start, end_date=end, status=status, half_day=half_day
    )


def _input(days, *, leaves=(), rules=None, compensation=COMP):
    return PayrollInput(
        employee_id=1,
        year=2025,
        month=6,
        days=days,
        leaves=list(leaves),
        rules=rules or make_rules(payroll=PAY_RULES),
        compensation=compensation,
    )


def test_unpaid_leave_deducted_at_per_day_salary():
    rules = make_rules(payroll=replace(PAY_RULES, include_weekends=True))
    leave_dates = {date(2025, 6, 10), date(2025, 6, 11)}
    days = month_of_days(1, 2025, 6, include_weekends=True, skip=leave_dates)

    figures = StandardPayrollCalculator().calculate(
        _input(days, leaves=[_leave(LeaveType.UNPAID, date(2025, 6, 10), date(2025, 6, 11))], rules=rules)
    )

    assert figures.working_days == 30
    assert figures.per_day_salary == 1000
    assert figures.leave_days.unpaid == Decimal(2)
    assert figures.deductions.unpaid_leave == 2000
    assert figures.present_days == Decimal(28)
    assert figures.net_payable == 30000 + 2000 - 2000


def test_unpaid_deduction_uses_rounded_per_day_salary():
    leave_dates = {date(2025, 6, 10), date(2025, 6, 11)}
    days = month_of_days(1, 2025, 6, skip=leave_dates)

    figures = StandardPayrollCalculator().calculate(
        _input(
            days,
            leaves=[_leave(LeaveType.UNPAID, date(2025, 6, 10), date(2025, 6, 11))],
            compensation=Compensation(basic_salary=21010),
        )
    )

    assert figures.working_days == 21
    assert figures.per_day_salary == 1000
    assert figures.deductions.unpaid_leave == 2000


def test_negative_net_payable_is_logged(caplog):
    halves = {
        d: finalized_day(1, d, DayStatus.HALF_DAY, minutes=200)
        for d in (date(2025, 6, 2), date(2025, 6, 3))
    }

    with caplog.at_level(logging.WARNING):
        figures = StandardPayrollCalculator().calculate(
            _input(month_of_days(1, 2025, 6, overrides=halves), compensation=Compensation(basic_salary=1000))
        )

    assert figures.net_payable == 1000 - 3000
    assert "Negative net payable -2000" in caplog.text


def test_weekends_excluded_by_default():
    figures = StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6)))

    assert figures.working_days == 21
    assert figures.present_days == Decimal(21)
    assert figures.deductions.total == 0
    assert figures.net_payable == 32000


def test_smart_late_and_half_day_penalties():
    lates = {date(2025, 6, d): finalized_day(1, date(2025, 6, d), DayStatus.LATE) for d in (2, 3, 4, 5)}
    half = {date(2025, 6, 6): finalized_day(1, date(2025, 6, 6), DayStatus.HALF_DAY, minutes=200)}

    figures = StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, overrides={**lates, **half})))

    assert figures.late_days == 4
    assert figures.half_day_conversions == 1
    assert figures.remainder_lates == 1
    assert figures.deductions.late_penalty == 500
    assert figures.deductions.half_day_penalty == 3000
    assert figures.present_days == Decimal("20.5")


def test_overtime_amount_uses_multiplier():
    overtime_day = {date(2025, 6, 2): finalized_day(1, date(2025, 6, 2), minutes=570, overtime=90)}

    figures = StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, overrides=overtime_day)))

    assert figures.overtime.hours == Decimal("1.50")
    assert figures.overtime.amount == 450
    assert figures.earnings.total == 30000 + 2000 + 450


def test_absent_days_counted_but_not_present():
    absent = {date(2025, 6, 2): replace(finalized_day(1, date(2025, 6, 2)), status=DayStatus.ABSENT, check_in=None, check_out=None)}

    figures = StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, overrides=absent)))

    assert figures.absent_days == 1
    assert figures.present_days == Decimal(20)


def test_leave_is_clipped_to_period_working_dates():
    leave = _leave(LeaveType.PAID, date(2025, 5, 28), date(2025, 6, 3))
    days = month_of_days(1, 2025, 6, skip={date(2025, 6, 2), date(2025, 6, 3)})

    figures = StandardPayrollCalculator().calculate(_input(days, leaves=[leave]))

    assert figures.leave_days.paid == Decimal(2)
    assert figures.deductions.unpaid_leave == 0


def test_half_day_leave_counts_half():
    leave = _leave(LeaveType.SICK, date(2025, 6, 2), date(2025, 6, 2), half_day=True)
    days = month_of_days(1, 2025, 6, skip={date(2025, 6, 2)})

    figures = StandardPayrollCalculator().calculate(_input(days, leaves=[leave]))

    assert figures.leave_days.sick == Decimal("0.5")


def test_holidays_are_not_working_days():
    rules = make_rules(payroll=PAY_RULES, holidays=frozenset({date(2025, 6, 2)}))
    days = month_of_days(1, 2025, 6, skip={date(2025, 6, 2)})

    figures = StandardPayrollCalculator().calculate(_input(days, rules=rules))

    assert figures.working_days == 20


def test_holidays_counted_when_included():
    rules = make_rules(payroll=replace(PAY_RULES, include_holidays=True), holidays=frozenset({date(2025, 6, 2)}))
    days = month_of_days(1, 2025, 6, skip={date(2025, 6, 2)})

    figures = StandardPayrollCalculator().calculate(_input(days, rules=rules))

    assert figures.working_days == 21


def test_open_day_blocks_calculation():
    open_day = {date(2025, 6, 2): replace(finalized_day(1, date(2025, 6, 2)), phase=DayPhase.OPEN, check_out=None)}

    with pytest.raises(CalculationError) as exc:
        StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, overrides=open_day)))

    assert exc.value.code == ErrorCode.INCOMPLETE_DATA
    assert exc.value.details["incomplete_dates"] == ["2025-06-02"]


def test_uncovered_working_day_blocks_calculation():
    with pytest.raises(CalculationError) as exc:
        StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, skip={date(2025, 6, 16)})))

    assert exc.value.details["missing_dates"] == ["2025-06-16"]
    assert exc.value.period == (2025, 6)


def test_unapproved_leave_does_not_cover_a_day():
    leave = _leave(LeaveType.PAID, date(2025, 6, 16), date(2025, 6, 16), status=LeaveStatus.PENDING)

    with pytest.raises(CalculationError):
        StandardPayrollCalculator().calculate(_input(month_of_days(1, 2025, 6, skip={date(2025, 6, 16)}), leaves=[leave]))


def test_same_inputs_same_figures():
    days = month_of_days(1, 2025, 6, overrides={date(2025, 6, 3): finalized_day(1, date(2025, 6, 3), DayStatus.LATE)})
    calc = StandardPayrollCalculator()

    assert calc.calculate(_input(days)) == calc.calculate(_input(list(reversed(days))))
