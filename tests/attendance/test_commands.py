from datetime import date, datetime
from types import SimpleNamespace

from flask import Flask

from conftest import FakeAttendanceDaysRepo, FakeEmployeesRepo, FakeRulesRepo, FakeShiftsRepo
from src.payroll_engine.payroll_engine.attendance.commands import register
from src.payroll_engine.payroll_engine.attendance.service import AttendanceService
from src.payroll_engine.payroll_engine.core.enums import DayPhase, EventType


def test_close_elapsed_days_command(employee, shift, rules, make_event):
    days = FakeAttendanceDaysRepo()
    service = AttendanceService(days, FakeEmployeesRepo([employee]), FakeShiftsRepo([shift]), FakeRulesRepo(rules))
    service.record_event(make_event(EventType.CHECK_IN, datetime(2025, 6, 2, 9, 0)))
    app = Flask(__name__)
    register(app, SimpleNamespace(attendance_service=service))

    result = app.test_cli_runner().invoke(args=["close-elapsed-days", "--as-of", "2025-06-03T00:05:00"])

    assert result.exit_code == 0
    assert "employee=1 date=2025-06-02" in result.output
    assert "Closed 1 open day(s) before 2025-06-03" in result.output
    assert days.get_day(1, date(2025, 6, 2)).phase == DayPhase.INCOMPLETE
