from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal
from itertools import count

import pytest

from src.payroll_engine.payroll_engine.attendance.model import AttendanceDay, AttendanceEvent
from src.payroll_engine.payroll_engine.common.datetime_utils import is_weekend, iter_dates, month_bounds
from src.payroll_engine.payroll_engine.common.geo import Location
from src.payroll_engine.payroll_engine.core.enums import DayPhase, DayStatus, EventType
from src.payroll_engine.payroll_engine.employees.model import Compensation, Employee
from src.payroll_engine.payroll_engine.rules.model import AttendanceRules, GeoFence, PayrollRules, RulesSnapshot
from src.payroll_engine.payroll_engine.shifts.model import Shift

OFFICE = Location(lat=10.762622, lng=106.660172)


class FakeEmployeesRepo:
    def __init__(self, employees=()):
        self._rows = {e.employee_id: e for e in employees}

    def add(self, employee: Employee) -> None:
        self._rows[employee.employee_id] = employee

    def get_by_id(self, employee_id):
        return self._rows.get(int(employee_id))

    def list_active(self):
        return [e for e in sorted(self._rows.values(), key=lambda e: e.employee_id) if e.is_active]


class FakeShiftsRepo:
    def __init__(self, shifts=()):
        self._rows = {s.shift_id: s for s in shifts}

    def get_by_id(self, shift_id):
        return self._rows.get(int(shift_id))


class FakeRulesRepo:
    def __init__(self, *snapshots: RulesSnapshot):
        self._rows = {s.snapshot_id: s for s in snapshots}

    def get_latest(self):
        if not self._rows:
            return None
        return self._rows[max(self._rows)]

    def get_by_id(self, snapshot_id):
        return self._rows.get(int(snapshot_id))

    def create_snapshot(self, rules):
        new_id = max(self._rows, default=0) + 1
        stored = replace(rules, snapshot_id=new_id)
        self._rows[new_id] = stored
        return stored


class FakeLeaveRepo:
    def __init__(self, leaves=()):
        self.leaves = list(leaves)

    def list_approved_overlapping(self, *, employee_id, start_date, end_date):
        return [
            lv
            for lv in self.leaves
            if lv.employee_id == employee_id and lv.is_approved and lv.start_date <= end_date and lv.end_date >= start_date
        ]


class FakeAttendanceDaysRepo:
    """Same guarantees as the MySQL store: one open day per employee, versioned saves."""

    def __init__(self, days=()):
        self._lock = threading.Lock()
        self._ids = count(1)
        self._rows: dict[tuple[int, date], AttendanceDay] = {}
        self.events: list[AttendanceEvent] = []
        for d in days:
            self._rows[(d.employee_id, d.work_date)] = replace(d, day_id=next(self._ids))

    def get_day(self, employee_id, work_date):
        with self._lock:
            return self._rows.get((int(employee_id), work_date))

    def find_open_day(self, employee_id):
        with self._lock:
            for d in self._rows.values():
                if d.employee_id == employee_id and d.is_open:
                    return d
            return None

    def create_open_day(self, day, *, event):
        with self._lock:
            if (day.employee_id, day.work_date) in self._rows:
                return None
            if any(d.employee_id == day.employee_id and d.is_open for d in self._rows.values()):
                return None
            day_id = next(self._ids)
            self._rows[(day.employee_id, day.work_date)] = replace(day, day_id=day_id, version=0)
            self.events.append(event)
            return day_id

    def save_day(self, day, *, event, expected_version):
        with self._lock:
            current = self._rows.get((day.employee_id, day.work_date))
            if current is None or current.version != expected_version:
                return False
            self._rows[(day.employee_id, day.work_date)] = replace(day, version=expected_version + 1)
            if event is not None:
                self.events.append(event)
            return True

    def replace_with_marked_day(self, day):
        with self._lock:
            day_id = next(self._ids)
            self._rows[(day.employee_id, day.work_date)] = replace(day, day_id=day_id)
            return day_id

    def list_days(self, *, employee_id, start_date, end_date):
        with self._lock:
            return sorted(
                (d for d in self._rows.values() if d.employee_id == employee_id and start_date <= d.work_date <= end_date),
                key=lambda d: d.work_date,
            )

    def list_open_days_before(self, work_date):
        with self._lock:
            return [d for d in self._rows.values() if d.is_open and d.work_date < work_date]


class FakePayrollRepo:
    """Stores detached copies and applies the version+status compare-and-swap atomically."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = count(1)
        self._rows = {}

    def get_by_id(self, payroll_id):
        with self._lock:
            row = self._rows.get(int(payroll_id))
            return row.copy() if row else None

    def get_for_period(self, *, employee_id, year, month):
        with self._lock:
            for row in self._rows.values():
                if (row.employee_id, row.year, row.month) == (employee_id, year, month):
                    return row.copy()
            return None

    def create(self, record):
        with self._lock:
            for row in self._rows.values():
                if (row.employee_id, row.year, row.month) == (record.employee_id, record.year, record.month):
                    return None
            record.payroll_id = next(self._ids)
            self._rows[record.payroll_id] = record.copy()
            return record

    def save(self, record, *, expected_statuses):
        with self._lock:
            current = self._rows.get(record.payroll_id)
            if current is None or current.version != record.version or current.status not in expected_statuses:
                return False
            record.version += 1
            self._rows[record.payroll_id] = record.copy()
            return True

    def stored(self, payroll_id):
        return self._rows[payroll_id]


def make_rules(snapshot_id=1, **overrides) -> RulesSnapshot:
    attendance = overrides.pop("attendance", AttendanceRules(grace_time_minutes=10, late_threshold_minutes=5))
    payroll = overrides.pop("payroll", PayrollRules(late_penalty_amount=500, half_day_penalty_amount=1500))
    geo_fence = overrides.pop("geo_fence", GeoFence(enabled=True, office=OFFICE, radius_meters=100))
    return RulesSnapshot(
        snapshot_id=snapshot_id,
        created_at=datetime(2025, 1, 1, 0, 0),
        attendance=attendance,
        payroll=payroll,
        geo_fence=geo_fence,
        **overrides,
    )


def finalized_day(employee_id, work_date, status=DayStatus.PRESENT, *, minutes=480, overtime=0) -> AttendanceDay:
    return AttendanceDay(
        employee_id=employee_id,
        work_date=work_date,
        phase=DayPhase.FINALIZED,
        check_in=datetime.combine(work_date, time(9, 0)),
        check_out=datetime.combine(work_date, time(18, 0)),
        status=status,
        is_late=status == DayStatus.LATE,
        total_working_minutes=minutes,
        overtime_minutes=overtime,
    )


def month_of_days(employee_id, year, month, *, include_weekends=False, overrides=None, skip=()):
    """A fully covered month of present days; ``overrides`` replaces single dates."""
    overrides = overrides or {}
    start, end = month_bounds(year, month)
    days = []
    for d in iter_dates(start, end):
        if d in skip or (is_weekend(d) and not include_weekends):
            continue
        days.append(overrides.get(d) or finalized_day(employee_id, d))
    return days


@pytest.fixture
def office():
    return OFFICE


@pytest.fixture
def rules():
    return make_rules()


@pytest.fixture
def shift():
    return Shift(shift_id=1, shift_name="Day", start_time=time(9, 0), end_time=time(18, 0), break_minutes=60)


@pytest.fixture
def employee():
    return Employee(
        employee_id=1,
        full_name="Nguyen Van A",
        shift_id=1,
        compensation=Compensation(basic_salary=30000, allowances=2000, hourly_rate=200),
    )


@pytest.fixture
def make_event():
    seq = count(1)

    def _make(event_type: EventType, ts: datetime, *, employee_id=1, key=None, location=OFFICE, hint=None, device="device-1"):
        return AttendanceEvent(
            employee_id=employee_id,
            type=event_type,
            timestamp=ts,
            location=location,
            device_id=device,
            dedup_key=key or f"evt-{next(seq)}",
            is_within_radius=hint,
        )

    return _make


@pytest.fixture
def half():
    return Decimal("0.5")
