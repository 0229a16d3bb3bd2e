from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import month_bounds
from ..common.locks import KeyedLocks
from ..core.enums import DayStatus, EventType
from ..core.exceptions import (
    ConcurrencyConflictError,
    DomainError,
    DuplicateSessionError,
    ErrorCode,
    ValidationError,
)
from ..employees.repository import EmployeeRepository
from ..rules.model import RulesSnapshot
from ..rules.repository import RulesSnapshotRepository
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository
from .aggregator import AttendanceDayAggregator
from .model import AttendanceDay, AttendanceEvent
from .repository import AttendanceDayRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Server-side ingestion of attendance events.

    Work is serialized per employee+date; the repository's conditional insert
    is what finally guarantees a single open session per employee.
    """

    def __init__(
        self,
        days: AttendanceDayRepository,
        employees: EmployeeRepository,
        shifts: ShiftRepository,
        rules: RulesSnapshotRepository,
        *,
        locks: Optional[KeyedLocks] = None,
        lock_timeout: float = 5.0,
    ):
        self._days = days
        self._employees = employees
        self._shifts = shifts
        self._rules = rules
        self._locks = locks or KeyedLocks()
        self._lock_timeout = float(lock_timeout)

    def _snapshot(self) -> RulesSnapshot:
        snapshot = self._rules.get_latest()
        if snapshot is None:
            raise ValidationError("No business rules snapshot configured", code=ErrorCode.INVALID_STATE)
        return snapshot

    def _aggregator(self, snapshot: RulesSnapshot) -> AttendanceDayAggregator:
        return AttendanceDayAggregator(snapshot.attendance, snapshot.geo_fence)

    def _shift_for(self, employee_id: int) -> Optional[Shift]:
        employee = self._employees.get_by_id(employee_id)
        if not employee:
            raise ValidationError(
                "Employee does not exist", code=ErrorCode.NOT_FOUND, employee_id=employee_id
            )
        if employee.shift_id:
            return self._shifts.get_by_id(employee.shift_id)
        return None

    def record_event(self, event: AttendanceEvent) -> AttendanceDay:
        """Accept one event and return the resulting day state."""
        try:
            return self._record(event)
        except DomainError as exc:
            logger.info(
                "Rejected %s for employee=%s date=%s: %s (%s)",
                event.type.value,
                event.employee_id,
                event.work_date,
                exc.message,
                exc.code.value,
            )
            raise

    def _record(self, event: AttendanceEvent) -> AttendanceDay:
        shift = self._shift_for(event.employee_id)
        aggregator = self._aggregator(self._snapshot())
        key = (event.employee_id, event.work_date)

        with self._locks.hold(key, timeout=self._lock_timeout) as acquired:
            if not acquired:
                raise ConcurrencyConflictError(
                    "Attendance for this employee/date is busy, retry",
                    employee_id=event.employee_id,
                    work_date=event.work_date,
                )

            day = self._days.get_day(event.employee_id, event.work_date)
            if day is None:
                return self._open_day(aggregator, event, shift)

            if event.dedup_key in day.dedup_keys:
                logger.debug("Duplicate event %s ignored", event.dedup_key)
                return day
            if event.type == EventType.CHECK_IN and day.is_open:
                raise DuplicateSessionError(
                    "A session is already open for this employee",
                    employee_id=event.employee_id,
                    work_date=event.work_date,
                    device_id=event.device_id,
                )

            updated = aggregator.apply(day, event, shift=shift)
            if not self._days.save_day(updated, event=event, expected_version=day.version):
                raise ConcurrencyConflictError(
                    "Attendance day changed concurrently",
                    employee_id=event.employee_id,
                    work_date=event.work_date,
                )
            if updated.is_finalized:
                logger.info(
                    "Attendance day finalized: employee=%s date=%s status=%s",
                    updated.employee_id,
                    updated.work_date,
                    updated.status.value if updated.status else None,
                )
            return replace(updated, version=day.version + 1)

    def _open_day(self, aggregator: AttendanceDayAggregator, event: AttendanceEvent, shift: Optional[Shift]) -> AttendanceDay:
        fresh = aggregator.new_day(event.employee_id, event.work_date, shift_id=shift.shift_id if shift else None)
        opened = aggregator.apply(fresh, event, shift=shift)

        self._close_stale_session(aggregator, event)

        day_id = self._days.create_open_day(opened, event=event)
        if day_id is None:
            raise DuplicateSessionError(
                "Another device already opened a session for this employee",
                employee_id=event.employee_id,
                work_date=event.work_date,
                device_id=event.device_id,
            )
        return replace(opened, day_id=day_id)

    def _close_stale_session(self, aggregator: AttendanceDayAggregator, event: AttendanceEvent) -> None:
        """Close an open day from an earlier date under that day's own lock."""
        stale = self._days.find_open_day(event.employee_id)
        if stale is None or stale.work_date == event.work_date:
            return
        with self._locks.hold((stale.employee_id, stale.work_date), timeout=self._lock_timeout) as acquired:
            if not acquired:
                raise ConcurrencyConflictError(
                    "Previous open day is busy, retry",
                    employee_id=stale.employee_id,
                    work_date=stale.work_date,
                )
            current = self._days.get_day(stale.employee_id, stale.work_date)
            if current is None or not current.is_open:
                return
            closed = aggregator.close_if_elapsed(current, as_of=event.timestamp)
            if closed is current:
                return
            if not self._days.save_day(closed, event=None, expected_version=current.version):
                raise ConcurrencyConflictError(
                    "Previous open day changed while closing it, retry",
                    employee_id=stale.employee_id,
                    work_date=stale.work_date,
                )
        logger.info("Closed stale session employee=%s date=%s as incomplete", stale.employee_id, stale.work_date)

    def close_elapsed_days(self, *, as_of: datetime) -> list[AttendanceDay]:
        """End-of-day sweep: open days dated before ``as_of`` become incomplete."""
        aggregator = self._aggregator(self._snapshot())
        closed_days: list[AttendanceDay] = []
        for day in self._days.list_open_days_before(as_of.date()):
            with self._locks.hold((day.employee_id, day.work_date), timeout=self._lock_timeout) as acquired:
                if not acquired:
                    logger.warning("Skipped busy day employee=%s date=%s", day.employee_id, day.work_date)
                    continue
                closed = aggregator.close_if_elapsed(day, as_of=as_of)
                if self._days.save_day(closed, event=None, expected_version=day.version):
                    closed_days.append(replace(closed, version=day.version + 1))
                else:
                    logger.warning("Day changed during sweep employee=%s date=%s", day.employee_id, day.work_date)
        return closed_days

    def mark_day(
        self,
        employee_id: int,
        work_date: date,
        status: DayStatus,
        *,
        note: Optional[str] = None,
    ) -> AttendanceDay:
        """Record a non-worked day; only an empty or incomplete date can be marked."""
        aggregator = self._aggregator(self._snapshot())
        marked = aggregator.mark(employee_id, work_date, status, note=note)

        with self._locks.hold((int(employee_id), work_date), timeout=self._lock_timeout) as acquired:
            if not acquired:
                raise ConcurrencyConflictError(
                    "Attendance for this employee/date is busy, retry",
                    employee_id=employee_id,
                    work_date=work_date,
                )
            existing = self._days.get_day(employee_id, work_date)
            if existing is not None and (existing.is_open or existing.is_finalized):
                raise ValidationError(
                    f"Day already recorded as {existing.phase.value}",
                    code=ErrorCode.INVALID_STATE,
                    employee_id=employee_id,
                    work_date=work_date,
                )
            day_id = self._days.replace_with_marked_day(marked)

        logger.info("Marked employee=%s date=%s as %s", employee_id, work_date, status.value)
        return replace(marked, day_id=day_id)

    def get_days_for_period(self, employee_id: int, year: int, month: int) -> Sequence[AttendanceDay]:
        start, end = month_bounds(year, month)
        return self._days.list_days(employee_id=employee_id, start_date=start, end_date=end)
