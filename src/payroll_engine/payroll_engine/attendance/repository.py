from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceDay, AttendanceEvent


class AttendanceDayRepository(Protocol):
    def get_day(self, employee_id: int, work_date: date) -> Optional[AttendanceDay]:
        raise NotImplementedError

    def find_open_day(self, employee_id: int) -> Optional[AttendanceDay]:
        raise NotImplementedError

    def create_open_day(self, day: AttendanceDay, *, event: AttendanceEvent) -> Optional[int]:
        """Insert a day opened by ``event``.

        Must be atomic with the "no open session exists for this employee"
        check; returns None when another open session already exists.
        """

        raise NotImplementedError

    def save_day(self, day: AttendanceDay, *, event: Optional[AttendanceEvent], expected_version: int) -> bool:
        """Optimistic update; False when the stored version moved on."""

        raise NotImplementedError

    def replace_with_marked_day(self, day: AttendanceDay) -> int:
        """Store an admin-marked (absent/holiday/leave) day, replacing an incomplete one."""

        raise NotImplementedError

    def list_days(self, *, employee_id: int, start_date: date, end_date: date) -> Sequence[AttendanceDay]:
        raise NotImplementedError

    def list_open_days_before(self, work_date: date) -> Sequence[AttendanceDay]:
        raise NotImplementedError
