from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time


@dataclass(frozen=True)
class Shift:
    """Working shift; lateness and early checkout are measured against it."""

    shift_id: int
    shift_name: str
    start_time: time
    end_time: time
    break_minutes: int = 0

    def start_on(self, work_date: date) -> datetime:
        return datetime.combine(work_date, self.start_time)

    def end_on(self, work_date: date) -> datetime:
        return datetime.combine(work_date, self.end_time)
