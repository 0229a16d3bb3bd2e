from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from .model import LeaveRecord


class LeaveRepository(Protocol):
    def list_approved_overlapping(self, *, employee_id: int, start_date: date, end_date: date) -> Sequence[LeaveRecord]:
        """Only status=approved rows overlapping [start_date, end_date]."""

        raise NotImplementedError
