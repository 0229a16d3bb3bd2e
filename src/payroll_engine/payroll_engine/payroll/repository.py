from __future__ import annotations

from typing import Collection, Optional, Protocol

from ..core.enums import PayrollStatus
from .model import PayrollRecord


class PayrollRepository(Protocol):
    def get_by_id(self, payroll_id: int) -> Optional[PayrollRecord]:
        raise NotImplementedError

    def get_for_period(self, *, employee_id: int, year: int, month: int) -> Optional[PayrollRecord]:
        raise NotImplementedError

    def create(self, record: PayrollRecord) -> Optional[PayrollRecord]:
        """Insert a new record; None when one already exists for employee+period."""

        raise NotImplementedError

    def save(self, record: PayrollRecord, *, expected_statuses: Collection[PayrollStatus]) -> bool:
        """Compare-and-swap write.

        Succeeds only while the stored row still has ``record.version`` and one
        of ``expected_statuses``; bumps ``record.version`` on success. New audit
        entries are appended, never rewritten.
        """

        raise NotImplementedError
