from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..attendance.repository import AttendanceDayRepository
from ..common.datetime_utils import month_bounds, now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_period
from ..core.constants import DEFAULT_BATCH_WORKERS
from ..core.enums import AuditAction, Permission
from ..core.exceptions import (
    CalculationError,
    ConcurrencyConflictError,
    DomainError,
    ErrorCode,
    ImmutableRecordError,
)
from ..employees.repository import EmployeeRepository
from ..leave.repository import LeaveRepository
from ..rules.model import RulesSnapshot
from ..rules.repository import RulesSnapshotRepository
from ..signatures.actors import Actor
from .calculator.base import PayrollCalculator, PayrollInput
from .calculator.standard_calculator import StandardPayrollCalculator
from .model import PayrollRecord
from .repository import PayrollRepository

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Partial success: every employee ends up in exactly one of the two lists."""

    results: list[PayrollRecord] = field(default_factory=list)
    errors: list[DomainError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
        }


class PayrollService:
    def __init__(
        self,
        payrolls: PayrollRepository,
        days: AttendanceDayRepository,
        leaves: LeaveRepository,
        employees: EmployeeRepository,
        rules: RulesSnapshotRepository,
        *,
        calculator: Optional[PayrollCalculator] = None,
        locks: Optional[KeyedLocks] = None,
        max_workers: int = DEFAULT_BATCH_WORKERS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._payrolls = payrolls
        self._days = days
        self._leaves = leaves
        self._employees = employees
        self._rules = rules
        self._calculator = calculator or StandardPayrollCalculator()
        self._locks = locks or KeyedLocks()
        self._max_workers = max(1, int(max_workers))
        self._clock = clock

    def get(self, payroll_id: int) -> PayrollRecord:
        record = self._payrolls.get_by_id(payroll_id)
        if record is None:
            raise CalculationError("Payroll not found", code=ErrorCode.NOT_FOUND, payroll_id=payroll_id)
        return record

    def _snapshot_for(self, existing: Optional[PayrollRecord], *, refresh_rules: bool) -> Optional[RulesSnapshot]:
        # a recalculation keeps the snapshot the record was pinned to
        if existing is not None and existing.rules_snapshot_id is not None and not refresh_rules:
            return self._rules.get_by_id(existing.rules_snapshot_id)
        return self._rules.get_latest()

    def calculate(
        self,
        employee_id: int,
        year: int,
        month: int,
        *,
        actor: Actor,
        refresh_rules: bool = False,
    ) -> PayrollRecord:
        """Calculate (or recalculate) one employee's payroll for a period.

        A second request for the same employee+period while one is running is
        rejected, never run in parallel.
        """
        year, month = require_period(year, month)
        actor.require(Permission.CALCULATE, employee_id=employee_id, period=(year, month))

        with self._locks.try_hold(("payroll", int(employee_id), year, month)) as acquired:
            if not acquired:
                raise ConcurrencyConflictError(
                    "Payroll calculation already in progress",
                    employee_id=employee_id,
                    period=(year, month),
                )
            return self._calculate(int(employee_id), year, month, actor=actor, refresh_rules=refresh_rules)

    def _calculate(self, employee_id: int, year: int, month: int, *, actor: Actor, refresh_rules: bool) -> PayrollRecord:
        period = (year, month)
        employee = self._employees.get_by_id(employee_id)
        if employee is None:
            raise CalculationError("Employee not found", code=ErrorCode.NOT_FOUND, employee_id=employee_id, period=period)

        existing = self._payrolls.get_for_period(employee_id=employee_id, year=year, month=month)
        if existing is not None and existing.is_locked:
            raise ImmutableRecordError(
                f"Payroll is {existing.status.value} and cannot be recalculated",
                employee_id=employee_id,
                period=period,
            )

        snapshot = self._snapshot_for(existing, refresh_rules=refresh_rules)
        if snapshot is None:
            raise CalculationError("No business rules snapshot available", employee_id=employee_id, period=period)

        start, end = month_bounds(year, month)
        figures = self._calculator.calculate(
            PayrollInput(
                employee_id=employee_id,
                year=year,
                month=month,
                days=self._days.list_days(employee_id=employee_id, start_date=start, end_date=end),
                leaves=self._leaves.list_approved_overlapping(employee_id=employee_id, start_date=start, end_date=end),
                rules=snapshot,
                compensation=employee.compensation,
            )
        )

        at = self._clock()
        if existing is None:
            record = PayrollRecord(employee_id=employee_id, year=year, month=month)
            record.append_audit(AuditAction.CREATE, actor.label, at)
            record.apply_calculation(figures, rules_snapshot_id=snapshot.snapshot_id, actor=actor.label, at=at)
            stored = self._payrolls.create(record)
            if stored is None:
                raise ConcurrencyConflictError("Payroll was created concurrently", employee_id=employee_id, period=period)
            record = stored
        else:
            previous = existing.status
            existing.apply_calculation(figures, rules_snapshot_id=snapshot.snapshot_id, actor=actor.label, at=at)
            if not self._payrolls.save(existing, expected_statuses={previous}):
                raise ConcurrencyConflictError("Payroll changed concurrently", employee_id=employee_id, period=period)
            record = existing

        logger.info(
            "Payroll calculated: employee=%s period=%s-%02d net=%s snapshot=%s",
            employee_id,
            year,
            month,
            figures.net_payable,
            snapshot.snapshot_id,
        )
        return record

    def calculate_batch(
        self,
        year: int,
        month: int,
        *,
        actor: Actor,
        employee_ids: Optional[Iterable[int]] = None,
    ) -> BatchResult:
        """Calculate many employees in parallel; failures are collected per employee."""
        year, month = require_period(year, month)
        actor.require(Permission.CALCULATE, period=(year, month))

        ids = list(employee_ids) if employee_ids is not None else [e.employee_id for e in self._employees.list_active()]
        batch = BatchResult()
        if not ids:
            return batch

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(ids)), thread_name_prefix="payroll") as pool:
            futures = {pool.submit(self.calculate, emp_id, year, month, actor=actor): emp_id for emp_id in ids}
            for future in as_completed(futures):
                emp_id = futures[future]
                try:
                    batch.results.append(future.result())
                except DomainError as exc:
                    logger.warning("Payroll failed for employee=%s: %s (%s)", emp_id, exc.message, exc.code.value)
                    batch.errors.append(exc)
                except Exception as exc:
                    logger.exception("Unexpected payroll failure for employee=%s", emp_id)
                    batch.errors.append(
                        CalculationError(str(exc), code=ErrorCode.INVALID_STATE, employee_id=emp_id, period=(year, month))
                    )

        batch.results.sort(key=lambda r: r.employee_id)
        batch.errors.sort(key=lambda e: e.employee_id or 0)
        logger.info(
            "Payroll batch %s-%02d: %s calculated, %s failed", year, month, len(batch.results), len(batch.errors)
        )
        return batch
