from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceDayRepository
from .attendance.service import AttendanceService
from .common.locks import KeyedLocks
from .core.constants import DEFAULT_BATCH_WORKERS
from .database.connection import DBConfig, DatabaseConnection
from .employees.mysql_employee_repository import MySQLEmployeeRepository
from .leave.mysql_leave_repository import MySQLLeaveRepository
from .payroll.mysql_payroll_repository import MySQLPayrollRepository
from .payroll.service import PayrollService
from .rules.mysql_rules_repository import MySQLRulesSnapshotRepository
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .signatures.workflow import SignatureLockWorkflow


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    employees_repo: MySQLEmployeeRepository
    shifts_repo: MySQLShiftRepository
    rules_repo: MySQLRulesSnapshotRepository
    leave_repo: MySQLLeaveRepository
    attendance_repo: MySQLAttendanceDayRepository
    payroll_repo: MySQLPayrollRepository

    attendance_service: AttendanceService
    payroll_service: PayrollService
    signature_workflow: SignatureLockWorkflow


def build_container(*, db_config: DBConfig, batch_workers: int = DEFAULT_BATCH_WORKERS) -> Container:
    conn = DatabaseConnection.get_instance(db_config)

    employees_repo = MySQLEmployeeRepository(conn)
    shifts_repo = MySQLShiftRepository(conn)
    rules_repo = MySQLRulesSnapshotRepository(conn)
    leave_repo = MySQLLeaveRepository(conn)
    attendance_repo = MySQLAttendanceDayRepository(conn)
    payroll_repo = MySQLPayrollRepository(conn)

    attendance_service = AttendanceService(
        attendance_repo,
        employees_repo,
        shifts_repo,
        rules_repo,
        locks=KeyedLocks(),
    )
    payroll_service = PayrollService(
        payroll_repo,
        attendance_repo,
        leave_repo,
        employees_repo,
        rules_repo,
        locks=KeyedLocks(),
        max_workers=batch_workers,
    )
    signature_workflow = SignatureLockWorkflow(payroll_repo)

    return Container(
        conn=conn,
        employees_repo=employees_repo,
        shifts_repo=shifts_repo,
        rules_repo=rules_repo,
        leave_repo=leave_repo,
        attendance_repo=attendance_repo,
        payroll_repo=payroll_repo,
        attendance_service=attendance_service,
        payroll_service=payroll_service,
        signature_workflow=signature_workflow,
    )
