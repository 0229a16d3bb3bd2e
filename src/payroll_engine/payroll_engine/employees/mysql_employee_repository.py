from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Compensation, Employee
from .repository import EmployeeRepository

_COLUMNS = "employee_id, full_name, shift_id, basic_salary, allowances, hourly_rate, is_active"


class MySQLEmployeeRepository(EmployeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_employee(r: dict) -> Employee:
        return Employee(
            employee_id=int(r["employee_id"]),
            full_name=r["full_name"],
            shift_id=int(r["shift_id"]) if r.get("shift_id") is not None else None,
            compensation=Compensation(
                basic_salary=int(r["basic_salary"]),
                allowances=int(r.get("allowances") or 0),
                hourly_rate=int(r.get("hourly_rate") or 0),
            ),
            is_active=bool(r.get("is_active", True)),
        )

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE employee_id=%s", (int(employee_id),))
            r = fetchone(cur)
            return self._to_employee(r) if r else None

    def list_active(self) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE is_active=1 ORDER BY employee_id")
            return [self._to_employee(r) for r in fetchall(cur)]
