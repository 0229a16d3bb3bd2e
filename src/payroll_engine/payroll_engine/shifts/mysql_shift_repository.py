from __future__ import annotations

from typing import Any, Dict, Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_time, db_cursor, fetchone
from .model import Shift
from .repository import ShiftRepository


def _to_shift(row: Dict[str, Any]) -> Shift:
    return Shift(
        shift_id=int(row["shift_id"]),
        shift_name=row["shift_name"],
        start_time=as_time(row["start_time"]),
        end_time=as_time(row["end_time"]),
        break_minutes=int(row.get("break_minutes") or 0),
    )


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shifts WHERE shift_id = %s", (int(shift_id),))
            row = fetchone(cur)
        return _to_shift(row) if row else None
