from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from mysql.connector import errors as mysql_errors

from ..core.enums import DayPhase, DayStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceDay, AttendanceEvent, BreakPeriod
from .repository import AttendanceDayRepository

_DAY_COLUMNS = """
    day_id, employee_id, work_date, phase, check_in, check_out, last_event_at, status,
    is_late, late_minutes, total_working_minutes, total_break_minutes, overtime_minutes,
    early_checkout_minutes, break_overrun_minutes, note, shift_id, version
"""


class MySQLAttendanceDayRepository(AttendanceDayRepository):
    """Days live in ``attendance_days``; breaks and accepted events are
    append-only child logs keyed by (day_id, seq) and (employee_id, dedup_key).

    ``open_session_key`` holds employee_id while a day is open and NULL
    otherwise; its UNIQUE index is the atomic one-open-session guard.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- reads --------
    def _load_children(self, cur, row: dict) -> AttendanceDay:
        day_id = int(row["day_id"])
        cur.execute(
            "SELECT seq, start_at, end_at FROM attendance_breaks WHERE day_id=%s ORDER BY seq",
            (day_id,),
        )
        breaks = tuple(BreakPeriod(seq=int(b["seq"]), start=b["start_at"], end=b.get("end_at")) for b in fetchall(cur))
        cur.execute("SELECT dedup_key FROM attendance_events WHERE day_id=%s", (day_id,))
        keys = frozenset(str(e["dedup_key"]) for e in fetchall(cur))

        return AttendanceDay(
            day_id=day_id,
            employee_id=int(row["employee_id"]),
            work_date=row["work_date"],
            phase=DayPhase(row["phase"]),
            check_in=row.get("check_in"),
            check_out=row.get("check_out"),
            breaks=breaks,
            dedup_keys=keys,
            last_event_at=row.get("last_event_at"),
            status=DayStatus(row["status"]) if row.get("status") else None,
            is_late=bool(row.get("is_late")),
            late_minutes=int(row.get("late_minutes") or 0),
            total_working_minutes=int(row.get("total_working_minutes") or 0),
            total_break_minutes=int(row.get("total_break_minutes") or 0),
            overtime_minutes=int(row.get("overtime_minutes") or 0),
            early_checkout_minutes=int(row.get("early_checkout_minutes") or 0),
            break_overrun_minutes=int(row.get("break_overrun_minutes") or 0),
            note=row.get("note"),
            shift_id=row.get("shift_id"),
            version=int(row.get("version") or 0),
        )

    def get_day(self, employee_id: int, work_date: date) -> Optional[AttendanceDay]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_DAY_COLUMNS} FROM attendance_days WHERE employee_id=%s AND work_date=%s",
                (int(employee_id), work_date),
            )
            r = fetchone(cur)
            return self._load_children(cur, r) if r else None

    def find_open_day(self, employee_id: int) -> Optional[AttendanceDay]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_DAY_COLUMNS} FROM attendance_days WHERE open_session_key=%s",
                (int(employee_id),),
            )
            r = fetchone(cur)
            return self._load_children(cur, r) if r else None

    def list_days(self, *, employee_id: int, start_date: date, end_date: date) -> Sequence[AttendanceDay]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_DAY_COLUMNS} FROM attendance_days
                WHERE employee_id=%s AND work_date BETWEEN %s AND %s
                ORDER BY work_date
                """,
                (int(employee_id), start_date, end_date),
            )
            rows = fetchall(cur)
            return [self._load_children(cur, r) for r in rows]

    def list_open_days_before(self, work_date: date) -> Sequence[AttendanceDay]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_DAY_COLUMNS} FROM attendance_days WHERE phase=%s AND work_date < %s ORDER BY work_date",
                (DayPhase.OPEN.value, work_date),
            )
            rows = fetchall(cur)
            return [self._load_children(cur, r) for r in rows]

    # -------- writes --------
    @staticmethod
    def _day_params(day: AttendanceDay) -> tuple:
        return (
            day.phase.value,
            day.employee_id if day.is_open else None,
            day.check_in,
            day.check_out,
            day.last_event_at,
            day.status.value if day.status else None,
            int(day.is_late),
            day.late_minutes,
            day.total_working_minutes,
            day.total_break_minutes,
            day.overtime_minutes,
            day.early_checkout_minutes,
            day.break_overrun_minutes,
            day.note,
            day.shift_id,
        )

    @staticmethod
    def _append_event(cur, day_id: int, event: AttendanceEvent) -> None:
        cur.execute(
            """
            INSERT INTO attendance_events(day_id, employee_id, dedup_key, event_type, occurred_at, lat, lng, device_id)
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                day_id,
                event.employee_id,
                event.dedup_key,
                event.type.value,
                event.timestamp,
                event.location.lat,
                event.location.lng,
                event.device_id,
            ),
        )

    @staticmethod
    def _write_breaks(cur, day_id: int, breaks: tuple[BreakPeriod, ...]) -> None:
        for b in breaks:
            # start_at never changes; only the closing end_at is filled in later
            cur.execute(
                """
                INSERT INTO attendance_breaks(day_id, seq, start_at, end_at)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE end_at=COALESCE(attendance_breaks.end_at, VALUES(end_at))
                """,
                (day_id, b.seq, b.start, b.end),
            )

    def create_open_day(self, day: AttendanceDay, *, event: AttendanceEvent) -> Optional[int]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_days(
                        employee_id, work_date, phase, open_session_key, check_in, check_out, last_event_at,
                        status, is_late, late_minutes, total_working_minutes, total_break_minutes,
                        overtime_minutes, early_checkout_minutes, break_overrun_minutes, note, shift_id, version
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,0)
                    """,
                    (day.employee_id, day.work_date) + self._day_params(day),
                )
                day_id = int(cur.lastrowid)
                self._write_breaks(cur, day_id, day.breaks)
                self._append_event(cur, day_id, event)
                return day_id
        except mysql_errors.IntegrityError:
            # unique (open_session_key) or (employee_id, work_date) already taken
            return None

    def save_day(self, day: AttendanceDay, *, event: Optional[AttendanceEvent], expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_days
                SET phase=%s, open_session_key=%s, check_in=%s, check_out=%s, last_event_at=%s, status=%s,
                    is_late=%s, late_minutes=%s, total_working_minutes=%s, total_break_minutes=%s,
                    overtime_minutes=%s, early_checkout_minutes=%s, break_overrun_minutes=%s, note=%s,
                    shift_id=%s, version=version+1
                WHERE day_id=%s AND version=%s
                """,
                self._day_params(day) + (int(day.day_id), int(expected_version)),
            )
            if cur.rowcount == 0:
                return False
            self._write_breaks(cur, int(day.day_id), day.breaks)
            if event is not None:
                self._append_event(cur, int(day.day_id), event)
            return True

    def replace_with_marked_day(self, day: AttendanceDay) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance_days WHERE employee_id=%s AND work_date=%s AND phase=%s",
                (day.employee_id, day.work_date, DayPhase.INCOMPLETE.value),
            )
            cur.execute(
                """
                INSERT INTO attendance_days(employee_id, work_date, phase, status, note, version)
                VALUES(%s,%s,%s,%s,%s,0)
                """,
                (day.employee_id, day.work_date, day.phase.value, day.status.value, day.note),
            )
            return int(cur.lastrowid)
