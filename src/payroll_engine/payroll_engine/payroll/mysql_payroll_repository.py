from __future__ import annotations

import json
from typing import Collection, Optional

from mysql.connector import errors as mysql_errors

from ..core.enums import AuditAction, PaymentMethod, PayrollStatus, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, load_json
from .model import AuditEntry, PayrollFigures, PayrollRecord, Signature
from .repository import PayrollRepository

_RECORD_COLUMNS = """
    payroll_id, employee_id, period_year, period_month, status, rules_snapshot_id, figures,
    net_payable, calculated_at, approved_at, approved_by, locked_at, locked_by,
    paid_at, paid_by, payment_method, payment_reference, version
"""


class MySQLPayrollRepository(PayrollRepository):
    """``payroll_records`` plus two child tables: ``payroll_signatures`` (one row
    per slot) and the append-only ``payroll_audit`` keyed by (payroll_id, seq)."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _hydrate(self, cur, row: dict) -> PayrollRecord:
        payroll_id = int(row["payroll_id"])

        cur.execute(
            """
            SELECT owner_role, owner_id, image_hash, image_data, device_id, ip_address, signed_at, verified
            FROM payroll_signatures WHERE payroll_id=%s
            """,
            (payroll_id,),
        )
        slots: dict[Role, Signature] = {}
        for s in fetchall(cur):
            role = Role(s["owner_role"])
            slots[role] = Signature(
                owner_role=role,
                owner_id=int(s["owner_id"]),
                image_hash=str(s["image_hash"]),
                image_data=str(s.get("image_data") or ""),
                device_id=str(s["device_id"]),
                ip_address=str(s["ip_address"]),
                timestamp=s["signed_at"],
                verified=bool(s.get("verified")),
            )

        cur.execute(
            "SELECT seq, action, actor, occurred_at, detail FROM payroll_audit WHERE payroll_id=%s ORDER BY seq",
            (payroll_id,),
        )
        audit = tuple(
            AuditEntry(
                seq=int(a["seq"]),
                action=AuditAction(a["action"]),
                actor=str(a["actor"]),
                timestamp=a["occurred_at"],
                detail=a.get("detail"),
            )
            for a in fetchall(cur)
        )

        figures = load_json(row.get("figures"))
        return PayrollRecord(
            payroll_id=payroll_id,
            employee_id=int(row["employee_id"]),
            year=int(row["period_year"]),
            month=int(row["period_month"]),
            rules_snapshot_id=row.get("rules_snapshot_id"),
            figures=PayrollFigures.from_dict(figures) if figures else None,
            employee_signature=slots.get(Role.EMPLOYEE),
            admin_signature=slots.get(Role.ADMIN),
            calculated_at=row.get("calculated_at"),
            approved_at=row.get("approved_at"),
            approved_by=row.get("approved_by"),
            locked_at=row.get("locked_at"),
            locked_by=row.get("locked_by"),
            paid_at=row.get("paid_at"),
            paid_by=row.get("paid_by"),
            payment_method=PaymentMethod(row["payment_method"]) if row.get("payment_method") else None,
            payment_reference=row.get("payment_reference"),
            audit_trail=audit,
            status=PayrollStatus(row["status"]),
            version=int(row.get("version") or 0),
        )

    def get_by_id(self, payroll_id: int) -> Optional[PayrollRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_RECORD_COLUMNS} FROM payroll_records WHERE payroll_id=%s", (int(payroll_id),))
            r = fetchone(cur)
            return self._hydrate(cur, r) if r else None

    def get_for_period(self, *, employee_id: int, year: int, month: int) -> Optional[PayrollRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS} FROM payroll_records
                WHERE employee_id=%s AND period_year=%s AND period_month=%s
                """,
                (int(employee_id), int(year), int(month)),
            )
            r = fetchone(cur)
            return self._hydrate(cur, r) if r else None

    # -------- writes --------
    @staticmethod
    def _record_params(record: PayrollRecord) -> tuple:
        return (
            record.status.value,
            record.rules_snapshot_id,
            json.dumps(record.figures.to_dict()) if record.figures else None,
            record.net_payable,
            record.calculated_at,
            record.approved_at,
            record.approved_by,
            record.locked_at,
            record.locked_by,
            record.paid_at,
            record.paid_by,
            record.payment_method.value if record.payment_method else None,
            record.payment_reference,
        )

    @staticmethod
    def _write_children(cur, record: PayrollRecord) -> None:
        payroll_id = int(record.payroll_id)
        for role in (Role.EMPLOYEE, Role.ADMIN):
            sig = record.signature_for(role)
            if sig is None:
                cur.execute(
                    "DELETE FROM payroll_signatures WHERE payroll_id=%s AND owner_role=%s",
                    (payroll_id, role.value),
                )
                continue
            cur.execute(
                """
                INSERT INTO payroll_signatures(
                    payroll_id, owner_role, owner_id, image_hash, image_data, device_id, ip_address, signed_at, verified
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    owner_id=VALUES(owner_id), image_hash=VALUES(image_hash), image_data=VALUES(image_data),
                    device_id=VALUES(device_id), ip_address=VALUES(ip_address), signed_at=VALUES(signed_at),
                    verified=VALUES(verified)
                """,
                (
                    payroll_id,
                    role.value,
                    sig.owner_id,
                    sig.image_hash,
                    sig.image_data,
                    sig.device_id,
                    sig.ip_address,
                    sig.timestamp,
                    int(sig.verified),
                ),
            )

        cur.execute("SELECT COALESCE(MAX(seq), 0) AS max_seq FROM payroll_audit WHERE payroll_id=%s", (payroll_id,))
        stored = int((fetchone(cur) or {}).get("max_seq") or 0)
        for entry in record.audit_trail:
            if entry.seq <= stored:
                continue
            cur.execute(
                """
                INSERT INTO payroll_audit(payroll_id, seq, action, actor, occurred_at, detail)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (payroll_id, entry.seq, entry.action.value, entry.actor, entry.timestamp, entry.detail),
            )

    def create(self, record: PayrollRecord) -> Optional[PayrollRecord]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO payroll_records(
                        employee_id, period_year, period_month, status, rules_snapshot_id, figures, net_payable,
                        calculated_at, approved_at, approved_by, locked_at, locked_by,
                        paid_at, paid_by, payment_method, payment_reference, version
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,0)
                    """,
                    (record.employee_id, record.year, record.month) + self._record_params(record),
                )
                record.payroll_id = int(cur.lastrowid)
                self._write_children(cur, record)
                return record
        except mysql_errors.IntegrityError:
            return None

    def save(self, record: PayrollRecord, *, expected_statuses: Collection[PayrollStatus]) -> bool:
        statuses = [s.value for s in expected_statuses]
        placeholders = ",".join(["%s"] * len(statuses))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE payroll_records
                SET status=%s, rules_snapshot_id=%s, figures=%s, net_payable=%s,
                    calculated_at=%s, approved_at=%s, approved_by=%s, locked_at=%s, locked_by=%s,
                    paid_at=%s, paid_by=%s, payment_method=%s, payment_reference=%s, version=version+1
                WHERE payroll_id=%s AND version=%s AND status IN ({placeholders})
                """,
                self._record_params(record) + (int(record.payroll_id), int(record.version), *statuses),
            )
            if cur.rowcount == 0:
                return False
            self._write_children(cur, record)
        record.version += 1
        return True
