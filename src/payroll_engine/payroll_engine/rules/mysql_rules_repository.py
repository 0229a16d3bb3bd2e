from __future__ import annotations

import json
from dataclasses import replace
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, load_json
from .model import RulesSnapshot
from .repository import RulesSnapshotRepository


class MySQLRulesSnapshotRepository(RulesSnapshotRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_snapshot(r: dict) -> RulesSnapshot:
        data = dict(load_json(r["payload"]) or {})
        data["created_at"] = r["created_at"]
        return RulesSnapshot.from_dict(data, snapshot_id=int(r["snapshot_id"]))

    def get_latest(self) -> Optional[RulesSnapshot]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT snapshot_id, created_at, payload
                FROM rules_snapshots
                ORDER BY snapshot_id DESC
                LIMIT 1
                """
            )
            r = fetchone(cur)
            return self._to_snapshot(r) if r else None

    def get_by_id(self, snapshot_id: int) -> Optional[RulesSnapshot]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT snapshot_id, created_at, payload FROM rules_snapshots WHERE snapshot_id=%s",
                (int(snapshot_id),),
            )
            r = fetchone(cur)
            return self._to_snapshot(r) if r else None

    def create_snapshot(self, rules: RulesSnapshot) -> RulesSnapshot:
        payload = rules.to_dict()
        payload.pop("snapshot_id", None)
        payload.pop("created_at", None)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO rules_snapshots(created_at, payload) VALUES(%s,%s)",
                (rules.created_at, json.dumps(payload)),
            )
            return replace(rules, snapshot_id=int(cur.lastrowid))
