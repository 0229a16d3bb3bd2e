"""Schema setup for a fresh MySQL database.

``schema.sql`` only holds ``CREATE TABLE IF NOT EXISTS`` statements, so
applying it is idempotent. The engine also needs one rules snapshot before it
can accept attendance; ``ensure_rules_snapshot`` seeds the defaults once.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

from ..common.datetime_utils import now_local
from ..rules.model import RulesSnapshot
from ..rules.mysql_rules_repository import MySQLRulesSnapshotRepository
from .connection import DBConfig, DatabaseConnection
from .mysql_base import db_cursor, fetchall

logger = logging.getLogger(__name__)


def split_statements(sql: str) -> Iterator[str]:
    """Statements of a schema file: ``--`` lines dropped, split on a trailing ';'."""
    buf: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        # the target database comes from settings, never from the file
        if not buf and stripped.upper().startswith(("CREATE DATABASE", "USE ")):
            continue
        buf.append(line)
        if stripped.endswith(";"):
            yield "\n".join(buf).rstrip().rstrip(";")
            buf.clear()
    if buf:
        yield "\n".join(buf).strip()


def ensure_database(config: DBConfig) -> None:
    conn = DatabaseConnection(config).connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(config: DBConfig, *, schema_path: str | Path) -> int:
    """Create the database if needed and run every statement; returns the count."""
    ensure_database(config)
    statements = list(split_statements(Path(schema_path).read_text(encoding="utf-8")))
    with db_cursor(DatabaseConnection(config), dictionary=False) as (_, cur):
        for stmt in statements:
            cur.execute(stmt)
    logger.info("Applied %s schema statements to %s", len(statements), config.describe())
    return len(statements)


def list_tables(config: DBConfig) -> list[str]:
    with db_cursor(DatabaseConnection(config), dictionary=False) as (_, cur):
        cur.execute("SHOW TABLES")
        return [row[0] for row in fetchall(cur)]


def ensure_rules_snapshot(config: DBConfig, *, clock: Callable = now_local) -> RulesSnapshot:
    """Latest snapshot, seeding the default rules when the table is empty."""
    repo = MySQLRulesSnapshotRepository(DatabaseConnection(config))
    latest = repo.get_latest()
    if latest is not None:
        return latest
    seeded = repo.create_snapshot(RulesSnapshot(snapshot_id=0, created_at=clock()))
    logger.info("Seeded default rules snapshot %s", seeded.snapshot_id)
    return seeded
