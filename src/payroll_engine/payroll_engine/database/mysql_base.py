from __future__ import annotations

import json
from contextlib import closing, contextmanager
from datetime import time, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Tuple[Any, Any]]:
    """One connection and cursor per unit of work: commit on success, rollback on error."""
    conn = conn_factory.connect()
    try:
        with closing(conn.cursor(dictionary=dictionary)) as cur:
            yield conn, cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    return cur.fetchone() or None


def fetchall(cur) -> List[Dict[str, Any]]:
    return list(cur.fetchall() or [])


def as_time(value: Any) -> Optional[time]:
    """TIME column as ``datetime.time``; the connector may return timedelta or 'HH:MM[:SS]'."""
    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % 86400
        return time(seconds // 3600, seconds % 3600 // 60, seconds % 60)
    if isinstance(value, str):
        return time(*(int(p) for p in value.strip().split(":")[:3]))
    raise TypeError(f"Unsupported TIME value: {value!r}")


def load_json(value: Any) -> Any:
    """Decode a JSON column (driver may hand back str, bytes or already-parsed)."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value
