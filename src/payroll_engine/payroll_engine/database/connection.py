from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import mysql.connector
from mysql.connector import errors as mysql_errors

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    connect_timeout: int = 5
    connect_attempts: int = 3

    @classmethod
    def from_mapping(cls, db_config: Mapping[str, Any]) -> "DBConfig":
        """Build from a settings ``DB_CONFIG`` dict."""
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "payroll_engine")),
        )

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: We create short-lived connections per operation, so no lock or
    transaction is ever held across network I/O. Connecting is bounded by
    ``connect_timeout`` and retried ``connect_attempts`` times.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    @property
    def config(self) -> DBConfig:
        return self._config

    def connect(self, *, with_database: bool = True):
        """Open a fresh connection; ``with_database=False`` is for CREATE DATABASE."""
        cfg = self._config
        kwargs: dict[str, Any] = dict(
            host=cfg.host,
            port=int(cfg.port),
            user=cfg.user,
            password=cfg.password,
            connection_timeout=int(cfg.connect_timeout),
        )
        if with_database:
            kwargs["database"] = cfg.database

        attempts = max(1, int(cfg.connect_attempts))
        for attempt in range(1, attempts + 1):
            try:
                return mysql.connector.connect(**kwargs)
            except (mysql_errors.InterfaceError, mysql_errors.OperationalError):
                if attempt == attempts:
                    raise
                logger.warning("MySQL connect to %s failed (attempt %s/%s), retrying", cfg.describe(), attempt, attempts)
                time.sleep(0.2 * 2 ** (attempt - 1))
