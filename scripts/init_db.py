"""Create the payroll database, apply ``database/schema.sql`` and seed default rules.

Usage: ``APP_ENV=development python scripts/init_db.py``
"""
from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.payroll_engine.payroll_engine.database.bootstrap import apply_schema, ensure_rules_snapshot, list_tables
from src.payroll_engine.payroll_engine.database.connection import DBConfig

logger = logging.getLogger("init_db")


def main() -> int:
    load_dotenv(override=False)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    settings = importlib.import_module(get_settings_module())
    config = DBConfig.from_mapping(settings.DB_CONFIG)

    count = apply_schema(config, schema_path=REPO_ROOT / "database" / "schema.sql")
    snapshot = ensure_rules_snapshot(config)
    tables = list_tables(config)
    logger.info(
        "%s ready: %s statements, %s tables, rules snapshot %s",
        config.describe(),
        count,
        len(tables),
        snapshot.snapshot_id,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
