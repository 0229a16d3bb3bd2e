from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .database.bootstrap import apply_schema, ensure_rules_snapshot, list_tables
from .database.connection import DBConfig

from .container import build_container
from .attendance.controller import register as register_attendance
from .attendance.commands import register as register_attendance_commands
from .payroll.controller import register as register_payroll

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = DBConfig.from_mapping(getattr(settings, "DB_CONFIG"))
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("settings=%s db=%s", settings_module, db_config.describe())

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=SCHEMA_PATH)
        snapshot = ensure_rules_snapshot(db_config)
        logger.info("schema ready (tables=%s, rules snapshot=%s)", len(list_tables(db_config)), snapshot.snapshot_id)

    container = build_container(
        db_config=db_config,
        batch_workers=int(getattr(settings, "PAYROLL_BATCH_WORKERS", 4)),
    )

    register_attendance(app, container)
    register_attendance_commands(app, container)
    register_payroll(app, container)

    return app
