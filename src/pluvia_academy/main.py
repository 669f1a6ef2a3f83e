from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .app_logger import setup_logging
from .attendance.controller import register as register_attendance
from .common.web import register_error_handlers
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .database.connection import DBConfig, describe
from .materials.controller import register as register_materials
from .meetings.controller import register as register_meetings
from .punishment.controller import register as register_punishment
from .users.controller import register as register_users

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.json.sort_keys = False

    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db_config = getattr(settings, "DB_CONFIG")

    if container is None:
        logger.debug("settings=%s db=%s", settings_module, describe(DBConfig.from_dict(db_config)))

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.debug("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config)
            ensure_demo_users(db_config)

        container = build_container(
            db_config=db_config,
            auto_join_window_minutes=int(getattr(settings, "AUTO_JOIN_WINDOW_MINUTES", 120)),
            punishment_log_limit=int(getattr(settings, "PUNISHMENT_LOG_LIMIT", 10)),
        )

    register_error_handlers(app)

    register_users(app, container)
    register_meetings(app, container)
    register_attendance(app, container)
    register_punishment(app, container)
    register_materials(app, container)

    return app
