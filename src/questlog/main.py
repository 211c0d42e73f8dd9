from __future__ import annotations

import logging

import uvicorn

from questlog.api import build_app
from questlog.config import load_rules, load_settings
from questlog.db import Database
from questlog.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def run_server() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    db = Database(settings.database_path)
    rules = load_rules(settings.rules_path)
    logger.info("starting questlog db=%s tz=%s", settings.database_path, settings.tz)
    app = build_app(db, rules=rules, tz=settings.tz)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
