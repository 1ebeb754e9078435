"""Alembic migration helpers."""

from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from flask import Flask

REPO_ROOT = Path(__file__).resolve().parents[2]


def alembic_config(app: Flask) -> Config:
    cfg = Config(str(REPO_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(REPO_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", app.config["SQLALCHEMY_DATABASE_URI"])
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations(app: Flask) -> None:
    """Upgrade the database to the latest revision."""

    command.upgrade(alembic_config(app), "head")


def auto_upgrade(app: Flask) -> None:
    """Run `alembic upgrade head` on start unless CLINIC_AUTO_MIGRATE is off."""

    if os.getenv("CLINIC_AUTO_MIGRATE", "1") != "1":
        return
    if not (REPO_ROOT / "alembic.ini").exists() or not (REPO_ROOT / "migrations").exists():
        app.logger.info("Alembic files not found; relying on bootstrap schema")
        return
    try:
        run_migrations(app)
    except Exception as exc:  # pragma: no cover - bootstrap schema still applies
        app.logger.warning("Auto migration skipped: %s", exc)
