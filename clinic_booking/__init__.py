"""Clinic booking package exposing the Flask application factory."""

from __future__ import annotations

import os
from pathlib import Path

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError

from .blueprints import register_blueprints
from .cli import register_cli
from .extensions import init_extensions
from .services.bootstrap import ensure_base_tables
from .services.migrations import auto_upgrade
from .services.weekdays import parse_utc_offset

APP_HOST = "127.0.0.1"
APP_PORT = 8080


def _data_root(base_dir: Path, override: Path | None = None) -> Path:
    root = override if override else base_dir / "data"
    root.mkdir(parents=True, exist_ok=True)
    (root / "logs").mkdir(parents=True, exist_ok=True)
    return root


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def create_app() -> Flask:
    db_override = os.getenv("CLINIC_DB_PATH")
    override_root = Path(db_override).parent if db_override else None
    data_root = _data_root(Path(__file__).resolve().parent.parent, override_root)
    db_path = Path(db_override) if db_override else data_root / "app.db"

    app = Flask(__name__)

    secret_key = os.getenv("CLINIC_SECRET_KEY")
    if not secret_key:
        secret_key = os.urandom(32)

    utc_offset = os.getenv("CLINIC_UTC_OFFSET", "+07:00")
    parse_utc_offset(utc_offset)

    app.config.update(
        SECRET_KEY=secret_key,
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"check_same_thread": False}},
        SQLITE_BUSY_TIMEOUT_MS=_env_int("SQLITE_BUSY_TIMEOUT_MS", 5000),
        RATELIMIT_STORAGE_URI=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        DATA_ROOT=str(data_root),
        CLINIC_DB=str(db_path),
        CLINIC_UTC_OFFSET=utc_offset,
        BOOKING_DEFAULT_PRICE=_env_int("BOOKING_DEFAULT_PRICE", 180000),
        SCHEDULE_DEFAULT_MAX_PATIENTS=_env_int("SCHEDULE_DEFAULT_MAX_PATIENTS", 10),
        BOOKING_DAYS_AHEAD=_env_int("BOOKING_DAYS_AHEAD", 90),
        DOCTOR_DAYS_AHEAD=_env_int("DOCTOR_DAYS_AHEAD", 183),
        BOOKING_RATE_LIMIT=os.getenv("BOOKING_RATE_LIMIT", "30 per minute"),
    )

    init_extensions(app)
    register_blueprints(app)
    auto_upgrade(app)
    ensure_base_tables(db_path)
    register_cli(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning("CSRF validation failed: %s", e.description)
        return jsonify({"success": False, "errors": [f"CSRF validation failed: {e.description}"]}), 400

    @app.errorhandler(400)
    def handle_bad_request(e):
        app.logger.warning("Bad request: %s", e)
        return jsonify({"success": False, "errors": ["Bad request - check request format and CSRF token"]}), 400

    return app


__all__ = ["create_app", "APP_HOST", "APP_PORT"]
