"""Flask extensions: the SQLite scheduling store, CSRF protection and the rate limiter."""

from __future__ import annotations

import sqlite3
from typing import Mapping

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf import CSRFProtect
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker


def connection_pragmas(config: Mapping[str, object]) -> list[str]:
    """PRAGMA statements run on every new SQLite connection."""

    return [
        "PRAGMA journal_mode=WAL",
        f"PRAGMA busy_timeout={int(config.get('SQLITE_BUSY_TIMEOUT_MS', 5000))}",
        # Slot references and ON DELETE SET NULL need this per connection.
        "PRAGMA foreign_keys=ON",
    ]


class SchedulingStore:
    """Engine, scoped ORM sessions and raw ``sqlite3.Row`` connections for one app."""

    def __init__(self) -> None:
        self._engine: Engine | None = None
        self._scoped: scoped_session | None = None

    def init_app(self, app: Flask) -> None:
        engine = create_engine(
            app.config["SQLALCHEMY_DATABASE_URI"],
            **app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {}),
        )
        pragmas = connection_pragmas(app.config)

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[override]
            for statement in pragmas:
                dbapi_connection.execute(statement)

        self._engine = engine
        self._scoped = scoped_session(sessionmaker(bind=engine, autoflush=False))
        app.extensions["scheduling_store"] = self
        app.teardown_appcontext(self._close_session)

    def _close_session(self, exception: BaseException | None) -> None:
        if self._scoped is not None:
            self._scoped.remove()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Scheduling store used before init_app()")
        return self._engine

    def session(self) -> Session:
        if self._scoped is None:
            raise RuntimeError("Scheduling store used before init_app()")
        return self._scoped()

    def raw_connection(self) -> sqlite3.Connection:
        """Pooled DB-API connection whose rows support access by column name."""

        pooled = self.engine.raw_connection()
        pooled.driver_connection.row_factory = sqlite3.Row
        return pooled  # type: ignore[return-value]


db = SchedulingStore()
csrf = CSRFProtect()
# Storage comes from RATELIMIT_STORAGE_URI in app.config.
limiter = Limiter(get_remote_address)


def init_extensions(app: Flask) -> None:
    for extension in (db, csrf, limiter):
        extension.init_app(app)
