"""Database connection singleton and schema migrations."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reservation_backend.models import Base

_log = logging.getLogger(__name__)

_MAX_OPEN_CONNECTIONS = 25
_CONNECTION_LIFETIME_SECONDS = 5 * 60
_CONNECT_TIMEOUT_SECONDS = 5


class DatabaseError(Exception):
    """Raised when the database cannot be opened, reached or migrated."""


def connection_url(env: Mapping[str, str] | None = None) -> URL:
    """Build the PostgreSQL URL from the DB_* settings in ``env`` (default: os.environ)."""
    env = os.environ if env is None else env
    port_text = env.get("DB_PORT", "")
    try:
        port = int(port_text) if port_text else None
    except ValueError as exc:
        raise DatabaseError(f"invalid database port: {port_text!r}") from exc
    return URL.create(
        "postgresql",
        username=env.get("DB_USER") or None,
        password=env.get("DB_PASSWORD") or None,
        host=env.get("DB_HOST") or None,
        port=port,
        database=env.get("DB_NAME") or None,
        query={"sslmode": "disable"},
    )


def _connect(url: URL | str) -> tuple[Engine, sessionmaker[Session]]:
    options: dict = {
        "pool_size": _MAX_OPEN_CONNECTIONS,
        "max_overflow": 0,
        "pool_recycle": _CONNECTION_LIFETIME_SECONDS,
    }
    try:
        if make_url(url).get_backend_name() == "postgresql":
            options["connect_args"] = {"connect_timeout": _CONNECT_TIMEOUT_SECONDS}
        engine = create_engine(url, **options)
    except (SQLAlchemyError, ImportError, TypeError, ValueError) as exc:
        raise DatabaseError(f"cannot initialise the database handler: {exc}") from exc

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseError(f"cannot connect to the database: {exc}") from exc

    print("Connected to the database")
    return engine, sessionmaker(bind=engine)


class _Database:
    """Opens the connection once and hands out the same engine afterwards."""

    def __init__(self, url: URL | str | None = None) -> None:
        self._url = url
        self._lock = threading.Lock()
        self._attempted = False
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None
        self._error: DatabaseError | None = None

    def get(self) -> tuple[Engine, sessionmaker[Session]]:
        with self._lock:
            if not self._attempted:
                self._attempted = True
                try:
                    url = self._url if self._url is not None else connection_url()
                    self._engine, self._sessions = _connect(url)
                except DatabaseError as exc:
                    self._error = exc
        if self._error is not None:
            raise self._error
        assert self._engine is not None and self._sessions is not None
        return self._engine, self._sessions

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


_default = _Database()


def get_db() -> tuple[Engine, sessionmaker[Session]]:
    """Return the shared engine and session factory, connecting on first use.

    A failure on first use is remembered and raised again on every call.
    """
    return _default.get()


def close_db() -> None:
    """Release the pooled connections; call when the application stops."""
    _default.close()


def run_migrations(engine: Engine) -> None:
    """Create every model's table that does not exist yet."""
    _log.info("Running migrations...")
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"cannot run the migrations: {exc}") from exc
    _log.info("Migrations completed successfully")