"""Command that connects to the database and optionally runs migrations."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv

from reservation_backend.database import DatabaseError, close_db, get_db, run_migrations

_log = logging.getLogger(__name__)


def _fatal(message: str) -> NoReturn:
    _log.critical(message)
    raise SystemExit(1)


def _load_env() -> None:
    path = Path(".env")
    if not path.is_file():
        _log.warning("could not load the .env file: %s not found", path.resolve())
        return
    load_dotenv(path)


def main(argv: Sequence[str] | None = None) -> None:
    """Connect to the database and, with --migrate, create the schema."""
    parser = argparse.ArgumentParser(
        prog="reservation-migrate", description="Manage the reservation database schema."
    )
    parser.add_argument(
        "-migrate", "--migrate", action="store_true", help="run the migrations"
    )
    args = parser.parse_args(argv)

    _load_env()
    try:
        engine, _ = get_db()
    except DatabaseError as exc:
        _fatal(f"cannot initialise the database: {exc}")

    try:
        if args.migrate:
            try:
                run_migrations(engine)
            except DatabaseError as exc:
                _fatal(f"cannot run the migrations: {exc}")
            _log.info("Migrations completed successfully")
    finally:
        close_db()


if __name__ == "__main__":
    main()