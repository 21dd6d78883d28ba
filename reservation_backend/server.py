"""Command that runs the HTTP API server."""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import signal
import socket
import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, NoReturn

from dotenv import load_dotenv
from werkzeug.serving import make_server

from reservation_backend.cors import cors
from reservation_backend.database import DatabaseError, close_db, get_db
from reservation_backend.logger import LoggerConfig, RotationConfig, init_logger
from reservation_backend.rate_limiter import RateLimiter
from reservation_backend.routes import main_router
from reservation_backend.tokens import init_paseto

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]

_log = logging.getLogger(__name__)

REQUESTS_PER_WINDOW = 15
RATE_WINDOW = datetime.timedelta(seconds=120)
SHUTDOWN_TIMEOUT_SECONDS = 30.0
_ALL_INTERFACES = "0.0.0.0"
_DEFAULT_HTTP_PORT = 80


def _fatal(message: str) -> NoReturn:
    _log.critical(message)
    raise SystemExit(1)


def _load_env() -> None:
    path = Path(".env")
    if not path.is_file():
        _log.warning("could not load the .env file: %s not found", path.resolve())
        return
    load_dotenv(path)


def _listen_address(addr: str) -> tuple[str, int]:
    """Split a "host:port" address; an empty host means every interface."""
    if not addr:
        return _ALL_INTERFACES, _DEFAULT_HTTP_PORT
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    host = host.strip("[]") or _ALL_INTERFACES
    port = int(port_text) if port_text.isdigit() else socket.getservbyname(port_text, "tcp")
    return host, port


def build_app(rate_limiter: RateLimiter) -> WSGIApp:
    """Wrap the router: CORS first, then rate limiting, then the routes."""
    return cors(rate_limiter.throttle(main_router()))


def _serve() -> None:
    init_paseto()
    init_logger(
        LoggerConfig(
            environment=os.environ.get("APP_ENV", ""),
            level=os.environ.get("LOG_LEVEL", ""),
            rotation=RotationConfig(
                filename=os.environ.get("LOG_FILE", ""),
                max_size=10,
                max_backups=3,
                max_age=30,
                compress=True,
            ),
        )
    )

    port = os.environ.get("PORT", "")
    limiter = RateLimiter(REQUESTS_PER_WINDOW, RATE_WINDOW)
    try:
        try:
            host, port_number = _listen_address(port)
            server = make_server(host, port_number, build_app(limiter), threaded=True)
        except (ValueError, OSError) as exc:
            _fatal(f"cannot start the server: {exc}")

        stop_requested = threading.Event()
        previous = {
            sig: signal.signal(sig, lambda *_: stop_requested.set())
            for sig in (signal.SIGINT, signal.SIGTERM)
        }
        worker = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
        print(f"Server running on port {port}")
        worker.start()
        try:
            while not stop_requested.wait(1.0):
                pass
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        _log.info("Shutting down server...")
        server.shutdown()
        worker.join(SHUTDOWN_TIMEOUT_SECONDS)
        server.server_close()
        _log.info("Server closed successfully")
    finally:
        limiter.stop()


def main(argv: Sequence[str] | None = None) -> None:
    """Run the API server until SIGINT or SIGTERM."""
    parser = argparse.ArgumentParser(
        prog="reservation-server", description="Run the reservation HTTP API server."
    )
    parser.parse_args(argv)

    _load_env()
    try:
        get_db()
    except DatabaseError as exc:
        _fatal(f"cannot initialise the database: {exc}")

    try:
        _serve()
    finally:
        close_db()


if __name__ == "__main__":
    main()