"""Per-client request rate limiting middleware."""

from __future__ import annotations

import datetime
import ipaddress
import math
import threading
import time
from collections.abc import Callable, Iterable
from http import HTTPStatus
from typing import Any, Union

from werkzeug.wrappers import Request

from reservation_backend.responses import error

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]
Duration = Union[datetime.timedelta, int, float]

DEFAULT_MAX_VISITORS = 1000


def _normalise_ip(text: str) -> str | None:
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address):
        if address.scope_id:
            return None
        if address.ipv4_mapped is not None:
            return str(address.ipv4_mapped)
    return str(address)


def parse_x_forwarded_for(xff: str) -> list[str]:
    """Return the valid, normalised addresses listed in an X-Forwarded-For value."""
    found = (_normalise_ip(part.strip()) for part in xff.split(",") if part.strip())
    return [ip for ip in found if ip is not None]


def client_ip(environ: dict) -> str:
    """Return the client address, preferring proxy headers over the peer address."""
    forwarded = environ.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        ips = parse_x_forwarded_for(forwarded)
        if ips:
            return ips[0]

    real_ip = environ.get("HTTP_X_REAL_IP", "")
    if real_ip:
        normalised = _normalise_ip(real_ip)
        if normalised is not None:
            return normalised

    return environ.get("REMOTE_ADDR", "")


def _adding_headers(
    start_response: Callable[..., Any], extra: list[tuple[str, str]]
) -> Callable[..., Any]:
    def wrapped(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> Any:
        present = {name.lower() for name, _ in headers}
        merged = [(name, value) for name, value in extra if name.lower() not in present]
        merged.extend(headers)
        return start_response(status, merged, exc_info)

    return wrapped


class RateLimiter:
    """Allows each client ``limit`` requests per ``reset_time`` window.

    A background thread clears the counters at every window; when more than
    ``max_visitors`` clients are tracked they are forgotten altogether.
    """

    def __init__(
        self,
        limit: int,
        reset_time: Duration,
        max_visitors: int = DEFAULT_MAX_VISITORS,
    ) -> None:
        if isinstance(reset_time, datetime.timedelta):
            reset_time = reset_time.total_seconds()
        if reset_time <= 0:
            raise ValueError("reset_time must be positive")
        self.limit = limit
        self.reset_time = float(reset_time)
        self.max_visitors = max_visitors
        self._visitors: dict[str, int] = {}
        self._lock = threading.Lock()
        self._last_reset = time.time()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="rate-limiter-reset", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self.reset_time):
            self.reset()

    def reset(self) -> None:
        """Start a new window: zero every counter, or forget clients if too many."""
        with self._lock:
            if len(self._visitors) > self.max_visitors:
                self._visitors = {}
            else:
                self._visitors = dict.fromkeys(self._visitors, 0)
            self._last_reset = time.time()

    def stop(self) -> None:
        """Stop the background reset thread and wait for it to finish."""
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def throttle(self, app: WSGIApp) -> WSGIApp:
        """Wrap ``app`` so clients over the limit get 429 Too Many Requests."""

        def middleware(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            ip = client_ip(environ)
            with self._lock:
                count = self._visitors.get(ip, 0)
                next_reset = self._last_reset + self.reset_time
                headers = [
                    ("X-RateLimit-Limit", str(self.limit)),
                    ("X-RateLimit-Reset", str(math.floor(next_reset))),
                ]
                exceeded = count >= self.limit
                if exceeded:
                    headers.append(("X-RateLimit-Remaining", "0"))
                    headers.append(("Retry-After", f"{next_reset - time.time():.0f}"))
                else:
                    self._visitors[ip] = count + 1
                    headers.append(("X-RateLimit-Remaining", str(self.limit - count - 1)))

            if exceeded:
                response = error(
                    Request(environ), HTTPStatus.TOO_MANY_REQUESTS, "Rate limit exceeded"
                )
                for name, value in headers:
                    response.headers[name] = value
                return response(environ, start_response)

            return app(environ, _adding_headers(start_response, headers))

        return middleware