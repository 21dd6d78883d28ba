"""Cross-origin resource sharing middleware."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

from reservation_backend.responses import error

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]

ALLOWED_ORIGINS: tuple[str, ...] = ("http://localhost:3000",)

_CORS_HEADERS: tuple[tuple[str, str], ...] = (
    ("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS"),
    ("Access-Control-Allow-Headers", "Content-Type, Authorization"),
    ("Access-Control-Allow-Credentials", "true"),
)


def is_allowed_origin(origin: str) -> bool:
    """Return True when requests from ``origin`` are accepted."""
    return origin in ALLOWED_ORIGINS


def _adding_headers(
    start_response: Callable[..., Any], extra: list[tuple[str, str]]
) -> Callable[..., Any]:
    def wrapped(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> Any:
        present = {name.lower() for name, _ in headers}
        merged = [(name, value) for name, value in extra if name.lower() not in present]
        merged.extend(headers)
        return start_response(status, merged, exc_info)

    return wrapped


def cors(app: WSGIApp) -> WSGIApp:
    """Wrap ``app`` so only allowed origins reach it, with CORS headers added.

    Requests from other origins get 403; preflight OPTIONS requests are
    answered here with the CORS headers and never reach ``app``.
    """

    def middleware(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        request = Request(environ)
        origin = request.headers.get("Origin", "")
        if not is_allowed_origin(origin):
            response = error(request, HTTPStatus.FORBIDDEN, "Forbidden")
            return response(environ, start_response)

        headers = [("Access-Control-Allow-Origin", origin), *_CORS_HEADERS]
        if request.method == "OPTIONS":
            preflight = Response(status=HTTPStatus.OK)
            for name, value in headers:
                preflight.headers[name] = value
            return preflight(environ, start_response)

        return app(environ, _adding_headers(start_response, headers))

    return middleware