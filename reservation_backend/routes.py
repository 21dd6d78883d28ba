"""URL routing for the HTTP API."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request, Response

from reservation_backend.handlers import login_handler, profile_handler, register_handler
from reservation_backend.token_auth import paseto_middleware

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


def _endpoint(handler: Callable[[Request], Response]) -> WSGIApp:
    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        return handler(Request(environ))(environ, start_response)

    return app


def auth_routes() -> WSGIApp:
    """Return the application serving login, registration and the profile."""
    url_map = Map(
        [
            Rule("/api/login", methods=["POST"], endpoint=_endpoint(login_handler)),
            Rule("/api/register", methods=["POST"], endpoint=_endpoint(register_handler)),
            Rule(
                "/api/profile",
                methods=["GET"],
                endpoint=paseto_middleware(_endpoint(profile_handler)),
            ),
        ]
    )

    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        adapter = url_map.bind_to_environ(environ)
        try:
            endpoint, _ = adapter.match()
        except HTTPException as exc:
            return exc(environ, start_response)
        return endpoint(environ, start_response)

    return app


def main_router() -> WSGIApp:
    """Return the top-level router, with the authentication routes at the root."""
    return auth_routes()