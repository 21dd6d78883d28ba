"""Middleware that requires a valid token and exposes the user it names."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request

from reservation_backend.responses import error
from reservation_backend.tokens import SymmetricKey, TokenError, verify_token

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]

USER_ENVIRON_KEY = "reservation_backend.user"
_BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class UserData:
    """The user identified by a verified token."""

    user_id: str
    email: str = ""
    name: str = ""


def extract_token(auth_header: str) -> str:
    """Return the token from an Authorization value, with or without "Bearer "."""
    if auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX):]
    if auth_header.strip():
        return auth_header
    return ""


def _string_claim(claims: Any, name: str) -> str:
    value = claims.get(name)
    return value if isinstance(value, str) else ""


def paseto_middleware(app: WSGIApp, key: SymmetricKey | None = None) -> WSGIApp:
    """Wrap ``app`` so it is reached only with a valid token naming a user.

    ``key`` defaults to the key loaded by init_paseto.
    """

    def middleware(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        request = Request(environ)

        def refuse(message: str) -> Iterable[bytes]:
            return error(request, HTTPStatus.UNAUTHORIZED, message)(environ, start_response)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            return refuse("No token provided")

        token_str = extract_token(auth_header)
        if not token_str:
            return refuse("Invalid token format")

        try:
            token = verify_token(token_str, key)
        except TokenError:
            return refuse("Invalid token")

        user_id = _string_claim(token.claims, "user_id")
        if not user_id:
            return refuse("Invalid token data")

        environ[USER_ENVIRON_KEY] = UserData(
            user_id=user_id,
            email=_string_claim(token.claims, "email"),
            name=_string_claim(token.claims, "name"),
        )
        return app(environ, start_response)

    return middleware


def get_user_data(environ: dict) -> UserData | None:
    """Return the authenticated user of a request, or None when there is none."""
    user = environ.get(USER_ENVIRON_KEY)
    if isinstance(user, UserData) and user.user_id:
        return user
    return None