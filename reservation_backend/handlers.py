"""Request handlers for login, registration and the user profile."""

from __future__ import annotations

import datetime
from http import HTTPStatus
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.wrappers import Request, Response

from reservation_backend.auth_service import (
    AuthError,
    LoginData,
    RegisterData,
    login,
    register,
)
from reservation_backend.database import DatabaseError
from reservation_backend.models import User
from reservation_backend.responses import error, success
from reservation_backend.token_auth import get_user_data
from reservation_backend.tokens import TokenError, sign_token

# A session stored in the WSGI environ under this key is used instead of the
# shared database connection.
SESSION_ENVIRON_KEY = "reservation_backend.session"

TOKEN_LIFETIME = datetime.timedelta(seconds=35)

_SERVICE_ERRORS = (AuthError, DatabaseError, SQLAlchemyError)


def _session(request: Request) -> Session | None:
    session = request.environ.get(SESSION_ENVIRON_KEY)
    return session if isinstance(session, Session) else None


def _form_value(request: Request, name: str) -> str:
    """Return the first value of a field, from the body first, then the query string."""
    if name in request.form:
        return request.form[name]
    return request.args.get(name, "")


def _user_payload(user: User) -> dict[str, Any]:
    return {
        "ID": user.id,
        "CreatedAt": user.created_at,
        "UpdatedAt": user.updated_at,
        "DeletedAt": user.deleted_at,
        "Name": user.name,
        "Password": user.password,
        "Phone": user.phone,
        "Email": user.email,
        "RoleID": user.role_id,
    }


def login_handler(request: Request) -> Response:
    """Check the submitted credentials and answer with a fresh token."""
    data = LoginData(
        email=_form_value(request, "email"),
        password=_form_value(request, "password"),
    )
    try:
        user = login(data, _session(request))
    except _SERVICE_ERRORS:
        return error(request, HTTPStatus.NOT_FOUND, "Login failed")

    claims = {"user_id": str(user.id), "email": user.email, "name": user.name}
    try:
        token = sign_token(claims, TOKEN_LIFETIME)
    except TokenError:
        return error(request, HTTPStatus.INTERNAL_SERVER_ERROR, "Cannot sign the token")

    return success(request, "Login successful", {"token": token, "user": user.name})


def register_handler(request: Request) -> Response:
    """Create an account from the submitted details."""
    data = RegisterData(
        email=_form_value(request, "email"),
        password=_form_value(request, "password"),
        name=_form_value(request, "name"),
        phone=_form_value(request, "phone"),
    )
    try:
        user = register(data, _session(request))
    except _SERVICE_ERRORS:
        return error(request, HTTPStatus.BAD_REQUEST, "Register failed")

    return success(request, "Register successful", {"user": _user_payload(user)})


def profile_handler(request: Request) -> Response:
    """Describe the user named by the request's verified token."""
    user = get_user_data(request.environ)
    if user is None:
        return error(request, HTTPStatus.UNAUTHORIZED, "Unauthorized")

    profile = {"user_id": user.user_id}
    if user.email:
        profile["email"] = user.email
    if user.name:
        profile["name"] = user.name
    return success(request, "Profile", profile)