"""User login and registration."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reservation_backend.database import get_db
from reservation_backend.models import Role, User
from reservation_backend.passwords import compare_password, hash_password

# New accounts are given this role.
_REGISTRATION_ROLE = "admin"


class AuthError(Exception):
    """Raised when a login or registration is refused."""


@dataclass
class LoginData:
    """Credentials submitted to log in."""

    email: str = ""
    password: str = ""


@dataclass
class RegisterData:
    """Details submitted to create an account."""

    email: str = ""
    password: str = ""
    name: str = ""
    phone: str = ""


@contextmanager
def _session_scope(session: Session | None) -> Iterator[Session]:
    if session is not None:
        yield session
        return
    _, sessions = get_db()
    with sessions() as owned:
        yield owned


def login(data: LoginData, session: Session | None = None) -> User:
    """Return the user whose email and password match ``data``."""
    with _session_scope(session) as db:
        user = db.scalars(
            select(User).where(User.email == data.email, User.deleted_at.is_(None))
        ).first()
        if user is None:
            raise AuthError("user not found")
        if not compare_password(user.password, data.password):
            raise AuthError("incorrect password")
        return user


def register(data: RegisterData, session: Session | None = None) -> User:
    """Create a user from ``data`` with a hashed password and return it."""
    with _session_scope(session) as db:
        if user_exists(data.email, data.phone, db):
            raise AuthError("user already exists")

        try:
            hashed = hash_password(data.password)
        except ValueError as exc:
            raise AuthError(str(exc)) from exc

        role_filter = {"code": _REGISTRATION_ROLE, "deleted_at": None}
        role = db.scalars(select(Role).filter_by(**role_filter)).first()
        if role is None:
            raise AuthError("cannot get the user role")

        user = User(
            name=data.name,
            email=data.email,
            password=hashed,
            role_id=role.id,
            phone=data.phone,
        )
        try:
            db.add(user)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise AuthError("cannot create the user") from exc
        db.refresh(user)
        return user


def user_exists(email: str, phone: str, session: Session) -> bool:
    """Return True when a user has this email or phone.

    A lookup that fails is treated as a match, so registration is refused.
    """
    try:
        found = session.scalars(
            select(User).where(
                or_(User.email == email, User.phone == phone),
                User.deleted_at.is_(None),
            )
        ).first()
    except SQLAlchemyError:
        session.rollback()
        return True
    return found is not None