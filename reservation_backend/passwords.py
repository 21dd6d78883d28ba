"""Password hashing with bcrypt."""

from __future__ import annotations

import bcrypt

DEFAULT_COST = 10
_MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with bcrypt at the default cost.

    Raises ValueError when the password is longer than bcrypt accepts.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > _MAX_PASSWORD_BYTES:
        raise ValueError(f"password length exceeds {_MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=DEFAULT_COST, prefix=b"2a")
    return bcrypt.hashpw(encoded, salt).decode("ascii")


def compare_password(hashed_password: str, password: str) -> bool:
    """Return True when the password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_MAX_PASSWORD_BYTES],
            hashed_password.encode("ascii"),
        )
    except ValueError:
        return False