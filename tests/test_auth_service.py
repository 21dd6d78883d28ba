import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from reservation_backend.auth_service import (
    AuthError,
    LoginData,
    RegisterData,
    login,
    register,
    user_exists,
)
from reservation_backend.models import Base, Role
from reservation_backend.passwords import compare_password


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as db:
        yield db
    engine.dispose()


@pytest.fixture
def admin_role(session):
    role = Role(code="admin", description="Administrator")
    session.add(role)
    session.commit()
    return role


def _register_data(email="ana@example.com", phone="ext-1"):
    password = "password"
    return RegisterData(email=email, password=password, name="Ana", phone=phone)


def test_register_creates_user_with_hashed_password(session, admin_role):
    user = register(_register_data(), session)
    assert user.id >= 1
    assert user.role_id == admin_role.id
    assert user.name == "Ana"
    assert user.password != "password"
    assert compare_password(user.password, "password") is True


def test_register_rejects_duplicate_email(session, admin_role):
    register(_register_data(), session)
    with pytest.raises(AuthError):
        register(_register_data(phone="ext-2"), session)


def test_register_rejects_duplicate_phone(session, admin_role):
    register(_register_data(), session)
    with pytest.raises(AuthError):
        register(_register_data(email="eva@example.com"), session)


def test_register_requires_role(session):
    with pytest.raises(AuthError):
        register(_register_data(), session)


def test_login_returns_registered_user(session, admin_role):
    created = register(_register_data(), session)
    password = "password"
    user = login(LoginData(email="ana@example.com", password=password), session)
    assert user.id == created.id
    assert user.email == "ana@example.com"


def test_login_unknown_email(session, admin_role):
    password = "password"
    with pytest.raises(AuthError):
        login(LoginData(email="nobody@example.com", password=password), session)


def test_login_wrong_password(session, admin_role):
    register(_register_data(), session)
    password = "secret"
    with pytest.raises(AuthError):
        login(LoginData(email="ana@example.com", password=password), session)


def test_login_ignores_deleted_user(session, admin_role):
    user = register(_register_data(), session)
    user.deleted_at = datetime.datetime.now(datetime.timezone.utc)
    session.commit()
    password = "password"
    with pytest.raises(AuthError):
        login(LoginData(email="ana@example.com", password=password), session)


def test_user_exists_by_email_or_phone(session, admin_role):
    assert user_exists("ana@example.com", "ext-1", session) is False
    register(_register_data(), session)
    assert user_exists("ana@example.com", "ext-9", session) is True
    assert user_exists("eva@example.com", "ext-1", session) is True
    assert user_exists("eva@example.com", "ext-9", session) is False


def test_user_exists_when_lookup_fails():
    engine = create_engine("sqlite://")
    with Session(engine) as db:
        assert user_exists("ana@example.com", "ext-1", db) is True
    engine.dispose()