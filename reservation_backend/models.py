"""Database models for users, staff, services and appointments."""

from __future__ import annotations

import datetime
from typing import Optional, TypeVar

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

_Q = TypeVar("_Q")


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Declarative base shared by every model."""


class _ModelMixin:
    """Identifier, timestamps and soft-delete marker common to all tables."""

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True), default=_now
    )
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )
    deleted_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True), index=True
    )


class Role(_ModelMixin, Base):
    """A role granted to users and employees."""

    __tablename__ = "roles"

    code: Mapped[str] = mapped_column(unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)


class User(_ModelMixin, Base):
    """A customer account."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(unique=True, nullable=False)
    email: Mapped[str] = mapped_column(unique=True, nullable=False)
    role_id: Mapped[Optional[int]] = mapped_column(ForeignKey("roles.id"))
    role: Mapped[Optional[Role]] = relationship()
    appointments: Mapped[list[Appointment]] = relationship(back_populates="user")


class Employee(_ModelMixin, Base):
    """A member of staff who attends appointments."""

    __tablename__ = "employees"

    name: Mapped[str] = mapped_column(unique=True, nullable=False)
    role_id: Mapped[Optional[int]] = mapped_column(ForeignKey("roles.id"))
    role: Mapped[Optional[Role]] = relationship()
    status: Mapped[bool] = mapped_column(default=True)
    appointments: Mapped[list[Appointment]] = relationship(back_populates="employee")


class Service(_ModelMixin, Base):
    """A service that can be booked."""

    __tablename__ = "services"

    code: Mapped[str] = mapped_column(unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    estimated_time: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[bool] = mapped_column(default=True)
    appointment_services: Mapped[list[AppointmentService]] = relationship(
        back_populates="service"
    )


class Day(_ModelMixin, Base):
    """A working day with its opening and closing time."""

    __tablename__ = "days"

    code: Mapped[str] = mapped_column(unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    start_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[bool] = mapped_column(default=True)
    appointments: Mapped[list[Appointment]] = relationship(back_populates="day")


class Appointment(_ModelMixin, Base):
    """A booking of a user with an employee on a day."""

    __tablename__ = "appointments"

    start_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    day_id: Mapped[Optional[int]] = mapped_column(ForeignKey("days.id"))
    day: Mapped[Optional[Day]] = relationship(back_populates="appointments")
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    user: Mapped[Optional[User]] = relationship(back_populates="appointments")
    employee_id: Mapped[Optional[int]] = mapped_column(ForeignKey("employees.id"))
    employee: Mapped[Optional[Employee]] = relationship(back_populates="appointments")
    appointment_services: Mapped[list[AppointmentService]] = relationship(
        back_populates="appointment"
    )


class AppointmentService(_ModelMixin, Base):
    """A service included in an appointment."""

    __tablename__ = "appointment_services"

    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey("services.id"))
    service: Mapped[Optional[Service]] = relationship(back_populates="appointment_services")
    appointment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("appointments.id"))
    appointment: Mapped[Optional[Appointment]] = relationship(
        back_populates="appointment_services"
    )


def active_employees(query: _Q) -> _Q:
    """Restrict a select or query to employees whose status is active."""
    return query.where(Employee.status.is_(True))  # type: ignore[attr-defined]


def active_services(query: _Q) -> _Q:
    """Restrict a select or query to services whose status is active."""
    return query.where(Service.status.is_(True))  # type: ignore[attr-defined]