"""Core HR ORM models: Office, Team, Employee, PublicHoliday.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
These tables are the organisational directory and holiday calendar the
leave engine reads; it never writes to them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.auth.models import RoleAssignment


def _default_working_days() -> list[str]:
    return ["MON", "TUE", "WED", "THU", "FRI"]


# ═════════════════════════════════════════════════════════════════════
# Office
# ═════════════════════════════════════════════════════════════════════


class Office(Base):
    """Office / work-site. Owns the working-week definition and holidays."""

    __tablename__ = "offices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    country: Mapped[Optional[str]] = mapped_column(sa.String(100))
    city: Mapped[Optional[str]] = mapped_column(sa.String(100))
    # Weekday codes MON … SUN
    working_days: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=_default_working_days,
    )
    # Leave requests are refused until this many months after hire_date
    probation_months: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=3, server_default=sa.text("3"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    teams: Mapped[list[Team]] = relationship(back_populates="office")
    holidays: Mapped[list[PublicHoliday]] = relationship(back_populates="office")

    def __repr__(self) -> str:
        return f"<Office {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Team
# ═════════════════════════════════════════════════════════════════════


class Team(Base):
    """Group of employees sharing a manager."""

    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    office_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False,
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_team_manager"),
    )

    # ── Relationships ───────────────────────────────────────────────
    office: Mapped[Office] = relationship(back_populates="teams")
    manager: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[manager_id],
    )
    members: Mapped[list[Employee]] = relationship(
        back_populates="team", foreign_keys="Employee.team_id",
    )

    def __repr__(self) -> str:
        return f"<Team {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee record — owner of leave requests and balances, and an approver."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)

    # ── Org placement ───────────────────────────────────────────────
    office_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False,
    )
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("teams.id"),
    )

    hire_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    office: Mapped[Office] = relationship(foreign_keys=[office_id])
    team: Mapped[Optional[Team]] = relationship(
        back_populates="members", foreign_keys=[team_id],
    )
    role_assignments: Mapped[list[RoleAssignment]] = relationship(
        back_populates="employee",
        foreign_keys="RoleAssignment.employee_id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Employee {self.email!r}>"


# ═════════════════════════════════════════════════════════════════════
# Public holidays
# ═════════════════════════════════════════════════════════════════════


class PublicHoliday(Base):
    """Non-working date for one office."""

    __tablename__ = "public_holidays"
    __table_args__ = (
        sa.UniqueConstraint("office_id", "date", name="uq_holiday_office_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    office_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False,
    )
    holiday_date: Mapped[date] = mapped_column("date", sa.Date, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)

    office: Mapped[Office] = relationship(back_populates="holidays")
