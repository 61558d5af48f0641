"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest, ApprovalStep,
Delegation, WorkflowConfig, WorkflowStep."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import (
    HalfDay,
    LeaveStatus,
    StepAction,
    StepType,
    WorkflowMode,
)
from leaveflow.database import Base


# ═════════════════════════════════════════════════════════════════════
# Leave type & balance
# ═════════════════════════════════════════════════════════════════════


class LeaveType(Base):
    """Per-office leave category and its ledger policy."""

    __tablename__ = "leave_types"
    __table_args__ = (
        sa.UniqueConstraint("office_id", "code", name="uq_leave_type_office_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    office_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    deducts_from_balance: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )
    # Ledger key, e.g. "annual" or "offered"; None means no balance row
    balance_type: Mapped[Optional[str]] = mapped_column(sa.String(30))
    # Exceptional leave never touches the ledger regardless of the flags above
    is_balance_exempt: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )

    @property
    def affects_ledger(self) -> bool:
        return (
            self.deducts_from_balance
            and self.balance_type is not None
            and not self.is_balance_exempt
        )


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "year", "balance_type", name="uq_leave_balance"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    balance_type: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    total_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    carried_over_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    used_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    pending_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    # Bumped by every ledger UPDATE; the WHERE clause compares against it
    version: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=1, server_default=sa.text("1")
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    @property
    def remaining(self) -> Decimal:
        return (
            self.total_days + self.carried_over_days
            - self.used_days - self.pending_days
        )


# ═════════════════════════════════════════════════════════════════════
# Leave request & approval steps
# ═════════════════════════════════════════════════════════════════════


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    start_half_day: Mapped[HalfDay] = mapped_column(
        sa.Enum(HalfDay, name="half_day"), default=HalfDay.full_day, nullable=False
    )
    end_half_day: Mapped[HalfDay] = mapped_column(
        sa.Enum(HalfDay, name="half_day"), default=HalfDay.full_day, nullable=False
    )
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(6, 1), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        default=LeaveStatus.draft,
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    exceptional_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    attachment_urls: Mapped[list] = mapped_column(JSONB, default=list)
    is_company_closure: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    # True while total_days sits in pending_days (or has moved to used_days)
    # because of the current submission
    balance_reserved: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Stale writers fail their UPDATE with StaleDataError
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    employee: Mapped["leaveflow.core_hr.models.Employee"] = relationship(
        foreign_keys=[employee_id]
    )
    leave_type: Mapped[LeaveType] = relationship()
    steps: Mapped[list[ApprovalStep]] = relationship(
        back_populates="leave_request",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.step_order",
    )


class ApprovalStep(Base):
    __tablename__ = "approval_steps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_type: Mapped[StepType] = mapped_column(
        sa.Enum(StepType, name="step_type"), nullable=False
    )
    step_order: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    # Resolved approver the actor stood in for, when a delegate decided
    delegated_from_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    action: Mapped[Optional[StepAction]] = mapped_column(
        sa.Enum(StepAction, name="step_action")
    )
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    leave_request: Mapped[LeaveRequest] = relationship(back_populates="steps")

    @property
    def is_decided(self) -> bool:
        return self.action is not None


# ═════════════════════════════════════════════════════════════════════
# Delegation
# ═════════════════════════════════════════════════════════════════════


class Delegation(Base):
    """Time-boxed grant of one user's approval authority to another."""

    __tablename__ = "delegations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


# ═════════════════════════════════════════════════════════════════════
# Workflow templates
# ═════════════════════════════════════════════════════════════════════


class WorkflowConfig(Base):
    """Approval template scoped to a team, or to a whole office when team_id is NULL."""

    __tablename__ = "workflow_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    office_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("offices.id"), nullable=False
    )
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("teams.id")
    )
    mode: Mapped[WorkflowMode] = mapped_column(
        sa.Enum(WorkflowMode, name="workflow_mode"),
        default=WorkflowMode.sequential,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )

    steps: Mapped[list[WorkflowStep]] = relationship(
        back_populates="config",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.step_order",
    )


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    config_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("workflow_configs.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_order: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    step_type: Mapped[StepType] = mapped_column(
        sa.Enum(StepType, name="step_type"), nullable=False
    )
    is_required: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )

    config: Mapped[WorkflowConfig] = relationship(back_populates="steps")
