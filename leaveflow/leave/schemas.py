"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.common.constants import (
    HalfDay,
    LeaveStatus,
    StepAction,
    StepType,
)


# ═════════════════════════════════════════════════════════════════════
# Working days
# ═════════════════════════════════════════════════════════════════════


class WorkingDaysRequest(BaseModel):
    """Preview the chargeable days of a date range."""

    start_date: date
    end_date: date
    start_half_day: HalfDay = HalfDay.full_day
    end_half_day: HalfDay = HalfDay.full_day
    office_id: Optional[uuid.UUID] = Field(
        None, description="Defaults to the caller's office",
    )


class WorkingDaysOut(BaseModel):
    office_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal


# ═════════════════════════════════════════════════════════════════════
# Leave Request — write
# ═════════════════════════════════════════════════════════════════════


class _LeaveRequestFields(BaseModel):
    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    start_half_day: HalfDay = HalfDay.full_day
    end_half_day: HalfDay = HalfDay.full_day
    reason: Optional[str] = Field(None, max_length=1000)
    exceptional_reason: Optional[str] = Field(None, max_length=1000)
    attachment_urls: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        if (self.end_date - self.start_date).days > 365:
            raise ValueError("Leave request cannot span more than 365 days.")
        return self


class LeaveRequestCreate(_LeaveRequestFields):
    """Payload for creating a draft leave request."""


class LeaveRequestUpdate(_LeaveRequestFields):
    """Full replacement of a DRAFT or RETURNED request's editable fields."""


class LeaveDecisionRequest(BaseModel):
    action: StepAction
    comment: Optional[str] = Field(None, max_length=2000)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — read
# ═════════════════════════════════════════════════════════════════════


class ApprovalStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    step_type: StepType
    step_order: int
    approver_id: uuid.UUID
    delegated_from_id: Optional[uuid.UUID] = None
    action: Optional[StepAction] = None
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None


class LeaveRequestOut(BaseModel):
    """Leave request with its approval steps in step order."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    start_half_day: HalfDay
    end_half_day: HalfDay
    total_days: Decimal
    status: LeaveStatus
    reason: Optional[str] = None
    exceptional_reason: Optional[str] = None
    attachment_urls: list[str] = Field(default_factory=list)
    is_company_closure: bool = False
    balance_reserved: bool = False
    version: int
    submitted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    steps: list[ApprovalStepOut] = Field(default_factory=list)


class PendingApprovalOut(BaseModel):
    """A request awaiting the caller, directly or through a delegation."""

    request: LeaveRequestOut
    step_id: uuid.UUID
    step_type: StepType
    on_behalf_of_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance row with the derived remaining figure."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    year: int
    balance_type: str
    total_days: Decimal
    carried_over_days: Decimal
    used_days: Decimal
    pending_days: Decimal
    remaining: Decimal
