"""Leave router — working days, request lifecycle, approvals, balances.

All endpoints require authentication. Ownership and approver checks are
enforced by the service layer.
"""


import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.common.constants import UserRole
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db
from leaveflow.leave.schemas import (
    LeaveBalanceOut,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    PendingApprovalOut,
    WorkingDaysOut,
    WorkingDaysRequest,
)
from leaveflow.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /calculate-days ────────────────────────────────────────────

@router.post("/calculate-days", response_model=WorkingDaysOut)
async def calculate_days(
    body: WorkingDaysRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Preview chargeable working days for a range in an office calendar."""
    return await LeaveService.calculate_days(db, employee, body)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def create_request(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft leave request."""
    return await LeaveService.create_draft(db, employee.id, body)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, employee.id)


# ── PATCH /requests/{id} ────────────────────────────────────────────

@router.patch("/requests/{request_id}", response_model=LeaveRequestOut)
async def edit_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit a draft or returned request. Working days are recomputed."""
    return await LeaveService.edit(db, request_id, employee.id, body)


# ── POST /requests/{id}/submit ──────────────────────────────────────

@router.post("/requests/{request_id}/submit", response_model=LeaveRequestOut)
async def submit_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit into the approval workflow and reserve balance."""
    return await LeaveService.submit(db, request_id, employee.id)


# ── POST /requests/{id}/decide ──────────────────────────────────────

@router.post("/requests/{request_id}/decide", response_model=LeaveRequestOut)
async def decide_request(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approve, refuse or return the current stage. Delegates may act."""
    return await LeaveService.decide(
        db, request_id, employee.id, body.action, body.comment,
    )


# ── POST /requests/{id}/cancel ──────────────────────────────────────

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.cancel(db, request_id, employee.id)


# ── GET /approvals/pending ──────────────────────────────────────────

@router.get("/approvals/pending", response_model=list[PendingApprovalOut])
async def pending_approvals(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requests awaiting the caller, including those delegated to them."""
    return await LeaveService.get_pending_approvals(db, employee.id)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's balances for a given year."""
    target_year = year or datetime.now(timezone.utc).year
    return await LeaveService.get_balances(db, employee.id, target_year)


# ── GET /balances/{employee_id} (HR) ────────────────────────────────

@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def get_employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    employee: Employee = Depends(
        require_role(UserRole.hr_admin, UserRole.system_admin)
    ),
    db: AsyncSession = Depends(get_db),
):
    """HR view of any employee's balances."""
    target_year = year or datetime.now(timezone.utc).year
    return await LeaveService.get_balances(db, employee_id, target_year)
