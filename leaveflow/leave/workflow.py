"""Workflow resolver — turns the applicable approval template into concrete steps."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.auth.models import RoleAssignment
from leaveflow.common.constants import StepType, UserRole, WorkflowMode
from leaveflow.core_hr.models import Employee, Team
from leaveflow.leave.models import WorkflowConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedStep:
    step_type: StepType
    step_order: int
    is_required: bool
    approver_id: uuid.UUID


@dataclass(frozen=True)
class ResolvedWorkflow:
    mode: WorkflowMode
    steps: tuple[ResolvedStep, ...]

    @property
    def has_manager_steps(self) -> bool:
        return any(s.step_type == StepType.manager for s in self.steps)

    @property
    def has_hr_steps(self) -> bool:
        return any(s.step_type == StepType.hr for s in self.steps)


EMPTY_WORKFLOW = ResolvedWorkflow(mode=WorkflowMode.sequential, steps=())


async def _find_config(
    db: AsyncSession, employee: Employee,
) -> Optional[WorkflowConfig]:
    base = (
        select(WorkflowConfig)
        .where(WorkflowConfig.is_active.is_(True))
        .options(selectinload(WorkflowConfig.steps))
    )
    if employee.team_id is not None:
        result = await db.execute(
            base.where(WorkflowConfig.team_id == employee.team_id)
        )
        config = result.scalars().first()
        if config is not None:
            return config

    result = await db.execute(
        base.where(
            WorkflowConfig.office_id == employee.office_id,
            WorkflowConfig.team_id.is_(None),
        )
    )
    return result.scalars().first()


async def _team_manager_id(
    db: AsyncSession, employee: Employee,
) -> Optional[uuid.UUID]:
    if employee.team_id is None:
        return None
    team = await db.get(Team, employee.team_id)
    return team.manager_id if team is not None else None


async def find_hr_approver_id(db: AsyncSession) -> Optional[uuid.UUID]:
    """Lowest-id active employee holding an active hr_admin assignment."""
    result = await db.execute(
        select(Employee.id)
        .join(RoleAssignment, RoleAssignment.employee_id == Employee.id)
        .where(
            RoleAssignment.role == UserRole.hr_admin,
            RoleAssignment.is_active.is_(True),
            Employee.is_active.is_(True),
        )
        .order_by(Employee.id)
        .limit(1)
    )
    return result.scalars().first()


async def resolve_workflow(
    db: AsyncSession, employee: Employee,
) -> ResolvedWorkflow:
    """Resolve the approval chain for ``employee``.

    Team-scoped config wins over office-scoped config; no config yields an
    empty chain. MANAGER steps go to the team manager and HR steps to the
    first HR holder; a step with nobody to assign is dropped.
    """
    config = await _find_config(db, employee)
    if config is None:
        return EMPTY_WORKFLOW

    manager_id = await _team_manager_id(db, employee)
    hr_id: Optional[uuid.UUID] = None
    if any(s.step_type == StepType.hr for s in config.steps):
        hr_id = await find_hr_approver_id(db)

    steps: list[ResolvedStep] = []
    for template in sorted(config.steps, key=lambda s: s.step_order):
        if template.step_type == StepType.manager:
            approver_id = manager_id
        else:
            approver_id = hr_id
            if approver_id is None:
                logger.warning(
                    "No active HR approver; dropping HR step %s for employee %s",
                    template.step_order, employee.id,
                )
        if approver_id is None:
            continue
        steps.append(
            ResolvedStep(
                step_type=template.step_type,
                step_order=template.step_order,
                is_required=template.is_required,
                approver_id=approver_id,
            )
        )

    return ResolvedWorkflow(mode=config.mode, steps=tuple(steps))
