"""Leave service layer — request lifecycle, multi-step approvals, balance ledger.

Business logic:
  - Draft creation and editing with server-side working-day computation
  - Submission: workflow resolution, step creation, balance reservation
  - Manager/HR decisions with delegation-aware approver matching
  - Cancellation with reservation release
  - Pending-approval and balance views

Every transition validates before it writes and only flushes; the caller's
unit of work (``get_db``) commits or rolls back as a whole. Transitions of
one request are serialised by an in-process lock, a row lock, and the
request's version column.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from leaveflow.auth.models import RoleAssignment
from leaveflow.common.constants import (
    LEAVE_REQUEST_ENTITY,
    NON_BLOCKING_STATUSES,
    LeaveOperation,
    LeaveStatus,
    StepAction,
    StepType,
    UserRole,
)
from leaveflow.common.exceptions import (
    CommentRequiredException,
    ConcurrentModificationException,
    ForbiddenException,
    NotAuthorizedApproverException,
    NotFoundException,
    ValidationException,
)
from leaveflow.common.locks import request_locks
from leaveflow.common.triggers import AuditEvent, TriggerBus, get_trigger_bus
from leaveflow.core_hr.models import Employee, Office
from leaveflow.leave import state_machine
from leaveflow.leave.delegation import can_decide, resolve_acting_identities
from leaveflow.leave.ledger import BalanceLedger, ledger as default_ledger, ledger_applies
from leaveflow.leave.models import ApprovalStep, LeaveBalance, LeaveRequest, LeaveType
from leaveflow.leave.schemas import (
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    PendingApprovalOut,
    WorkingDaysOut,
    WorkingDaysRequest,
)
from leaveflow.leave.working_days import compute_working_days
from leaveflow.leave.workflow import resolve_workflow
from leaveflow.notifications.service import (
    leave_request_approved,
    leave_request_pending,
    leave_request_refused,
    leave_request_returned,
)

logger = logging.getLogger(__name__)

_PENDING_STATUSES = (LeaveStatus.pending_manager, LeaveStatus.pending_hr)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: drafts, submit, decide, cancel, edit, views."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _now(now: Optional[datetime]) -> datetime:
        return now or datetime.now(timezone.utc)

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = True,
    ) -> LeaveRequest:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.steps),
                selectinload(LeaveRequest.leave_type),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update(of=LeaveRequest)
        result = await db.execute(query)
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _load_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            select(Employee).where(
                Employee.id == employee_id, Employee.is_active.is_(True),
            )
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def _load_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        office_id: uuid.UUID,
    ) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None or not leave_type.is_active:
            raise NotFoundException("LeaveType", str(leave_type_id))
        if leave_type.office_id != office_id:
            raise ValidationException(
                {"leave_type_id": [
                    f"{leave_type.name} is not available in your office."
                ]}
            )
        return leave_type

    @staticmethod
    def _probation_end(hire_date: date, months: int) -> date:
        """hire_date shifted by ``months``, clamped to the target month's last day."""
        from calendar import monthrange

        month_index = hire_date.month - 1 + months
        year, month = hire_date.year + month_index // 12, month_index % 12 + 1
        _, last_day = monthrange(year, month)
        return date(year, month, min(hire_date.day, last_day))

    @staticmethod
    async def _check_probation(
        db: AsyncSession,
        employee: Employee,
        today: date,
    ) -> None:
        if employee.hire_date is None:
            return
        office = await db.get(Office, employee.office_id)
        if office is None or not office.probation_months:
            return
        probation_end = LeaveService._probation_end(
            employee.hire_date, office.probation_months,
        )
        if today < probation_end:
            raise ForbiddenException(
                "Leave requests are not possible during the probation period "
                f"(ends {probation_end.isoformat()})."
            )

    @staticmethod
    def _ensure_owner(leave_req: LeaveRequest, actor_id: uuid.UUID) -> None:
        if leave_req.employee_id != actor_id:
            raise ForbiddenException(
                "Only the owner of a leave request may perform this action."
            )

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date,
        end_date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.not_in(list(NON_BLOCKING_STATUSES)),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a leave request overlapping with these dates."
                ]}
            )

    @staticmethod
    async def _is_hr(db: AsyncSession, employee_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(RoleAssignment.id).where(
                RoleAssignment.employee_id == employee_id,
                RoleAssignment.role.in_([UserRole.hr_admin, UserRole.system_admin]),
                RoleAssignment.is_active.is_(True),
            )
        )
        return result.first() is not None

    @staticmethod
    async def _flush(db: AsyncSession, leave_req: LeaveRequest) -> None:
        """Flush, mapping a lost version race to ConcurrentModificationException."""
        try:
            await db.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationException(
                "LeaveRequest", leave_req.id,
            ) from exc

    @staticmethod
    def _build_request_response(leave_req: LeaveRequest) -> LeaveRequestOut:
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Working days
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def calculate_days(
        db: AsyncSession,
        actor: Employee,
        data: WorkingDaysRequest,
    ) -> WorkingDaysOut:
        office_id = data.office_id or actor.office_id
        total = await compute_working_days(
            db, office_id, data.start_date, data.end_date,
            data.start_half_day, data.end_half_day,
        )
        return WorkingDaysOut(
            office_id=office_id,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total,
        )

    # ─────────────────────────────────────────────────────────────────
    # Create draft
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_draft(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        triggers: Optional[TriggerBus] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Create a DRAFT request with its working days computed for the owner's office."""
        employee = await LeaveService._load_employee(db, actor_id)
        await LeaveService._check_probation(db, employee, LeaveService._now(now).date())
        leave_type = await LeaveService._load_leave_type(
            db, data.leave_type_id, employee.office_id,
        )
        total_days = await compute_working_days(
            db, employee.office_id, data.start_date, data.end_date,
            data.start_half_day, data.end_half_day,
        )
        await LeaveService._check_overlap(
            db, actor_id, data.start_date, data.end_date,
        )

        leave_req = LeaveRequest(
            employee_id=actor_id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_half_day=data.start_half_day,
            end_half_day=data.end_half_day,
            total_days=total_days,
            status=LeaveStatus.draft,
            reason=data.reason,
            exceptional_reason=data.exceptional_reason,
            attachment_urls=list(data.attachment_urls),
            is_company_closure=False,
            balance_reserved=False,
            steps=[],
        )
        db.add(leave_req)
        await db.flush()

        bus = triggers or get_trigger_bus()
        await bus.audit(db, AuditEvent(
            action="CREATE_LEAVE",
            entity_type=LEAVE_REQUEST_ENTITY,
            entity_id=leave_req.id,
            actor_id=actor_id,
            new_values={
                "leave_type": leave_type.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": str(total_days),
                "status": LeaveStatus.draft.value,
            },
        ))

        logger.info("Leave request %s drafted by %s", leave_req.id, actor_id)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        triggers: Optional[TriggerBus] = None,
        ledger: Optional[BalanceLedger] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Submit a DRAFT or RETURNED request into its approval workflow.

        Replaces any previous steps with freshly resolved ones and reserves
        the request's days as pending when its leave type deducts. With no
        resolved steps the request is approved at once and the days go
        straight to used.
        """
        now = LeaveService._now(now)
        ledger = ledger or default_ledger

        async with request_locks.hold(request_id):
            leave_req = await LeaveService._load_request(db, request_id)
            LeaveService._ensure_owner(leave_req, actor_id)
            state_machine.ensure_transition(leave_req.status, LeaveOperation.submit)

            employee = await LeaveService._load_employee(db, leave_req.employee_id)
            await LeaveService._check_probation(db, employee, now.date())
            leave_type = leave_req.leave_type
            if not leave_type.is_active:
                raise ValidationException(
                    {"leave_type_id": [f"{leave_type.name} is no longer active."]}
                )
            await LeaveService._check_overlap(
                db, leave_req.employee_id, leave_req.start_date, leave_req.end_date,
                exclude_id=leave_req.id,
            )

            workflow = await resolve_workflow(db, employee)
            target = state_machine.validate_target(
                leave_req.status,
                LeaveOperation.submit,
                state_machine.initial_pending_status(
                    workflow.has_manager_steps, workflow.has_hr_steps,
                ),
            )

            # ── Ledger ──────────────────────────────────────────────
            reserves = leave_type.affects_ledger and not leave_req.balance_reserved
            if reserves:
                year = leave_req.start_date.year
                if target == LeaveStatus.approved:
                    await ledger.consume(
                        db, leave_req.employee_id, year,
                        leave_type.balance_type, leave_req.total_days,
                    )
                else:
                    await ledger.reserve(
                        db, leave_req.employee_id, year,
                        leave_type.balance_type, leave_req.total_days,
                    )

            # ── Replace steps, move status ──────────────────────────
            old_status = leave_req.status
            leave_req.steps = [
                ApprovalStep(
                    step_type=step.step_type,
                    step_order=step.step_order,
                    approver_id=step.approver_id,
                )
                for step in workflow.steps
            ]
            leave_req.status = target
            leave_req.balance_reserved = leave_req.balance_reserved or reserves
            leave_req.submitted_at = now
            leave_req.updated_at = now
            await LeaveService._flush(db, leave_req)

            # ── Triggers ────────────────────────────────────────────
            bus = triggers or get_trigger_bus()
            await bus.audit(db, AuditEvent(
                action="LEAVE_SUBMITTED",
                entity_type=LEAVE_REQUEST_ENTITY,
                entity_id=leave_req.id,
                actor_id=actor_id,
                old_values={"status": old_status.value},
                new_values={
                    "status": target.value,
                    "total_days": str(leave_req.total_days),
                    "steps": len(workflow.steps),
                    "workflow_mode": workflow.mode.value,
                },
            ))
            if target == LeaveStatus.approved:
                await bus.notify(db, leave_request_approved(leave_req))
            else:
                stage = state_machine.stage_step_type(target)
                await bus.notify(db, leave_request_pending(
                    leave_req,
                    [s.approver_id for s in workflow.steps if s.step_type == stage],
                ))

            logger.info(
                "Leave request %s submitted: %s → %s (%s steps)",
                leave_req.id, old_status.value, target.value, len(workflow.steps),
            )
            return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Decide (manager / HR)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: StepAction,
        comment: Optional[str] = None,
        *,
        triggers: Optional[TriggerBus] = None,
        ledger: Optional[BalanceLedger] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Record one approver's decision on the request's current stage.

        The actor decides the lowest-order undecided step of the stage that
        is assigned to them or to someone who delegated to them. Approval
        waits for undecided peers of the same stage, then moves to HR or to
        APPROVED. Refusal and return end the stage at once and need a comment.
        """
        now = LeaveService._now(now)
        ledger = ledger or default_ledger

        async with request_locks.hold(request_id):
            leave_req = await LeaveService._load_request(db, request_id)
            current = leave_req.status
            operation = state_machine.decide_operation(current)
            state_machine.ensure_transition(current, operation)

            if action in (StepAction.refused, StepAction.returned):
                if not comment or not comment.strip():
                    raise CommentRequiredException(action.value)

            identities = await resolve_acting_identities(db, actor_id, now)
            stage = state_machine.stage_step_type(current)
            ordered = sorted(leave_req.steps, key=lambda s: s.step_order)
            candidates = [
                s for s in ordered
                if s.step_type == stage and can_decide(s, identities)
            ]
            if not candidates:
                raise NotAuthorizedApproverException(leave_req.id)
            step = candidates[0]

            others = [s for s in ordered if s is not step and not s.is_decided]
            target = state_machine.validate_target(
                current,
                operation,
                state_machine.next_status_after_decision(
                    stage,
                    action,
                    undecided_same_stage=sum(1 for s in others if s.step_type == stage),
                    undecided_hr=sum(1 for s in others if s.step_type == StepType.hr),
                ),
            )

            # ── Ledger ──────────────────────────────────────────────
            leave_type = leave_req.leave_type
            if target in (LeaveStatus.approved, LeaveStatus.refused, LeaveStatus.returned):
                if ledger_applies(leave_req, leave_type):
                    year = leave_req.start_date.year
                    if target == LeaveStatus.approved:
                        await ledger.commit_reservation(
                            db, leave_req.employee_id, year,
                            leave_type.balance_type, leave_req.total_days,
                        )
                    else:
                        await ledger.release_reservation(
                            db, leave_req.employee_id, year,
                            leave_type.balance_type, leave_req.total_days,
                        )
                if target != LeaveStatus.approved:
                    leave_req.balance_reserved = False

            # ── Record decision ─────────────────────────────────────
            on_behalf_of_id: Optional[uuid.UUID] = None
            if step.approver_id != actor_id:
                on_behalf_of_id = step.approver_id
                step.delegated_from_id = step.approver_id
                step.approver_id = actor_id
            step.action = action
            step.comment = comment
            step.decided_at = now
            leave_req.status = target
            leave_req.updated_at = now
            await LeaveService._flush(db, leave_req)

            # ── Triggers ────────────────────────────────────────────
            bus = triggers or get_trigger_bus()
            await bus.audit(db, AuditEvent(
                action=f"{stage.value.upper()}_APPROVAL_{action.value.upper()}",
                entity_type=LEAVE_REQUEST_ENTITY,
                entity_id=leave_req.id,
                actor_id=actor_id,
                on_behalf_of_id=on_behalf_of_id,
                old_values={"status": current.value},
                new_values={
                    "status": target.value,
                    "step_id": str(step.id),
                    "step_order": step.step_order,
                    "comment": comment,
                },
            ))
            if target == LeaveStatus.approved:
                await bus.notify(db, leave_request_approved(leave_req))
            elif target == LeaveStatus.refused:
                await bus.notify(db, leave_request_refused(leave_req, comment))
            elif target == LeaveStatus.returned:
                await bus.notify(db, leave_request_returned(leave_req, comment))
            elif target == LeaveStatus.pending_hr and current == LeaveStatus.pending_manager:
                await bus.notify(db, leave_request_pending(
                    leave_req,
                    [s.approver_id for s in ordered if s.step_type == StepType.hr],
                ))

            logger.info(
                "Leave request %s: %s step %s %s by %s%s → %s",
                leave_req.id, stage.value, step.step_order, action.value, actor_id,
                f" for {on_behalf_of_id}" if on_behalf_of_id else "",
                target.value,
            )
            return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        triggers: Optional[TriggerBus] = None,
        ledger: Optional[BalanceLedger] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Owner withdraws a DRAFT or pending request; a held reservation is released."""
        now = LeaveService._now(now)
        ledger = ledger or default_ledger

        async with request_locks.hold(request_id):
            leave_req = await LeaveService._load_request(db, request_id)
            LeaveService._ensure_owner(leave_req, actor_id)
            old_status = leave_req.status
            state_machine.validate_target(
                old_status, LeaveOperation.cancel, LeaveStatus.cancelled,
            )

            leave_type = leave_req.leave_type
            if old_status in _PENDING_STATUSES and ledger_applies(leave_req, leave_type):
                await ledger.release_reservation(
                    db, leave_req.employee_id, leave_req.start_date.year,
                    leave_type.balance_type, leave_req.total_days,
                )

            leave_req.balance_reserved = False
            leave_req.status = LeaveStatus.cancelled
            leave_req.cancelled_at = now
            leave_req.updated_at = now
            await LeaveService._flush(db, leave_req)

            bus = triggers or get_trigger_bus()
            await bus.audit(db, AuditEvent(
                action="LEAVE_CANCELLED",
                entity_type=LEAVE_REQUEST_ENTITY,
                entity_id=leave_req.id,
                actor_id=actor_id,
                old_values={"status": old_status.value},
                new_values={"status": LeaveStatus.cancelled.value},
            ))

            logger.info("Leave request %s cancelled from %s", leave_req.id, old_status.value)
            return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Edit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def edit(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        data: LeaveRequestUpdate,
        *,
        triggers: Optional[TriggerBus] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Replace the editable fields of a DRAFT or RETURNED request.

        Working days are recomputed. Steps and the ledger are untouched
        until the next submit.
        """
        now = LeaveService._now(now)

        async with request_locks.hold(request_id):
            leave_req = await LeaveService._load_request(db, request_id)
            LeaveService._ensure_owner(leave_req, actor_id)
            state_machine.ensure_transition(leave_req.status, LeaveOperation.edit)

            employee = await LeaveService._load_employee(db, leave_req.employee_id)
            leave_type = await LeaveService._load_leave_type(
                db, data.leave_type_id, employee.office_id,
            )
            total_days = await compute_working_days(
                db, employee.office_id, data.start_date, data.end_date,
                data.start_half_day, data.end_half_day,
            )
            await LeaveService._check_overlap(
                db, leave_req.employee_id, data.start_date, data.end_date,
                exclude_id=leave_req.id,
            )

            old_values = {
                "leave_type_id": str(leave_req.leave_type_id),
                "start_date": leave_req.start_date.isoformat(),
                "end_date": leave_req.end_date.isoformat(),
                "total_days": str(leave_req.total_days),
            }
            leave_req.leave_type_id = leave_type.id
            leave_req.leave_type = leave_type
            leave_req.start_date = data.start_date
            leave_req.end_date = data.end_date
            leave_req.start_half_day = data.start_half_day
            leave_req.end_half_day = data.end_half_day
            leave_req.total_days = total_days
            leave_req.reason = data.reason
            leave_req.exceptional_reason = data.exceptional_reason
            leave_req.attachment_urls = list(data.attachment_urls)
            leave_req.updated_at = now
            await LeaveService._flush(db, leave_req)

            bus = triggers or get_trigger_bus()
            await bus.audit(db, AuditEvent(
                action="UPDATE_LEAVE",
                entity_type=LEAVE_REQUEST_ENTITY,
                entity_id=leave_req.id,
                actor_id=actor_id,
                old_values=old_values,
                new_values={
                    "leave_type_id": str(leave_type.id),
                    "start_date": data.start_date.isoformat(),
                    "end_date": data.end_date.isoformat(),
                    "total_days": str(total_days),
                },
            ))

            return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Visible to the owner, its approvers (and their delegates), and HR."""
        leave_req = await LeaveService._load_request(db, request_id, for_update=False)
        if leave_req.employee_id != actor_id:
            identities = await resolve_acting_identities(
                db, actor_id, LeaveService._now(now),
            )
            is_approver = any(s.approver_id in identities for s in leave_req.steps)
            if not is_approver and not await LeaveService._is_hr(db, actor_id):
                raise ForbiddenException(
                    "You are not allowed to view this leave request."
                )
        return LeaveService._build_request_response(leave_req)

    @staticmethod
    async def get_pending_approvals(
        db: AsyncSession,
        actor_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> list[PendingApprovalOut]:
        """Requests whose current stage has a step the actor may decide now."""
        identities = await resolve_acting_identities(
            db, actor_id, LeaveService._now(now),
        )
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.status.in_(list(_PENDING_STATUSES)),
                LeaveRequest.steps.any(
                    ApprovalStep.approver_id.in_(list(identities))
                    & ApprovalStep.action.is_(None)
                ),
            )
            .options(selectinload(LeaveRequest.steps))
            .order_by(LeaveRequest.submitted_at, LeaveRequest.id)
        )

        pending: list[PendingApprovalOut] = []
        for leave_req in result.scalars().all():
            stage = state_machine.stage_step_type(leave_req.status)
            step = next(
                (
                    s for s in sorted(leave_req.steps, key=lambda s: s.step_order)
                    if s.step_type == stage and can_decide(s, identities)
                ),
                None,
            )
            if step is None:
                continue
            pending.append(
                PendingApprovalOut(
                    request=LeaveService._build_request_response(leave_req),
                    step_id=step.id,
                    step_type=step.step_type,
                    on_behalf_of_id=(
                        step.approver_id if step.approver_id != actor_id else None
                    ),
                )
            )
        return pending

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        """Balances for one employee and year, with ``remaining`` derived."""
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .order_by(LeaveBalance.balance_type)
            .execution_options(populate_existing=True)
        )
        return [LeaveBalanceOut.model_validate(b) for b in result.scalars().all()]
