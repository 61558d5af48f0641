"""Leave request lifecycle as an explicit transition table.

Keys are (current status, operation); values are the statuses the
operation may lead to. Anything not listed is an invalid transition.
"""

from __future__ import annotations

from leaveflow.common.constants import (
    TERMINAL_STATUSES,
    LeaveOperation,
    LeaveStatus,
    StepAction,
    StepType,
)
from leaveflow.common.exceptions import InvalidTransitionException

_S = LeaveStatus
_Op = LeaveOperation

_SUBMIT_TARGETS = frozenset({_S.pending_manager, _S.pending_hr, _S.approved})

TRANSITIONS: dict[tuple[LeaveStatus, LeaveOperation], frozenset[LeaveStatus]] = {
    (_S.draft, _Op.submit): _SUBMIT_TARGETS,
    (_S.returned, _Op.submit): _SUBMIT_TARGETS,
    (_S.draft, _Op.edit): frozenset({_S.draft}),
    (_S.returned, _Op.edit): frozenset({_S.returned}),
    (_S.draft, _Op.cancel): frozenset({_S.cancelled}),
    (_S.pending_manager, _Op.cancel): frozenset({_S.cancelled}),
    (_S.pending_hr, _Op.cancel): frozenset({_S.cancelled}),
    (_S.pending_manager, _Op.decide_manager): frozenset({
        _S.pending_manager, _S.pending_hr, _S.approved, _S.refused, _S.returned,
    }),
    (_S.pending_hr, _Op.decide_hr): frozenset({
        _S.pending_hr, _S.approved, _S.refused, _S.returned,
    }),
}

_DECIDE_OPERATION: dict[LeaveStatus, LeaveOperation] = {
    _S.pending_manager: _Op.decide_manager,
    _S.pending_hr: _Op.decide_hr,
}

_STAGE_STEP_TYPE: dict[LeaveStatus, StepType] = {
    _S.pending_manager: StepType.manager,
    _S.pending_hr: StepType.hr,
}


def is_terminal(status: LeaveStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_operations(status: LeaveStatus) -> set[LeaveOperation]:
    return {op for (current, op) in TRANSITIONS if current == status}


def ensure_transition(
    current: LeaveStatus, operation: LeaveOperation,
) -> frozenset[LeaveStatus]:
    """Return the permitted targets or raise ``InvalidTransitionException``."""
    targets = TRANSITIONS.get((current, operation))
    if targets is None:
        raise InvalidTransitionException(current, operation)
    return targets


def validate_target(
    current: LeaveStatus, operation: LeaveOperation, target: LeaveStatus,
) -> LeaveStatus:
    if target not in ensure_transition(current, operation):
        raise InvalidTransitionException(current, operation)
    return target


def decide_operation(status: LeaveStatus) -> LeaveOperation:
    """Map a pending status to the decide operation it accepts."""
    operation = _DECIDE_OPERATION.get(status)
    if operation is None:
        raise InvalidTransitionException(status, "decide")
    return operation


def stage_step_type(status: LeaveStatus) -> StepType:
    return _STAGE_STEP_TYPE[status]


def initial_pending_status(has_manager_steps: bool, has_hr_steps: bool) -> LeaveStatus:
    """Status right after submit, based on which step types were resolved."""
    if has_manager_steps:
        return _S.pending_manager
    if has_hr_steps:
        return _S.pending_hr
    return _S.approved


def next_status_after_decision(
    stage: StepType,
    action: StepAction,
    undecided_same_stage: int,
    undecided_hr: int,
) -> LeaveStatus:
    """Status after one step decision.

    ``undecided_same_stage`` and ``undecided_hr`` are counted after the
    decision has been recorded.
    """
    if action == StepAction.refused:
        return _S.refused
    if action == StepAction.returned:
        return _S.returned
    if undecided_same_stage > 0:
        return _S.pending_manager if stage == StepType.manager else _S.pending_hr
    if undecided_hr > 0:
        return _S.pending_hr
    return _S.approved
