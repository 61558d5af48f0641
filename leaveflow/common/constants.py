"""Enums and constants for Leaveflow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Leave lifecycle ─────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    draft = "draft"
    pending_manager = "pending_manager"
    pending_hr = "pending_hr"
    approved = "approved"
    refused = "refused"
    cancelled = "cancelled"
    returned = "returned"


class LeaveOperation(str, enum.Enum):
    submit = "submit"
    edit = "edit"
    cancel = "cancel"
    decide_manager = "decide_manager"
    decide_hr = "decide_hr"


class HalfDay(str, enum.Enum):
    full_day = "full_day"
    morning = "morning"
    afternoon = "afternoon"


TERMINAL_STATUSES: frozenset[LeaveStatus] = frozenset({
    LeaveStatus.approved,
    LeaveStatus.refused,
    LeaveStatus.cancelled,
})

# Requests in these states never block a new request for the same dates
NON_BLOCKING_STATUSES: frozenset[LeaveStatus] = frozenset({
    LeaveStatus.cancelled,
    LeaveStatus.refused,
})


# ── Approval workflow ───────────────────────────────────────────────

class StepType(str, enum.Enum):
    manager = "manager"
    hr = "hr"


class StepAction(str, enum.Enum):
    approved = "approved"
    refused = "refused"
    returned = "returned"


class WorkflowMode(str, enum.Enum):
    sequential = "sequential"
    parallel = "parallel"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    new_request = "new_request"
    approved = "approved"
    refused = "refused"
    returned = "returned"


# ── Calendar ────────────────────────────────────────────────────────

# Python weekday numbers: 0=Mon … 6=Sun
WEEKDAY_CODES: dict[str, int] = {
    "MON": 0,
    "TUE": 1,
    "WED": 2,
    "THU": 3,
    "FRI": 4,
    "SAT": 5,
    "SUN": 6,
}

# ── Misc constants ──────────────────────────────────────────────────

LEAVE_REQUEST_ENTITY = "leave_request"
