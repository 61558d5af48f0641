"""Common module — shared utilities for Leaveflow."""

from leaveflow.common.audit import AuditTrail, DatabaseAuditSink, create_audit_entry
from leaveflow.common.constants import (
    TERMINAL_STATUSES,
    WEEKDAY_CODES,
    HalfDay,
    LeaveOperation,
    LeaveStatus,
    NotificationType,
    StepAction,
    StepType,
    UserRole,
    WorkflowMode,
)
from leaveflow.common.exceptions import (
    AppException,
    CommentRequiredException,
    ConcurrentModificationException,
    EmptyWorkingRangeException,
    ForbiddenException,
    InvalidTransitionException,
    LedgerInvariantException,
    NotAuthorizedApproverException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from leaveflow.common.locks import KeyedLock, request_locks
from leaveflow.common.triggers import (
    AuditEvent,
    NotificationEvent,
    TriggerBus,
    get_trigger_bus,
    set_trigger_bus,
)

__all__ = [
    # Audit
    "AuditTrail",
    "DatabaseAuditSink",
    "create_audit_entry",
    # Constants / Enums
    "HalfDay",
    "LeaveOperation",
    "LeaveStatus",
    "NotificationType",
    "StepAction",
    "StepType",
    "UserRole",
    "WorkflowMode",
    "TERMINAL_STATUSES",
    "WEEKDAY_CODES",
    # Exceptions
    "AppException",
    "CommentRequiredException",
    "ConcurrentModificationException",
    "EmptyWorkingRangeException",
    "ForbiddenException",
    "InvalidTransitionException",
    "LedgerInvariantException",
    "NotAuthorizedApproverException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Concurrency
    "KeyedLock",
    "request_locks",
    # Triggers
    "AuditEvent",
    "NotificationEvent",
    "TriggerBus",
    "get_trigger_bus",
    "set_trigger_bus",
]
