"""Notification service — row creation, leave event builders and the database sink."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import LEAVE_REQUEST_ENTITY, NotificationType
from leaveflow.common.triggers import NotificationEvent
from leaveflow.notifications.models import Notification


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification


class DatabaseNotificationSink:
    """Stores one ``notifications`` row per recipient inside a SAVEPOINT."""

    async def send(self, db: AsyncSession, event: NotificationEvent) -> None:
        async with db.begin_nested():
            for recipient_id in event.recipient_ids:
                await NotificationService.create_notification(
                    db,
                    recipient_id=recipient_id,
                    type=event.kind,
                    title=event.title,
                    message=event.message,
                    action_url=f"/leave/requests/{event.request_id}",
                    entity_type=LEAVE_REQUEST_ENTITY,
                    entity_id=event.request_id,
                )


# ── Leave event builders ────────────────────────────────────────────
# They accept the ORM object directly to avoid tight schema coupling.


def _period(leave_request) -> str:
    return (
        f"{leave_request.start_date} to {leave_request.end_date} "
        f"({leave_request.total_days} day(s))"
    )


def leave_request_pending(
    leave_request,  # leaveflow.leave.models.LeaveRequest
    approver_ids: Iterable[uuid.UUID],
) -> NotificationEvent:
    """Approvers of the current stage have a request to review."""
    return NotificationEvent(
        kind=NotificationType.new_request,
        recipient_ids=tuple(dict.fromkeys(approver_ids)),
        request_id=leave_request.id,
        title="New Leave Request",
        message=f"A leave request from {_period(leave_request)} requires your approval.",
        context={"status": leave_request.status.value},
    )


def leave_request_approved(leave_request) -> NotificationEvent:
    return NotificationEvent(
        kind=NotificationType.approved,
        recipient_ids=(leave_request.employee_id,),
        request_id=leave_request.id,
        title="Leave Request Approved",
        message=f"Your leave request from {_period(leave_request)} has been approved.",
    )


def leave_request_refused(leave_request, comment: Optional[str]) -> NotificationEvent:
    return NotificationEvent(
        kind=NotificationType.refused,
        recipient_ids=(leave_request.employee_id,),
        request_id=leave_request.id,
        title="Leave Request Refused",
        message=(
            f"Your leave request from {_period(leave_request)} was refused. "
            f"Reason: {comment}"
        ),
        context={"comment": comment},
    )


def leave_request_returned(leave_request, comment: Optional[str]) -> NotificationEvent:
    return NotificationEvent(
        kind=NotificationType.returned,
        recipient_ids=(leave_request.employee_id,),
        request_id=leave_request.id,
        title="Leave Request Returned",
        message=(
            f"Your leave request from {_period(leave_request)} was returned "
            f"for changes. Comment: {comment}"
        ),
        context={"comment": comment},
    )
