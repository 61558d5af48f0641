"""Audit and notification trigger bus.

Leave transitions emit ``AuditEvent`` and ``NotificationEvent`` objects
through a ``TriggerBus``. Delivery is best-effort: a sink that raises is
logged and skipped, and never changes the outcome of the transition that
emitted the event.

The default bus writes to the ``audit_trail`` and ``notifications`` tables;
tests and alternative deployments install their own sinks with
``set_trigger_bus``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import NotificationType

logger = logging.getLogger(__name__)


# ── Events ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AuditEvent:
    action: str
    entity_type: str
    entity_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    on_behalf_of_id: Optional[uuid.UUID] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationType
    recipient_ids: tuple[uuid.UUID, ...]
    request_id: uuid.UUID
    title: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


# ── Sink protocols ──────────────────────────────────────────────────

class AuditSink(Protocol):
    async def record(self, db: AsyncSession, event: AuditEvent) -> None: ...


class NotificationSink(Protocol):
    async def send(self, db: AsyncSession, event: NotificationEvent) -> None: ...


# ── Bus ─────────────────────────────────────────────────────────────

class TriggerBus:
    """Fan-out of lifecycle events to the configured sinks."""

    def __init__(
        self,
        audit_sinks: Sequence[AuditSink] = (),
        notification_sinks: Sequence[NotificationSink] = (),
    ) -> None:
        self.audit_sinks = list(audit_sinks)
        self.notification_sinks = list(notification_sinks)

    async def audit(self, db: AsyncSession, event: AuditEvent) -> None:
        for sink in self.audit_sinks:
            try:
                await sink.record(db, event)
            except Exception:
                logger.exception(
                    "Audit sink %s failed for %s on %s/%s",
                    type(sink).__name__, event.action,
                    event.entity_type, event.entity_id,
                )

    async def notify(self, db: AsyncSession, event: NotificationEvent) -> None:
        if not event.recipient_ids:
            return
        for sink in self.notification_sinks:
            try:
                await sink.send(db, event)
            except Exception:
                logger.exception(
                    "Notification sink %s failed for %s on request %s",
                    type(sink).__name__, event.kind.value, event.request_id,
                )


_bus: Optional[TriggerBus] = None


def _default_bus() -> TriggerBus:
    from leaveflow.common.audit import DatabaseAuditSink
    from leaveflow.notifications.service import DatabaseNotificationSink

    return TriggerBus(
        audit_sinks=[DatabaseAuditSink()],
        notification_sinks=[DatabaseNotificationSink()],
    )


def get_trigger_bus() -> TriggerBus:
    """Return the process-wide bus, building the database-backed one on first use."""
    global _bus
    if _bus is None:
        _bus = _default_bus()
    return _bus


def set_trigger_bus(bus: Optional[TriggerBus]) -> None:
    """Install a bus (``None`` restores the default on next use)."""
    global _bus
    _bus = bus
