"""Delegation resolver — who may act for whom at a given moment."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.leave.models import ApprovalStep, Delegation


async def resolve_acting_identities(
    db: AsyncSession,
    actor_id: uuid.UUID,
    now: datetime,
) -> frozenset[uuid.UUID]:
    """Return ``{actor}`` plus every user who has an active delegation to the actor at ``now``.

    Delegation windows are whole days, inclusive at both ends.
    """
    today = now.date()
    result = await db.execute(
        select(Delegation.from_user_id).where(
            Delegation.to_user_id == actor_id,
            Delegation.is_active.is_(True),
            Delegation.start_date <= today,
            Delegation.end_date >= today,
        )
    )
    return frozenset({actor_id, *result.scalars().all()})


def can_decide(step: ApprovalStep, identities: frozenset[uuid.UUID]) -> bool:
    return not step.is_decided and step.approver_id in identities
