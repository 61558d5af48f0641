"""Delegation resolver: acting identities and step eligibility."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from leaveflow.common.constants import StepAction, StepType
from leaveflow.leave.delegation import can_decide, resolve_acting_identities
from leaveflow.leave.models import ApprovalStep
from tests.conftest import seed_delegation, seed_employee, seed_office

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


class TestResolveActingIdentities:

    async def test_actor_alone_without_delegations(self, db):
        office = await seed_office(db)
        actor = await seed_employee(db, office)

        assert await resolve_acting_identities(db, actor.id, NOW) == frozenset({actor.id})

    async def test_active_delegation_adds_delegator(self, db):
        office = await seed_office(db)
        manager = await seed_employee(db, office, first_name="Manager")
        deputy = await seed_employee(db, office, first_name="Deputy")
        await seed_delegation(
            db, manager, deputy, start_date=date(2026, 3, 1), end_date=date(2026, 3, 31),
        )

        identities = await resolve_acting_identities(db, deputy.id, NOW)
        assert identities == frozenset({deputy.id, manager.id})
        # Delegation is one-way
        assert await resolve_acting_identities(db, manager.id, NOW) == frozenset({manager.id})

    async def test_window_is_inclusive_on_both_ends(self, db):
        office = await seed_office(db)
        manager = await seed_employee(db, office, first_name="Manager")
        deputy = await seed_employee(db, office, first_name="Deputy")
        await seed_delegation(
            db, manager, deputy, start_date=date(2026, 3, 10), end_date=date(2026, 3, 10),
        )

        assert manager.id in await resolve_acting_identities(db, deputy.id, NOW)

    async def test_expired_future_and_inactive_delegations_are_ignored(self, db):
        office = await seed_office(db)
        deputy = await seed_employee(db, office, first_name="Deputy")
        expired = await seed_employee(db, office, first_name="Expired")
        future = await seed_employee(db, office, first_name="Future")
        disabled = await seed_employee(db, office, first_name="Disabled")
        await seed_delegation(
            db, expired, deputy, start_date=date(2026, 2, 1), end_date=date(2026, 3, 9),
        )
        await seed_delegation(
            db, future, deputy, start_date=date(2026, 3, 11), end_date=date(2026, 4, 1),
        )
        await seed_delegation(
            db, disabled, deputy,
            start_date=date(2026, 3, 1), end_date=date(2026, 3, 31), is_active=False,
        )

        assert await resolve_acting_identities(db, deputy.id, NOW) == frozenset({deputy.id})

    async def test_multiple_delegators(self, db):
        office = await seed_office(db)
        deputy = await seed_employee(db, office, first_name="Deputy")
        first = await seed_employee(db, office, first_name="First")
        second = await seed_employee(db, office, first_name="Second")
        for delegator in (first, second):
            await seed_delegation(
                db, delegator, deputy, start_date=date(2026, 3, 1), end_date=date(2026, 3, 31),
            )

        identities = await resolve_acting_identities(db, deputy.id, NOW)
        assert identities == frozenset({deputy.id, first.id, second.id})


class TestCanDecide:

    def _step(self, approver_id, action=None) -> ApprovalStep:
        return ApprovalStep(
            step_type=StepType.manager, step_order=1,
            approver_id=approver_id, action=action,
        )

    def test_undecided_step_of_identity(self):
        approver = uuid.uuid4()
        assert can_decide(self._step(approver), frozenset({approver}))

    def test_decided_step(self):
        approver = uuid.uuid4()
        assert not can_decide(
            self._step(approver, StepAction.approved), frozenset({approver}),
        )

    def test_foreign_step(self):
        assert not can_decide(self._step(uuid.uuid4()), frozenset({uuid.uuid4()}))
