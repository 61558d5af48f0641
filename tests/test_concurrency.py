"""Serialisation of transitions on one request, and stale-write detection."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from leaveflow.common.constants import LeaveStatus, StepAction, StepType, UserRole
from leaveflow.common.exceptions import ConcurrentModificationException
from leaveflow.common.locks import KeyedLock, request_locks
from leaveflow.common.triggers import TriggerBus
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.leave.models import LeaveBalance, LeaveRequest
from leaveflow.leave.schemas import LeaveRequestCreate
from leaveflow.leave.service import LeaveService
from tests.conftest import (
    TestSessionFactory,
    seed_balance,
    seed_delegation,
    seed_employee,
    seed_leave_type,
    seed_office,
    seed_role,
    seed_team,
    seed_workflow,
)


class _GatedLedger(BalanceLedger):
    """Ledger that parks inside ``reserve`` until the test opens the gate."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def reserve(self, db, employee_id, year, balance_type, days):
        self.entered.set()
        await self.gate.wait()
        return await super().reserve(db, employee_id, year, balance_type, days)


async def _setup(db):
    office = await seed_office(db)
    manager = await seed_employee(db, office, first_name="Manager")
    team = await seed_team(db, office, manager=manager)
    employee = await seed_employee(db, office, team=team, first_name="Employee")
    hr = await seed_employee(db, office, first_name="Hr")
    await seed_role(db, hr, UserRole.hr_admin)
    leave_type = await seed_leave_type(db, office)
    balance = await seed_balance(db, employee)
    await seed_workflow(db, office, [StepType.manager, StepType.hr])
    draft = await LeaveService.create_draft(
        db, employee.id,
        LeaveRequestCreate(
            leave_type_id=leave_type.id,
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 6),
        ),
    )
    return employee, manager, balance, draft


class TestKeyedLock:

    async def test_same_key_is_serialised(self):
        locks = KeyedLock()
        order: list[str] = []
        first_inside = asyncio.Event()
        release_first = asyncio.Event()

        async def first():
            async with locks.hold("req-1"):
                order.append("first:in")
                first_inside.set()
                await release_first.wait()
                order.append("first:out")

        async def second():
            await first_inside.wait()
            async with locks.hold("req-1"):
                order.append("second:in")

        tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
        await first_inside.wait()
        await asyncio.sleep(0)
        assert order == ["first:in"]

        release_first.set()
        await asyncio.gather(*tasks)
        assert order == ["first:in", "first:out", "second:in"]

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("req-1"):
            await asyncio.wait_for(self._enter(locks, "req-2"), timeout=1)

    async def _enter(self, locks: KeyedLock, key: str) -> None:
        async with locks.hold(key):
            pass

    async def test_locks_are_dropped_when_idle(self):
        locks = KeyedLock()

        async with locks.hold("req-1"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_lock_is_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("req-1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        await asyncio.wait_for(self._enter(locks, "req-1"), timeout=1)


class TestRequestSerialisation:

    async def test_cancel_waits_for_in_flight_submit(self, db):
        employee, _, balance, draft = await _setup(db)
        ledger = _GatedLedger()

        submit_task = asyncio.create_task(
            LeaveService.submit(db, draft.id, employee.id, ledger=ledger)
        )
        await ledger.entered.wait()
        assert len(request_locks) == 1

        cancel_task = asyncio.create_task(
            LeaveService.cancel(db, draft.id, employee.id)
        )
        for _ in range(5):
            await asyncio.sleep(0)
        assert not cancel_task.done()

        ledger.gate.set()
        submitted = await submit_task
        cancelled = await cancel_task

        assert submitted.status == LeaveStatus.pending_manager
        # The cancel observed the submitted request and released its reservation
        assert cancelled.status == LeaveStatus.cancelled
        await db.refresh(balance)
        assert balance.pending_days == Decimal("0")
        assert len(request_locks) == 0

    async def test_second_submit_after_in_flight_submit_is_rejected(self, db):
        employee, _, balance, draft = await _setup(db)
        ledger = _GatedLedger()

        first = asyncio.create_task(
            LeaveService.submit(db, draft.id, employee.id, ledger=ledger)
        )
        await ledger.entered.wait()
        second = asyncio.create_task(
            LeaveService.submit(db, draft.id, employee.id, ledger=ledger)
        )
        ledger.gate.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert results[0].status == LeaveStatus.pending_manager
        assert isinstance(results[1], Exception)
        assert getattr(results[1], "status_code", None) == 409
        await db.refresh(balance)
        # Reserved exactly once
        assert balance.pending_days == Decimal("5")


class _GatedAuditSink:
    """Parks the first recorded event, i.e. while its transition still holds the lock."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()
        self.events = []

    async def record(self, db, event):
        self.events.append(event)
        if not self.entered.is_set():
            self.entered.set()
            await self.gate.wait()


class TestConcurrentPeerDecisions:

    @pytest.mark.parametrize("with_hr", [True, False])
    async def test_peer_approvals_transition_once(self, db, notification_sink, with_hr):
        office = await seed_office(db)
        manager = await seed_employee(db, office, first_name="Manager")
        deputy = await seed_employee(db, office, first_name="Deputy")
        team = await seed_team(db, office, manager=manager)
        employee = await seed_employee(db, office, team=team, first_name="Employee")
        hr = await seed_employee(db, office, first_name="Hr")
        await seed_role(db, hr, UserRole.hr_admin)
        leave_type = await seed_leave_type(db, office)
        balance = await seed_balance(db, employee)
        steps = [StepType.manager, StepType.manager]
        if with_hr:
            steps.append(StepType.hr)
        await seed_workflow(db, office, steps)
        await seed_delegation(
            db, manager, deputy, start_date=date(2026, 2, 1), end_date=date(2026, 2, 28),
        )
        draft = await LeaveService.create_draft(
            db, employee.id,
            LeaveRequestCreate(
                leave_type_id=leave_type.id,
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 6),
            ),
        )
        await LeaveService.submit(db, draft.id, employee.id)
        notification_sink.events.clear()

        sink = _GatedAuditSink()
        bus = TriggerBus(audit_sinks=[sink], notification_sinks=[notification_sink])
        now = datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)

        by_manager = asyncio.create_task(LeaveService.decide(
            db, draft.id, manager.id, StepAction.approved, triggers=bus, now=now,
        ))
        await sink.entered.wait()
        by_deputy = asyncio.create_task(LeaveService.decide(
            db, draft.id, deputy.id, StepAction.approved, triggers=bus, now=now,
        ))
        await asyncio.sleep(0)
        sink.gate.set()

        first, second = await asyncio.gather(by_manager, by_deputy)

        final = LeaveStatus.pending_hr if with_hr else LeaveStatus.approved
        assert first.status == LeaveStatus.pending_manager
        assert second.status == final
        assert [e.new_values["status"] for e in sink.events] == [
            LeaveStatus.pending_manager.value, final.value,
        ]
        # One hand-off notification, not two
        expected_kind = "new_request" if with_hr else "approved"
        assert notification_sink.kinds == [expected_kind]

        await db.refresh(balance)
        if with_hr:
            assert balance.pending_days == Decimal("5")
            assert balance.used_days == Decimal("0")
        else:
            assert balance.pending_days == Decimal("0")
            assert balance.used_days == Decimal("5")


class TestStaleWrites:

    async def test_stale_request_version_is_reported(self, db):
        employee, _, _, draft = await _setup(db)
        await db.commit()

        async with TestSessionFactory() as stale:
            leave_req = await stale.get(LeaveRequest, draft.id)
            assert leave_req.version == 1

            async with TestSessionFactory() as other:
                await LeaveService.cancel(other, draft.id, employee.id)
                await other.commit()

            leave_req.reason = "Late edit"
            with pytest.raises(ConcurrentModificationException):
                await LeaveService._flush(stale, leave_req)
            await stale.rollback()

        async with TestSessionFactory() as check:
            current = await check.get(LeaveRequest, draft.id)
            assert current.status == LeaveStatus.cancelled
            assert current.reason is None

    async def test_ledger_reads_past_cached_balance_rows(self, db):
        employee, _, balance, _ = await _setup(db)
        await db.commit()

        async with TestSessionFactory() as reader:
            # An out-of-date copy of the row sits in this session
            stale_copy = await reader.get(LeaveBalance, balance.id)
            assert stale_copy.version == 1

            async with TestSessionFactory() as other:
                await BalanceLedger().reserve(other, employee.id, 2026, "annual", Decimal("2"))
                await other.commit()

            snapshot = await BalanceLedger().reserve(
                reader, employee.id, 2026, "annual", Decimal("3"),
            )
            await reader.commit()

        assert snapshot.pending_days == Decimal("5")
        assert snapshot.version == 3
