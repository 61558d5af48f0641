"""Workflow resolver: config scoping, approver assignment, dropped steps."""

from __future__ import annotations

import logging

from leaveflow.common.constants import StepType, UserRole, WorkflowMode
from leaveflow.leave.workflow import find_hr_approver_id, resolve_workflow
from tests.conftest import (
    seed_employee,
    seed_office,
    seed_role,
    seed_team,
    seed_workflow,
)

MANAGER = StepType.manager
HR = StepType.hr


async def _team_with_member(db, office, *, with_manager: bool = True):
    manager = await seed_employee(db, office, first_name="Manager") if with_manager else None
    team = await seed_team(db, office, manager=manager)
    member = await seed_employee(db, office, team=team, first_name="Member")
    return team, manager, member


class TestResolveWorkflow:

    async def test_office_config_with_manager_and_hr(self, db):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        hr = await seed_employee(db, office, first_name="Hr")
        await seed_role(db, hr, UserRole.hr_admin)
        await seed_workflow(db, office, [MANAGER, HR])

        workflow = await resolve_workflow(db, member)

        assert workflow.mode == WorkflowMode.sequential
        assert [(s.step_type, s.step_order, s.approver_id) for s in workflow.steps] == [
            (MANAGER, 1, manager.id),
            (HR, 2, hr.id),
        ]
        assert workflow.has_manager_steps and workflow.has_hr_steps

    async def test_team_config_wins_over_office_config(self, db):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        await seed_workflow(db, office, [MANAGER, HR])
        await seed_workflow(db, office, [MANAGER, MANAGER], team=team, mode=WorkflowMode.parallel)

        workflow = await resolve_workflow(db, member)

        assert workflow.mode == WorkflowMode.parallel
        assert [s.step_type for s in workflow.steps] == [MANAGER, MANAGER]
        assert {s.approver_id for s in workflow.steps} == {manager.id}

    async def test_inactive_team_config_falls_back_to_office(self, db):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        await seed_workflow(db, office, [MANAGER], team=team, is_active=False)
        await seed_workflow(db, office, [MANAGER, MANAGER, MANAGER])

        workflow = await resolve_workflow(db, member)
        assert len(workflow.steps) == 3

    async def test_other_office_config_is_ignored(self, db):
        office = await seed_office(db)
        other = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        await seed_workflow(db, other, [MANAGER])

        workflow = await resolve_workflow(db, member)
        assert workflow.steps == ()

    async def test_no_config_gives_empty_chain(self, db):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)

        workflow = await resolve_workflow(db, member)
        assert workflow.steps == ()
        assert not workflow.has_manager_steps
        assert not workflow.has_hr_steps

    async def test_manager_step_dropped_without_team_manager(self, db):
        office = await seed_office(db)
        team, _, member = await _team_with_member(db, office, with_manager=False)
        hr = await seed_employee(db, office, first_name="Hr")
        await seed_role(db, hr, UserRole.hr_admin)
        await seed_workflow(db, office, [MANAGER, HR])

        workflow = await resolve_workflow(db, member)
        assert [(s.step_type, s.approver_id) for s in workflow.steps] == [(HR, hr.id)]

    async def test_manager_step_dropped_without_team(self, db):
        office = await seed_office(db)
        loner = await seed_employee(db, office)
        await seed_workflow(db, office, [MANAGER])

        workflow = await resolve_workflow(db, loner)
        assert workflow.steps == ()

    async def test_hr_step_dropped_and_logged_without_hr(self, db, caplog):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        await seed_workflow(db, office, [MANAGER, HR])

        with caplog.at_level(logging.WARNING, logger="leaveflow.leave.workflow"):
            workflow = await resolve_workflow(db, member)

        assert [s.step_type for s in workflow.steps] == [MANAGER]
        assert "No active HR approver" in caplog.text

    async def test_required_flag_is_carried(self, db):
        office = await seed_office(db)
        team, manager, member = await _team_with_member(db, office)
        config = await seed_workflow(db, office, [MANAGER])
        config.steps[0].is_required = False
        await db.flush()

        workflow = await resolve_workflow(db, member)
        assert workflow.steps[0].is_required is False


class TestHrApprover:

    async def test_lowest_id_active_holder_is_chosen(self, db):
        office = await seed_office(db)
        holders = [await seed_employee(db, office, first_name=f"Hr{i}") for i in range(3)]
        for holder in holders:
            await seed_role(db, holder, UserRole.hr_admin)

        assert await find_hr_approver_id(db) == min(h.id for h in holders)

    async def test_inactive_assignment_and_inactive_employee_are_skipped(self, db):
        office = await seed_office(db)
        revoked = await seed_employee(db, office, first_name="Revoked")
        await seed_role(db, revoked, UserRole.hr_admin, is_active=False)
        departed = await seed_employee(db, office, first_name="Departed", is_active=False)
        await seed_role(db, departed, UserRole.hr_admin)
        manager = await seed_employee(db, office, first_name="Manager")
        await seed_role(db, manager, UserRole.manager)

        assert await find_hr_approver_id(db) is None

        current = await seed_employee(db, office, first_name="Current")
        await seed_role(db, current, UserRole.hr_admin)
        assert await find_hr_approver_id(db) == current.id
