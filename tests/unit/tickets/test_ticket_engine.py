"""Ticket engine: creation, lookup, status propagation, pause/resume, persistence."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from agentcompany.domain.ids import TicketLevel
from agentcompany.domain.models import (
    ChildTicketSpec,
    GrandchildTicketSpec,
    Priority,
    TicketMetadata,
    TicketStatus,
)
from agentcompany.errors import NotFoundError, ValidationError
from agentcompany.persistence.run_store import RunStateStatus, RunStore
from agentcompany.persistence.ticket_store import TicketStore
from agentcompany.tickets.engine import TicketEngine


def _engine(tmp_path: Path) -> TicketEngine:
    return TicketEngine(
        TicketStore(tmp_path / "tickets"),
        RunStore(tmp_path / "runs", tmp_path / "state"),
    )


def _dev(title: str = "Frontend") -> ChildTicketSpec:
    return ChildTicketSpec.create(title=title, description="", worker_type="developer")


def _task(title: str = "Login form") -> GrandchildTicketSpec:
    return GrandchildTicketSpec.create(
        title=title, description="", acceptance_criteria=["renders"], git_branch="feature/login"
    )


async def _status(engine: TicketEngine, ticket_id: str) -> TicketStatus:
    found = await engine.find_ticket(ticket_id)
    assert found is not None
    return found[1].status


async def test_parent_ids_are_sequential_per_project(tmp_path: Path) -> None:
    engine = _engine(tmp_path)

    first = await engine.create_parent_ticket("webapp", "Build login")
    second = await engine.create_parent_ticket(
        "webapp",
        "Build signup",
        metadata=TicketMetadata(priority=Priority.HIGH, tags=("auth",)),
    )
    other = await engine.create_parent_ticket("mobile", "Build login")

    assert [first.id, second.id, other.id] == ["webapp-0001", "webapp-0002", "mobile-0001"]
    assert first.status is TicketStatus.PENDING
    assert second.metadata.priority is Priority.HIGH
    assert [ticket.id for ticket in await engine.list_tickets("webapp")] == [
        "webapp-0001",
        "webapp-0002",
    ]


@pytest.mark.parametrize(("project", "instruction"), [("", "do it"), ("webapp", "   ")])
async def test_empty_input_is_rejected(tmp_path: Path, project: str, instruction: str) -> None:
    with pytest.raises(ValidationError):
        await _engine(tmp_path).create_parent_ticket(project, instruction)


async def test_hierarchy_creation_and_lookup(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    grandchild = await engine.create_grandchild_ticket(child.id, _task())
    sibling = await engine.create_grandchild_ticket(child.id, _task("Logout button"))

    assert child.id == "webapp-0001-01"
    assert grandchild.id == "webapp-0001-01-001"
    assert sibling.id == "webapp-0001-01-002"
    assert (await engine.get_grandchild_ticket(grandchild.id)) == grandchild
    assert await engine.get_child_ticket(grandchild.id) is None
    found = await engine.find_ticket(child.id)
    assert found is not None
    assert found[0] is TicketLevel.CHILD
    assert await engine.find_ticket("webapp-0099") is None
    assert await engine.find_ticket("not-an-id") is None


async def test_creation_under_unknown_owner_raises(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")

    with pytest.raises(NotFoundError, match="parent ticket not found: webapp-0009"):
        await engine.create_child_ticket("webapp-0009", _dev())
    with pytest.raises(NotFoundError, match="parent ticket not found: webapp-0001-01"):
        await engine.create_child_ticket(f"{parent.id}-01", _dev())
    with pytest.raises(NotFoundError, match="child ticket not found: webapp-0001-05"):
        await engine.create_grandchild_ticket(f"{parent.id}-05", _task())


async def test_status_changes_propagate_upwards(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    first = await engine.create_grandchild_ticket(child.id, _task())
    second = await engine.create_grandchild_ticket(child.id, _task("Logout"))

    await engine.update_ticket_status(first.id, TicketStatus.COMPLETED)
    assert await _status(engine, child.id) is TicketStatus.IN_PROGRESS
    assert await _status(engine, parent.id) is TicketStatus.IN_PROGRESS

    await engine.update_ticket_status(second.id, "pr_created")
    assert await _status(engine, child.id) is TicketStatus.COMPLETED
    assert await _status(engine, parent.id) is TicketStatus.COMPLETED


async def test_update_unknown_ticket_raises(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    await engine.create_parent_ticket("webapp", "Build login")

    with pytest.raises(NotFoundError, match="ticket not found: webapp-0001-01"):
        await engine.update_ticket_status("webapp-0001-01", TicketStatus.COMPLETED)
    with pytest.raises(ValidationError, match="invalid ticket status"):
        await engine.update_ticket_status("webapp-0001", "archived")


async def test_pause_and_resume_round_trip(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    grandchild = await engine.create_grandchild_ticket(child.id, _task())

    paused = await engine.pause_ticket(
        grandchild.id,
        run_id="run-manual",
        worker_states={"developer": {"step": 3}},
    )

    assert paused.success
    assert paused.message == "ticket execution paused"
    assert paused.saved_worker_states == ("developer",)
    assert await engine.is_dispatch_blocked(grandchild.id)
    state = RunStore(tmp_path / "runs", tmp_path / "state").load_run_state("run-manual")
    assert state is not None
    assert state.status is RunStateStatus.PAUSED
    assert state.git_branches == {grandchild.id: "feature/login"}

    resumed = await engine.resume_ticket(grandchild.id)

    assert resumed.success
    assert resumed.run_id == "run-manual"
    assert resumed.restored_worker_states == ("developer",)
    assert not await engine.is_dispatch_blocked(grandchild.id)


async def test_pausing_an_ancestor_blocks_dispatch(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    grandchild = await engine.create_grandchild_ticket(child.id, _task())

    await engine.pause_ticket(parent.id)

    assert await engine.is_dispatch_blocked(grandchild.id)
    assert await engine.is_dispatch_blocked(child.id)


async def test_pause_and_resume_rejections(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")

    unknown = await engine.pause_ticket("webapp-0042")
    assert not unknown.success
    assert unknown.error == "ticket webapp-0042 does not exist"

    fresh = await engine.resume_ticket(parent.id)
    assert fresh.success
    assert fresh.message == "ticket execution resumed (no paused run state found)"

    await engine.update_ticket_status(parent.id, TicketStatus.COMPLETED)
    done = await engine.pause_ticket(parent.id)
    assert not done.success
    assert done.error == "cannot pause a ticket in completed state"
    resumed = await engine.resume_ticket(parent.id)
    assert resumed.error == "cannot resume a ticket in completed state"
    assert resumed.to_dict()["previous_status"] == "completed"


async def test_tree_survives_a_new_engine_instance(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    await engine.create_grandchild_ticket(child.id, _task())
    await engine.save_tickets("webapp")

    reloaded = _engine(tmp_path)
    tree = await reloaded.load_tickets("webapp")

    assert tree.parent_tickets[0].child_tickets[0].grandchild_tickets[0].title == "Login form"
    assert await reloaded.get_grandchild_ticket("webapp-0001-01-001") is not None


async def test_similarly_named_projects_keep_separate_trees(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    await engine.create_parent_ticket("app", "Build the app")
    other = await engine.create_parent_ticket("app-2", "Build the second app")

    reloaded = _engine(tmp_path)

    assert other.id == "app-2-0001"
    assert [ticket.id for ticket in await reloaded.list_tickets("app")] == ["app-0001"]
    assert [ticket.id for ticket in await reloaded.list_tickets("app-2")] == ["app-2-0001"]
    assert (tmp_path / "tickets" / "app-2.json").is_file()


async def test_concurrent_sibling_updates_all_reach_the_parent(tmp_path: Path) -> None:
    engine = _engine(tmp_path)
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(parent.id, _dev())
    siblings = [
        (await engine.create_grandchild_ticket(child.id, _task(f"Task {index}"))).id
        for index in range(6)
    ]

    await asyncio.gather(
        *(engine.update_ticket_status(ticket_id, TicketStatus.COMPLETED) for ticket_id in siblings)
    )

    reloaded = _engine(tmp_path)
    for ticket_id in siblings:
        assert await _status(reloaded, ticket_id) is TicketStatus.COMPLETED
    assert await _status(reloaded, child.id) is TicketStatus.COMPLETED
    assert await _status(reloaded, parent.id) is TicketStatus.COMPLETED


async def test_writes_from_another_engine_are_not_lost(tmp_path: Path) -> None:
    first = _engine(tmp_path)
    second = _engine(tmp_path)
    await first.create_parent_ticket("webapp", "one")
    await first.list_tickets("webapp")

    await second.create_parent_ticket("webapp", "two")
    third = await first.create_parent_ticket("webapp", "three")

    assert third.id == "webapp-0003"
