"""Dispatching grandchild tickets through a fake agent, canned QA, and real judgment."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentcompany.coding_agents.base import CodingAgentAdapter
from agentcompany.coding_agents.registry import AgentRegistry
from agentcompany.domain.models import (
    ChildTicketSpec,
    CodingTaskOptions,
    CodingTaskResult,
    EslintParseResult,
    GrandchildTicket,
    GrandchildTicketSpec,
    QAParseResult,
    TicketStatus,
)
from agentcompany.errors import AgentTimeoutError, NotFoundError, ValidationError
from agentcompany.persistence.run_store import RunStore
from agentcompany.persistence.ticket_store import TicketStore
from agentcompany.quality.checks import QAReport
from agentcompany.quality.judgment import JudgmentEngine, JudgmentStatus
from agentcompany.quality.waiver import WaiverRepository
from agentcompany.tickets.engine import TicketEngine, build_task_prompt


class FakeAgent(CodingAgentAdapter):
    name = "fake-agent"
    display_name = "Fake Agent"
    command = "fake-agent"

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        super().__init__()
        self.fail_with = fail_with
        self.prompts: list[str] = []

    def is_available(self) -> bool:
        return True

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        return [options.prompt]

    async def execute(self, options: CodingTaskOptions) -> CodingTaskResult:
        self.prompts.append(options.prompt)
        if self.fail_with is not None:
            raise self.fail_with
        return CodingTaskResult(
            success=True,
            output="done",
            error_output="",
            exit_code=0,
            duration_ms=5,
            files_changed=("src/login.ts",),
        )


class CannedQA:
    def __init__(self, *, coverage: float, failed: int = 0) -> None:
        self.report = QAReport(
            test=QAParseResult(
                parsed=True, total=4, passed=4 - failed, failed=failed, coverage=coverage
            ),
            lint=EslintParseResult(parsed=True, passed=True, details="lint finished: no errors"),
            test_exit_code=1 if failed else 0,
            lint_exit_code=0,
        )
        self.workspaces: list[str] = []

    async def run(self, workspace: str | Path) -> QAReport:
        self.workspaces.append(str(workspace))
        return self.report


class BrokenQA:
    async def run(self, workspace: str | Path) -> QAReport:
        raise OSError("npm exited before writing a report")


def _engine(
    tmp_path: Path, agent: FakeAgent, qa: CannedQA | BrokenQA | None
) -> tuple[TicketEngine, RunStore]:
    run_store = RunStore(tmp_path / "runs", tmp_path / "state")
    registry = AgentRegistry(priority=("fake-agent",))
    registry.register(agent)
    engine = TicketEngine(
        TicketStore(tmp_path / "tickets"),
        run_store,
        registry=registry,
        qa_runner=qa,  # type: ignore[arg-type]
        judgment_engine=JudgmentEngine(
            run_store, WaiverRepository(tmp_path / "waivers"), coverage_threshold=80.0
        ),
    )
    return engine, run_store


async def _seed(engine: TicketEngine, count: int = 1) -> list[str]:
    parent = await engine.create_parent_ticket("webapp", "Build login")
    child = await engine.create_child_ticket(
        parent.id, ChildTicketSpec.create(title="UI", description="", worker_type="developer")
    )
    ids: list[str] = []
    for index in range(count):
        grandchild = await engine.create_grandchild_ticket(
            child.id,
            GrandchildTicketSpec.create(
                title=f"Task {index}",
                description="Implement the form",
                acceptance_criteria=["works"],
            ),
        )
        ids.append(grandchild.id)
    return ids


async def _status(engine: TicketEngine, ticket_id: str) -> TicketStatus:
    found = await engine.find_ticket(ticket_id)
    assert found is not None
    return found[1].status


async def test_passing_run_completes_ticket_and_ancestors(tmp_path: Path) -> None:
    agent = FakeAgent()
    qa = CannedQA(coverage=92.0)
    engine, run_store = _engine(tmp_path, agent, qa)
    (ticket_id,) = await _seed(engine)

    outcome = await engine.dispatch_grandchild(ticket_id, tmp_path)

    assert outcome.judgment.status is JudgmentStatus.PASS
    assert outcome.final_status is TicketStatus.COMPLETED
    assert outcome.agent_name == "fake-agent"
    assert qa.workspaces == [str(tmp_path)]
    assert agent.prompts[0].startswith("# Task 0")
    assert await _status(engine, ticket_id) is TicketStatus.COMPLETED
    assert await _status(engine, "webapp-0001") is TicketStatus.COMPLETED

    grandchild = await engine.get_grandchild_ticket(ticket_id)
    assert grandchild is not None
    assert grandchild.artifacts == ["src/login.ts"]
    result = run_store.load_result(outcome.run_id)
    assert result is not None
    assert result["status"] == "success"
    assert result["ticketId"] == ticket_id
    assert result["coverage"] == 92.0
    assert result["qa"]["test"]["total"] == 4
    assert run_store.load_judgment(outcome.run_id) is not None
    assert outcome.to_dict()["final_status"] == "completed"


async def test_failing_judgment_requests_revision(tmp_path: Path) -> None:
    engine, _ = _engine(tmp_path, FakeAgent(), CannedQA(coverage=40.0))
    (ticket_id,) = await _seed(engine)

    outcome = await engine.dispatch_grandchild(ticket_id, tmp_path)

    assert outcome.judgment.status is JudgmentStatus.FAIL
    assert outcome.final_status is TicketStatus.REVISION_REQUIRED
    assert await _status(engine, "webapp-0001-01") is TicketStatus.IN_PROGRESS


async def test_agent_error_fails_ticket_and_propagates(tmp_path: Path) -> None:
    error = AgentTimeoutError(agent_name="fake-agent", timeout_seconds=1)
    engine, run_store = _engine(tmp_path, FakeAgent(fail_with=error), CannedQA(coverage=100))
    (ticket_id,) = await _seed(engine)

    with pytest.raises(AgentTimeoutError):
        await engine.dispatch_grandchild(ticket_id, tmp_path)

    assert await _status(engine, ticket_id) is TicketStatus.FAILED
    assert await _status(engine, "webapp-0001") is TicketStatus.FAILED
    run_dirs = list((tmp_path / "runs").iterdir())
    assert len(run_dirs) == 1
    saved = run_store.load_result(run_dirs[0].name)
    assert saved is not None
    assert saved["status"] == "failure"
    assert saved["error"]["code"] == "TIMEOUT"


async def test_without_qa_runner_the_run_status_decides(tmp_path: Path) -> None:
    engine, _ = _engine(tmp_path, FakeAgent(), None)
    (ticket_id,) = await _seed(engine)

    outcome = await engine.dispatch_grandchild(ticket_id, tmp_path, prompt="custom prompt")

    assert outcome.qa_report is None
    assert outcome.judgment.status is JudgmentStatus.PASS


async def test_paused_or_terminal_tickets_are_not_dispatched(tmp_path: Path) -> None:
    engine, _ = _engine(tmp_path, FakeAgent(), CannedQA(coverage=90))
    first, second = await _seed(engine, count=2)

    await engine.pause_ticket(first)
    with pytest.raises(ValidationError, match="ticket is paused"):
        await engine.dispatch_grandchild(first, tmp_path)

    await engine.update_ticket_status(second, TicketStatus.COMPLETED)
    with pytest.raises(ValidationError, match="ticket is in completed state"):
        await engine.dispatch_grandchild(second, tmp_path)

    with pytest.raises(NotFoundError, match="grandchild ticket not found"):
        await engine.dispatch_grandchild("webapp-0001-01-099", tmp_path)


async def test_dispatch_requires_registry_and_judgment(tmp_path: Path) -> None:
    engine = TicketEngine(
        TicketStore(tmp_path / "tickets"), RunStore(tmp_path / "runs", tmp_path / "state")
    )

    with pytest.raises(RuntimeError, match="requires an agent registry"):
        await engine.dispatch_grandchild("webapp-0001-01-001", tmp_path)


async def test_dispatch_many_reports_each_outcome(tmp_path: Path) -> None:
    engine, _ = _engine(tmp_path, FakeAgent(), CannedQA(coverage=90))
    ids = await _seed(engine, count=2)

    outcomes = await engine.dispatch_many([*ids, "webapp-0001-01-404"], lambda _: tmp_path)

    assert [outcome.ok for outcome in outcomes] == [True, True, False]
    assert isinstance(outcomes[2].error, NotFoundError)
    assert await _status(engine, "webapp-0001") is TicketStatus.COMPLETED


async def test_qa_failure_after_agent_run_fails_ticket(tmp_path: Path) -> None:
    engine, run_store = _engine(tmp_path, FakeAgent(), BrokenQA())
    (ticket_id,) = await _seed(engine)

    with pytest.raises(OSError, match="npm exited"):
        await engine.dispatch_grandchild(ticket_id, tmp_path)

    assert await _status(engine, ticket_id) is TicketStatus.FAILED
    assert await _status(engine, "webapp-0001") is TicketStatus.FAILED
    (run_dir,) = (tmp_path / "runs").iterdir()
    saved = run_store.load_result(run_dir.name)
    assert saved is not None
    assert saved["status"] == "failure"
    assert saved["error"] == {
        "code": "EXECUTION_ERROR",
        "detail": "npm exited before writing a report",
    }
    assert saved["agentResult"]["success"] is True


async def test_judgment_failure_keeps_saved_result(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _explode(self: JudgmentEngine, run_id: str, waiver_id: str | None = None) -> None:
        raise RuntimeError("judgment store unavailable")

    monkeypatch.setattr(JudgmentEngine, "execute_judgment", _explode)
    engine, run_store = _engine(tmp_path, FakeAgent(), CannedQA(coverage=95.0))
    (ticket_id,) = await _seed(engine)

    with pytest.raises(RuntimeError, match="judgment store unavailable"):
        await engine.dispatch_grandchild(ticket_id, tmp_path)

    assert await _status(engine, ticket_id) is TicketStatus.FAILED
    (run_dir,) = (tmp_path / "runs").iterdir()
    saved = run_store.load_result(run_dir.name)
    assert saved is not None
    assert saved["status"] == "success"
    assert "error" not in saved


def test_task_prompt_lists_acceptance_criteria() -> None:
    spec = GrandchildTicketSpec.create(
        title="Login", description="Build it", acceptance_criteria=["a", "b"]
    )

    prompt = build_task_prompt(
        GrandchildTicket(
            id="w-0001-01-001",
            parent_id="w-0001-01",
            title=spec.title,
            description=spec.description,
            acceptance_criteria=list(spec.acceptance_criteria),
        )
    )

    assert prompt == "# Login\n\nBuild it\n\n## Acceptance criteria\n- a\n- b"
