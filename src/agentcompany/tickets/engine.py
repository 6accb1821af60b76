"""Ticket hierarchy engine: creation, lookup, status propagation, pause, dispatch.

File: src/agentcompany/tickets/engine.py

Purpose
- Own every mutation of the per-project ticket tree.
- Serialize "load tree, mutate, re-derive, save" per project behind one lock.
- Drive a grandchild through agent execution, QA, and judgment.

Result policy
- Creation and lookup-by-reference failures raise (``ValidationError``,
  ``NotFoundError``).
- Pause/resume rejections are returned as ``PauseResult`` / ``ResumeResult``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from agentcompany.constants import RAW_EXCERPT_LIMIT
from agentcompany.domain.ids import (
    TicketLevel,
    child_ticket_id_of,
    generate_run_id,
    next_child_ticket_id,
    next_grandchild_ticket_id,
    next_parent_ticket_id,
    parent_ticket_id_of,
    project_id_from_ticket_id,
    ticket_level,
)
from agentcompany.domain.models import (
    ChildTicket,
    ChildTicketSpec,
    CodingTaskOptions,
    CodingTaskResult,
    GrandchildTicket,
    GrandchildTicketSpec,
    ParentTicket,
    TicketFile,
    TicketMetadata,
    TicketStatus,
    parse_ticket_status,
    utc_now_iso,
)
from agentcompany.errors import (
    EXECUTION_ERROR,
    AgentCompanyError,
    NotFoundError,
    ValidationError,
)
from agentcompany.observability.logging import correlation_scope
from agentcompany.persistence.run_store import RunState, RunStateStatus, RunStore
from agentcompany.persistence.ticket_store import TicketStore
from agentcompany.tickets.decomposition import DecompositionPlan
from agentcompany.tickets.propagation import rederive_ancestors, rederive_tree
from agentcompany.utils.concurrency import KeyedLock, TaskOutcome, WorkerPool

if TYPE_CHECKING:
    from agentcompany.coding_agents.registry import AgentRegistry
    from agentcompany.quality.checks import QAReport, QARunner
    from agentcompany.quality.judgment import Judgment, JudgmentEngine

Ticket = ParentTicket | ChildTicket | GrandchildTicket

DEFAULT_MAX_CONCURRENT_DISPATCH: Final[int] = 4
RUN_STATUS_SUCCESS: Final[str] = "success"
RUN_STATUS_FAILURE: Final[str] = "failure"


@dataclass(frozen=True, slots=True)
class PauseResult:
    success: bool
    ticket_id: str
    previous_status: TicketStatus | None = None
    new_status: TicketStatus | None = None
    run_id: str | None = None
    message: str | None = None
    error: str | None = None
    saved_worker_states: tuple[str, ...] = ()
    saved_conversation_histories: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "ticket_id": self.ticket_id,
            "previous_status": _status_value(self.previous_status),
            "new_status": _status_value(self.new_status),
            "run_id": self.run_id,
            "message": self.message,
            "error": self.error,
            "saved_worker_states": list(self.saved_worker_states),
            "saved_conversation_histories": list(self.saved_conversation_histories),
        }


@dataclass(frozen=True, slots=True)
class ResumeResult:
    success: bool
    ticket_id: str
    previous_status: TicketStatus | None = None
    new_status: TicketStatus | None = None
    run_id: str | None = None
    message: str | None = None
    error: str | None = None
    restored_worker_states: tuple[str, ...] = ()
    restored_conversation_histories: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "ticket_id": self.ticket_id,
            "previous_status": _status_value(self.previous_status),
            "new_status": _status_value(self.new_status),
            "run_id": self.run_id,
            "message": self.message,
            "error": self.error,
            "restored_worker_states": list(self.restored_worker_states),
            "restored_conversation_histories": list(self.restored_conversation_histories),
        }


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    ticket_id: str
    run_id: str
    agent_name: str
    agent_result: CodingTaskResult
    judgment: Judgment
    final_status: TicketStatus
    qa_report: QAReport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "run_id": self.run_id,
            "agent": self.agent_name,
            "agent_result": _agent_summary(self.agent_result),
            "qa": None if self.qa_report is None else self.qa_report.to_dict(),
            "judgment": self.judgment.to_dict(),
            "final_status": self.final_status.value,
        }


@dataclass(slots=True)
class _Located:
    """A ticket plus its owners inside one loaded tree."""

    level: TicketLevel
    parent: ParentTicket
    child: ChildTicket | None = None
    grandchild: GrandchildTicket | None = None
    ticket: Ticket = field(init=False)

    def __post_init__(self) -> None:
        self.ticket = self.grandchild or self.child or self.parent


class TicketEngine:
    """Async facade over the ticket store with per-project single-writer discipline."""

    def __init__(
        self,
        store: TicketStore,
        run_store: RunStore,
        *,
        registry: AgentRegistry | None = None,
        qa_runner: QARunner | None = None,
        judgment_engine: JudgmentEngine | None = None,
        preferred_agent: str | None = None,
        max_concurrent_dispatch: int = DEFAULT_MAX_CONCURRENT_DISPATCH,
    ) -> None:
        if max_concurrent_dispatch <= 0:
            raise ValueError("max_concurrent_dispatch must be > 0")
        self._store = store
        self._run_store = run_store
        self._registry = registry
        self._qa_runner = qa_runner
        self._judgment = judgment_engine
        self._preferred_agent = preferred_agent or None
        self._max_concurrent_dispatch = max_concurrent_dispatch
        self._locks: KeyedLock[str] = KeyedLock()
        self._trees: dict[str, TicketFile] = {}
        self._logger = structlog.get_logger(__name__)

    # ------------------------------------------------------------------
    # creation

    async def create_parent_ticket(
        self,
        project_id: str,
        instruction: str,
        *,
        metadata: TicketMetadata | None = None,
    ) -> ParentTicket:
        project = (project_id or "").strip()
        text = (instruction or "").strip()
        if not project:
            raise ValidationError("project_id must not be empty")
        if not text:
            raise ValidationError("instruction must not be empty")

        async with self._transaction(project) as tree:
            ticket_id = next_parent_ticket_id(project, (item.id for item in tree.parent_tickets))
            ticket = ParentTicket(
                id=ticket_id,
                project_id=project,
                instruction=text,
                metadata=metadata or TicketMetadata(),
            )
            tree.parent_tickets.append(ticket)

        self._logger.info("parent_ticket_created", project_id=project, ticket_id=ticket_id)
        return ticket

    async def create_child_ticket(self, parent_id: str, spec: ChildTicketSpec) -> ChildTicket:
        project = self._project_for(parent_id, TicketLevel.PARENT)
        async with self._transaction(project) as tree:
            parent = _find_parent(tree, parent_id)
            if parent is None:
                raise NotFoundError(f"parent ticket not found: {parent_id}")
            child = ChildTicket(
                id=next_child_ticket_id(parent_id, (item.id for item in parent.child_tickets)),
                parent_id=parent_id,
                title=spec.title,
                description=spec.description,
                worker_type=spec.worker_type,
            )
            parent.child_tickets.append(child)
            rederive_ancestors(parent)

        self._logger.info("child_ticket_created", parent_id=parent_id, ticket_id=child.id)
        return child

    async def create_grandchild_ticket(
        self, child_id: str, spec: GrandchildTicketSpec
    ) -> GrandchildTicket:
        project = self._project_for(child_id, TicketLevel.CHILD)
        async with self._transaction(project) as tree:
            located = _locate(tree, child_id)
            if located is None or located.child is None or located.grandchild is not None:
                raise NotFoundError(f"child ticket not found: {child_id}")
            child = located.child
            grandchild = GrandchildTicket(
                id=next_grandchild_ticket_id(
                    child_id, (item.id for item in child.grandchild_tickets)
                ),
                parent_id=child_id,
                title=spec.title,
                description=spec.description,
                acceptance_criteria=list(spec.acceptance_criteria),
                assignee=spec.assignee,
                git_branch=spec.git_branch,
            )
            child.grandchild_tickets.append(grandchild)
            rederive_ancestors(located.parent, child)

        self._logger.info("grandchild_ticket_created", child_id=child_id, ticket_id=grandchild.id)
        return grandchild

    async def apply_decomposition(
        self, parent_id: str, plan: DecompositionPlan
    ) -> list[ChildTicket]:
        """Create every child and grandchild of ``plan`` under ``parent_id`` in one write."""
        project = self._project_for(parent_id, TicketLevel.PARENT)
        async with self._transaction(project) as tree:
            parent = _find_parent(tree, parent_id)
            if parent is None:
                raise NotFoundError(f"parent ticket not found: {parent_id}")
            created: list[ChildTicket] = []
            for child_plan in plan.children:
                child_id = next_child_ticket_id(
                    parent_id, (item.id for item in parent.child_tickets)
                )
                child = ChildTicket(
                    id=child_id,
                    parent_id=parent_id,
                    title=child_plan.spec.title,
                    description=child_plan.spec.description,
                    worker_type=child_plan.spec.worker_type,
                )
                for spec in child_plan.grandchildren:
                    child.grandchild_tickets.append(
                        GrandchildTicket(
                            id=next_grandchild_ticket_id(
                                child_id, (item.id for item in child.grandchild_tickets)
                            ),
                            parent_id=child_id,
                            title=spec.title,
                            description=spec.description,
                            acceptance_criteria=list(spec.acceptance_criteria),
                            assignee=spec.assignee,
                            git_branch=spec.git_branch,
                        )
                    )
                parent.child_tickets.append(child)
                created.append(child)
            rederive_tree(parent)

        self._logger.info(
            "decomposition_applied",
            parent_id=parent_id,
            children=len(created),
            grandchildren=plan.grandchild_count,
        )
        return created

    # ------------------------------------------------------------------
    # lookup

    async def get_parent_ticket(self, ticket_id: str) -> ParentTicket | None:
        located = await self._lookup(ticket_id)
        if located is None or located.level is not TicketLevel.PARENT:
            return None
        return located.parent

    async def get_child_ticket(self, ticket_id: str) -> ChildTicket | None:
        located = await self._lookup(ticket_id)
        if located is None or located.level is not TicketLevel.CHILD:
            return None
        return located.child

    async def get_grandchild_ticket(self, ticket_id: str) -> GrandchildTicket | None:
        located = await self._lookup(ticket_id)
        if located is None or located.level is not TicketLevel.GRANDCHILD:
            return None
        return located.grandchild

    async def find_ticket(self, ticket_id: str) -> tuple[TicketLevel, Ticket] | None:
        located = await self._lookup(ticket_id)
        if located is None:
            return None
        return located.level, located.ticket

    async def list_tickets(self, project_id: str) -> list[ParentTicket]:
        tree = await self._cached_tree(project_id)
        return list(tree.parent_tickets)

    # ------------------------------------------------------------------
    # status

    async def update_ticket_status(
        self, ticket_id: str, new_status: TicketStatus | str
    ) -> Ticket:
        """Set one ticket's status and re-derive its ancestors in the same write."""
        status = parse_ticket_status(new_status)
        project = self._project_for(ticket_id)
        async with self._transaction(project) as tree:
            located = _locate(tree, ticket_id)
            if located is None:
                raise NotFoundError(f"ticket not found: {ticket_id}")
            previous = located.ticket.status
            _set_status(located.ticket, status)
            if located.level is TicketLevel.GRANDCHILD:
                rederive_ancestors(located.parent, located.child)
            elif located.level is TicketLevel.CHILD:
                rederive_ancestors(located.parent)

        self._logger.info(
            "ticket_status_updated",
            ticket_id=ticket_id,
            previous_status=previous.value,
            new_status=status.value,
            parent_status=located.parent.status.value,
        )
        return located.ticket

    # ------------------------------------------------------------------
    # pause / resume

    async def pause_ticket(
        self,
        ticket_id: str,
        *,
        run_id: str | None = None,
        worker_states: Mapping[str, Any] | None = None,
        conversation_histories: Mapping[str, Any] | None = None,
    ) -> PauseResult:
        """Block future dispatch for ``ticket_id`` and persist its run state.

        Already-running agent processes are not interrupted.
        """
        located = await self._lookup(ticket_id)
        if located is None:
            return PauseResult(
                success=False, ticket_id=ticket_id, error=_missing_ticket_message(ticket_id)
            )
        status = located.ticket.status
        if status.is_terminal:
            return PauseResult(
                success=False,
                ticket_id=ticket_id,
                previous_status=status,
                new_status=status,
                error=f"cannot pause a ticket in {status.value} state",
            )

        state = RunState(
            run_id=run_id or generate_run_id(),
            ticket_id=ticket_id,
            status=RunStateStatus.PAUSED,
            worker_states=dict(worker_states or {}),
            conversation_histories=dict(conversation_histories or {}),
        )
        if isinstance(located.ticket, GrandchildTicket) and located.ticket.git_branch:
            state.git_branches[ticket_id] = located.ticket.git_branch
        await asyncio.to_thread(self._run_store.save_run_state, state)

        self._logger.info("ticket_paused", ticket_id=ticket_id, run_id=state.run_id)
        return PauseResult(
            success=True,
            ticket_id=ticket_id,
            previous_status=status,
            new_status=status,
            run_id=state.run_id,
            message="ticket execution paused",
            saved_worker_states=tuple(state.worker_states),
            saved_conversation_histories=tuple(state.conversation_histories),
        )

    async def resume_ticket(self, ticket_id: str, *, run_id: str | None = None) -> ResumeResult:
        located = await self._lookup(ticket_id)
        if located is None:
            return ResumeResult(
                success=False, ticket_id=ticket_id, error=_missing_ticket_message(ticket_id)
            )
        status = located.ticket.status
        if status.is_terminal:
            return ResumeResult(
                success=False,
                ticket_id=ticket_id,
                previous_status=status,
                new_status=status,
                error=f"cannot resume a ticket in {status.value} state",
            )

        state = await asyncio.to_thread(self._paused_state_for, ticket_id, run_id)
        if state is None:
            return ResumeResult(
                success=True,
                ticket_id=ticket_id,
                previous_status=status,
                new_status=status,
                message="ticket execution resumed (no paused run state found)",
            )

        state.status = RunStateStatus.RUNNING
        await asyncio.to_thread(self._run_store.save_run_state, state)
        self._logger.info("ticket_resumed", ticket_id=ticket_id, run_id=state.run_id)
        return ResumeResult(
            success=True,
            ticket_id=ticket_id,
            previous_status=status,
            new_status=status,
            run_id=state.run_id,
            message="ticket execution resumed (run state restored)",
            restored_worker_states=tuple(state.worker_states),
            restored_conversation_histories=tuple(state.conversation_histories),
        )

    async def is_dispatch_blocked(self, ticket_id: str) -> bool:
        """True while ``ticket_id`` or one of its ancestors is paused."""
        candidates = [ticket_id]
        if ticket_level(ticket_id) is TicketLevel.GRANDCHILD:
            candidates.append(child_ticket_id_of(ticket_id))
        if ticket_level(ticket_id) in (TicketLevel.GRANDCHILD, TicketLevel.CHILD):
            candidates.append(parent_ticket_id_of(ticket_id))
        for candidate in candidates:
            state = await asyncio.to_thread(self._run_store.find_run_state_for_ticket, candidate)
            if state is not None and state.status is RunStateStatus.PAUSED:
                return True
        return False

    # ------------------------------------------------------------------
    # dispatch

    async def dispatch_grandchild(
        self,
        ticket_id: str,
        workspace_path: str | Path,
        *,
        agent: str | None = None,
        prompt: str | None = None,
        model: str | None = None,
        waiver_id: str | None = None,
    ) -> DispatchOutcome:
        """Run one grandchild through agent, QA, and judgment, then propagate."""
        if self._registry is None or self._judgment is None:
            raise RuntimeError("dispatch requires an agent registry and a judgment engine")

        grandchild = await self.get_grandchild_ticket(ticket_id)
        if grandchild is None:
            raise NotFoundError(f"grandchild ticket not found: {ticket_id}")
        if grandchild.status.is_terminal:
            raise ValidationError(
                f"cannot dispatch {ticket_id}: ticket is in {grandchild.status.value} state"
            )
        if await self.is_dispatch_blocked(ticket_id):
            raise ValidationError(f"cannot dispatch {ticket_id}: ticket is paused")

        adapter = self._registry.select_adapter(agent or self._preferred_agent)
        run_id = generate_run_id()
        workspace = str(workspace_path)
        options = CodingTaskOptions(
            workspace_path=workspace,
            prompt=prompt or build_task_prompt(grandchild),
            model=model,
        )

        with correlation_scope(ticket_id=ticket_id, run_id=run_id, agent=adapter.name):
            await self.update_ticket_status(ticket_id, TicketStatus.IN_PROGRESS)
            started_at = utc_now_iso()
            agent_result: CodingTaskResult | None = None
            qa_report: QAReport | None = None
            result_saved = False
            try:
                agent_result = await adapter.execute(options)
                if self._qa_runner is not None:
                    qa_report = await self._qa_runner.run(workspace)
                await asyncio.to_thread(
                    self._run_store.save_result,
                    run_id,
                    _run_payload(
                        run_id=run_id,
                        ticket_id=ticket_id,
                        agent_name=adapter.name,
                        started_at=started_at,
                        status=RUN_STATUS_SUCCESS if agent_result.success else RUN_STATUS_FAILURE,
                        agent_result=agent_result,
                        qa_report=qa_report,
                    ),
                )
                result_saved = True
                judgment = await asyncio.to_thread(
                    self._judgment.execute_judgment, run_id, waiver_id
                )
            except Exception as exc:
                # The ticket leaves IN_PROGRESS before any further I/O can fail.
                await self.update_ticket_status(ticket_id, TicketStatus.FAILED)
                self._logger.warning(
                    "dispatch_failed",
                    ticket_id=ticket_id,
                    code=_error_summary(exc)["code"],
                    result_saved=result_saved,
                )
                if not result_saved:
                    await asyncio.to_thread(
                        self._run_store.save_result,
                        run_id,
                        _run_payload(
                            run_id=run_id,
                            ticket_id=ticket_id,
                            agent_name=adapter.name,
                            started_at=started_at,
                            status=RUN_STATUS_FAILURE,
                            agent_result=agent_result,
                            qa_report=qa_report,
                            error=exc,
                        ),
                    )
                raise

            final_status = (
                TicketStatus.COMPLETED if judgment.passed else TicketStatus.REVISION_REQUIRED
            )
            await self._record_dispatch(ticket_id, final_status, agent_result.files_changed)

        self._logger.info(
            "dispatch_finished",
            ticket_id=ticket_id,
            run_id=run_id,
            verdict=judgment.status.value,
            final_status=final_status.value,
        )
        return DispatchOutcome(
            ticket_id=ticket_id,
            run_id=run_id,
            agent_name=adapter.name,
            agent_result=agent_result,
            judgment=judgment,
            final_status=final_status,
            qa_report=qa_report,
        )

    async def dispatch_many(
        self,
        ticket_ids: Sequence[str],
        workspace_for: Callable[[str], str | Path],
        *,
        agent: str | None = None,
    ) -> list[TaskOutcome[DispatchOutcome]]:
        """Dispatch concurrently; each outcome carries its result or its error."""
        pool: WorkerPool[DispatchOutcome] = WorkerPool(
            max_concurrency=self._max_concurrent_dispatch
        )
        return await pool.gather(
            self.dispatch_grandchild(ticket_id, workspace_for(ticket_id), agent=agent)
            for ticket_id in ticket_ids
        )

    # ------------------------------------------------------------------
    # persistence

    async def load_tickets(self, project_id: str) -> TicketFile:
        """Replace the in-memory tree for ``project_id`` with the stored one."""
        async with self._locks.hold(project_id):
            tree, _ = await asyncio.to_thread(self._load_tree, project_id)
            self._trees[project_id] = tree
        return tree

    async def save_tickets(self, project_id: str) -> Path:
        async with self._locks.hold(project_id):
            tree = self._trees.get(project_id)
            path: Path | None = None
            if tree is None:
                tree, path = await asyncio.to_thread(self._load_tree, project_id)
                self._trees[project_id] = tree
            return await asyncio.to_thread(self._store.save, tree, path=path)

    # ------------------------------------------------------------------
    # internals

    @asynccontextmanager
    async def _transaction(self, project_id: str) -> AsyncIterator[TicketFile]:
        """Fresh tree under the project lock; saved only if the body succeeds."""
        async with self._locks.hold(project_id):
            tree, path = await asyncio.to_thread(self._load_tree, project_id)
            yield tree
            await asyncio.to_thread(self._store.save, tree, path=path)
            self._trees[project_id] = tree

    def _load_tree(self, project_id: str) -> tuple[TicketFile, Path | None]:
        path = self._store.resolve_path(project_id)
        tree = self._store.load(project_id)
        # A name-normalized match may belong to another project ("app" for "app-2").
        if tree is None or tree.project_id != project_id:
            return TicketFile(project_id=project_id), None
        return tree, path

    async def _cached_tree(self, project_id: str) -> TicketFile:
        tree = self._trees.get(project_id)
        if tree is None:
            tree = await self.load_tickets(project_id)
        return tree

    async def _lookup(self, ticket_id: str) -> _Located | None:
        project = project_id_from_ticket_id(ticket_id)
        if project is None:
            return None
        return _locate(await self._cached_tree(project), ticket_id)

    def _project_for(self, ticket_id: str, expected: TicketLevel | None = None) -> str:
        level = ticket_level(ticket_id)
        project = project_id_from_ticket_id(ticket_id)
        if level is None or project is None or (expected is not None and level is not expected):
            label = f"{expected.value} " if expected is not None else ""
            raise NotFoundError(f"{label}ticket not found: {ticket_id}")
        return project

    def _paused_state_for(self, ticket_id: str, run_id: str | None) -> RunState | None:
        if run_id:
            state = self._run_store.load_run_state(run_id)
            if state is None or state.ticket_id != ticket_id:
                return None
        else:
            state = self._run_store.find_run_state_for_ticket(ticket_id)
        if state is None or state.status is not RunStateStatus.PAUSED:
            return None
        return state

    async def _record_dispatch(
        self, ticket_id: str, status: TicketStatus, files_changed: Sequence[str]
    ) -> None:
        project = self._project_for(ticket_id, TicketLevel.GRANDCHILD)
        async with self._transaction(project) as tree:
            located = _locate(tree, ticket_id)
            if located is None or located.grandchild is None:
                raise NotFoundError(f"grandchild ticket not found: {ticket_id}")
            grandchild = located.grandchild
            for path in files_changed:
                if path not in grandchild.artifacts:
                    grandchild.artifacts.append(path)
            _set_status(grandchild, status)
            rederive_ancestors(located.parent, located.child)


def build_task_prompt(ticket: GrandchildTicket) -> str:
    lines = [f"# {ticket.title}"]
    if ticket.description:
        lines.extend(["", ticket.description])
    if ticket.acceptance_criteria:
        lines.extend(["", "## Acceptance criteria"])
        lines.extend(f"- {item}" for item in ticket.acceptance_criteria)
    return "\n".join(lines)


def _run_payload(
    *,
    run_id: str,
    ticket_id: str,
    agent_name: str,
    started_at: str,
    status: str,
    agent_result: CodingTaskResult | None = None,
    qa_report: QAReport | None = None,
    error: Exception | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "runId": run_id,
        "ticketId": ticket_id,
        "agent": agent_name,
        "startTime": started_at,
        "endTime": utc_now_iso(),
        "status": status,
        "logs": [],
        "artifacts": [] if agent_result is None else list(agent_result.files_changed),
    }
    if agent_result is not None:
        payload["agentResult"] = _agent_summary(agent_result)
    if qa_report is not None:
        payload["qa"] = qa_report.to_dict()
        payload["coverage"] = qa_report.test.coverage
    if error is not None:
        payload["error"] = _error_summary(error)
    return payload


def _error_summary(error: Exception) -> dict[str, str]:
    if isinstance(error, AgentCompanyError):
        return {"code": error.code, "detail": error.detail}
    return {"code": EXECUTION_ERROR, "detail": str(error) or type(error).__name__}


def _agent_summary(result: CodingTaskResult) -> dict[str, Any]:
    summary = result.to_dict()
    summary["output"] = result.output[-RAW_EXCERPT_LIMIT:]
    summary["errorOutput"] = result.error_output[-RAW_EXCERPT_LIMIT:]
    return summary


def _find_parent(tree: TicketFile, parent_id: str) -> ParentTicket | None:
    return next((item for item in tree.parent_tickets if item.id == parent_id), None)


def _locate(tree: TicketFile, ticket_id: str) -> _Located | None:
    level = ticket_level(ticket_id)
    if level is None:
        return None
    parent = _find_parent(tree, parent_ticket_id_of(ticket_id))
    if parent is None:
        return None
    if level is TicketLevel.PARENT:
        return _Located(level=level, parent=parent)

    child_id = ticket_id if level is TicketLevel.CHILD else child_ticket_id_of(ticket_id)
    child = next((item for item in parent.child_tickets if item.id == child_id), None)
    if child is None:
        return None
    if level is TicketLevel.CHILD:
        return _Located(level=level, parent=parent, child=child)

    grandchild = next((item for item in child.grandchild_tickets if item.id == ticket_id), None)
    if grandchild is None:
        return None
    return _Located(level=level, parent=parent, child=child, grandchild=grandchild)


def _set_status(ticket: Ticket, status: TicketStatus) -> None:
    ticket.status = status
    ticket.updated_at = utc_now_iso()


def _missing_ticket_message(ticket_id: str) -> str:
    return f"ticket {ticket_id} does not exist"


def _status_value(status: TicketStatus | None) -> str | None:
    return None if status is None else status.value


__all__ = [
    "DispatchOutcome",
    "PauseResult",
    "ResumeResult",
    "Ticket",
    "TicketEngine",
    "build_task_prompt",
]
