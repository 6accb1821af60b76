"""Command-line interface router for agentcompany."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from functools import cached_property
from pathlib import Path
from typing import Any, Final

from agentcompany.coding_agents import AgentRegistry, create_default_registry
from agentcompany.config import ConfigLoadError, ConfigValidationError, load_config
from agentcompany.domain.ids import generate_ulid
from agentcompany.domain.models import (
    ChildTicket,
    ParentTicket,
    Priority,
    TicketMetadata,
)
from agentcompany.errors import AgentCompanyError
from agentcompany.observability import (
    correlation_scope,
    flush_logging,
    setup_logging,
    shutdown_logging,
)
from agentcompany.persistence import RunStore, TicketStore
from agentcompany.quality import (
    JudgmentEngine,
    QARunner,
    WaiverRepository,
    format_judgment,
    format_validation_result,
    validate_waiver_file,
)
from agentcompany.tickets import TicketEngine, load_decomposition_plan
from agentcompany.ui.render import CLIRenderer, create_renderer

EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
_INSTRUCTION_PREVIEW: Final[int] = 60


class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    def __init__(self, message: str, exit_code: int = EXIT_FAILURE) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


@dataclass
class _Session:
    """Per-invocation wiring: effective config plus lazily built services."""

    repo_root: Path
    config: Mapping[str, Any]
    renderer: CLIRenderer
    json_output: bool = False
    today: date = field(default_factory=date.today)

    def _path(self, key: str) -> Path:
        return Path(str(self.config["paths"][key]))

    @cached_property
    def ticket_store(self) -> TicketStore:
        return TicketStore(self._path("tickets_dir"))

    @cached_property
    def run_store(self) -> RunStore:
        return RunStore(self._path("runs_dir"), self._path("run_state_dir"))

    @cached_property
    def waivers(self) -> WaiverRepository:
        return WaiverRepository(self._path("waivers_dir"))

    @cached_property
    def judgment_engine(self) -> JudgmentEngine:
        return JudgmentEngine(
            self.run_store,
            self.waivers,
            coverage_threshold=float(self.config["judgment"]["coverage_threshold"]),
        )

    @cached_property
    def registry(self) -> AgentRegistry:
        return create_default_registry(self.config["agents"])

    @cached_property
    def qa_runner(self) -> QARunner:
        qa = self.config["qa"]
        return QARunner(
            test_command=qa["test_command"],
            lint_command=qa["lint_command"],
            timeout_seconds=float(qa["timeout_seconds"]),
            kill_grace_seconds=float(self.config["agents"]["kill_grace_seconds"]),
        )

    @cached_property
    def engine(self) -> TicketEngine:
        agents = self.config["agents"]
        return TicketEngine(
            self.ticket_store,
            self.run_store,
            registry=self.registry,
            qa_runner=self.qa_runner,
            judgment_engine=self.judgment_engine,
            preferred_agent=agents["preferred"] or None,
            max_concurrent_dispatch=int(agents["max_concurrent_dispatch"]),
        )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="agentcompany",
        description=(
            "agentcompany: ticket hierarchy, coding-agent dispatch, and quality judgment.\n\n"
            "Common workflows:\n"
            "  agentcompany ticket create shop 'Build the cart'\n"
            "  agentcompany ticket decompose shop-0001 plan.yaml\n"
            "  agentcompany ticket dispatch shop-0001-01-001 ./workspace\n"
            "  agentcompany judge run-01J... --waiver WAIVER-001\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: <repo-root>/agentcompany.toml if present).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ticket --------------------------------------------------------------
    ticket_parser = subparsers.add_parser("ticket", help="Create, inspect, and drive tickets")
    ticket_sub = ticket_parser.add_subparsers(dest="ticket_command", required=True)

    create_parser = ticket_sub.add_parser(
        "create", parents=[common], help="Create a parent ticket for a project"
    )
    create_parser.add_argument("project", help="Project identifier")
    create_parser.add_argument("instruction", help="Top-level instruction for the ticket")
    create_parser.add_argument(
        "--priority",
        choices=[item.value for item in Priority],
        default=Priority.MEDIUM.value,
        help="Ticket priority (default: medium)",
    )
    create_parser.add_argument(
        "--deadline", type=_iso_date, default=None, help="Deadline as YYYY-MM-DD"
    )
    create_parser.add_argument(
        "--tag", dest="tags", action="append", default=[], help="Tag (repeatable)"
    )
    create_parser.set_defaults(handler=_cmd_ticket_create)

    list_parser = ticket_sub.add_parser(
        "list", parents=[common], help="List parent tickets of a project"
    )
    list_parser.add_argument("project", help="Project identifier")
    list_parser.set_defaults(handler=_cmd_ticket_list)

    status_parser = ticket_sub.add_parser(
        "status", parents=[common], help="Show one ticket at any level"
    )
    status_parser.add_argument("ticket_id", help="Parent, child, or grandchild ticket id")
    status_parser.set_defaults(handler=_cmd_ticket_status)

    pause_parser = ticket_sub.add_parser(
        "pause", parents=[common], help="Pause a ticket and persist its run state"
    )
    pause_parser.add_argument("ticket_id")
    pause_parser.add_argument("--run-id", default=None, help="Run to attach the pause to")
    pause_parser.set_defaults(handler=_cmd_ticket_pause)

    resume_parser = ticket_sub.add_parser(
        "resume", parents=[common], help="Resume a paused ticket"
    )
    resume_parser.add_argument("ticket_id")
    resume_parser.add_argument("--run-id", default=None, help="Run whose state is restored")
    resume_parser.set_defaults(handler=_cmd_ticket_resume)

    decompose_parser = ticket_sub.add_parser(
        "decompose",
        parents=[common],
        help="Create children and grandchildren from a YAML plan",
    )
    decompose_parser.add_argument("parent_id", help="Parent ticket id")
    decompose_parser.add_argument("plan_path", help="Path to the decomposition plan (YAML)")
    decompose_parser.set_defaults(handler=_cmd_ticket_decompose)

    dispatch_parser = ticket_sub.add_parser(
        "dispatch",
        parents=[common],
        help="Run a grandchild ticket through a coding agent, QA, and judgment",
    )
    dispatch_parser.add_argument("ticket_id", help="Grandchild ticket id")
    dispatch_parser.add_argument("workspace", help="Workspace directory for the agent")
    dispatch_parser.add_argument("--agent", default=None, help="Adapter name to prefer")
    dispatch_parser.add_argument("--model", default=None, help="Model passed to the agent")
    dispatch_parser.add_argument("--waiver", default=None, help="Waiver id for judgment")
    dispatch_parser.set_defaults(handler=_cmd_ticket_dispatch)

    # judge ---------------------------------------------------------------
    judge_parser = subparsers.add_parser(
        "judge", parents=[common], help="Judge a recorded run and persist the verdict"
    )
    judge_parser.add_argument("run_id")
    judge_parser.add_argument("--waiver", default=None, help="Waiver id to apply on failure")
    judge_parser.set_defaults(handler=_cmd_judge)

    # waiver --------------------------------------------------------------
    waiver_parser = subparsers.add_parser("waiver", help="Validate and list waivers")
    waiver_sub = waiver_parser.add_subparsers(dest="waiver_command", required=True)

    waiver_validate = waiver_sub.add_parser(
        "validate", parents=[common], help="Validate one waiver document"
    )
    waiver_validate.add_argument("path", help="Path to the waiver markdown file")
    waiver_validate.set_defaults(handler=_cmd_waiver_validate)

    waiver_list = waiver_sub.add_parser(
        "list", parents=[common], help="List waivers sorted by deadline"
    )
    waiver_list.set_defaults(handler=_cmd_waiver_list)

    # agents --------------------------------------------------------------
    agents_parser = subparsers.add_parser(
        "agents", parents=[common], help="Detect installed coding agents"
    )
    agents_parser.set_defaults(handler=_cmd_agents)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    session_id = generate_ulid()
    try:
        session = _open_session(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code

    handle = setup_logging(
        session.config["observability"],
        session_id=session_id,
        log_dir=session.config["paths"]["log_dir"],
    )
    try:
        with correlation_scope(session_id=session_id):
            result = handler(namespace, session)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    except AgentCompanyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        flush_logging(handle)
        if handle.dropped_records:
            print(f"warning: {handle.dropped_records} log records dropped", file=sys.stderr)
        shutdown_logging(handle)
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_ticket_create(args: argparse.Namespace, session: _Session) -> int:
    metadata = TicketMetadata(
        priority=Priority(args.priority),
        deadline=args.deadline,
        tags=tuple(tag.strip() for tag in args.tags if tag.strip()),
    )
    ticket = asyncio.run(
        session.engine.create_parent_ticket(args.project, args.instruction, metadata=metadata)
    )
    if session.json_output:
        _emit_json(ticket.to_dict())
        return EXIT_SUCCESS

    renderer = session.renderer
    renderer.heading(f"Created ticket {ticket.id}")
    renderer.kv("Project", ticket.project_id)
    renderer.kv("Status", ticket.status.value)
    renderer.kv("Priority", ticket.metadata.priority.value)
    renderer.next_steps([f"agentcompany ticket decompose {ticket.id} plan.yaml"])
    return EXIT_SUCCESS


def _cmd_ticket_list(args: argparse.Namespace, session: _Session) -> int:
    tickets = asyncio.run(session.engine.list_tickets(args.project))
    if session.json_output:
        _emit_json({"projectId": args.project, "tickets": [item.to_dict() for item in tickets]})
        return EXIT_SUCCESS

    renderer = session.renderer
    if not tickets:
        renderer.text(f"No tickets for project {args.project}.")
        return EXIT_SUCCESS
    renderer.table(
        ("ID", "STATUS", "CHILDREN", "INSTRUCTION"),
        [
            (
                item.id,
                item.status.value,
                str(len(item.child_tickets)),
                _truncate(item.instruction, _INSTRUCTION_PREVIEW),
            )
            for item in tickets
        ],
        title=f"Tickets for {args.project}:",
    )
    return EXIT_SUCCESS


def _cmd_ticket_status(args: argparse.Namespace, session: _Session) -> int:
    engine = session.engine
    found = asyncio.run(engine.find_ticket(args.ticket_id))
    if found is None:
        raise CLIError(f"ticket not found: {args.ticket_id}")
    level, ticket = found
    blocked = asyncio.run(engine.is_dispatch_blocked(args.ticket_id))

    if session.json_output:
        _emit_json(
            {"level": level.value, "ticket": ticket.to_dict(), "dispatch_blocked": blocked}
        )
        return EXIT_SUCCESS

    renderer = session.renderer
    renderer.heading(f"{level.value.capitalize()} ticket {ticket.id}")
    renderer.kv("Status", ticket.status.value)
    renderer.kv("Updated", ticket.updated_at)
    if blocked:
        renderer.warning("dispatch is blocked: this ticket or an ancestor is paused")
    if isinstance(ticket, ParentTicket):
        renderer.kv("Instruction", ticket.instruction)
        _render_children(renderer, ticket.child_tickets)
    elif isinstance(ticket, ChildTicket):
        renderer.kv("Title", ticket.title)
        renderer.kv("Worker", ticket.worker_type.value)
        renderer.table(
            ("ID", "STATUS", "TITLE"),
            [(item.id, item.status.value, item.title) for item in ticket.grandchild_tickets],
            title="Grandchildren:",
        )
    else:
        renderer.kv("Title", ticket.title)
        renderer.section("Acceptance criteria:")
        renderer.items(ticket.acceptance_criteria)
        if ticket.artifacts:
            renderer.section("Artifacts:")
            renderer.items(ticket.artifacts)
    return EXIT_SUCCESS


def _cmd_ticket_pause(args: argparse.Namespace, session: _Session) -> int:
    result = asyncio.run(session.engine.pause_ticket(args.ticket_id, run_id=args.run_id))
    if session.json_output:
        _emit_json(result.to_dict())
    elif result.success:
        session.renderer.heading(result.message or f"Paused {args.ticket_id}")
        session.renderer.kv("Run ID", result.run_id)
        session.renderer.kv("Previous status", _status_text(result.previous_status))
    else:
        print(f"error: {result.error}", file=sys.stderr)
    return EXIT_SUCCESS if result.success else EXIT_FAILURE


def _cmd_ticket_resume(args: argparse.Namespace, session: _Session) -> int:
    result = asyncio.run(session.engine.resume_ticket(args.ticket_id, run_id=args.run_id))
    if session.json_output:
        _emit_json(result.to_dict())
    elif result.success:
        session.renderer.heading(result.message or f"Resumed {args.ticket_id}")
        session.renderer.kv("Run ID", result.run_id)
        session.renderer.kv("Status", _status_text(result.new_status))
    else:
        print(f"error: {result.error}", file=sys.stderr)
    return EXIT_SUCCESS if result.success else EXIT_FAILURE


def _cmd_ticket_decompose(args: argparse.Namespace, session: _Session) -> int:
    plan = load_decomposition_plan(_resolve_path(args.plan_path, session.repo_root))
    children = asyncio.run(session.engine.apply_decomposition(args.parent_id, plan))
    if session.json_output:
        _emit_json(
            {"parentId": args.parent_id, "childTickets": [item.to_dict() for item in children]}
        )
        return EXIT_SUCCESS

    renderer = session.renderer
    renderer.heading(
        f"Decomposed {args.parent_id}: {len(children)} child ticket(s), "
        f"{plan.grandchild_count} grandchild ticket(s)"
    )
    _render_children(renderer, children)
    return EXIT_SUCCESS


def _cmd_ticket_dispatch(args: argparse.Namespace, session: _Session) -> int:
    workspace = _resolve_path(args.workspace, session.repo_root)
    with correlation_scope(ticket_id=args.ticket_id):
        outcome = asyncio.run(
            session.engine.dispatch_grandchild(
                args.ticket_id,
                workspace,
                agent=args.agent,
                model=args.model,
                waiver_id=args.waiver,
            )
        )
    if session.json_output:
        _emit_json(outcome.to_dict())
    else:
        renderer = session.renderer
        renderer.heading(f"Dispatched {outcome.ticket_id} to {outcome.agent_name}")
        renderer.kv("Run ID", outcome.run_id)
        renderer.kv("Agent exit code", outcome.agent_result.exit_code)
        renderer.kv("Files changed", len(outcome.agent_result.files_changed))
        renderer.kv("Ticket status", outcome.final_status.value)
        renderer.blank()
        renderer.text(format_judgment(outcome.judgment))
    return EXIT_SUCCESS if outcome.judgment.passed else EXIT_FAILURE


def _cmd_judge(args: argparse.Namespace, session: _Session) -> int:
    with correlation_scope(run_id=args.run_id):
        judgment = session.judgment_engine.execute_judgment(
            args.run_id, args.waiver, today=session.today
        )
    if session.json_output:
        _emit_json(judgment.to_dict())
    else:
        session.renderer.text(format_judgment(judgment))
    return EXIT_SUCCESS if judgment.passed else EXIT_FAILURE


def _cmd_waiver_validate(args: argparse.Namespace, session: _Session) -> int:
    result = validate_waiver_file(
        _resolve_path(args.path, session.repo_root), today=session.today
    )
    if session.json_output:
        _emit_json(result.to_dict())
    else:
        session.renderer.text(format_validation_result(result))
    return EXIT_SUCCESS if result.valid else EXIT_FAILURE


def _cmd_waiver_list(args: argparse.Namespace, session: _Session) -> int:
    waivers = session.waivers.list_waivers(today=session.today)
    if session.json_output:
        _emit_json({"waivers": [item.to_dict() for item in waivers]})
        return EXIT_SUCCESS

    renderer = session.renderer
    if not waivers:
        renderer.text(f"No waivers in {session.waivers.waivers_dir.as_posix()}.")
        return EXIT_SUCCESS
    renderer.table(
        ("ID", "DEADLINE", "STATUS", "VALID", "OVERDUE"),
        [
            (
                item.waiver_id,
                item.deadline or "-",
                item.status.value,
                "yes" if item.valid else "no",
                "yes" if item.overdue else "no",
            )
            for item in waivers
        ],
        title="Waivers:",
    )
    return EXIT_SUCCESS


def _cmd_agents(args: argparse.Namespace, session: _Session) -> int:
    infos = session.registry.detect_all()
    if session.json_output:
        _emit_json({"agents": [item.to_dict() for item in infos]})
        return EXIT_SUCCESS

    renderer = session.renderer
    renderer.heading("Coding agents:")
    for info in infos:
        label = f"{info.name} ({info.command})"
        if info.available:
            renderer.ok(f"{label} {info.version or 'version unknown'}")
        else:
            renderer.fail(f"{label} not installed")
    if not any(item.available for item in infos):
        renderer.next_steps(["npm install -g @anthropic-ai/claude-code"])
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _open_session(args: argparse.Namespace) -> _Session:
    repo_root = _repo_root(args)
    return _Session(
        repo_root=repo_root,
        config=_load_effective_config(args, repo_root),
        renderer=_get_renderer(args),
        json_output=bool(getattr(args, "json", False)),
    )


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(
        no_color=bool(getattr(args, "no_color", False)),
        verbose=bool(getattr(args, "verbose", False)),
    )


def _render_children(renderer: CLIRenderer, children: Sequence[ChildTicket]) -> None:
    renderer.table(
        ("ID", "STATUS", "WORKER", "GRANDCHILDREN", "TITLE"),
        [
            (
                item.id,
                item.status.value,
                item.worker_type.value,
                str(len(item.grandchild_tickets)),
                item.title,
            )
            for item in children
        ],
        title="Children:",
    )


def _repo_root(args: argparse.Namespace) -> Path:
    candidate = Path(str(getattr(args, "repo_root", "."))).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}")
    return candidate


def _load_effective_config(args: argparse.Namespace, repo_root: Path) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    try:
        return load_config(config_path, repo_root=repo_root)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc)) from exc


def _resolve_path(path_arg: str, repo_root: Path) -> Path:
    candidate = Path(path_arg).expanduser()
    return candidate.resolve() if candidate.is_absolute() else (repo_root / candidate).resolve()


def _iso_date(raw: str) -> str:
    try:
        return date.fromisoformat(raw).isoformat()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from exc


def _status_text(status: object) -> str:
    value = getattr(status, "value", status)
    return "-" if value is None else str(value)


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


__all__ = ["CLIError", "build_parser", "run_cli"]
