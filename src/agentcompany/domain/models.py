"""Dataclass domain models with strict validation and camelCase persistence mapping."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final, NoReturn

from agentcompany.errors import ValidationError

_MAX_TEXT: Final[int] = 65536


class TicketStatus(StrEnum):
    PENDING = "pending"
    DECOMPOSING = "decomposing"
    IN_PROGRESS = "in_progress"
    REVIEW_REQUESTED = "review_requested"
    REVISION_REQUIRED = "revision_required"
    COMPLETED = "completed"
    FAILED = "failed"
    PR_CREATED = "pr_created"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_success(self) -> bool:
        return self in SUCCESS_STATUSES


# pause/resume and dispatch are refused once a ticket reaches one of these.
TERMINAL_STATUSES: Final[frozenset[TicketStatus]] = frozenset(
    {TicketStatus.COMPLETED, TicketStatus.FAILED, TicketStatus.PR_CREATED}
)
SUCCESS_STATUSES: Final[frozenset[TicketStatus]] = frozenset(
    {TicketStatus.COMPLETED, TicketStatus.PR_CREATED}
)


class WorkerType(StrEnum):
    RESEARCH = "research"
    DESIGN = "design"
    DESIGNER = "designer"
    DEVELOPER = "developer"
    TEST = "test"
    REVIEWER = "reviewer"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and ``Z`` suffix."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_ticket_status(value: object, path: str = "status") -> TicketStatus:
    """Coerce ``value`` to ``TicketStatus`` or raise ``ValidationError``."""
    if isinstance(value, TicketStatus):
        return value
    if isinstance(value, str):
        try:
            return TicketStatus(value.strip())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in TicketStatus)
    _fail(path, f"invalid ticket status {value!r}; expected one of: {allowed}")


@dataclass(frozen=True, slots=True)
class TicketMetadata:
    priority: Priority = Priority.MEDIUM
    deadline: str | None = None
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"priority": self.priority.value, "tags": list(self.tags)}
        if self.deadline is not None:
            payload["deadline"] = self.deadline
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object] | None) -> TicketMetadata:
        if data is None:
            return cls()
        obj = _expect_object(data, "metadata")
        priority_raw = obj.get("priority", Priority.MEDIUM.value)
        try:
            priority = Priority(str(priority_raw))
        except ValueError:
            _fail("metadata.priority", f"invalid priority {priority_raw!r}")
        return cls(
            priority=priority,
            deadline=_as_optional_str(obj.get("deadline"), "metadata.deadline"),
            tags=_as_str_tuple(obj.get("tags", []), "metadata.tags"),
        )


@dataclass(slots=True)
class GrandchildTicket:
    """Atomic unit of work dispatched to a coding agent."""

    id: str
    parent_id: str
    title: str
    description: str
    acceptance_criteria: list[str]
    status: TicketStatus = TicketStatus.PENDING
    assignee: str | None = None
    git_branch: str | None = None
    artifacts: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "parentId": self.parent_id,
            "title": self.title,
            "description": self.description,
            "acceptanceCriteria": list(self.acceptance_criteria),
            "status": self.status.value,
            "artifacts": list(self.artifacts),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.assignee is not None:
            payload["assignee"] = self.assignee
        if self.git_branch is not None:
            payload["gitBranch"] = self.git_branch
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> GrandchildTicket:
        obj = _expect_object(data, "grandchildTicket")
        ticket_id = _as_str(obj.get("id"), "grandchildTicket.id")
        path = f"grandchildTicket[{ticket_id}]"
        return cls(
            id=ticket_id,
            parent_id=_as_str(obj.get("parentId"), f"{path}.parentId"),
            title=_as_str(obj.get("title"), f"{path}.title"),
            description=_as_str(obj.get("description", ""), f"{path}.description", min_len=0),
            acceptance_criteria=list(
                _as_str_tuple(obj.get("acceptanceCriteria", []), f"{path}.acceptanceCriteria")
            ),
            status=parse_ticket_status(obj.get("status"), f"{path}.status"),
            assignee=_as_optional_str(obj.get("assignee"), f"{path}.assignee"),
            git_branch=_as_optional_str(obj.get("gitBranch"), f"{path}.gitBranch"),
            artifacts=list(_as_str_tuple(obj.get("artifacts", []), f"{path}.artifacts")),
            created_at=_as_str(obj.get("createdAt"), f"{path}.createdAt"),
            updated_at=_as_str(obj.get("updatedAt"), f"{path}.updatedAt"),
        )


@dataclass(slots=True)
class ChildTicket:
    """Worker-type scoped slice of a parent ticket."""

    id: str
    parent_id: str
    title: str
    description: str
    worker_type: WorkerType
    status: TicketStatus = TicketStatus.PENDING
    grandchild_tickets: list[GrandchildTicket] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "workerType": self.worker_type.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "grandchildTickets": [item.to_dict() for item in self.grandchild_tickets],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ChildTicket:
        obj = _expect_object(data, "childTicket")
        ticket_id = _as_str(obj.get("id"), "childTicket.id")
        path = f"childTicket[{ticket_id}]"
        return cls(
            id=ticket_id,
            parent_id=_as_str(obj.get("parentId"), f"{path}.parentId"),
            title=_as_str(obj.get("title"), f"{path}.title"),
            description=_as_str(obj.get("description", ""), f"{path}.description", min_len=0),
            worker_type=parse_worker_type(obj.get("workerType"), f"{path}.workerType"),
            status=parse_ticket_status(obj.get("status"), f"{path}.status"),
            grandchild_tickets=[
                GrandchildTicket.from_dict(_expect_object(item, f"{path}.grandchildTickets"))
                for item in _as_list(obj.get("grandchildTickets", []), f"{path}.grandchildTickets")
            ],
            created_at=_as_str(obj.get("createdAt"), f"{path}.createdAt"),
            updated_at=_as_str(obj.get("updatedAt"), f"{path}.updatedAt"),
        )


@dataclass(slots=True)
class ParentTicket:
    """Top-level ticket created from one instruction."""

    id: str
    project_id: str
    instruction: str
    status: TicketStatus = TicketStatus.PENDING
    metadata: TicketMetadata = field(default_factory=TicketMetadata)
    child_tickets: list[ChildTicket] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "instruction": self.instruction,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "childTickets": [item.to_dict() for item in self.child_tickets],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ParentTicket:
        obj = _expect_object(data, "parentTicket")
        ticket_id = _as_str(obj.get("id"), "parentTicket.id")
        path = f"parentTicket[{ticket_id}]"
        metadata_raw = obj.get("metadata")
        return cls(
            id=ticket_id,
            project_id=_as_str(obj.get("projectId"), f"{path}.projectId"),
            instruction=_as_str(obj.get("instruction"), f"{path}.instruction"),
            status=parse_ticket_status(obj.get("status"), f"{path}.status"),
            metadata=TicketMetadata.from_dict(
                None if metadata_raw is None else _expect_object(metadata_raw, f"{path}.metadata")
            ),
            child_tickets=[
                ChildTicket.from_dict(_expect_object(item, f"{path}.childTickets"))
                for item in _as_list(obj.get("childTickets", []), f"{path}.childTickets")
            ],
            created_at=_as_str(obj.get("createdAt"), f"{path}.createdAt"),
            updated_at=_as_str(obj.get("updatedAt"), f"{path}.updatedAt"),
        )


@dataclass(slots=True)
class TicketFile:
    """Persisted ticket tree for one project."""

    project_id: str
    parent_tickets: list[ParentTicket] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "parentTickets": [item.to_dict() for item in self.parent_tickets],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TicketFile:
        obj = _expect_object(data, "ticketFile")
        return cls(
            project_id=_as_str(obj.get("projectId"), "ticketFile.projectId"),
            parent_tickets=[
                ParentTicket.from_dict(_expect_object(item, "ticketFile.parentTickets"))
                for item in _as_list(obj.get("parentTickets", []), "ticketFile.parentTickets")
            ],
            last_updated=_as_str(obj.get("lastUpdated", utc_now_iso()), "ticketFile.lastUpdated"),
        )


@dataclass(frozen=True, slots=True)
class ChildTicketSpec:
    """Validated input for ``create_child_ticket``."""

    title: str
    description: str
    worker_type: WorkerType

    @classmethod
    def create(cls, *, title: object, description: object, worker_type: object) -> ChildTicketSpec:
        return cls(
            title=_as_str(title, "title"),
            description=_as_str(description or "", "description", min_len=0),
            worker_type=parse_worker_type(worker_type, "workerType"),
        )


@dataclass(frozen=True, slots=True)
class GrandchildTicketSpec:
    """Validated input for ``create_grandchild_ticket``."""

    title: str
    description: str
    acceptance_criteria: tuple[str, ...]
    assignee: str | None = None
    git_branch: str | None = None

    @classmethod
    def create(
        cls,
        *,
        title: object,
        description: object,
        acceptance_criteria: object,
        assignee: object = None,
        git_branch: object = None,
    ) -> GrandchildTicketSpec:
        if not isinstance(acceptance_criteria, (list, tuple)):
            _fail("acceptanceCriteria", "must be a list of strings")
        criteria = tuple(
            text
            for text in (
                _as_str(item, f"acceptanceCriteria[{index}]", min_len=0)
                for index, item in enumerate(acceptance_criteria)
            )
            if text
        )
        return cls(
            title=_as_str(title, "title"),
            description=_as_str(description or "", "description", min_len=0),
            acceptance_criteria=criteria,
            assignee=_as_optional_str(assignee, "assignee"),
            git_branch=_as_optional_str(git_branch, "gitBranch"),
        )


@dataclass(frozen=True, slots=True)
class CodingTaskOptions:
    """Input for one coding agent invocation."""

    workspace_path: str
    prompt: str
    model: str | None = None
    allowed_tools: tuple[str, ...] = ()
    timeout_seconds: float | None = None
    system_prompt: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CodingTaskResult:
    """Normalized outcome of a finished (non-timed-out) agent subprocess."""

    success: bool
    output: str
    error_output: str
    exit_code: int
    duration_ms: int
    files_changed: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            _fail("durationMs", "must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "errorOutput": self.error_output,
            "exitCode": self.exit_code,
            "durationMs": self.duration_ms,
            "filesChanged": list(self.files_changed),
        }


@dataclass(frozen=True, slots=True)
class QAParseResult:
    """Structured test-runner summary; ``coverage`` is -1 when unknown."""

    parsed: bool
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    coverage: float = -1.0
    raw_excerpt: str = ""

    @property
    def all_passed(self) -> bool:
        return self.parsed and self.failed == 0 and self.total > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "parsed": self.parsed,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "coverage": self.coverage,
            "rawExcerpt": self.raw_excerpt,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> QAParseResult:
        obj = _expect_object(data, "qa.test")
        return cls(
            parsed=bool(obj.get("parsed", False)),
            total=_as_count(obj.get("total", 0), "qa.test.total"),
            passed=_as_count(obj.get("passed", 0), "qa.test.passed"),
            failed=_as_count(obj.get("failed", 0), "qa.test.failed"),
            skipped=_as_count(obj.get("skipped", 0), "qa.test.skipped"),
            coverage=_as_coverage(obj.get("coverage", -1), "qa.test.coverage"),
            raw_excerpt=str(obj.get("rawExcerpt", "")),
        )


@dataclass(frozen=True, slots=True)
class EslintParseResult:
    """Structured linter summary; ``passed`` depends on errors only."""

    parsed: bool
    passed: bool
    error_count: int = 0
    warning_count: int = 0
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "parsed": self.parsed,
            "passed": self.passed,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> EslintParseResult:
        obj = _expect_object(data, "qa.lint")
        error_count = _as_count(obj.get("errorCount", 0), "qa.lint.errorCount")
        return cls(
            parsed=bool(obj.get("parsed", False)),
            passed=bool(obj.get("passed", error_count == 0)),
            error_count=error_count,
            warning_count=_as_count(obj.get("warningCount", 0), "qa.lint.warningCount"),
            details=str(obj.get("details", "")),
        )


def parse_worker_type(value: object, path: str = "workerType") -> WorkerType:
    if isinstance(value, WorkerType):
        return value
    if isinstance(value, str):
        try:
            return WorkerType(value.strip())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in WorkerType)
    _fail(path, f"invalid worker type {value!r}; expected one of: {allowed}")


def _fail(path: str, message: str) -> NoReturn:
    raise ValidationError(f"{path}: {message}")


def _expect_object(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item
    return parsed


def _as_list(value: object, path: str) -> list[object]:
    if not isinstance(value, list):
        _fail(path, f"expected array, got {type(value).__name__}")
    return value


def _as_str(value: object, path: str, *, min_len: int = 1, max_len: int = _MAX_TEXT) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if len(normalized) < min_len:
        _fail(path, "must not be empty")
    if len(normalized) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return normalized


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    normalized = _as_str(value, path, min_len=0)
    return normalized or None


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        _fail(path, f"expected array of strings, got {type(value).__name__}")
    return tuple(_as_str(item, f"{path}[{index}]", min_len=0) for index, item in enumerate(value))


def _as_count(value: object, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if value < 0:
        _fail(path, "must be >= 0")
    return value


def _as_coverage(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    return float(value)


__all__ = [
    "SUCCESS_STATUSES",
    "TERMINAL_STATUSES",
    "ChildTicket",
    "ChildTicketSpec",
    "CodingTaskOptions",
    "CodingTaskResult",
    "EslintParseResult",
    "GrandchildTicket",
    "GrandchildTicketSpec",
    "ParentTicket",
    "Priority",
    "QAParseResult",
    "TicketFile",
    "TicketMetadata",
    "TicketStatus",
    "WorkerType",
    "parse_ticket_status",
    "parse_worker_type",
    "utc_now_iso",
]
