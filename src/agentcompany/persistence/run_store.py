"""Per-run artifacts: agent/QA results, judgments, and pause state.

Layout::

    <runs_dir>/<runId>/result.json        run result with QA evidence
    <runs_dir>/<runId>/judgment.json      verdict, written next to the result
    <run_state_dir>/<runId>/state.json    pause/resume snapshot
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from agentcompany.constants import JUDGMENT_FILENAME, RUN_RESULT_FILENAME, RUN_STATE_FILENAME
from agentcompany.domain.models import utc_now_iso
from agentcompany.errors import ValidationError
from agentcompany.utils.fs import read_json_object, write_json_atomic


class RunStateStatus(StrEnum):
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(slots=True)
class RunState:
    run_id: str
    ticket_id: str
    status: RunStateStatus
    worker_states: dict[str, Any] = field(default_factory=dict)
    conversation_histories: dict[str, Any] = field(default_factory=dict)
    git_branches: dict[str, str] = field(default_factory=dict)
    last_updated: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "ticketId": self.ticket_id,
            "status": self.status.value,
            "workerStates": dict(self.worker_states),
            "conversationHistories": dict(self.conversation_histories),
            "gitBranches": dict(self.git_branches),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RunState:
        try:
            status = RunStateStatus(str(data.get("status")))
        except ValueError as exc:
            raise ValidationError(f"run state status invalid: {data.get('status')!r}") from exc
        run_id = data.get("runId")
        ticket_id = data.get("ticketId")
        if not isinstance(run_id, str) or not isinstance(ticket_id, str):
            raise ValidationError("run state requires string runId and ticketId")
        return cls(
            run_id=run_id,
            ticket_id=ticket_id,
            status=status,
            worker_states=_as_dict(data.get("workerStates")),
            conversation_histories=_as_dict(data.get("conversationHistories")),
            git_branches={
                str(key): str(value) for key, value in _as_dict(data.get("gitBranches")).items()
            },
            last_updated=str(data.get("lastUpdated") or utc_now_iso()),
        )


class RunStore:
    """Filesystem-backed store for run results, judgments, and pause state."""

    def __init__(self, runs_dir: str | Path, run_state_dir: str | Path) -> None:
        self._runs_dir = Path(runs_dir)
        self._state_dir = Path(run_state_dir)

    @property
    def runs_dir(self) -> Path:
        return self._runs_dir

    def run_dir(self, run_id: str) -> Path:
        return self._runs_dir / _safe_segment(run_id)

    def load_result(self, run_id: str) -> dict[str, Any] | None:
        return self._read(self.run_dir(run_id) / RUN_RESULT_FILENAME)

    def save_result(self, run_id: str, payload: Mapping[str, object]) -> Path:
        target = self.run_dir(run_id) / RUN_RESULT_FILENAME
        write_json_atomic(target, dict(payload))
        return target

    def load_judgment(self, run_id: str) -> dict[str, Any] | None:
        return self._read(self.run_dir(run_id) / JUDGMENT_FILENAME)

    def save_judgment(self, run_id: str, payload: Mapping[str, object]) -> Path:
        target = self.run_dir(run_id) / JUDGMENT_FILENAME
        write_json_atomic(target, dict(payload))
        return target

    def load_run_state(self, run_id: str) -> RunState | None:
        payload = self._read(self._state_dir / _safe_segment(run_id) / RUN_STATE_FILENAME)
        if payload is None:
            return None
        return RunState.from_dict(payload)

    def save_run_state(self, state: RunState) -> Path:
        state.last_updated = utc_now_iso()
        target = self._state_dir / _safe_segment(state.run_id) / RUN_STATE_FILENAME
        write_json_atomic(target, state.to_dict())
        return target

    def find_run_state_for_ticket(self, ticket_id: str) -> RunState | None:
        """Most recently updated run state recorded for ``ticket_id``."""
        if not self._state_dir.is_dir():
            return None
        matches: list[RunState] = []
        for state_file in self._state_dir.glob(f"*/{RUN_STATE_FILENAME}"):
            try:
                payload = read_json_object(state_file)
                state = None if payload is None else RunState.from_dict(payload)
            except ValueError:
                continue
            if state is not None and state.ticket_id == ticket_id:
                matches.append(state)
        if not matches:
            return None
        return max(matches, key=lambda item: (item.last_updated, item.run_id))

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            return read_json_object(path)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


def _safe_segment(value: str) -> str:
    normalized = value.strip()
    if not normalized or normalized in {".", ".."} or "/" in normalized or "\\" in normalized:
        raise ValidationError(f"invalid run id {value!r}")
    return normalized


def _as_dict(value: object) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(key): item for key, item in value.items()}
    return {}


__all__ = ["RunState", "RunStateStatus", "RunStore"]
