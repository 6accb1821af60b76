"""Unit tests for run results, judgments, and pause-state snapshots."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentcompany.errors import ValidationError
from agentcompany.persistence.run_store import RunState, RunStateStatus, RunStore
from agentcompany.utils.fs import write_json_atomic


def _store(tmp_path: Path) -> RunStore:
    return RunStore(tmp_path / "runs", tmp_path / "state")


def test_result_and_judgment_live_in_the_run_directory(tmp_path: Path) -> None:
    store = _store(tmp_path)
    result_path = store.save_result("run-1", {"status": "success"})
    judgment_path = store.save_judgment("run-1", {"status": "PASS"})

    assert result_path == tmp_path / "runs" / "run-1" / "result.json"
    assert judgment_path.parent == result_path.parent
    assert store.load_result("run-1") == {"status": "success"}
    assert store.load_judgment("run-1") == {"status": "PASS"}
    assert store.load_result("run-2") is None


def test_run_ids_cannot_escape_the_runs_directory(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(ValidationError, match="invalid run id"):
        store.load_result("../etc")
    with pytest.raises(ValidationError, match="invalid run id"):
        store.save_result("..", {})


def test_run_state_round_trip_uses_camel_case(tmp_path: Path) -> None:
    store = _store(tmp_path)
    state = RunState(
        run_id="run-1",
        ticket_id="webapp-0001-01-001",
        status=RunStateStatus.PAUSED,
        git_branches={"developer": "feature/x"},
    )
    path = store.save_run_state(state)

    assert path == tmp_path / "state" / "run-1" / "state.json"
    loaded = store.load_run_state("run-1")
    assert loaded is not None
    assert loaded.status is RunStateStatus.PAUSED
    assert loaded.git_branches == {"developer": "feature/x"}
    assert loaded.to_dict()["ticketId"] == "webapp-0001-01-001"


def test_find_run_state_prefers_most_recent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    stamps = {"run-a": "2026-01-02T00:00:00.000Z", "run-b": "2026-01-01T00:00:00.000Z"}
    for run_id, stamp in stamps.items():
        state = RunState(
            run_id=run_id,
            ticket_id="t-0001",
            status=RunStateStatus.PAUSED,
            last_updated=stamp,
        )
        # save_run_state stamps the current time, so write the snapshot directly.
        write_json_atomic(tmp_path / "state" / run_id / "state.json", state.to_dict())

    found = store.find_run_state_for_ticket("t-0001")
    assert found is not None
    assert found.run_id == "run-a"
    assert store.find_run_state_for_ticket("t-0002") is None


def test_invalid_run_state_status_is_rejected() -> None:
    with pytest.raises(ValidationError, match="run state status invalid"):
        RunState.from_dict({"runId": "r", "ticketId": "t", "status": "sleeping"})
