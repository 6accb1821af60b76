"""Unit tests for hierarchical ticket ids and run ids."""

from __future__ import annotations

import pytest

from agentcompany.domain.ids import (
    TicketLevel,
    child_ticket_id_of,
    generate_run_id,
    generate_ulid,
    is_run_id,
    next_child_ticket_id,
    next_grandchild_ticket_id,
    next_parent_ticket_id,
    normalize_project_name,
    parent_ticket_id_of,
    project_id_from_ticket_id,
    ticket_level,
)


def test_first_ids_at_each_level() -> None:
    assert next_parent_ticket_id("webapp", []) == "webapp-0001"
    assert next_child_ticket_id("webapp-0001", []) == "webapp-0001-01"
    assert next_grandchild_ticket_id("webapp-0001-01", []) == "webapp-0001-01-001"


def test_next_id_uses_highest_suffix_not_count() -> None:
    existing = ["webapp-0001", "webapp-0007", "webapp-0003"]
    assert next_parent_ticket_id("webapp", existing) == "webapp-0008"


def test_next_id_ignores_ids_from_other_prefixes_and_levels() -> None:
    existing = ["other-0009", "webapp-0002-01", "webapp-0002"]
    assert next_parent_ticket_id("webapp", existing) == "webapp-0003"
    assert next_child_ticket_id("webapp-0002", existing) == "webapp-0002-02"


@pytest.mark.parametrize(
    ("ticket_id", "expected"),
    [
        ("webapp-0001", TicketLevel.PARENT),
        ("webapp-0001-02", TicketLevel.CHILD),
        ("webapp-0001-02-003", TicketLevel.GRANDCHILD),
        ("my-app-2024-0001-01-001", TicketLevel.GRANDCHILD),
        ("webapp", None),
        ("webapp-01", None),
    ],
)
def test_ticket_level_classification(ticket_id: str, expected: TicketLevel | None) -> None:
    assert ticket_level(ticket_id) is expected


def test_relationship_helpers() -> None:
    assert parent_ticket_id_of("webapp-0001-02-003") == "webapp-0001"
    assert parent_ticket_id_of("webapp-0001-02") == "webapp-0001"
    assert parent_ticket_id_of("webapp-0001") == "webapp-0001"
    assert child_ticket_id_of("webapp-0001-02-003") == "webapp-0001-02"
    assert project_id_from_ticket_id("my-app-0004-01-001") == "my-app"
    assert project_id_from_ticket_id("nonsense") is None


def test_normalize_project_name_strips_trailing_number() -> None:
    assert normalize_project_name("webapp-2") == "webapp"
    assert normalize_project_name("webapp") == "webapp"


def test_run_ids_are_prefixed_ulids() -> None:
    run_id = generate_run_id(timestamp_ms=0, randbytes=lambda size: b"\x00" * size)

    assert run_id == "run-" + "0" * 26
    assert is_run_id(run_id)
    assert is_run_id(generate_run_id())
    assert not is_run_id("run-123")
    assert not is_run_id("webapp-0001")


def test_ulids_sort_by_timestamp() -> None:
    first = generate_ulid(timestamp_ms=1_000)
    second = generate_ulid(timestamp_ms=2_000)
    assert len(first) == 26
    assert first < second


def test_ulid_rejects_out_of_range_timestamp() -> None:
    with pytest.raises(ValueError, match="timestamp_ms out of range"):
        generate_ulid(timestamp_ms=-1)
