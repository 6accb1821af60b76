"""Status derivation rules and their invariants under arbitrary update sequences."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from agentcompany.domain.models import (
    ChildTicket,
    GrandchildTicket,
    ParentTicket,
    TicketStatus,
    WorkerType,
)
from agentcompany.tickets.propagation import (
    derive_status,
    rederive_ancestors,
    rederive_child,
    rederive_tree,
)

statuses = st.sampled_from(list(TicketStatus))

DERIVED_STATUSES = {
    TicketStatus.COMPLETED,
    TicketStatus.FAILED,
    TicketStatus.PENDING,
    TicketStatus.DECOMPOSING,
    TicketStatus.IN_PROGRESS,
}


def _tree(children: int = 2, grandchildren: int = 2) -> ParentTicket:
    parent = ParentTicket(id="p-0001", project_id="p", instruction="build")
    for child_index in range(1, children + 1):
        child_id = f"p-0001-{child_index:02d}"
        child = ChildTicket(
            id=child_id,
            parent_id=parent.id,
            title=f"child {child_index}",
            description="",
            worker_type=WorkerType.DEVELOPER,
        )
        for index in range(1, grandchildren + 1):
            child.grandchild_tickets.append(
                GrandchildTicket(
                    id=f"{child_id}-{index:03d}",
                    parent_id=child_id,
                    title=f"task {index}",
                    description="",
                    acceptance_criteria=[],
                )
            )
        parent.child_tickets.append(child)
    return parent


def test_rules_table() -> None:
    c, f, p = TicketStatus.COMPLETED, TicketStatus.FAILED, TicketStatus.PENDING
    current = TicketStatus.REVIEW_REQUESTED

    assert derive_status([], current) is current
    assert derive_status([c, TicketStatus.PR_CREATED], current) is c
    assert derive_status([f, c], current) is f
    assert derive_status([f, TicketStatus.IN_PROGRESS], current) is TicketStatus.IN_PROGRESS
    assert derive_status([p, p], current) is p
    assert derive_status([p, TicketStatus.DECOMPOSING], current) is TicketStatus.DECOMPOSING
    assert derive_status([p, c], current) is TicketStatus.IN_PROGRESS
    assert derive_status([TicketStatus.REVISION_REQUIRED], current) is TicketStatus.IN_PROGRESS


@given(st.lists(statuses, min_size=1), statuses)
def test_derivation_ignores_child_order(kids: list[TicketStatus], current: TicketStatus) -> None:
    assert derive_status(kids, current) is derive_status(list(reversed(kids)), current)
    assert derive_status(kids, current) in DERIVED_STATUSES


@given(st.lists(st.sampled_from([TicketStatus.COMPLETED, TicketStatus.PR_CREATED]), min_size=1))
def test_all_successful_children_complete_the_owner(children: list[TicketStatus]) -> None:
    assert derive_status(children, TicketStatus.PENDING) is TicketStatus.COMPLETED


@given(
    st.lists(
        st.tuples(st.integers(0, 1), st.integers(0, 1), statuses),
        min_size=1,
        max_size=30,
    )
)
def test_owners_always_match_their_children(updates: list[tuple[int, int, TicketStatus]]) -> None:
    parent = _tree()
    for child_index, grandchild_index, status in updates:
        child = parent.child_tickets[child_index]
        child.grandchild_tickets[grandchild_index].status = status
        rederive_ancestors(parent, child)

        for each in parent.child_tickets:
            expected = derive_status([g.status for g in each.grandchild_tickets], each.status)
            assert each.status is expected
        assert parent.status is derive_status(
            [each.status for each in parent.child_tickets], parent.status
        )

    # Re-deriving an already consistent tree changes nothing.
    assert not rederive_tree(parent)


def test_rederive_reports_change_and_touches_timestamp() -> None:
    parent = _tree(children=1, grandchildren=1)
    child = parent.child_tickets[0]
    child.grandchild_tickets[0].status = TicketStatus.COMPLETED

    assert rederive_child(child, now="2026-01-01T00:00:00.000Z")
    assert child.status is TicketStatus.COMPLETED
    assert child.updated_at == "2026-01-01T00:00:00.000Z"
    assert not rederive_child(child, now="2030-01-01T00:00:00.000Z")
    assert child.updated_at == "2026-01-01T00:00:00.000Z"
