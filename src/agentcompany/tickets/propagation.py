"""Bottom-up status derivation for the ticket hierarchy.

A ticket with children never carries an independent status: it is recomputed
from its children after every mutation by :func:`derive_status`. The reduction
is pure and idempotent, so re-running it over an unchanged subtree is a no-op.
"""

from __future__ import annotations

from collections.abc import Iterable

from agentcompany.domain.models import (
    SUCCESS_STATUSES,
    TERMINAL_STATUSES,
    ChildTicket,
    ParentTicket,
    TicketStatus,
    utc_now_iso,
)

_NOT_STARTED = frozenset({TicketStatus.PENDING, TicketStatus.DECOMPOSING})


def derive_status(children: Iterable[TicketStatus], current: TicketStatus) -> TicketStatus:
    """Reduce child statuses to the owner's status.

    - no children: ``current`` is kept
    - every child completed or pr_created: completed
    - some child failed and every other child is terminal: failed
    - every child pending: pending
    - only pending/decomposing children: decomposing
    - anything else: in_progress
    """
    statuses = list(children)
    if not statuses:
        return current
    if all(status in SUCCESS_STATUSES for status in statuses):
        return TicketStatus.COMPLETED
    if TicketStatus.FAILED in statuses and all(status in TERMINAL_STATUSES for status in statuses):
        return TicketStatus.FAILED
    if all(status is TicketStatus.PENDING for status in statuses):
        return TicketStatus.PENDING
    if all(status in _NOT_STARTED for status in statuses):
        return TicketStatus.DECOMPOSING
    return TicketStatus.IN_PROGRESS


def rederive_child(child: ChildTicket, *, now: str | None = None) -> bool:
    """Recompute ``child`` from its grandchildren; True when the status changed."""
    derived = derive_status((item.status for item in child.grandchild_tickets), child.status)
    if derived is child.status:
        return False
    child.status = derived
    child.updated_at = now or utc_now_iso()
    return True


def rederive_parent(parent: ParentTicket, *, now: str | None = None) -> bool:
    derived = derive_status((item.status for item in parent.child_tickets), parent.status)
    if derived is parent.status:
        return False
    parent.status = derived
    parent.updated_at = now or utc_now_iso()
    return True


def rederive_ancestors(parent: ParentTicket, child: ChildTicket | None = None) -> bool:
    """Re-derive ``child`` (when given) and then ``parent``, in that order."""
    now = utc_now_iso()
    changed = False
    if child is not None:
        changed = rederive_child(child, now=now)
    return rederive_parent(parent, now=now) or changed


def rederive_tree(parent: ParentTicket) -> bool:
    """Re-derive every child of ``parent``, then ``parent`` itself."""
    now = utc_now_iso()
    changed = False
    for child in parent.child_tickets:
        changed = rederive_child(child, now=now) or changed
    return rederive_parent(parent, now=now) or changed


__all__ = [
    "derive_status",
    "rederive_ancestors",
    "rederive_child",
    "rederive_parent",
    "rederive_tree",
]
