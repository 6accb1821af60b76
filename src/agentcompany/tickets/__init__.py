"""Ticket hierarchy engine, status propagation, and decomposition plans."""

from agentcompany.tickets.decomposition import (
    ChildPlan,
    DecompositionPlan,
    load_decomposition_plan,
    parse_decomposition_plan,
)
from agentcompany.tickets.engine import (
    DispatchOutcome,
    PauseResult,
    ResumeResult,
    TicketEngine,
    build_task_prompt,
)
from agentcompany.tickets.propagation import derive_status, rederive_ancestors, rederive_tree

__all__ = [
    "ChildPlan",
    "DecompositionPlan",
    "DispatchOutcome",
    "PauseResult",
    "ResumeResult",
    "TicketEngine",
    "build_task_prompt",
    "derive_status",
    "load_decomposition_plan",
    "parse_decomposition_plan",
    "rederive_ancestors",
    "rederive_tree",
]
