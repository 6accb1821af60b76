"""File-backed persistence for ticket trees and run artifacts."""

from agentcompany.persistence.run_store import RunState, RunStateStatus, RunStore
from agentcompany.persistence.ticket_store import TicketStore

__all__ = ["RunState", "RunStateStatus", "RunStore", "TicketStore"]
