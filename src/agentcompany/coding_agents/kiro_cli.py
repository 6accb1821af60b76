"""Kiro CLI adapter (``kiro``).

Kiro's chat mode takes only the prompt; model selection and tool
restrictions are configured inside Kiro itself, so those options are ignored.
"""

from __future__ import annotations

from agentcompany.coding_agents.base import CodingAgentAdapter
from agentcompany.domain.models import CodingTaskOptions


class KiroCliAdapter(CodingAgentAdapter):
    name = "kiro-cli"
    display_name = "Kiro CLI"
    command = "kiro"

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        return ["chat", "-p", options.prompt]


__all__ = ["KiroCliAdapter"]
