"""OpenCode CLI adapter (``opencode``)."""

from __future__ import annotations

from agentcompany.coding_agents.base import CodingAgentAdapter
from agentcompany.domain.models import CodingTaskOptions


class OpenCodeAdapter(CodingAgentAdapter):
    name = "opencode"
    display_name = "OpenCode"
    command = "opencode"

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        args = ["run", options.prompt, "--format", "json"]
        if options.model:
            args.extend(["--model", options.model])
        return args


__all__ = ["OpenCodeAdapter"]
