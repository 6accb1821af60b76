"""OpenAI Codex CLI adapter (``codex``)."""

from __future__ import annotations

from agentcompany.coding_agents.base import CodingAgentAdapter
from agentcompany.domain.models import CodingTaskOptions


class CodexCliAdapter(CodingAgentAdapter):
    """Non-interactive ``exec`` mode; the prompt is the final positional argument."""

    name = "codex-cli"
    display_name = "Codex CLI"
    command = "codex"

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        args = ["exec", "--full-auto"]
        if options.model:
            args.extend(["--model", options.model])
        args.append(options.prompt)
        return args


__all__ = ["CodexCliAdapter"]
