"""Claude Code CLI adapter (``claude``)."""

from __future__ import annotations

from agentcompany.coding_agents.base import CodingAgentAdapter
from agentcompany.constants import DEFAULT_AGENT_TIMEOUT_SECONDS, DEFAULT_KILL_GRACE_SECONDS
from agentcompany.domain.models import CodingTaskOptions


class ClaudeCodeAdapter(CodingAgentAdapter):
    """Print mode with JSON output, scoped to the workspace directory."""

    name = "claude-code"
    display_name = "Claude Code"
    command = "claude"

    def __init__(
        self,
        *,
        binary_path: str | None = None,
        default_timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        skip_permissions: bool = True,
    ) -> None:
        super().__init__(
            binary_path=binary_path,
            default_timeout_seconds=default_timeout_seconds,
            kill_grace_seconds=kill_grace_seconds,
        )
        self._skip_permissions = skip_permissions

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        args = ["-p", options.prompt, "--output-format", "json"]
        if options.allowed_tools:
            args.extend(["--allowedTools", ",".join(options.allowed_tools)])
        args.extend(["--add-dir", options.workspace_path])
        if options.model:
            args.extend(["--model", options.model])
        if options.system_prompt:
            args.extend(["--system-prompt", options.system_prompt])
        # Non-interactive runs cannot answer permission prompts.
        if self._skip_permissions:
            args.append("--dangerously-skip-permissions")
        return args


__all__ = ["ClaudeCodeAdapter"]
