"""Coding agent adapters: one external executable per adapter, one contract for all."""

from agentcompany.coding_agents.base import AgentInfo, CodingAgentAdapter, detect_changed_files
from agentcompany.coding_agents.claude_code import ClaudeCodeAdapter
from agentcompany.coding_agents.codex_cli import CodexCliAdapter
from agentcompany.coding_agents.kiro_cli import KiroCliAdapter
from agentcompany.coding_agents.opencode import OpenCodeAdapter
from agentcompany.coding_agents.registry import (
    DEFAULT_PRIORITY,
    AgentRegistry,
    create_default_registry,
)

__all__ = [
    "DEFAULT_PRIORITY",
    "AgentInfo",
    "AgentRegistry",
    "ClaudeCodeAdapter",
    "CodexCliAdapter",
    "CodingAgentAdapter",
    "KiroCliAdapter",
    "OpenCodeAdapter",
    "create_default_registry",
    "detect_changed_files",
]
