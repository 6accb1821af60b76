"""Adapter registry with configuration-driven selection.

Availability probes hit ``PATH`` and are cached per adapter for a short TTL;
selection never inspects adapter types, only names from configuration.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Final

import structlog

from agentcompany.coding_agents.base import AgentInfo, CodingAgentAdapter
from agentcompany.coding_agents.claude_code import ClaudeCodeAdapter
from agentcompany.coding_agents.codex_cli import CodexCliAdapter
from agentcompany.coding_agents.kiro_cli import KiroCliAdapter
from agentcompany.coding_agents.opencode import OpenCodeAdapter
from agentcompany.constants import (
    AVAILABILITY_CACHE_TTL_SECONDS,
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    DEFAULT_KILL_GRACE_SECONDS,
)
from agentcompany.errors import AdapterNotFoundError, NoAvailableAgentError

DEFAULT_PRIORITY: Final[tuple[str, ...]] = ("claude-code", "opencode", "kiro-cli", "codex-cli")


class AgentRegistry:
    """Name-keyed adapters plus a priority order for automatic selection."""

    def __init__(
        self,
        *,
        priority: Sequence[str] = DEFAULT_PRIORITY,
        cache_ttl_seconds: float = AVAILABILITY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        self._adapters: dict[str, CodingAgentAdapter] = {}
        self._priority: tuple[str, ...] = tuple(priority)
        self._cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._availability: dict[str, tuple[bool, float]] = {}
        self._logger = structlog.get_logger(__name__)

    @property
    def priority(self) -> tuple[str, ...]:
        return self._priority

    def set_priority(self, priority: Iterable[str]) -> None:
        self._priority = tuple(priority)

    def register(self, adapter: CodingAgentAdapter) -> None:
        """Add or replace the adapter registered under ``adapter.name``."""
        self._adapters[adapter.name] = adapter
        self._availability.pop(adapter.name, None)

    def get(self, name: str) -> CodingAgentAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            available = ", ".join(sorted(self._adapters)) or "none"
            raise AdapterNotFoundError(f"adapter not found: {name} (registered: {available})")
        return adapter

    def names(self) -> list[str]:
        return list(self._adapters)

    def is_available(self, name: str) -> bool:
        adapter = self.get(name)
        now = self._clock()
        cached = self._availability.get(name)
        if cached is not None and now - cached[1] < self._cache_ttl_seconds:
            return cached[0]
        available = adapter.is_available()
        self._availability[name] = (available, now)
        return available

    def available_adapters(self) -> list[CodingAgentAdapter]:
        return [adapter for name, adapter in self._adapters.items() if self.is_available(name)]

    def clear_cache(self) -> None:
        self._availability.clear()

    def clear(self) -> None:
        self._adapters.clear()
        self._availability.clear()

    def select_adapter(self, preferred: str | None = None) -> CodingAgentAdapter:
        """Preferred adapter if installed, else the first installed by priority.

        Adapters missing from the priority list are considered last, in
        registration order.
        """
        if preferred:
            if self.is_available(preferred):
                return self.get(preferred)
            self._logger.info("agent_preferred_unavailable", preferred=preferred)

        ordered = [name for name in self._priority if name in self._adapters]
        ordered.extend(name for name in self._adapters if name not in ordered)
        for name in ordered:
            if self.is_available(name):
                self._logger.debug("agent_selected", agent=name, preferred=preferred)
                return self._adapters[name]

        tried = ", ".join(ordered) or "none registered"
        raise NoAvailableAgentError(f"no coding agent is installed (tried: {tried})")

    def detect_all(self) -> list[AgentInfo]:
        """Detection records for every adapter, in priority order."""
        ordered = [name for name in self._priority if name in self._adapters]
        ordered.extend(name for name in self._adapters if name not in ordered)
        return [self._adapters[name].info() for name in ordered]


def create_default_registry(agents_config: Mapping[str, Any] | None = None) -> AgentRegistry:
    """Registry holding every built-in adapter, tuned by the ``[agents]`` config section."""
    section: Mapping[str, Any] = agents_config or {}
    timeout = float(section.get("default_timeout_seconds", DEFAULT_AGENT_TIMEOUT_SECONDS))
    grace = float(section.get("kill_grace_seconds", DEFAULT_KILL_GRACE_SECONDS))
    registry = AgentRegistry(
        priority=tuple(section.get("priority") or DEFAULT_PRIORITY),
        cache_ttl_seconds=float(
            section.get("availability_cache_ttl_seconds", AVAILABILITY_CACHE_TTL_SECONDS)
        ),
    )
    registry.register(
        ClaudeCodeAdapter(
            default_timeout_seconds=timeout,
            kill_grace_seconds=grace,
            skip_permissions=bool(section.get("skip_permissions", True)),
        )
    )
    for adapter_cls in (OpenCodeAdapter, KiroCliAdapter, CodexCliAdapter):
        registry.register(
            adapter_cls(default_timeout_seconds=timeout, kill_grace_seconds=grace)
        )
    return registry


__all__ = ["DEFAULT_PRIORITY", "AgentRegistry", "create_default_registry"]
