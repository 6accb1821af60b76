"""Normalized error taxonomy shared by the ticket engine, agent adapters, and judgment.

Structural failures (bad input, unknown ids, subprocess trouble) are raised.
Expected negative business outcomes (pause rejected, FAIL verdict) are returned
as result values by the callers and never appear here.
"""

from __future__ import annotations

from typing import Final

VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"
NOT_FOUND: Final[str] = "NOT_FOUND"
TIMEOUT: Final[str] = "TIMEOUT"
SPAWN_ERROR: Final[str] = "SPAWN_ERROR"
EXECUTION_ERROR: Final[str] = "EXECUTION_ERROR"
ADAPTER_NOT_FOUND: Final[str] = "ADAPTER_NOT_FOUND"
NO_AVAILABLE_AGENT: Final[str] = "NO_AVAILABLE_AGENT"


class AgentCompanyError(Exception):
    """Base error with a deterministic machine-readable ``code``."""

    default_code: str = "ERROR"

    def __init__(self, detail: str, *, code: str | None = None) -> None:
        self.detail = _normalize_detail(detail)
        self.code = code or self.default_code
        super().__init__(self.detail)

    def __str__(self) -> str:
        return f"{self.detail} (code={self.code})"


class ValidationError(AgentCompanyError, ValueError):
    """Input has the wrong shape or an unacceptable value."""

    default_code = VALIDATION_ERROR


class NotFoundError(AgentCompanyError, LookupError):
    """A referenced ticket, run, waiver, or executable does not exist."""

    default_code = NOT_FOUND


class CodingAgentError(AgentCompanyError):
    """Adapter-qualified failure so aggregated logs stay distinguishable."""

    default_code = EXECUTION_ERROR

    def __init__(
        self,
        detail: str,
        *,
        agent_name: str,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.agent_name = agent_name
        self.cause = cause
        super().__init__(detail, code=code)

    def __str__(self) -> str:
        return f"agent={self.agent_name} code={self.code} detail={self.detail}"


class AgentTimeoutError(CodingAgentError, TimeoutError):
    """The agent subprocess exceeded its wall-clock bound and was terminated."""

    default_code = TIMEOUT

    def __init__(self, *, agent_name: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{agent_name} timed out after {_format_seconds(timeout_seconds)}s",
            agent_name=agent_name,
        )


class AgentNotFoundError(CodingAgentError, NotFoundError):
    """The adapter's executable is not resolvable on ``PATH``."""

    default_code = NOT_FOUND

    def __init__(
        self,
        *,
        agent_name: str,
        command: str,
        cause: BaseException | None = None,
    ) -> None:
        self.command = command
        super().__init__(
            f"command not found: {command}",
            agent_name=agent_name,
            cause=cause,
        )


class ExecutionError(CodingAgentError):
    """Unexpected spawn or I/O failure; wraps the original cause."""

    default_code = EXECUTION_ERROR


class AdapterNotFoundError(NotFoundError):
    """No adapter is registered under the requested name."""

    default_code = ADAPTER_NOT_FOUND


class NoAvailableAgentError(AgentCompanyError):
    """No registered adapter has its executable installed."""

    default_code = NO_AVAILABLE_AGENT


def _normalize_detail(detail: str) -> str:
    normalized = " ".join(str(detail).split())
    return normalized or "unknown error"


def _format_seconds(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


__all__ = [
    "ADAPTER_NOT_FOUND",
    "EXECUTION_ERROR",
    "NOT_FOUND",
    "NO_AVAILABLE_AGENT",
    "SPAWN_ERROR",
    "TIMEOUT",
    "VALIDATION_ERROR",
    "AdapterNotFoundError",
    "AgentCompanyError",
    "AgentNotFoundError",
    "AgentTimeoutError",
    "CodingAgentError",
    "ExecutionError",
    "NoAvailableAgentError",
    "NotFoundError",
    "ValidationError",
]
