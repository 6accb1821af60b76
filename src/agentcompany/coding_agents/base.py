"""Coding agent adapter contract and shared subprocess execution.

File: src/agentcompany/coding_agents/base.py

Purpose
- Define the capability every coding agent exposes: ``is_available``,
  ``get_version`` and ``execute``.
- Run each invocation as one bounded-time subprocess whose process group is
  terminated on timeout or cancellation.
- Normalize exits into ``CodingTaskResult``; a nonzero exit is data, not an error.

Security
- Never logs prompts, environment values, or agent output; only sizes and codes.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final

import structlog

from agentcompany.constants import (
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    DEFAULT_KILL_GRACE_SECONDS,
    VERSION_PROBE_TIMEOUT_SECONDS,
)
from agentcompany.domain.models import CodingTaskOptions, CodingTaskResult
from agentcompany.errors import (
    EXECUTION_ERROR,
    SPAWN_ERROR,
    AgentNotFoundError,
    AgentTimeoutError,
    ExecutionError,
    ValidationError,
)
from agentcompany.utils.process import ProcessTimeoutError, run_process

_GIT_PROBE_TIMEOUT_SECONDS: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class AgentInfo:
    """Detection record for one adapter, shown by the ``agents`` command."""

    name: str
    display_name: str
    command: str
    available: bool
    binary_path: str | None
    version: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "command": self.command,
            "available": self.available,
            "binary_path": self.binary_path,
            "version": self.version,
        }


class CodingAgentAdapter(ABC):
    """One external coding tool behind a uniform async contract.

    Subclasses only declare their identity and their argument dialect in
    :meth:`build_args`; process handling lives here.
    """

    name: ClassVar[str]
    display_name: ClassVar[str]
    command: ClassVar[str]

    def __init__(
        self,
        *,
        binary_path: str | None = None,
        default_timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        if default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0")
        if kill_grace_seconds < 0:
            raise ValueError("kill_grace_seconds must be >= 0")
        self._binary_path = binary_path
        self._default_timeout_seconds = default_timeout_seconds
        self._kill_grace_seconds = kill_grace_seconds
        self._logger = structlog.get_logger(__name__)

    @property
    def default_timeout_seconds(self) -> float:
        return self._default_timeout_seconds

    def resolve_binary(self) -> str | None:
        """Absolute path of the executable, or ``None`` when it is not installed."""
        if self._binary_path is not None:
            return shutil.which(self._binary_path) or (
                self._binary_path if os.access(self._binary_path, os.X_OK) else None
            )
        return shutil.which(self.command)

    def is_available(self) -> bool:
        return self.resolve_binary() is not None

    def get_version(self) -> str | None:
        """Run ``<command> --version`` and return the first output line.

        Returns None on any failure (missing binary, timeout, non-zero exit).
        """
        binary = self.resolve_binary()
        if binary is None:
            return None
        try:
            result = subprocess.run(
                [binary, "--version"],
                capture_output=True,
                text=True,
                timeout=VERSION_PROBE_TIMEOUT_SECONDS,
                check=False,
            )
        except (subprocess.TimeoutExpired, OSError):
            return None
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().splitlines()[0]
        return None

    def info(self) -> AgentInfo:
        binary = self.resolve_binary()
        return AgentInfo(
            name=self.name,
            display_name=self.display_name,
            command=self.command,
            available=binary is not None,
            binary_path=binary,
            version=self.get_version() if binary is not None else None,
        )

    @abstractmethod
    def build_args(self, options: CodingTaskOptions) -> list[str]:
        """Arguments after the executable name, in this tool's CLI dialect."""

    async def execute(self, options: CodingTaskOptions) -> CodingTaskResult:
        """Run one coding task and report what the tool did to the workspace.

        Raises ``ValidationError`` for a bad workspace or empty prompt,
        ``AgentNotFoundError`` when the executable is missing,
        ``AgentTimeoutError`` once the process group has been terminated, and
        ``ExecutionError`` for any other spawn or I/O failure.
        """
        workspace = _require_workspace(options.workspace_path)
        if not options.prompt.strip():
            raise ValidationError("prompt must not be empty")

        timeout_seconds = options.timeout_seconds or self._default_timeout_seconds
        argv = [self._binary_path or self.command, *self.build_args(options)]
        env = _merged_env(options.env)

        self._logger.info(
            "agent_execute_started",
            agent=self.name,
            workspace=str(workspace),
            prompt_chars=len(options.prompt),
            timeout_seconds=timeout_seconds,
        )
        try:
            outcome = await run_process(
                argv,
                cwd=workspace,
                env=env,
                timeout_seconds=timeout_seconds,
                kill_grace_seconds=self._kill_grace_seconds,
            )
        except ProcessTimeoutError as exc:
            self._logger.warning(
                "agent_execute_timed_out",
                agent=self.name,
                timeout_seconds=timeout_seconds,
                duration_ms=exc.duration_ms,
            )
            raise AgentTimeoutError(
                agent_name=self.name, timeout_seconds=timeout_seconds
            ) from exc
        except FileNotFoundError as exc:
            raise AgentNotFoundError(
                agent_name=self.name, command=argv[0], cause=exc
            ) from exc
        except (PermissionError, ValueError) as exc:
            raise ExecutionError(
                f"failed to spawn {argv[0]}: {exc}",
                agent_name=self.name,
                code=SPAWN_ERROR,
                cause=exc,
            ) from exc
        except OSError as exc:
            raise ExecutionError(
                f"{argv[0]} failed: {exc}",
                agent_name=self.name,
                code=EXECUTION_ERROR,
                cause=exc,
            ) from exc

        files_changed = await detect_changed_files(workspace)
        result = CodingTaskResult(
            success=outcome.exit_code == 0,
            output=outcome.stdout,
            error_output=outcome.stderr,
            exit_code=outcome.exit_code,
            duration_ms=outcome.duration_ms,
            files_changed=tuple(files_changed),
        )
        self._logger.info(
            "agent_execute_finished",
            agent=self.name,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            files_changed=len(result.files_changed),
        )
        return result


async def detect_changed_files(workspace: str | Path) -> list[str]:
    """Tracked modifications plus untracked files; ``[]`` outside a git work tree."""
    changed: list[str] = []
    for argv in (
        ["git", "diff", "--name-only", "HEAD"],
        ["git", "ls-files", "--others", "--exclude-standard"],
    ):
        try:
            outcome = await run_process(
                argv,
                cwd=workspace,
                timeout_seconds=_GIT_PROBE_TIMEOUT_SECONDS,
                kill_grace_seconds=0.0,
            )
        except (OSError, TimeoutError):
            return []
        if outcome.exit_code != 0:
            return []
        for line in outcome.stdout.splitlines():
            path = line.strip()
            if path and path not in changed:
                changed.append(path)
    return changed


def _require_workspace(path: str) -> Path:
    if not path or not path.strip():
        raise ValidationError("workspace_path must not be empty")
    workspace = Path(path)
    if not workspace.is_dir():
        raise ValidationError(f"workspace_path is not an existing directory: {path}")
    return workspace


def _merged_env(overrides: Mapping[str, str]) -> dict[str, str] | None:
    if not overrides:
        return None
    env = dict(os.environ)
    env.update({str(key): str(value) for key, value in overrides.items()})
    return env


__all__ = ["AgentInfo", "CodingAgentAdapter", "detect_changed_files"]
