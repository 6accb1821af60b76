"""Adapter execution against ``sh`` standing in for a coding agent."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from pathlib import Path

import pytest

from agentcompany.coding_agents.base import CodingAgentAdapter, detect_changed_files
from agentcompany.domain.models import CodingTaskOptions
from agentcompany.errors import (
    AgentNotFoundError,
    AgentTimeoutError,
    CodingAgentError,
    ValidationError,
)


class ShellAgent(CodingAgentAdapter):
    name = "shell-agent"
    display_name = "Shell Agent"
    command = "sh"

    def build_args(self, options: CodingTaskOptions) -> list[str]:
        return ["-c", options.prompt]


def _gone(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    stat = Path(f"/proc/{pid}/stat")
    if stat.exists():
        return stat.read_text(encoding="utf-8").rsplit(")", 1)[-1].split()[0] == "Z"
    return False


async def test_nonzero_exit_is_a_result_not_an_error(tmp_path: Path) -> None:
    result = await ShellAgent().execute(
        CodingTaskOptions(workspace_path=str(tmp_path), prompt="echo working; exit 2")
    )

    assert not result.success
    assert result.exit_code == 2
    assert result.output == "working\n"
    assert result.files_changed == ()


async def test_environment_overrides_reach_the_agent(tmp_path: Path) -> None:
    result = await ShellAgent().execute(
        CodingTaskOptions(
            workspace_path=str(tmp_path),
            prompt='printf "%s" "$AGENT_TOKEN_HINT"',
            env={"AGENT_TOKEN_HINT": "from-options"},
        )
    )

    assert result.success
    assert result.output == "from-options"


async def test_timeout_terminates_agent_and_helpers(tmp_path: Path) -> None:
    pidfile = tmp_path / "helper.pid"
    adapter = ShellAgent(kill_grace_seconds=0.5)

    with pytest.raises(AgentTimeoutError) as excinfo:
        await adapter.execute(
            CodingTaskOptions(
                workspace_path=str(tmp_path),
                prompt=f"sleep 30 & echo $! > {pidfile}; wait",
                timeout_seconds=0.5,
            )
        )

    assert isinstance(excinfo.value, TimeoutError)
    assert str(excinfo.value) == (
        "agent=shell-agent code=TIMEOUT detail=shell-agent timed out after 0.5s"
    )
    helper_pid = int(pidfile.read_text(encoding="utf-8").strip())
    deadline = time.monotonic() + 5
    while not _gone(helper_pid) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert _gone(helper_pid)


async def test_missing_executable_is_agent_not_found(tmp_path: Path) -> None:
    adapter = ShellAgent(binary_path="definitely-not-a-coding-agent")

    assert not adapter.is_available()
    assert adapter.get_version() is None
    with pytest.raises(AgentNotFoundError, match="command not found: definitely-not-a-coding"):
        await adapter.execute(CodingTaskOptions(workspace_path=str(tmp_path), prompt="true"))


async def test_bad_workspace_and_prompt_are_validation_errors(tmp_path: Path) -> None:
    adapter = ShellAgent()

    with pytest.raises(ValidationError, match="not an existing directory"):
        await adapter.execute(
            CodingTaskOptions(workspace_path=str(tmp_path / "nope"), prompt="true")
        )
    with pytest.raises(ValidationError, match="prompt must not be empty"):
        await adapter.execute(CodingTaskOptions(workspace_path=str(tmp_path), prompt="  "))


def test_agent_errors_carry_the_adapter_name() -> None:
    error = AgentNotFoundError(agent_name="opencode", command="opencode")

    assert isinstance(error, CodingAgentError)
    assert error.agent_name == "opencode"
    assert error.code == "NOT_FOUND"


def test_info_reports_detection() -> None:
    info = ShellAgent().info()

    assert info.available
    assert info.binary_path is not None
    assert info.to_dict()["name"] == "shell-agent"


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
async def test_changed_files_include_modified_and_untracked(tmp_path: Path) -> None:
    def git(*args: str) -> None:
        subprocess.run(
            [
                "git",
                "-c",
                "user.email=dev@example.com",
                "-c",
                "user.name=dev",
                "-c",
                "commit.gpgsign=false",
                *args,
            ],
            cwd=tmp_path,
            check=True,
            capture_output=True,
        )

    git("init", "-q")
    (tmp_path / "tracked.txt").write_text("one\n", encoding="utf-8")
    git("add", "tracked.txt")
    git("commit", "-q", "-m", "init")
    (tmp_path / "tracked.txt").write_text("two\n", encoding="utf-8")
    (tmp_path / "new.txt").write_text("new\n", encoding="utf-8")

    assert await detect_changed_files(tmp_path) == ["tracked.txt", "new.txt"]


async def test_changed_files_outside_git_is_empty(tmp_path: Path) -> None:
    assert await detect_changed_files(tmp_path) == []
