"""Argument dialects and version probes of the built-in coding agent adapters."""

from __future__ import annotations

import subprocess
from unittest import mock

from agentcompany.coding_agents import (
    ClaudeCodeAdapter,
    CodexCliAdapter,
    KiroCliAdapter,
    OpenCodeAdapter,
)
from agentcompany.domain.models import CodingTaskOptions


def _options(**overrides: object) -> CodingTaskOptions:
    values: dict[str, object] = {"workspace_path": "/work/app", "prompt": "Fix the login bug"}
    values.update(overrides)
    return CodingTaskOptions(**values)  # type: ignore[arg-type]


def test_claude_code_print_mode() -> None:
    args = ClaudeCodeAdapter().build_args(
        _options(model="sonnet", allowed_tools=("Read", "Edit"), system_prompt="Be terse")
    )

    assert args == [
        "-p",
        "Fix the login bug",
        "--output-format",
        "json",
        "--allowedTools",
        "Read,Edit",
        "--add-dir",
        "/work/app",
        "--model",
        "sonnet",
        "--system-prompt",
        "Be terse",
        "--dangerously-skip-permissions",
    ]


def test_claude_code_can_keep_permission_prompts() -> None:
    args = ClaudeCodeAdapter(skip_permissions=False).build_args(_options())

    assert "--dangerously-skip-permissions" not in args
    assert args[:2] == ["-p", "Fix the login bug"]


def test_opencode_run_mode() -> None:
    assert OpenCodeAdapter().build_args(_options()) == [
        "run",
        "Fix the login bug",
        "--format",
        "json",
    ]
    assert OpenCodeAdapter().build_args(_options(model="gpt-5"))[-2:] == ["--model", "gpt-5"]


def test_kiro_ignores_model_and_tools() -> None:
    args = KiroCliAdapter().build_args(_options(model="x", allowed_tools=("Read",)))

    assert args == ["chat", "-p", "Fix the login bug"]


def test_codex_prompt_is_last() -> None:
    args = CodexCliAdapter().build_args(_options(model="o4-mini"))

    assert args == ["exec", "--full-auto", "--model", "o4-mini", "Fix the login bug"]


def test_adapter_identity() -> None:
    identities = {
        adapter.name: adapter.command
        for adapter in (ClaudeCodeAdapter, OpenCodeAdapter, KiroCliAdapter, CodexCliAdapter)
    }

    assert identities == {
        "claude-code": "claude",
        "opencode": "opencode",
        "kiro-cli": "kiro",
        "codex-cli": "codex",
    }


class TestVersionProbe:
    def test_first_line_of_version_output(self) -> None:
        completed = subprocess.CompletedProcess(
            args=["claude", "--version"], returncode=0, stdout="1.0.42 (Claude Code)\nextra\n"
        )
        with (
            mock.patch("shutil.which", return_value="/usr/local/bin/claude"),
            mock.patch("subprocess.run", return_value=completed) as run,
        ):
            assert ClaudeCodeAdapter().get_version() == "1.0.42 (Claude Code)"

        assert run.call_args.args[0] == ["/usr/local/bin/claude", "--version"]

    def test_hung_probe_reports_no_version(self) -> None:
        with (
            mock.patch("shutil.which", return_value="/usr/local/bin/kiro"),
            mock.patch(
                "subprocess.run", side_effect=subprocess.TimeoutExpired(["kiro"], timeout=5)
            ),
        ):
            assert KiroCliAdapter().get_version() is None

    def test_missing_binary_is_unavailable(self) -> None:
        with mock.patch("shutil.which", return_value=None) as which:
            adapter = OpenCodeAdapter()

            assert not adapter.is_available()
            assert adapter.info().version is None

        which.assert_called_with("opencode")
