"""Run the configured test and lint commands for a workspace.

File: src/agentcompany/quality/checks.py

Purpose
- Execute QA commands with the same bounded-subprocess discipline as agents.
- Feed captured output through the tolerant parsers.
- Never raise for tool trouble: a missing or hung QA tool becomes an unparsed
  result that the judgment layer evaluates under its own policy.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from agentcompany.constants import DEFAULT_KILL_GRACE_SECONDS, RAW_EXCERPT_LIMIT
from agentcompany.domain.models import EslintParseResult, QAParseResult
from agentcompany.quality.qa_parser import parse_eslint_output, parse_vitest_output
from agentcompany.utils.process import ProcessOutcome, ProcessTimeoutError, run_process


@dataclass(frozen=True, slots=True)
class QAReport:
    test: QAParseResult
    lint: EslintParseResult
    test_exit_code: int | None = None
    lint_exit_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "test": self.test.to_dict(),
            "lint": self.lint.to_dict(),
            "testExitCode": self.test_exit_code,
            "lintExitCode": self.lint_exit_code,
        }


class QARunner:
    """Runs ``test_command`` then ``lint_command`` in the same workspace."""

    def __init__(
        self,
        *,
        test_command: Sequence[str],
        lint_command: Sequence[str],
        timeout_seconds: float,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._test_command = tuple(test_command)
        self._lint_command = tuple(lint_command)
        self._timeout_seconds = timeout_seconds
        self._kill_grace_seconds = kill_grace_seconds
        self._logger = structlog.get_logger(__name__)

    async def run(self, workspace: str | Path) -> QAReport:
        test_result, test_exit = await self._run_tests(workspace)
        lint_result, lint_exit = await self._run_lint(workspace)
        self._logger.info(
            "qa_run_finished",
            workspace=str(workspace),
            tests_parsed=test_result.parsed,
            tests_failed=test_result.failed,
            coverage=test_result.coverage,
            lint_errors=lint_result.error_count,
        )
        return QAReport(
            test=test_result,
            lint=lint_result,
            test_exit_code=test_exit,
            lint_exit_code=lint_exit,
        )

    async def _run_tests(self, workspace: str | Path) -> tuple[QAParseResult, int | None]:
        if not self._test_command:
            return QAParseResult(parsed=False, raw_excerpt="no test command configured"), None
        outcome, problem = await self._invoke(self._test_command, workspace)
        if outcome is None:
            return QAParseResult(parsed=False, raw_excerpt=problem[:RAW_EXCERPT_LIMIT]), None
        return parse_vitest_output(_combined(outcome)), outcome.exit_code

    async def _run_lint(self, workspace: str | Path) -> tuple[EslintParseResult, int | None]:
        if not self._lint_command:
            return (
                EslintParseResult(
                    parsed=True, passed=True, details="lint skipped: no command configured"
                ),
                None,
            )
        outcome, problem = await self._invoke(self._lint_command, workspace)
        if outcome is None:
            # Same fail-open policy as unrecognized linter output.
            return EslintParseResult(parsed=False, passed=True, details=problem), None
        return parse_eslint_output(_combined(outcome)), outcome.exit_code

    async def _invoke(
        self, argv: Sequence[str], workspace: str | Path
    ) -> tuple[ProcessOutcome | None, str]:
        try:
            outcome = await run_process(
                argv,
                cwd=workspace,
                timeout_seconds=self._timeout_seconds,
                kill_grace_seconds=self._kill_grace_seconds,
            )
        except ProcessTimeoutError as exc:
            self._logger.warning("qa_command_timed_out", command=argv[0])
            return None, str(exc)
        except FileNotFoundError:
            self._logger.warning("qa_command_missing", command=argv[0])
            return None, f"command not found: {argv[0]}"
        except OSError as exc:
            self._logger.warning("qa_command_failed", command=argv[0], error=str(exc))
            return None, f"{argv[0]} failed: {exc}"
        return outcome, ""


def _combined(outcome: ProcessOutcome) -> str:
    if outcome.stderr.strip():
        return f"{outcome.stdout}\n{outcome.stderr}" if outcome.stdout else outcome.stderr
    return outcome.stdout


__all__ = ["QAReport", "QARunner"]
