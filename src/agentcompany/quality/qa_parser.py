"""Tolerant parsers for Vitest and ESLint console output.

Both parsers strip ANSI escape sequences first: colorized tool output is the
common case and must not break matching.

Policy asymmetry:
- ESLint parsing fails open. No output means no lint errors, and output that
  cannot be recognized yields ``passed=True`` with ``parsed=False``.
- Vitest parsing reports ``coverage=-1`` when no coverage table is found; the
  judgment layer treats that as below any threshold.
"""

from __future__ import annotations

import re
from typing import Final

from agentcompany.constants import RAW_EXCERPT_LIMIT
from agentcompany.domain.models import EslintParseResult, QAParseResult

_ANSI_ESCAPE_RE: Final[re.Pattern[str]] = re.compile(r"\x1B\[[0-9;]*[a-zA-Z]")

_TESTS_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"Tests\s+(.+?)(?:\((\d+)\)|$)", re.IGNORECASE | re.MULTILINE
)
_TEST_FILES_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"Test Files\s+(.+?)(?:\((\d+)\)|$)", re.IGNORECASE | re.MULTILINE
)
_PASSED_RE: Final[re.Pattern[str]] = re.compile(r"(\d+)\s+passed", re.IGNORECASE)
_FAILED_RE: Final[re.Pattern[str]] = re.compile(r"(\d+)\s+failed", re.IGNORECASE)
_SKIPPED_RE: Final[re.Pattern[str]] = re.compile(r"(\d+)\s+skipped", re.IGNORECASE)

# Coverage sources, tried in order.
_COVERAGE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"% Stmts.*\n.*All files.*?(\d+(?:\.\d+)?)"),
    re.compile(r"All files\s*\|\s*(\d+(?:\.\d+)?)"),
    re.compile(r"Statements\s*:\s*(\d+(?:\.\d+)?)%", re.IGNORECASE),
)

_ESLINT_PROBLEMS_RE: Final[re.Pattern[str]] = re.compile(
    r"(\d+)\s+problems?\s*\(\s*(\d+)\s+errors?,\s*(\d+)\s+warnings?\s*\)", re.IGNORECASE
)
_ESLINT_ERRORS_AND_WARNINGS_RE: Final[re.Pattern[str]] = re.compile(
    r"(\d+)\s+errors?\s+and\s+(\d+)\s+warnings?", re.IGNORECASE
)
# Lookbehind keeps ``line:col`` positions (``3:5  warning``) out of the count.
_ESLINT_WARNINGS_ONLY_RE: Final[re.Pattern[str]] = re.compile(
    r"(?<![:\d])(\d+)\s+warnings?", re.IGNORECASE
)
_ESLINT_ANY_ERROR_COUNT_RE: Final[re.Pattern[str]] = re.compile(
    r"(?<![:\d])\d+\s+errors?", re.IGNORECASE
)
_ESLINT_ERROR_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*\d+:\d+\s+error\s+", re.IGNORECASE
)
_ESLINT_WARNING_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*\d+:\d+\s+warning\s+", re.IGNORECASE
)

_UNPARSED_DETAIL_LIMIT: Final[int] = 200


def strip_ansi(text: str) -> str:
    """Remove terminal color/style escape sequences."""
    return _ANSI_ESCAPE_RE.sub("", text)


def parse_vitest_output(output: str) -> QAParseResult:
    """Extract test counts and statement coverage from Vitest output."""
    excerpt = output[:RAW_EXCERPT_LIMIT]
    if not output or not output.strip():
        return QAParseResult(parsed=False, raw_excerpt=excerpt)

    clean = strip_ansi(output)
    passed = failed = skipped = total = 0
    parsed = False

    tests_line = _TESTS_LINE_RE.search(clean)
    if tests_line is not None:
        segment = tests_line.group(1)
        passed = _first_int(_PASSED_RE, segment)
        failed = _first_int(_FAILED_RE, segment)
        skipped = _first_int(_SKIPPED_RE, segment)
        explicit_total = tests_line.group(2)
        total = int(explicit_total) if explicit_total else passed + failed + skipped
        parsed = True
    else:
        files_line = _TEST_FILES_LINE_RE.search(clean)
        if files_line is not None:
            segment = files_line.group(1)
            passed = _first_int(_PASSED_RE, segment)
            failed = _first_int(_FAILED_RE, segment)
            total = passed + failed
            parsed = total > 0

    return QAParseResult(
        parsed=parsed,
        total=total,
        passed=passed,
        failed=failed,
        skipped=skipped,
        coverage=_extract_coverage(clean),
        raw_excerpt=excerpt,
    )


def parse_eslint_output(output: str) -> EslintParseResult:
    """Extract error/warning counts from ESLint (or similar) output."""
    if not output or not output.strip():
        return EslintParseResult(parsed=True, passed=True, details="lint finished: no errors")

    clean = strip_ansi(output)

    problems = _ESLINT_PROBLEMS_RE.search(clean)
    if problems is not None:
        return _counted(int(problems.group(2)), int(problems.group(3)))

    errors_and_warnings = _ESLINT_ERRORS_AND_WARNINGS_RE.search(clean)
    if errors_and_warnings is not None:
        return _counted(int(errors_and_warnings.group(1)), int(errors_and_warnings.group(2)))

    warnings_only = _ESLINT_WARNINGS_ONLY_RE.search(clean)
    if warnings_only is not None and _ESLINT_ANY_ERROR_COUNT_RE.search(clean) is None:
        return _counted(0, int(warnings_only.group(1)))

    lines = clean.split("\n")
    error_lines = sum(1 for line in lines if _ESLINT_ERROR_LINE_RE.match(line))
    warning_lines = sum(1 for line in lines if _ESLINT_WARNING_LINE_RE.match(line))
    if error_lines or warning_lines:
        return _counted(error_lines, warning_lines)

    return EslintParseResult(
        parsed=False,
        passed=True,
        details=f"lint finished (output not recognized): {clean[:_UNPARSED_DETAIL_LIMIT]}",
    )


def _counted(error_count: int, warning_count: int) -> EslintParseResult:
    return EslintParseResult(
        parsed=True,
        passed=error_count == 0,
        error_count=error_count,
        warning_count=warning_count,
        details=f"lint finished: {error_count} error(s), {warning_count} warning(s)",
    )


def _extract_coverage(clean: str) -> float:
    for pattern in _COVERAGE_PATTERNS:
        match = pattern.search(clean)
        if match is not None:
            return float(match.group(1))
    return -1.0


def _first_int(pattern: re.Pattern[str], text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match is not None else 0


__all__ = ["parse_eslint_output", "parse_vitest_output", "strip_ansi"]
