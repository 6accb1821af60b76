"""Unit tests for the tolerant Vitest and ESLint output parsers."""

from __future__ import annotations

import pytest

from agentcompany.quality.qa_parser import parse_eslint_output, parse_vitest_output, strip_ansi

VITEST_ALL_PASSING = """
 RUN  v1.6.0 /workspace

 ✓ src/math.test.ts (3)
 ✓ src/login.test.ts (7)

 Test Files  2 passed (2)
      Tests  10 passed (10)
   Start at  12:00:00
   Duration  1.20s

 % Coverage report from v8
-----------|---------|----------|---------|---------|
File       | % Stmts | % Branch | % Funcs | % Lines |
-----------|---------|----------|---------|---------|
All files  |   85.5  |    70    |   90    |  85.5   |
-----------|---------|----------|---------|---------|
"""

VITEST_WITH_FAILURES = """
 ❯ src/login.test.ts (7)
 Test Files  1 failed | 1 passed (2)
      Tests  2 failed | 8 passed (10)
"""


def test_strip_ansi_removes_color_sequences() -> None:
    assert strip_ansi("\x1b[32m✓\x1b[39m ok") == "✓ ok"


def test_vitest_passing_run_with_coverage_table() -> None:
    result = parse_vitest_output(VITEST_ALL_PASSING)

    assert result.parsed
    assert (result.total, result.passed, result.failed) == (10, 10, 0)
    assert result.coverage == 85.5
    assert result.all_passed


def test_vitest_failures_keep_explicit_total() -> None:
    result = parse_vitest_output(VITEST_WITH_FAILURES)

    assert result.parsed
    assert (result.total, result.passed, result.failed) == (10, 8, 2)
    assert result.coverage == -1.0
    assert not result.all_passed


def test_vitest_total_is_summed_when_not_printed() -> None:
    result = parse_vitest_output("Tests  3 passed | 1 skipped\n")

    assert result.total == 4
    assert result.skipped == 1


def test_vitest_colorized_output_is_parsed() -> None:
    colored = (
        "\x1b[2m      Tests \x1b[22m \x1b[1m\x1b[32m5 passed\x1b[39m\x1b[22m"
        "\x1b[90m (5)\x1b[39m"
    )

    result = parse_vitest_output(colored)

    assert result.parsed
    assert result.total == 5
    assert result.passed == 5


def test_vitest_istanbul_text_summary_coverage() -> None:
    output = "Tests  4 passed (4)\nStatements   : 92.31% ( 12/13 )\n"

    assert parse_vitest_output(output).coverage == 92.31


def test_vitest_falls_back_to_test_files_line() -> None:
    result = parse_vitest_output(" Test Files  3 passed (3)\n")

    assert result.parsed
    assert result.total == 3


@pytest.mark.parametrize("output", ["", "   \n", "npm ERR! missing script: test"])
def test_vitest_unrecognized_output_is_not_parsed(output: str) -> None:
    result = parse_vitest_output(output)

    assert not result.parsed
    assert result.total == 0
    assert result.coverage == -1.0


def test_vitest_raw_excerpt_is_bounded() -> None:
    result = parse_vitest_output("x" * 2000)

    assert len(result.raw_excerpt) == 500


def test_eslint_empty_output_passes() -> None:
    result = parse_eslint_output("")

    assert result.parsed
    assert result.passed
    assert result.details == "lint finished: no errors"


def test_eslint_problem_summary() -> None:
    output = "\x1b[31m✖ 3 problems (2 errors, 1 warning)\x1b[39m\n"

    result = parse_eslint_output(output)

    assert result.parsed
    assert not result.passed
    assert (result.error_count, result.warning_count) == (2, 1)


def test_eslint_warnings_only_summary_passes() -> None:
    result = parse_eslint_output("✖ 4 problems (0 errors, 4 warnings)")

    assert result.passed
    assert result.warning_count == 4


def test_eslint_counts_diagnostic_lines_without_summary() -> None:
    output = (
        "/workspace/src/a.ts\n"
        "  3:5   error    'x' is defined but never used  no-unused-vars\n"
        "  10:1  warning  Unexpected console statement   no-console\n"
    )

    result = parse_eslint_output(output)

    assert result.parsed
    assert not result.passed
    assert (result.error_count, result.warning_count) == (1, 1)


def test_eslint_unrecognized_output_fails_open() -> None:
    result = parse_eslint_output("Oops! Something went wrong")

    assert not result.parsed
    assert result.passed
    assert result.details.startswith("lint finished (output not recognized)")
