"""Quality evaluation: tolerant QA output parsing, waivers, and run judgment."""

from agentcompany.quality.checks import QAReport, QARunner
from agentcompany.quality.judgment import (
    CheckResult,
    Judgment,
    JudgmentEngine,
    JudgmentStatus,
    format_judgment,
)
from agentcompany.quality.qa_parser import parse_eslint_output, parse_vitest_output, strip_ansi
from agentcompany.quality.waiver import (
    WaiverRepository,
    WaiverStatus,
    WaiverValidationResult,
    format_validation_result,
    is_overdue,
    parse_waiver_content,
    validate_waiver_content,
    validate_waiver_file,
)

__all__ = [
    "CheckResult",
    "Judgment",
    "JudgmentEngine",
    "JudgmentStatus",
    "QAReport",
    "QARunner",
    "WaiverRepository",
    "WaiverStatus",
    "WaiverValidationResult",
    "format_judgment",
    "format_validation_result",
    "is_overdue",
    "parse_eslint_output",
    "parse_vitest_output",
    "parse_waiver_content",
    "strip_ansi",
    "validate_waiver_content",
    "validate_waiver_file",
]
