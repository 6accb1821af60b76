"""PASS / FAIL / WAIVER verdicts for finished runs.

File: src/agentcompany/quality/judgment.py

Purpose
- Evaluate a run's recorded quality evidence into named checks.
- Let an approved, valid, non-overdue waiver convert a FAIL into a WAIVER.
- Persist the verdict as ``judgment.json`` next to the run result.

Policy
- A FAIL verdict is a return value; only unknown runs raise.
- Coverage fails closed: unknown coverage (``-1``) never meets the threshold.
- Evidence is read in order of specificity: explicit ``qualityGates``, then
  parsed QA output under ``qa``, then the bare run ``status``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Final

import structlog

from agentcompany.constants import DEFAULT_COVERAGE_THRESHOLD
from agentcompany.domain.models import EslintParseResult, QAParseResult, utc_now_iso
from agentcompany.errors import NotFoundError, ValidationError
from agentcompany.persistence.run_store import RunStore
from agentcompany.quality.waiver import WaiverRepository, waiver_blocker

GATE_NAMES: Final[tuple[str, ...]] = ("lint", "test", "e2e", "format")
COVERAGE_CHECK: Final[str] = "coverage"
RUN_STATUS_SUCCESS: Final[str] = "success"

_STATUS_ICONS: Final[dict[str, str]] = {"PASS": "✅", "FAIL": "❌", "WAIVER": "⚠️"}


class JudgmentStatus(StrEnum):
    PASS = "PASS"
    FAIL = "FAIL"
    WAIVER = "WAIVER"


@dataclass(frozen=True, slots=True)
class CheckResult:
    passed: bool
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"passed": self.passed}
        if self.details:
            payload["details"] = self.details
        return payload

    @classmethod
    def from_dict(cls, data: object) -> CheckResult:
        if not isinstance(data, Mapping):
            return cls(passed=True)
        details = data.get("details")
        return cls(
            passed=bool(data.get("passed", True)),
            details=str(details) if details else None,
        )


@dataclass(frozen=True, slots=True)
class Judgment:
    status: JudgmentStatus
    run_id: str
    checks: dict[str, CheckResult]
    reasons: tuple[str, ...] = ()
    waiver_id: str | None = None
    coverage: float = -1.0
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def passed(self) -> bool:
        """PASS and WAIVER both let the work proceed."""
        return self.status is not JudgmentStatus.FAIL

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "run_id": self.run_id,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
            "reasons": list(self.reasons),
            "coverage": self.coverage,
            "coverage_threshold": self.coverage_threshold,
        }
        if self.waiver_id is not None:
            payload["waiver_id"] = self.waiver_id
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Judgment:
        try:
            status = JudgmentStatus(str(data.get("status")))
        except ValueError as exc:
            raise ValidationError(f"invalid judgment status {data.get('status')!r}") from exc
        checks_raw = data.get("checks")
        checks = (
            {str(name): CheckResult.from_dict(item) for name, item in checks_raw.items()}
            if isinstance(checks_raw, Mapping)
            else {}
        )
        waiver_id = data.get("waiver_id")
        return cls(
            status=status,
            run_id=str(data.get("run_id", "")),
            checks=checks,
            reasons=tuple(str(item) for item in data.get("reasons", ())),
            waiver_id=str(waiver_id) if waiver_id else None,
            coverage=float(data.get("coverage", -1.0)),
            coverage_threshold=float(data.get("coverage_threshold", DEFAULT_COVERAGE_THRESHOLD)),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
        )


class JudgmentEngine:
    """Judges runs stored in ``run_store`` against the configured threshold."""

    def __init__(
        self,
        run_store: RunStore,
        waiver_repository: WaiverRepository,
        *,
        coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
    ) -> None:
        if not 0.0 <= coverage_threshold <= 100.0:
            raise ValueError("coverage_threshold must be within 0..100")
        self._run_store = run_store
        self._waivers = waiver_repository
        self._coverage_threshold = coverage_threshold
        self._logger = structlog.get_logger(__name__)

    @property
    def coverage_threshold(self) -> float:
        return self._coverage_threshold

    def execute_judgment(
        self,
        run_id: str,
        waiver_id: str | None = None,
        *,
        today: date | None = None,
    ) -> Judgment:
        """Judge ``run_id`` and persist the verdict; raises ``NotFoundError`` for unknown runs."""
        run_result = self._run_store.load_result(run_id)
        if run_result is None:
            raise NotFoundError(f"run not found: {run_id}")

        checks = evaluate_checks(run_result)
        coverage = extract_coverage(run_result)
        if has_test_evidence(run_result) and COVERAGE_CHECK not in checks:
            checks[COVERAGE_CHECK] = self._coverage_check(coverage)

        reasons = [
            f"{name}: {check.details or 'failed'}"
            for name, check in checks.items()
            if not check.passed
        ]

        status = JudgmentStatus.PASS
        applied_waiver: str | None = None
        if reasons:
            status = JudgmentStatus.FAIL
            if waiver_id:
                validation = self._waivers.validate(waiver_id, today=today)
                blocker = waiver_blocker(validation, today=today)
                if blocker is None:
                    status = JudgmentStatus.WAIVER
                    applied_waiver = waiver_id
                else:
                    reasons.append(f"waiver {waiver_id}: {blocker}")

        judgment = Judgment(
            status=status,
            run_id=run_id,
            checks=checks,
            reasons=tuple(reasons),
            waiver_id=applied_waiver,
            coverage=coverage,
            coverage_threshold=self._coverage_threshold,
        )
        self._run_store.save_judgment(run_id, judgment.to_dict())
        self._logger.info(
            "judgment_recorded",
            run_id=run_id,
            status=status.value,
            waiver_id=applied_waiver,
            failed_checks=[name for name, check in checks.items() if not check.passed],
        )
        return judgment

    def load_judgment(self, run_id: str) -> Judgment | None:
        payload = self._run_store.load_judgment(run_id)
        return None if payload is None else Judgment.from_dict(payload)

    def _coverage_check(self, coverage: float) -> CheckResult:
        if coverage < 0:
            return CheckResult(passed=False, details="coverage unknown")
        if coverage < self._coverage_threshold:
            return CheckResult(
                passed=False,
                details=f"{coverage:g}% is below the {self._coverage_threshold:g}% threshold",
            )
        return CheckResult(passed=True, details=f"{coverage:g}%")


def evaluate_checks(run_result: Mapping[str, Any]) -> dict[str, CheckResult]:
    """Named checks from the most specific evidence the run result carries."""
    gates = run_result.get("qualityGates")
    if isinstance(gates, Mapping):
        checks = {name: CheckResult.from_dict(gates.get(name)) for name in GATE_NAMES}
        if COVERAGE_CHECK in gates:
            checks[COVERAGE_CHECK] = CheckResult.from_dict(gates[COVERAGE_CHECK])
        return checks

    qa = run_result.get("qa")
    if isinstance(qa, Mapping) and ("test" in qa or "lint" in qa):
        checks = {name: CheckResult(passed=True) for name in GATE_NAMES}
        if isinstance(qa.get("lint"), Mapping):
            lint = EslintParseResult.from_dict(qa["lint"])
            checks["lint"] = CheckResult(passed=lint.passed, details=lint.details or None)
        if isinstance(qa.get("test"), Mapping):
            checks["test"] = _test_check(QAParseResult.from_dict(qa["test"]))
        return checks

    checks = {name: CheckResult(passed=True) for name in GATE_NAMES}
    if run_result.get("status") != RUN_STATUS_SUCCESS:
        checks["test"] = CheckResult(passed=False, details="Run status indicates failure")
    return checks


def extract_coverage(run_result: Mapping[str, Any]) -> float:
    """Statement coverage percent, ``-1`` when the run did not record any."""
    qa = run_result.get("qa")
    if isinstance(qa, Mapping) and isinstance(qa.get("test"), Mapping):
        value = qa["test"].get("coverage")
        if _is_number(value):
            return float(value)
    value = run_result.get("coverage")
    if _is_number(value):
        return float(value)
    return -1.0


def has_test_evidence(run_result: Mapping[str, Any]) -> bool:
    """True when the run recorded parsed test output or a coverage figure."""
    qa = run_result.get("qa")
    return "coverage" in run_result or (isinstance(qa, Mapping) and "test" in qa)


def format_judgment(judgment: Judgment) -> str:
    lines = [
        f"{_STATUS_ICONS[judgment.status.value]} Judgment: {judgment.status.value}",
        f"Run ID: {judgment.run_id}",
        f"Timestamp: {judgment.timestamp}",
        "",
        "Checks:",
    ]
    width = max((len(name) for name in judgment.checks), default=0) + 1
    for name, check in judgment.checks.items():
        mark = "✓" if check.passed else "✗"
        label = f"{name}:".ljust(width + 1)
        lines.append(f"  {label} {mark} {check.details or ''}".rstrip())

    if judgment.reasons:
        lines.append("")
        lines.append("Reasons:")
        lines.extend(f"  - {reason}" for reason in judgment.reasons)
    if judgment.waiver_id:
        lines.append("")
        lines.append(f"Waiver applied: {judgment.waiver_id}")
    return "\n".join(lines)


def _test_check(result: QAParseResult) -> CheckResult:
    if not result.parsed:
        return CheckResult(passed=False, details="test output not recognized")
    summary = f"{result.passed}/{result.total} passed"
    if result.failed:
        return CheckResult(passed=False, details=f"{summary}, {result.failed} failed")
    if result.total == 0:
        return CheckResult(passed=False, details="no tests were run")
    return CheckResult(passed=True, details=summary)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = [
    "COVERAGE_CHECK",
    "GATE_NAMES",
    "CheckResult",
    "Judgment",
    "JudgmentEngine",
    "JudgmentStatus",
    "evaluate_checks",
    "extract_coverage",
    "format_judgment",
    "has_test_evidence",
]
