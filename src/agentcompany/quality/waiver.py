"""Waiver document parsing and validation.

A waiver is a markdown file with fixed ``## <Section>`` headers::

    ## Request Date
    2026-03-01
    ## Applicant
    ...
    ## Target
    ## Reason
    ## Urgency
    ## Mitigation
    ## Deadline
    2026-04-01
    ## Follow-up Tasks
    - [ ] Restore coverage on the parser module
    ## Approver
    ## Status
    - [ ] Proposed
    - [x] Approved
    - [ ] Rejected

Validity is a pure function of the error list; warnings (such as a deadline
in the past) never affect it. Whether a waiver may convert a FAIL verdict is
decided by :func:`waiver_blocker`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from pathlib import Path
from typing import Any, Final

_DATE_RE: Final[re.Pattern[str]] = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CHECKED_BOX_RE: Final[re.Pattern[str]] = re.compile(r"^-\s*\[[xX]\]\s*(.+)$")
_SECTION_PREFIX: Final[str] = "## "
_TASK_PREFIX: Final[str] = "- ["

REASON_PLACEHOLDER: Final[str] = "[Why is the exception needed]"
FOLLOW_UP_PLACEHOLDER: Final[str] = "[Task to resolve"

SECTION_REQUEST_DATE: Final[str] = "Request Date"
SECTION_APPLICANT: Final[str] = "Applicant"
SECTION_TARGET: Final[str] = "Target"
SECTION_REASON: Final[str] = "Reason"
SECTION_URGENCY: Final[str] = "Urgency"
SECTION_MITIGATION: Final[str] = "Mitigation"
SECTION_DEADLINE: Final[str] = "Deadline"
SECTION_FOLLOW_UP_TASKS: Final[str] = "Follow-up Tasks"
SECTION_APPROVER: Final[str] = "Approver"
SECTION_STATUS: Final[str] = "Status"

_SECTION_TO_FIELD: Final[dict[str, str]] = {
    SECTION_REQUEST_DATE.lower(): "request_date",
    SECTION_APPLICANT.lower(): "applicant",
    SECTION_TARGET.lower(): "target",
    SECTION_REASON.lower(): "reason",
    SECTION_URGENCY.lower(): "urgency",
    SECTION_MITIGATION.lower(): "mitigation",
    SECTION_DEADLINE.lower(): "deadline",
    SECTION_APPROVER.lower(): "approver",
    SECTION_STATUS.lower(): "status_text",
}

_REQUIRED_TEXT_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("applicant", SECTION_APPLICANT),
    ("target", SECTION_TARGET),
    ("reason", SECTION_REASON),
    ("deadline", SECTION_DEADLINE),
)


class WaiverStatus(StrEnum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESOLVED = "resolved"


@dataclass(slots=True)
class WaiverFields:
    request_date: str | None = None
    applicant: str | None = None
    target: str | None = None
    reason: str | None = None
    urgency: str | None = None
    mitigation: str | None = None
    deadline: str | None = None
    follow_up_tasks: list[str] | None = None
    approver: str | None = None
    status_text: str | None = None

    @property
    def status(self) -> WaiverStatus:
        return parse_waiver_status(self.status_text)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name in (
            "request_date",
            "applicant",
            "target",
            "reason",
            "urgency",
            "mitigation",
            "deadline",
            "approver",
        ):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.follow_up_tasks is not None:
            payload["follow_up_tasks"] = list(self.follow_up_tasks)
        payload["status"] = self.status.value
        return payload


@dataclass(slots=True)
class WaiverValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fields: WaiverFields = field(default_factory=WaiverFields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "fields": self.fields.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class WaiverSummary:
    waiver_id: str
    path: Path
    deadline: str | None
    status: WaiverStatus
    valid: bool
    overdue: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "waiver_id": self.waiver_id,
            "path": self.path.as_posix(),
            "deadline": self.deadline,
            "status": self.status.value,
            "valid": self.valid,
            "overdue": self.overdue,
        }


def parse_waiver_content(content: str) -> WaiverFields:
    """Split ``content`` on ``## `` headers into typed fields; unknown sections are ignored."""
    fields = WaiverFields()
    current: str | None = None
    body: list[str] = []

    for line in content.splitlines():
        if line.startswith(_SECTION_PREFIX):
            if current is not None:
                _store_section(fields, current, body)
            current = line[len(_SECTION_PREFIX) :].strip()
            body = []
        elif current is not None:
            body.append(line)

    if current is not None:
        _store_section(fields, current, body)
    return fields


def validate_waiver_content(content: str, *, today: date | None = None) -> WaiverValidationResult:
    fields = parse_waiver_content(content)
    errors: list[str] = []
    warnings: list[str] = []

    for attr, section in _REQUIRED_TEXT_FIELDS:
        value = getattr(fields, attr)
        if value is None or not value.strip():
            errors.append(f"required field '{section}' is missing")
    if fields.follow_up_tasks is None:
        errors.append(f"required field '{SECTION_FOLLOW_UP_TASKS}' is missing")

    if fields.deadline:
        deadline = _parse_date(fields.deadline)
        if deadline is None:
            errors.append(f"deadline must use the YYYY-MM-DD format: {fields.deadline}")
        elif deadline < (today or date.today()):
            warnings.append(f"deadline is in the past: {fields.deadline}")

    if fields.reason and REASON_PLACEHOLDER in fields.reason:
        errors.append("reason is still templated; describe the concrete reason")

    if fields.follow_up_tasks is not None:
        concrete = [task for task in fields.follow_up_tasks if FOLLOW_UP_PLACEHOLDER not in task]
        if not concrete:
            errors.append(
                "at least one concrete follow-up task is required (template entries do not count)"
            )

    return WaiverValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        fields=fields,
    )


def validate_waiver_file(path: str | Path, *, today: date | None = None) -> WaiverValidationResult:
    """Validate a waiver on disk; a missing file is an invalid result, not an exception."""
    target = Path(path)
    try:
        content = target.read_text(encoding="utf-8")
    except FileNotFoundError:
        return WaiverValidationResult(valid=False, errors=[f"file not found: {target}"])
    return validate_waiver_content(content, today=today)


def is_overdue(deadline: str, *, today: date | None = None) -> bool:
    """True iff ``deadline`` is strictly before today; malformed input is never overdue."""
    parsed = _parse_date(deadline)
    if parsed is None:
        return False
    return parsed < (today or date.today())


def parse_waiver_status(text: str | None) -> WaiverStatus:
    """Read the checked box of the Status section, or a bare status word."""
    if not text:
        return WaiverStatus.PROPOSED
    for line in text.splitlines():
        match = _CHECKED_BOX_RE.match(line.strip())
        if match is not None:
            status = _status_from_word(match.group(1))
            if status is not None:
                return status
    if _TASK_PREFIX not in text:
        status = _status_from_word(text)
        if status is not None:
            return status
    return WaiverStatus.PROPOSED


def waiver_blocker(result: WaiverValidationResult, *, today: date | None = None) -> str | None:
    """Reason the waiver cannot convert a FAIL verdict, or ``None`` when it can."""
    if not result.valid:
        return "waiver is invalid: " + "; ".join(result.errors)
    status = result.fields.status
    if status is not WaiverStatus.APPROVED:
        return f"waiver is not approved (status: {status.value})"
    if result.fields.deadline and is_overdue(result.fields.deadline, today=today):
        return f"waiver is overdue: {result.fields.deadline}"
    return None


def format_validation_result(result: WaiverValidationResult) -> str:
    lines: list[str] = []
    if result.valid:
        lines.append("✅ Waiver is valid")
    else:
        lines.append("❌ Waiver has errors:")
        lines.extend(f"  - {error}" for error in result.errors)

    if result.warnings:
        lines.append("")
        lines.append("⚠️ Warnings:")
        lines.extend(f"  - {warning}" for warning in result.warnings)
    return "\n".join(lines)


class WaiverRepository:
    """Waiver documents stored as ``<waivers_dir>/<waiver-id>.md``."""

    def __init__(self, waivers_dir: str | Path) -> None:
        self._dir = Path(waivers_dir)

    @property
    def waivers_dir(self) -> Path:
        return self._dir

    def find(self, waiver_id: str) -> Path | None:
        normalized = waiver_id.strip()
        if not normalized or "/" in normalized or "\\" in normalized or normalized.startswith("."):
            return None
        candidate = self._dir / f"{normalized}.md"
        return candidate if candidate.is_file() else None

    def validate(self, waiver_id: str, *, today: date | None = None) -> WaiverValidationResult:
        path = self.find(waiver_id)
        if path is None:
            return WaiverValidationResult(valid=False, errors=[f"waiver not found: {waiver_id}"])
        return validate_waiver_file(path, today=today)

    def list_waivers(self, *, today: date | None = None) -> list[WaiverSummary]:
        """All waivers sorted by deadline; undated waivers sort last."""
        if not self._dir.is_dir():
            return []
        summaries: list[WaiverSummary] = []
        for path in sorted(self._dir.glob("*.md")):
            result = validate_waiver_file(path, today=today)
            deadline = result.fields.deadline
            summaries.append(
                WaiverSummary(
                    waiver_id=path.stem,
                    path=path,
                    deadline=deadline,
                    status=result.fields.status,
                    valid=result.valid,
                    overdue=bool(deadline) and is_overdue(deadline or "", today=today),
                )
            )
        return sorted(summaries, key=lambda item: (item.deadline is None, item.deadline or ""))


def _store_section(fields: WaiverFields, section: str, body: list[str]) -> None:
    key = section.strip().lower()
    if key == SECTION_FOLLOW_UP_TASKS.lower():
        fields.follow_up_tasks = [
            line.strip() for line in body if line.strip().startswith(_TASK_PREFIX)
        ]
        return
    attr = _SECTION_TO_FIELD.get(key)
    if attr is None:
        return
    text = "\n".join(line.strip() for line in body if line.strip())
    setattr(fields, attr, text)


def _parse_date(value: str) -> date | None:
    candidate = value.strip()
    if not _DATE_RE.match(candidate):
        return None
    try:
        return date.fromisoformat(candidate)
    except ValueError:
        return None


def _status_from_word(text: str) -> WaiverStatus | None:
    word = text.strip().split()[0].lower() if text.strip() else ""
    try:
        return WaiverStatus(word)
    except ValueError:
        return None


__all__ = [
    "FOLLOW_UP_PLACEHOLDER",
    "REASON_PLACEHOLDER",
    "WaiverFields",
    "WaiverRepository",
    "WaiverStatus",
    "WaiverSummary",
    "WaiverValidationResult",
    "format_validation_result",
    "is_overdue",
    "parse_waiver_content",
    "parse_waiver_status",
    "validate_waiver_content",
    "validate_waiver_file",
    "waiver_blocker",
]
