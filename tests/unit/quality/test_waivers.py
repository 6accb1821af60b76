"""Unit tests for waiver parsing, validation, and the waiver repository."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from agentcompany.quality.waiver import (
    WaiverRepository,
    WaiverStatus,
    format_validation_result,
    is_overdue,
    parse_waiver_content,
    parse_waiver_status,
    validate_waiver_content,
    validate_waiver_file,
    waiver_blocker,
)

TODAY = date(2026, 3, 15)


def _waiver(
    *,
    deadline: str = "2026-04-01",
    reason: str = "Legacy parser has no test harness yet",
    follow_up: str = "- [ ] Add a test harness for the legacy parser",
    status: str = "- [ ] Proposed\n- [x] Approved\n- [ ] Rejected",
) -> str:
    return f"""# Waiver

## Request Date
2026-03-01

## Applicant
Dana

## Target
src/legacy/parser.ts

## Reason
{reason}

## Urgency
Medium

## Mitigation
Manual review of every change

## Deadline
{deadline}

## Follow-up Tasks
{follow_up}

## Approver
Lee

## Status
{status}
"""


def test_parse_extracts_sections() -> None:
    fields = parse_waiver_content(_waiver())

    assert fields.applicant == "Dana"
    assert fields.target == "src/legacy/parser.ts"
    assert fields.follow_up_tasks == ["- [ ] Add a test harness for the legacy parser"]
    assert fields.status is WaiverStatus.APPROVED


def test_valid_waiver_has_no_errors() -> None:
    result = validate_waiver_content(_waiver(), today=TODAY)

    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_missing_required_sections_are_errors() -> None:
    result = validate_waiver_content("## Reason\nbecause\n", today=TODAY)

    assert not result.valid
    assert "required field 'Applicant' is missing" in result.errors
    assert "required field 'Target' is missing" in result.errors
    assert "required field 'Deadline' is missing" in result.errors
    assert "required field 'Follow-up Tasks' is missing" in result.errors


def test_malformed_deadline_is_an_error() -> None:
    result = validate_waiver_content(_waiver(deadline="next month"), today=TODAY)

    assert not result.valid
    assert "deadline must use the YYYY-MM-DD format: next month" in result.errors


def test_past_deadline_is_only_a_warning() -> None:
    result = validate_waiver_content(_waiver(deadline="2026-03-01"), today=TODAY)

    assert result.valid
    assert result.warnings == ["deadline is in the past: 2026-03-01"]


def test_template_placeholders_are_rejected() -> None:
    result = validate_waiver_content(
        _waiver(
            reason="[Why is the exception needed]",
            follow_up="- [ ] [Task to resolve the issue]",
        ),
        today=TODAY,
    )

    assert not result.valid
    assert any(error.startswith("reason is still templated") for error in result.errors)
    assert any(error.startswith("at least one concrete follow-up task") for error in result.errors)


def test_is_overdue_compares_strictly_against_today() -> None:
    assert is_overdue("2026-03-14", today=TODAY)
    assert not is_overdue("2026-03-15", today=TODAY)
    assert not is_overdue("garbage", today=TODAY)
    assert not is_overdue("2026-02-30", today=TODAY)


def test_status_parsing_variants() -> None:
    assert parse_waiver_status(None) is WaiverStatus.PROPOSED
    assert parse_waiver_status("Approved") is WaiverStatus.APPROVED
    assert parse_waiver_status("- [X] Rejected") is WaiverStatus.REJECTED
    assert parse_waiver_status("- [ ] Approved") is WaiverStatus.PROPOSED


def test_blocker_explains_why_a_waiver_cannot_apply() -> None:
    approved = validate_waiver_content(_waiver(), today=TODAY)
    assert waiver_blocker(approved, today=TODAY) is None

    proposed = validate_waiver_content(_waiver(status="- [x] Proposed"), today=TODAY)
    assert waiver_blocker(proposed, today=TODAY) == "waiver is not approved (status: proposed)"

    overdue = validate_waiver_content(_waiver(deadline="2026-03-01"), today=TODAY)
    assert waiver_blocker(overdue, today=TODAY) == "waiver is overdue: 2026-03-01"

    invalid = validate_waiver_content("", today=TODAY)
    blocker = waiver_blocker(invalid, today=TODAY)
    assert blocker is not None
    assert blocker.startswith("waiver is invalid: ")


def test_missing_file_is_an_invalid_result(tmp_path: Path) -> None:
    result = validate_waiver_file(tmp_path / "absent.md", today=TODAY)

    assert not result.valid
    assert result.errors[0].startswith("file not found: ")


def test_format_validation_result() -> None:
    valid_text = format_validation_result(
        validate_waiver_content(_waiver(deadline="2026-03-01"), today=TODAY)
    )
    assert valid_text.startswith("✅ Waiver is valid")
    assert "⚠️ Warnings:" in valid_text

    invalid_text = format_validation_result(validate_waiver_content("", today=TODAY))
    assert invalid_text.startswith("❌ Waiver has errors:")
    assert "  - required field 'Applicant' is missing" in invalid_text


def test_repository_lookup_and_listing(tmp_path: Path) -> None:
    (tmp_path / "WVR-002.md").write_text(_waiver(deadline="2026-05-01"), encoding="utf-8")
    (tmp_path / "WVR-001.md").write_text(_waiver(deadline="2026-03-01"), encoding="utf-8")
    (tmp_path / "WVR-003.md").write_text("## Applicant\nSam\n", encoding="utf-8")
    repo = WaiverRepository(tmp_path)

    assert repo.find("WVR-001") == tmp_path / "WVR-001.md"
    assert repo.find("../WVR-001") is None
    assert repo.validate("WVR-404").errors == ["waiver not found: WVR-404"]

    listed = repo.list_waivers(today=TODAY)
    assert [item.waiver_id for item in listed] == ["WVR-001", "WVR-002", "WVR-003"]
    assert listed[0].overdue
    assert not listed[1].overdue
    assert not listed[2].valid
    assert listed[2].deadline is None


def test_repository_without_directory_lists_nothing(tmp_path: Path) -> None:
    assert WaiverRepository(tmp_path / "missing").list_waivers(today=TODAY) == []
