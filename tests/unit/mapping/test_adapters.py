"""Unit tests for tagged upstream record adapters."""

from __future__ import annotations

import pytest

from acr_conformance.domain.models import RemediationStatus, Severity
from acr_conformance.mapping import (
    CriterionRecord,
    RawIssueRecord,
    RemediationTaskRecord,
    UpstreamRecordError,
    adapt_upstream,
    parse_upstream_record,
    to_audit_issue,
)

from . import FIXED_CLOCK_TS


def test_parse_dispatches_on_kind() -> None:
    task = parse_upstream_record(
        {"kind": "remediation-task", "issue_code": "img-alt", "status": "completed"}
    )
    raw = parse_upstream_record({"kind": "raw-issue", "rule_id": "label", "impact": "critical"})
    engine = parse_upstream_record(
        {"kind": "criterion-record", "criterion_id": "1.4.3", "code": "contrast"}
    )

    assert isinstance(task, RemediationTaskRecord)
    assert isinstance(raw, RawIssueRecord)
    assert isinstance(engine, CriterionRecord)
    assert raw.impact is Severity.CRITICAL


@pytest.mark.parametrize("kind", [None, "mystery", 7])
def test_parse_rejects_unknown_kind(kind: object) -> None:
    with pytest.raises(UpstreamRecordError, match="kind: invalid value"):
        parse_upstream_record({"kind": kind, "code": "img-alt"})


def test_remediation_task_defaults_and_location_objects() -> None:
    record = RemediationTaskRecord.from_mapping(
        {
            "kind": "remediation-task",
            "severity": "weird",
            "location": {"line": 4, "column": 12},
            "wcag_criteria": ["1.1.1", " "],
        }
    )

    assert record.issue_code == "UNKNOWN"
    assert record.message == "No description available"
    assert record.status is RemediationStatus.PENDING
    assert record.severity is Severity.UNKNOWN
    assert record.location == '{"column":12,"line":4}'
    assert record.wcag_criteria == ("1.1.1",)


def test_remediation_task_parses_fixed_at_and_rejects_bad_values() -> None:
    record = RemediationTaskRecord.from_mapping(
        {"issue_code": "img-alt", "status": "Auto-Fixed", "fixed_at": "2026-03-01T09:30:00Z"}
    )
    assert record.status is RemediationStatus.AUTO_FIXED
    assert record.fixed_at == FIXED_CLOCK_TS

    with pytest.raises(UpstreamRecordError, match="unknown status"):
        RemediationTaskRecord.from_mapping({"issue_code": "img-alt", "status": "done-ish"})

    with pytest.raises(UpstreamRecordError, match="timezone-aware"):
        RemediationTaskRecord.from_mapping(
            {"issue_code": "img-alt", "status": "fixed", "fixed_at": "2026-03-01T09:30:00"}
        )


def test_criterion_record_requires_criterion_id_and_tags_issue() -> None:
    with pytest.raises(UpstreamRecordError, match="criterion_id: required"):
        CriterionRecord.from_mapping({"code": "contrast"})

    record = CriterionRecord.from_mapping(
        {"criterion_id": "1.4.3", "code": "contrast", "severity": "moderate"}
    )
    converted = to_audit_issue(record)
    assert converted.explicit_criteria == ("1.4.3",)
    assert converted.message == "No description"


def test_adapt_upstream_splits_issues_and_non_pending_remediation() -> None:
    adapted = adapt_upstream(
        [
            {"kind": "raw-issue", "rule_id": "color-contrast", "impact": "serious"},
            {"kind": "remediation-task", "issue_code": "img-alt", "status": "completed"},
            {"kind": "remediation-task", "issue_code": "label", "status": "pending"},
            {"kind": "remediation-task", "issue_code": "RSC-001", "status": "failed"},
        ]
    )

    assert [item.code for item in adapted.issues] == [
        "color-contrast",
        "img-alt",
        "label",
        "RSC-001",
    ]
    assert [(item.issue_code, item.status) for item in adapted.remediation] == [
        ("img-alt", RemediationStatus.COMPLETED),
        ("RSC-001", RemediationStatus.FAILED),
    ]


def test_adapt_upstream_reports_record_index() -> None:
    with pytest.raises(UpstreamRecordError, match=r"records\[1\]\.kind"):
        adapt_upstream([{"kind": "raw-issue", "rule_id": "img-alt"}, {"code": "img-alt"}])
