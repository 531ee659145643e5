"""
Boundary adapters from upstream job records to canonical audit issues.

Each upstream representation is an explicit tagged record (``kind`` field) with a
dedicated conversion; nothing downstream guesses where issues live in free-form
job output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar, Final

from acr_conformance.domain.models import (
    AuditIssue,
    RemediationRecord,
    RemediationStatus,
    Severity,
    as_severity,
    canonical_json,
)

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

KIND_REMEDIATION_TASK: Final[str] = "remediation-task"
KIND_RAW_ISSUE: Final[str] = "raw-issue"
KIND_CRITERION_RECORD: Final[str] = "criterion-record"

_UNKNOWN_CODE = "UNKNOWN"
_NO_DESCRIPTION = "No description available"


class UpstreamRecordError(ValueError):
    """Raised when an upstream record cannot be adapted."""


def _optional_text(payload: Mapping[str, object], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _location_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        return canonical_json({str(key): item for key, item in value.items()})
    return str(value)


def _as_utc_datetime(value: str | None, path: str) -> datetime | None:
    if value is None:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise UpstreamRecordError(f"{path}: invalid ISO-8601 datetime {value!r}") from exc
    if parsed.tzinfo is None:
        raise UpstreamRecordError(f"{path}: datetime must be timezone-aware")
    return parsed.astimezone(UTC)


def _str_list(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise UpstreamRecordError(f"{path}: expected array, got {type(value).__name__}")
    return tuple(str(item).strip() for item in value if str(item).strip())


@dataclass(frozen=True, slots=True)
class RemediationTaskRecord:
    """A task from the remediation plan; fixed tasks also yield a remediation record."""

    kind: ClassVar[str] = KIND_REMEDIATION_TASK

    issue_code: str
    severity: Severity
    message: str
    status: RemediationStatus
    file_path: str | None = None
    location: str | None = None
    wcag_criteria: tuple[str, ...] = ()
    issue_id: str | None = None
    fixed_at: datetime | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> RemediationTaskRecord:
        status_raw = _optional_text(payload, "status") or RemediationStatus.PENDING.value
        try:
            status = RemediationStatus(status_raw.lower())
        except ValueError as exc:
            raise UpstreamRecordError(
                f"{KIND_REMEDIATION_TASK}.status: unknown status {status_raw!r}"
            ) from exc
        fixed_at_raw = _optional_text(payload, "fixed_at", "completed_at")
        return cls(
            issue_code=_optional_text(payload, "issue_code", "code") or _UNKNOWN_CODE,
            severity=as_severity(payload.get("severity")),
            message=_optional_text(payload, "message", "description") or _NO_DESCRIPTION,
            status=status,
            file_path=_optional_text(payload, "file_path"),
            location=_location_text(payload.get("location")),
            wcag_criteria=_str_list(
                payload.get("wcag_criteria"), f"{KIND_REMEDIATION_TASK}.wcag_criteria"
            ),
            issue_id=_optional_text(payload, "id", "issue_id"),
            fixed_at=_as_utc_datetime(fixed_at_raw, f"{KIND_REMEDIATION_TASK}.fixed_at"),
        )


@dataclass(frozen=True, slots=True)
class RawIssueRecord:
    """A scanner finding as emitted by the audit tool (rule id plus impact)."""

    kind: ClassVar[str] = KIND_RAW_ISSUE

    rule_id: str
    impact: Severity
    message: str
    file_path: str | None = None
    location: str | None = None
    wcag_criteria: tuple[str, ...] = ()
    issue_id: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> RawIssueRecord:
        return cls(
            rule_id=_optional_text(payload, "rule_id", "code") or _UNKNOWN_CODE,
            impact=as_severity(payload.get("impact", payload.get("severity"))),
            message=_optional_text(payload, "message", "description") or _NO_DESCRIPTION,
            file_path=_optional_text(payload, "file_path"),
            location=_location_text(payload.get("location")),
            wcag_criteria=_str_list(
                payload.get("wcag_criteria"), f"{KIND_RAW_ISSUE}.wcag_criteria"
            ),
            issue_id=_optional_text(payload, "id", "issue_id"),
        )


@dataclass(frozen=True, slots=True)
class CriterionRecord:
    """A conformance-engine finding already attached to one criterion."""

    kind: ClassVar[str] = KIND_CRITERION_RECORD

    criterion_id: str
    code: str
    message: str
    severity: Severity
    location: str | None = None
    file_path: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> CriterionRecord:
        criterion_id = _optional_text(payload, "criterion_id")
        if criterion_id is None:
            raise UpstreamRecordError(f"{KIND_CRITERION_RECORD}.criterion_id: required")
        return cls(
            criterion_id=criterion_id,
            code=_optional_text(payload, "code") or _UNKNOWN_CODE,
            message=_optional_text(payload, "message", "description") or "No description",
            severity=as_severity(payload.get("severity")),
            location=_location_text(payload.get("location")),
            file_path=_optional_text(payload, "file_path"),
        )


UpstreamRecord = RemediationTaskRecord | RawIssueRecord | CriterionRecord

_RECORD_TYPES: Final[dict[str, type[UpstreamRecord]]] = {
    KIND_REMEDIATION_TASK: RemediationTaskRecord,
    KIND_RAW_ISSUE: RawIssueRecord,
    KIND_CRITERION_RECORD: CriterionRecord,
}


def parse_upstream_record(payload: Mapping[str, object]) -> UpstreamRecord:
    kind = payload.get("kind")
    record_type = _RECORD_TYPES.get(kind) if isinstance(kind, str) else None
    if record_type is None:
        allowed = ", ".join(sorted(_RECORD_TYPES))
        raise UpstreamRecordError(f"kind: invalid value {kind!r}; expected one of: {allowed}")
    return record_type.from_mapping(payload)


def remediation_task_to_issue(record: RemediationTaskRecord) -> AuditIssue:
    return AuditIssue(
        code=record.issue_code,
        severity=record.severity,
        message=record.message,
        file_path=record.file_path,
        location=record.location,
        explicit_criteria=record.wcag_criteria,
        issue_id=record.issue_id,
    )


def raw_issue_to_issue(record: RawIssueRecord) -> AuditIssue:
    return AuditIssue(
        code=record.rule_id,
        severity=record.impact,
        message=record.message,
        file_path=record.file_path,
        location=record.location,
        explicit_criteria=record.wcag_criteria,
        issue_id=record.issue_id,
    )


def criterion_record_to_issue(record: CriterionRecord) -> AuditIssue:
    return AuditIssue(
        code=record.code,
        severity=record.severity,
        message=record.message,
        file_path=record.file_path,
        location=record.location,
        explicit_criteria=(record.criterion_id,),
    )


def to_audit_issue(record: UpstreamRecord) -> AuditIssue:
    if isinstance(record, RemediationTaskRecord):
        return remediation_task_to_issue(record)
    if isinstance(record, RawIssueRecord):
        return raw_issue_to_issue(record)
    return criterion_record_to_issue(record)


def remediation_task_to_record(record: RemediationTaskRecord) -> RemediationRecord:
    return RemediationRecord(
        issue_code=record.issue_code,
        status=record.status,
        fixed_at=record.fixed_at,
    )


@dataclass(frozen=True, slots=True)
class AdaptedInput:
    """Canonical evaluator input produced from one document's upstream records."""

    issues: tuple[AuditIssue, ...]
    remediation: tuple[RemediationRecord, ...]


def adapt_upstream(payloads: Iterable[Mapping[str, object]]) -> AdaptedInput:
    """Convert tagged upstream records once, at the boundary, into issues and remediation."""

    issues: list[AuditIssue] = []
    remediation: list[RemediationRecord] = []
    for index, payload in enumerate(payloads):
        try:
            record = parse_upstream_record(payload)
        except UpstreamRecordError as exc:
            raise UpstreamRecordError(f"records[{index}].{exc}") from exc
        issues.append(to_audit_issue(record))
        if isinstance(record, RemediationTaskRecord) and record.status != RemediationStatus.PENDING:
            remediation.append(remediation_task_to_record(record))
    return AdaptedInput(issues=tuple(issues), remediation=tuple(remediation))


__all__ = [
    "KIND_CRITERION_RECORD",
    "KIND_RAW_ISSUE",
    "KIND_REMEDIATION_TASK",
    "AdaptedInput",
    "CriterionRecord",
    "RawIssueRecord",
    "RemediationTaskRecord",
    "UpstreamRecord",
    "UpstreamRecordError",
    "adapt_upstream",
    "criterion_record_to_issue",
    "parse_upstream_record",
    "raw_issue_to_issue",
    "remediation_task_to_issue",
    "remediation_task_to_record",
    "to_audit_issue",
]
