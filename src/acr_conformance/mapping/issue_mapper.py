"""
Rule-id to success-criterion mapping.

Detected issues carry a rule code from the scanner that produced them (ACE rules,
EPUBCheck resource codes, platform structure checks). ``RULE_TO_CRITERIA`` is the
static many-to-many table translating those codes to criterion ids; explicit
criterion tags on an issue are honored in addition to the table.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Final

import structlog

from acr_conformance.domain.models import AuditIssue, FixMethod, datetime_to_iso8601z

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017


RULE_TO_CRITERIA: Final[Mapping[str, tuple[str, ...]]] = MappingProxyType(
    {
        # EPUBCheck resource errors carry no criterion.
        "RSC-001": (),
        "RSC-002": (),
        "RSC-003": (),
        "RSC-005": (),
        "RSC-006": (),
        "RSC-007": (),
        "RSC-008": (),
        "RSC-010": (),
        "RSC-011": (),
        "RSC-012": (),
        "RSC-015": (),
        "RSC-016": (),
        "RSC-017": (),
        # Platform structure and metadata checks.
        "EPUB-STRUCT-001": ("1.3.1",),
        "EPUB-STRUCT-002": ("1.3.1",),
        "EPUB-STRUCT-003": ("1.3.1",),
        "EPUB-STRUCT-004": ("1.3.1",),
        "EPUB-IMG-001": ("1.1.1",),
        "EPUB-PAGE-001": ("2.4.5",),
        "EPUB-LANG-001": ("3.1.1",),
        "EPUB-TITLE-001": ("2.4.2",),
        "EPUB-META-001": ("3.1.1",),
        "EPUB-META-002": (),
        "EPUB-META-003": (),
        "EPUB-META-004": (),
        "EPUB-SEM-001": ("3.1.1", "3.1.2"),
        "EPUB-SEM-002": ("2.4.4",),
        "EPUB-NAV-001": ("2.4.1",),
        "EPUB-FIG-001": ("1.1.1",),
        # Images and non-text content.
        "img-alt": ("1.1.1",),
        "area-alt": ("1.1.1",),
        "input-image-alt": ("1.1.1",),
        "object-alt": ("1.1.1",),
        "svg-img-alt": ("1.1.1",),
        # Language.
        "html-has-lang": ("3.1.1",),
        "html-lang-valid": ("3.1.1",),
        "valid-lang": ("3.1.2",),
        # Headings.
        "heading-order": ("1.3.1", "2.4.6"),
        "empty-heading": ("1.3.1", "2.4.6"),
        "p-as-heading": ("1.3.1",),
        # Lists.
        "list": ("1.3.1",),
        "listitem": ("1.3.1",),
        "definition-list": ("1.3.1",),
        # Tables.
        "table-duplicate-name": ("1.3.1",),
        "td-headers-attr": ("1.3.1", "4.1.1"),
        "th-has-data-cells": ("1.3.1",),
        "layout-table": ("1.3.1",),
        "scope-attr-valid": ("1.3.1",),
        "td-has-header": ("1.3.1",),
        # Links.
        "link-name": ("2.4.4", "4.1.2"),
        "link-in-text-block": ("1.4.1",),
        "identical-links-same-purpose": ("2.4.4",),
        # Color and contrast.
        "color-contrast": ("1.4.3",),
        "color-contrast-enhanced": ("1.4.6",),
        "use-of-color": ("1.4.1",),
        # Forms.
        "label": ("1.3.1", "3.3.2", "4.1.2"),
        "label-title-only": ("3.3.2",),
        "button-name": ("4.1.2",),
        "input-button-name": ("4.1.2",),
        "select-name": ("4.1.2",),
        "textarea-label": ("4.1.2",),
        # ARIA.
        "aria-allowed-attr": ("4.1.2",),
        "aria-required-attr": ("4.1.2",),
        "aria-required-children": ("1.3.1", "4.1.2"),
        "aria-required-parent": ("1.3.1", "4.1.2"),
        "aria-roles": ("4.1.2",),
        "aria-valid-attr-value": ("4.1.2",),
        "aria-valid-attr": ("4.1.2",),
        "aria-hidden-focus": ("4.1.2",),
        # Titles and landmarks.
        "document-title": ("2.4.2",),
        "landmark-one-main": ("1.3.1",),
        "landmark-no-duplicate-banner": ("1.3.1",),
        "landmark-no-duplicate-contentinfo": ("1.3.1",),
        "region": ("1.3.1",),
        # Keyboard, focus, and bypass.
        "accesskeys": ("2.4.1",),
        "tabindex": ("2.4.3",),
        "focus-order-semantics": ("2.4.3",),
        "bypass": ("2.4.1",),
        "skip-link": ("2.4.1",),
        # Parsing.
        "duplicate-id": ("4.1.1",),
        "duplicate-id-active": ("4.1.1",),
        "duplicate-id-aria": ("4.1.1",),
        # Timing and viewport.
        "meta-refresh": ("2.2.1", "2.2.4", "3.2.5"),
        "meta-viewport": ("1.4.4",),
        # Time-based media.
        "audio-caption": ("1.2.2",),
        "video-caption": ("1.2.2",),
        "video-description": ("1.2.3", "1.2.5"),
    }
)

REMEDIATED: Final[str] = "REMEDIATED"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def criteria_for_rule(
    rule_id: str,
    *,
    rule_table: Mapping[str, Sequence[str]] = RULE_TO_CRITERIA,
) -> tuple[str, ...]:
    return tuple(rule_table.get(rule_id, ()))


@dataclass(frozen=True, slots=True)
class CriterionIssueGroup:
    criterion_id: str
    issues: tuple[AuditIssue, ...]

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    def to_dict(self) -> dict[str, object]:
        return {
            "criterion_id": self.criterion_id,
            "issue_count": self.issue_count,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True, slots=True)
class IssueMapping:
    """Issues grouped by criterion, plus the issues no criterion claimed."""

    by_criterion: Mapping[str, tuple[AuditIssue, ...]]
    unmapped: tuple[AuditIssue, ...]

    def issues_for(self, criterion_id: str) -> tuple[AuditIssue, ...]:
        return self.by_criterion.get(criterion_id, ())

    @property
    def total_issue_count(self) -> int:
        seen = {
            issue.stable_id for issues in self.by_criterion.values() for issue in issues
        }
        seen.update(issue.stable_id for issue in self.unmapped)
        return len(seen)


@dataclass(frozen=True, slots=True)
class FixedModification:
    """One successful modification reported by an auto-remediation run."""

    issue_code: str | None = None
    rule_id: str | None = None
    method: FixMethod | str | None = None
    description: str | None = None
    completed_at: datetime | None = None
    target_file: str | None = None

    @property
    def effective_rule_id(self) -> str | None:
        return self.issue_code or self.rule_id


@dataclass(frozen=True, slots=True)
class RemediatedIssue:
    rule_id: str
    message: str
    file_path: str
    method: FixMethod
    description: str
    completed_at: datetime
    status: str = field(default=REMEDIATED)

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "message": self.message,
            "file_path": self.file_path,
            "remediation_info": {
                "status": self.status,
                "method": self.method.value,
                "description": self.description,
                "completed_at": datetime_to_iso8601z(self.completed_at),
            },
        }


class IssueCriterionMapper:
    """Groups audit issues by every success criterion they relate to."""

    def __init__(
        self,
        rule_table: Mapping[str, Sequence[str]] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        table = RULE_TO_CRITERIA if rule_table is None else rule_table
        self._rule_table: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {rule: tuple(criteria) for rule, criteria in table.items()}
        )
        self._clock = clock if clock is not None else _utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def rule_table(self) -> Mapping[str, tuple[str, ...]]:
        return self._rule_table

    def criteria_for(self, issue: AuditIssue) -> tuple[str, ...]:
        """Explicit tags first, then table matches; order preserved, duplicates removed."""

        combined = (*issue.explicit_criteria, *self._rule_table.get(issue.code, ()))
        return tuple(dict.fromkeys(combined))

    def map_issues_to_criteria(self, issues: Iterable[AuditIssue]) -> IssueMapping:
        grouped: dict[str, list[AuditIssue]] = {}
        unmapped: list[AuditIssue] = []
        for issue in issues:
            criteria_ids = self.criteria_for(issue)
            if not criteria_ids:
                unmapped.append(issue)
                continue
            for criterion_id in criteria_ids:
                grouped.setdefault(criterion_id, []).append(issue)

        mapping = IssueMapping(
            by_criterion=MappingProxyType({key: tuple(value) for key, value in grouped.items()}),
            unmapped=tuple(unmapped),
        )
        self._logger.debug(
            "issues_mapped",
            criteria=len(grouped),
            unmapped=len(unmapped),
        )
        return mapping

    def get_issues_for_criterion(
        self, criterion_id: str, issues: Iterable[AuditIssue]
    ) -> tuple[AuditIssue, ...]:
        return self.map_issues_to_criteria(issues).issues_for(criterion_id)

    def has_criterion_issues(self, criterion_id: str, issues: Iterable[AuditIssue]) -> bool:
        return bool(self.get_issues_for_criterion(criterion_id, issues))

    def get_criteria_summary(self, issues: Iterable[AuditIssue]) -> tuple[CriterionIssueGroup, ...]:
        mapping = self.map_issues_to_criteria(issues)
        groups = [
            CriterionIssueGroup(criterion_id=criterion_id, issues=grouped)
            for criterion_id, grouped in mapping.by_criterion.items()
        ]
        groups.sort(key=lambda group: -group.issue_count)
        return tuple(groups)

    def map_fixed_issues_to_criteria(
        self,
        fixed_modifications: Iterable[FixedModification],
        audit_issues: Sequence[AuditIssue],
    ) -> dict[str, tuple[RemediatedIssue, ...]]:
        grouped: dict[str, list[RemediatedIssue]] = {}
        for modification in fixed_modifications:
            rule_id = modification.effective_rule_id
            if not rule_id:
                continue
            criteria_ids = self._rule_table.get(rule_id, ())
            if not criteria_ids:
                continue

            original = next(
                (issue for issue in audit_issues if issue.code == rule_id or rule_id in issue.code),
                None,
            )
            method = (
                FixMethod(modification.method)
                if modification.method is not None
                else FixMethod.AUTOFIX
            )
            remediated = RemediatedIssue(
                rule_id=rule_id,
                message=(
                    original.message
                    if original is not None and original.message
                    else f"Fixed issue: {rule_id}"
                ),
                file_path=(
                    modification.target_file
                    or (original.file_path if original is not None else None)
                    or "unknown"
                ),
                method=method,
                description=modification.description or f"Automatically fixed {rule_id}",
                completed_at=(
                    modification.completed_at
                    if modification.completed_at is not None
                    else self._clock()
                ),
            )
            for criterion_id in criteria_ids:
                grouped.setdefault(criterion_id, []).append(remediated)

        return {key: tuple(value) for key, value in grouped.items()}


__all__ = [
    "REMEDIATED",
    "RULE_TO_CRITERIA",
    "CriterionIssueGroup",
    "FixedModification",
    "IssueCriterionMapper",
    "IssueMapping",
    "RemediatedIssue",
    "criteria_for_rule",
]
