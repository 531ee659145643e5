"""
Per-document criterion evaluation.

For every criterion of an edition the evaluator collects the related issues, splits
them into fixed and remaining against the remediation records, and classifies the
criterion with the ordered status rules. Evaluation is pure: identical inputs yield
identical analyses, so callers may cache results.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Final

import structlog

from acr_conformance.catalog.criteria_catalog import CriteriaCatalog, load_criteria_catalog
from acr_conformance.domain.models import (
    SEVERITY_ORDER,
    AuditIssue,
    ConformanceSummary,
    CriterionAnalysis,
    DocumentAnalysis,
    IssueDetail,
    OtherIssue,
    OtherIssuesBucket,
    OtherIssueStatus,
    RemediationRecord,
    RemediationStatus,
    Severity,
    SuccessCriterion,
)
from acr_conformance.evaluation.rules import (
    DEFAULT_RULES,
    EvaluationContext,
    EvaluationPolicy,
    SeverityCounts,
    StatusRule,
    apply_rules,
    ratcheted_confidence,
)
from acr_conformance.mapping.issue_mapper import IssueCriterionMapper

NO_ISSUES_FINDING: Final[str] = "No accessibility issues detected for this criterion"
_NO_DESCRIPTION: Final[str] = "No description available"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def criterion_code_pattern(criterion_id: str) -> str:
    """``"1.4.3"`` becomes ``"143"``; rule codes are matched against this form."""

    return criterion_id.replace(".", "").upper()


def code_matches_criterion(code: str, criterion_id: str) -> bool:
    pattern = criterion_code_pattern(criterion_id)
    if not pattern:
        return False
    normalized = code.upper()
    if normalized in (pattern, f"WCAG-{pattern}"):
        return True
    return re.search(rf"(?:^|[-_]){re.escape(pattern)}(?:[-_]|$)", normalized) is not None


def is_issue_fixed(
    issue_code: str,
    criterion_id: str,
    remediation: Iterable[RemediationRecord],
) -> bool:
    return any(
        record.is_fixed and record.covers(issue_code, criterion_id) for record in remediation
    )


def _fixed_at_for(
    issue_code: str,
    criterion_id: str,
    remediation: Sequence[RemediationRecord],
) -> datetime | None:
    for record in remediation:
        if record.is_fixed and record.covers(issue_code, criterion_id) and record.fixed_at:
            return record.fixed_at
    return None


def _other_issue_status(
    issue: AuditIssue, remediation: Sequence[RemediationRecord]
) -> OtherIssueStatus:
    matching = [
        record
        for record in remediation
        if record.issue_code == issue.code or issue.code in record.issue_codes
    ]
    if any(record.is_fixed for record in matching):
        return OtherIssueStatus.FIXED
    if any(record.status == RemediationStatus.FAILED for record in matching):
        return OtherIssueStatus.FAILED
    if any(record.status == RemediationStatus.SKIPPED for record in matching):
        return OtherIssueStatus.SKIPPED
    return OtherIssueStatus.PENDING


def _severity_sort_key(issue: AuditIssue) -> int:
    return SEVERITY_ORDER.index(Severity(issue.severity))


class ConformanceEvaluator:
    """Classifies every criterion of an edition from a document's issues and remediation."""

    def __init__(
        self,
        catalog: CriteriaCatalog | None = None,
        *,
        policy: EvaluationPolicy | None = None,
        rules: Sequence[StatusRule] = DEFAULT_RULES,
        mapper: IssueCriterionMapper | None = None,
        logger: Any | None = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else load_criteria_catalog()
        self._policy = policy if policy is not None else EvaluationPolicy()
        self._rules = tuple(rules)
        self._mapper = mapper if mapper is not None else IssueCriterionMapper()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def catalog(self) -> CriteriaCatalog:
        return self._catalog

    @property
    def policy(self) -> EvaluationPolicy:
        return self._policy

    def is_related(self, issue: AuditIssue, criterion_id: str) -> bool:
        if criterion_id in self._mapper.criteria_for(issue):
            return True
        return code_matches_criterion(issue.code, criterion_id)

    def related_issues(
        self, criterion_id: str, issues: Iterable[AuditIssue]
    ) -> tuple[AuditIssue, ...]:
        return tuple(issue for issue in issues if self.is_related(issue, criterion_id))

    def evaluate_criterion(
        self,
        criterion: SuccessCriterion,
        issues: Iterable[AuditIssue],
        remediation: Sequence[RemediationRecord] = (),
    ) -> CriterionAnalysis:
        related = self.related_issues(criterion.id, issues)
        fixed: list[AuditIssue] = []
        remaining: list[AuditIssue] = []
        for issue in related:
            if is_issue_fixed(issue.code, criterion.id, remediation):
                fixed.append(issue)
            else:
                remaining.append(issue)

        context = EvaluationContext(
            total_issues=len(related),
            fixed_issues=len(fixed),
            remaining=SeverityCounts.from_issues(remaining),
        )
        rule, outcome = apply_rules(context, self._policy, self._rules)
        confidence = ratcheted_confidence(
            outcome, SeverityCounts.from_issues(fixed), self._policy
        )

        analysis = CriterionAnalysis(
            criterion_id=criterion.id,
            name=criterion.name,
            level=criterion.level,
            status=outcome.status,
            confidence=confidence,
            findings=self._findings(related, fixed, remaining),
            recommendation=outcome.recommendation,
            fixed_issues=tuple(
                IssueDetail.from_issue(
                    issue, fixed_at=_fixed_at_for(issue.code, criterion.id, remediation)
                )
                for issue in fixed
            ),
            remaining_issues=tuple(IssueDetail.from_issue(issue) for issue in remaining),
        )
        self._logger.debug(
            "criterion_evaluated",
            criterion_id=criterion.id,
            rule=rule.name,
            status=str(analysis.status),
            confidence=confidence,
            fixed=len(fixed),
            remaining=len(remaining),
        )
        return analysis

    def _findings(
        self,
        related: Sequence[AuditIssue],
        fixed: Sequence[AuditIssue],
        remaining: Sequence[AuditIssue],
    ) -> tuple[str, ...]:
        if not related:
            return (NO_ISSUES_FINDING,)
        if not remaining:
            return (f"All {len(related)} issue(s) have been remediated",)

        lines: list[str] = []
        if fixed:
            lines.append(f"✓ {len(fixed)} fixed")
        for issue in sorted(remaining, key=_severity_sort_key):
            if len(lines) >= self._policy.max_findings:
                break
            message = issue.message or _NO_DESCRIPTION
            lines.append(f"{Severity(issue.severity).value.upper()}: {message}")
        return tuple(lines)

    def other_issues(
        self,
        issues: Iterable[AuditIssue],
        criteria: Sequence[SuccessCriterion],
        remediation: Sequence[RemediationRecord] = (),
    ) -> OtherIssuesBucket:
        """Issues related to none of ``criteria``, each with its remediation status."""

        criterion_ids = [criterion.id for criterion in criteria]
        unmatched = [
            issue
            for issue in issues
            if not any(self.is_related(issue, criterion_id) for criterion_id in criterion_ids)
        ]
        return OtherIssuesBucket(
            issues=tuple(
                OtherIssue(
                    code=issue.code,
                    message=issue.message or _NO_DESCRIPTION,
                    severity=issue.severity,
                    location=issue.location,
                    status=_other_issue_status(issue, remediation),
                )
                for issue in unmatched
            )
        )

    def overall_confidence(self, analyses: Sequence[CriterionAnalysis]) -> int:
        """
        Mean criterion confidence plus a remediation bonus, capped at 100.

        The bonus is proportional to the share of related issues already fixed and never
        exceeds the configured maximum. A document with no criteria scores 0.
        """

        if not analyses:
            return 0
        base = round_half_up(sum(item.confidence for item in analyses) / len(analyses))
        fixed = sum(item.fixed_count for item in analyses)
        total = fixed + sum(item.remaining_count for item in analyses)
        if total > 0 and fixed > 0:
            ceiling = self._policy.max_remediation_bonus
            bonus = min(round_half_up(fixed / total * ceiling), ceiling)
            base = min(100, base + bonus)
        return base

    def evaluate_document(
        self,
        document_id: str,
        issues: Iterable[AuditIssue],
        remediation: Iterable[RemediationRecord] = (),
        *,
        edition: str | None = None,
        analyzed_at: datetime | None = None,
    ) -> DocumentAnalysis:
        issue_list = tuple(issues)
        records = tuple(remediation)
        criteria = self._catalog.criteria_for_edition(edition)
        # Unknown codes are evaluated against the fallback subset and recorded as such.
        evaluated_edition = (
            edition
            if edition is not None and self._catalog.edition_info(edition) is not None
            else None
        )

        analyses = tuple(
            self.evaluate_criterion(criterion, issue_list, records) for criterion in criteria
        )
        other = self.other_issues(issue_list, criteria, records)
        analysis = DocumentAnalysis(
            document_id=document_id,
            edition=evaluated_edition,
            criteria=analyses,
            overall_confidence=self.overall_confidence(analyses),
            summary=ConformanceSummary.from_analyses(analyses),
            other_issues=other,
            analyzed_at=analyzed_at,
        )
        self._logger.info(
            "document_evaluated",
            document_id=document_id,
            edition=evaluated_edition or "default",
            requested_edition=edition,
            criteria=len(analyses),
            issues=len(issue_list),
            other_issues=other.count,
            overall_confidence=analysis.overall_confidence,
        )
        return analysis


__all__ = [
    "NO_ISSUES_FINDING",
    "ConformanceEvaluator",
    "code_matches_criterion",
    "criterion_code_pattern",
    "is_issue_fixed",
    "round_half_up",
]
