"""Property tests for evaluation determinism and remediation monotonicity."""

from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from acr_conformance.domain.models import STATUS_RANK, AuditIssue, CriterionStatus, Severity

from . import TEST_EDITION, fixed, make_evaluator

_CODES = (
    "img-alt",
    "color-contrast",
    "label",
    "button-name",
    "heading-order",
    "WCAG-143",
    "RSC-001",
    "house-rule",
)

_ISSUES = st.lists(
    st.builds(
        AuditIssue,
        code=st.sampled_from(_CODES),
        severity=st.sampled_from([*Severity, None]),
        message=st.sampled_from(["", "Contrast too low", "Missing label"]),
    ),
    max_size=10,
)

_EVALUATOR = make_evaluator()


@given(issues=_ISSUES, fixed_codes=st.sets(st.sampled_from(_CODES)))
@settings(
    max_examples=25,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_evaluation_is_idempotent(issues: list[AuditIssue], fixed_codes: set[str]) -> None:
    records = fixed(*sorted(fixed_codes))

    first = _EVALUATOR.evaluate_document("doc", issues, records, edition=TEST_EDITION)
    second = _EVALUATOR.evaluate_document("doc", list(issues), records, edition=TEST_EDITION)

    assert first.to_json() == second.to_json()


@given(
    issues=_ISSUES,
    fixed_codes=st.sets(st.sampled_from(_CODES)),
    extra=st.sampled_from(_CODES),
)
@settings(
    max_examples=25,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_fixing_more_never_lowers_status_or_confidence(
    issues: list[AuditIssue],
    fixed_codes: set[str],
    extra: str,
) -> None:
    before = _EVALUATOR.evaluate_document(
        "doc", issues, fixed(*sorted(fixed_codes)), edition=TEST_EDITION
    )
    after = _EVALUATOR.evaluate_document(
        "doc", issues, fixed(*sorted(fixed_codes | {extra})), edition=TEST_EDITION
    )

    for previous, current in zip(before.criteria, after.criteria, strict=True):
        assert STATUS_RANK[CriterionStatus(current.status)] >= STATUS_RANK[
            CriterionStatus(previous.status)
        ]
        assert current.confidence >= previous.confidence
        assert current.fixed_count >= previous.fixed_count


@given(issues=_ISSUES)
@settings(max_examples=25, derandomize=True, deadline=None)
def test_issue_totals_are_preserved(issues: list[AuditIssue]) -> None:
    analysis = _EVALUATOR.evaluate_document("doc", issues, edition=TEST_EDITION)
    claimed = {
        detail.issue_id
        for item in analysis.criteria
        for detail in (*item.fixed_issues, *item.remaining_issues)
    }
    other = {
        issue.stable_id
        for issue in issues
        if issue.code in {entry.code for entry in analysis.other_issues.issues}
    }
    assert {issue.stable_id for issue in issues} == claimed | other
    assert len(analysis.criteria) == analysis.summary.supports + (
        analysis.summary.partially_supports
        + analysis.summary.does_not_support
        + analysis.summary.not_applicable
    )
