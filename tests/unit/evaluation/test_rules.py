"""Unit tests for the ordered status rules and evaluation policy."""

from __future__ import annotations

import pytest

from acr_conformance.domain.models import CriterionStatus, Severity
from acr_conformance.evaluation import (
    DEFAULT_RULES,
    EvaluationContext,
    EvaluationPolicy,
    RuleOutcome,
    SeverityCounts,
    apply_rules,
    ratcheted_confidence,
)

from . import issue


def _context(total: int, fixed: int, **remaining: int) -> EvaluationContext:
    return EvaluationContext(
        total_issues=total,
        fixed_issues=fixed,
        remaining=SeverityCounts(**remaining),
    )


def test_rule_order_is_stable() -> None:
    assert [rule.name for rule in DEFAULT_RULES] == [
        "no_issues",
        "all_fixed",
        "critical",
        "serious",
        "moderate",
        "unknown",
        "minor",
    ]


def test_first_matching_rule_wins() -> None:
    policy = EvaluationPolicy()

    rule, outcome = apply_rules(_context(3, 0, critical=1, serious=1, minor=1), policy)
    assert rule.name == "critical"
    assert outcome.status is CriterionStatus.DOES_NOT_SUPPORT

    rule, outcome = apply_rules(_context(2, 2), policy)
    assert rule.name == "all_fixed"
    assert outcome.confidence == 95

    rule, outcome = apply_rules(_context(0, 0), policy)
    assert rule.name == "no_issues"
    assert outcome.severity is None


def test_recommendation_counts_only_the_matching_severity() -> None:
    _rule, outcome = apply_rules(_context(4, 0, serious=3, minor=1), EvaluationPolicy())
    assert outcome.recommendation == (
        "3 serious issue(s) should be addressed to improve compliance"
    )


def test_apply_rules_without_match_raises() -> None:
    with pytest.raises(ValueError, match="no status rule matched"):
        apply_rules(_context(1, 0, minor=1), EvaluationPolicy(), rules=())


def test_severity_counts_from_issues() -> None:
    counts = SeverityCounts.from_issues(
        [issue("a", "minor"), issue("b", "minor"), issue("c", "unknown"), issue("d", "serious")]
    )
    assert counts.total == 4
    assert counts.count(Severity.MINOR) == 2
    assert counts.most_severe is Severity.SERIOUS
    assert SeverityCounts().most_severe is None


def test_ratchet_only_considers_more_severe_fixed_issues() -> None:
    policy = EvaluationPolicy()
    outcome = RuleOutcome(
        status=CriterionStatus.PARTIALLY_SUPPORTS,
        confidence=70,
        recommendation="",
        severity=Severity.MODERATE,
    )

    assert ratcheted_confidence(outcome, SeverityCounts(serious=1), policy) == 80
    assert ratcheted_confidence(outcome, SeverityCounts(minor=3), policy) == 70
    assert ratcheted_confidence(outcome, SeverityCounts(critical=1), policy) == 90


@pytest.mark.parametrize(
    "overrides",
    [
        {"critical_confidence": 101},
        {"no_issues_confidence": -1},
        {"max_findings": 0},
        {"max_findings": 6},
        {"serious_confidence": True},
    ],
)
def test_policy_rejects_out_of_range_values(overrides: dict[str, object]) -> None:
    with pytest.raises(ValueError, match="EvaluationPolicy"):
        EvaluationPolicy(**overrides)  # type: ignore[arg-type]


def test_policy_from_config_reads_evaluation_section() -> None:
    policy = EvaluationPolicy.from_config(
        {
            "evaluation": {
                "confidence": {"no_issues": 70, "critical": 92},
                "max_findings": 3,
                "ratchet_confidence": False,
            }
        }
    )
    assert policy.no_issues_confidence == 70
    assert policy.critical_confidence == 92
    assert policy.serious_confidence == 80
    assert policy.max_findings == 3
    assert policy.ratchet_confidence is False

    assert EvaluationPolicy.from_config({}) == EvaluationPolicy()

    with pytest.raises(ValueError, match="evaluation: expected object"):
        EvaluationPolicy.from_config({"evaluation": []})
