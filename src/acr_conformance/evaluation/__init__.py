"""Criterion evaluation, status rules, and document assembly."""

from acr_conformance.evaluation.conformance import (
    NO_ISSUES_FINDING,
    ConformanceEvaluator,
    code_matches_criterion,
    criterion_code_pattern,
    is_issue_fixed,
    round_half_up,
)
from acr_conformance.evaluation.document import (
    DEFAULT_EVALUATION_METHOD,
    AttributionRequiredError,
    apply_attribution,
    build_acr_document,
    finalize_document,
    missing_attribution,
    remarks_for,
)
from acr_conformance.evaluation.rules import (
    ALL_FIXED_RECOMMENDATION,
    DEFAULT_RULES,
    NO_ISSUES_RECOMMENDATION,
    EvaluationContext,
    EvaluationPolicy,
    RuleOutcome,
    SeverityCounts,
    StatusRule,
    apply_rules,
    ratcheted_confidence,
)

__all__ = [
    "ALL_FIXED_RECOMMENDATION",
    "DEFAULT_EVALUATION_METHOD",
    "DEFAULT_RULES",
    "NO_ISSUES_FINDING",
    "NO_ISSUES_RECOMMENDATION",
    "AttributionRequiredError",
    "ConformanceEvaluator",
    "EvaluationContext",
    "EvaluationPolicy",
    "RuleOutcome",
    "SeverityCounts",
    "StatusRule",
    "apply_attribution",
    "apply_rules",
    "build_acr_document",
    "code_matches_criterion",
    "criterion_code_pattern",
    "finalize_document",
    "is_issue_fixed",
    "missing_attribution",
    "ratcheted_confidence",
    "remarks_for",
]
