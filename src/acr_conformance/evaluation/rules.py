"""
Ordered status rules for criterion evaluation.

Each rule pairs a predicate over an :class:`EvaluationContext` with an outcome
builder. Rules are evaluated top-to-bottom and the first match wins, so precedence
is the list order.

The per-severity confidences of :data:`DEFAULT_RULES` are starting values only. With
``EvaluationPolicy.ratchet_confidence`` on (the default), :func:`ratcheted_confidence`
raises the score to the level of the most severe fixed issue, so a remaining moderate
issue scores 90 rather than 70 once a critical issue was fixed. Turn the ratchet off
to get the plain per-severity values.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from acr_conformance.domain.models import SEVERITY_ORDER, AuditIssue, CriterionStatus, Severity


@dataclass(frozen=True, slots=True)
class EvaluationPolicy:
    """Heuristic confidence constants and output limits for the evaluator."""

    no_issues_confidence: int = 75
    all_fixed_confidence: int = 95
    critical_confidence: int = 90
    serious_confidence: int = 80
    moderate_confidence: int = 70
    unknown_confidence: int = 60
    minor_only_confidence: int = 85
    max_findings: int = 5
    max_remediation_bonus: int = 15
    ratchet_confidence: bool = True

    def __post_init__(self) -> None:
        for name in (
            "no_issues_confidence",
            "all_fixed_confidence",
            "critical_confidence",
            "serious_confidence",
            "moderate_confidence",
            "unknown_confidence",
            "minor_only_confidence",
            "max_remediation_bonus",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise ValueError(f"EvaluationPolicy.{name} must be an integer in [0, 100]")
        if isinstance(self.max_findings, bool) or not isinstance(self.max_findings, int):
            raise ValueError("EvaluationPolicy.max_findings must be an integer")
        if not 1 <= self.max_findings <= 5:
            raise ValueError("EvaluationPolicy.max_findings must be in [1, 5]")

    def confidence_for(self, severity: Severity) -> int:
        return {
            Severity.CRITICAL: self.critical_confidence,
            Severity.SERIOUS: self.serious_confidence,
            Severity.MODERATE: self.moderate_confidence,
            Severity.UNKNOWN: self.unknown_confidence,
            Severity.MINOR: self.minor_only_confidence,
        }[severity]

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> EvaluationPolicy:
        """Build a policy from the ``evaluation`` section of a validated config mapping."""

        section = config.get("evaluation", {})
        if not isinstance(section, Mapping):
            raise ValueError("evaluation: expected object")
        confidence = section.get("confidence", {})
        if not isinstance(confidence, Mapping):
            raise ValueError("evaluation.confidence: expected object")
        defaults = cls()
        return cls(
            no_issues_confidence=int(confidence.get("no_issues", defaults.no_issues_confidence)),
            all_fixed_confidence=int(confidence.get("all_fixed", defaults.all_fixed_confidence)),
            critical_confidence=int(confidence.get("critical", defaults.critical_confidence)),
            serious_confidence=int(confidence.get("serious", defaults.serious_confidence)),
            moderate_confidence=int(confidence.get("moderate", defaults.moderate_confidence)),
            unknown_confidence=int(confidence.get("unknown", defaults.unknown_confidence)),
            minor_only_confidence=int(
                confidence.get("minor_only", defaults.minor_only_confidence)
            ),
            max_findings=int(section.get("max_findings", defaults.max_findings)),
            max_remediation_bonus=int(
                section.get("max_remediation_bonus", defaults.max_remediation_bonus)
            ),
            ratchet_confidence=bool(
                section.get("ratchet_confidence", defaults.ratchet_confidence)
            ),
        )


@dataclass(frozen=True, slots=True)
class SeverityCounts:
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    unknown: int = 0
    minor: int = 0

    @classmethod
    def from_issues(cls, issues: Iterable[AuditIssue]) -> SeverityCounts:
        counts = dict.fromkeys(Severity, 0)
        for issue in issues:
            counts[Severity(issue.severity)] += 1
        return cls(
            critical=counts[Severity.CRITICAL],
            serious=counts[Severity.SERIOUS],
            moderate=counts[Severity.MODERATE],
            unknown=counts[Severity.UNKNOWN],
            minor=counts[Severity.MINOR],
        )

    def count(self, severity: Severity) -> int:
        return int(getattr(self, severity.value))

    @property
    def total(self) -> int:
        return self.critical + self.serious + self.moderate + self.unknown + self.minor

    @property
    def most_severe(self) -> Severity | None:
        for severity in SEVERITY_ORDER:
            if self.count(severity) > 0:
                return severity
        return None


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Everything a status rule may inspect for one criterion."""

    total_issues: int
    fixed_issues: int
    remaining: SeverityCounts


@dataclass(frozen=True, slots=True)
class RuleOutcome:
    status: CriterionStatus
    confidence: int
    recommendation: str
    severity: Severity | None = None


@dataclass(frozen=True, slots=True)
class StatusRule:
    name: str
    predicate: Callable[[EvaluationContext], bool]
    outcome: Callable[[EvaluationContext, EvaluationPolicy], RuleOutcome]


NO_ISSUES_RECOMMENDATION: Final[str] = "Continue to maintain compliance with this criterion"
ALL_FIXED_RECOMMENDATION: Final[str] = "All detected issues have been resolved - excellent work!"


def _severity_rule(
    severity: Severity,
    status: CriterionStatus,
    recommendation: str,
) -> StatusRule:
    def predicate(context: EvaluationContext) -> bool:
        return context.remaining.count(severity) > 0

    def outcome(context: EvaluationContext, policy: EvaluationPolicy) -> RuleOutcome:
        return RuleOutcome(
            status=status,
            confidence=policy.confidence_for(severity),
            recommendation=recommendation.format(n=context.remaining.count(severity)),
            severity=severity,
        )

    return StatusRule(name=severity.value, predicate=predicate, outcome=outcome)


DEFAULT_RULES: Final[tuple[StatusRule, ...]] = (
    StatusRule(
        name="no_issues",
        predicate=lambda context: context.total_issues == 0,
        outcome=lambda _context, policy: RuleOutcome(
            status=CriterionStatus.SUPPORTS,
            confidence=policy.no_issues_confidence,
            recommendation=NO_ISSUES_RECOMMENDATION,
        ),
    ),
    StatusRule(
        name="all_fixed",
        predicate=lambda context: context.remaining.total == 0,
        outcome=lambda _context, policy: RuleOutcome(
            status=CriterionStatus.SUPPORTS,
            confidence=policy.all_fixed_confidence,
            recommendation=ALL_FIXED_RECOMMENDATION,
        ),
    ),
    _severity_rule(
        Severity.CRITICAL,
        CriterionStatus.DOES_NOT_SUPPORT,
        "{n} critical issue(s) must be resolved for compliance",
    ),
    _severity_rule(
        Severity.SERIOUS,
        CriterionStatus.PARTIALLY_SUPPORTS,
        "{n} serious issue(s) should be addressed to improve compliance",
    ),
    _severity_rule(
        Severity.MODERATE,
        CriterionStatus.PARTIALLY_SUPPORTS,
        "{n} moderate issue(s) detected - address to strengthen compliance",
    ),
    _severity_rule(
        Severity.UNKNOWN,
        CriterionStatus.PARTIALLY_SUPPORTS,
        "{n} issue(s) with unknown severity - investigate and categorize",
    ),
    _severity_rule(
        Severity.MINOR,
        CriterionStatus.SUPPORTS,
        "{n} minor issue(s) detected - low priority fixes",
    ),
)


def apply_rules(
    context: EvaluationContext,
    policy: EvaluationPolicy,
    rules: Sequence[StatusRule] = DEFAULT_RULES,
) -> tuple[StatusRule, RuleOutcome]:
    """Return the first matching rule and its outcome."""

    for rule in rules:
        if rule.predicate(context):
            return rule, rule.outcome(context, policy)
    raise ValueError(f"no status rule matched context {context!r}")


def ratcheted_confidence(
    outcome: RuleOutcome,
    fixed: SeverityCounts,
    policy: EvaluationPolicy,
) -> int:
    """
    Keep confidence from dropping when a more severe issue was remediated.

    A criterion whose remaining issues are less severe than ones already fixed keeps
    the confidence the more severe evidence supported, so remediating one more issue
    never lowers confidence.
    """

    if not policy.ratchet_confidence or outcome.severity is None:
        return outcome.confidence
    rank = SEVERITY_ORDER.index(outcome.severity)
    confidence = outcome.confidence
    for severity in SEVERITY_ORDER[:rank]:
        if fixed.count(severity) > 0:
            confidence = max(confidence, policy.confidence_for(severity))
    return confidence


__all__ = [
    "ALL_FIXED_RECOMMENDATION",
    "DEFAULT_RULES",
    "NO_ISSUES_RECOMMENDATION",
    "EvaluationContext",
    "EvaluationPolicy",
    "RuleOutcome",
    "SeverityCounts",
    "StatusRule",
    "apply_rules",
    "ratcheted_confidence",
]
