"""Issue-to-criterion mapping and boundary adapters for upstream job records."""

from acr_conformance.mapping.adapters import (
    AdaptedInput,
    CriterionRecord,
    RawIssueRecord,
    RemediationTaskRecord,
    UpstreamRecord,
    UpstreamRecordError,
    adapt_upstream,
    parse_upstream_record,
    to_audit_issue,
)
from acr_conformance.mapping.issue_mapper import (
    RULE_TO_CRITERIA,
    CriterionIssueGroup,
    FixedModification,
    IssueCriterionMapper,
    IssueMapping,
    RemediatedIssue,
    criteria_for_rule,
)

__all__ = [
    "RULE_TO_CRITERIA",
    "AdaptedInput",
    "CriterionIssueGroup",
    "CriterionRecord",
    "FixedModification",
    "IssueCriterionMapper",
    "IssueMapping",
    "RawIssueRecord",
    "RemediatedIssue",
    "RemediationTaskRecord",
    "UpstreamRecord",
    "UpstreamRecordError",
    "adapt_upstream",
    "criteria_for_rule",
    "parse_upstream_record",
    "to_audit_issue",
]
