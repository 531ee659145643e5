"""
Domain types shared across the evaluation, aggregation, and versioning layers.

The domain layer is free of IO side effects; every model validates on construction
and serializes to canonical JSON.
"""

from acr_conformance.domain.models import (
    AcrCriterion,
    AcrDocument,
    AcrEdition,
    AcrVersion,
    AggregateCriterion,
    AggregationStrategy,
    AttributionTag,
    AuditIssue,
    ChangeLogEntry,
    ComparisonSummary,
    ConformanceLevel,
    ConformanceSummary,
    CriterionAnalysis,
    CriterionLevel,
    CriterionStatus,
    DocumentAnalysis,
    DocumentStatus,
    EvaluationMethod,
    FixMethod,
    IssueDetail,
    OtherIssue,
    OtherIssueStatus,
    OtherIssuesBucket,
    PerDocumentDetail,
    ProductInfo,
    RemediationRecord,
    RemediationStatus,
    Severity,
    SuccessCriterion,
    VerificationStatus,
    VersionComparison,
)

__all__ = [
    "AcrCriterion",
    "AcrDocument",
    "AcrEdition",
    "AcrVersion",
    "AggregateCriterion",
    "AggregationStrategy",
    "AttributionTag",
    "AuditIssue",
    "ChangeLogEntry",
    "ComparisonSummary",
    "ConformanceLevel",
    "ConformanceSummary",
    "CriterionAnalysis",
    "CriterionLevel",
    "CriterionStatus",
    "DocumentAnalysis",
    "DocumentStatus",
    "EvaluationMethod",
    "FixMethod",
    "IssueDetail",
    "OtherIssue",
    "OtherIssueStatus",
    "OtherIssuesBucket",
    "PerDocumentDetail",
    "ProductInfo",
    "RemediationRecord",
    "RemediationStatus",
    "Severity",
    "SuccessCriterion",
    "VerificationStatus",
    "VersionComparison",
]
