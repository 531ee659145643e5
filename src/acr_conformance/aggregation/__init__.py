"""Cross-document batch aggregation."""

from acr_conformance.aggregation.batch import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_ISSUES_PER_DOCUMENT,
    DEFAULT_OPTIMISTIC_THRESHOLD,
    AcrOptions,
    AggregateAcrResult,
    Batch,
    BatchAggregationError,
    BatchAggregator,
    BatchDocument,
    BatchInfo,
    BatchNotFoundError,
    BatchSource,
    DocumentFetchError,
    IncompleteBatchError,
    InvalidAcrOptionsError,
    aggregate_conservative,
    aggregate_optimistic,
    composite_remarks,
)

__all__ = [
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_ISSUES_PER_DOCUMENT",
    "DEFAULT_OPTIMISTIC_THRESHOLD",
    "AcrOptions",
    "AggregateAcrResult",
    "Batch",
    "BatchAggregationError",
    "BatchAggregator",
    "BatchDocument",
    "BatchInfo",
    "BatchNotFoundError",
    "BatchSource",
    "DocumentFetchError",
    "IncompleteBatchError",
    "InvalidAcrOptionsError",
    "aggregate_conservative",
    "aggregate_optimistic",
    "composite_remarks",
]
