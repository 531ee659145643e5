"""
Cross-document batch aggregation.

A batch is N documents evaluated against one catalog. For every criterion observed in
any document the aggregator keeps each document's detail and derives one composite
conformance level with a selectable strategy. Aggregation only starts once every
document's analysis is available; a missing or failed document aborts the run.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final, Protocol

import structlog

from acr_conformance.catalog.criteria_catalog import CriteriaCatalog, load_criteria_catalog
from acr_conformance.domain.models import (
    AcrEdition,
    AggregateCriterion,
    AggregationStrategy,
    ConformanceLevel,
    DocumentAnalysis,
    PerDocumentDetail,
)
from acr_conformance.evaluation.conformance import round_half_up
from acr_conformance.utils.concurrency import WorkerPool

DEFAULT_OPTIMISTIC_THRESHOLD: Final[float] = 0.5
DEFAULT_MAX_ISSUES_PER_DOCUMENT: Final[int] = 3
DEFAULT_MAX_CONCURRENCY: Final[int] = 8

_FAILING: Final[frozenset[ConformanceLevel]] = frozenset(
    {ConformanceLevel.DOES_NOT_SUPPORT, ConformanceLevel.PARTIALLY_SUPPORTS}
)


class BatchAggregationError(RuntimeError):
    """Base error for batch aggregation failures."""


class BatchNotFoundError(BatchAggregationError):
    def __init__(self, batch_id: str) -> None:
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class IncompleteBatchError(BatchAggregationError):
    def __init__(self, batch_id: str, completed: int, total: int) -> None:
        self.batch_id = batch_id
        self.completed = completed
        self.total = total
        super().__init__(
            f"Batch {batch_id} is incomplete: {completed}/{total} jobs completed"
        )


class InvalidAcrOptionsError(BatchAggregationError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid ACR options: {detail}")


class DocumentFetchError(BatchAggregationError):
    def __init__(self, job_id: str, cause: BaseException) -> None:
        self.job_id = job_id
        super().__init__(f"Failed to fetch analysis for job {job_id}: {cause}")


@dataclass(frozen=True, slots=True)
class BatchDocument:
    job_id: str
    file_name: str
    completed: bool = True

    def to_dict(self) -> dict[str, object]:
        return {"file_name": self.file_name, "job_id": self.job_id}


@dataclass(frozen=True, slots=True)
class Batch:
    """A batch of documents; ``total_documents`` defaults to the number listed."""

    batch_id: str
    documents: tuple[BatchDocument, ...]
    total_documents: int | None = None

    @property
    def expected_total(self) -> int:
        if self.total_documents is None:
            return len(self.documents)
        return max(self.total_documents, len(self.documents))

    @property
    def completed_count(self) -> int:
        return sum(1 for document in self.documents if document.completed)

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.expected_total


@dataclass(frozen=True, slots=True)
class AcrOptions:
    edition: AcrEdition | str | None
    batch_name: str | None
    vendor: str | None
    contact_email: str | None
    aggregation_strategy: AggregationStrategy | str = AggregationStrategy.CONSERVATIVE

    def validate(self) -> None:
        missing = [
            name
            for name in ("edition", "batch_name", "vendor", "contact_email")
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise InvalidAcrOptionsError(f"{', '.join(missing)} are required for aggregate mode")
        try:
            AcrEdition(self.edition)
        except ValueError as exc:
            raise InvalidAcrOptionsError(f"unknown edition {self.edition!r}") from exc
        try:
            AggregationStrategy(self.aggregation_strategy)
        except ValueError as exc:
            raise InvalidAcrOptionsError(
                f"unknown aggregation strategy {self.aggregation_strategy!r}"
            ) from exc
        if "@" not in str(self.contact_email):
            raise InvalidAcrOptionsError("contact_email must be an email address")


@dataclass(frozen=True, slots=True)
class BatchInfo:
    total_documents: int
    document_list: tuple[BatchDocument, ...]
    aggregation_strategy: AggregationStrategy
    source_job_ids: tuple[str, ...]
    is_batch: bool = True

    def to_dict(self) -> dict[str, object]:
        return {
            "is_batch": self.is_batch,
            "total_documents": self.total_documents,
            "document_list": [document.to_dict() for document in self.document_list],
            "aggregation_strategy": self.aggregation_strategy.value,
            "source_job_ids": list(self.source_job_ids),
        }


@dataclass(frozen=True, slots=True)
class AggregateAcrResult:
    batch_id: str
    batch_name: str
    edition: AcrEdition
    vendor: str
    contact_email: str
    criteria: tuple[AggregateCriterion, ...]
    batch_info: BatchInfo
    message: str = field(default="")

    def to_dict(self) -> dict[str, object]:
        return {
            "batch_id": self.batch_id,
            "product_info": {
                "name": self.batch_name,
                "vendor": self.vendor,
                "contact_email": self.contact_email,
                "edition": self.edition.value,
            },
            "total_criteria": len(self.criteria),
            "criteria": [criterion.to_dict() for criterion in self.criteria],
            "batch_info": self.batch_info.to_dict(),
            "message": self.message,
        }


def _all_not_applicable(statuses: Sequence[ConformanceLevel]) -> bool:
    return all(status == ConformanceLevel.NOT_APPLICABLE for status in statuses)


def aggregate_conservative(statuses: Sequence[ConformanceLevel]) -> ConformanceLevel:
    """The worst document decides."""

    if _all_not_applicable(statuses):
        return ConformanceLevel.NOT_APPLICABLE
    if ConformanceLevel.DOES_NOT_SUPPORT in statuses:
        return ConformanceLevel.DOES_NOT_SUPPORT
    if ConformanceLevel.PARTIALLY_SUPPORTS in statuses:
        return ConformanceLevel.PARTIALLY_SUPPORTS
    return ConformanceLevel.SUPPORTS


def aggregate_optimistic(
    statuses: Sequence[ConformanceLevel],
    threshold: float = DEFAULT_OPTIMISTIC_THRESHOLD,
) -> ConformanceLevel:
    """Share of supporting documents decides."""

    if _all_not_applicable(statuses):
        return ConformanceLevel.NOT_APPLICABLE
    supports = sum(1 for status in statuses if status == ConformanceLevel.SUPPORTS)
    total = len(statuses)
    if supports == total:
        return ConformanceLevel.SUPPORTS
    if supports >= total * threshold:
        return ConformanceLevel.PARTIALLY_SUPPORTS
    return ConformanceLevel.DOES_NOT_SUPPORT


def composite_remarks(
    criterion_id: str,
    details: Sequence[PerDocumentDetail],
    *,
    max_issues_per_document: int = DEFAULT_MAX_ISSUES_PER_DOCUMENT,
) -> str:
    total = len(details)
    supports = sum(1 for detail in details if detail.status == ConformanceLevel.SUPPORTS)
    percentage = round_half_up(supports / total * 100) if total else 0
    remarks = (
        f"{supports} of {total} documents ({percentage}%) "
        f"fully support criterion {criterion_id}.\n\n"
    )

    failing = [detail for detail in details if detail.status in _FAILING]
    if failing:
        remarks += "Documents requiring attention:\n"
        for detail in failing:
            plural = "" if detail.issue_count == 1 else "s"
            remarks += f'\n- "{detail.file_name}" ({detail.issue_count} issue{plural})\n'
            for issue in detail.issues[:max_issues_per_document]:
                remarks += f"  • {issue.message}\n"
            hidden = len(detail.issues) - max_issues_per_document
            if hidden > 0:
                remarks += f"  • ... and {hidden} more\n"
    return remarks.strip()


class BatchAggregator:
    """Combines per-document analyses into one composite per criterion."""

    def __init__(
        self,
        catalog: CriteriaCatalog | None = None,
        *,
        optimistic_threshold: float = DEFAULT_OPTIMISTIC_THRESHOLD,
        max_issues_per_document: int = DEFAULT_MAX_ISSUES_PER_DOCUMENT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        logger: Any | None = None,
    ) -> None:
        if not 0.0 < optimistic_threshold <= 1.0:
            raise ValueError("optimistic_threshold must be in (0, 1]")
        if max_issues_per_document < 1:
            raise ValueError("max_issues_per_document must be >= 1")
        self._catalog = catalog if catalog is not None else load_criteria_catalog()
        self._optimistic_threshold = optimistic_threshold
        self._max_issues_per_document = max_issues_per_document
        self._max_concurrency = max_concurrency
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        catalog: CriteriaCatalog | None = None,
        logger: Any | None = None,
    ) -> BatchAggregator:
        section = config.get("aggregation", {})
        return cls(
            catalog,
            optimistic_threshold=float(
                section.get("optimistic_threshold", DEFAULT_OPTIMISTIC_THRESHOLD)
            ),
            max_issues_per_document=int(
                section.get("max_issues_per_document", DEFAULT_MAX_ISSUES_PER_DOCUMENT)
            ),
            max_concurrency=int(section.get("max_concurrency", DEFAULT_MAX_CONCURRENCY)),
            logger=logger,
        )

    def composite(
        self,
        statuses: Sequence[ConformanceLevel],
        strategy: AggregationStrategy | str,
    ) -> ConformanceLevel:
        if AggregationStrategy(strategy) is AggregationStrategy.OPTIMISTIC:
            return aggregate_optimistic(statuses, self._optimistic_threshold)
        return aggregate_conservative(statuses)

    def aggregate_criteria(
        self,
        documents: Sequence[tuple[BatchDocument, DocumentAnalysis]],
        strategy: AggregationStrategy | str = AggregationStrategy.CONSERVATIVE,
    ) -> tuple[AggregateCriterion, ...]:
        """
        Build one aggregate per criterion id observed in any document.

        A document without an entry for a criterion counts as Supports with zero issues.
        """

        criterion_ids: dict[str, None] = {}
        for _document, analysis in documents:
            for item in analysis.criteria:
                criterion_ids.setdefault(item.criterion_id, None)

        aggregates: list[AggregateCriterion] = []
        for criterion_id in criterion_ids:
            details = tuple(
                self._detail(document, analysis, criterion_id) for document, analysis in documents
            )
            known = self._catalog.get(criterion_id)
            aggregates.append(
                AggregateCriterion(
                    criterion_id=criterion_id,
                    criterion_name=known.name if known is not None else f"WCAG {criterion_id}",
                    level=self._catalog.level_for(criterion_id),
                    per_document_details=details,
                    composite_conformance_level=self.composite(
                        [ConformanceLevel(detail.status) for detail in details], strategy
                    ),
                    composite_remarks=composite_remarks(
                        criterion_id,
                        details,
                        max_issues_per_document=self._max_issues_per_document,
                    ),
                )
            )
        return tuple(aggregates)

    @staticmethod
    def _detail(
        document: BatchDocument,
        analysis: DocumentAnalysis,
        criterion_id: str,
    ) -> PerDocumentDetail:
        found = analysis.criterion(criterion_id)
        if found is None:
            return PerDocumentDetail(
                file_name=document.file_name,
                job_id=document.job_id,
                status=ConformanceLevel.SUPPORTS,
                issue_count=0,
            )
        return PerDocumentDetail(
            file_name=document.file_name,
            job_id=document.job_id,
            status=found.conformance_level,
            issue_count=found.remaining_count,
            issues=found.remaining_issues,
        )

    def aggregate_batch(
        self,
        batch: Batch,
        options: AcrOptions,
        analyses: Mapping[str, DocumentAnalysis],
    ) -> AggregateAcrResult:
        options.validate()
        self._require_complete(batch)
        missing = [doc.job_id for doc in batch.documents if doc.job_id not in analyses]
        if missing:
            raise IncompleteBatchError(
                batch.batch_id, len(batch.documents) - len(missing), batch.expected_total
            )
        if not batch.documents:
            raise BatchAggregationError(
                f"Batch {batch.batch_id} has no documents to aggregate"
            )

        strategy = AggregationStrategy(options.aggregation_strategy)
        pairs = [(document, analyses[document.job_id]) for document in batch.documents]
        criteria = self.aggregate_criteria(pairs, strategy)
        message = (
            f"Created aggregate ACR for {len(batch.documents)} documents "
            f"with {len(criteria)} criteria"
        )
        self._logger.info(
            "batch_aggregated",
            batch_id=batch.batch_id,
            documents=len(batch.documents),
            criteria=len(criteria),
            strategy=strategy.value,
        )
        return AggregateAcrResult(
            batch_id=batch.batch_id,
            batch_name=str(options.batch_name).strip(),
            edition=AcrEdition(options.edition),
            vendor=str(options.vendor).strip(),
            contact_email=str(options.contact_email).strip(),
            criteria=criteria,
            batch_info=BatchInfo(
                total_documents=len(batch.documents),
                document_list=batch.documents,
                aggregation_strategy=strategy,
                source_job_ids=tuple(document.job_id for document in batch.documents),
            ),
            message=message,
        )

    @staticmethod
    def _require_complete(batch: Batch) -> None:
        if not batch.is_complete:
            raise IncompleteBatchError(batch.batch_id, batch.completed_count, batch.expected_total)

    async def fetch_and_aggregate(
        self,
        batch_id: str,
        source: BatchSource,
        options: AcrOptions,
    ) -> AggregateAcrResult:
        """
        Load a batch, fetch every document analysis in parallel, then aggregate.

        The fetch fan-out is a barrier: nothing is aggregated until every analysis has
        arrived, and any failed fetch aborts the whole run.
        """

        options.validate()
        batch = await source.get_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        self._require_complete(batch)

        pool: WorkerPool[DocumentAnalysis] = WorkerPool(max_concurrency=self._max_concurrency)
        factories = [self._fetcher(source, document.job_id) for document in batch.documents]
        results = await pool.gather(factories)
        self._logger.debug(
            "batch_documents_fetched",
            batch_id=batch_id,
            documents=len(results),
            peak_concurrency=pool.peak_concurrency,
        )
        analyses = {
            document.job_id: analysis
            for document, analysis in zip(batch.documents, results, strict=True)
        }
        return self.aggregate_batch(batch, options, analyses)

    def _fetcher(
        self, source: BatchSource, job_id: str
    ) -> Callable[[], Awaitable[DocumentAnalysis]]:
        async def fetch() -> DocumentAnalysis:
            try:
                return await source.get_analysis(job_id)
            except Exception as exc:
                self._logger.error("batch_document_fetch_failed", job_id=job_id, error=str(exc))
                raise DocumentFetchError(job_id, exc) from exc

        return fetch


class BatchSource(Protocol):
    """Where a batch and its per-document analyses come from."""

    async def get_batch(self, batch_id: str) -> Batch | None: ...

    async def get_analysis(self, job_id: str) -> DocumentAnalysis: ...


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
