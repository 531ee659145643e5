"""Builders and an in-memory batch source for aggregation tests."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence

from acr_conformance.aggregation import AcrOptions, Batch, BatchDocument
from acr_conformance.domain.models import (
    ConformanceSummary,
    CriterionAnalysis,
    CriterionStatus,
    DocumentAnalysis,
    IssueDetail,
)


def criterion(
    criterion_id: str,
    status: CriterionStatus | str,
    *,
    remaining: Sequence[str] = (),
) -> CriterionAnalysis:
    return CriterionAnalysis(
        criterion_id=criterion_id,
        name=f"Criterion {criterion_id}",
        level="A",
        status=status,
        confidence=80,
        remaining_issues=tuple(
            IssueDetail(
                issue_id=f"{criterion_id}-{index}",
                rule_id="rule",
                severity="serious",
                message=message,
            )
            for index, message in enumerate(remaining)
        ),
    )


def analysis(document_id: str, *criteria: CriterionAnalysis) -> DocumentAnalysis:
    return DocumentAnalysis(
        document_id=document_id,
        edition="VPAT2.5-INT",
        criteria=criteria,
        overall_confidence=80,
        summary=ConformanceSummary.from_analyses(criteria),
    )


def batch(batch_id: str = "batch-1", count: int = 3, **overrides: object) -> Batch:
    documents = tuple(
        BatchDocument(job_id=f"job-{index}", file_name=f"book-{index}.epub")
        for index in range(count)
    )
    return Batch(batch_id=batch_id, documents=documents, **overrides)  # type: ignore[arg-type]


def options(**overrides: object) -> AcrOptions:
    values: dict[str, object] = {
        "edition": "VPAT2.5-INT",
        "batch_name": "Spring catalog",
        "vendor": "Example Press",
        "contact_email": "a11y@example.com",
    }
    values.update(overrides)
    return AcrOptions(**values)  # type: ignore[arg-type]


class InMemoryBatchSource:
    """Serves batches and analyses from dicts; records fetch concurrency."""

    def __init__(
        self,
        batches: Mapping[str, Batch],
        analyses: Mapping[str, DocumentAnalysis],
        *,
        delay: float = 0.0,
        failing: frozenset[str] = frozenset(),
    ) -> None:
        self._batches = dict(batches)
        self._analyses = dict(analyses)
        self._delay = delay
        self._failing = failing
        self.in_flight = 0
        self.peak = 0
        self.fetched: list[str] = []

    async def get_batch(self, batch_id: str) -> Batch | None:
        return self._batches.get(batch_id)

    async def get_analysis(self, job_id: str) -> DocumentAnalysis:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
            if job_id in self._failing:
                raise RuntimeError(f"storage unavailable for {job_id}")
            self.fetched.append(job_id)
            return self._analyses[job_id]
        finally:
            self.in_flight -= 1
