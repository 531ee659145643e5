"""Builders, a fixed clock, and doubles for version history tests."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Final

from acr_conformance.domain.models import (
    AcrCriterion,
    AcrDocument,
    AcrEdition,
    AcrVersion,
    AttributionTag,
    ConformanceLevel,
    CriterionLevel,
    EvaluationMethod,
    ProductInfo,
)
from acr_conformance.persistence import (
    InMemoryVersionStore,
    VersionBuilder,
    VersionConflictError,
)

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

_BASE_TS: Final[datetime] = datetime(2026, 2, 1, 12, 0, 0, tzinfo=UTC)


def ticking_clock() -> Callable[[], datetime]:
    ticks = itertools.count()
    return lambda: _BASE_TS + timedelta(minutes=next(ticks))


def sequential_ids() -> Callable[[], str]:
    ticks = itertools.count(1)
    return lambda: f"acrv-{next(ticks):04d}"


def criterion(
    criterion_id: str,
    level: ConformanceLevel = ConformanceLevel.SUPPORTS,
    remarks: str = "No accessibility issues detected for this criterion",
) -> AcrCriterion:
    return AcrCriterion(
        id=criterion_id,
        name=f"Criterion {criterion_id}",
        level=CriterionLevel.A,
        conformance_level=level,
        remarks=remarks,
        attribution_tag=AttributionTag.AUTOMATED,
        attributed_remarks=f"[AUTOMATED] {remarks}",
    )


def document(*criteria: AcrCriterion, acr_id: str = "acr-guide") -> AcrDocument:
    return AcrDocument(
        id=acr_id,
        edition=AcrEdition.INTERNATIONAL,
        product_info=ProductInfo(
            name="Field Guide",
            version="3.2",
            vendor="Example Press",
            contact_email="a11y@example.com",
        ),
        evaluation_methods=(EvaluationMethod(type="automated"),),
        criteria=criteria or (criterion("1.1.1"), criterion("1.4.3")),
        generated_at=_BASE_TS,
    )


class RecordingLogger:
    """Captures structured log calls as ``(level, event, fields)`` tuples."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, event: str, **fields: Any) -> None:
        self.records.append(("info", event, fields))

    def warning(self, event: str, **fields: Any) -> None:
        self.records.append(("warning", event, fields))

    def events(self) -> list[str]:
        return [event for _, event, _ in self.records]


class ConflictingStore(InMemoryVersionStore):
    """Loses the allocation race ``conflicts`` times before appending normally."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.remaining_conflicts = conflicts
        self.attempts = 0

    def append_next(self, acr_id: str, build: VersionBuilder) -> AcrVersion:
        self.attempts += 1
        if self.remaining_conflicts > 0:
            self.remaining_conflicts -= 1
            latest = self.latest(acr_id)
            raise VersionConflictError(acr_id, 1 if latest is None else latest.version + 1)
        return super().append_next(acr_id, build)
