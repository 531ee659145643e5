"""Shared deterministic builders for persistence tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Final

from acr_conformance.domain.models import (
    AcrCriterion,
    AcrDocument,
    AcrEdition,
    AcrVersion,
    ChangeLogEntry,
    ConformanceLevel,
    CriterionLevel,
    EvaluationMethod,
    ProductInfo,
)
from acr_conformance.persistence import VersionBuilder

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

_BASE_TS: Final[datetime] = datetime(2026, 2, 1, 12, 0, 0, tzinfo=UTC)


def fixed_now(seed: int = 0) -> datetime:
    return _BASE_TS + timedelta(seconds=seed)


def make_document(version: int = 1, *, acr_id: str = "acr-guide") -> AcrDocument:
    return AcrDocument(
        id=acr_id,
        edition=AcrEdition.WCAG,
        product_info=ProductInfo(
            name="Field Guide",
            version="3.2",
            vendor="Example Press",
            contact_email="a11y@example.com",
        ),
        evaluation_methods=(EvaluationMethod(type="automated"),),
        criteria=(
            AcrCriterion(
                id="1.1.1",
                name="Non-text Content",
                level=CriterionLevel.A,
                conformance_level=ConformanceLevel.SUPPORTS,
                remarks=f"Snapshot {version}",
            ),
        ),
        generated_at=fixed_now(version),
        version=version,
    )


def make_version(
    version: int = 1,
    *,
    acr_id: str = "acr-guide",
    created_by: str = "reviewer-a",
) -> AcrVersion:
    return AcrVersion(
        id=f"acrv-{acr_id}-{version}",
        acr_id=acr_id,
        version=version,
        created_at=fixed_now(version),
        created_by=created_by,
        change_log=(ChangeLogEntry("document", None, "created", "Initial version created"),)
        if version == 1
        else (ChangeLogEntry("status", "DRAFT", "FINAL"),),
        snapshot=make_document(version, acr_id=acr_id),
    )


def next_version(acr_id: str = "acr-guide", created_by: str = "reviewer-a") -> VersionBuilder:
    def build(previous: AcrVersion | None) -> AcrVersion:
        number = 1 if previous is None else previous.version + 1
        return make_version(number, acr_id=acr_id, created_by=created_by)

    return build
