"""Shared deterministic builders for domain model tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Final

from acr_conformance.domain.models import (
    AcrCriterion,
    AcrDocument,
    AcrEdition,
    AttributionTag,
    AuditIssue,
    ConformanceLevel,
    CriterionLevel,
    EvaluationMethod,
    ProductInfo,
    Severity,
)

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

_BASE_TS: Final[datetime] = datetime(2026, 2, 1, 12, 0, 0, tzinfo=UTC)


def fixed_now(seed: int = 0) -> datetime:
    return _BASE_TS + timedelta(seconds=seed)


def make_issue(
    code: str = "img-alt",
    severity: Severity | str | None = Severity.SERIOUS,
    message: str = "Image is missing alternative text",
    **overrides: object,
) -> AuditIssue:
    return AuditIssue(code=code, severity=severity, message=message, **overrides)  # type: ignore[arg-type]


def make_product_info() -> ProductInfo:
    return ProductInfo(
        name="Field Guide",
        version="3.2",
        vendor="Example Press",
        contact_email="a11y@example.com",
    )


def make_acr_document(
    *,
    acr_id: str = "acr-guide",
    version: int = 1,
    criteria: tuple[AcrCriterion, ...] | None = None,
) -> AcrDocument:
    return AcrDocument(
        id=acr_id,
        edition=AcrEdition.INTERNATIONAL,
        product_info=make_product_info(),
        evaluation_methods=(EvaluationMethod(type="automated", tools=("Scanner",)),),
        criteria=criteria
        if criteria is not None
        else (
            AcrCriterion(
                id="1.1.1",
                name="Non-text Content",
                level=CriterionLevel.A,
                conformance_level=ConformanceLevel.SUPPORTS,
                remarks="No accessibility issues detected for this criterion",
                attribution_tag=AttributionTag.AUTOMATED,
                attributed_remarks=(
                    "[AUTOMATED] No accessibility issues detected for this criterion"
                ),
            ),
        ),
        generated_at=fixed_now(),
        version=version,
    )
