"""Shared builders for criterion evaluation and document assembly tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Final

import structlog

from acr_conformance.catalog import CriteriaCatalog
from acr_conformance.domain.models import AuditIssue, ProductInfo, RemediationRecord, Severity
from acr_conformance.evaluation import ConformanceEvaluator, EvaluationPolicy

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

TEST_EDITION: Final[str] = "VPAT2.5-INT"
WCAG_EDITION: Final[str] = "VPAT2.5-WCAG"
ANALYZED_AT: Final[datetime] = datetime(2026, 2, 1, 12, 0, 0, tzinfo=UTC)

_CATALOG_PAYLOAD: Final[dict[str, object]] = {
    "version": "test",
    "editions": [
        {
            "code": TEST_EDITION,
            "name": "International Edition",
            "criteria_ids": ["1.1.1", "1.3.1", "1.4.3", "2.1.1", "4.1.2"],
        },
        {
            "code": WCAG_EDITION,
            "name": "WCAG Edition",
            "criteria_ids": ["1.1.1", "1.4.3", "2.1.1"],
        },
        {"code": "PAIR", "name": "Pair Edition", "criteria_ids": ["1.1.1", "1.4.3"]},
        {"code": "EMPTY", "name": "Empty Edition", "criteria_ids": []},
    ],
    "criteria": [
        {"id": "1.1.1", "name": "Non-text Content", "level": "A", "section": "Perceivable"},
        {"id": "1.3.1", "name": "Info and Relationships", "level": "A", "section": "Perceivable"},
        {"id": "1.4.3", "name": "Contrast (Minimum)", "level": "AA", "section": "Perceivable"},
        {"id": "1.4.6", "name": "Contrast (Enhanced)", "level": "AAA", "section": "Perceivable"},
        {"id": "2.1.1", "name": "Keyboard", "level": "A", "section": "Operable"},
        {"id": "4.1.2", "name": "Name, Role, Value", "level": "A", "section": "Robust"},
    ],
}


def small_catalog() -> CriteriaCatalog:
    return CriteriaCatalog.from_mapping(_CATALOG_PAYLOAD)


def make_evaluator(policy: EvaluationPolicy | None = None) -> ConformanceEvaluator:
    return ConformanceEvaluator(
        small_catalog(),
        policy=policy,
        logger=structlog.get_logger("tests.evaluation"),
    )


def issue(
    code: str,
    severity: Severity | str = Severity.SERIOUS,
    message: str | None = None,
    **overrides: object,
) -> AuditIssue:
    return AuditIssue(
        code=code,
        severity=severity,
        message=message if message is not None else f"{code} violation",
        **overrides,  # type: ignore[arg-type]
    )


def fixed(*codes: str) -> tuple[RemediationRecord, ...]:
    return tuple(RemediationRecord(issue_code=code) for code in codes)


def product_info() -> ProductInfo:
    return ProductInfo(
        name="Field Guide",
        version="3.2",
        vendor="Example Press",
        contact_email="a11y@example.com",
    )
