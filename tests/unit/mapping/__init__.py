"""Builders for issue mapping and upstream adapter tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Final

from acr_conformance.domain.models import AuditIssue, Severity

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

FIXED_CLOCK_TS: Final[datetime] = datetime(2026, 3, 1, 9, 30, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_CLOCK_TS


def issue(
    code: str, severity: Severity | str = Severity.SERIOUS, **overrides: object
) -> AuditIssue:
    return AuditIssue(
        code=code,
        severity=severity,
        message=overrides.pop("message", f"{code} violation"),  # type: ignore[arg-type]
        **overrides,  # type: ignore[arg-type]
    )
