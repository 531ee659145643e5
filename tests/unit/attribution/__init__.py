"""Builders for attribution and methodology tests."""

from __future__ import annotations

from datetime import date
from typing import Final

from acr_conformance.attribution import FindingMetadata, VerificationRecord
from acr_conformance.domain.models import VerificationStatus

ASSESSMENT_DATE: Final[date] = date(2026, 2, 1)


def findings(count: int, *, ai: bool = False) -> list[FindingMetadata]:
    return [FindingMetadata(finding_id=f"f-{index}", is_ai_generated=ai) for index in range(count)]


def verified(
    item_id: str,
    by: str | None = "reviewer-a",
    status: VerificationStatus = VerificationStatus.VERIFIED_PASS,
) -> VerificationRecord:
    return VerificationRecord(item_id=item_id, status=status, verified_by=by, method="manual")
