"""Compliance document assembly from a document analysis."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Final

from acr_conformance.attribution.tagger import (
    ATTRIBUTION_MARKERS,
    determine_attribution_tag,
    format_attributed_remark,
    is_alt_text_criterion,
)
from acr_conformance.domain.models import (
    AcrCriterion,
    AcrDocument,
    AcrEdition,
    AttributionTag,
    CriterionAnalysis,
    DocumentAnalysis,
    DocumentStatus,
    EvaluationMethod,
    ProductInfo,
    VerificationStatus,
)

DEFAULT_EVALUATION_METHOD: Final[EvaluationMethod] = EvaluationMethod(
    type="hybrid",
    tools=("Automated Scanner", "Manual Expert Review"),
    description="Combination of automated testing and manual expert evaluation",
)

Verifications = Mapping[str, VerificationStatus | str]

_EDITION_CODES: Final[frozenset[str]] = frozenset(item.value for item in AcrEdition)


class AttributionRequiredError(ValueError):
    """Raised when a document would be finalized with unattributed criteria."""

    def __init__(self, criterion_ids: Sequence[str]) -> None:
        self.criterion_ids = tuple(criterion_ids)
        listed = ", ".join(self.criterion_ids)
        super().__init__(f"attributed remarks are required before finalizing; missing: {listed}")


def remarks_for(analysis: CriterionAnalysis) -> str:
    return ". ".join(analysis.findings)


def _attributed_criterion(
    criterion: AcrCriterion,
    *,
    verification: VerificationStatus | str | None,
    is_ai_generated: bool,
) -> AcrCriterion:
    tag = determine_attribution_tag(verification, is_ai_generated)
    return replace(
        criterion,
        attribution_tag=tag,
        attributed_remarks=format_attributed_remark(
            criterion.remarks, tag, is_alt_text_criterion(criterion.id)
        ),
    )


def _report_edition(
    requested: AcrEdition | str | None, evaluated: str | None
) -> AcrEdition:
    if evaluated is None or evaluated not in _EDITION_CODES:
        label = "the A+AA fallback" if evaluated is None else repr(evaluated)
        raise ValueError(
            f"analysis was evaluated against {label}, which is not a report edition; "
            "re-evaluate against one of " + ", ".join(sorted(_EDITION_CODES))
        )
    actual = AcrEdition(evaluated)
    if requested is not None and AcrEdition(requested) is not actual:
        raise ValueError(
            f"edition {AcrEdition(requested).value!r} does not match the analysis edition "
            f"{actual.value!r}"
        )
    return actual


def build_acr_document(
    analysis: DocumentAnalysis,
    product_info: ProductInfo,
    *,
    generated_at: datetime,
    acr_id: str | None = None,
    edition: AcrEdition | str | None = None,
    evaluation_methods: Sequence[EvaluationMethod] = (DEFAULT_EVALUATION_METHOD,),
    is_ai_generated: bool = True,
    verifications: Verifications | None = None,
) -> AcrDocument:
    """
    Turn a document analysis into a draft compliance document.

    Each criterion's remarks are its findings joined into one sentence sequence, and
    attribution is applied immediately so the draft is always disclosure-complete.
    The edition is the one the analysis was evaluated against, so the criteria are
    exactly that edition's catalog subset. An analysis from the A+AA fallback, or an
    explicit ``edition`` that disagrees with the analysis, raises ``ValueError``.
    """

    resolved_edition = _report_edition(edition, analysis.edition)
    verification_map = verifications or {}
    criteria = tuple(
        _attributed_criterion(
            AcrCriterion(
                id=item.criterion_id,
                name=item.name,
                level=item.level,
                conformance_level=item.conformance_level,
                remarks=remarks_for(item),
            ),
            verification=verification_map.get(item.criterion_id),
            is_ai_generated=is_ai_generated,
        )
        for item in analysis.criteria
    )
    return AcrDocument(
        id=acr_id or analysis.document_id,
        edition=resolved_edition,
        product_info=product_info,
        evaluation_methods=tuple(evaluation_methods),
        criteria=criteria,
        generated_at=generated_at,
    )


def apply_attribution(
    document: AcrDocument,
    *,
    is_ai_generated: bool = False,
    verifications: Verifications | None = None,
    ai_generated_criteria: Sequence[str] = (),
) -> AcrDocument:
    """Recompute every criterion's tag and attributed remark from its current remarks."""

    verification_map = verifications or {}
    ai_ids = set(ai_generated_criteria)
    return replace(
        document,
        criteria=tuple(
            _attributed_criterion(
                criterion,
                verification=verification_map.get(criterion.id),
                is_ai_generated=is_ai_generated or criterion.id in ai_ids,
            )
            for criterion in document.criteria
        ),
    )


def missing_attribution(document: AcrDocument) -> tuple[str, ...]:
    """Ids of criteria whose attributed remark lacks the marker of their own tag."""

    return tuple(
        criterion.id
        for criterion in document.criteria
        if not criterion.attributed_remarks.startswith(
            f"{ATTRIBUTION_MARKERS[AttributionTag(criterion.attribution_tag)]} "
        )
    )


def finalize_document(document: AcrDocument) -> AcrDocument:
    missing = missing_attribution(document)
    if missing:
        raise AttributionRequiredError(missing)
    return replace(document, status=DocumentStatus.FINAL)


__all__ = [
    "DEFAULT_EVALUATION_METHOD",
    "AttributionRequiredError",
    "apply_attribution",
    "build_acr_document",
    "finalize_document",
    "missing_attribution",
    "remarks_for",
]
