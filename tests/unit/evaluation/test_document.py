"""Compliance document assembly and finalization tests."""

from __future__ import annotations

from dataclasses import replace

import pytest

from acr_conformance.domain.models import (
    AcrEdition,
    AttributionTag,
    ConformanceLevel,
    DocumentAnalysis,
    DocumentStatus,
    EvaluationMethod,
    VerificationStatus,
)
from acr_conformance.evaluation import (
    DEFAULT_EVALUATION_METHOD,
    AttributionRequiredError,
    apply_attribution,
    build_acr_document,
    finalize_document,
    missing_attribution,
    remarks_for,
)

from . import (
    ANALYZED_AT,
    TEST_EDITION,
    WCAG_EDITION,
    fixed,
    issue,
    make_evaluator,
    product_info,
    small_catalog,
)


def _analysis(edition: str | None = TEST_EDITION) -> DocumentAnalysis:
    return make_evaluator().evaluate_document(
        "doc-guide",
        [
            issue("img-alt", "critical", "Cover image has no alt"),
            issue("color-contrast", "serious", "Footer text is faint"),
            issue("label", "minor", "Search box unlabeled"),
        ],
        fixed("label"),
        edition=edition,
        analyzed_at=ANALYZED_AT,
    )


def test_build_document_maps_analysis_to_criteria() -> None:
    analysis = _analysis()

    document = build_acr_document(analysis, product_info(), generated_at=ANALYZED_AT)

    assert document.id == "doc-guide"
    assert document.edition is AcrEdition.INTERNATIONAL
    assert document.status is DocumentStatus.DRAFT
    assert document.version == 1
    assert document.evaluation_methods == (DEFAULT_EVALUATION_METHOD,)
    assert [criterion.id for criterion in document.criteria] == [
        item.criterion_id for item in analysis.criteria
    ]
    assert {criterion.id for criterion in document.criteria} == {
        criterion.id for criterion in small_catalog().criteria_for_edition(document.edition)
    }

    by_id = {criterion.id: criterion for criterion in document.criteria}
    assert by_id["1.1.1"].conformance_level is ConformanceLevel.DOES_NOT_SUPPORT
    assert by_id["1.4.3"].conformance_level is ConformanceLevel.PARTIALLY_SUPPORTS
    assert by_id["2.1.1"].remarks == "No accessibility issues detected for this criterion"


def test_remarks_join_findings() -> None:
    contrast = _analysis().criterion("1.4.3")
    assert contrast is not None
    assert remarks_for(contrast) == "SERIOUS: Footer text is faint"

    labelled = _analysis().criterion("1.3.1")
    assert labelled is not None
    assert remarks_for(labelled) == "All 1 issue(s) have been remediated"


def test_ai_generated_drafts_are_tagged_ai_suggested() -> None:
    document = build_acr_document(
        _analysis(WCAG_EDITION),
        product_info(),
        generated_at=ANALYZED_AT,
        acr_id="acr-guide",
        edition=AcrEdition.WCAG,
    )

    assert document.id == "acr-guide"
    assert document.edition is AcrEdition.WCAG
    by_id = {criterion.id: criterion for criterion in document.criteria}
    assert all(item.attribution_tag is AttributionTag.AI_SUGGESTED for item in by_id.values())
    assert by_id["1.1.1"].attributed_remarks == (
        "[AI-SUGGESTED] AI-Suggested - Requires Review: CRITICAL: Cover image has no alt"
    )
    assert by_id["1.4.3"].attributed_remarks == "[AI-SUGGESTED] SERIOUS: Footer text is faint"


def test_human_verification_overrides_ai_generation() -> None:
    document = build_acr_document(
        _analysis(),
        product_info(),
        generated_at=ANALYZED_AT,
        verifications={
            "1.1.1": VerificationStatus.VERIFIED_FAIL,
            "1.4.3": "PENDING",
        },
    )
    by_id = {criterion.id: criterion for criterion in document.criteria}

    assert by_id["1.1.1"].attribution_tag is AttributionTag.HUMAN_VERIFIED
    assert by_id["1.1.1"].attributed_remarks.startswith("[HUMAN-VERIFIED] CRITICAL:")
    assert by_id["1.4.3"].attribution_tag is AttributionTag.AI_SUGGESTED


def test_apply_attribution_recomputes_tags() -> None:
    document = build_acr_document(
        _analysis(),
        product_info(),
        generated_at=ANALYZED_AT,
        evaluation_methods=(EvaluationMethod(type="automated"),),
        is_ai_generated=False,
    )
    assert {item.attribution_tag for item in document.criteria} == {AttributionTag.AUTOMATED}

    retagged = apply_attribution(document, ai_generated_criteria=("1.4.3",))
    by_id = {criterion.id: criterion for criterion in retagged.criteria}
    assert by_id["1.4.3"].attribution_tag is AttributionTag.AI_SUGGESTED
    assert by_id["1.1.1"].attributed_remarks.startswith("[AUTOMATED] ")


def test_finalize_requires_attribution_on_every_criterion() -> None:
    document = build_acr_document(_analysis(), product_info(), generated_at=ANALYZED_AT)
    assert missing_attribution(document) == ()
    assert finalize_document(document).status is DocumentStatus.FINAL

    stripped = replace(document.criteria[0], attributed_remarks="")
    unattributed = replace(document, criteria=(stripped, *document.criteria[1:]))

    with pytest.raises(AttributionRequiredError) as excinfo:
        finalize_document(unattributed)
    assert excinfo.value.criterion_ids == ("1.1.1",)
    assert "1.1.1" in str(excinfo.value)


def test_document_edition_follows_the_evaluated_edition() -> None:
    wcag = _analysis(WCAG_EDITION)

    document = build_acr_document(wcag, product_info(), generated_at=ANALYZED_AT)

    assert document.edition is AcrEdition.WCAG
    assert [criterion.id for criterion in document.criteria] == ["1.1.1", "1.4.3", "2.1.1"]
    assert {criterion.id for criterion in document.criteria} == {
        criterion.id for criterion in small_catalog().criteria_for_edition(document.edition)
    }

    with pytest.raises(ValueError, match="does not match the analysis edition"):
        build_acr_document(
            wcag, product_info(), generated_at=ANALYZED_AT, edition=AcrEdition.INTERNATIONAL
        )


@pytest.mark.parametrize("edition", [None, "VPAT1", "PAIR"])
def test_fallback_or_non_report_analyses_cannot_become_documents(edition: str | None) -> None:
    with pytest.raises(ValueError, match="not a report edition"):
        build_acr_document(_analysis(edition), product_info(), generated_at=ANALYZED_AT)


def test_missing_attribution_requires_the_marker_of_the_criterion_tag() -> None:
    document = build_acr_document(_analysis(), product_info(), generated_at=ANALYZED_AT)
    first = document.criteria[0]
    assert first.attribution_tag is AttributionTag.AI_SUGGESTED

    relabelled = replace(first, attribution_tag=AttributionTag.HUMAN_VERIFIED)
    mismatched = replace(document, criteria=(relabelled, *document.criteria[1:]))

    assert missing_attribution(mismatched) == (first.id,)
    with pytest.raises(AttributionRequiredError):
        finalize_document(mismatched)
