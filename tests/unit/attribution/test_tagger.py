"""Provenance tag precedence and marker formatting tests."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from acr_conformance.attribution import (
    AI_MODEL_INFO,
    ATTRIBUTION_MARKERS,
    TOOL_VERSION,
    attribute_finding,
    determine_attribution_tag,
    format_attributed_remark,
    is_alt_text_criterion,
)
from acr_conformance.domain.models import AttributionTag, VerificationStatus

_HUMAN = [
    VerificationStatus.VERIFIED_PASS,
    VerificationStatus.VERIFIED_FAIL,
    VerificationStatus.VERIFIED_PARTIAL,
]


@given(status=st.sampled_from(_HUMAN), ai=st.booleans(), as_text=st.booleans())
@settings(max_examples=25, derandomize=True, deadline=None)
def test_human_outcome_always_wins(
    status: VerificationStatus, ai: bool, as_text: bool
) -> None:
    raw = status.value if as_text else status
    assert determine_attribution_tag(raw, ai) is AttributionTag.HUMAN_VERIFIED


@pytest.mark.parametrize(
    "status", [None, VerificationStatus.PENDING, VerificationStatus.DEFERRED, "not-a-status"]
)
def test_unverified_states_fall_back_to_generation_source(status: object) -> None:
    assert determine_attribution_tag(status, True) is AttributionTag.AI_SUGGESTED  # type: ignore[arg-type]
    assert determine_attribution_tag(status, False) is AttributionTag.AUTOMATED  # type: ignore[arg-type]


def test_markers_are_literal() -> None:
    assert dict(ATTRIBUTION_MARKERS) == {
        AttributionTag.AUTOMATED: "[AUTOMATED]",
        AttributionTag.AI_SUGGESTED: "[AI-SUGGESTED]",
        AttributionTag.HUMAN_VERIFIED: "[HUMAN-VERIFIED]",
    }


def test_format_attributed_remark() -> None:
    assert format_attributed_remark("Looks fine", AttributionTag.AUTOMATED) == (
        "[AUTOMATED] Looks fine"
    )
    assert format_attributed_remark("Checked", "HUMAN_VERIFIED", True) == (
        "[HUMAN-VERIFIED] Checked"
    )
    assert format_attributed_remark("A red bicycle", AttributionTag.AI_SUGGESTED, True) == (
        "[AI-SUGGESTED] AI-Suggested - Requires Review: A red bicycle"
    )
    assert format_attributed_remark("Contrast ok", AttributionTag.AI_SUGGESTED, False) == (
        "[AI-SUGGESTED] Contrast ok"
    )


def test_alt_text_criterion_is_1_1_1_only() -> None:
    assert is_alt_text_criterion("1.1.1")
    assert not is_alt_text_criterion("1.1.10")
    assert not is_alt_text_criterion("1.4.3")


def test_attribute_finding_records_tool_model_and_verifier() -> None:
    ai = attribute_finding(
        "f-1", "A red bicycle", is_ai_generated=True, is_alt_text_suggestion=True
    )
    assert ai.attribution_tag is AttributionTag.AI_SUGGESTED
    assert ai.automated_tool_version == TOOL_VERSION == "Ninja Platform v1.0"
    assert ai.ai_model_used == AI_MODEL_INFO.name == "Google Gemini"
    assert ai.attributed_remark.startswith("[AI-SUGGESTED] AI-Suggested - Requires Review: ")

    human = attribute_finding(
        "f-2",
        "Keyboard trap confirmed",
        verification_status=VerificationStatus.VERIFIED_FAIL,
        human_verifier="reviewer-a",
        verification_method="manual",
    )
    payload = human.to_dict()
    assert payload["attribution_tag"] == "HUMAN_VERIFIED"
    assert payload["human_verifier"] == "reviewer-a"
    assert payload["ai_model_used"] is None
    assert payload["original_remark"] == "Keyboard trap confirmed"
