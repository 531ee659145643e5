"""
Provenance tagging for conformance conclusions.

Every remark in a compliance document carries one of three provenance tags and the
matching literal marker. The marker strings are consumed verbatim by renderers and
legal disclaimers and must never be altered or localized.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from acr_conformance.domain.models import AttributionTag, VerificationStatus

TOOL_VERSION: Final[str] = "Ninja Platform v1.0"
ALT_TEXT_CRITERION_ID: Final[str] = "1.1.1"
ALT_TEXT_REVIEW_NOTICE: Final[str] = "AI-Suggested - Requires Review"

ATTRIBUTION_MARKERS: Final[Mapping[AttributionTag, str]] = MappingProxyType(
    {
        AttributionTag.AUTOMATED: "[AUTOMATED]",
        AttributionTag.AI_SUGGESTED: "[AI-SUGGESTED]",
        AttributionTag.HUMAN_VERIFIED: "[HUMAN-VERIFIED]",
    }
)

HUMAN_OUTCOMES: Final[frozenset[VerificationStatus]] = frozenset(
    {
        VerificationStatus.VERIFIED_PASS,
        VerificationStatus.VERIFIED_FAIL,
        VerificationStatus.VERIFIED_PARTIAL,
    }
)


@dataclass(frozen=True, slots=True)
class AiModelInfo:
    name: str
    provider: str
    purpose: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "provider": self.provider, "purpose": self.purpose}


AI_MODEL_INFO: Final[AiModelInfo] = AiModelInfo(
    name="Google Gemini",
    provider="Google",
    purpose="Alt text suggestions, remediation guidance, content analysis",
)


def _coerce_verification(value: VerificationStatus | str | None) -> VerificationStatus | None:
    if value is None or isinstance(value, VerificationStatus):
        return value
    try:
        return VerificationStatus(value)
    except ValueError:
        return None


def determine_attribution_tag(
    verification_status: VerificationStatus | str | None = None,
    is_ai_generated: bool = False,
) -> AttributionTag:
    """
    Return the provenance tag for one conclusion.

    A terminal human outcome always wins, then AI generation, then automation.
    Pending, deferred, or unrecognized verification states count as unverified.
    """

    if _coerce_verification(verification_status) in HUMAN_OUTCOMES:
        return AttributionTag.HUMAN_VERIFIED
    if is_ai_generated:
        return AttributionTag.AI_SUGGESTED
    return AttributionTag.AUTOMATED


def is_alt_text_criterion(criterion_id: str) -> bool:
    return criterion_id == ALT_TEXT_CRITERION_ID


def format_attributed_remark(
    remark: str,
    tag: AttributionTag | str,
    is_alt_text_criterion: bool = False,
) -> str:
    resolved = AttributionTag(tag)
    marker = ATTRIBUTION_MARKERS[resolved]
    if is_alt_text_criterion and resolved is AttributionTag.AI_SUGGESTED:
        return f"{marker} {ALT_TEXT_REVIEW_NOTICE}: {remark}"
    return f"{marker} {remark}"


@dataclass(frozen=True, slots=True)
class AttributedFinding:
    """One remark with its provenance and the tool or person behind it."""

    finding_id: str
    attribution_tag: AttributionTag
    automated_tool_version: str
    attributed_remark: str
    original_remark: str | None = None
    ai_model_used: str | None = None
    human_verifier: str | None = None
    verification_method: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "finding_id": self.finding_id,
            "attribution_tag": self.attribution_tag.value,
            "automated_tool_version": self.automated_tool_version,
            "ai_model_used": self.ai_model_used,
            "human_verifier": self.human_verifier,
            "verification_method": self.verification_method,
            "original_remark": self.original_remark,
            "attributed_remark": self.attributed_remark,
        }


def attribute_finding(
    finding_id: str,
    original_remark: str,
    *,
    verification_status: VerificationStatus | str | None = None,
    is_ai_generated: bool = False,
    is_alt_text_suggestion: bool = False,
    human_verifier: str | None = None,
    verification_method: str | None = None,
) -> AttributedFinding:
    tag = determine_attribution_tag(verification_status, is_ai_generated)
    return AttributedFinding(
        finding_id=finding_id,
        attribution_tag=tag,
        automated_tool_version=TOOL_VERSION,
        attributed_remark=format_attributed_remark(original_remark, tag, is_alt_text_suggestion),
        original_remark=original_remark,
        ai_model_used=AI_MODEL_INFO.name if is_ai_generated else None,
        human_verifier=human_verifier,
        verification_method=verification_method,
    )


__all__ = [
    "AI_MODEL_INFO",
    "ALT_TEXT_CRITERION_ID",
    "ALT_TEXT_REVIEW_NOTICE",
    "ATTRIBUTION_MARKERS",
    "HUMAN_OUTCOMES",
    "TOOL_VERSION",
    "AiModelInfo",
    "AttributedFinding",
    "attribute_finding",
    "determine_attribution_tag",
    "format_attributed_remark",
    "is_alt_text_criterion",
]
