"""Provenance tagging and methodology disclosure."""

from acr_conformance.attribution.methodology import (
    LEGAL_DISCLAIMER,
    REVIEWER_ROLE,
    TOOLS_USED,
    AttributionSummary,
    FindingMetadata,
    MethodologySection,
    Reviewer,
    ToolInfo,
    VerificationRecord,
    generate_footer_disclaimer,
    generate_methodology_section,
    generate_methodology_text,
)
from acr_conformance.attribution.tagger import (
    AI_MODEL_INFO,
    ALT_TEXT_CRITERION_ID,
    ATTRIBUTION_MARKERS,
    TOOL_VERSION,
    AiModelInfo,
    AttributedFinding,
    attribute_finding,
    determine_attribution_tag,
    format_attributed_remark,
    is_alt_text_criterion,
)

__all__ = [
    "AI_MODEL_INFO",
    "ALT_TEXT_CRITERION_ID",
    "ATTRIBUTION_MARKERS",
    "LEGAL_DISCLAIMER",
    "REVIEWER_ROLE",
    "TOOLS_USED",
    "TOOL_VERSION",
    "AiModelInfo",
    "AttributedFinding",
    "AttributionSummary",
    "FindingMetadata",
    "MethodologySection",
    "Reviewer",
    "ToolInfo",
    "VerificationRecord",
    "attribute_finding",
    "determine_attribution_tag",
    "format_attributed_remark",
    "generate_footer_disclaimer",
    "generate_methodology_section",
    "generate_methodology_text",
    "is_alt_text_criterion",
]
