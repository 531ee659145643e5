"""Assessment methodology disclosure assembled from attributed findings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Final

from acr_conformance.attribution.tagger import (
    AI_MODEL_INFO,
    TOOL_VERSION,
    AiModelInfo,
    determine_attribution_tag,
)
from acr_conformance.domain.models import AttributionTag, VerificationStatus

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

REVIEWER_ROLE: Final[str] = "Accessibility Specialist"

LEGAL_DISCLAIMER: Final[str] = (
    "This Accessibility Conformance Report was generated using automated testing tools \n"
    "supplemented by AI-assisted analysis. Automated tools can detect approximately \n"
    "30-57% of accessibility barriers. Items marked [AI-SUGGESTED] require human \n"
    "verification for accuracy. This report should be reviewed by qualified \n"
    "accessibility professionals before use in procurement decisions.\n"
    "\n"
    f"Assessment Tool: {TOOL_VERSION}\n"
    "AI Model: Google Gemini (for alt text suggestions and remediation guidance)"
)


@dataclass(frozen=True, slots=True)
class ToolInfo:
    name: str
    version: str
    purpose: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version, "purpose": self.purpose}


TOOLS_USED: Final[tuple[ToolInfo, ...]] = (
    ToolInfo(
        name="Ninja Platform",
        version="1.0",
        purpose=(
            "Automated accessibility validation against WCAG 2.1, Section 508, "
            "and PDF/UA standards"
        ),
    ),
    ToolInfo(
        name="pdf-lib",
        version="1.17.1",
        purpose="PDF structure parsing and metadata extraction",
    ),
    ToolInfo(
        name="pdfjs-dist",
        version="4.0.269",
        purpose="PDF text and content extraction",
    ),
)


@dataclass(frozen=True, slots=True)
class FindingMetadata:
    finding_id: str
    is_ai_generated: bool = False
    is_alt_text_suggestion: bool = False


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    item_id: str
    status: VerificationStatus
    verified_by: str | None = None
    method: str | None = None


@dataclass(frozen=True, slots=True)
class Reviewer:
    id: str
    role: str
    verification_count: int

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "role": self.role, "verification_count": self.verification_count}


@dataclass(frozen=True, slots=True)
class AttributionSummary:
    total_findings: int = 0
    automated_findings: int = 0
    ai_suggested_findings: int = 0
    human_verified_findings: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_findings": self.total_findings,
            "automated_findings": self.automated_findings,
            "ai_suggested_findings": self.ai_suggested_findings,
            "human_verified_findings": self.human_verified_findings,
        }


@dataclass(frozen=True, slots=True)
class MethodologySection:
    assessment_date: date
    tools_used: tuple[ToolInfo, ...]
    ai_models_used: tuple[AiModelInfo, ...]
    human_reviewers: tuple[Reviewer, ...]
    summary: AttributionSummary
    disclaimer: str = field(default=LEGAL_DISCLAIMER)

    def to_dict(self) -> dict[str, object]:
        return {
            "assessment_date": self.assessment_date.isoformat(),
            "tools_used": [tool.to_dict() for tool in self.tools_used],
            "ai_models_used": [model.to_dict() for model in self.ai_models_used],
            "human_reviewers": [reviewer.to_dict() for reviewer in self.human_reviewers],
            "summary": self.summary.to_dict(),
            "disclaimer": self.disclaimer,
        }


def _today() -> date:
    return datetime.now(tz=UTC).date()


def generate_methodology_section(
    findings: Iterable[FindingMetadata],
    verification_records: Iterable[VerificationRecord],
    *,
    assessment_date: date | None = None,
) -> MethodologySection:
    """
    Count findings per provenance tag and list who and what produced them.

    Reviewers appear in first-verification order. AI models are listed only when at
    least one finding ended up tagged AI-suggested.
    """

    by_item = {record.item_id: record for record in verification_records}
    counts = dict.fromkeys(AttributionTag, 0)
    reviewer_counts: dict[str, int] = {}
    total = 0

    for finding in findings:
        total += 1
        verification = by_item.get(finding.finding_id)
        tag = determine_attribution_tag(
            verification.status if verification is not None else None,
            finding.is_ai_generated,
        )
        counts[tag] += 1
        if (
            tag is AttributionTag.HUMAN_VERIFIED
            and verification is not None
            and verification.verified_by
        ):
            reviewer_counts[verification.verified_by] = (
                reviewer_counts.get(verification.verified_by, 0) + 1
            )

    reviewers = tuple(
        Reviewer(id=reviewer_id, role=REVIEWER_ROLE, verification_count=count)
        for reviewer_id, count in reviewer_counts.items()
    )
    ai_suggested = counts[AttributionTag.AI_SUGGESTED]
    return MethodologySection(
        assessment_date=assessment_date if assessment_date is not None else _today(),
        tools_used=TOOLS_USED,
        ai_models_used=(AI_MODEL_INFO,) if ai_suggested > 0 else (),
        human_reviewers=reviewers,
        summary=AttributionSummary(
            total_findings=total,
            automated_findings=counts[AttributionTag.AUTOMATED],
            ai_suggested_findings=ai_suggested,
            human_verified_findings=counts[AttributionTag.HUMAN_VERIFIED],
        ),
    )


def generate_methodology_text(methodology: MethodologySection) -> str:
    """Render a methodology section as Markdown."""

    lines: list[str] = [
        "# Assessment Methodology",
        "",
        f"**Assessment Date:** {methodology.assessment_date.isoformat()}",
        "",
        "## Tools Used",
    ]
    lines.extend(
        f"- **{tool.name} {tool.version}:** {tool.purpose}" for tool in methodology.tools_used
    )
    lines.append("")

    if methodology.ai_models_used:
        lines.append("## AI Models Used")
        lines.extend(
            f"- **{model.name} ({model.provider}):** {model.purpose}"
            for model in methodology.ai_models_used
        )
        lines.append("")

    if methodology.human_reviewers:
        lines.append("## Human Reviewers")
        lines.extend(
            f"- {reviewer.role} (ID: {reviewer.id}): "
            f"Verified {reviewer.verification_count} finding(s)"
            for reviewer in methodology.human_reviewers
        )
        lines.append("")

    summary = methodology.summary
    lines.extend(
        [
            "## Finding Attribution Summary",
            f"- **Total Findings:** {summary.total_findings}",
            f"- **Automated Checks:** {summary.automated_findings}",
            f"- **AI-Suggested:** {summary.ai_suggested_findings}",
            f"- **Human-Verified:** {summary.human_verified_findings}",
            "",
            "## Attribution Key",
            "- **[AUTOMATED]:** Finding detected by automated testing tools",
            "- **[AI-SUGGESTED]:** Content suggested by AI model - requires human verification",
            "- **[HUMAN-VERIFIED]:** Finding confirmed by human accessibility specialist",
            "",
            "---",
            "",
            "## Legal Disclaimer",
            "",
            methodology.disclaimer,
        ]
    )
    return "\n".join(lines)


def generate_footer_disclaimer(*, generated_on: date | None = None) -> str:
    day = generated_on if generated_on is not None else _today()
    return f"---\n{LEGAL_DISCLAIMER}\n\nReport generated on {day.isoformat()} by {TOOL_VERSION}"


__all__ = [
    "LEGAL_DISCLAIMER",
    "REVIEWER_ROLE",
    "TOOLS_USED",
    "AttributionSummary",
    "FindingMetadata",
    "MethodologySection",
    "Reviewer",
    "ToolInfo",
    "VerificationRecord",
    "generate_footer_disclaimer",
    "generate_methodology_section",
    "generate_methodology_text",
]
