"""Director executive-summary prompt.

The recommendation list is fixed by the rule engine before this prompt is
built; the model only writes the narrative around it.
"""

from __future__ import annotations

import json
from typing import Sequence

from interplay.models.agent_outputs import SEMAction, SEOAction, UnifiedRecommendation
from interplay.skills.schema import DirectorSkill

from .serialization import (
    PromptContext,
    format_conflict_rules,
    format_constraints,
    format_prioritization_rules,
    format_synergy_rules,
    validate_prompt_size,
)

SUMMARY_OUTPUT_FORMAT = """\
{
  "summary": "3-5 sentence executive overview",
  "keyHighlights": ["highlight 1", "highlight 2", "highlight 3"]
}"""


def _bullets(items: Sequence[str], empty: str = "None specified") -> str:
    return "\n".join(f"- {item}" for item in items) if items else empty


def build_director_prompt(
    recommendations: Sequence[UnifiedRecommendation],
    sem_actions: Sequence[SEMAction],
    seo_actions: Sequence[SEOAction],
    skill: DirectorSkill,
    context: PromptContext,
) -> tuple[str, int]:
    """Return (prompt, token estimate) for the executive summary call."""
    summary_cfg = skill.executive_summary
    weights = skill.filtering.impact_weights
    specialist_json = json.dumps(
        {
            "semActionCount": len(sem_actions),
            "seoActionCount": len(seo_actions),
            "unifiedRecommendations": [r.to_wire() for r in recommendations],
        },
        indent=2,
    )

    lines: list[str] = [skill.prompt.role_context, ""]
    lines.append("## Business Context")
    if skill.context.executive_framing:
        lines.append(skill.context.executive_framing)
    if context.client_name:
        lines.append(f"Client: {context.client_name}")
    if context.industry:
        lines.append(f"Industry: {context.industry}")
    if context.target_market:
        lines.append(f"Target Market: {context.target_market}")
    lines.append("")
    lines.append("### Business Priorities (in order)")
    lines.append(
        "\n".join(f"{i}. {p}" for i, p in enumerate(skill.context.business_priorities, start=1))
        or "None specified"
    )
    lines.append("")
    lines.append("### Success Metrics")
    lines.append(_bullets(skill.context.success_metrics))
    lines.append("")
    lines.append("## Final Recommendations")
    lines.append(
        "These recommendations have already been synthesized, scored and filtered. "
        "Do not add, remove or reorder them."
    )
    lines.append("```json")
    lines.append(specialist_json)
    lines.append("```")
    lines.append("")
    lines.append("## Synthesis Rules Applied")
    lines.append("### Conflict Resolution")
    lines.append(format_conflict_rules(skill.synthesis.conflict_resolution))
    lines.append("")
    lines.append("### Synergy Identification")
    lines.append(format_synergy_rules(skill.synthesis.synergy_identification))
    lines.append("")
    lines.append("### Prioritization Rules")
    lines.append(format_prioritization_rules(skill.synthesis.prioritization))
    lines.append("")
    lines.append("**Impact Weights:**")
    lines.append(f"- Revenue Impact: {weights.revenue * 100:.0f}%")
    lines.append(f"- Cost Savings: {weights.cost * 100:.0f}%")
    lines.append(f"- Implementation Effort: {weights.effort * 100:.0f}%")
    lines.append(f"- Risk: {weights.risk * 100:.0f}%")
    lines.append("")
    lines.append("## Executive Summary")
    if summary_cfg.framing_guidance:
        lines.append(summary_cfg.framing_guidance)
    if skill.prompt.synthesis_instructions:
        lines.append(skill.prompt.synthesis_instructions)
    lines.append("")
    lines.append("**Focus Areas to Address:**")
    lines.append(_bullets(summary_cfg.focus_areas))
    lines.append("")
    lines.append("**Metrics to Quantify:**")
    lines.append(_bullets(summary_cfg.metrics_to_quantify))
    lines.append("")
    lines.append(f"**Maximum Highlights:** {summary_cfg.max_highlights}")
    lines.append("")
    if skill.prompt.prioritization_guidance:
        lines.append("## Prioritization Guidance")
        lines.append(skill.prompt.prioritization_guidance)
        lines.append("")
    lines.append("## CRITICAL CONSTRAINTS")
    lines.append(format_constraints(skill.prompt.constraints))
    lines.append("")
    lines.append("## Output Format")
    if skill.prompt.output_format:
        lines.append(skill.prompt.output_format)
    lines.append("IMPORTANT: Return ONLY valid JSON without markdown code blocks.")
    lines.append("")
    lines.append(SUMMARY_OUTPUT_FORMAT)

    prompt = "\n".join(lines)
    return prompt, validate_prompt_size(prompt, "Director")
