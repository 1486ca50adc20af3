"""SEM specialist prompt, assembled from the SEM skill with token budget management."""

from __future__ import annotations

import json
from typing import Sequence

from interplay.models.enums import SerializationMode
from interplay.models.findings import EnrichedKeyword
from interplay.skills.schema import SEMSkill

from .serialization import (
    BuiltPrompt,
    PromptContext,
    calculate_keyword_priority,
    determine_serialization_mode,
    format_benchmarks,
    format_benchmarks_compact,
    format_constraints,
    format_examples,
    format_examples_compact,
    format_kpis,
    format_kpis_compact,
    format_patterns,
    format_patterns_compact,
    keyword_to_dict,
    prioritize_and_truncate,
    truncation_notice,
    validate_prompt_size,
)

SEM_OUTPUT_FORMAT = """\
{
  "semActions": [
    {
      "action": "string",
      "level": "campaign" | "ad_group" | "keyword",
      "expectedUplift": "string",
      "reasoning": "string",
      "impact": "high" | "medium" | "low",
      "keyword": "optional keyword this applies to"
    }
  ]
}"""


def _context_lines(skill: SEMSkill, context: PromptContext, compact: bool) -> list[str]:
    lines = [skill.context.business_model]
    if not compact:
        lines.append("")
        lines.append(f"Conversion Definition: {skill.context.conversion_definition}")
        if skill.context.typical_customer_journey:
            lines.append(f"Customer Journey: {skill.context.typical_customer_journey}")
    if context.client_name:
        lines.append(f"Client: {context.client_name}")
    if context.industry:
        lines.append(f"Industry: {context.industry}")
    if context.target_market and not compact:
        lines.append(f"Target Market: {context.target_market}")
    return lines


def _full_prompt(data_json: str, skill: SEMSkill, notice: str, context: PromptContext) -> str:
    kpis = format_kpis(skill.kpis)
    lines: list[str] = [skill.prompt.role_context, ""]
    lines.append("## Business Context")
    lines.extend(_context_lines(skill, context, compact=False))
    lines.append("")
    lines.append("## Key Performance Indicators")
    lines.append("")
    lines.append("### Primary KPIs (Focus Here)")
    lines.append(kpis["primary"])
    lines.append("")
    lines.append("### Secondary KPIs")
    lines.append(kpis["secondary"])
    lines.append("")
    lines.append("### Metrics to IGNORE (Not Applicable)")
    lines.append(kpis["irrelevant"])
    lines.append("")
    lines.append("## Benchmarks for This Business Type")
    lines.append(format_benchmarks(skill.benchmarks))
    lines.append("")
    lines.append("## Analysis Guidance")
    lines.append(skill.prompt.analysis_instructions)
    lines.append("")
    lines.append("## Patterns to Look For")
    lines.append(format_patterns(skill.analysis.key_patterns))
    lines.append("")
    lines.append("## Anti-Patterns (Problems to Flag)")
    lines.append(format_patterns(skill.analysis.anti_patterns))
    lines.append("")
    if notice:
        lines.append(notice)
        lines.append("")
    lines.append("## Data to Analyze")
    lines.append("```json")
    lines.append(data_json)
    lines.append("```")
    lines.append("")
    lines.append("## Output Requirements")
    lines.append(skill.prompt.output_guidance)
    lines.append("")
    lines.append("## Examples")
    lines.append(format_examples(skill.prompt.examples))
    lines.append("")
    lines.append("## CRITICAL CONSTRAINTS")
    lines.append(format_constraints(skill.prompt.constraints))
    lines.append("")
    lines.append("## Output Format")
    lines.append("IMPORTANT: Return ONLY valid JSON without markdown code blocks.")
    lines.append("")
    lines.append(SEM_OUTPUT_FORMAT)
    return "\n".join(lines)


def _compact_prompt(data_json: str, skill: SEMSkill, notice: str, context: PromptContext) -> str:
    kpis = format_kpis_compact(skill.kpis)
    lines: list[str] = [skill.prompt.role_context, ""]
    lines.append("## Business Context")
    lines.extend(_context_lines(skill, context, compact=True))
    lines.append("")
    lines.append("## Primary KPIs")
    lines.append(kpis["primary"])
    lines.append("")
    lines.append("## Metrics to IGNORE")
    lines.append(kpis["irrelevant"])
    lines.append("")
    lines.append("## Benchmarks")
    lines.append(format_benchmarks_compact(skill.benchmarks))
    lines.append("")
    lines.append("## Key Patterns")
    lines.append(format_patterns_compact(skill.analysis.key_patterns))
    lines.append("")
    if notice:
        lines.append(notice)
        lines.append("")
    lines.append("## Data")
    lines.append("```json")
    lines.append(data_json)
    lines.append("```")
    lines.append("")
    lines.append("## Output")
    lines.append(skill.prompt.output_guidance)
    lines.append("")
    lines.append(format_examples_compact(skill.prompt.examples))
    lines.append("")
    lines.append("## CONSTRAINTS")
    lines.append(format_constraints(skill.prompt.constraints))
    lines.append("")
    lines.append("## Output Format")
    lines.append("Return ONLY valid JSON:")
    lines.append("")
    lines.append(SEM_OUTPUT_FORMAT)
    return "\n".join(lines)


def build_sem_prompt(
    keywords: Sequence[EnrichedKeyword], skill: SEMSkill, context: PromptContext
) -> BuiltPrompt:
    """Build the SEM prompt, truncating keywords to the serialization budget.

    Raises PromptBudgetExceededError when the assembled prompt is still too large.
    """
    mode, budget = determine_serialization_mode(keywords, [])
    included, dropped = prioritize_and_truncate(
        keywords, budget.keywords_included, calculate_keyword_priority
    )
    data_json = json.dumps([keyword_to_dict(k, mode) for k in included], indent=2)
    notice = truncation_notice(dropped, "keywords")

    if mode == SerializationMode.COMPACT:
        prompt = _compact_prompt(data_json, skill, notice, context)
    else:
        prompt = _full_prompt(data_json, skill, notice, context)

    tokens = validate_prompt_size(prompt, "SEM")
    return BuiltPrompt(prompt=prompt, budget=budget, tokens=tokens)
