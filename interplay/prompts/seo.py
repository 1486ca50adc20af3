"""SEO specialist prompt, assembled from the SEO skill with token budget management."""

from __future__ import annotations

import json
from typing import Sequence

from interplay.models.enums import SerializationMode
from interplay.models.findings import EnrichedPage
from interplay.skills.schema import IssueDefinition, SEOSkill

from .serialization import (
    BuiltPrompt,
    PromptContext,
    calculate_page_priority,
    determine_serialization_mode,
    format_benchmarks,
    format_benchmarks_compact,
    format_constraints,
    format_content_patterns,
    format_content_patterns_compact,
    format_examples,
    format_examples_compact,
    format_kpis,
    format_kpis_compact,
    format_schema_rules,
    page_to_dict,
    prioritize_and_truncate,
    truncation_notice,
    validate_prompt_size,
)

SEO_OUTPUT_FORMAT = """\
{
  "seoActions": [
    {
      "condition": "string describing the problem",
      "recommendation": "string describing the strategy",
      "specificActions": ["action 1", "action 2", "action 3"],
      "impact": "high" | "medium" | "low",
      "url": "optional url"
    }
  ]
}"""


def _issues(issues: Sequence[IssueDefinition]) -> str:
    if not issues:
        return "None defined"
    return "\n".join(f"- **{i.id}**: {i.description}" for i in issues)


def _full_prompt(data_json: str, skill: SEOSkill, notice: str, context: PromptContext) -> str:
    kpis = format_kpis(skill.kpis)
    issues = skill.common_issues
    lines: list[str] = [skill.prompt.role_context, ""]
    lines.append("## Business Context")
    lines.append(f"Site Type: {skill.context.site_type}")
    lines.append(f"Primary Goal: {skill.context.primary_goal}")
    if skill.context.content_strategy:
        lines.append(f"Content Strategy: {skill.context.content_strategy}")
    if context.client_name:
        lines.append(f"Client: {context.client_name}")
    if context.industry:
        lines.append(f"Industry: {context.industry}")
    if context.target_market:
        lines.append(f"Target Market: {context.target_market}")
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
    lines.append("## Schema Markup Requirements")
    lines.append(format_schema_rules(skill.schema_rules))
    lines.append("")
    lines.append("## Content Patterns to Look For")
    lines.append(format_content_patterns(skill.analysis.content_patterns))
    lines.append("")
    if skill.analysis.technical_checks:
        lines.append("## Technical Checks")
        lines.extend(f"- {check}" for check in skill.analysis.technical_checks)
        lines.append("")
    lines.append("## Analysis Guidance")
    lines.append(skill.prompt.analysis_instructions)
    lines.append("")
    lines.append("## Common Issues for This Business Type")
    lines.append("")
    lines.append("### Critical Issues (Always Flag)")
    lines.append(_issues(issues.critical))
    lines.append("")
    lines.append("### Warnings (Flag if Severe)")
    lines.append(_issues(issues.warnings))
    lines.append("")
    lines.append("### False Positives (IGNORE These)")
    lines.append("\n".join(f"- {f}" for f in issues.false_positives) or "None")
    lines.append("")
    if notice:
        lines.append(notice)
        lines.append("")
    lines.append("## Pages to Analyze")
    lines.append("```json")
    lines.append(data_json)
    lines.append("```")
    lines.append("")
    lines.append("## Output Requirements")
    lines.append(skill.prompt.output_guidance)
    lines.append("")
    lines.append("## Examples")
    lines.append(format_examples(skill.prompt.examples, data_label="Page Data"))
    lines.append("")
    lines.append("## CRITICAL CONSTRAINTS")
    lines.append(format_constraints(skill.prompt.constraints))
    lines.append("")
    lines.append("## Output Format")
    lines.append("IMPORTANT: Return ONLY valid JSON without markdown code blocks.")
    lines.append("")
    lines.append(SEO_OUTPUT_FORMAT)
    return "\n".join(lines)


def _compact_prompt(data_json: str, skill: SEOSkill, notice: str, context: PromptContext) -> str:
    kpis = format_kpis_compact(skill.kpis)
    lines: list[str] = [skill.prompt.role_context, ""]
    lines.append("## Business Context")
    lines.append(f"Site Type: {skill.context.site_type}")
    lines.append(f"Primary Goal: {skill.context.primary_goal}")
    if context.industry:
        lines.append(f"Industry: {context.industry}")
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
    lines.append("## Content Patterns")
    lines.append(format_content_patterns_compact(skill.analysis.content_patterns))
    lines.append("")
    if notice:
        lines.append(notice)
        lines.append("")
    lines.append("## Pages")
    lines.append("```json")
    lines.append(data_json)
    lines.append("```")
    lines.append("")
    lines.append("## Output")
    lines.append(skill.prompt.output_guidance)
    lines.append("")
    lines.append(format_examples_compact(skill.prompt.examples, data_label="Page Data"))
    lines.append("")
    lines.append("## CONSTRAINTS")
    lines.append(format_constraints(skill.prompt.constraints))
    lines.append("")
    lines.append("## Output Format")
    lines.append("Return ONLY valid JSON:")
    lines.append("")
    lines.append(SEO_OUTPUT_FORMAT)
    return "\n".join(lines)


def build_seo_prompt(
    pages: Sequence[EnrichedPage], skill: SEOSkill, context: PromptContext
) -> BuiltPrompt:
    """Build the SEO prompt, truncating pages to the serialization budget."""
    mode, budget = determine_serialization_mode([], pages)
    included, dropped = prioritize_and_truncate(
        pages, budget.pages_included, calculate_page_priority
    )
    data_json = json.dumps([page_to_dict(p, mode) for p in included], indent=2)
    notice = truncation_notice(dropped, "pages")

    if mode == SerializationMode.COMPACT:
        prompt = _compact_prompt(data_json, skill, notice, context)
    else:
        prompt = _full_prompt(data_json, skill, notice, context)

    tokens = validate_prompt_size(prompt, "SEO")
    return BuiltPrompt(prompt=prompt, budget=budget, tokens=tokens)
