"""Prompt serialization: token budget, priority truncation and skill formatters."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar

from interplay.models.enums import SerializationMode
from interplay.models.findings import EnrichedKeyword, EnrichedPage
from interplay.orchestrator.errors import PromptBudgetExceededError
from interplay.skills.schema import (
    AnalysisPattern,
    ConflictRule,
    ContentPattern,
    KPISet,
    PrioritizationRule,
    PromptExample,
    SchemaRules,
    SynergyRule,
    ThresholdSet,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PROMPT_TOKENS = 30000
MAX_DATA_TOKENS = 15000
MAX_KEYWORDS_FULL = 20
MAX_KEYWORDS_COMPACT = 10
MAX_PAGES_FULL = 10
MAX_PAGES_COMPACT = 5
MAX_CONTENT_PREVIEW_CHARS = 500
MAX_PAGE_TITLE_CHARS = 100

KEYWORD_REASON_WEIGHTS: dict[str, int] = {
    "high_spend_low_roas": 100,
    "cannibalization_risk": 90,
    "growth_potential": 70,
    "competitive_pressure": 60,
}

PAGE_REASON_WEIGHTS: dict[str, int] = {
    "high_spend_low_organic": 100,
    "high_traffic_high_bounce": 80,
    "high_impressions_low_ctr": 70,
}


@dataclass
class PromptContext:
    """Client details threaded into every model prompt."""

    client_name: Optional[str] = None
    industry: Optional[str] = None
    target_market: Optional[str] = None


@dataclass
class BuiltPrompt:
    prompt: str
    budget: TokenBudget
    tokens: int


@dataclass
class TokenBudget:
    mode: SerializationMode
    keywords_included: int = 0
    keywords_dropped: int = 0
    pages_included: int = 0
    pages_dropped: int = 0
    truncation_applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "keywords_included": self.keywords_included,
            "keywords_dropped": self.keywords_dropped,
            "pages_included": self.pages_included,
            "pages_dropped": self.pages_dropped,
            "truncation_applied": self.truncation_applied,
        }


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


# --- Data serialization ---


def _round(value: Any, digits: int = 2) -> Any:
    return round(value, digits) if isinstance(value, float) else value


def keyword_to_dict(item: EnrichedKeyword, mode: SerializationMode = SerializationMode.FULL) -> dict:
    kw = item.keyword
    data: dict[str, Any] = {
        "query": kw.query,
        "priority": item.priority.value,
        "reason": kw.reason,
        "spend": _round(kw.spend),
        "roas": _round(kw.roas),
        "conversions": _round(kw.conversions),
    }
    if mode == SerializationMode.FULL:
        data.update(
            clicks=kw.clicks,
            impressions=kw.impressions,
            conversionValue=_round(kw.conversion_value),
            organicPosition=_round(kw.organic_position),
        )
        if item.boost_reasons:
            data["boostReasons"] = item.boost_reasons
    cm = item.competitive_metrics
    if cm is not None:
        competitive = {
            "impressionShare": _round(cm.impression_share),
            "lostImpressionShareBudget": _round(cm.lost_impression_share_budget),
            "lostImpressionShareRank": _round(cm.lost_impression_share_rank),
            "dataLevel": cm.data_level.value,
        }
        if mode == SerializationMode.FULL:
            competitive.update(
                topOfPageRate=_round(cm.top_of_page_rate),
                absTopOfPageRate=_round(cm.abs_top_of_page_rate),
                outrankingShare=_round(cm.outranking_share),
                overlapRate=_round(cm.overlap_rate),
            )
        data["competitiveMetrics"] = {k: v for k, v in competitive.items() if v is not None}
    return data


def page_to_dict(item: EnrichedPage, mode: SerializationMode = SerializationMode.FULL) -> dict:
    page = item.page
    data: dict[str, Any] = {
        "url": page.url,
        "priority": page.priority.value,
        "reason": page.reason,
        "paidSpend": _round(page.paid_spend),
        "organicPosition": _round(page.organic_position),
        "bounceRate": _round(page.bounce_rate),
    }
    if mode == SerializationMode.FULL:
        data.update(
            organicImpressions=page.impressions,
            organicCtr=_round(page.ctr),
            sessions=page.sessions,
        )
    content = item.content
    if content is None:
        data["content"] = None
        data["fetchError"] = item.fetch_error
        return data
    fetched: dict[str, Any] = {
        "pageType": content.page_type,
        "title": (content.title or "")[:MAX_PAGE_TITLE_CHARS] or None,
        "h1": (content.h1 or "")[:MAX_PAGE_TITLE_CHARS] or None,
        "wordCount": content.word_count,
        "detectedSchema": content.detected_schema,
        "schemaErrors": content.schema_errors,
    }
    if mode == SerializationMode.FULL:
        fetched.update(
            metaDescription=content.meta_description,
            canonicalUrl=content.canonical_url,
            contentSignals=content.content_signals,
            contentPreview=content.content_preview[:MAX_CONTENT_PREVIEW_CHARS],
        )
    else:
        fetched["missingSignals"] = [k for k, v in content.content_signals.items() if not v]
    data["content"] = fetched
    return data


def determine_serialization_mode(
    keywords: Sequence[EnrichedKeyword], pages: Sequence[EnrichedPage]
) -> tuple[SerializationMode, TokenBudget]:
    """Pick full or compact serialization and the per-category budget.

    Compact is chosen when either count exceeds its full limit or the
    estimated data size exceeds MAX_DATA_TOKENS.
    """
    keyword_count = len(keywords)
    page_count = len(pages)
    data_text = json.dumps([keyword_to_dict(k) for k in keywords]) + json.dumps(
        [page_to_dict(p) for p in pages]
    )
    data_tokens = estimate_tokens(data_text)

    mode = SerializationMode.FULL
    keywords_included = min(keyword_count, MAX_KEYWORDS_FULL)
    pages_included = min(page_count, MAX_PAGES_FULL)
    if (
        keyword_count > MAX_KEYWORDS_FULL
        or page_count > MAX_PAGES_FULL
        or data_tokens > MAX_DATA_TOKENS
    ):
        mode = SerializationMode.COMPACT
        keywords_included = min(keyword_count, MAX_KEYWORDS_COMPACT)
        pages_included = min(page_count, MAX_PAGES_COMPACT)

    budget = TokenBudget(
        mode=mode,
        keywords_included=keywords_included,
        keywords_dropped=keyword_count - keywords_included,
        pages_included=pages_included,
        pages_dropped=page_count - pages_included,
        truncation_applied=keywords_included < keyword_count or pages_included < page_count,
    )
    if budget.truncation_applied:
        logger.warning(
            f"Data truncated for token budget: {keyword_count} keywords, {page_count} pages, "
            f"estimated {data_tokens} data tokens -> {budget.to_dict()}"
        )
    return mode, budget


def calculate_keyword_priority(item: EnrichedKeyword) -> float:
    kw = item.keyword
    score: float = KEYWORD_REASON_WEIGHTS.get(kw.reason, 50)
    if kw.spend > 500:
        score += 30
    elif kw.spend > 200:
        score += 20
    elif kw.spend > 100:
        score += 10
    if kw.conversions > 0:
        score += 15
    if item.competitive_metrics is not None:
        score += 10
    score += 10 * item.priority_boost
    return score


def calculate_page_priority(item: EnrichedPage) -> float:
    page = item.page
    score: float = PAGE_REASON_WEIGHTS.get(page.reason, 50)
    if page.paid_spend > 300:
        score += 25
    elif page.paid_spend > 100:
        score += 15
    if item.content is not None:
        score += 10
    if page.impressions > 1000:
        score += 10
    return score


def prioritize_and_truncate(
    items: Sequence[T], limit: int, priority_fn: Callable[[T], float]
) -> tuple[list[T], int]:
    """Keep the `limit` highest-scoring items; return (included, dropped count).

    The sort is stable so equal scores keep their input order.
    """
    if len(items) <= limit:
        return list(items), 0
    ranked = sorted(items, key=priority_fn, reverse=True)
    return ranked[:limit], len(items) - limit


def truncation_notice(dropped: int, kind: str) -> str:
    if dropped <= 0:
        return ""
    return (
        f"NOTE: Data was truncated for token limits. {dropped} lower-priority {kind} omitted. "
        "Focus analysis on the provided high-priority items."
    )


def validate_prompt_size(prompt: str, context: str) -> int:
    """Return the prompt's token estimate, raising when it exceeds MAX_PROMPT_TOKENS."""
    tokens = estimate_tokens(prompt)
    if tokens > MAX_PROMPT_TOKENS:
        logger.error(
            f"{context} prompt exceeds token limit even after truncation: "
            f"{tokens} > {MAX_PROMPT_TOKENS}"
        )
        raise PromptBudgetExceededError(f"{context} prompt too large for model context window")
    return tokens


# --- Skill formatters ---


def format_kpis(kpis: KPISet) -> dict[str, str]:
    def _one(kpi) -> str:
        line = f"- **{kpi.metric}** ({kpi.importance}): {kpi.description}\n  Target: {kpi.target_direction}"
        if kpi.benchmark is not None:
            line += f" | Benchmark: {kpi.benchmark}"
        if kpi.business_context:
            line += f"\n  Why it matters: {kpi.business_context}"
        return line

    return {
        "primary": "\n\n".join(_one(k) for k in kpis.primary),
        "secondary": "\n\n".join(_one(k) for k in kpis.secondary),
        "irrelevant": "\n".join(f"- {m}" for m in kpis.irrelevant),
    }


def format_kpis_compact(kpis: KPISet) -> dict[str, str]:
    return {
        "primary": "\n".join(
            f"- **{k.metric}**: {k.description} ({k.target_direction})" for k in kpis.primary
        ),
        "irrelevant": "\n".join(f"- {m}" for m in kpis.irrelevant),
    }


def format_benchmarks(benchmarks: dict[str, ThresholdSet]) -> str:
    if not benchmarks:
        return "No benchmarks defined."
    lines = [
        "| Metric | Excellent | Good | Average | Poor |",
        "|--------|-----------|------|---------|------|",
    ]
    for metric, t in benchmarks.items():
        lines.append(f"| {metric} | {t.excellent} | {t.good} | {t.average} | {t.poor} |")
    return "\n".join(lines)


def format_benchmarks_compact(benchmarks: dict[str, ThresholdSet]) -> str:
    if not benchmarks:
        return "No benchmarks defined."
    return "\n".join(f"- {metric}: Good = {t.good}" for metric, t in benchmarks.items())


def format_patterns(patterns: Sequence[AnalysisPattern]) -> str:
    if not patterns:
        return "No patterns defined."
    return "\n\n".join(
        f"### {p.name}\n{p.description}\n"
        f"- **Indicators:** {', '.join(p.indicators)}\n"
        f"- **Recommended Action:** {p.recommendation}"
        for p in patterns
    )


def format_patterns_compact(patterns: Sequence[AnalysisPattern], limit: int = 3) -> str:
    if not patterns:
        return "No patterns defined."
    return "\n".join(f"- **{p.name}**: {p.description}" for p in patterns[:limit])


def format_examples(examples: Sequence[PromptExample], data_label: str = "Data") -> str:
    if not examples:
        return "No examples provided."
    return "\n\n".join(
        f"### Example {i}: {ex.scenario}\n"
        f"**{data_label}:** {ex.data}\n"
        f"**Recommendation:** {ex.recommendation}\n"
        f"**Reasoning:** {ex.reasoning}"
        for i, ex in enumerate(examples, start=1)
    )


def format_examples_compact(examples: Sequence[PromptExample], data_label: str = "Data") -> str:
    if not examples:
        return ""
    ex = examples[0]
    return (
        f"### Example: {ex.scenario}\n"
        f"**{data_label}:** {ex.data}\n"
        f"**Recommendation:** {ex.recommendation}"
    )


def format_constraints(constraints: Sequence[str]) -> str:
    if not constraints:
        return "No constraints defined."
    return "\n".join(f"{i}. {c}" for i, c in enumerate(constraints, start=1))


def format_schema_rules(rules: SchemaRules) -> str:
    sections: list[str] = []
    if rules.required:
        body = "\n".join(
            f"- **{r.type}**: {r.description}"
            + (f" ({r.validation_notes})" if r.validation_notes else "")
            for r in rules.required
        )
        sections.append(f"### Required Schema\n{body}")
    if rules.recommended:
        body = "\n".join(f"- **{r.type}**: {r.description}" for r in rules.recommended)
        sections.append(f"### Recommended Schema\n{body}")
    if rules.invalid:
        body = "\n".join(
            f"- **{r.type}**: {r.description}"
            + (f" - {r.validation_notes}" if r.validation_notes else "")
            for r in rules.invalid
        )
        sections.append(f"### INVALID Schema (Flag as Error)\n{body}")
    if rules.page_type_rules:
        body = "\n".join(
            f"- **{r.page_type}**: required {', '.join(r.required_schema) or 'none'}"
            + (f"; never {', '.join(r.invalid_schema)}" if r.invalid_schema else "")
            for r in rules.page_type_rules
        )
        sections.append(f"### Schema by Page Type\n{body}")
    return "\n\n".join(sections) if sections else "No schema rules defined."


def format_content_patterns(patterns: Sequence[ContentPattern]) -> str:
    if not patterns:
        return "No content patterns defined."
    return "\n\n".join(
        f"### {p.name}\n- **Good:** {p.good_pattern}\n- **Bad:** {p.bad_pattern}\n"
        f"- **Recommendation:** {p.recommendation}"
        for p in patterns
    )


def format_content_patterns_compact(patterns: Sequence[ContentPattern], limit: int = 3) -> str:
    if not patterns:
        return "No content patterns defined."
    return "\n".join(
        f'- **{p.name}**: Good = "{p.good_pattern}" | Bad = "{p.bad_pattern}"'
        for p in patterns[:limit]
    )


def format_conflict_rules(rules: Sequence[ConflictRule]) -> str:
    if not rules:
        return "No conflict resolution rules defined."
    return "\n".join(
        f'- **{r.id}**: When SEM says "{r.sem_signal}" and SEO says "{r.seo_signal}" '
        f"-> {r.resolution} (Result: hybrid)"
        for r in rules
    )


def format_synergy_rules(rules: Sequence[SynergyRule]) -> str:
    if not rules:
        return "No synergy rules defined."
    return "\n".join(
        f'- **{r.id}**: When SEM has "{r.sem_condition}" AND SEO has "{r.seo_condition}" '
        f"-> {r.combined_recommendation}"
        for r in rules
    )


def format_prioritization_rules(rules: Sequence[PrioritizationRule]) -> str:
    if not rules:
        return "No prioritization rules defined."
    return "\n".join(
        f"- {r.condition}: {r.adjustment} by {r.factor}x ({r.reason})" for r in rules
    )
