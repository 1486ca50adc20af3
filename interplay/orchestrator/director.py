"""Director: deterministic synthesis of specialist actions into a unified plan.

The recommendation list comes entirely from the skill's rules (conflicts,
synergies, prioritization, filtering). The model is only asked for the
executive summary narrative.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from interplay.models.agent_outputs import (
    DirectorOutput,
    ExecutiveSummary,
    SEMAction,
    SEMAgentOutput,
    SEOAction,
    SEOAgentOutput,
    UnifiedRecommendation,
)
from interplay.models.enums import EffortLevel, ImpactLevel, RecommendationType, SEMActionLevel
from interplay.models.report import ConstraintViolation
from interplay.prompts.director import build_director_prompt
from interplay.prompts.serialization import PromptContext
from interplay.providers.base import TextGeneratorBase
from interplay.skills.schema import DirectorSkill, PrioritizationRule

from .constraints import (
    build_exclusion_rules,
    first_violation,
    normalize_recommendation,
    validate_upstream_constraints,
)
from .errors import ModelCallError, ResponseMalformedError
from .responses import parse_agent_response

logger = logging.getLogger(__name__)

TITLE_MAX = 100
DESCRIPTION_MAX = 500
MAX_ACTION_ITEMS = 5

IMPACT_SCORES: dict[ImpactLevel, float] = {
    ImpactLevel.HIGH: 1.0,
    ImpactLevel.MEDIUM: 0.6,
    ImpactLevel.LOW: 0.3,
}
# Ease of implementation: low effort scores highest.
EASE_SCORES: dict[EffortLevel, float] = {
    EffortLevel.LOW: 1.0,
    EffortLevel.MEDIUM: 0.6,
    EffortLevel.HIGH: 0.3,
}
SEO_COST_FACTOR = 0.5

_IMPACT_RANK = {ImpactLevel.LOW: 1, ImpactLevel.MEDIUM: 2, ImpactLevel.HIGH: 3}
_EFFORT_RANK = {EffortLevel.LOW: 1, EffortLevel.MEDIUM: 2, EffortLevel.HIGH: 3}

_SEM_LEVEL_EFFORT = {
    SEMActionLevel.KEYWORD: EffortLevel.LOW,
    SEMActionLevel.AD_GROUP: EffortLevel.MEDIUM,
    SEMActionLevel.CAMPAIGN: EffortLevel.HIGH,
}

FALLBACK_SUMMARY = (
    "No actionable SEM or SEO recommendations were identified for this period. "
    "The available paid and organic data did not surface issues that met the "
    "configured thresholds for this business type."
)
FALLBACK_HIGHLIGHTS = ["No actionable recommendations were generated from the current data"]


class _SummaryResponse(BaseModel):
    """Lenient shape for the summary call; accepts an executiveSummary wrapper."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary: str = Field(min_length=20, max_length=1000)
    key_highlights: list[str] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def unwrap(cls, data):
        if isinstance(data, dict) and isinstance(data.get("executiveSummary"), dict):
            return data["executiveSummary"]
        return data


@dataclass
class _Candidate:
    rec: UnifiedRecommendation
    text: str
    origin: RecommendationType
    score: float = 0.0
    pinned: bool = False


@dataclass
class DirectorResult:
    output: DirectorOutput
    violations: list[ConstraintViolation]
    skill_version: str
    candidates_count: int = 0
    conflicts_resolved: int = 0
    synergies_found: int = 0
    excluded_count: int = 0
    backfilled: int = 0
    used_fallback_summary: bool = False
    prompt_tokens: int = 0
    applied_rules: list[str] = field(default_factory=list)


def _clip(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _matches_any(patterns: Sequence[str], text: str) -> bool:
    return any(re.search(p, text, re.I) for p in patterns)


def sem_candidate(action: SEMAction) -> _Candidate:
    description = f"{action.reasoning} Expected uplift: {action.expected_uplift}"
    items = [action.action]
    if action.keyword:
        items.append(f"Apply to keyword: {action.keyword}")
    rec = UnifiedRecommendation(
        title=_clip(action.action, TITLE_MAX),
        description=_clip(description, DESCRIPTION_MAX),
        type=RecommendationType.SEM,
        impact=action.impact,
        effort=_SEM_LEVEL_EFFORT[action.level],
        action_items=[_clip(i, DESCRIPTION_MAX) for i in items],
    )
    text = " ".join(
        filter(None, [action.action, action.reasoning, action.expected_uplift, action.keyword])
    )
    return _Candidate(rec=rec, text=text, origin=RecommendationType.SEM)


def seo_candidate(action: SEOAction) -> _Candidate:
    n = len(action.specific_actions)
    effort = EffortLevel.LOW if n <= 2 else EffortLevel.MEDIUM if n == 3 else EffortLevel.HIGH
    description = f"{action.condition}. {action.recommendation}"
    if action.url:
        description += f" ({action.url})"
    rec = UnifiedRecommendation(
        title=_clip(action.recommendation, TITLE_MAX),
        description=_clip(description, DESCRIPTION_MAX),
        type=RecommendationType.SEO,
        impact=action.impact,
        effort=effort,
        action_items=list(action.specific_actions[:MAX_ACTION_ITEMS]),
    )
    text = " ".join(
        filter(None, [action.recommendation, action.condition, *action.specific_actions, action.url])
    )
    return _Candidate(rec=rec, text=text, origin=RecommendationType.SEO)


def _merge(
    sem: _Candidate, seo: _Candidate, rule_id: str, title: str, description: str
) -> _Candidate:
    impact = max(sem.rec.impact, seo.rec.impact, key=_IMPACT_RANK.__getitem__)
    effort = max(sem.rec.effort, seo.rec.effort, key=_EFFORT_RANK.__getitem__)
    items: list[str] = []
    for item in [*sem.rec.action_items, *seo.rec.action_items]:
        if item not in items:
            items.append(item)
    rec = UnifiedRecommendation(
        title=_clip(title, TITLE_MAX),
        description=_clip(description, DESCRIPTION_MAX),
        type=RecommendationType.HYBRID,
        impact=impact,
        effort=effort,
        action_items=items[:MAX_ACTION_ITEMS],
        source_rule=rule_id,
    )
    return _Candidate(
        rec=rec, text=f"{title} {description} {sem.text} {seo.text}", origin=RecommendationType.HYBRID
    )


def _pair(
    candidates: list[_Candidate], sem_patterns: Sequence[str], seo_patterns: Sequence[str]
) -> Optional[tuple[_Candidate, _Candidate]]:
    sem = next(
        (c for c in candidates if c.origin == RecommendationType.SEM and _matches_any(sem_patterns, c.text)),
        None,
    )
    seo = next(
        (c for c in candidates if c.origin == RecommendationType.SEO and _matches_any(seo_patterns, c.text)),
        None,
    )
    if sem is None or seo is None:
        return None
    return sem, seo


def resolve_conflicts(candidates: list[_Candidate], skill: DirectorSkill) -> tuple[list[_Candidate], int]:
    """Replace each SEM/SEO pair a conflict rule matches with one hybrid item."""
    resolved = 0
    for rule in skill.synthesis.conflict_resolution:
        pair = _pair(candidates, rule.sem_patterns, rule.seo_patterns)
        if pair is None:
            continue
        sem, seo = pair
        merged = _merge(sem, seo, rule.id, rule.title, rule.resolution)
        candidates = [c for c in candidates if c is not sem and c is not seo]
        candidates.append(merged)
        resolved += 1
        logger.info(f"Director: conflict rule '{rule.id}' merged {sem.rec.title!r} with {seo.rec.title!r}")
    return candidates, resolved


def identify_synergies(candidates: list[_Candidate], skill: DirectorSkill) -> tuple[list[_Candidate], int]:
    """Combine SEM/SEO pairs a synergy rule matches into one hybrid item."""
    found = 0
    for rule in skill.synthesis.synergy_identification:
        pair = _pair(candidates, rule.sem_patterns, rule.seo_patterns)
        if pair is None:
            continue
        sem, seo = pair
        combined = _merge(sem, seo, rule.id, rule.title, rule.combined_recommendation)
        candidates = [c for c in candidates if c is not sem and c is not seo]
        candidates.append(combined)
        found += 1
        logger.info(f"Director: synergy '{rule.id}' combined {sem.rec.title!r} with {seo.rec.title!r}")
    return candidates, found


def base_score(rec: UnifiedRecommendation, skill: DirectorSkill) -> float:
    weights = skill.filtering.impact_weights
    impact = IMPACT_SCORES[rec.impact]
    ease = EASE_SCORES[rec.effort]
    cost = impact * SEO_COST_FACTOR if rec.type == RecommendationType.SEO else impact
    return weights.revenue * impact + weights.cost * cost + weights.effort * ease + weights.risk * ease


def rule_selects(rule: PrioritizationRule, candidate: _Candidate) -> bool:
    if rule.patterns and not _matches_any(rule.patterns, candidate.text):
        return False
    if rule.impact is not None and candidate.rec.impact != rule.impact:
        return False
    if rule.type is not None and candidate.rec.type != rule.type:
        return False
    return True


def score_candidates(
    candidates: list[_Candidate], skill: DirectorSkill
) -> tuple[list[_Candidate], list[str]]:
    """Score every candidate and apply prioritization adjustments.

    Returns the surviving candidates and the ids of rules that fired.
    """
    kept: list[_Candidate] = []
    applied: list[str] = []
    for candidate in candidates:
        score = base_score(candidate.rec, skill)
        dropped = False
        for rule in skill.synthesis.prioritization:
            if not rule_selects(rule, candidate):
                continue
            if rule.id not in applied:
                applied.append(rule.id)
            if rule.adjustment in ("boost", "reduce"):
                score *= rule.factor
            elif rule.adjustment == "require":
                candidate.pinned = True
            elif rule.adjustment == "exclude":
                dropped = True
        if dropped and not candidate.pinned:
            logger.info(f"Director: prioritization excluded {candidate.rec.title!r}")
            continue
        candidate.score = round(score, 4)
        kept.append(candidate)
    return kept, applied


def select_recommendations(
    candidates: list[_Candidate], skill: DirectorSkill
) -> tuple[list[_Candidate], list[ConstraintViolation], int]:
    """Apply must_exclude/must_include, order by score and cap with low-impact backfill.

    Returns (selected, violations, backfilled count).
    """
    filtering = skill.filtering
    exclusion_rules = build_exclusion_rules(filtering.must_exclude)
    inclusion_rules = build_exclusion_rules(filtering.must_include)

    violations: list[ConstraintViolation] = []
    remaining: list[_Candidate] = []
    for candidate in candidates:
        normalized = normalize_recommendation(candidate.rec)
        violation = first_violation(normalized, exclusion_rules)
        if violation:
            violations.append(violation)
            continue
        if first_violation(normalized, inclusion_rules):
            candidate.pinned = True
        remaining.append(candidate)

    remaining.sort(key=lambda c: c.score, reverse=True)

    cap = filtering.max_recommendations
    threshold = max(_IMPACT_RANK[filtering.min_impact_threshold], _IMPACT_RANK[ImpactLevel.MEDIUM])
    pinned = [c for c in remaining if c.pinned]
    primary = [c for c in remaining if not c.pinned and _IMPACT_RANK[c.rec.impact] >= threshold]
    reserve = [c for c in remaining if not c.pinned and _IMPACT_RANK[c.rec.impact] < threshold]

    selected = pinned + primary[: max(cap - len(pinned), 0)]

    backfilled = 0
    min_hm = filtering.min_high_medium
    if len(selected) < min_hm:
        target = max(min_hm, min(min_hm + 2, len(remaining)))
        for candidate in reserve:
            if len(selected) >= min(target, cap):
                break
            selected.append(candidate)
            backfilled += 1
    else:
        # Enough high/medium items: low-impact ones still fill spare slots
        selected += reserve[: max(cap - len(selected), 0)]

    selected.sort(key=lambda c: c.score, reverse=True)
    if len(selected) > cap:
        keep = [c for c in selected if c.pinned]
        others = [c for c in selected if not c.pinned][: max(cap - len(keep), 0)]
        chosen = {id(c) for c in keep + others}
        selected = [c for c in selected if id(c) in chosen]
    return selected, violations, backfilled


async def write_executive_summary(
    recommendations: Sequence[UnifiedRecommendation],
    sem_actions: Sequence[SEMAction],
    seo_actions: Sequence[SEOAction],
    skill: DirectorSkill,
    generator: TextGeneratorBase,
    context: PromptContext,
) -> tuple[ExecutiveSummary, int]:
    prompt, tokens = build_director_prompt(recommendations, sem_actions, seo_actions, skill, context)
    logger.info(f"Director: requesting executive summary (~{tokens} tokens)")
    try:
        response = await generator.generate(prompt)
    except Exception as e:
        logger.error(f"Director: text generation failed: {e}")
        raise ModelCallError(f"Director failed to call the text generation service: {e}") from e

    try:
        parsed = parse_agent_response(response, _SummaryResponse).output
    except ResponseMalformedError as e:
        logger.error(f"Director: failed to parse executive summary: {e} {e.details}")
        raise ResponseMalformedError(
            f"Director failed to generate a valid executive summary: {e}", details=e.details
        ) from e

    highlights = parsed.key_highlights[: skill.executive_summary.max_highlights]
    return ExecutiveSummary(summary=parsed.summary, key_highlights=highlights), tokens


async def run_director(
    sem: SEMAgentOutput,
    seo: SEOAgentOutput,
    skill: DirectorSkill,
    generator: TextGeneratorBase,
    context: Optional[PromptContext] = None,
) -> DirectorResult:
    context = context or PromptContext()
    logger.info(
        f"Director: synthesizing {len(sem.sem_actions)} SEM and {len(seo.seo_actions)} SEO actions "
        f"(skill v{skill.version})"
    )

    validation = validate_upstream_constraints(sem.sem_actions, seo.seo_actions, skill)
    candidates = [sem_candidate(a) for a in validation.sem_actions]
    candidates += [seo_candidate(a) for a in validation.seo_actions]
    candidates_count = len(candidates)

    candidates, conflicts = resolve_conflicts(candidates, skill)
    candidates, synergies = identify_synergies(candidates, skill)
    scored, applied = score_candidates(candidates, skill)
    selected, director_violations, backfilled = select_recommendations(scored, skill)

    recommendations = [c.rec.model_copy(update={"score": c.score}) for c in selected]
    violations = validation.violations + director_violations
    if director_violations:
        logger.warning(
            f"Director: {len(director_violations)} synthesized recommendations removed by must_exclude"
        )

    used_fallback = not sem.sem_actions and not seo.seo_actions
    prompt_tokens = 0
    if used_fallback:
        logger.warning("Director: both specialists returned no actions, using fallback summary")
        summary = ExecutiveSummary(summary=FALLBACK_SUMMARY, key_highlights=list(FALLBACK_HIGHLIGHTS))
    else:
        summary, prompt_tokens = await write_executive_summary(
            recommendations, validation.sem_actions, validation.seo_actions, skill, generator, context
        )

    logger.info(
        f"Director: {len(recommendations)} recommendations from {candidates_count} candidates "
        f"({conflicts} conflicts, {synergies} synergies, {backfilled} backfilled, "
        f"{len(violations)} violations)"
    )
    return DirectorResult(
        output=DirectorOutput(executive_summary=summary, unified_recommendations=recommendations),
        violations=violations,
        skill_version=skill.version,
        candidates_count=candidates_count,
        conflicts_resolved=conflicts,
        synergies_found=synergies,
        excluded_count=len(violations),
        backfilled=backfilled,
        used_fallback_summary=used_fallback,
        prompt_tokens=prompt_tokens,
        applied_rules=applied,
    )
