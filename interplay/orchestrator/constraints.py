"""Business-type exclusion rules applied to specialist actions and final recommendations.

Patterns come from the Director skill's ``must_exclude`` list:

- ``metric:roas``: the action mentions the metric
- ``schema:Product``: the action recommends implementing that schema type
- ``type:lead-form``: the action text contains the phrase "lead form"
- anything else: case-insensitive substring of the action text
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

from interplay.models.agent_outputs import SEMAction, SEOAction, UnifiedRecommendation
from interplay.models.report import ConstraintViolation
from interplay.skills.schema import DirectorSkill

logger = logging.getLogger(__name__)

MATCHED_CONTENT_CHARS = 200

ACTION_TYPE_PATTERNS: dict[str, list[re.Pattern]] = {
    "bid-adjustment": [
        re.compile(r"\b(reduce|increase|adjust|lower|raise)\s+(bids?|bidding)", re.I),
        re.compile(r"\bbid\s+(strategy|adjustment|modifier)", re.I),
        re.compile(r"\btarget\s+(roas|cpa)", re.I),
        re.compile(r"\bsmart\s+bidding", re.I),
    ],
    "budget-change": [
        re.compile(r"\b(increase|decrease|reallocate|shift)\s+budget", re.I),
        re.compile(r"\bbudget\s+(allocation|reallocation)", re.I),
        re.compile(r"\bspend\s+(more|less)", re.I),
    ],
    "campaign-structure": [
        re.compile(r"\b(create|restructure|consolidate|split)\s+(campaign|ad\s*group)", re.I),
        re.compile(r"\bcampaign\s+structure", re.I),
        re.compile(r"\bshopping\s+campaign", re.I),
        re.compile(r"\bperformance\s+max", re.I),
        re.compile(r"\bpmax", re.I),
    ],
    "keyword-targeting": [
        re.compile(r"\b(add|remove|pause)\s+(keyword|negative)", re.I),
        re.compile(r"\bmatch\s+type", re.I),
        re.compile(r"\bkeyword\s+(targeting|expansion)", re.I),
        re.compile(r"\bnegative\s+keyword", re.I),
    ],
    "schema-implementation": [
        re.compile(r"\b(add|implement|create)\s+\w*\s*schema", re.I),
        re.compile(r"\bschema\s+(markup|implementation)", re.I),
        re.compile(r"\bstructured\s+data", re.I),
        re.compile(r"\bjson-?ld", re.I),
    ],
    "schema-removal": [
        re.compile(r"\b(remove|delete|fix|repair)\s+(\w+\s+){0,2}schema", re.I),
        re.compile(r"\bincorrect\s+schema", re.I),
        re.compile(r"\binvalid\s+schema", re.I),
    ],
    "content-change": [
        re.compile(r"\b(update|rewrite|improve|optimize)\s+(title|meta|h1|content|copy)", re.I),
        re.compile(r"\bcontent\s+(optimization|improvement)", re.I),
        re.compile(r"\btitle\s+tag", re.I),
        re.compile(r"\bmeta\s+description", re.I),
    ],
    "technical-fix": [
        re.compile(r"\b(fix|resolve|address)\s+(page\s*speed|mobile|ssl|redirect|404)", re.I),
        re.compile(r"\btechnical\s+(seo|issue|fix)", re.I),
        re.compile(r"\bcore\s+web\s+vitals", re.I),
        re.compile(r"\bpage\s+speed", re.I),
    ],
}

METRIC_PATTERNS: dict[str, re.Pattern] = {
    "roas": re.compile(r"\broas\b|return on ad spend", re.I),
    "revenue": re.compile(r"\brevenue\b|\bearnings\b|\bsales\b", re.I),
    "aov": re.compile(r"\baov\b|average order value", re.I),
    "cpl": re.compile(r"\bcpl\b|cost per lead", re.I),
    "cpc": re.compile(r"\bcpc\b|cost per click", re.I),
    "ctr": re.compile(r"\bctr\b|click.through rate", re.I),
    "cpa": re.compile(r"\bcpa\b|cost per acquisition", re.I),
    "ltv": re.compile(r"\bltv\b|lifetime value", re.I),
    "mrr": re.compile(r"\bmrr\b|monthly recurring revenue", re.I),
    "arr": re.compile(r"\barr\b|annual recurring revenue", re.I),
    "churn": re.compile(r"\bchurn\b|churn rate", re.I),
    "conversionvalue": re.compile(r"\bconversion\s*value\b", re.I),
}

SCHEMA_TYPES = [
    "Product",
    "Offer",
    "AggregateOffer",
    "Service",
    "ProfessionalService",
    "LocalBusiness",
    "Organization",
    "FAQPage",
    "Article",
    "BreadcrumbList",
    "HowTo",
    "Review",
    "AggregateRating",
    "Event",
    "SoftwareApplication",
    "WebApplication",
    "VideoObject",
    "ImageObject",
]
_SCHEMA_RES = {s: re.compile(rf"\b{s}\b", re.I) for s in SCHEMA_TYPES}

_ADD_VERB_RE = re.compile(r"\b(add|adding|implement|implementing|create|introduce)\b", re.I)

_QUOTED_RES = [re.compile(r'"([^"]+)"'), re.compile(r"'([^']+)'"), re.compile(r"\[([^\]]+)\]")]

OriginalAction = Union[SEMAction, SEOAction, UnifiedRecommendation]


def _any_match(patterns: Sequence[re.Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def infer_action_type(text: str, source: str) -> str:
    for action_type, patterns in ACTION_TYPE_PATTERNS.items():
        if _any_match(patterns, text):
            return action_type
    return "keyword-targeting" if source == "sem" else "content-change"


def extract_keywords(text: str) -> list[str]:
    """Quoted and bracketed terms, first occurrence order."""
    found: list[str] = []
    for pattern in _QUOTED_RES:
        for m in pattern.finditer(text):
            if m.group(1) not in found:
                found.append(m.group(1))
    return found


def extract_metrics(text: str) -> list[str]:
    return [metric for metric, pattern in METRIC_PATTERNS.items() if pattern.search(text)]


def extract_schema_types(text: str) -> list[str]:
    return [schema for schema, pattern in _SCHEMA_RES.items() if pattern.search(text)]


@dataclass
class NormalizedAction:
    source: str
    action_type: str
    text: str
    original: OriginalAction
    keywords: list[str] = field(default_factory=list)
    metrics: list[str] = field(default_factory=list)
    schemas: list[str] = field(default_factory=list)

    @property
    def implements_schema(self) -> bool:
        """Recommends adding schema markup.

        Removal or repair wording only counts against this when no add verb
        appears anywhere in the action.
        """
        if not _any_match(ACTION_TYPE_PATTERNS["schema-implementation"], self.text):
            return False
        if not _any_match(ACTION_TYPE_PATTERNS["schema-removal"], self.text):
            return True
        return bool(_ADD_VERB_RE.search(self.text))


def _normalize(source: str, raw_text: str, original: OriginalAction, with_schemas: bool) -> NormalizedAction:
    text = raw_text.lower()
    return NormalizedAction(
        source=source,
        action_type=infer_action_type(text, source),
        text=text,
        original=original,
        keywords=extract_keywords(text),
        metrics=extract_metrics(text),
        schemas=extract_schema_types(text) if with_schemas else [],
    )


def normalize_sem_action(action: SEMAction) -> NormalizedAction:
    return _normalize("sem", f"{action.action} {action.reasoning}", action, with_schemas=False)


def normalize_seo_action(action: SEOAction) -> NormalizedAction:
    text = f"{action.recommendation} {' '.join(action.specific_actions)}"
    return _normalize("seo", text, action, with_schemas=True)


def normalize_recommendation(rec: UnifiedRecommendation) -> NormalizedAction:
    text = f"{rec.title} {rec.description} {' '.join(rec.action_items)}"
    return _normalize("director", text, rec, with_schemas=True)


@dataclass
class ExclusionRule:
    id: str
    description: str
    match: Callable[[NormalizedAction], bool]


def build_exclusion_rules(must_exclude: Sequence[str]) -> list[ExclusionRule]:
    rules: list[ExclusionRule] = []
    for pattern in must_exclude:
        if pattern.startswith("metric:"):
            metric = pattern[len("metric:"):].lower()
            rules.append(
                ExclusionRule(
                    id=pattern,
                    description=f"Excludes actions mentioning {metric}",
                    match=lambda a, m=metric: m in a.metrics,
                )
            )
        elif pattern.startswith("schema:"):
            schema = pattern[len("schema:"):].lower()
            rules.append(
                ExclusionRule(
                    id=pattern,
                    description=f"Excludes actions recommending {pattern[len('schema:'):]} schema",
                    match=lambda a, s=schema: a.implements_schema
                    and any(x.lower() == s for x in a.schemas),
                )
            )
        elif pattern.startswith("type:"):
            phrase = pattern[len("type:"):].replace("-", " ").lower()
            rules.append(
                ExclusionRule(
                    id=pattern,
                    description=f'Excludes actions containing "{phrase}"',
                    match=lambda a, p=phrase: p in a.text,
                )
            )
        else:
            text = pattern.lower()
            rules.append(
                ExclusionRule(
                    id=pattern,
                    description=f'Excludes actions containing "{pattern}"',
                    match=lambda a, t=text: t in a.text,
                )
            )
    return rules


def first_violation(action: NormalizedAction, rules: Sequence[ExclusionRule]) -> Optional[ConstraintViolation]:
    for rule in rules:
        if rule.match(action):
            return ConstraintViolation(
                source=action.source,
                rule_id=rule.id,
                rule_description=rule.description,
                matched_content=action.text[:MATCHED_CONTENT_CHARS],
            )
    return None


@dataclass
class ConstraintValidationResult:
    violations: list[ConstraintViolation]
    sem_actions: list[SEMAction]
    seo_actions: list[SEOAction]
    original_count: int

    @property
    def filtered_count(self) -> int:
        return len(self.sem_actions) + len(self.seo_actions)


def validate_upstream_constraints(
    sem_actions: Sequence[SEMAction],
    seo_actions: Sequence[SEOAction],
    skill: DirectorSkill,
) -> ConstraintValidationResult:
    """Remove specialist actions that match any must_exclude rule.

    One violation is recorded per removed action (the first matching rule).
    """
    rules = build_exclusion_rules(skill.filtering.must_exclude)
    violations: list[ConstraintViolation] = []
    kept_sem: list[SEMAction] = []
    kept_seo: list[SEOAction] = []

    for action in sem_actions:
        violation = first_violation(normalize_sem_action(action), rules)
        if violation:
            violations.append(violation)
        else:
            kept_sem.append(action)

    for action in seo_actions:
        violation = first_violation(normalize_seo_action(action), rules)
        if violation:
            violations.append(violation)
        else:
            kept_seo.append(action)

    if violations:
        logger.warning(
            f"Upstream constraint violations: {len(violations)} actions removed "
            f"({', '.join(f'{v.source}:{v.rule_id}' for v in violations)}) skill v{skill.version}"
        )

    return ConstraintValidationResult(
        violations=violations,
        sem_actions=kept_sem,
        seo_actions=kept_seo,
        original_count=len(sem_actions) + len(seo_actions),
    )
