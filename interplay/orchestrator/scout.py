"""Scout: rule-based triage of the unified dataset. No model calls."""

from __future__ import annotations

import logging
from typing import Any, Optional

from interplay.models.dataset import InterplayDataset, QueryRecord
from interplay.models.enums import TIER_RANK, PriorityTier
from interplay.models.findings import BattlegroundKeyword, CriticalPage, ScoutFindings
from interplay.skills import SkillBundle, evaluate_condition
from interplay.skills.schema import PriorityRule, ScoutThresholds

from .page_parser import classify_page

logger = logging.getLogger(__name__)


def _rule(rule_id: str, condition: str, priority: PriorityTier, reason: str) -> PriorityRule:
    return PriorityRule(
        id=rule_id,
        name=rule_id.replace("-", " ").title(),
        condition=condition,
        priority=priority,
        reason=reason,
    )


def default_keyword_rules(thresholds: ScoutThresholds) -> list[PriorityRule]:
    """Rules applied when a skill declares no keyword rules."""
    half_spend = thresholds.high_spend * 0.5
    pressure_spend = thresholds.high_spend * 0.75
    return [
        _rule(
            "high-spend-low-roas",
            "spend > high_spend AND roas < low_roas",
            PriorityTier.HIGH,
            "high_spend_low_roas",
        ),
        _rule(
            "cannibalization-risk",
            f"organic_position <= cannibalization_position AND spend > {half_spend}",
            PriorityTier.HIGH,
            "cannibalization_risk",
        ),
        _rule(
            "growth-potential",
            "conversions > 5 AND spend > 0 AND roas >= low_roas",
            PriorityTier.MEDIUM,
            "growth_potential",
        ),
        _rule(
            "competitive-pressure",
            f"spend > {pressure_spend}",
            PriorityTier.LOW,
            "competitive_pressure",
        ),
    ]


def default_page_rules() -> list[PriorityRule]:
    """Rules applied when a skill declares no page rules."""
    return [
        _rule(
            "high-spend-low-organic",
            "paid_spend > high_spend AND (organic_position > 10 OR not_ranking)",
            PriorityTier.HIGH,
            "high_spend_low_organic",
        ),
        _rule(
            "high-traffic-high-bounce",
            "impressions > 1000 AND bounce_rate > high_bounce_rate AND bounce_rate > 80 AND paid_spend > 50",
            PriorityTier.HIGH,
            "high_traffic_high_bounce",
        ),
        _rule(
            "high-traffic-high-bounce",
            "impressions > 1000 AND bounce_rate > high_bounce_rate",
            PriorityTier.MEDIUM,
            "high_traffic_high_bounce",
        ),
        _rule(
            "high-impressions-low-ctr",
            "impressions > 5000 AND ctr < low_ctr AND ctr < 1",
            PriorityTier.HIGH,
            "high_impressions_low_ctr",
        ),
        _rule(
            "high-impressions-low-ctr",
            "impressions > 1000 AND ctr < low_ctr",
            PriorityTier.MEDIUM,
            "high_impressions_low_ctr",
        ),
    ]


def _keyword_variables(q: QueryRecord, thresholds: dict[str, float]) -> dict[str, Any]:
    paid = q.paid
    variables: dict[str, Any] = dict(thresholds)
    variables.update(
        spend=paid.spend,
        clicks=paid.clicks,
        impressions=paid.impressions,
        conversions=paid.conversions,
        conversion_value=paid.conversion_value,
        revenue=paid.conversion_value,
        roas=paid.roas,
        cpc=paid.cpc,
        cpl=paid.spend / paid.conversions if paid.conversions else None,
        conversion_rate=100.0 * paid.conversions / paid.clicks if paid.clicks else 0.0,
        organic_position=(q.organic.position or None) if q.organic else None,
        organic_clicks=q.organic.clicks if q.organic else None,
        organic_impressions=q.organic.impressions if q.organic else None,
        organic_ctr=q.organic.ctr if q.organic else None,
        sessions=q.site.sessions if q.site else None,
        bounce_rate=q.site.bounce_rate if q.site else None,
    )
    return variables


def _page_variables(
    q: QueryRecord, thresholds: dict[str, float], page_type: str, page_types: set[str]
) -> dict[str, Any]:
    organic = q.organic
    site = q.site
    variables: dict[str, Any] = dict(thresholds)
    variables.update(
        paid_spend=q.paid.spend if q.paid else 0.0,
        spend=q.paid.spend if q.paid else 0.0,
        impressions=organic.impressions,
        clicks=organic.clicks,
        ctr=organic.ctr,
        organic_position=organic.position or None,
        not_ranking=not organic.position,
        conversions=site.conversions if site else None,
        revenue=site.revenue if site else None,
        bounce_rate=site.bounce_rate if site else None,
        sessions=site.sessions if site else None,
        site_conversion_rate=(
            100.0 * site.conversions / site.sessions if site and site.sessions else None
        ),
        avg_session_duration=site.avg_session_duration if site else None,
    )
    for known in page_types | {page_type}:
        variables[f"is_{known.replace('-', '_')}_page"] = known == page_type
    return variables


def _first_match(rules: list[PriorityRule], variables: dict[str, Any]) -> Optional[PriorityRule]:
    for rule in rules:
        if rule.enabled and evaluate_condition(rule.condition, variables):
            return rule
    return None


def _sort_key(tier: PriorityTier, values: dict[str, Any], primary: list[str]) -> tuple:
    metrics = tuple(-(values.get(m) or 0) for m in primary)
    return (-TIER_RANK[tier], *metrics, -(values.get("spend") or 0))


def run_scout(dataset: InterplayDataset, skill: SkillBundle) -> ScoutFindings:
    """Select battleground keywords and critical pages from the dataset.

    Pure and deterministic: the same dataset and skill always give the same
    findings in the same order.
    """
    scout = skill.scout
    th = scout.thresholds
    thresholds = th.model_dump()
    primary = list(scout.metrics.primary)
    keyword_rules = list(scout.priority_rules.keywords) or default_keyword_rules(th)
    page_rules = list(scout.priority_rules.pages) or default_page_rules()
    classification = skill.researcher.page_enrichment.page_classification
    page_types = {p.page_type for p in classification.patterns} | {classification.default_type}

    logger.info(
        f"Scout: triaging {len(dataset.queries)} queries with skill "
        f"{skill.business_type.value} v{scout.version}"
    )

    keywords: list[tuple[tuple, BattlegroundKeyword]] = []
    for q in dataset.queries:
        if q.paid is None or q.paid.impressions < th.min_impressions:
            continue
        variables = _keyword_variables(q, thresholds)
        rule = _first_match(keyword_rules, variables)
        if rule is None:
            continue
        keyword = BattlegroundKeyword(
            query=q.query,
            priority=rule.priority,
            reason=rule.reason,
            rule_id=rule.id,
            spend=q.paid.spend,
            roas=q.paid.roas,
            conversions=q.paid.conversions,
            clicks=q.paid.clicks,
            impressions=q.paid.impressions,
            conversion_value=q.paid.conversion_value,
            organic_position=(q.organic.position or None) if q.organic else None,
        )
        keywords.append((_sort_key(rule.priority, variables, primary), keyword))

    pages: dict[str, tuple[tuple, CriticalPage]] = {}
    for q in dataset.queries:
        if q.organic is None or not q.organic.url:
            continue
        url = q.organic.url
        page_type = classify_page(url, classification)
        variables = _page_variables(q, thresholds, page_type, page_types)
        rule = _first_match(page_rules, variables)
        if rule is None:
            continue
        existing = pages.get(url)
        if existing and TIER_RANK[existing[1].priority] >= TIER_RANK[rule.priority]:
            continue
        page = CriticalPage(
            url=url,
            priority=rule.priority,
            reason=rule.reason,
            rule_id=rule.id,
            paid_spend=variables["paid_spend"],
            impressions=q.organic.impressions,
            organic_position=q.organic.position or None,
            bounce_rate=q.site.bounce_rate if q.site else None,
            ctr=q.organic.ctr,
            sessions=q.site.sessions if q.site else 0,
        )
        pages[url] = (_sort_key(rule.priority, variables, primary), page)

    keywords.sort(key=lambda item: item[0])
    ranked_pages = sorted(pages.values(), key=lambda item: item[0])

    findings = ScoutFindings(
        battleground_keywords=[k for _, k in keywords[: scout.limits.max_keywords]],
        critical_pages=[p for _, p in ranked_pages[: scout.limits.max_pages]],
        total_keywords_analyzed=sum(1 for q in dataset.queries if q.paid is not None),
        total_pages_analyzed=len(dataset.organic_urls()),
        thresholds_applied=thresholds,
        skill_version=scout.version,
    )
    logger.info(
        f"Scout: selected {len(findings.battleground_keywords)} keywords "
        f"(of {len(keywords)} matched) and {len(findings.critical_pages)} pages "
        f"(of {len(pages)} matched), {findings.high_priority_count} high priority"
    )
    return findings
