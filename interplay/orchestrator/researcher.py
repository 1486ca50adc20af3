"""Researcher: competitive metrics, priority boosts and page content for Scout selections."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import fields
from typing import Any, Optional

from interplay.models.dataset import AuctionInsightRow, DateRange
from interplay.models.enums import TIER_RANK, CompetitiveDataLevel, PriorityTier
from interplay.models.findings import (
    BattlegroundKeyword,
    CompetitiveMetrics,
    CriticalPage,
    EnrichedKeyword,
    EnrichedPage,
    ResearcherOutput,
    ScoutFindings,
)
from interplay.providers.base import DataSourceBase, PageFetcherBase
from interplay.skills import SkillBundle, evaluate_condition
from interplay.skills.schema import PageEnrichment, PriorityBoost, ResearcherSkill

from .page_parser import parse_page
from .unifier import as_percent, normalize_query

logger = logging.getLogger(__name__)

_RATE_FIELDS = [
    f.name for f in fields(CompetitiveMetrics) if f.name != "data_level"
]


def _to_competitive(row: AuctionInsightRow, level: CompetitiveDataLevel) -> CompetitiveMetrics:
    values = {}
    for name in _RATE_FIELDS:
        value = getattr(row, name)
        values[name] = as_percent(value) if value is not None else None
    return CompetitiveMetrics(data_level=level, **values)


def match_competitive_metrics(
    keyword: str, rows: list[AuctionInsightRow]
) -> Optional[CompetitiveMetrics]:
    """Keyword-level row first, then the account-level row, else None."""
    target = normalize_query(keyword)
    account_row: Optional[AuctionInsightRow] = None
    for row in rows:
        if row.keyword is None:
            if account_row is None:
                account_row = row
        elif normalize_query(row.keyword) == target:
            return _to_competitive(row, CompetitiveDataLevel.KEYWORD)
    if account_row is not None:
        return _to_competitive(account_row, CompetitiveDataLevel.ACCOUNT)
    return None


def _boost_variables(
    keyword: BattlegroundKeyword, metrics: Optional[CompetitiveMetrics]
) -> dict[str, Any]:
    variables: dict[str, Any] = {
        "spend": keyword.spend,
        "roas": keyword.roas,
        "conversions": keyword.conversions,
        "clicks": keyword.clicks,
        "impressions": keyword.impressions,
        "conversion_value": keyword.conversion_value,
        "cpl": keyword.spend / keyword.conversions if keyword.conversions else None,
        "conversion_rate": (
            100.0 * keyword.conversions / keyword.clicks if keyword.clicks else 0.0
        ),
        "organic_position": keyword.organic_position,
    }
    if metrics is not None:
        for name in _RATE_FIELDS:
            variables[name] = getattr(metrics, name)
    return variables


def apply_priority_boosts(
    keyword: BattlegroundKeyword,
    metrics: Optional[CompetitiveMetrics],
    boosts: list[PriorityBoost],
) -> tuple[float, list[str]]:
    variables = _boost_variables(keyword, metrics)
    total = 0.0
    reasons: list[str] = []
    for boost in boosts:
        if evaluate_condition(boost.condition, variables):
            total += boost.boost
            reasons.append(boost.reason)
            logger.debug(f"Boost {boost.boost:+} for {keyword.query!r}: {boost.reason}")
    return total, reasons


def boosted_priority(priority: PriorityTier, boost: float) -> PriorityTier:
    """Positive boosts lift a tier to high; negative boosts drop high/critical to medium."""
    if boost > 0 and TIER_RANK[priority] < TIER_RANK[PriorityTier.HIGH]:
        return PriorityTier.HIGH
    if boost < 0 and TIER_RANK[priority] >= TIER_RANK[PriorityTier.HIGH]:
        return PriorityTier.MEDIUM
    return priority


def enrich_keywords(
    keywords: list[BattlegroundKeyword],
    rows: list[AuctionInsightRow],
    skill: ResearcherSkill,
) -> list[EnrichedKeyword]:
    enriched: list[EnrichedKeyword] = []
    boosts = list(skill.keyword_enrichment.priority_boosts)
    for kw in keywords:
        metrics = match_competitive_metrics(kw.query, rows)
        total, reasons = apply_priority_boosts(kw, metrics, boosts)
        enriched.append(
            EnrichedKeyword(
                keyword=kw,
                priority=boosted_priority(kw.priority, total),
                competitive_metrics=metrics,
                priority_boost=total,
                boost_reasons=reasons,
            )
        )
    return enriched


async def _fetch_page(
    page: CriticalPage,
    fetcher: PageFetcherBase,
    enrichment: PageEnrichment,
    semaphore: asyncio.Semaphore,
    timeout_s: float,
) -> EnrichedPage:
    async with semaphore:
        try:
            html = await asyncio.wait_for(fetcher.fetch(page.url, timeout_s), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"Page fetch timed out after {timeout_s}s: {page.url}")
            return EnrichedPage(page=page, fetch_error="timeout")
        except Exception as e:
            logger.warning(f"Page fetch failed for {page.url}: {e}")
            return EnrichedPage(page=page, fetch_error=str(e))

    if html is None:
        return EnrichedPage(page=page, fetch_error="no content")

    try:
        content = await asyncio.to_thread(parse_page, html, page.url, enrichment)
    except Exception as e:
        logger.warning(f"Page parse failed for {page.url}: {e}")
        return EnrichedPage(page=page, fetch_error=f"parse error: {e}")
    return EnrichedPage(page=page, content=content)


async def enrich_pages(
    pages: list[CriticalPage], fetcher: PageFetcherBase, skill: ResearcherSkill
) -> list[EnrichedPage]:
    """Fetch and parse pages concurrently, bounded by max_concurrent_fetches.

    Failures never raise: the page is returned with content=None.
    """
    if not pages:
        return []
    quality = skill.data_quality
    semaphore = asyncio.Semaphore(quality.max_concurrent_fetches)
    timeout_s = quality.fetch_timeout_ms / 1000
    return list(
        await asyncio.gather(
            *(
                _fetch_page(page, fetcher, skill.page_enrichment, semaphore, timeout_s)
                for page in pages
            )
        )
    )


async def run_researcher(
    findings: ScoutFindings,
    skill: SkillBundle,
    *,
    source: DataSourceBase,
    fetcher: PageFetcherBase,
    client_id: str,
    date_range: DateRange,
) -> ResearcherOutput:
    researcher = skill.researcher
    logger.info(
        f"Researcher: enriching {len(findings.battleground_keywords)} keywords and "
        f"{len(findings.critical_pages)} pages"
    )

    rows: list[AuctionInsightRow] = []
    if findings.battleground_keywords:
        try:
            rows = await source.fetch_auction_insights(client_id, date_range)
        except Exception as e:
            logger.warning(f"Auction insights unavailable for client {client_id}: {e}")

    keywords = enrich_keywords(findings.battleground_keywords, rows, researcher)
    pages = await enrich_pages(findings.critical_pages, fetcher, researcher)

    output = ResearcherOutput(
        enriched_keywords=keywords,
        enriched_pages=pages,
        pages_fetch_failed=sum(1 for p in pages if p.content is None),
        skill_version=researcher.version,
    )
    quality = output.data_quality
    if quality["pages_fetch_failed"]:
        logger.warning(
            f"Researcher: {quality['pages_fetch_failed']} of {len(pages)} page fetches failed"
        )
    if quality["keywords_with_competitive_data"] < researcher.data_quality.min_keywords_with_competitive_data:
        logger.warning(
            f"Researcher: only {quality['keywords_with_competitive_data']} keywords have "
            f"competitive data"
        )
    logger.info(f"Researcher: complete {quality}")
    return output
