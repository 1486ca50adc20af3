"""Data unification: merge paid, organic and site rows into per-query records."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from interplay.models.dataset import (
    DatasetSummary,
    DateRange,
    InterplayDataset,
    OrganicMetrics,
    OrganicSearchRow,
    PaidMetrics,
    PaidSearchRow,
    QueryRecord,
    SiteAnalyticsRow,
    SiteMetrics,
)
from interplay.providers.base import DataSourceBase

from .errors import DataUnavailableError

logger = logging.getLogger(__name__)

ESTIMATED_CONVERSION_VALUE = 50.0


def normalize_query(text: str) -> str:
    return " ".join(text.lower().split())


def url_path(url: str) -> str:
    """Path component of a URL with host and query string dropped."""
    try:
        path = urlparse(url).path
    except ValueError:
        path = url.split("?", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def as_percent(rate: float) -> float:
    return rate * 100 if rate <= 1 else rate


@dataclass
class _PaidAccumulator:
    spend: float = 0.0
    clicks: int = 0
    impressions: int = 0
    conversions: float = 0.0
    conversion_value: float = 0.0

    def finish(self) -> PaidMetrics:
        return PaidMetrics(
            spend=self.spend,
            clicks=self.clicks,
            impressions=self.impressions,
            cpc=self.spend / self.clicks if self.clicks else 0.0,
            conversions=self.conversions,
            conversion_value=self.conversion_value,
            roas=self.conversion_value / self.spend if self.spend else 0.0,
        )


@dataclass
class _OrganicAccumulator:
    clicks: int = 0
    impressions: int = 0
    weighted_position: float = 0.0
    url: Optional[str] = None

    def finish(self) -> OrganicMetrics:
        return OrganicMetrics(
            position=self.weighted_position / self.impressions if self.impressions else 0.0,
            clicks=self.clicks,
            impressions=self.impressions,
            ctr=100.0 * self.clicks / self.impressions if self.impressions else 0.0,
            url=self.url,
        )


@dataclass
class _SiteAccumulator:
    sessions: int = 0
    revenue: float = 0.0
    conversions: float = 0.0
    weighted_engagement: float = 0.0
    weighted_bounce: float = 0.0
    weighted_duration: float = 0.0

    def add(self, row: SiteAnalyticsRow) -> None:
        self.sessions += row.sessions
        self.revenue += row.total_revenue
        self.conversions += row.conversions
        self.weighted_engagement += as_percent(row.engagement_rate) * row.sessions
        self.weighted_bounce += as_percent(row.bounce_rate) * row.sessions
        self.weighted_duration += row.average_session_duration * row.sessions

    def finish(self) -> SiteMetrics:
        s = self.sessions
        return SiteMetrics(
            sessions=s,
            revenue=self.revenue,
            conversions=self.conversions,
            engagement_rate=self.weighted_engagement / s if s else 0.0,
            bounce_rate=self.weighted_bounce / s if s else 0.0,
            avg_session_duration=self.weighted_duration / s if s else 0.0,
        )


@dataclass
class _QueryAccumulator:
    query: str
    paid: Optional[_PaidAccumulator] = None
    organic: Optional[_OrganicAccumulator] = None


def build_dataset(
    paid_rows: list[PaidSearchRow],
    organic_rows: list[OrganicSearchRow],
    site_rows: list[SiteAnalyticsRow],
    estimated_conversion_value: float = ESTIMATED_CONVERSION_VALUE,
) -> InterplayDataset:
    """Merge raw rows into one record per normalized query.

    Numerators and denominators are summed first; cpc, roas and ctr are derived
    once per query afterwards.
    """
    by_query: dict[str, _QueryAccumulator] = {}

    def _get(text: str) -> _QueryAccumulator:
        key = normalize_query(text)
        if key not in by_query:
            by_query[key] = _QueryAccumulator(query=text.strip())
        return by_query[key]

    for row in paid_rows:
        if not row.query_text or not row.query_text.strip():
            continue
        acc = _get(row.query_text)
        paid = acc.paid or _PaidAccumulator()
        paid.spend += row.cost_micros / 1_000_000
        paid.clicks += row.clicks
        paid.impressions += row.impressions
        paid.conversions += row.conversions
        if row.conversion_value is not None:
            paid.conversion_value += row.conversion_value
        else:
            paid.conversion_value += row.conversions * estimated_conversion_value
        acc.paid = paid

    for row in organic_rows:
        if not row.query_text or not row.query_text.strip():
            continue
        acc = _get(row.query_text)
        organic = acc.organic or _OrganicAccumulator()
        organic.clicks += row.clicks
        organic.impressions += row.impressions
        organic.weighted_position += row.position * row.impressions
        if organic.url is None and row.page:
            organic.url = row.page
        acc.organic = organic

    site_by_path: dict[str, _SiteAccumulator] = {}
    for row in site_rows:
        if not row.landing_page:
            continue
        site_by_path.setdefault(url_path(row.landing_page), _SiteAccumulator()).add(row)
    site_metrics = {path: acc.finish() for path, acc in site_by_path.items()}

    queries: list[QueryRecord] = []
    for key, acc in by_query.items():
        organic = acc.organic.finish() if acc.organic else None
        site = None
        if organic and organic.url:
            site = site_metrics.get(url_path(organic.url))
        queries.append(
            QueryRecord(
                query=acc.query,
                normalized_query=key,
                paid=acc.paid.finish() if acc.paid else None,
                organic=organic,
                site=site,
            )
        )

    summary = DatasetSummary(
        total_spend=sum(q.paid.spend for q in queries if q.paid),
        total_revenue=sum(q.paid.conversion_value for q in queries if q.paid),
        total_organic_clicks=sum(q.organic.clicks for q in queries if q.organic),
    )
    return InterplayDataset(queries=queries, summary=summary)


async def unify_client_data(
    source: DataSourceBase, client_id: str, date_range: DateRange
) -> InterplayDataset:
    """Fetch the three row sets concurrently and merge them.

    Any fetch failure aborts the whole build; no partial dataset is returned.
    """
    logger.info(f"Unifying data for client {client_id} ({date_range.start}..{date_range.end})")
    try:
        paid_rows, organic_rows, site_rows = await asyncio.gather(
            source.fetch_paid_search(client_id, date_range),
            source.fetch_organic_search(client_id, date_range),
            source.fetch_site_analytics(client_id, date_range),
        )
    except Exception as e:
        raise DataUnavailableError(f"Data source fetch failed for client {client_id}: {e}") from e

    dataset = build_dataset(paid_rows, organic_rows, site_rows)
    logger.info(
        f"Unified {len(paid_rows)} paid, {len(organic_rows)} organic, {len(site_rows)} site rows "
        f"into {len(dataset.queries)} queries"
    )
    return dataset
