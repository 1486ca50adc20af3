"""Raw source rows and the unified per-query dataset built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .enums import BusinessType


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str
    days: int

    @classmethod
    def last_days(cls, days: int, today: Optional[date] = None) -> DateRange:
        """Range ending today and starting `days` days earlier (ISO dates)."""
        end = today or date.today()
        start = end - timedelta(days=days)
        return cls(start=start.isoformat(), end=end.isoformat(), days=days)


@dataclass
class ClientProfile:
    client_id: str
    name: str
    business_type: BusinessType
    industry: Optional[str] = None
    target_market: Optional[str] = None


# --- Raw rows as delivered by the data-source collaborator ---


@dataclass
class PaidSearchRow:
    query_text: str
    date: str = ""
    cost_micros: int = 0
    clicks: int = 0
    impressions: int = 0
    conversions: float = 0.0
    conversion_value: Optional[float] = None


@dataclass
class OrganicSearchRow:
    query_text: str
    date: str = ""
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0
    page: Optional[str] = None


@dataclass
class SiteAnalyticsRow:
    landing_page: str
    date: str = ""
    sessions: int = 0
    total_revenue: float = 0.0
    conversions: float = 0.0
    engagement_rate: float = 0.0
    bounce_rate: float = 0.0
    average_session_duration: float = 0.0


@dataclass
class AuctionInsightRow:
    """One auction-insight row; keyword is None for account-level aggregates."""

    keyword: Optional[str] = None
    date_range_start: str = ""
    date_range_end: str = ""
    impression_share: Optional[float] = None
    lost_impression_share_rank: Optional[float] = None
    lost_impression_share_budget: Optional[float] = None
    outranking_share: Optional[float] = None
    overlap_rate: Optional[float] = None
    top_of_page_rate: Optional[float] = None
    position_above_rate: Optional[float] = None
    abs_top_of_page_rate: Optional[float] = None


# --- Unified dataset ---


@dataclass
class PaidMetrics:
    spend: float = 0.0
    clicks: int = 0
    impressions: int = 0
    cpc: float = 0.0
    conversions: float = 0.0
    conversion_value: float = 0.0
    roas: float = 0.0


@dataclass
class OrganicMetrics:
    position: float = 0.0
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    url: Optional[str] = None


@dataclass
class SiteMetrics:
    sessions: int = 0
    revenue: float = 0.0
    conversions: float = 0.0
    engagement_rate: float = 0.0
    bounce_rate: float = 0.0
    avg_session_duration: float = 0.0


@dataclass
class QueryRecord:
    query: str
    normalized_query: str
    paid: Optional[PaidMetrics] = None
    organic: Optional[OrganicMetrics] = None
    site: Optional[SiteMetrics] = None


@dataclass(frozen=True)
class DatasetSummary:
    total_spend: float = 0.0
    total_revenue: float = 0.0
    total_organic_clicks: int = 0


@dataclass
class InterplayDataset:
    queries: list[QueryRecord] = field(default_factory=list)
    summary: DatasetSummary = field(default_factory=DatasetSummary)

    def paid_queries(self) -> list[QueryRecord]:
        return [q for q in self.queries if q.paid is not None]

    def organic_urls(self) -> set[str]:
        return {q.organic.url for q in self.queries if q.organic and q.organic.url}
