"""Scout selections and their Researcher enrichments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import CompetitiveDataLevel, PriorityTier


@dataclass
class BattlegroundKeyword:
    query: str
    priority: PriorityTier
    reason: str
    rule_id: str
    spend: float
    roas: float
    conversions: float
    clicks: int = 0
    impressions: int = 0
    conversion_value: float = 0.0
    organic_position: Optional[float] = None
    impression_share: Optional[float] = None


@dataclass
class CriticalPage:
    url: str
    priority: PriorityTier
    reason: str
    rule_id: str
    paid_spend: float
    impressions: int
    organic_position: Optional[float] = None
    bounce_rate: Optional[float] = None
    ctr: Optional[float] = None
    sessions: int = 0


@dataclass
class ScoutFindings:
    battleground_keywords: list[BattlegroundKeyword] = field(default_factory=list)
    critical_pages: list[CriticalPage] = field(default_factory=list)
    total_keywords_analyzed: int = 0
    total_pages_analyzed: int = 0
    thresholds_applied: dict[str, float] = field(default_factory=dict)
    skill_version: Optional[str] = None

    @property
    def high_priority_count(self) -> int:
        urgent = (PriorityTier.CRITICAL, PriorityTier.HIGH)
        return sum(1 for k in self.battleground_keywords if k.priority in urgent) + sum(
            1 for p in self.critical_pages if p.priority in urgent
        )


@dataclass
class CompetitiveMetrics:
    data_level: CompetitiveDataLevel
    impression_share: Optional[float] = None
    lost_impression_share_rank: Optional[float] = None
    lost_impression_share_budget: Optional[float] = None
    outranking_share: Optional[float] = None
    overlap_rate: Optional[float] = None
    top_of_page_rate: Optional[float] = None
    position_above_rate: Optional[float] = None
    abs_top_of_page_rate: Optional[float] = None


@dataclass
class PageContent:
    word_count: int = 0
    title: Optional[str] = None
    h1: Optional[str] = None
    meta_description: Optional[str] = None
    canonical_url: Optional[str] = None
    content_preview: str = ""
    detected_schema: list[str] = field(default_factory=list)
    schema_errors: list[str] = field(default_factory=list)
    content_signals: dict[str, bool] = field(default_factory=dict)
    page_type: str = "unknown"


@dataclass
class EnrichedKeyword:
    keyword: BattlegroundKeyword
    priority: PriorityTier
    competitive_metrics: Optional[CompetitiveMetrics] = None
    priority_boost: float = 0.0
    boost_reasons: list[str] = field(default_factory=list)

    @property
    def query(self) -> str:
        return self.keyword.query

    @property
    def impression_share(self) -> Optional[float]:
        if self.competitive_metrics and self.competitive_metrics.impression_share is not None:
            return self.competitive_metrics.impression_share
        return self.keyword.impression_share


@dataclass
class EnrichedPage:
    page: CriticalPage
    content: Optional[PageContent] = None
    fetch_error: Optional[str] = None

    @property
    def url(self) -> str:
        return self.page.url


@dataclass
class ResearcherOutput:
    enriched_keywords: list[EnrichedKeyword] = field(default_factory=list)
    enriched_pages: list[EnrichedPage] = field(default_factory=list)
    pages_fetch_failed: int = 0
    skill_version: Optional[str] = None

    @property
    def data_quality(self) -> dict[str, Any]:
        return {
            "keywords_with_competitive_data": sum(
                1 for k in self.enriched_keywords if k.competitive_metrics is not None
            ),
            "pages_with_content": sum(1 for p in self.enriched_pages if p.content is not None),
            "pages_with_schema": sum(
                1 for p in self.enriched_pages if p.content and p.content.detected_schema
            ),
            "pages_fetch_failed": self.pages_fetch_failed,
        }
