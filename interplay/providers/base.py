from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from interplay.models.dataset import (
    AuctionInsightRow,
    ClientProfile,
    DateRange,
    OrganicSearchRow,
    PaidSearchRow,
    SiteAnalyticsRow,
)


class DataSourceBase(ABC):
    """Abstract base for per-client paid, organic and analytics exports."""

    @abstractmethod
    async def fetch_client_profile(self, client_id: str) -> Optional[ClientProfile]:
        ...

    @abstractmethod
    async def fetch_paid_search(self, client_id: str, date_range: DateRange) -> list[PaidSearchRow]:
        ...

    @abstractmethod
    async def fetch_organic_search(
        self, client_id: str, date_range: DateRange
    ) -> list[OrganicSearchRow]:
        ...

    @abstractmethod
    async def fetch_site_analytics(
        self, client_id: str, date_range: DateRange
    ) -> list[SiteAnalyticsRow]:
        ...

    @abstractmethod
    async def fetch_auction_insights(
        self, client_id: str, date_range: DateRange
    ) -> list[AuctionInsightRow]:
        """Keyword-level rows plus account-level rows (keyword=None)."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the source is reachable."""
        ...


class PageFetcherBase(ABC):
    """Fetches raw HTML for a page URL."""

    @abstractmethod
    async def fetch(self, url: str, timeout: float) -> Optional[str]:
        """Return the page HTML, or None when the page could not be retrieved."""
        ...


class TextGeneratorBase(ABC):
    """Generates raw text for a prompt. No structural guarantee on the output."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...
