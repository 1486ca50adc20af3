"""File-backed data source -- one JSON export per client under the data directory."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Optional, TypeVar

from interplay.config.settings import Settings
from interplay.models.dataset import (
    AuctionInsightRow,
    ClientProfile,
    DateRange,
    OrganicSearchRow,
    PaidSearchRow,
    SiteAnalyticsRow,
)
from interplay.models.enums import BusinessType

from .base import DataSourceBase

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


def _build_rows(row_type: type[RowT], raw_rows: list[dict[str, Any]]) -> list[RowT]:
    known = {f.name for f in fields(row_type)}
    return [row_type(**{k: v for k, v in raw.items() if k in known}) for raw in raw_rows]


def _in_range(row_date: str, date_range: DateRange) -> bool:
    if not row_date:
        return True
    return date_range.start <= row_date[:10] <= date_range.end


class JsonFileDataSource(DataSourceBase):
    """Reads ``<data_dir>/<client_id>.json`` exports.

    File layout::

        {
          "client": {"name": ..., "business_type": ..., "industry": ...},
          "paid_search": [...],
          "organic_search": [...],
          "site_analytics": [...],
          "auction_insights": [...]
        }
    """

    def __init__(self, data_dir: Optional[Path] = None, settings: Optional[Settings] = None):
        self._settings = settings or Settings()
        self._data_dir = Path(data_dir or self._settings.data_dir)

    def _path(self, client_id: str) -> Path:
        return self._data_dir / f"{client_id}.json"

    def _read(self, client_id: str) -> dict[str, Any]:
        path = self._path(client_id)
        if not path.exists():
            raise FileNotFoundError(f"No data export for client {client_id}: {path}")
        with open(path, "r") as f:
            return json.load(f)

    async def _load(self, client_id: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._read, client_id)

    async def health_check(self) -> bool:
        return self._data_dir.is_dir()

    async def fetch_client_profile(self, client_id: str) -> Optional[ClientProfile]:
        if not self._path(client_id).exists():
            return None
        raw = (await self._load(client_id)).get("client", {})
        return ClientProfile(
            client_id=client_id,
            name=raw.get("name", client_id),
            business_type=BusinessType(raw["business_type"]),
            industry=raw.get("industry"),
            target_market=raw.get("target_market"),
        )

    async def fetch_paid_search(self, client_id: str, date_range: DateRange) -> list[PaidSearchRow]:
        rows = _build_rows(PaidSearchRow, (await self._load(client_id)).get("paid_search", []))
        return [r for r in rows if _in_range(r.date, date_range)]

    async def fetch_organic_search(
        self, client_id: str, date_range: DateRange
    ) -> list[OrganicSearchRow]:
        rows = _build_rows(OrganicSearchRow, (await self._load(client_id)).get("organic_search", []))
        return [r for r in rows if _in_range(r.date, date_range)]

    async def fetch_site_analytics(
        self, client_id: str, date_range: DateRange
    ) -> list[SiteAnalyticsRow]:
        rows = _build_rows(SiteAnalyticsRow, (await self._load(client_id)).get("site_analytics", []))
        return [r for r in rows if _in_range(r.date, date_range)]

    async def fetch_auction_insights(
        self, client_id: str, date_range: DateRange
    ) -> list[AuctionInsightRow]:
        raw = (await self._load(client_id)).get("auction_insights", [])
        logger.info(f"Loaded {len(raw)} auction-insight rows for {client_id}")
        return _build_rows(AuctionInsightRow, raw)
