"""Page fetcher backed by httpx."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from interplay.config.settings import Settings

from .base import PageFetcherBase

logger = logging.getLogger(__name__)


class HttpPageFetcher(PageFetcherBase):
    """Fetches page HTML with a custom User-Agent. Non-2xx responses yield None."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self._settings = settings or Settings()
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={
                "User-Agent": self._settings.page_fetch_user_agent,
                "Accept": "text/html,application/xhtml+xml",
            },
        )

    async def fetch(self, url: str, timeout: float) -> Optional[str]:
        try:
            resp = await self._client.get(url, timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Page fetch failed for {url}: {e}")
            return None
        if not resp.is_success:
            logger.warning(f"Page fetch for {url} returned HTTP {resp.status_code}")
            return None
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()
