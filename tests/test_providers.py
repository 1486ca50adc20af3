"""Tests for the data source, page fetcher and text generator providers."""

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from claude_agent_sdk import AssistantMessage, TextBlock

from interplay.config.settings import Settings
from interplay.models.dataset import DateRange
from interplay.models.enums import BusinessType
from interplay.providers.claude_text_generator import ClaudeTextGenerator
from interplay.providers.http_page_fetcher import HttpPageFetcher
from interplay.providers.json_file_source import JsonFileDataSource

RANGE = DateRange.last_days(30, today=date(2026, 3, 31))

EXPORT = {
    "client": {"name": "Acme Outdoor", "business_type": "ecommerce", "industry": "Outdoor retail"},
    "paid_search": [
        {"query_text": "running shoes", "date": "2026-03-10", "cost_micros": 5_000_000, "clicks": 3,
         "impressions": 90, "campaign": "ignored field"},
        {"query_text": "running shoes", "date": "2025-12-01", "cost_micros": 9_000_000},
    ],
    "organic_search": [{"query_text": "trail shoes", "clicks": 4, "impressions": 50, "position": 3.0}],
    "site_analytics": [{"landing_page": "/product/trail-shoes", "date": "2026-03-15T00:00:00", "sessions": 40}],
    "auction_insights": [{"keyword": None, "impression_share": 0.4}],
}


class _MessageStream:
    def __init__(self, messages):
        self._messages = list(messages)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)


class TestJsonFileDataSource:
    @pytest.fixture
    def source(self, tmp_path):
        (tmp_path / "acme.json").write_text(json.dumps(EXPORT))
        return JsonFileDataSource(data_dir=tmp_path)

    @pytest.mark.asyncio
    async def test_profile(self, source):
        profile = await source.fetch_client_profile("acme")
        assert profile.name == "Acme Outdoor"
        assert profile.business_type == BusinessType.ECOMMERCE

    @pytest.mark.asyncio
    async def test_missing_client(self, source):
        assert await source.fetch_client_profile("ghost") is None
        with pytest.raises(FileNotFoundError):
            await source.fetch_paid_search("ghost", RANGE)

    @pytest.mark.asyncio
    async def test_rows_filtered_by_date_and_unknown_fields_dropped(self, source):
        paid = await source.fetch_paid_search("acme", RANGE)
        assert [r.cost_micros for r in paid] == [5_000_000]
        assert len(await source.fetch_organic_search("acme", RANGE)) == 1
        assert len(await source.fetch_site_analytics("acme", RANGE)) == 1
        [auction] = await source.fetch_auction_insights("acme", RANGE)
        assert auction.keyword is None

    @pytest.mark.asyncio
    async def test_health_check(self, source, tmp_path):
        assert await source.health_check() is True
        assert await JsonFileDataSource(data_dir=tmp_path / "nope").health_check() is False


class TestHttpPageFetcher:
    def _fetcher(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpPageFetcher(settings=Settings(), client=client)

    @pytest.mark.asyncio
    async def test_returns_html_on_success(self, product_html):
        fetcher = self._fetcher(lambda request: httpx.Response(200, text=product_html))
        assert await fetcher.fetch("https://acme.test/product/trail-shoes", 5.0) == product_html
        await fetcher.aclose()

    @pytest.mark.asyncio
    async def test_non_success_status_is_none(self):
        fetcher = self._fetcher(lambda request: httpx.Response(404, text="missing"))
        assert await fetcher.fetch("https://acme.test/gone", 5.0) is None

    @pytest.mark.asyncio
    async def test_transport_error_is_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await self._fetcher(handler).fetch("https://acme.test/", 5.0) is None


class TestClaudeTextGenerator:
    @pytest.mark.asyncio
    async def test_joins_text_blocks(self):
        messages = [
            AssistantMessage(content=[TextBlock(text='{"summary": '), TextBlock(text='"ok"}')], model="test"),
        ]
        with patch("interplay.providers.claude_text_generator.ClaudeSDKClient") as MockClient:
            mock_client = AsyncMock()
            MockClient.return_value.__aenter__ = AsyncMock(return_value=mock_client)
            MockClient.return_value.__aexit__ = AsyncMock(return_value=False)
            mock_client.query = AsyncMock()
            mock_client.receive_response = MagicMock(return_value=_MessageStream(messages))

            text = await ClaudeTextGenerator(settings=Settings()).generate("Summarize this")

        assert text == '{"summary": "ok"}'
        mock_client.query.assert_awaited_once_with("Summarize this")
        options = MockClient.call_args.args[0]
        assert options.max_turns == 1
        assert options.allowed_tools == []
