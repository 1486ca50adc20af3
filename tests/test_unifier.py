"""Tests for data unification: per-query merge, ratio derivation and site matching."""

import pytest

from conftest import FakeDataSource, three_query_rows
from interplay.models.dataset import DateRange, OrganicSearchRow, PaidSearchRow, SiteAnalyticsRow
from interplay.orchestrator.errors import DataUnavailableError
from interplay.orchestrator.unifier import (
    ESTIMATED_CONVERSION_VALUE,
    as_percent,
    build_dataset,
    normalize_query,
    unify_client_data,
    url_path,
)


def _by_query(dataset):
    return {q.normalized_query: q for q in dataset.queries}


class TestHelpers:
    def test_normalize_query_lowercases_and_collapses_whitespace(self):
        assert normalize_query("  Running   SHOES ") == "running shoes"

    def test_url_path_drops_host_query_and_trailing_slash(self):
        assert url_path("https://acme.test/product/boots/?ref=x") == "/product/boots"

    def test_url_path_root(self):
        assert url_path("https://acme.test") == "/"
        assert url_path("https://acme.test/") == "/"

    def test_url_path_accepts_bare_path(self):
        assert url_path("/category/shoes?page=2") == "/category/shoes"

    def test_as_percent_converts_fractions_only(self):
        assert as_percent(0.42) == pytest.approx(42.0)
        assert as_percent(42.0) == 42.0


class TestBuildDataset:
    def test_paid_rows_merge_case_insensitively(self):
        paid, organic, site = three_query_rows()
        dataset = build_dataset(paid, organic, site)
        running = _by_query(dataset)["running shoes"]
        assert running.query == "running shoes"
        assert running.paid.spend == pytest.approx(1200.0)
        assert running.paid.clicks == 500
        assert running.paid.conversion_value == pytest.approx(1800.0)

    def test_ratios_derived_from_sums_not_averaged(self):
        paid = [
            PaidSearchRow(query_text="boots", cost_micros=100_000_000, clicks=10,
                          impressions=100, conversions=1, conversion_value=400.0),
            PaidSearchRow(query_text="boots", cost_micros=300_000_000, clicks=90,
                          impressions=900, conversions=1, conversion_value=200.0),
        ]
        record = build_dataset(paid, [], []).queries[0]
        # Averaging per-row ROAS would give (4.0 + 0.667) / 2
        assert record.paid.roas == pytest.approx(600.0 / 400.0)
        assert record.paid.cpc == pytest.approx(400.0 / 100)

    def test_missing_conversion_value_is_estimated(self):
        paid = [PaidSearchRow(query_text="boots", cost_micros=10_000_000, clicks=5,
                              impressions=50, conversions=3, conversion_value=None)]
        record = build_dataset(paid, [], []).queries[0]
        assert record.paid.conversion_value == pytest.approx(3 * ESTIMATED_CONVERSION_VALUE)

    def test_zero_spend_gives_zero_roas(self):
        paid = [PaidSearchRow(query_text="boots", cost_micros=0, clicks=0, impressions=10)]
        record = build_dataset(paid, [], []).queries[0]
        assert record.paid.roas == 0.0
        assert record.paid.cpc == 0.0

    def test_organic_position_is_impression_weighted_and_ctr_recomputed(self):
        organic = [
            OrganicSearchRow(query_text="boots", clicks=10, impressions=100, position=2.0, ctr=0.5),
            OrganicSearchRow(query_text="boots", clicks=10, impressions=300, position=6.0, ctr=0.01,
                             page="https://acme.test/boots"),
        ]
        record = build_dataset([], organic, []).queries[0]
        assert record.organic.position == pytest.approx((2 * 100 + 6 * 300) / 400)
        assert record.organic.ctr == pytest.approx(5.0)
        assert record.organic.url == "https://acme.test/boots"

    def test_site_metrics_attach_by_path_with_percent_rates(self):
        paid, organic, site = three_query_rows()
        hiking = _by_query(build_dataset(paid, organic, site))["hiking boots"]
        assert hiking.paid is None
        assert hiking.site.sessions == 400
        assert hiking.site.bounce_rate == pytest.approx(75.0)
        assert hiking.site.engagement_rate == pytest.approx(25.0)

    def test_site_rates_are_session_weighted(self):
        site = [
            SiteAnalyticsRow(landing_page="https://acme.test/a", sessions=100, bounce_rate=0.5),
            SiteAnalyticsRow(landing_page="https://acme.test/a/", sessions=300, bounce_rate=70.0),
        ]
        organic = [OrganicSearchRow(query_text="a", clicks=1, impressions=10, position=3.0,
                                    page="https://www.acme.test/a?utm=1")]
        record = build_dataset([], organic, site).queries[0]
        assert record.site.sessions == 400
        assert record.site.bounce_rate == pytest.approx((50 * 100 + 70 * 300) / 400)

    def test_blank_queries_are_skipped(self):
        paid = [PaidSearchRow(query_text="   ", cost_micros=1_000_000, clicks=1, impressions=1)]
        assert build_dataset(paid, [], []).queries == []

    def test_summary_totals(self):
        dataset = build_dataset(*three_query_rows())
        assert dataset.summary.total_spend == pytest.approx(1600.0)
        assert dataset.summary.total_revenue == pytest.approx(4200.0)
        assert dataset.summary.total_organic_clicks == 430


class TestUnifyClientData:
    @pytest.mark.asyncio
    async def test_fetches_and_merges(self, ecommerce_source):
        dataset = await unify_client_data(ecommerce_source, "acme", DateRange.last_days(30))
        assert {q.normalized_query for q in dataset.queries} == {
            "running shoes", "trail shoes", "hiking boots",
        }

    @pytest.mark.asyncio
    async def test_source_failure_raises_data_unavailable(self):
        source = FakeDataSource(fail="paid")
        with pytest.raises(DataUnavailableError, match="paid search export unavailable"):
            await unify_client_data(source, "acme", DateRange.last_days(30))
