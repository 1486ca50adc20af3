"""Shared fixtures for the interplay test suite."""

import json
from unittest.mock import AsyncMock

import pytest

from interplay.models.dataset import ClientProfile, OrganicSearchRow, PaidSearchRow, SiteAnalyticsRow
from interplay.models.enums import BusinessType
from interplay.providers.base import DataSourceBase, PageFetcherBase, TextGeneratorBase
from interplay.skills.loader import load_skill


@pytest.fixture
def ecommerce_skill():
    return load_skill(BusinessType.ECOMMERCE)


@pytest.fixture
def lead_gen_skill():
    return load_skill(BusinessType.LEAD_GEN)


@pytest.fixture
def saas_skill():
    return load_skill(BusinessType.SAAS)


PRODUCT_HTML = """
<html>
  <head>
    <title>Trail Running Shoes | Acme Outdoor</title>
    <meta name="description" content="Lightweight trail running shoes with free returns.">
    <link rel="canonical" href="https://acme.test/product/trail-shoes">
    <script type="application/ld+json">{"@type": "Product", "name": "Trail Shoe"}</script>
  </head>
  <body>
    <nav>Home Shop Sale</nav>
    <h1>Trail Running Shoes</h1>
    <p>Grippy soles and breathable mesh for long runs on rough ground.</p>
    <button class="add-to-cart">Add to cart</button>
    <footer>Copyright Acme</footer>
  </body>
</html>
"""


@pytest.fixture
def product_html() -> str:
    return PRODUCT_HTML


def three_query_rows():
    """Paid, organic and site rows for the three-query ecommerce scenario.

    - "running shoes": $1,200 spend at ROAS 1.5 (high spend, low return)
    - "trail shoes": ranks #2 organically while spending $400 (cannibalization)
    - "hiking boots": organic only, landing on a high-bounce product page
    """
    paid = [
        PaidSearchRow(query_text="running shoes", cost_micros=700_000_000, clicks=300,
                      impressions=9000, conversions=6, conversion_value=1000.0),
        PaidSearchRow(query_text="Running Shoes ", cost_micros=500_000_000, clicks=200,
                      impressions=6000, conversions=4, conversion_value=800.0),
        PaidSearchRow(query_text="trail shoes", cost_micros=400_000_000, clicks=150,
                      impressions=4000, conversions=8, conversion_value=2400.0),
    ]
    organic = [
        OrganicSearchRow(query_text="trail shoes", clicks=400, impressions=5000, ctr=0.08,
                         position=2.0, page="https://acme.test/product/trail-shoes"),
        OrganicSearchRow(query_text="hiking boots", clicks=30, impressions=6000, ctr=0.005,
                         position=14.0, page="https://acme.test/product/hiking-boots?ref=gsc"),
    ]
    site = [
        SiteAnalyticsRow(landing_page="https://acme.test/product/hiking-boots", sessions=400,
                         total_revenue=900.0, conversions=3, engagement_rate=0.25,
                         bounce_rate=0.75, average_session_duration=40.0),
    ]
    return paid, organic, site


class FakeDataSource(DataSourceBase):
    """In-memory data source for pipeline and API tests."""

    def __init__(self, profile=None, paid=None, organic=None, site=None, auction=None, fail=None):
        self.profile = profile
        self.paid = paid or []
        self.organic = organic or []
        self.site = site or []
        self.auction = auction or []
        self.fail = fail

    async def fetch_client_profile(self, client_id):
        return self.profile

    async def fetch_paid_search(self, client_id, date_range):
        if self.fail == "paid":
            raise ConnectionError("paid search export unavailable")
        return list(self.paid)

    async def fetch_organic_search(self, client_id, date_range):
        return list(self.organic)

    async def fetch_site_analytics(self, client_id, date_range):
        return list(self.site)

    async def fetch_auction_insights(self, client_id, date_range):
        return list(self.auction)

    async def health_check(self):
        return True


@pytest.fixture
def ecommerce_source():
    paid, organic, site = three_query_rows()
    profile = ClientProfile(
        client_id="acme",
        name="Acme Outdoor",
        business_type=BusinessType.ECOMMERCE,
        industry="Outdoor retail",
    )
    return FakeDataSource(profile=profile, paid=paid, organic=organic, site=site)


@pytest.fixture
def page_fetcher(product_html):
    fetcher = AsyncMock(spec=PageFetcherBase)
    fetcher.fetch.return_value = product_html
    return fetcher


SEM_RESPONSE = {
    "semActions": [
        {
            "action": "Reduce bids on 'running shoes' by 25%",
            "level": "keyword",
            "expectedUplift": "Save about $300 per month",
            "reasoning": "Spend of $1,200 returns a ROAS of 1.5, well below the 2.0 floor.",
            "impact": "high",
            "keyword": "running shoes",
        },
        {
            "action": "Maintain spend on branded campaign terms for trail shoes",
            "level": "campaign",
            "expectedUplift": "Protect 8 conversions per month",
            "reasoning": "Trail shoes converts well in paid and competitors bid on it.",
            "impact": "medium",
            "keyword": "trail shoes",
        },
    ]
}

SEO_RESPONSE = {
    "seoActions": [
        {
            "condition": "Trail shoes page has strong organic ranking at position 2",
            "recommendation": "Protect the strong organic ranking for trail shoes",
            "specificActions": ["Keep the title tag focused on trail shoes", "Add internal links from category pages"],
            "impact": "medium",
            "url": "https://acme.test/product/trail-shoes",
        },
        {
            "condition": "Hiking boots page bounces 75% of visitors",
            "recommendation": "Rewrite the hiking boots page intro to match search intent",
            "specificActions": ["Lead with fit and waterproofing details", "Move reviews above the fold"],
            "impact": "high",
            "url": "https://acme.test/product/hiking-boots",
        },
    ]
}

SUMMARY_RESPONSE = {
    "summary": "Paid search is overspending on running shoes while trail shoes already ranks organically.",
    "keyHighlights": ["Cut wasted running shoes spend", "Test paid reduction on trail shoes"],
}


def route_by_prompt(sem=None, seo=None, summary=None):
    """Side effect for a mocked generator: answer each stage's prompt with canned JSON."""
    sem = SEM_RESPONSE if sem is None else sem
    seo = SEO_RESPONSE if seo is None else seo
    summary = SUMMARY_RESPONSE if summary is None else summary

    async def _generate(prompt: str) -> str:
        if "semActions" in prompt:
            return json.dumps(sem)
        if "seoActions" in prompt:
            return "```json\n" + json.dumps(seo) + "\n```"
        return "Here is the summary:\n" + json.dumps(summary)

    return _generate


@pytest.fixture
def generator():
    gen = AsyncMock(spec=TextGeneratorBase)
    gen.generate.side_effect = route_by_prompt()
    return gen
