"""Tests for prompt serialization: budget modes, truncation and prompt assembly."""

import pytest

from interplay.models.agent_outputs import UnifiedRecommendation
from interplay.models.enums import PriorityTier, SerializationMode
from interplay.models.findings import BattlegroundKeyword, CriticalPage, EnrichedKeyword, EnrichedPage, PageContent
from interplay.orchestrator.errors import PromptBudgetExceededError
from interplay.prompts.director import build_director_prompt
from interplay.prompts.sem import build_sem_prompt
from interplay.prompts.seo import build_seo_prompt
from interplay.prompts.serialization import (
    MAX_KEYWORDS_COMPACT,
    MAX_PROMPT_TOKENS,
    PromptContext,
    calculate_keyword_priority,
    calculate_page_priority,
    determine_serialization_mode,
    estimate_tokens,
    page_to_dict,
    prioritize_and_truncate,
    truncation_notice,
    validate_prompt_size,
)


def _make_keyword(i=0, reason="competitive_pressure", spend=150.0, rule_id="competitive-pressure"):
    kw = BattlegroundKeyword(
        query=f"keyword {i}",
        priority=PriorityTier.MEDIUM,
        reason=reason,
        rule_id=rule_id,
        spend=spend,
        roas=2.0,
        conversions=0,
    )
    return EnrichedKeyword(keyword=kw, priority=kw.priority)


def _make_page(content=None, reason="high_traffic_high_bounce", rule_id="high-bounce-landing"):
    page = CriticalPage(
        url="https://acme.test/product/boots",
        priority=PriorityTier.HIGH,
        reason=reason,
        rule_id=rule_id,
        paid_spend=120.0,
        impressions=3000,
    )
    return EnrichedPage(page=page, content=content)


class TestBudget:
    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("") == 0

    def test_small_input_is_full_mode(self):
        mode, budget = determine_serialization_mode([_make_keyword(i) for i in range(3)], [])
        assert mode == SerializationMode.FULL
        assert budget.truncation_applied is False
        assert budget.keywords_included == 3

    def test_too_many_keywords_switches_to_compact(self):
        mode, budget = determine_serialization_mode([_make_keyword(i) for i in range(25)], [_make_page()])
        assert mode == SerializationMode.COMPACT
        assert budget.to_dict() == {
            "mode": "compact",
            "keywords_included": MAX_KEYWORDS_COMPACT,
            "keywords_dropped": 15,
            "pages_included": 1,
            "pages_dropped": 0,
            "truncation_applied": True,
        }

    def test_priority_favors_reason_weight_and_spend(self):
        urgent = _make_keyword(reason="high_spend_low_roas", spend=900.0)
        minor = _make_keyword(reason="competitive_pressure", spend=150.0)
        assert calculate_keyword_priority(urgent) > calculate_keyword_priority(minor)

    def test_keyword_weight_follows_reason_not_rule_id(self):
        bundle_rule = _make_keyword(reason="high_spend_low_roas", rule_id="high-spend-low-conversions")
        default_rule = _make_keyword(reason="high_spend_low_roas", rule_id="high-spend-low-roas")
        # 100 for the reason, +10 for spend over 100
        assert calculate_keyword_priority(bundle_rule) == 110
        assert calculate_keyword_priority(default_rule) == 110
        assert calculate_keyword_priority(_make_keyword(reason="unlisted")) == 60

    def test_page_weight_follows_reason(self):
        page = _make_page(reason="high_spend_low_organic", rule_id="high-spend-product-page")
        # 100 for the reason, +15 for paid spend over 100, +10 for impressions over 1000
        assert calculate_page_priority(page) == 125
        assert calculate_page_priority(_make_page(reason="high_traffic_high_bounce")) == 105

    def test_prioritize_and_truncate_keeps_best(self):
        items = [3, 9, 1, 7]
        assert prioritize_and_truncate(items, 2, float) == ([9, 7], 2)
        assert prioritize_and_truncate(items, 10, float) == (items, 0)

    def test_truncation_notice(self):
        assert truncation_notice(0, "keywords") == ""
        assert "3 lower-priority pages omitted" in truncation_notice(3, "pages")

    def test_oversized_prompt_raises(self):
        with pytest.raises(PromptBudgetExceededError):
            validate_prompt_size("x" * (MAX_PROMPT_TOKENS * 4 + 4), "SEM")


class TestPageSerialization:
    def test_unfetched_page_carries_error(self):
        page = _make_page()
        page.fetch_error = "timeout"
        data = page_to_dict(page)
        assert data["content"] is None
        assert data["fetchError"] == "timeout"

    def test_compact_mode_lists_missing_signals(self):
        content = PageContent(
            title="Boots", content_signals={"add-to-cart": True, "price-display": False}
        )
        data = page_to_dict(_make_page(content), SerializationMode.COMPACT)
        assert data["content"]["missingSignals"] == ["price-display"]
        assert "contentPreview" not in data["content"]


class TestPromptAssembly:
    def test_sem_prompt_full_mode(self, ecommerce_skill):
        built = build_sem_prompt([_make_keyword()], ecommerce_skill.sem, PromptContext(client_name="Acme"))
        assert built.budget.mode == SerializationMode.FULL
        assert "## Data to Analyze" in built.prompt
        assert "Client: Acme" in built.prompt
        assert '"semActions"' in built.prompt
        assert built.tokens == estimate_tokens(built.prompt)

    def test_sem_prompt_compact_mode_includes_notice(self, ecommerce_skill):
        keywords = [_make_keyword(i) for i in range(25)]
        built = build_sem_prompt(keywords, ecommerce_skill.sem, PromptContext())
        assert built.budget.mode == SerializationMode.COMPACT
        assert "15 lower-priority keywords omitted" in built.prompt
        assert '"query": "keyword 0"' in built.prompt
        assert '"query": "keyword 24"' not in built.prompt

    def test_seo_prompt(self, lead_gen_skill):
        built = build_seo_prompt([_make_page()], lead_gen_skill.seo, PromptContext(industry="Plumbing"))
        assert '"seoActions"' in built.prompt
        assert "Industry: Plumbing" in built.prompt

    def test_director_prompt_embeds_final_recommendations(self, ecommerce_skill):
        rec = UnifiedRecommendation(
            title="Reduce bids on running shoes",
            description="Spend returns a ROAS of 1.5 against a 2.0 floor.",
            type="sem",
            impact="high",
            effort="low",
            action_items=["Reduce bids by 25%"],
        )
        prompt, tokens = build_director_prompt([rec], [], [], ecommerce_skill.director, PromptContext())
        assert "Do not add, remove or reorder them." in prompt
        assert '"title": "Reduce bids on running shoes"' in prompt
        assert '"keyHighlights"' in prompt
        assert tokens == estimate_tokens(prompt)
