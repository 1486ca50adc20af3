"""Tests for the Director rule engine and executive summary."""

import json
from unittest.mock import AsyncMock

import pytest

from conftest import SEM_RESPONSE, SEO_RESPONSE, route_by_prompt
from interplay.models.agent_outputs import SEMAction, SEMAgentOutput, SEOAction, SEOAgentOutput
from interplay.models.enums import EffortLevel, ImpactLevel, RecommendationType
from interplay.orchestrator.director import (
    FALLBACK_SUMMARY,
    base_score,
    resolve_conflicts,
    run_director,
    score_candidates,
    select_recommendations,
    sem_candidate,
    seo_candidate,
)
from interplay.orchestrator.errors import ModelCallError, ResponseMalformedError
from interplay.providers.base import TextGeneratorBase


def _make_sem(action, impact="medium", level="keyword", uplift="Save about $50 per week", keyword=None):
    return SEMAction(
        action=action,
        level=level,
        expected_uplift=uplift,
        reasoning="Observed over the last thirty days of spend.",
        impact=impact,
        keyword=keyword,
    )


def _make_seo(recommendation, impact="medium", specific_actions=None, condition="Page underperforms in search"):
    return SEOAction(
        condition=condition,
        recommendation=recommendation,
        specific_actions=specific_actions or ["Review the page template"],
        impact=impact,
    )


def _with_filtering(skill, **updates):
    return skill.model_copy(update={"filtering": skill.filtering.model_copy(update=updates)})


class TestCandidates:
    def test_sem_effort_follows_level(self):
        assert sem_candidate(_make_sem("Pause the keyword", level="keyword")).rec.effort == EffortLevel.LOW
        assert sem_candidate(_make_sem("Split the ad group", level="ad_group")).rec.effort == EffortLevel.MEDIUM
        assert sem_candidate(_make_sem("Restructure campaigns", level="campaign")).rec.effort == EffortLevel.HIGH

    def test_sem_candidate_fields(self):
        rec = sem_candidate(_make_sem("Pause the keyword", keyword="cheap shoes")).rec
        assert rec.type == RecommendationType.SEM
        assert rec.action_items == ["Pause the keyword", "Apply to keyword: cheap shoes"]
        assert rec.description.endswith("Expected uplift: Save about $50 per week")

    def test_seo_effort_follows_action_count(self):
        two = seo_candidate(_make_seo("Fix titles", specific_actions=["Step one", "Step two"]))
        four = seo_candidate(_make_seo("Fix titles", specific_actions=[f"Step {n}" for n in "abcd"]))
        assert two.rec.effort == EffortLevel.LOW
        assert four.rec.effort == EffortLevel.HIGH

    def test_long_titles_are_clipped(self):
        rec = sem_candidate(_make_sem("Reduce bids " * 20)).rec
        assert len(rec.title) == 100
        assert rec.title.endswith("...")


class TestSynthesis:
    def test_conflict_merges_pair_into_hybrid(self, ecommerce_skill):
        sem = sem_candidate(SEMAction.model_validate(SEM_RESPONSE["semActions"][1]))
        seo = seo_candidate(SEOAction.model_validate(SEO_RESPONSE["seoActions"][0]))
        merged, count = resolve_conflicts([sem, seo], ecommerce_skill.director)

        assert count == 1
        [hybrid] = merged
        assert hybrid.rec.type == RecommendationType.HYBRID
        assert hybrid.rec.source_rule == "paid-vs-organic-cannibalization"
        assert hybrid.rec.impact == ImpactLevel.MEDIUM
        assert hybrid.rec.effort == EffortLevel.HIGH
        assert len(hybrid.rec.action_items) == 4

    def test_base_score_discounts_seo_cost(self, ecommerce_skill):
        sem = sem_candidate(_make_sem("Pause the keyword", impact="high")).rec
        seo = seo_candidate(_make_seo("Fix titles", impact="high")).rec
        assert base_score(sem, ecommerce_skill.director) == pytest.approx(1.0)
        assert base_score(seo, ecommerce_skill.director) == pytest.approx(0.875)

    def test_prioritization_boost_and_exclude(self, ecommerce_skill):
        boosted = sem_candidate(_make_sem("Cut waste", impact="high", uplift="Save $300 per month"))
        cosmetic = seo_candidate(_make_seo("Refresh the colour scheme on product pages"))
        kept, applied = score_candidates([boosted, cosmetic], ecommerce_skill.director)

        assert kept == [boosted]
        assert boosted.score == pytest.approx(1.5)
        assert applied == ["revenue-impact", "cosmetic"]

    def test_required_item_survives_exclude(self, ecommerce_skill):
        candidate = seo_candidate(_make_seo("Change the checkout colour scheme to match the brand"))
        kept, _ = score_candidates([candidate], ecommerce_skill.director)
        assert kept == [candidate]
        assert candidate.pinned is True


class TestSelection:
    def test_backfills_low_impact_up_to_minimum(self, ecommerce_skill):
        candidates = [sem_candidate(_make_sem("Pause the keyword", impact="high"))]
        candidates += [seo_candidate(_make_seo(f"Tidy page {n} headings", impact="low")) for n in range(3)]
        scored, _ = score_candidates(candidates, ecommerce_skill.director)

        selected, violations, backfilled = select_recommendations(scored, ecommerce_skill.director)
        assert violations == []
        assert backfilled == 3
        assert len(selected) == 4
        assert selected[0].rec.impact == ImpactLevel.HIGH

    def test_low_impact_fills_spare_slots_once_minimum_is_met(self, ecommerce_skill):
        candidates = [sem_candidate(_make_sem(f"Pause keyword {n}", impact="high")) for n in range(5)]
        candidates += [seo_candidate(_make_seo(f"Tidy page {n} headings", impact="low")) for n in range(3)]
        scored, _ = score_candidates(candidates, ecommerce_skill.director)

        selected, _, backfilled = select_recommendations(scored, ecommerce_skill.director)
        assert len(selected) == 8
        assert backfilled == 0
        assert [c.rec.impact for c in selected] == [ImpactLevel.HIGH] * 5 + [ImpactLevel.LOW] * 3

    def test_spare_slot_fill_respects_cap(self, ecommerce_skill):
        skill = _with_filtering(ecommerce_skill.director, max_recommendations=6)
        candidates = [sem_candidate(_make_sem(f"Pause keyword {n}", impact="high")) for n in range(5)]
        candidates += [seo_candidate(_make_seo(f"Tidy page {n} headings", impact="low")) for n in range(3)]
        scored, _ = score_candidates(candidates, skill)

        selected, _, _ = select_recommendations(scored, skill)
        assert len(selected) == 6
        assert selected[-1].rec.impact == ImpactLevel.LOW

    def test_must_include_pins_past_cap(self, ecommerce_skill):
        skill = _with_filtering(ecommerce_skill.director, max_recommendations=1)
        strong = sem_candidate(_make_sem("Pause the keyword", impact="high"))
        schema = seo_candidate(_make_seo("Add Product schema markup to trail shoes", impact="low"))
        scored, _ = score_candidates([strong, schema], skill)

        selected, _, backfilled = select_recommendations(scored, skill)
        assert selected == [schema]
        assert backfilled == 0

    def test_must_exclude_applies_to_synthesized_text(self, lead_gen_skill):
        candidate = seo_candidate(
            _make_seo(
                "Add schema markup to every service page",
                condition="Product schema is missing on service pages",
            )
        )
        scored, _ = score_candidates([candidate], lead_gen_skill.director)
        selected, violations, _ = select_recommendations(scored, lead_gen_skill.director)
        assert selected == []
        assert [(v.source, v.rule_id) for v in violations] == [("director", "schema:Product")]


class TestRunDirector:
    @pytest.mark.asyncio
    async def test_three_query_scenario(self, ecommerce_skill, generator):
        result = await run_director(
            SEMAgentOutput.model_validate(SEM_RESPONSE),
            SEOAgentOutput.model_validate(SEO_RESPONSE),
            ecommerce_skill.director,
            generator,
        )

        recs = result.output.unified_recommendations
        assert [(r.type, r.score) for r in recs] == [
            (RecommendationType.SEM, 1.5),
            (RecommendationType.SEO, 0.875),
            (RecommendationType.HYBRID, 0.48),
        ]
        assert recs[2].title == "Test paid reduction on organically strong keywords"
        assert result.candidates_count == 4
        assert result.conflicts_resolved == 1
        assert result.synergies_found == 0
        assert result.backfilled == 0
        assert result.violations == []
        assert result.applied_rules == ["revenue-impact"]
        assert result.output.executive_summary.key_highlights[0] == "Cut wasted running shoes spend"
        generator.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recommendations_do_not_depend_on_summary_text(self, ecommerce_skill, generator):
        other = AsyncMock(spec=TextGeneratorBase)
        other.generate.side_effect = route_by_prompt(
            summary={"summary": "A completely different narrative about the period.", "keyHighlights": ["x"]}
        )
        args = (
            SEMAgentOutput.model_validate(SEM_RESPONSE),
            SEOAgentOutput.model_validate(SEO_RESPONSE),
            ecommerce_skill.director,
        )
        first = await run_director(*args, generator)
        second = await run_director(*args, other)
        assert first.output.unified_recommendations == second.output.unified_recommendations

    @pytest.mark.asyncio
    async def test_no_actions_uses_fallback_without_model_call(self, ecommerce_skill, generator):
        result = await run_director(SEMAgentOutput(), SEOAgentOutput(), ecommerce_skill.director, generator)
        assert result.used_fallback_summary is True
        assert result.output.executive_summary.summary == FALLBACK_SUMMARY
        assert result.output.unified_recommendations == []
        generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lead_gen_drops_upstream_violations(self, lead_gen_skill, generator):
        seo = SEOAgentOutput(seo_actions=[
            _make_seo("Add Product schema markup to service pages", specific_actions=["Include price fields"]),
            _make_seo("Add a click-to-call button above the fold", impact="low"),
        ])
        result = await run_director(SEMAgentOutput(), seo, lead_gen_skill.director, generator)

        assert [(v.source, v.rule_id) for v in result.violations] == [("seo", "schema:Product")]
        assert [r.title for r in result.output.unified_recommendations] == [
            "Add a click-to-call button above the fold"
        ]

    @pytest.mark.asyncio
    async def test_lead_gen_never_receives_product_schema_behind_repair_wording(self, lead_gen_skill, generator):
        seo = SEOAgentOutput(seo_actions=[
            _make_seo("Fix schema errors and add Product schema markup to service pages"),
        ])
        result = await run_director(SEMAgentOutput(), seo, lead_gen_skill.director, generator)

        assert result.output.unified_recommendations == []
        assert [(v.source, v.rule_id) for v in result.violations] == [("seo", "schema:Product")]

    @pytest.mark.asyncio
    async def test_highlights_are_capped_and_wrapper_accepted(self, ecommerce_skill):
        skill = ecommerce_skill.director.model_copy(
            update={
                "executive_summary": ecommerce_skill.director.executive_summary.model_copy(
                    update={"max_highlights": 2}
                )
            }
        )
        wrapped = {
            "executiveSummary": {
                "summary": "Paid and organic search overlap on several product terms.",
                "keyHighlights": ["one", "two", "three", "four"],
            }
        }
        generator = AsyncMock(spec=TextGeneratorBase)
        generator.generate.return_value = json.dumps(wrapped)

        result = await run_director(SEMAgentOutput.model_validate(SEM_RESPONSE), SEOAgentOutput(), skill, generator)
        assert result.output.executive_summary.key_highlights == ["one", "two"]

    @pytest.mark.asyncio
    async def test_summary_failures_raise(self, ecommerce_skill):
        sem = SEMAgentOutput.model_validate(SEM_RESPONSE)
        generator = AsyncMock(spec=TextGeneratorBase)

        generator.generate.side_effect = RuntimeError("overloaded")
        with pytest.raises(ModelCallError):
            await run_director(sem, SEOAgentOutput(), ecommerce_skill.director, generator)

        generator.generate.side_effect = None
        generator.generate.return_value = '{"summary": "too short"}'
        with pytest.raises(ResponseMalformedError, match="executive summary"):
            await run_director(sem, SEOAgentOutput(), ecommerce_skill.director, generator)
