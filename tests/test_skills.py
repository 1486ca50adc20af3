"""Tests for skill bundle loading, validation and condition expressions."""

import pytest
from pydantic import ValidationError

from interplay.models.enums import BusinessType
from interplay.orchestrator.errors import SkillConfigurationError
from interplay.skills.conditions import evaluate_condition, normalize_boost_condition
from interplay.skills.loader import (
    PLACEHOLDER_VERSION,
    declared_business_types,
    has_full_bundle,
    load_exclusions,
    load_skill,
)
from interplay.skills.schema import ImpactWeights, PrioritizationRule, PriorityRule


class TestLoadSkill:
    def test_full_bundles_load_at_release_version(self):
        for business_type in (BusinessType.ECOMMERCE, BusinessType.LEAD_GEN):
            bundle = load_skill(business_type)
            assert bundle.business_type == business_type
            assert bundle.version == "1.0.0"
            assert bundle.is_placeholder is False

    def test_accepts_string_value(self):
        assert load_skill("lead-gen").business_type == BusinessType.LEAD_GEN

    def test_undeclared_type_raises(self):
        with pytest.raises(SkillConfigurationError, match="Undeclared business type"):
            load_skill("crypto-exchange")

    @pytest.mark.parametrize("business_type", [BusinessType.SAAS, BusinessType.LOCAL])
    def test_declared_type_without_bundle_gets_placeholder(self, business_type):
        bundle = load_skill(business_type)
        assert bundle.is_placeholder is True
        assert bundle.version == PLACEHOLDER_VERSION
        assert bundle.business_type == business_type

    def test_placeholder_carries_type_exclusions(self, saas_skill):
        must_exclude = saas_skill.director.filtering.must_exclude
        assert "schema:Product" in must_exclude
        assert "metric:aov" in must_exclude

    def test_full_bundle_merges_exclusion_list(self, lead_gen_skill):
        must_exclude = lead_gen_skill.director.filtering.must_exclude
        for pattern in load_exclusions()[BusinessType.LEAD_GEN]:
            assert pattern in must_exclude
        assert len(must_exclude) == len(set(must_exclude))

    def test_bundles_are_cached_and_frozen(self, ecommerce_skill):
        assert load_skill(BusinessType.ECOMMERCE) is ecommerce_skill
        with pytest.raises(ValidationError):
            ecommerce_skill.version = "2.0.0"

    def test_registry_helpers(self):
        assert set(declared_business_types()) == set(BusinessType)
        assert has_full_bundle("ecommerce")
        assert not has_full_bundle(BusinessType.LOCAL)


class TestSchemaValidation:
    def test_impact_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError, match="sum to"):
            ImpactWeights(revenue=0.5, cost=0.5, effort=0.5, risk=0.0)

    def test_rule_condition_must_parse(self):
        with pytest.raises(ValidationError):
            PriorityRule(id="x", name="x", condition="spend >", priority="high", reason="r")

    def test_prioritization_rule_needs_a_selector(self):
        with pytest.raises(ValidationError, match="selects nothing"):
            PrioritizationRule(id="x", condition="anything", adjustment="boost", factor=1.2)

    def test_prioritization_patterns_must_compile(self):
        with pytest.raises(ValidationError, match="Invalid regex"):
            PrioritizationRule(id="x", condition="c", patterns=["(unclosed"], adjustment="boost")


class TestConditions:
    def test_comparison_against_threshold_identifier(self):
        variables = {"spend": 600, "high_spend": 500, "roas": 1.2, "low_roas": 2}
        assert evaluate_condition("spend > high_spend AND roas < low_roas", variables)

    def test_or_and_parentheses(self):
        variables = {"a": 1, "b": 5, "c": 0}
        assert evaluate_condition("(a > 2 OR b > 4) AND c == 0", variables)
        assert not evaluate_condition("a > 2 OR (b > 4 AND c > 0)", variables)

    def test_missing_or_none_identifier_is_false(self):
        assert not evaluate_condition("organic_position <= 5", {"organic_position": None})
        assert not evaluate_condition("organic_position <= 5", {})
        assert not evaluate_condition("organic_position > 5", {})

    def test_bare_identifier_is_truthy_test(self):
        assert evaluate_condition("is_product_page AND spend > 1", {"is_product_page": True, "spend": 2})
        assert not evaluate_condition("is_product_page", {"is_product_page": False})

    def test_malformed_expression_raises(self):
        with pytest.raises(SkillConfigurationError):
            evaluate_condition("spend >> 5", {"spend": 1})

    def test_shorthand_boost_condition_expands(self):
        assert normalize_boost_condition("< 50", "top_of_page_rate") == "top_of_page_rate < 50"
        assert normalize_boost_condition("roas > 3", "roas") == "roas > 3"
