"""Tests for per-run metrics collection."""

from unittest.mock import AsyncMock

import pytest

from interplay.models.enums import BusinessType, SerializationMode
from interplay.models.report import ConstraintViolation
from interplay.orchestrator.metrics import MetricsBuilder, save_report_metrics
from interplay.orchestrator.output_analysis import OutputAnalysis
from interplay.prompts.serialization import TokenBudget
from interplay.storage.report_store import InMemoryReportStore, ReportStore


def _make_builder():
    return (
        MetricsBuilder()
        .set_report_context("rep-1", "acme", BusinessType.LEAD_GEN)
        .set_skill_info("1.0.0", using_fallback=False)
    )


def _violation(rule_id):
    return ConstraintViolation(source="sem", rule_id=rule_id, rule_description="d", matched_content="m")


class TestMetricsBuilder:
    def test_build_collects_everything(self):
        metrics = (
            _make_builder()
            .set_constraint_violations([_violation("metric:roas"), _violation("metric:roas"), _violation("schema:Product")])
            .set_content_analysis(OutputAnalysis(roas_mentions=1, invalid_metrics=["roas"]))
            .set_duration("scout_duration_ms", 12.345)
            .set_duration("total_duration_ms", 950.0)
            .add_token_budget(TokenBudget(mode=SerializationMode.FULL), prompt_tokens=1200)
            .add_token_budget(
                TokenBudget(mode=SerializationMode.COMPACT, keywords_dropped=4, truncation_applied=True),
                prompt_tokens=800,
            )
            .add_token_budget(None, prompt_tokens=300)
            .build()
        )

        assert metrics.constraint_violations == 3
        assert metrics.violations_by_rule == {"metric:roas": 2, "schema:Product": 1}
        assert metrics.roas_mentions == 1
        assert metrics.invalid_metrics_detected == ["roas"]
        assert metrics.scout_duration_ms == 12.3
        assert metrics.sem_duration_ms is None
        assert metrics.serialization_mode == SerializationMode.COMPACT
        assert metrics.truncation_applied is True
        assert metrics.keywords_dropped == 4
        assert metrics.prompt_tokens_estimated == 2300

    def test_no_budgets_leaves_mode_unset(self):
        metrics = _make_builder().build()
        assert metrics.serialization_mode is None
        assert metrics.truncation_applied is False

    def test_unknown_duration_rejected(self):
        with pytest.raises(ValueError, match="Unknown duration field"):
            MetricsBuilder().set_duration("lunch_ms", 5)

    @pytest.mark.parametrize(
        "builder,missing",
        [
            (MetricsBuilder(), "report_id"),
            (MetricsBuilder().set_report_context("rep-1", "acme", BusinessType.SAAS), "skill_version"),
        ],
    )
    def test_required_fields(self, builder, missing):
        with pytest.raises(ValueError, match=missing):
            builder.build()


class TestSaveReportMetrics:
    @pytest.mark.asyncio
    async def test_saves_to_store(self):
        store = InMemoryReportStore()
        metrics = _make_builder().build()
        assert await save_report_metrics(store, metrics) is True
        assert store.get_metrics("rep-1") == metrics

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self):
        store = AsyncMock(spec=ReportStore)
        store.save_metrics.side_effect = RuntimeError("disk full")
        assert await save_report_metrics(store, _make_builder().build()) is False
