"""Per-run metrics collected during report generation."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Sequence

from interplay.models.enums import BusinessType, SerializationMode
from interplay.models.report import ConstraintViolation, ReportMetrics
from interplay.prompts.serialization import TokenBudget
from interplay.storage.report_store import ReportStore

from .output_analysis import OutputAnalysis

logger = logging.getLogger(__name__)

_DURATION_FIELDS = (
    "skill_load_time_ms",
    "scout_duration_ms",
    "researcher_duration_ms",
    "sem_duration_ms",
    "seo_duration_ms",
    "director_duration_ms",
    "total_duration_ms",
)


class MetricsBuilder:
    """Accumulates metrics stage by stage; build() validates the identifying fields."""

    def __init__(self) -> None:
        self._report_id: Optional[str] = None
        self._client_id: Optional[str] = None
        self._business_type: Optional[BusinessType] = None
        self._skill_version: Optional[str] = None
        self._using_fallback = False
        self._violations = 0
        self._violations_by_rule: dict[str, int] = {}
        self._roas_mentions = 0
        self._product_schema = False
        self._invalid_metrics: list[str] = []
        self._durations: dict[str, float] = {}
        self._budgets: list[TokenBudget] = []
        self._prompt_tokens = 0

    def set_report_context(
        self, report_id: str, client_id: str, business_type: BusinessType
    ) -> MetricsBuilder:
        self._report_id = report_id
        self._client_id = client_id
        self._business_type = business_type
        return self

    def set_skill_info(self, skill_version: str, using_fallback: bool) -> MetricsBuilder:
        self._skill_version = skill_version
        self._using_fallback = using_fallback
        return self

    def set_constraint_violations(self, violations: Sequence[ConstraintViolation]) -> MetricsBuilder:
        self._violations = len(violations)
        self._violations_by_rule = dict(Counter(v.rule_id for v in violations))
        return self

    def set_content_analysis(self, analysis: OutputAnalysis) -> MetricsBuilder:
        self._roas_mentions = analysis.roas_mentions
        self._product_schema = analysis.product_schema_recommended
        self._invalid_metrics = list(analysis.invalid_metrics)
        return self

    def set_duration(self, name: str, ms: float) -> MetricsBuilder:
        if name not in _DURATION_FIELDS:
            raise ValueError(f"Unknown duration field: {name}")
        self._durations[name] = round(ms, 1)
        return self

    def add_token_budget(self, budget: Optional[TokenBudget], prompt_tokens: int = 0) -> MetricsBuilder:
        if budget is not None:
            self._budgets.append(budget)
        self._prompt_tokens += prompt_tokens
        return self

    def build(self) -> ReportMetrics:
        if not self._report_id:
            raise ValueError("report_id is required")
        if not self._client_id:
            raise ValueError("client_id is required")
        if not self._business_type:
            raise ValueError("business_type is required")
        if not self._skill_version:
            raise ValueError("skill_version is required")

        # Compact wins when either specialist fell back to it.
        mode = None
        for budget in self._budgets:
            if mode is None or budget.mode == SerializationMode.COMPACT:
                mode = budget.mode

        return ReportMetrics(
            report_id=self._report_id,
            client_id=self._client_id,
            business_type=self._business_type,
            skill_version=self._skill_version,
            using_fallback=self._using_fallback,
            constraint_violations=self._violations,
            violations_by_rule=dict(self._violations_by_rule),
            roas_mentions=self._roas_mentions,
            product_schema_recommended=self._product_schema,
            invalid_metrics_detected=list(self._invalid_metrics),
            serialization_mode=mode,
            truncation_applied=any(b.truncation_applied for b in self._budgets),
            keywords_dropped=sum(b.keywords_dropped for b in self._budgets),
            pages_dropped=sum(b.pages_dropped for b in self._budgets),
            prompt_tokens_estimated=self._prompt_tokens,
            **self._durations,
        )


async def save_report_metrics(store: ReportStore, metrics: ReportMetrics) -> bool:
    """Persist metrics; failures are logged and never propagate."""
    try:
        await store.save_metrics(metrics)
    except Exception as e:
        logger.error(f"Failed to save metrics for report {metrics.report_id}: {e}")
        return False
    logger.debug(
        f"Report metrics saved: {metrics.report_id} ({metrics.business_type.value}, "
        f"{metrics.constraint_violations} violations, {metrics.total_duration_ms} ms)"
    )
    return True
