"""Pydantic models for business-type skill bundles.

A bundle is loaded from JSON and is immutable afterwards; every sub-skill model
is frozen.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from interplay.models.enums import BusinessType, ImpactLevel, PriorityTier, RecommendationType

from .conditions import compile_condition, normalize_boost_condition

Importance = Literal["critical", "high", "medium", "low"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


def _check_regexes(patterns: list[str]) -> list[str]:
    for p in patterns:
        try:
            re.compile(p)
        except re.error as e:
            raise ValueError(f"Invalid regex {p!r}: {e}") from e
    return patterns


# --- Shared ---


class KPIDefinition(_Frozen):
    metric: str
    importance: Importance
    description: str
    target_direction: Literal["higher", "lower", "target"] = "higher"
    benchmark: Optional[float] = None
    business_context: str = ""


class KPISet(_Frozen):
    primary: list[KPIDefinition] = Field(default_factory=list)
    secondary: list[KPIDefinition] = Field(default_factory=list)
    irrelevant: list[str] = Field(default_factory=list)


class ThresholdSet(_Frozen):
    excellent: float
    good: float
    average: float
    poor: float


class PromptExample(_Frozen):
    scenario: str
    data: str
    recommendation: str
    reasoning: str


class PromptFragments(_Frozen):
    role_context: str
    analysis_instructions: str = ""
    output_guidance: str = ""
    examples: list[PromptExample] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)


class RecommendationTypes(_Frozen):
    prioritize: list[str] = Field(default_factory=list)
    deprioritize: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class OutputConfig(_Frozen):
    recommendation_types: RecommendationTypes = Field(default_factory=RecommendationTypes)
    max_recommendations: int = Field(default=8, ge=1, le=15)
    require_quantified_impact: bool = False


class AnalysisPattern(_Frozen):
    id: str
    name: str
    description: str
    indicators: list[str] = Field(default_factory=list)
    recommendation: str = ""


# --- Scout ---


class ScoutThresholds(_Frozen):
    high_spend: float = Field(ge=0)
    low_roas: float = Field(ge=0)
    cannibalization_position: float = Field(ge=0)
    high_bounce_rate: float = Field(ge=0, le=100, description="Percent")
    low_ctr: float = Field(ge=0, le=100, description="Percent")
    min_impressions: float = Field(default=0, ge=0)


class PriorityRule(_Frozen):
    id: str
    name: str
    description: str = ""
    condition: str
    priority: PriorityTier
    reason: str
    enabled: bool = True

    @field_validator("condition")
    @classmethod
    def condition_parses(cls, v: str) -> str:
        compile_condition(v)
        return v


class ScoutPriorityRules(_Frozen):
    keywords: list[PriorityRule] = Field(default_factory=list)
    pages: list[PriorityRule] = Field(default_factory=list)


class ScoutMetrics(_Frozen):
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    primary: list[str] = Field(default_factory=list)


class ScoutLimits(_Frozen):
    max_keywords: int = Field(ge=1)
    max_pages: int = Field(ge=1)


class ScoutSkill(_Frozen):
    version: str
    thresholds: ScoutThresholds
    priority_rules: ScoutPriorityRules = Field(default_factory=ScoutPriorityRules)
    metrics: ScoutMetrics = Field(default_factory=ScoutMetrics)
    limits: ScoutLimits


# --- Researcher ---


class CompetitiveMetricSet(_Frozen):
    required: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)
    irrelevant: list[str] = Field(default_factory=list)


class PriorityBoost(_Frozen):
    metric: str
    condition: str
    boost: float
    reason: str

    @model_validator(mode="before")
    @classmethod
    def expand_shorthand(cls, data):
        if isinstance(data, dict) and "condition" in data and "metric" in data:
            data = {**data, "condition": normalize_boost_condition(data["condition"], data["metric"])}
        return data

    @field_validator("condition")
    @classmethod
    def condition_parses(cls, v: str) -> str:
        compile_condition(v)
        return v


class KeywordEnrichment(_Frozen):
    competitive_metrics: CompetitiveMetricSet = Field(default_factory=CompetitiveMetricSet)
    priority_boosts: list[PriorityBoost] = Field(default_factory=list)


class StandardExtractions(_Frozen):
    title: bool = True
    h1: bool = True
    meta_description: bool = True
    canonical_url: bool = True
    word_count: bool = True


class SchemaExtraction(_Frozen):
    look_for: list[str] = Field(default_factory=list)
    flag_if_present: list[str] = Field(default_factory=list)
    flag_if_missing: list[str] = Field(default_factory=list)


class ContentSignal(_Frozen):
    id: str
    name: str
    selector: str
    importance: Importance
    description: str = ""
    business_context: str = ""


class PagePattern(_Frozen):
    pattern: str
    page_type: str
    description: str = ""
    confidence: float = Field(ge=0, le=1)

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        _check_regexes([v])
        return v


class PageClassification(_Frozen):
    patterns: list[PagePattern] = Field(default_factory=list)
    default_type: str = "unknown"
    confidence_threshold: float = Field(default=0.5, ge=0, le=1)


class PageEnrichment(_Frozen):
    standard_extractions: StandardExtractions = Field(default_factory=StandardExtractions)
    schema_extraction: SchemaExtraction = Field(default_factory=SchemaExtraction)
    content_signals: list[ContentSignal] = Field(default_factory=list)
    page_classification: PageClassification = Field(default_factory=PageClassification)


class DataQuality(_Frozen):
    min_keywords_with_competitive_data: int = Field(default=0, ge=0)
    min_pages_with_content: int = Field(default=0, ge=0)
    fetch_timeout_ms: int = Field(default=10000, ge=100)
    max_concurrent_fetches: int = Field(default=3, ge=1)


class ResearcherSkill(_Frozen):
    version: str
    keyword_enrichment: KeywordEnrichment = Field(default_factory=KeywordEnrichment)
    page_enrichment: PageEnrichment = Field(default_factory=PageEnrichment)
    data_quality: DataQuality = Field(default_factory=DataQuality)


# --- SEM ---


class SEMContext(_Frozen):
    business_model: str
    conversion_definition: str
    typical_customer_journey: str = ""


class Opportunity(_Frozen):
    type: str
    description: str
    signals: list[str] = Field(default_factory=list)
    typical_action: str = ""


class SEMAnalysis(_Frozen):
    key_patterns: list[AnalysisPattern] = Field(default_factory=list)
    anti_patterns: list[AnalysisPattern] = Field(default_factory=list)
    opportunities: list[Opportunity] = Field(default_factory=list)


class SEMSkill(_Frozen):
    version: str
    context: SEMContext
    kpis: KPISet = Field(default_factory=KPISet)
    benchmarks: dict[str, ThresholdSet] = Field(default_factory=dict)
    analysis: SEMAnalysis = Field(default_factory=SEMAnalysis)
    prompt: PromptFragments
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- SEO ---


class SEOContext(_Frozen):
    site_type: str
    primary_goal: str
    content_strategy: str = ""


class SchemaRule(_Frozen):
    type: str
    description: str = ""
    importance: Literal["required", "recommended", "optional"] = "recommended"
    validation_notes: str = ""


class PageTypeSchemaRule(_Frozen):
    page_type: str
    required_schema: list[str] = Field(default_factory=list)
    recommended_schema: list[str] = Field(default_factory=list)
    invalid_schema: list[str] = Field(default_factory=list)


class SchemaRules(_Frozen):
    required: list[SchemaRule] = Field(default_factory=list)
    recommended: list[SchemaRule] = Field(default_factory=list)
    invalid: list[SchemaRule] = Field(default_factory=list)
    page_type_rules: list[PageTypeSchemaRule] = Field(default_factory=list)


class ContentPattern(_Frozen):
    id: str
    name: str
    good_pattern: str
    bad_pattern: str
    recommendation: str


class SEOAnalysis(_Frozen):
    content_patterns: list[ContentPattern] = Field(default_factory=list)
    technical_checks: list[str] = Field(default_factory=list)


class IssueDefinition(_Frozen):
    id: str
    pattern: str
    description: str
    recommendation: str = ""


class CommonIssues(_Frozen):
    critical: list[IssueDefinition] = Field(default_factory=list)
    warnings: list[IssueDefinition] = Field(default_factory=list)
    false_positives: list[str] = Field(default_factory=list)


class SEOSkill(_Frozen):
    version: str
    context: SEOContext
    schema_rules: SchemaRules = Field(default_factory=SchemaRules)
    kpis: KPISet = Field(default_factory=KPISet)
    benchmarks: dict[str, ThresholdSet] = Field(default_factory=dict)
    analysis: SEOAnalysis = Field(default_factory=SEOAnalysis)
    prompt: PromptFragments
    common_issues: CommonIssues = Field(default_factory=CommonIssues)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Director ---


class DirectorContext(_Frozen):
    business_priorities: list[str] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)
    executive_framing: str = ""


class ConflictRule(_Frozen):
    """SEM and SEO items matching both pattern lists are merged into one hybrid item."""

    id: str
    sem_signal: str
    seo_signal: str
    sem_patterns: list[str] = Field(min_length=1)
    seo_patterns: list[str] = Field(min_length=1)
    title: str = Field(min_length=5, max_length=100)
    resolution: str = Field(min_length=10, max_length=500)

    @field_validator("sem_patterns", "seo_patterns")
    @classmethod
    def patterns_compile(cls, v: list[str]) -> list[str]:
        return _check_regexes(v)


class SynergyRule(_Frozen):
    id: str
    sem_condition: str
    seo_condition: str
    sem_patterns: list[str] = Field(min_length=1)
    seo_patterns: list[str] = Field(min_length=1)
    title: str = Field(min_length=5, max_length=100)
    combined_recommendation: str = Field(min_length=10, max_length=500)

    @field_validator("sem_patterns", "seo_patterns")
    @classmethod
    def patterns_compile(cls, v: list[str]) -> list[str]:
        return _check_regexes(v)


class PrioritizationRule(_Frozen):
    id: str
    condition: str
    patterns: list[str] = Field(default_factory=list)
    impact: Optional[ImpactLevel] = None
    type: Optional[RecommendationType] = None
    adjustment: Literal["boost", "reduce", "require", "exclude"]
    factor: float = Field(default=1.0, gt=0)
    reason: str = ""

    @field_validator("patterns")
    @classmethod
    def patterns_compile(cls, v: list[str]) -> list[str]:
        return _check_regexes(v)

    @model_validator(mode="after")
    def has_selector(self) -> PrioritizationRule:
        if not self.patterns and self.impact is None and self.type is None:
            raise ValueError(f"Prioritization rule '{self.id}' selects nothing")
        return self


class ImpactWeights(_Frozen):
    revenue: float = Field(ge=0, le=1)
    cost: float = Field(ge=0, le=1)
    effort: float = Field(ge=0, le=1)
    risk: float = Field(ge=0, le=1)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> ImpactWeights:
        total = self.revenue + self.cost + self.effort + self.risk
        if abs(total - 1.0) > 0.01:
            raise ValueError(f"Impact weights must sum to ~1.0, got {total:.3f}")
        return self


class DirectorFiltering(_Frozen):
    max_recommendations: int = Field(default=10, ge=1, le=10)
    min_high_medium: int = Field(default=5, ge=0)
    min_impact_threshold: ImpactLevel = ImpactLevel.LOW
    impact_weights: ImpactWeights
    must_include: list[str] = Field(default_factory=list)
    must_exclude: list[str] = Field(default_factory=list)


class ExecutiveSummaryConfig(_Frozen):
    focus_areas: list[str] = Field(default_factory=list)
    metrics_to_quantify: list[str] = Field(default_factory=list)
    framing_guidance: str = ""
    max_highlights: int = Field(default=5, ge=1, le=5)


class DirectorPrompt(_Frozen):
    role_context: str
    synthesis_instructions: str = ""
    prioritization_guidance: str = ""
    output_format: str = ""
    constraints: list[str] = Field(default_factory=list)


class DirectorSynthesis(_Frozen):
    conflict_resolution: list[ConflictRule] = Field(default_factory=list)
    synergy_identification: list[SynergyRule] = Field(default_factory=list)
    prioritization: list[PrioritizationRule] = Field(default_factory=list)


class DirectorSkill(_Frozen):
    version: str
    context: DirectorContext = Field(default_factory=DirectorContext)
    synthesis: DirectorSynthesis = Field(default_factory=DirectorSynthesis)
    filtering: DirectorFiltering
    executive_summary: ExecutiveSummaryConfig = Field(default_factory=ExecutiveSummaryConfig)
    prompt: DirectorPrompt


# --- Bundle ---


class SkillBundle(_Frozen):
    business_type: BusinessType
    version: str
    is_placeholder: bool = False
    scout: ScoutSkill
    researcher: ResearcherSkill
    sem: SEMSkill
    seo: SEOSkill
    director: DirectorSkill
