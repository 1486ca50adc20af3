"""Pydantic schemas for specialist and Director outputs.

Field names are snake_case in Python and camelCase on the wire (model responses
and stored stage outputs).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import EffortLevel, ImpactLevel, RecommendationType, SEMActionLevel

MAX_SPECIALIST_ACTIONS = 15
MAX_UNIFIED_RECOMMENDATIONS = 10


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SEMAction(_WireModel):
    action: str = Field(min_length=5)
    level: SEMActionLevel
    expected_uplift: str = Field(min_length=5)
    reasoning: str = Field(min_length=10)
    impact: ImpactLevel
    keyword: Optional[str] = None


class SEMAgentOutput(_WireModel):
    sem_actions: list[SEMAction] = Field(default_factory=list, max_length=MAX_SPECIALIST_ACTIONS)


class SEOAction(_WireModel):
    condition: str = Field(min_length=5)
    recommendation: str = Field(min_length=5)
    specific_actions: list[str] = Field(min_length=1, max_length=5)
    impact: ImpactLevel
    url: Optional[str] = None

    @field_validator("specific_actions")
    @classmethod
    def actions_are_descriptive(cls, v: list[str]) -> list[str]:
        for i, item in enumerate(v):
            if len(item.strip()) < 5:
                raise ValueError(f"specificActions[{i}] must be at least 5 characters")
        return v


class SEOAgentOutput(_WireModel):
    seo_actions: list[SEOAction] = Field(default_factory=list, max_length=MAX_SPECIALIST_ACTIONS)


class UnifiedRecommendation(_WireModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    type: RecommendationType
    impact: ImpactLevel
    effort: EffortLevel
    action_items: list[str] = Field(min_length=1, max_length=5)
    source_rule: Optional[str] = None
    score: Optional[float] = None


class ExecutiveSummary(_WireModel):
    summary: str = Field(min_length=20, max_length=1000)
    key_highlights: list[str] = Field(min_length=1, max_length=5)


class DirectorOutput(_WireModel):
    executive_summary: ExecutiveSummary
    unified_recommendations: list[UnifiedRecommendation] = Field(
        default_factory=list, max_length=MAX_UNIFIED_RECOMMENDATIONS
    )
