"""SEM and SEO specialist agents: prompt, one model call, validated and filtered actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Optional, Sequence, TypeVar, Union

from interplay.models.agent_outputs import SEMAgentOutput, SEOAgentOutput
from interplay.models.enums import AgentResultStatus
from interplay.models.findings import EnrichedKeyword, EnrichedPage
from interplay.prompts.sem import build_sem_prompt
from interplay.prompts.seo import build_seo_prompt
from interplay.prompts.serialization import BuiltPrompt, PromptContext, TokenBudget
from interplay.providers.base import TextGeneratorBase
from interplay.skills.schema import SEMSkill, SEOSkill

from .errors import ModelCallError, ResponseMalformedError
from .filtering import filter_actions, sem_action_text, seo_action_text
from .responses import AgentResult, parse_agent_response

logger = logging.getLogger(__name__)

O = TypeVar("O", SEMAgentOutput, SEOAgentOutput)


@dataclass
class SpecialistResult(Generic[O]):
    output: O
    status: AgentResultStatus
    skill_version: str
    warning: Optional[str] = None
    budget: Optional[TokenBudget] = None
    prompt_tokens: int = 0
    filtered_out: int = 0

    @property
    def actions(self) -> list:
        if isinstance(self.output, SEMAgentOutput):
            return list(self.output.sem_actions)
        return list(self.output.seo_actions)


async def _call_model(
    name: str, generator: TextGeneratorBase, built: BuiltPrompt, model: type, items_field: str
) -> AgentResult:
    logger.info(
        f"{name} agent: calling model ({built.budget.mode.value} mode, ~{built.tokens} tokens)"
    )
    try:
        response = await generator.generate(built.prompt)
    except Exception as e:
        logger.error(f"{name} agent: text generation failed: {e}")
        raise ModelCallError(f"{name} agent failed to call the text generation service: {e}") from e

    try:
        return parse_agent_response(response, model, items_field)
    except ResponseMalformedError as e:
        logger.error(f"{name} agent: failed to parse or validate response: {e} {e.details}")
        raise ResponseMalformedError(
            f"{name} agent failed to generate valid JSON analysis: {e}", details=e.details
        ) from e


async def run_sem_agent(
    keywords: Sequence[EnrichedKeyword],
    skill: SEMSkill,
    generator: TextGeneratorBase,
    context: Optional[PromptContext] = None,
) -> SpecialistResult[SEMAgentOutput]:
    """Analyze enriched keywords. No keywords means no model call and an empty result."""
    if not keywords:
        logger.warning("SEM agent: no keywords to analyze")
        return SpecialistResult(
            output=SEMAgentOutput(),
            status=AgentResultStatus.EMPTY,
            skill_version=skill.version,
            warning="No keywords to analyze",
        )

    built = build_sem_prompt(keywords, skill, context or PromptContext())
    result = await _call_model("SEM", generator, built, SEMAgentOutput, "semActions")

    actions = filter_actions(result.output.sem_actions, skill.output, sem_action_text)
    filtered_out = len(result.output.sem_actions) - len(actions)
    return _finish(
        "SEM", SEMAgentOutput(sem_actions=actions), result, built, skill.version, filtered_out
    )


async def run_seo_agent(
    pages: Sequence[EnrichedPage],
    skill: SEOSkill,
    generator: TextGeneratorBase,
    context: Optional[PromptContext] = None,
) -> SpecialistResult[SEOAgentOutput]:
    """Analyze enriched pages. No pages means no model call and an empty result."""
    if not pages:
        logger.warning("SEO agent: no pages to analyze")
        return SpecialistResult(
            output=SEOAgentOutput(),
            status=AgentResultStatus.EMPTY,
            skill_version=skill.version,
            warning="No pages to analyze",
        )

    built = build_seo_prompt(pages, skill, context or PromptContext())
    result = await _call_model("SEO", generator, built, SEOAgentOutput, "seoActions")

    actions = filter_actions(result.output.seo_actions, skill.output, seo_action_text)
    filtered_out = len(result.output.seo_actions) - len(actions)
    return _finish(
        "SEO", SEOAgentOutput(seo_actions=actions), result, built, skill.version, filtered_out
    )


def _finish(
    name: str,
    output: Union[SEMAgentOutput, SEOAgentOutput],
    result: AgentResult,
    built: BuiltPrompt,
    skill_version: str,
    filtered_out: int,
) -> SpecialistResult:
    count = len(output.sem_actions) if isinstance(output, SEMAgentOutput) else len(output.seo_actions)
    status = result.status
    warning = result.warning
    if status == AgentResultStatus.SUCCESS and count == 0:
        status = AgentResultStatus.EMPTY
        warning = "All actions were removed by output filtering"

    if warning:
        logger.warning(f"{name} agent: completed with warning: {warning} ({count} actions)")
    else:
        logger.info(f"{name} agent: complete with {count} actions ({filtered_out} filtered out)")

    return SpecialistResult(
        output=output,
        status=status,
        skill_version=skill_version,
        warning=warning,
        budget=built.budget,
        prompt_tokens=built.tokens,
        filtered_out=filtered_out,
    )
