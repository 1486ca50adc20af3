"""Skill-driven filtering and ordering of specialist actions."""

from __future__ import annotations

import logging
from typing import Callable, Sequence, TypeVar

from interplay.models.agent_outputs import SEMAction, SEOAction
from interplay.skills.schema import OutputConfig

logger = logging.getLogger(__name__)

A = TypeVar("A")


def pattern_matches(pattern: str, text: str) -> bool:
    """Case-insensitive substring match where '-' in the pattern also matches a space."""
    p = pattern.lower()
    t = text.lower()
    return p in t or p.replace("-", " ") in t


def sem_action_text(action: SEMAction) -> str:
    return f"{action.action} {action.reasoning}"


def seo_action_text(action: SEOAction) -> str:
    return f"{action.recommendation} {action.condition}"


def filter_actions(
    actions: Sequence[A], config: OutputConfig, text_fn: Callable[[A], str]
) -> list[A]:
    """Drop excluded actions, order prioritized ones first and deprioritized last, then cap."""
    types = config.recommendation_types
    kept: list[A] = []
    for action in actions:
        text = text_fn(action)
        if any(pattern_matches(p, text) for p in types.exclude):
            logger.info(f"Excluded specialist action by output config: {text[:80]!r}")
            continue
        kept.append(action)

    if types.prioritize:
        def _rank(action: A) -> int:
            text = text_fn(action)
            for i, pattern in enumerate(types.prioritize):
                if pattern_matches(pattern, text):
                    return i
            return len(types.prioritize)

        kept.sort(key=_rank)

    if types.deprioritize:
        regular = [a for a in kept if not any(pattern_matches(p, text_fn(a)) for p in types.deprioritize)]
        demoted = [a for a in kept if any(pattern_matches(p, text_fn(a)) for p in types.deprioritize)]
        kept = regular + demoted

    return kept[: config.max_recommendations]
