"""Exceptions raised by the report pipeline stages."""

from __future__ import annotations

from typing import Any, Optional


class SkillConfigurationError(ValueError):
    """Business type is undeclared or a skill bundle failed validation."""


class DataUnavailableError(RuntimeError):
    """A data-source fetch failed or produced nothing to analyze."""


class ModelCallError(RuntimeError):
    """The text generator raised while producing a stage response."""


class ResponseMalformedError(ValueError):
    """A model response had no JSON, invalid JSON or failed schema validation."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class PromptBudgetExceededError(RuntimeError):
    """An assembled prompt is above the absolute token ceiling."""
