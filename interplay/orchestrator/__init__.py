from .errors import (
    DataUnavailableError,
    ModelCallError,
    PromptBudgetExceededError,
    ResponseMalformedError,
    SkillConfigurationError,
)

__all__ = [
    "DataUnavailableError",
    "ModelCallError",
    "PromptBudgetExceededError",
    "ResponseMalformedError",
    "SkillConfigurationError",
]
