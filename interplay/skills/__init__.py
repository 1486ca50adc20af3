from .conditions import evaluate_condition
from .loader import declared_business_types, has_full_bundle, load_skill
from .schema import SkillBundle

__all__ = [
    "evaluate_condition",
    "declared_business_types",
    "has_full_bundle",
    "load_skill",
    "SkillBundle",
]
