"""Load, validate and cache skill bundles from JSON files."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from interplay.models.enums import BusinessType
from interplay.orchestrator.errors import SkillConfigurationError

from .schema import SkillBundle

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path(__file__).parent / "configs"

# Business types with a tuned bundle; the rest get the placeholder.
_FULL_BUNDLES: dict[BusinessType, str] = {
    BusinessType.ECOMMERCE: "ecommerce.json",
    BusinessType.LEAD_GEN: "lead-gen.json",
}

PLACEHOLDER_VERSION = "0.1.0-placeholder"


def _read_json(file_path: Path) -> Any:
    if not file_path.exists():
        raise FileNotFoundError(f"Skill config not found: {file_path}")
    with open(file_path, "r") as f:
        return json.load(f)


def declared_business_types() -> list[BusinessType]:
    return list(BusinessType)


def has_full_bundle(business_type: Union[BusinessType, str]) -> bool:
    return _coerce(business_type) in _FULL_BUNDLES


def _coerce(business_type: Union[BusinessType, str]) -> BusinessType:
    if isinstance(business_type, BusinessType):
        return business_type
    try:
        return BusinessType(business_type)
    except ValueError:
        raise SkillConfigurationError(
            f"Undeclared business type: {business_type!r}. "
            f"Declared types: {', '.join(t.value for t in BusinessType)}"
        ) from None


@lru_cache(maxsize=None)
def load_exclusions() -> dict[BusinessType, tuple[str, ...]]:
    """mustExclude patterns per business type, from configs/exclusions.json."""
    raw = _read_json(_CONFIG_DIR / "exclusions.json")
    return {
        bt: tuple(raw.get(bt.value, {}).get("must_exclude", []))
        for bt in BusinessType
    }


def _placeholder_raw(business_type: BusinessType) -> dict[str, Any]:
    text = (_CONFIG_DIR / "placeholder.json").read_text()
    raw = json.loads(text.replace("{business_type}", business_type.value))
    raw["business_type"] = business_type.value
    raw["version"] = PLACEHOLDER_VERSION
    raw["is_placeholder"] = True
    return raw


def _merge_exclusions(raw: dict[str, Any], business_type: BusinessType) -> None:
    filtering = raw.setdefault("director", {}).setdefault("filtering", {})
    merged = list(filtering.get("must_exclude", []))
    for pattern in load_exclusions()[business_type]:
        if pattern not in merged:
            merged.append(pattern)
    filtering["must_exclude"] = merged


@lru_cache(maxsize=None)
def _load_bundle(business_type: BusinessType) -> SkillBundle:
    if business_type in _FULL_BUNDLES:
        raw = _read_json(_CONFIG_DIR / _FULL_BUNDLES[business_type])
    else:
        logger.warning(
            f"No tuned skill bundle for {business_type.value}; using {PLACEHOLDER_VERSION}"
        )
        raw = _placeholder_raw(business_type)

    _merge_exclusions(raw, business_type)

    try:
        bundle = SkillBundle.model_validate(raw)
    except ValidationError as e:
        raise SkillConfigurationError(
            f"Invalid skill bundle for {business_type.value}: {e}"
        ) from e

    if bundle.business_type != business_type:
        raise SkillConfigurationError(
            f"Skill bundle declares {bundle.business_type.value}, expected {business_type.value}"
        )
    return bundle


def load_skill(business_type: Union[BusinessType, str]) -> SkillBundle:
    """Return the validated, cached skill bundle for a business type.

    Undeclared types raise SkillConfigurationError. Declared types without a
    tuned bundle get a placeholder carrying that type's exclusion list.
    """
    return _load_bundle(_coerce(business_type))
