"""JSON extraction and schema validation for model responses."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from interplay.models.enums import AgentResultStatus

from .errors import ResponseMalformedError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PREVIEW_CHARS = 500

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


@dataclass
class AgentResult(Generic[M]):
    status: AgentResultStatus
    output: M
    warning: Optional[str] = None


def extract_json(text: Optional[str]) -> Optional[str]:
    """Pull a JSON document out of a response that may carry fences or prose.

    Order: fenced block (only if it starts with { or [), widest bare object,
    widest bare array.
    """
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()

    m = _FENCED_RE.search(trimmed)
    if m:
        inner = m.group(1).strip()
        if inner.startswith("{") or inner.startswith("["):
            return inner

    m = _OBJECT_RE.search(trimmed)
    if m:
        return m.group(0)

    m = _ARRAY_RE.search(trimmed)
    if m:
        return m.group(0)
    return None


def _field_errors(e: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "path": ".".join(str(p) for p in err["loc"]),
            "code": err["type"],
            "message": err["msg"],
        }
        for err in e.errors()
    ]


def parse_agent_response(
    text: str, model: Type[M], items_field: Optional[str] = None
) -> AgentResult[M]:
    """Validate a model response against `model`.

    Returns SUCCESS, or EMPTY with a warning when the items list is empty.
    Anything else raises ResponseMalformedError carrying diagnostics.
    """
    json_text = extract_json(text)
    if json_text is None:
        raise ResponseMalformedError(
            "No JSON structure found in response",
            details={"response_preview": (text or "")[:PREVIEW_CHARS], "response_length": len(text or "")},
        )

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ResponseMalformedError(
            "JSON parse error",
            details={"parse_error": str(e), "response_preview": json_text[:PREVIEW_CHARS]},
        ) from e

    if isinstance(parsed, list) and items_field:
        parsed = {items_field: parsed}

    try:
        output = model.model_validate(parsed)
    except ValidationError as e:
        errors = _field_errors(e)
        if items_field and len(errors) == 1:
            err = errors[0]
            if err["path"] == items_field and err["code"] == "too_short":
                empty = model.model_validate({items_field: []})
                return AgentResult(
                    status=AgentResultStatus.EMPTY,
                    output=empty,
                    warning=f"Model returned an empty {items_field} array",
                )
        raise ResponseMalformedError(
            "Schema validation failed",
            details={"errors": errors, "response_preview": json.dumps(parsed)[:PREVIEW_CHARS]},
        ) from e

    if items_field:
        items = getattr(output, _attr_for(model, items_field))
        if not items:
            return AgentResult(
                status=AgentResultStatus.EMPTY,
                output=output,
                warning=f"Model returned zero {items_field}; data may lack actionable insights",
            )
    return AgentResult(status=AgentResultStatus.SUCCESS, output=output)


def _attr_for(model: Type[BaseModel], wire_name: str) -> str:
    for name, info in model.model_fields.items():
        if wire_name in (name, info.alias):
            return name
    raise KeyError(wire_name)
