"""
AI Element Responses

The structured contract for "which element does this hypothesis mean?".
A completion is decoded exactly once, here, into either ElementFound or
ElementNotFound. Anything that fails to parse or violates the schema comes
out as ElementNotFound, so the resolver never inspects raw shapes.
"""

import json
import logging
import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")


class ElementFound(BaseModel):
    """The model located the element"""
    css_selector: str = Field(min_length=1)
    element_text: Optional[str] = None
    section_context: Optional[str] = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    alternative_selectors: List[str] = Field(default_factory=list)

    @field_validator("css_selector")
    @classmethod
    def _strip_selector(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("css_selector is blank")
        return value

    @field_validator("element_text", "section_context", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("alternative_selectors", mode="before")
    @classmethod
    def _clean_alternatives(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [v.strip() for v in value if isinstance(v, str) and v.strip()]
        return value


class ElementNotFound(BaseModel):
    """The model could not (or would not) locate the element"""
    NOT_FOUND: Literal[True] = True
    reason: str = ""
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("suggestions", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


AIElementResponse = Union[ElementFound, ElementNotFound]


def output_schema() -> Dict[str, Any]:
    """JSON schema handed to the completion collaborator"""
    return {
        "anyOf": [
            ElementFound.model_json_schema(),
            ElementNotFound.model_json_schema(),
        ]
    }


def extract_json(text: str) -> Any:
    """
    Pull a JSON value out of a completion, tolerating ``` fences and prose
    around a single object.

    Raises:
        ValueError: nothing JSON-shaped in the text
    """
    cleaned = _FENCE.sub("", text.strip()).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no JSON object in completion")
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON in completion: {e.msg}") from e


def decode(raw: Union[str, Dict[str, Any], None]) -> AIElementResponse:
    """Decode a completion (dict or JSON text) into the tagged union"""
    if raw is None:
        return ElementNotFound(reason="empty completion")

    if isinstance(raw, str):
        try:
            raw = extract_json(raw)
        except ValueError as e:
            logger.warning(f"[AI-GATE] Unparseable completion: {e}")
            return ElementNotFound(reason=f"unparseable completion: {e}")

    if not isinstance(raw, dict):
        return ElementNotFound(reason=f"expected an object, got {type(raw).__name__}")

    try:
        if raw.get("NOT_FOUND") is True:
            return ElementNotFound.model_validate(raw)
        return ElementFound.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"[AI-GATE] Completion violates schema: {e.error_count()} error(s)")
        return ElementNotFound(reason=f"schema violation: {e.errors()[0]['msg']}")
