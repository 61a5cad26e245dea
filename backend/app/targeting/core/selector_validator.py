"""
Selector Validator

The ground-truth gate: runs a selector against the document, counts what it
really matches, and scores how likely it is to keep matching the same
element after the template re-renders. Scoring looks only at the selector's
shape, so a hand-typed or AI-suggested selector is judged exactly like a
generated one.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..errors import MalformedSelectorError
from .document import Document
from .stability import selector_tokens, unstable_tokens

logger = logging.getLogger(__name__)

# Empirical calibration. A text predicate replaces the base shape score,
# the complex/nth-child ceilings and the stability cap only ever lower it.
CONFIDENCE = {
    "data-attr": 0.95,
    "role-aria": 0.9,
    "id": 0.85,
    "class": 0.8,
    "class-triple": 0.7,
    "generic": 0.5,
    "contains": 0.6,
    "complex": 0.4,
    "nth-child": 0.3,
    "ambiguous": 0.3,
    "unstable": 0.1,
}

MAX_CLASS_SEGMENTS = 3
MAX_COMPOUND_SEGMENTS = 4

_DATA_ATTR = re.compile(r"\[\s*data-[\w-]+")
_ROLE_ARIA = re.compile(r"\[\s*(?:role|aria-[\w-]+)\b")
_QUOTED = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')
_PARENS = re.compile(r"\([^()]*\)")
_BRACKETS = re.compile(r"\[[^\]]*\]")
_COMBINATOR = re.compile(r"\s*[>+~]\s*|\s+")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of running one selector against one document"""
    selector: str
    match_count: int
    works: bool
    confidence: float
    reason: str
    unstable_tokens: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "matchCount": self.match_count,
            "works": self.works,
            "confidence": self.confidence,
            "reason": self.reason,
        }


def compound_segments(selector: str) -> List[str]:
    """Split a selector on its combinators, ignoring quoted and bracketed content"""
    bare = _QUOTED.sub('""', selector)
    bare = _BRACKETS.sub("[]", bare)
    while _PARENS.search(bare):
        bare = _PARENS.sub("", bare)
    return [segment for segment in _COMBINATOR.split(bare.strip()) if segment]


def shape_confidence(selector: str) -> Tuple[float, str]:
    """Score a selector that matched exactly one element by its shape alone"""
    tokens = selector_tokens(selector)
    class_count = sum(1 for kind, _ in tokens if kind == "class")
    has_id = any(kind == "id" for kind, _ in tokens)

    if _DATA_ATTR.search(selector):
        score, reason = CONFIDENCE["data-attr"], "data attribute"
    elif _ROLE_ARIA.search(selector):
        score, reason = CONFIDENCE["role-aria"], "role/aria attribute"
    elif has_id:
        score, reason = CONFIDENCE["id"], "id"
    elif 0 < class_count <= 2:
        score, reason = CONFIDENCE["class"], "semantic class chain"
    elif class_count == MAX_CLASS_SEGMENTS:
        score, reason = CONFIDENCE["class-triple"], "three-class chain"
    else:
        score, reason = CONFIDENCE["generic"], "generic selector"

    if ":contains(" in selector or ":-soup-contains(" in selector:
        score, reason = CONFIDENCE["contains"], "text predicate"
    if class_count > MAX_CLASS_SEGMENTS or len(compound_segments(selector)) > MAX_COMPOUND_SEGMENTS:
        score, reason = min(score, CONFIDENCE["complex"]), "complex chain"
    if ":nth-child(" in selector:
        score, reason = min(score, CONFIDENCE["nth-child"]), "position-based"

    return score, reason


def validate(selector: str, document: Document) -> ValidationResult:
    """
    Validate a selector against a document.

    Never raises: unparseable selectors come back with zero matches.

    Returns:
        ValidationResult where works is True only for exactly one match
    """
    try:
        match_count = document.count(selector)
    except MalformedSelectorError as e:
        logger.debug(f"[VALIDATOR] {e}")
        return ValidationResult(
            selector=selector or "",
            match_count=0,
            works=False,
            confidence=0.0,
            reason=f"invalid selector: {e.detail}"
        )

    unstable = tuple(unstable_tokens(selector))

    if match_count == 0:
        return ValidationResult(selector, 0, False, 0.0, "no match", unstable)

    if match_count > 1:
        confidence = CONFIDENCE["ambiguous"]
        reason = f"matches {match_count} elements, expected 1"
    else:
        confidence, shape = shape_confidence(selector)
        reason = f"unique match ({shape})"

    if unstable:
        confidence = min(confidence, CONFIDENCE["unstable"])
        reason = f"{reason}; generated-looking token {unstable[0]!r}, may break on re-render"

    result = ValidationResult(
        selector=selector,
        match_count=match_count,
        works=match_count == 1,
        confidence=confidence,
        reason=reason,
        unstable_tokens=unstable
    )
    logger.debug(f"[VALIDATOR] {selector!r}: {match_count} match(es), confidence {confidence:.2f}")
    return result
