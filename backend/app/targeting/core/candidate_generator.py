"""
Candidate Selector Generator

Given an element that has already been located in a Document, produce every
CSS selector that could address it, in a fixed precedence: test/data
attributes, ARIA role, aria-label, stable id, stable class combinations,
ancestor-scoped selectors, the bare tag, and finally the indexed path from
the document root. The indexed path is always produced, so the result is
never empty.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from bs4 import Tag

from ..errors import MalformedSelectorError
from .document import Document
from .selector_validator import ValidationResult, validate
from .stability import (
    is_stable_identifier,
    is_utility_class,
    is_valid_css_identifier,
    most_stable_class,
    stability_rank,
    stable_classes,
)

logger = logging.getLogger(__name__)


class SelectorStrategy(Enum):
    DATA_ATTR = "data-attr"
    ROLE = "role"
    ARIA_LABEL = "aria-label"
    ID = "id"
    SEMANTIC_CLASS = "semantic-class"
    STRUCTURAL_PARENT = "structural-parent"
    TAG = "tag"
    INDEXED_PATH = "indexed-path"
    TEXT_MATCH = "text-match"


# Raw weight each strategy starts with before validation
STRATEGY_WEIGHTS = {
    SelectorStrategy.DATA_ATTR: 0.95,
    SelectorStrategy.ROLE: 0.9,
    SelectorStrategy.ARIA_LABEL: 0.9,
    SelectorStrategy.ID: 0.85,
    SelectorStrategy.SEMANTIC_CLASS: 0.8,
    SelectorStrategy.STRUCTURAL_PARENT: 0.6,
    SelectorStrategy.TEXT_MATCH: 0.6,
    SelectorStrategy.TAG: 0.4,
    SelectorStrategy.INDEXED_PATH: 0.3,
}

# Test-automation conventions, most specific first
DATA_ATTRIBUTES = ["data-testid", "data-test", "data-cy", "data-qa", "data-id"]

MAX_ANCESTOR_DEPTH = 2
MAX_CLASS_COMBINATION = 3
MAX_TEXT_PREDICATE_CHARS = 80


@dataclass(frozen=True)
class CandidateSelector:
    selector: str
    strategy: SelectorStrategy
    weight: float


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate together with what the validator made of it"""
    candidate: CandidateSelector
    result: ValidationResult

    @property
    def selector(self) -> str:
        return self.candidate.selector

    @property
    def confidence(self) -> float:
        return self.result.confidence


# ==================== Selector Building Blocks ====================

def quote_css_string(value: str) -> str:
    """Double-quoted CSS string literal"""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\r", "").replace("\n", "\\a ")
    return f'"{escaped}"'


def attribute_selector(name: str, value: str, tag: str = "") -> str:
    return f"{tag}[{name}={quote_css_string(value)}]"


def id_selector(value: str) -> str:
    if is_valid_css_identifier(value):
        return f"#{value}"
    return attribute_selector("id", value)


def contains_selector(tag: str, text: str) -> str:
    return f"{tag_token(tag)}:contains({quote_css_string(text)})"


def tag_token(name: str) -> str:
    return name if is_valid_css_identifier(name) else "*"


def _attr(element: Tag, name: str) -> str:
    """Raw attribute value. Attribute-equals selectors must quote it unchanged."""
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value or ""


def _classes(element: Tag) -> List[str]:
    value = element.get("class") or []
    if isinstance(value, str):
        value = value.split()
    return list(value)


def _element_siblings(element: Tag) -> List[Tag]:
    parent = element.parent
    if parent is None:
        return [element]
    return [child for child in parent.children if isinstance(child, Tag)]


def nth_child_index(element: Tag) -> int:
    """1-based position among the parent's element children"""
    for index, sibling in enumerate(_element_siblings(element), start=1):
        if sibling is element:
            return index
    return 1


def _has_same_tag_sibling(element: Tag) -> bool:
    return any(
        sibling is not element and sibling.name == element.name
        for sibling in _element_siblings(element)
    )


def _ancestors(element: Tag, depth: int) -> List[Tag]:
    out = []
    for parent in element.parents:
        if not isinstance(parent, Tag) or parent.name in ("[document]", "html", "body"):
            break
        out.append(parent)
        if len(out) >= depth:
            break
    return out


def usable_classes(element: Tag) -> List[str]:
    """
    Stable classes of an element, most stable first. Utility classes only
    count when the element has nothing better.
    """
    stable = stable_classes(_classes(element))
    semantic = [cls for cls in stable if not is_utility_class(cls)]
    chosen = semantic or stable
    return sorted(chosen, key=stability_rank, reverse=True)


def _unique_id_anchor(element: Tag, document: Document) -> Optional[str]:
    element_id = _attr(element, "id")
    if not element_id.strip() or not is_stable_identifier(element_id, "id"):
        return None
    selector = id_selector(element_id)
    try:
        if document.count(selector) == 1:
            return selector
    except MalformedSelectorError:
        return None
    return None


def indexed_path(element: Tag, document: Document) -> str:
    """
    Child-combinator path from the root, e.g.
    `html > body:nth-child(2) > div:nth-child(1) > h3:nth-child(1)`.
    Stops early at the nearest ancestor whose stable id is unique.
    """
    segments = []
    node = element
    while isinstance(node, Tag) and node.name != "[document]":
        if node is not element:
            anchor = _unique_id_anchor(node, document)
            if anchor:
                segments.append(anchor)
                break
        if node.parent is None or node.parent.name == "[document]":
            segments.append(tag_token(node.name))
            break
        segments.append(f"{tag_token(node.name)}:nth-child({nth_child_index(node)})")
        node = node.parent
    return " > ".join(reversed(segments))


# ==================== Generation ====================

def _candidate(selector: str, strategy: SelectorStrategy) -> CandidateSelector:
    return CandidateSelector(selector=selector, strategy=strategy, weight=STRATEGY_WEIGHTS[strategy])


def generate(element: Tag, document: Document, first_unique: bool = False) -> List[CandidateSelector]:
    """
    Generate candidate selectors for `element`.

    Args:
        element: A node of `document`
        document: The snapshot the element lives in
        first_unique: Return only the first candidate matching exactly one
            element instead of all of them

    Returns:
        Candidates in precedence order, duplicates removed. Never empty.
    """
    tag = tag_token(element.name)
    candidates: List[CandidateSelector] = []

    # 1. Test / data attributes
    for name in DATA_ATTRIBUTES:
        value = _attr(element, name)
        if value.strip():
            candidates.append(_candidate(attribute_selector(name, value), SelectorStrategy.DATA_ATTR))

    # 2. ARIA role
    role = _attr(element, "role")
    if role.strip():
        candidates.append(_candidate(attribute_selector("role", role, tag), SelectorStrategy.ROLE))

    # 3. aria-label
    label = _attr(element, "aria-label")
    if label.strip():
        candidates.append(_candidate(attribute_selector("aria-label", label, tag), SelectorStrategy.ARIA_LABEL))

    # 4. Stable id
    element_id = _attr(element, "id")
    if element_id.strip() and is_stable_identifier(element_id, "id"):
        candidates.append(_candidate(id_selector(element_id), SelectorStrategy.ID))

    # 5. Class combinations
    own_classes = usable_classes(element)
    for cls in own_classes:
        candidates.append(_candidate(f"{tag}.{cls}", SelectorStrategy.SEMANTIC_CLASS))
    if len(own_classes) >= 2:
        candidates.append(_candidate(f"{tag}.{own_classes[0]}.{own_classes[1]}", SelectorStrategy.SEMANTIC_CLASS))
    if 2 < len(own_classes) <= MAX_CLASS_COMBINATION:
        candidates.append(_candidate(f"{tag}." + ".".join(own_classes), SelectorStrategy.SEMANTIC_CLASS))

    # 6. Parent / grandparent scoped
    best_own = own_classes[0] if own_classes else ""
    for ancestor in _ancestors(element, MAX_ANCESTOR_DEPTH):
        ancestor_class = most_stable_class(_classes(ancestor))
        if not ancestor_class:
            continue
        candidates.append(_candidate(f".{ancestor_class} {tag}", SelectorStrategy.STRUCTURAL_PARENT))
        if best_own:
            candidates.append(_candidate(f".{ancestor_class} {tag}.{best_own}", SelectorStrategy.STRUCTURAL_PARENT))

    # 7. Sole element of its tag among siblings
    if tag != "*" and not _has_same_tag_sibling(element):
        candidates.append(_candidate(tag, SelectorStrategy.TAG))

    # 8. Indexed path (always present)
    candidates.append(_candidate(indexed_path(element, document), SelectorStrategy.INDEXED_PATH))

    candidates = _dedupe(candidates)
    logger.debug(f"[GENERATOR] {len(candidates)} candidates for <{element.name}>")

    if first_unique:
        for candidate in candidates:
            try:
                if document.count(candidate.selector) == 1:
                    return [candidate]
            except MalformedSelectorError as e:
                logger.debug(f"[GENERATOR] Skipping unparseable candidate: {e}")
        return [candidates[-1]]

    return candidates


def _dedupe(candidates: List[CandidateSelector]) -> List[CandidateSelector]:
    seen = set()
    out = []
    for candidate in candidates:
        if candidate.selector in seen:
            continue
        seen.add(candidate.selector)
        out.append(candidate)
    return out


# ==================== Ranking ====================

def rank_candidates(candidates: List[CandidateSelector], document: Document) -> List[RankedCandidate]:
    """
    Validate candidates and keep the working ones, best first.

    Higher validated confidence wins; generation order breaks ties.
    """
    ranked: List[Tuple[float, int, RankedCandidate]] = []
    for position, candidate in enumerate(candidates):
        result = validate(candidate.selector, document)
        if not result.works:
            logger.debug(f"[GENERATOR] Rejected {candidate.selector!r}: {result.reason}")
            continue
        ranked.append((-result.confidence, position, RankedCandidate(candidate, result)))
    ranked.sort(key=lambda item: (item[0], item[1]))
    return [item[2] for item in ranked]


def best_selector_for(
    element: Tag,
    document: Document,
    extra: Optional[List[CandidateSelector]] = None
) -> Tuple[RankedCandidate, List[RankedCandidate]]:
    """
    Pick the most reliable working selector for an element.

    Args:
        element: A node of `document`
        document: The snapshot the element lives in
        extra: Additional candidates (e.g. text predicates) ranked alongside
            the generated ones

    Returns:
        (best, remaining working candidates in rank order)
    """
    candidates = generate(element, document)
    if extra:
        candidates = _dedupe(candidates[:-1] + list(extra) + candidates[-1:])
    ranked = rank_candidates(candidates, document)
    if not ranked:
        # The indexed path is unique by construction; only a truncated,
        # reparsed tree could disagree with it
        path = candidates[-1]
        fallback = RankedCandidate(path, validate(path.selector, document))
        return fallback, []
    return ranked[0], ranked[1:]
