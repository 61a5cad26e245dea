"""
Insertion Strategy Planner

Decides where and how experiment markup gets spliced in around a resolved
element. Each change category (ratings, badges, buttons, content
replacement) has its own anchor search; every plan ends with a generic
append to the resolved element so callers always get something usable.
"""

import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import soupsieve
from bs4 import Tag

from ..errors import MalformedSelectorError
from .candidate_generator import best_selector_for
from .document import Document
from .hypothesis_keywords import HypothesisCategory, classify, is_additive
from .selector_validator import validate

logger = logging.getLogger(__name__)


class InsertionMethod(Enum):
    BEFORE = "before"
    AFTER = "after"
    PREPEND = "prepend"
    APPEND = "append"
    REPLACE = "replace"
    WRAP = "wrap"


# insertAdjacentHTML positions
ADJACENT_POSITIONS = {
    InsertionMethod.BEFORE: "beforebegin",
    InsertionMethod.AFTER: "afterend",
    InsertionMethod.PREPEND: "afterbegin",
    InsertionMethod.APPEND: "beforeend",
}


# ==================== Landmarks ====================

# Card-like product containers, most specific first
CARD_SELECTORS = [
    ".product-card",
    ".card",
    ".product-item",
    ".product",
    ".grid__item",
    "li.product",
    "article",
    '[class*="product-card"]',
    '[class*="card-wrapper"]',
]

TITLE_SELECTOR = (
    'h1, h2, h3, h4, h5, h6, [class*="title"], [class*="heading"], '
    '[class*="product-name"], [class*="product__name"]'
)
INFO_SELECTOR = (
    '[class*="info"], [class*="content"], [class*="details"], '
    '[class*="body"], [class*="information"]'
)
MEDIA_SELECTOR = (
    '[class*="media"], [class*="image"], [class*="img"], [class*="photo"], '
    'figure, picture'
)
IMAGE_SELECTOR = "img, picture"
BUTTON_SELECTOR = (
    'button, [role="button"], input[type="submit"], input[type="button"], '
    'a[class*="button"], a[class*="btn"]'
)

# Void elements cannot take children
_VOID_TAGS = {"img", "input", "br", "hr", "meta", "link", "source", "area", "col", "embed", "wbr"}


def card_ancestor(element: Tag) -> Optional[Tag]:
    """Closest card-like container, the element itself included"""
    for selector in CARD_SELECTORS:
        card = soupsieve.closest(selector, element)
        if card is not None and card.name not in ("html", "body"):
            return card
    return None


def _first(selector: str, scope: Tag, exclude_void: bool = False) -> Optional[Tag]:
    for node in soupsieve.select(selector, scope):
        if exclude_void and node.name in _VOID_TAGS:
            continue
        return node
    return None


def find_title(scope: Tag) -> Optional[Tag]:
    return _first(TITLE_SELECTOR, scope)


def find_info_container(scope: Tag) -> Optional[Tag]:
    return _first(INFO_SELECTOR, scope, exclude_void=True)


def find_media_container(scope: Tag) -> Optional[Tag]:
    return _first(MEDIA_SELECTOR, scope, exclude_void=True)


def find_image(scope: Tag) -> Optional[Tag]:
    return _first(IMAGE_SELECTOR, scope)


def find_button(element: Tag) -> Optional[Tag]:
    if soupsieve.match(BUTTON_SELECTOR, element):
        return element
    return _first(BUTTON_SELECTOR, element)


# ==================== Strategy ====================

@dataclass(frozen=True)
class InsertionStrategy:
    method: InsertionMethod
    target_selector: str
    reasoning: str
    example: str
    fallbacks: Tuple["InsertionStrategy", ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "targetSelector": self.target_selector,
            "reasoning": self.reasoning,
            "example": self.example,
            "fallbacks": [f.to_dict() for f in self.fallbacks],
        }


def example_snippet(method: InsertionMethod, selector: str) -> str:
    """JavaScript showing the DOM mutation a strategy stands for"""
    query = f"document.querySelector({json.dumps(selector)})"
    if method in ADJACENT_POSITIONS:
        return f"{query}.insertAdjacentHTML('{ADJACENT_POSITIONS[method]}', html);"
    if method == InsertionMethod.REPLACE:
        return f"{query}.outerHTML = html;"
    return (
        f"const target = {query}; "
        "const wrapper = document.createElement('div'); "
        "target.parentNode.insertBefore(wrapper, target); "
        "wrapper.appendChild(target);"
    )


def _strategy(method: InsertionMethod, selector: str, reasoning: str) -> InsertionStrategy:
    return InsertionStrategy(
        method=method,
        target_selector=selector,
        reasoning=reasoning,
        example=example_snippet(method, selector)
    )


def _chain(strategies: List[InsertionStrategy]) -> InsertionStrategy:
    """First strategy is primary, the rest become its fallbacks (duplicates dropped)"""
    unique: List[InsertionStrategy] = []
    seen = set()
    for strategy in strategies:
        key = (strategy.method, strategy.target_selector)
        if key in seen:
            continue
        seen.add(key)
        unique.append(strategy)
    return replace(unique[0], fallbacks=tuple(unique[1:]))


class _Planner:
    """Anchor search for one (selector, hypothesis, document) triple"""

    def __init__(self, selector: str, hypothesis: str, document: Document, element: Tag):
        self.selector = selector
        self.hypothesis = hypothesis
        self.document = document
        self.element = element

    def anchor(self, node: Tag) -> str:
        if node is self.element:
            return self.self_anchor()
        best, _ = best_selector_for(node, self.document)
        return best.selector

    def self_anchor(self) -> str:
        """The resolved selector itself, unless only a text predicate makes it unique"""
        if ":contains(" not in self.selector and validate(self.selector, self.document).works:
            return self.selector
        best, _ = best_selector_for(self.element, self.document)
        return best.selector

    def generic(self) -> InsertionStrategy:
        return _strategy(
            InsertionMethod.APPEND, self.self_anchor(),
            "Append inside the resolved element"
        )

    def ratings(self) -> List[InsertionStrategy]:
        scope = card_ancestor(self.element) or self.element
        strategies = []
        title = find_title(scope)
        if title is not None:
            strategies.append(_strategy(
                InsertionMethod.BEFORE, self.anchor(title),
                "Ratings read best directly above the product title"
            ))
        info = find_info_container(scope)
        if info is not None:
            strategies.append(_strategy(
                InsertionMethod.PREPEND, self.anchor(info),
                "Prepend ratings to the card's info section"
            ))
        image = find_image(scope)
        if image is not None:
            strategies.append(_strategy(
                InsertionMethod.AFTER, self.anchor(image),
                "Place ratings right after the product image"
            ))
        return strategies

    def badges(self) -> List[InsertionStrategy]:
        scope = card_ancestor(self.element) or self.element
        strategies = []
        media = find_media_container(scope)
        if media is not None:
            strategies.append(_strategy(
                InsertionMethod.PREPEND, self.anchor(media),
                "Badges overlay the product media container"
            ))
        title = find_title(scope)
        if title is not None:
            strategies.append(_strategy(
                InsertionMethod.BEFORE, self.anchor(title),
                "Show the badge above the product title"
            ))
        return strategies

    def buttons(self) -> List[InsertionStrategy]:
        button = find_button(self.element) or self.element
        anchor = self.anchor(button)
        strategies = []
        if is_additive(self.hypothesis):
            strategies.append(_strategy(
                InsertionMethod.AFTER, anchor,
                "New call-to-action goes next to the existing button"
            ))
        else:
            strategies.append(_strategy(
                InsertionMethod.REPLACE, anchor,
                "Replace the existing button with the variant"
            ))
        parent = button.parent
        if isinstance(parent, Tag) and parent.name not in ("[document]", "html", "body"):
            strategies.append(_strategy(
                InsertionMethod.APPEND, self.anchor(parent),
                "Append to the button's container"
            ))
        return strategies

    def replacement(self) -> List[InsertionStrategy]:
        anchor = self.self_anchor()
        return [
            _strategy(InsertionMethod.REPLACE, anchor, "Hypothesis rewrites the existing element"),
            _strategy(InsertionMethod.WRAP, anchor, "Wrap the element when replacement is too invasive"),
        ]


def plan(selector: str, hypothesis: str, document: Document) -> InsertionStrategy:
    """
    Plan how to splice variant markup in around `selector`.

    Never raises: a selector that resolves to nothing gets a generic append
    to the selector as given.
    """
    category = classify(hypothesis)

    element = None
    try:
        matches = document.select(selector)
        element = matches[0] if matches else None
    except MalformedSelectorError as e:
        logger.warning(f"[PLANNER] Unusable selector, planning generic append: {e}")

    if element is None:
        return _strategy(
            InsertionMethod.APPEND, selector or "body",
            "Selector did not resolve; generic append"
        )

    planner = _Planner(selector, hypothesis, document, element)
    handlers = {
        HypothesisCategory.RATINGS: planner.ratings,
        HypothesisCategory.BADGES: planner.badges,
        HypothesisCategory.BUTTONS: planner.buttons,
        HypothesisCategory.REPLACEMENT: planner.replacement,
    }

    strategies: List[InsertionStrategy] = []
    handler = handlers.get(category)
    if handler:
        try:
            strategies = handler()
        except Exception as e:
            logger.warning(f"[PLANNER] {category.value} planning failed, using generic append: {e}")
            strategies = []

    strategies.append(planner.generic())
    result = _chain(strategies)
    logger.info(
        f"[PLANNER] {category.value}: {result.method.value} {result.target_selector!r} "
        f"(+{len(result.fallbacks)} fallbacks)"
    )
    return result
