"""
Hypothesis Keywords

Maps free-text experiment hypotheses onto the element categories the
resolver searches for and the change categories the insertion planner plans
for. Matching is whole-word and case-insensitive.
"""

import re
from enum import Enum
from typing import Dict, List, Pattern


class HypothesisCategory(Enum):
    RATINGS = "ratings"
    BADGES = "badges"
    BUTTONS = "buttons"
    PRICE = "price"
    TITLE = "title"
    IMAGE = "image"
    NAVIGATION = "navigation"
    FORM = "form"
    REPLACEMENT = "content-replacement"
    GENERIC = "generic"


CATEGORY_KEYWORDS: Dict[HypothesisCategory, List[str]] = {
    HypothesisCategory.RATINGS: [
        "rating", "ratings", "review", "reviews", "star", "stars", "testimonial",
        "testimonials", "social proof", "feedback score",
    ],
    HypothesisCategory.BADGES: [
        "badge", "badges", "label", "labels", "ribbon", "sticker", "tag", "tags",
        "bestseller", "best seller", "new arrival", "limited edition",
    ],
    HypothesisCategory.BUTTONS: [
        "button", "buttons", "cta", "ctas", "call to action", "call-to-action",
        "add to cart", "add-to-cart", "buy now", "checkout", "shop now",
    ],
    HypothesisCategory.PRICE: [
        "price", "prices", "pricing", "cost", "discount", "sale price", "compare at",
        "savings",
    ],
    HypothesisCategory.TITLE: [
        "title", "titles", "heading", "headings", "headline", "product name",
    ],
    HypothesisCategory.IMAGE: [
        "image", "images", "photo", "photos", "picture", "pictures", "thumbnail",
        "gallery", "hero image", "banner",
    ],
    HypothesisCategory.NAVIGATION: [
        "nav", "navigation", "menu", "breadcrumb", "breadcrumbs", "header links",
    ],
    HypothesisCategory.FORM: [
        "form", "newsletter", "signup", "sign up", "subscribe", "email field",
        "input", "search box",
    ],
}

# Hypotheses that rewrite existing content instead of adding new markup
REPLACEMENT_KEYWORDS = [
    "change", "replace", "rewrite", "reword", "rename", "swap", "update",
    "copy", "wording", "text", "bolder", "bigger", "larger", "smaller",
    "color", "colour", "prominent", "highlight", "emphasize", "restyle",
]

ADDITIVE_KEYWORDS = [
    "add", "adding", "insert", "include", "introduce", "show", "display",
    "new", "extra", "another", "second", "secondary", "below", "above",
    "next to", "beside",
]

# Words that say nothing about which element is meant
COMMON_WORDS = frozenset([
    "a", "an", "the", "this", "that", "these", "those", "it", "its", "our", "your",
    "to", "of", "for", "and", "or", "on", "in", "at", "by", "with", "from", "into",
    "is", "be", "more", "less", "all", "any", "some", "very", "so",
    "make", "feel", "look", "looks", "use", "try", "test", "improve", "overall",
    "page", "pages", "site", "store", "product", "products", "item", "items",
    "section", "area", "top", "bottom", "left", "right", "here", "there",
])

# Planner precedence when a hypothesis hits several change categories
PLANNING_PRECEDENCE = [
    HypothesisCategory.RATINGS,
    HypothesisCategory.BADGES,
    HypothesisCategory.BUTTONS,
]

# Order the resolver tries structural guesses in
SEARCH_ORDER = [
    HypothesisCategory.RATINGS,
    HypothesisCategory.BADGES,
    HypothesisCategory.BUTTONS,
    HypothesisCategory.PRICE,
    HypothesisCategory.TITLE,
    HypothesisCategory.IMAGE,
    HypothesisCategory.NAVIGATION,
    HypothesisCategory.FORM,
]


def _word_pattern(words: List[str]) -> Pattern:
    alternatives = sorted((re.escape(w) for w in words), key=len, reverse=True)
    return re.compile(r"(?<![\w-])(?:" + "|".join(alternatives) + r")(?![\w-])", re.I)


_CATEGORY_PATTERNS = {category: _word_pattern(words) for category, words in CATEGORY_KEYWORDS.items()}
_REPLACEMENT_PATTERN = _word_pattern(REPLACEMENT_KEYWORDS)
_ADDITIVE_PATTERN = _word_pattern(ADDITIVE_KEYWORDS)
_ADD_TO_CART = re.compile(r"add[\s-]+to[\s-]+(?:cart|bag|basket)", re.I)


def matched_categories(hypothesis: str) -> List[HypothesisCategory]:
    """Element categories the hypothesis mentions, in search order"""
    if not hypothesis:
        return []
    return [c for c in SEARCH_ORDER if _CATEGORY_PATTERNS[c].search(hypothesis)]


def mentions(hypothesis: str, category: HypothesisCategory) -> bool:
    pattern = _CATEGORY_PATTERNS.get(category)
    return bool(hypothesis and pattern and pattern.search(hypothesis))


def is_additive(hypothesis: str) -> bool:
    """True when the hypothesis adds markup rather than changing what is there"""
    if not hypothesis:
        return False
    # "add to cart" names a button, it does not ask for new markup
    return bool(_ADDITIVE_PATTERN.search(_ADD_TO_CART.sub(" ", hypothesis)))


def is_replacement(hypothesis: str) -> bool:
    return bool(hypothesis and _REPLACEMENT_PATTERN.search(hypothesis))


def classify(hypothesis: str) -> HypothesisCategory:
    """
    Change category for insertion planning.

    Ratings beat badges beat buttons; anything else that edits existing
    content is a replacement, the rest is generic.
    """
    hits = matched_categories(hypothesis)
    for category in PLANNING_PRECEDENCE:
        if category in hits:
            return category
    if is_replacement(hypothesis) and not is_additive(hypothesis):
        return HypothesisCategory.REPLACEMENT
    return HypothesisCategory.GENERIC


_WORD = re.compile(r"[^\W\d_]+")
_KEYWORD_WORDS = frozenset(
    word
    for words in [*CATEGORY_KEYWORDS.values(), REPLACEMENT_KEYWORDS, ADDITIVE_KEYWORDS]
    for word in words
    if _WORD.fullmatch(word)
)


def is_distinctive_phrase(phrase: str) -> bool:
    """
    True when a page text names a specific element.

    "Trail Runner" or "Add to cart" does; "New", "the page" or "Reviews" only
    repeat common words and keywords the category search already handles.
    """
    words = _WORD.findall((phrase or "").casefold())
    return any(w not in COMMON_WORDS and w not in _KEYWORD_WORDS for w in words)
