"""
Hypothesis Resolver

Turns a free-text experiment hypothesis plus a crawled page into validated
InjectionPoints. Runs as an explicit state machine:

    START -> AI_GUESS -> VALIDATE -> ACCEPTED | FALLBACK_SEARCH
    FALLBACK_SEARCH -> TEXT_MATCH | STRUCTURAL_GUESS
    TEXT_MATCH -> ACCEPTED | STRUCTURAL_GUESS
    STRUCTURAL_GUESS -> ACCEPTED | NOT_FOUND
    ACCEPTED -> FOUND

Every handler returns the next state and the driver loop is bounded, so
resolution always terminates. "Nothing found" is an empty list, never an
exception; only a missing document raises.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from bs4 import Tag

from ..brain.prompts import build_element_prompt
from ..brain.responses import AIElementResponse, ElementFound, ElementNotFound, decode, output_schema
from ..config import ResolverConfig
from ..errors import MalformedSelectorError, NoDocumentError
from .candidate_generator import (
    CandidateSelector,
    RankedCandidate,
    SelectorStrategy,
    STRATEGY_WEIGHTS,
    MAX_TEXT_PREDICATE_CHARS,
    best_selector_for,
    contains_selector,
)
from .document import CrawlResult, Document, collapse_text
from .element_context import ElementContext, build_element_context
from .html_normalizer import compact_for_prompt
from .hypothesis_keywords import HypothesisCategory, is_distinctive_phrase, matched_categories
from .insertion_planner import (
    BUTTON_SELECTOR,
    CARD_SELECTORS,
    InsertionStrategy,
    find_info_container,
    find_media_container,
    plan,
)
from .selector_validator import validate

logger = logging.getLogger(__name__)

AICallback = Callable[[str, Dict[str, Any]], Awaitable[Union[Dict[str, Any], str]]]


class ResolutionState(Enum):
    START = "start"
    AI_GUESS = "ai_guess"
    VALIDATE = "validate"
    ACCEPTED = "accepted"
    FALLBACK_SEARCH = "fallback_search"
    TEXT_MATCH = "text_match"
    STRUCTURAL_GUESS = "structural_guess"
    FOUND = "found"
    NOT_FOUND = "not_found"


TERMINAL_STATES = {ResolutionState.FOUND, ResolutionState.NOT_FOUND}

# Longest legal path is 7 states; anything beyond means a broken transition
MAX_STEPS = 12

# AI selectors tried per answer (primary + alternatives)
MAX_AI_SELECTORS = 10

MIN_PHRASE_CHARS = 3
MAX_PHRASE_CHARS = 120


class ResolutionSource(Enum):
    """Which stage produced an injection point"""
    AI = "ai"
    AI_ALTERNATIVE = "ai-alternative"
    TEXT_MATCH = "text-match"
    KEYWORD = "keyword"


class ElementType(Enum):
    BUTTON = "button"
    TEXT = "text"
    IMAGE = "image"
    CONTAINER = "container"
    FORM = "form"
    NAVIGATION = "navigation"
    PRICE = "price"
    TITLE = "title"
    DESCRIPTION = "description"


@dataclass(frozen=True)
class InjectionPoint:
    """A validated place on the page where variant markup can go"""
    selector: str
    type: ElementType
    confidence: float
    alternative_selectors: Tuple[str, ...]
    reasoning: str
    hypothesis: str
    url: str
    source: ResolutionSource
    insertion_strategy: Optional[InsertionStrategy] = None
    element_context: Optional[ElementContext] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "type": self.type.value,
            "confidence": self.confidence,
            "alternativeSelectors": list(self.alternative_selectors),
            "reasoning": self.reasoning,
            "hypothesis": self.hypothesis,
            "url": self.url,
            "source": self.source.value,
            "insertionStrategy": self.insertion_strategy.to_dict() if self.insertion_strategy else None,
            "elementContext": self.element_context.to_dict() if self.element_context else None,
        }


@dataclass
class _Acceptance:
    element: Tag
    selector: str
    confidence: float
    reasoning: str
    source: ResolutionSource
    ranked: List[RankedCandidate] = field(default_factory=list)
    category: Optional[HypothesisCategory] = None


@dataclass
class _Resolution:
    """Mutable state of one resolve() call; never shared between calls"""
    hypothesis: str
    url: str
    raw_html: str
    document: Optional[Document] = None
    answer: Optional[AIElementResponse] = None
    text_targets: List[Tuple[str, bool]] = field(default_factory=list)
    accepted: Optional[_Acceptance] = None
    points: List[InjectionPoint] = field(default_factory=list)
    visited: List[ResolutionState] = field(default_factory=list)


@dataclass
class ResolutionOutcome:
    points: List[InjectionPoint]
    states: List[ResolutionState]


# ==================== Text Search ====================

_QUOTED_PHRASE = re.compile(r'"([^"]+)"|“([^”]+)”|(?<![\w])\'([^\']+)\'(?![\w])')
_HAS_LETTER = re.compile(r"[^\W\d_]")

# Inline wrappers that usually sit inside the element a user means
_INLINE_TAGS = {"span", "strong", "em", "b", "i", "small", "mark"}
_INTERACTIVE_TAGS = {"button", "a", "label", "summary"}


def quoted_phrases(hypothesis: str) -> List[str]:
    phrases = []
    for match in _QUOTED_PHRASE.finditer(hypothesis or ""):
        phrase = collapse_text(next(g for g in match.groups() if g is not None))
        if phrase and phrase not in phrases:
            phrases.append(phrase)
    return phrases


def _text_equals(candidate: str, target: str, fold: bool) -> bool:
    return candidate == target or (fold and candidate.casefold() == target.casefold())


def find_text_element(document: Document, text: str, fold: bool = False) -> Optional[Tag]:
    """
    First element (document order) whose trimmed text equals `text` and no
    child of which carries the same text.
    """
    target = collapse_text(text)
    if not target:
        return None
    for element in document.elements():
        if not _text_equals(document.text_of(element), target, fold):
            continue
        if any(
            _text_equals(document.text_of(child), target, fold)
            for child in element.find_all(True, recursive=False)
        ):
            continue
        return _promote_interactive(element, document)
    return None


def _promote_interactive(element: Tag, document: Document) -> Tag:
    """`<button><span>Buy</span></button>` resolves to the button"""
    node = element
    text = document.text_of(element)
    while node.name in _INLINE_TAGS:
        parent = node.parent
        if not isinstance(parent, Tag) or document.text_of(parent) != text:
            break
        if parent.name in _INTERACTIVE_TAGS or parent.get("role") == "button":
            return parent
        node = parent
    return element


def phrases_in_hypothesis(document: Document, hypothesis: str) -> List[str]:
    """Distinctive element texts that appear as whole phrases inside the hypothesis, longest first"""
    lowered = (hypothesis or "").casefold()
    if not lowered:
        return []
    found = []
    seen = set()
    for element in document.elements():
        text = document.text_of(element)
        key = text.casefold()
        if key in seen or not (MIN_PHRASE_CHARS <= len(text) <= MAX_PHRASE_CHARS):
            continue
        seen.add(key)
        if not _HAS_LETTER.search(text) or not is_distinctive_phrase(text):
            continue
        if re.search(r"(?<!\w)" + re.escape(key) + r"(?!\w)", lowered):
            found.append(text)
    return sorted(found, key=len, reverse=True)


# ==================== Structural Guesses ====================

CATEGORY_SELECTORS: Dict[HypothesisCategory, List[str]] = {
    HypothesisCategory.RATINGS: [
        '[class*="rating"]', '[class*="review"]', '[class*="stars"]', '[itemprop="aggregateRating"]',
    ],
    HypothesisCategory.BADGES: [
        '[class*="badge"]', '[class*="ribbon"]', '[class*="sticker"]',
    ],
    HypothesisCategory.PRICE: [
        '[itemprop="price"]', '[class*="price"]',
    ],
    HypothesisCategory.TITLE: [
        "h1", '[class*="product-title"]', '[class*="product__title"]', '[class*="title"]', "h2",
    ],
    HypothesisCategory.IMAGE: [
        '[class*="media"] img', '[class*="hero"] img', "main img", "img", "picture",
    ],
    HypothesisCategory.NAVIGATION: [
        "nav", '[role="navigation"]', "header ul",
    ],
    HypothesisCategory.FORM: [
        'form[action*="contact"]', '[class*="newsletter"] form', "form", '[class*="newsletter"]',
    ],
}

_PURCHASE_WORDS = re.compile(r"add to cart|add-to-cart|buy|checkout|shop now|purchase|cart", re.I)


def _first_match(document: Document, selectors: List[str]) -> Optional[Tag]:
    for selector in selectors:
        try:
            matches = document.select(selector)
        except MalformedSelectorError as e:
            logger.debug(f"[RESOLVER] {e}")
            continue
        if matches:
            return matches[0]
    return None


def _first_card(document: Document) -> Optional[Tag]:
    card = _first_match(document, CARD_SELECTORS)
    if card is not None and card.name in ("html", "body"):
        return None
    return card


def guess_element(document: Document, category: HypothesisCategory) -> Optional[Tag]:
    """Locate the element a hypothesis of `category` most likely refers to"""
    if category == HypothesisCategory.BUTTONS:
        buttons = document.select(BUTTON_SELECTOR)
        for button in buttons:
            haystack = f"{document.text_of(button)} {' '.join(button.get('class') or [])} {button.get('name', '')}"
            if _PURCHASE_WORDS.search(haystack):
                return button
        return buttons[0] if buttons else None

    existing = _first_match(document, CATEGORY_SELECTORS.get(category, []))
    if existing is not None or category not in (HypothesisCategory.RATINGS, HypothesisCategory.BADGES):
        return existing

    # Nothing of the kind on the page yet: anchor inside the first product card
    card = _first_card(document)
    if card is None:
        return None
    if category == HypothesisCategory.RATINGS:
        return find_info_container(card) or card
    return find_media_container(card) or card


# ==================== Type Guess ====================

def guess_element_type(element: Tag, category: Optional[HypothesisCategory] = None) -> ElementType:
    name = element.name
    classes = " ".join(element.get("class") or []).lower()
    if name == "button" or element.get("role") == "button" or (
        name == "input" and element.get("type") in ("submit", "button")
    ) or (name == "a" and ("btn" in classes or "button" in classes)):
        return ElementType.BUTTON
    if name in ("form", "input", "select", "textarea"):
        return ElementType.FORM
    if name in ("img", "picture", "figure", "svg", "video") or "image" in classes or "media" in classes:
        return ElementType.IMAGE
    if name == "nav" or element.get("role") == "navigation":
        return ElementType.NAVIGATION
    if "price" in classes or element.get("itemprop") == "price":
        return ElementType.PRICE
    if name in ("h1", "h2", "h3", "h4", "h5", "h6") or "title" in classes or "heading" in classes:
        return ElementType.TITLE
    if name == "p" or "description" in classes or "desc" in classes:
        return ElementType.DESCRIPTION
    if category == HypothesisCategory.NAVIGATION:
        return ElementType.NAVIGATION
    if name in ("span", "a", "label", "strong", "em", "li", "small", "b"):
        return ElementType.TEXT
    return ElementType.CONTAINER


# ==================== Resolver ====================

class HypothesisResolver:
    """
    Resolves hypotheses to injection points.

    Holds only configuration and the AI callback; each call works on its own
    Document, so concurrent resolve() calls are safe.
    """

    def __init__(self, ai_callback: Optional[AICallback] = None, config: Optional[ResolverConfig] = None):
        """
        Args:
            ai_callback: async (prompt, output_schema) -> dict | str, e.g.
                AIGateway.complete. Optional; without it resolution is local.
            config: Limits and factors, ResolverConfig.from_env() by default
        """
        self.ai_callback = ai_callback
        self.config = config or ResolverConfig.from_env()
        self._handlers = {
            ResolutionState.START: self._start,
            ResolutionState.AI_GUESS: self._ai_guess,
            ResolutionState.VALIDATE: self._validate,
            ResolutionState.FALLBACK_SEARCH: self._fallback_search,
            ResolutionState.TEXT_MATCH: self._text_match,
            ResolutionState.STRUCTURAL_GUESS: self._structural_guess,
            ResolutionState.ACCEPTED: self._accepted,
        }

    async def resolve(self, hypothesis: str, html: Optional[str], url: str = "") -> List[InjectionPoint]:
        """
        Find where `hypothesis` should be applied on the page.

        Returns:
            Injection points, possibly empty

        Raises:
            NoDocumentError: `html` is empty
        """
        outcome = await self.resolve_detailed(hypothesis, html, url)
        return outcome.points

    async def resolve_crawl(self, hypothesis: str, crawl: CrawlResult) -> List[InjectionPoint]:
        """Resolve against crawler output; errored or empty crawls raise NoDocumentError"""
        if crawl.error:
            raise NoDocumentError(f"Crawler reported an error: {crawl.error}", url=crawl.url)
        return await self.resolve(hypothesis, crawl.html, crawl.url)

    async def resolve_detailed(self, hypothesis: str, html: Optional[str], url: str = "") -> ResolutionOutcome:
        """Like resolve(), also reporting the states visited"""
        if not html or not html.strip():
            raise NoDocumentError(url=url)

        ctx = _Resolution(hypothesis=hypothesis or "", url=url, raw_html=html)
        state = ResolutionState.START
        for _ in range(MAX_STEPS):
            ctx.visited.append(state)
            if state in TERMINAL_STATES:
                break
            state = await self._handlers[state](ctx)
        else:
            logger.error(f"[RESOLVER] No terminal state after {MAX_STEPS} steps, giving up")
            ctx.points = []
            ctx.visited.append(ResolutionState.NOT_FOUND)

        logger.info(
            f"[RESOLVER] {' -> '.join(s.name for s in ctx.visited)} "
            f"({len(ctx.points)} injection point(s)) for {hypothesis!r}"
        )
        return ResolutionOutcome(points=list(ctx.points), states=list(ctx.visited))

    # ==================== States ====================

    async def _start(self, ctx: _Resolution) -> ResolutionState:
        ctx.document = Document(ctx.raw_html, max_chars=self.config.document_max_chars)
        if not ctx.document.markup:
            logger.info("[RESOLVER] Document is empty after normalization")
            return ResolutionState.NOT_FOUND
        if ctx.document.is_error_page():
            logger.warning(f"[RESOLVER] {ctx.url or 'Page'} is a browser error page, nothing to target")
            return ResolutionState.NOT_FOUND
        if ctx.document.truncated:
            logger.info("[RESOLVER] Document was truncated; the target may lie beyond the cut")
        return ResolutionState.AI_GUESS

    async def _ai_guess(self, ctx: _Resolution) -> ResolutionState:
        if not self.ai_callback or not self.config.enable_ai:
            ctx.answer = ElementNotFound(reason="AI disabled")
            return ResolutionState.VALIDATE

        prompt = build_element_prompt(
            ctx.hypothesis,
            compact_for_prompt(ctx.raw_html, self.config.prompt_max_chars),
            ctx.url
        )
        try:
            raw = await asyncio.wait_for(
                self.ai_callback(prompt, output_schema()),
                timeout=self.config.ai_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"[RESOLVER] AI guess timed out after {self.config.ai_timeout_seconds}s")
            ctx.answer = ElementNotFound(reason="AI timed out")
            return ResolutionState.VALIDATE
        except Exception as e:
            logger.warning(f"[RESOLVER] AI guess failed: {e}")
            ctx.answer = ElementNotFound(reason=f"AI unavailable: {e}")
            return ResolutionState.VALIDATE

        ctx.answer = decode(raw)
        return ResolutionState.VALIDATE

    async def _validate(self, ctx: _Resolution) -> ResolutionState:
        answer = ctx.answer
        if isinstance(answer, ElementNotFound):
            logger.info(f"[RESOLVER] AI found nothing: {answer.reason or 'no reason given'}")
            return ResolutionState.FALLBACK_SEARCH
        if not isinstance(answer, ElementFound):
            logger.warning(f"[RESOLVER] Ignoring unexpected AI answer {type(answer).__name__}")
            ctx.answer = ElementNotFound(reason="unexpected answer")
            return ResolutionState.FALLBACK_SEARCH

        attempts = [(answer.css_selector, ResolutionSource.AI)]
        attempts += [(alt, ResolutionSource.AI_ALTERNATIVE) for alt in answer.alternative_selectors]
        seen = set()

        for selector, source in attempts[:MAX_AI_SELECTORS]:
            if selector in seen:
                continue
            seen.add(selector)

            result = validate(selector, ctx.document)
            if result.works and result.confidence > 0:
                element = ctx.document.select(selector)[0]
                ctx.accepted = _Acceptance(
                    element=element,
                    selector=selector,
                    confidence=result.confidence,
                    reasoning=answer.reasoning or f"AI selected {selector} ({result.reason})",
                    source=source
                )
                return ResolutionState.ACCEPTED

            logger.info(f"[RESOLVER] AI selector {selector!r} rejected: {result.reason}")

            if result.match_count > 1 and answer.element_text:
                target = collapse_text(answer.element_text)
                narrowed = [
                    el for el in ctx.document.select(selector)
                    if ctx.document.text_of(el) == target
                ]
                if len(narrowed) == 1:
                    ctx.accepted = self._accept_element(
                        ctx, narrowed[0], source,
                        f"{selector} matched {result.match_count} elements; kept the one reading {target!r}",
                        text=target
                    )
                    return ResolutionState.ACCEPTED

        return ResolutionState.FALLBACK_SEARCH

    async def _fallback_search(self, ctx: _Resolution) -> ResolutionState:
        targets: List[Tuple[str, bool]] = []
        if isinstance(ctx.answer, ElementFound) and ctx.answer.element_text:
            targets.append((collapse_text(ctx.answer.element_text), False))
        for phrase in quoted_phrases(ctx.hypothesis):
            targets.append((phrase, True))
        for phrase in phrases_in_hypothesis(ctx.document, ctx.hypothesis):
            targets.append((phrase, True))

        deduped: List[Tuple[str, bool]] = []
        for text, fold in targets:
            if text and all(text.casefold() != t.casefold() for t, _ in deduped):
                deduped.append((text, fold))
        ctx.text_targets = deduped

        if deduped:
            return ResolutionState.TEXT_MATCH
        return ResolutionState.STRUCTURAL_GUESS

    async def _text_match(self, ctx: _Resolution) -> ResolutionState:
        for text, fold in ctx.text_targets:
            element = find_text_element(ctx.document, text, fold=fold)
            if element is None:
                continue
            ctx.accepted = self._accept_element(
                ctx, element, ResolutionSource.TEXT_MATCH,
                f"Element text matches {text!r}",
                text=ctx.document.text_of(element)
            )
            return ResolutionState.ACCEPTED
        logger.info(f"[RESOLVER] No element carries any of {len(ctx.text_targets)} target text(s)")
        return ResolutionState.STRUCTURAL_GUESS

    async def _structural_guess(self, ctx: _Resolution) -> ResolutionState:
        for category in matched_categories(ctx.hypothesis):
            element = guess_element(ctx.document, category)
            if element is None:
                continue
            accepted = self._accept_element(
                ctx, element, ResolutionSource.KEYWORD,
                f"Hypothesis mentions {category.value}; picked the most likely {category.value} element"
            )
            accepted.confidence = round(accepted.confidence * self.config.keyword_confidence_factor, 4)
            accepted.category = category
            if accepted.confidence <= 0:
                continue
            ctx.accepted = accepted
            return ResolutionState.ACCEPTED
        return ResolutionState.NOT_FOUND

    async def _accepted(self, ctx: _Resolution) -> ResolutionState:
        accepted = ctx.accepted
        document = ctx.document

        ranked = accepted.ranked
        if not ranked:
            best, rest = best_selector_for(accepted.element, document)
            ranked = [best] + rest
        alternatives = []
        for item in ranked:
            if item.selector != accepted.selector and item.selector not in alternatives:
                alternatives.append(item.selector)
        alternatives = alternatives[:self.config.max_alternatives]

        point = InjectionPoint(
            selector=accepted.selector,
            type=guess_element_type(accepted.element, accepted.category),
            confidence=accepted.confidence,
            alternative_selectors=tuple(alternatives),
            reasoning=accepted.reasoning,
            hypothesis=ctx.hypothesis,
            url=ctx.url,
            source=accepted.source,
            insertion_strategy=plan(accepted.selector, ctx.hypothesis, document),
            element_context=build_element_context(accepted.element),
        )
        ctx.points = [point]
        logger.info(
            f"[RESOLVER] Accepted {point.selector!r} via {point.source.value} "
            f"(confidence {point.confidence:.2f}, {len(alternatives)} alternatives)"
        )
        return ResolutionState.FOUND

    # ==================== Helpers ====================

    def _accept_element(
        self,
        ctx: _Resolution,
        element: Tag,
        source: ResolutionSource,
        reasoning: str,
        text: str = ""
    ) -> _Acceptance:
        """Pick the best working selector for an already located element"""
        extra = []
        if text and len(text) <= MAX_TEXT_PREDICATE_CHARS:
            extra.append(CandidateSelector(
                selector=contains_selector(element.name, text),
                strategy=SelectorStrategy.TEXT_MATCH,
                weight=STRATEGY_WEIGHTS[SelectorStrategy.TEXT_MATCH]
            ))
        best, rest = best_selector_for(element, ctx.document, extra=extra)
        logger.debug(f"[RESOLVER] Best selector for <{element.name}>: {best.selector!r} ({best.confidence:.2f})")
        return _Acceptance(
            element=element,
            selector=best.selector,
            confidence=best.confidence,
            reasoning=reasoning,
            source=source,
            ranked=[best] + rest
        )
