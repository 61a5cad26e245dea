"""
Storefront Targeting
====================

Resolves free-text A/B test hypotheses to validated, stable CSS selectors
on a crawled storefront page, with confidence, fallbacks and an insertion
plan for each target.

Usage:
    resolver = HypothesisResolver(ai_callback=AIGateway().complete)
    points = await resolver.resolve("make the CTA more prominent", html, url)
"""

from .config import ResolverConfig, GatewayConfig
from .errors import TargetingError, NoDocumentError, AIUnavailableError, MalformedSelectorError
from .core import (
    Document,
    CrawlResult,
    normalize,
    is_stable_identifier,
    CandidateSelector,
    SelectorStrategy,
    generate,
    best_selector_for,
    ValidationResult,
    validate,
    InsertionMethod,
    InsertionStrategy,
    plan,
    ElementContext,
    HypothesisResolver,
    InjectionPoint,
    ElementType,
    ResolutionSource,
    ResolutionState,
)
from .brain import AIGateway, ElementFound, ElementNotFound
from .knowledge import TTLCache

__version__ = "0.1.0"

__all__ = [
    "ResolverConfig",
    "GatewayConfig",
    "TargetingError",
    "NoDocumentError",
    "AIUnavailableError",
    "MalformedSelectorError",
    "Document",
    "CrawlResult",
    "normalize",
    "is_stable_identifier",
    "CandidateSelector",
    "SelectorStrategy",
    "generate",
    "best_selector_for",
    "ValidationResult",
    "validate",
    "InsertionMethod",
    "InsertionStrategy",
    "plan",
    "ElementContext",
    "HypothesisResolver",
    "InjectionPoint",
    "ElementType",
    "ResolutionSource",
    "ResolutionState",
    "AIGateway",
    "ElementFound",
    "ElementNotFound",
    "TTLCache",
]
