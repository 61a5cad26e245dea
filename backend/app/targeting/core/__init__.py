"""
Targeting Core

Normalization, stability judgments, selector generation and validation,
insertion planning, and the resolver state machine that ties them together.
"""

from .document import Document, CrawlResult
from .html_normalizer import normalize, compact_for_prompt, TRUNCATION_MARKER
from .stability import is_stable_identifier, stable_classes, unstable_tokens
from .candidate_generator import CandidateSelector, SelectorStrategy, generate, best_selector_for
from .selector_validator import ValidationResult, validate
from .insertion_planner import InsertionMethod, InsertionStrategy, plan
from .element_context import ElementContext, build_element_context
from .resolver import HypothesisResolver, InjectionPoint, ElementType, ResolutionSource, ResolutionState

__all__ = [
    "Document",
    "CrawlResult",
    "normalize",
    "compact_for_prompt",
    "TRUNCATION_MARKER",
    "is_stable_identifier",
    "stable_classes",
    "unstable_tokens",
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
    "build_element_context",
    "HypothesisResolver",
    "InjectionPoint",
    "ElementType",
    "ResolutionSource",
    "ResolutionState",
]
