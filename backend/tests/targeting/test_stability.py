"""
Unit tests for the selector stability classifier.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from targeting.core.stability import (
    generated_reason,
    is_stable_identifier,
    is_utility_class,
    most_stable_class,
    selector_tokens,
    stability_rank,
    stable_classes,
    unstable_tokens,
)


class TestGeneratedIdentifiers:
    """Tokens produced by builds, templates and component libraries."""

    @pytest.mark.parametrize("value", [
        "",
        "   ",
        "12345",
        "deadbeef12",
        "3f2b1c9a",
        "550e8400-e29b-41d4-a716-446655440000",
        "product-1234567890",
        "template--25767798276440__header",
        "shopify-section-template--123__main",
        "ember123",
        "ui-id-4",
        "radix-menu",
        "headlessui-menu-button-1",
        "mui-12",
        ":r1:",
        "ng-star-inserted",
        "vue-component",
        "svelte-1xyz2ab",
        "css-1q2w3e4",
        "sc-bdVaJa",
        "item-12-34",
        "slide-3",
        "ab3de5fg7hj9kl1mn3pq",
        "ASG5LandCMk13OFhJQ",
    ])
    def test_unstable_for_both_kinds(self, value):
        assert not is_stable_identifier(value, "class")
        assert not is_stable_identifier(value, "id")

    def test_generated_reason_names_the_shape(self):
        assert generated_reason("12345") == "numeric"
        assert generated_reason("template--25767798276440__header") != ""
        assert generated_reason("card") == ""


class TestSemanticIdentifiers:
    """Author-written names."""

    @pytest.mark.parametrize("value", [
        "card",
        "card__heading",
        "product-card--featured",
        "price--sale",
        "main_nav",
        "btn-primary",
    ])
    def test_stable_classes(self, value):
        assert is_stable_identifier(value, "class")

    def test_long_plain_word_is_stable(self):
        assert is_stable_identifier("productrecommendations", "class")
        assert generated_reason("productrecommendations") == ""

    def test_camel_case_id_is_stable(self):
        assert is_stable_identifier("MainContent", "id")

    def test_camel_case_class_is_not_semantic(self):
        assert not is_stable_identifier("MainContent", "class")

    def test_unstable_pattern_wins_over_semantic_shape(self):
        """`template--123` is valid kebab/BEM but still generated."""
        assert not is_stable_identifier("template--123", "class")

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            is_stable_identifier("card", "tag")


class TestClassHelpers:
    """Test class filtering and ranking."""

    def test_stable_classes_filters_and_dedupes(self):
        assert stable_classes(["card", "css-1q2w3e4", "card", "card__title"]) == ["card", "card__title"]

    def test_utility_classes(self):
        assert is_utility_class("mt-4")
        assert is_utility_class("flex")
        assert is_utility_class("text-center")
        assert not is_utility_class("product-card")

    def test_rank_prefers_bem(self):
        assert stability_rank("card__title") > stability_rank("product-card") > stability_rank("card")
        assert stability_rank("mt-4") < stability_rank("card")
        assert stability_rank("ember12") < stability_rank("mt-4")

    def test_most_stable_class(self):
        assert most_stable_class(["mt-4", "card", "card__title"]) == "card__title"
        assert most_stable_class(["mt-4", "flex"]) == ""
        assert most_stable_class([]) == ""


class TestSelectorTokens:
    """Test id/class extraction from selectors."""

    def test_extracts_ids_and_classes(self):
        tokens = selector_tokens('div.card > #main h3.card__heading[id="hero"]')

        assert ("class", "card") in tokens
        assert ("class", "card__heading") in tokens
        assert ("id", "main") in tokens
        assert ("id", "hero") in tokens

    def test_ignores_text_inside_quotes(self):
        tokens = selector_tokens('button:contains("v1.2 #new")')

        assert tokens == []

    def test_unstable_tokens(self):
        assert unstable_tokens("#template--25767798276440__header") == ["template--25767798276440__header"]
        assert unstable_tokens("div.card .css-1q2w3e4") == ["css-1q2w3e4"]
        assert unstable_tokens("h3.card__heading") == []

    def test_extracts_attribute_values(self):
        tokens = selector_tokens('button[data-testid="buy-now"][aria-label=\'Say "hi"\'], div[role=dialog]')

        assert ("value", "buy-now") in tokens
        assert ("value", 'Say "hi"') in tokens
        assert ("value", "dialog") in tokens

    def test_generated_attribute_values_are_unstable(self):
        assert unstable_tokens('[data-id="8493020193847"]') == ["8493020193847"]
        assert unstable_tokens("div[data-product-id^='550e8400-e29b-41d4-a716-446655440000']") == [
            "550e8400-e29b-41d4-a716-446655440000"
        ]

    def test_free_text_attribute_values_are_stable(self):
        assert unstable_tokens('button[aria-label="Add to cart"]') == []
        assert unstable_tokens('nav[aria-label="Pack of 12 items"]') == []
        assert unstable_tokens('[data-testid="add-to-cart"]') == []
