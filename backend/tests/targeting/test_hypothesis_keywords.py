"""
Unit tests for hypothesis keyword classification.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from targeting.core.hypothesis_keywords import (
    HypothesisCategory,
    classify,
    is_additive,
    is_distinctive_phrase,
    is_replacement,
    matched_categories,
    mentions,
)


class TestClassify:
    """Test change category precedence."""

    @pytest.mark.parametrize("hypothesis,expected", [
        ("Show star ratings under each product title", HypothesisCategory.RATINGS),
        ("Add a star rating button", HypothesisCategory.RATINGS),
        ("Add a bestseller badge to the CTA", HypothesisCategory.BADGES),
        ("Make the add to cart button green", HypothesisCategory.BUTTONS),
        ("Change the product description copy", HypothesisCategory.REPLACEMENT),
        ("Make the price bolder", HypothesisCategory.REPLACEMENT),
        ("Add urgency messaging near the price", HypothesisCategory.GENERIC),
        ("Improve trust on this page", HypothesisCategory.GENERIC),
        ("", HypothesisCategory.GENERIC),
    ])
    def test_classify(self, hypothesis, expected):
        assert classify(hypothesis) == expected

    def test_additive_text_change_is_not_replacement(self):
        assert classify("Show new text above the fold") == HypothesisCategory.GENERIC


class TestMatching:
    """Whole-word, case-insensitive matching."""

    def test_matched_categories_in_search_order(self):
        hits = matched_categories("Put REVIEWS next to the price and the Buy Now button")

        assert hits == [HypothesisCategory.RATINGS, HypothesisCategory.BUTTONS, HypothesisCategory.PRICE]

    def test_whole_words_only(self):
        assert not mentions("Restart the starter kit carousel", HypothesisCategory.RATINGS)
        assert not mentions("Use a vintage font", HypothesisCategory.BADGES)
        assert mentions("Add a sale tag", HypothesisCategory.BADGES)

    def test_add_to_cart_is_not_additive(self):
        assert not is_additive("Make the add to cart button bigger")
        assert not is_additive("Restyle the Add-to-Bag CTA")
        assert is_additive("Add a second add to cart button")

    def test_replacement_words(self):
        assert is_replacement("Rewrite the headline")
        assert not is_replacement("Add a badge")
        assert not is_replacement("")


class TestDistinctivePhrases:
    """Page texts worth matching against a hypothesis."""

    @pytest.mark.parametrize("phrase", ["Trail Runner", "Add to cart", "Buy Now", "Widget"])
    def test_distinctive(self, phrase):
        assert is_distinctive_phrase(phrase)

    @pytest.mark.parametrize("phrase", ["New", "the page", "Reviews", "Add", "This product", "", "$89.00"])
    def test_common(self, phrase):
        assert not is_distinctive_phrase(phrase)
