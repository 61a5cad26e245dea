"""
Unit tests for the Document snapshot.
"""

import warnings

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from targeting.core.document import CrawlResult, Document, to_query_selector
from targeting.errors import MalformedSelectorError, NoDocumentError


class TestQuerying:
    """Test selector execution."""

    def test_select_in_document_order(self, product_document):
        titles = product_document.select("h3.product-card__title")

        assert [product_document.text_of(t) for t in titles] == ["Road Runner", "City Walker"]

    def test_count(self, product_document):
        assert product_document.count("img") == 3
        assert product_document.count(".nonexistent-class") == 0

    def test_contains_predicate(self, two_buttons_html):
        document = Document(two_buttons_html)

        matches = document.select('button:contains("Buy Now")')

        assert len(matches) == 1
        assert document.text_of(matches[0]) == "Buy Now"

    def test_contains_rewrite_leaves_soup_syntax_alone(self):
        assert to_query_selector('p:contains("a")') == 'p:-soup-contains("a")'
        assert to_query_selector('p:-soup-contains("a")') == 'p:-soup-contains("a")'
        assert to_query_selector('div.card button:contains("Buy")') == 'div.card button:-soup-contains("Buy")'

    def test_text_predicate_uses_current_soupsieve_syntax(self):
        document = Document("<main><p>Hi</p><p>Bye</p></main>")

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            matches = document.select('p:contains("Hi")')

        assert [document.text_of(m) for m in matches] == ["Hi"]

    @pytest.mark.parametrize("selector", ["div[", "", "   ", "a >> b", "::nonsense("])
    def test_malformed_selector_raises(self, product_document, selector):
        with pytest.raises(MalformedSelectorError):
            product_document.select(selector)

    def test_elements_are_body_descendants(self, product_document):
        names = [el.name for el in product_document.elements()]

        assert names[0] == "header"
        assert "title" not in names
        assert "script" not in names


class TestConstruction:
    """Test building documents from crawler output."""

    def test_from_crawl(self, product_page_html):
        document = Document.from_crawl(CrawlResult(url="https://shop.test/p", html=product_page_html))

        assert document.title() == "Trail Runner | Example Store"

    def test_from_crawl_with_error(self):
        with pytest.raises(NoDocumentError) as exc_info:
            Document.from_crawl(CrawlResult(url="https://shop.test/p", html="<p>x</p>", error="timeout"))

        assert "https://shop.test/p" in str(exc_info.value)

    def test_from_crawl_without_html(self):
        with pytest.raises(NoDocumentError):
            Document.from_crawl(CrawlResult(url="https://shop.test/p", html="  "))

    def test_truncated_flag(self, product_page_html):
        assert Document(product_page_html, max_chars=400).truncated
        assert not Document(product_page_html).truncated

    def test_markup_is_normalized(self):
        document = Document("<div>\n  <script>x()</script><p> hi </p></div>")

        assert document.markup == "<div><p> hi </p></div>"


class TestErrorPages:
    """Test browser error page detection."""

    def test_detects_blocked_page(self, error_page_html):
        assert Document(error_page_html).is_error_page()

    def test_storefront_is_not_error_page(self, product_document):
        assert not product_document.is_error_page()
