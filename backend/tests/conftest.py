"""
Pytest configuration and shared fixtures for the targeting tests.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import AsyncMock

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from targeting.config import ResolverConfig
from targeting.core.document import Document


# ==================== HTML Fixtures ====================

CARD_HTML = '<div class="card"><h3 class="card__heading">Widget</h3></div>'

TWO_BUTTONS_HTML = """
<html><body>
  <div class="actions">
    <button class="btn">Buy Now</button>
    <button class="btn">Learn More</button>
  </div>
</body></html>
"""

PRODUCT_PAGE_HTML = """
<!DOCTYPE html>
<html>
<head>
  <title>Trail Runner | Example Store</title>
  <style>.card { color: red; }</style>
  <script>window.dataLayer = [];</script>
  <link rel="stylesheet" href="/theme.css">
</head>
<body>
  <!-- header -->
  <header class="site-header">
    <nav class="main-nav" aria-label="Main">
      <ul class="main-nav__list">
        <li><a href="/">Home</a></li>
        <li><a href="/collections/all">Catalog</a></li>
      </ul>
    </nav>
  </header>
  <main id="MainContent">
    <div id="shopify-section-template--25767798276440__main" class="shopify-section">
      <section class="product">
        <div class="product__media">
          <img src="/shoe.jpg" alt="Trail Runner">
        </div>
        <div class="product__info">
          <h1 class="product__title">Trail Runner</h1>
          <span class="price price--sale">$89.00</span>
          <p class="product__description">Lightweight shoe for rough terrain.</p>
          <form action="/cart/add" class="product-form">
            <button type="submit" name="add" class="product-form__submit" data-testid="add-to-cart">Add to cart</button>
          </form>
        </div>
      </section>
    </div>
    <div class="related">
      <div class="product-card">
        <div class="product-card__media"><img src="/a.jpg" alt=""></div>
        <div class="product-card__info">
          <h3 class="product-card__title">Road Runner</h3>
          <span class="price">$79.00</span>
        </div>
      </div>
      <div class="product-card">
        <div class="product-card__media"><img src="/b.jpg" alt=""></div>
        <div class="product-card__info">
          <h3 class="product-card__title">City Walker</h3>
          <span class="price">$69.00</span>
        </div>
      </div>
    </div>
  </main>
</body>
</html>
"""

ERROR_PAGE_HTML = """
<html><head><title>example.com</title></head>
<body><div class="error"><h1>This site can't be reached</h1><p>ERR_BLOCKED_BY_CLIENT</p></div></body></html>
"""


@pytest.fixture
def card_html() -> str:
    return CARD_HTML


@pytest.fixture
def two_buttons_html() -> str:
    return TWO_BUTTONS_HTML


@pytest.fixture
def product_page_html() -> str:
    return PRODUCT_PAGE_HTML


@pytest.fixture
def error_page_html() -> str:
    return ERROR_PAGE_HTML


@pytest.fixture
def product_document() -> Document:
    return Document(PRODUCT_PAGE_HTML)


@pytest.fixture
def make_document():
    """Factory building a Document from an HTML string."""
    def _make(html: str, max_chars=None) -> Document:
        return Document(html, max_chars=max_chars)
    return _make


# ==================== Resolver Fixtures ====================

@pytest.fixture
def resolver_config() -> ResolverConfig:
    """Deterministic config, independent of the environment."""
    return ResolverConfig(
        document_max_chars=500_000,
        prompt_max_chars=30_000,
        ai_timeout_seconds=1.0,
        max_alternatives=5,
        enable_ai=True,
        keyword_confidence_factor=0.75,
    )


@pytest.fixture
def not_found_ai():
    """AI collaborator that never finds anything."""
    return AsyncMock(return_value={"NOT_FOUND": True, "reason": "not visible", "suggestions": []})


@pytest.fixture
def make_ai():
    """Factory for an AI collaborator returning a fixed answer."""
    def _make(answer):
        return AsyncMock(return_value=answer)
    return _make
