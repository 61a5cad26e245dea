"""
Document Snapshot

One normalized HTML page parsed once per resolution call. Every selector is
resolved against this frozen tree; nothing downstream mutates it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

import soupsieve
from bs4 import BeautifulSoup, Tag

from ..errors import MalformedSelectorError, NoDocumentError
from .html_normalizer import normalize, was_truncated

logger = logging.getLogger(__name__)

# jQuery-style :contains() maps onto soupsieve's substring predicate
_CONTAINS = re.compile(r":contains\(")

ERROR_PAGE_MARKERS = [
    "err_blocked_by_client",
    "err_name_not_resolved",
    "err_connection_refused",
    "err_connection_timed_out",
    "err_internet_disconnected",
    "err_ssl_protocol_error",
    "err_too_many_redirects",
    "this site can't be reached",
    "this site can’t be reached",
    "this page isn't working",
    "this page isn’t working",
]


@dataclass
class CrawlResult:
    """What the crawler hands over for one URL"""
    url: str
    html: Optional[str] = None
    error: Optional[str] = None


def to_query_selector(selector: str) -> str:
    """Rewrite a selector into the dialect the query engine understands"""
    return _CONTAINS.sub(":-soup-contains(", selector)


def collapse_text(text: str) -> str:
    return " ".join(text.split())


class Document:
    """
    Immutable parsed representation of one HTML page.

    Attributes:
        markup: The normalized (possibly truncated) HTML string
        truncated: True when the normalizer cut the page at its budget
    """

    __slots__ = ("_markup", "_soup", "_truncated")

    def __init__(self, raw_html: str, max_chars: Optional[int] = None):
        markup = normalize(raw_html, max_chars=max_chars)
        self._markup = markup
        self._truncated = was_truncated(markup)
        self._soup = BeautifulSoup(markup, "lxml")

    @classmethod
    def from_crawl(cls, crawl: CrawlResult, max_chars: Optional[int] = None) -> "Document":
        """Build a document from crawler output, refusing errored or empty crawls"""
        if crawl.error:
            raise NoDocumentError(f"Crawler reported an error: {crawl.error}", url=crawl.url)
        if not crawl.html or not crawl.html.strip():
            raise NoDocumentError(url=crawl.url)
        return cls(crawl.html, max_chars=max_chars)

    @property
    def markup(self) -> str:
        return self._markup

    @property
    def truncated(self) -> bool:
        return self._truncated

    @property
    def root(self) -> Tag:
        return self._soup.html or self._soup

    @property
    def body(self) -> Tag:
        return self._soup.body or self.root

    # ==================== Querying ====================

    def select(self, selector: str) -> List[Tag]:
        """
        All elements matching `selector`, in document order.

        Raises:
            MalformedSelectorError: the selector does not parse
        """
        if not selector or not selector.strip():
            raise MalformedSelectorError(selector or "", "empty selector")
        try:
            return list(self._soup.select(to_query_selector(selector)))
        except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError) as e:
            raise MalformedSelectorError(selector, str(e).splitlines()[0] if str(e) else type(e).__name__)

    def count(self, selector: str) -> int:
        return len(self.select(selector))

    def elements(self) -> Iterator[Tag]:
        """Every element inside <body>, top to bottom"""
        return iter(self.body.find_all(True))

    @staticmethod
    def text_of(node: Tag) -> str:
        return collapse_text(node.get_text())

    def title(self) -> str:
        title = self._soup.title
        return collapse_text(title.get_text()) if title else ""

    def is_error_page(self) -> bool:
        """Browser/network error pages (ERR_BLOCKED_BY_CLIENT and friends) carry no storefront"""
        body_text = self.text_of(self.body)
        if len(body_text) > 2000:
            return False
        haystack = f"{self.title()} {body_text}".lower()
        return any(marker in haystack for marker in ERROR_PAGE_MARKERS)

    def __repr__(self) -> str:
        return f"Document({len(self._markup)} chars{', truncated' if self._truncated else ''})"
