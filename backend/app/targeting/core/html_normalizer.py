"""
HTML Normalizer

Turns raw crawled HTML into a canonical string that every other stage
analyzes. Works on the markup text with regexes instead of re-serializing a
parse tree, so surviving elements and attribute values come out byte for
byte as they went in.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[[document truncated]]"

_NOISE_PATTERNS = [
    re.compile(r"<!--[\s\S]*?-->"),
    re.compile(r"<script\b[^>]*>[\s\S]*?</script\s*>", re.I),
    re.compile(r"<style\b[^>]*>[\s\S]*?</style\s*>", re.I),
    re.compile(r"<noscript\b[^>]*>[\s\S]*?</noscript\s*>", re.I),
    re.compile(r"<link\b[^>]*\brel\s*=\s*[\"']?[^\"'>]*\bstylesheet\b[^>]*>", re.I),
]

_WHITESPACE = re.compile(r"\s+")
_BETWEEN_TAGS = re.compile(r">\s+<")

# Prompt-only compaction (never applied to the analyzed Document)
_STYLE_ATTR = re.compile(r"\sstyle\s*=\s*(?:\"[^\"]*\"|'[^']*')", re.I)
_EVENT_ATTR = re.compile(r"\son[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*')", re.I)
_TRACKING_META = re.compile(
    r"<meta[^>]*(?:property|name)\s*=\s*[\"'](?:og:|twitter:|article:|product:)[^\"']*[\"'][^>]*>", re.I
)
_NOISY_DATA_ATTR = re.compile(
    r"\sdata-(?!(?:testid|test|cy|qa|id|role|label|name|value|type|state|selected|checked|disabled|hidden)\b)"
    r"[\w-]*\s*=\s*(?:\"[^\"]*\"|'[^']*')",
    re.I
)
_MAIN_OPEN = re.compile(r"<main\b[^>]*>|<[a-z0-9]+\b[^>]*\brole\s*=\s*[\"']main[\"'][^>]*>", re.I)
_BODY_OPEN = re.compile(r"<body\b[^>]*>", re.I)


def _strip_noise(html: str) -> str:
    # Removing one block can splice the remains into a new one, so run to a fixpoint
    while True:
        before = html
        for pattern in _NOISE_PATTERNS:
            html = pattern.sub("", html)
        if html == before:
            return html


def _collapse_whitespace(html: str) -> str:
    html = _WHITESPACE.sub(" ", html)
    html = _BETWEEN_TAGS.sub("><", html)
    return html.strip()


def _truncate(html: str, max_chars: int) -> str:
    budget = max_chars - len(TRUNCATION_MARKER)
    if budget <= 0:
        return TRUNCATION_MARKER[:max_chars]

    cut = html[:budget]
    boundary = cut.rfind(">")
    if boundary > 0:
        cut = cut[:boundary + 1]
    cut = cut.rstrip()
    logger.info(f"[NORMALIZER] Truncated document from {len(html)} to {len(cut)} chars")
    return cut + TRUNCATION_MARKER


def normalize(raw_html: Optional[str], max_chars: Optional[int] = None) -> str:
    """
    Canonicalize raw HTML.

    Removes scripts, styles, noscript blocks, stylesheet links and comments,
    then collapses whitespace. When `max_chars` is given and exceeded the
    output is cut at the last tag boundary inside the budget and ends with
    TRUNCATION_MARKER. normalize(normalize(x)) == normalize(x).
    """
    if not raw_html:
        return ""

    html = _collapse_whitespace(_strip_noise(raw_html))

    if max_chars is not None and len(html) > max_chars:
        html = _truncate(html, max_chars)

    return html


def was_truncated(html: str) -> bool:
    return html.endswith(TRUNCATION_MARKER)


def _main_content(html: str) -> str:
    """Slice from the opening <main>/[role=main] (or <body>) tag onwards"""
    for pattern in (_MAIN_OPEN, _BODY_OPEN):
        match = pattern.search(html)
        if match:
            return html[match.start():]
    return html


def compact_for_prompt(html: Optional[str], max_chars: int) -> str:
    """
    Shrink HTML for an AI prompt.

    Drops inline styles, event handlers, social meta tags and data-*
    attributes that never help selection, starts at the main content, and
    normalizes within `max_chars`. Only for prompts: the analyzed Document
    keeps every attribute.
    """
    if not html:
        return ""
    compact = _strip_noise(html)
    compact = _TRACKING_META.sub("", compact)
    compact = _STYLE_ATTR.sub("", compact)
    compact = _EVENT_ATTR.sub("", compact)
    compact = _NOISY_DATA_ATTR.sub("", compact)
    compact = _main_content(compact)
    return normalize(compact, max_chars=max_chars)
