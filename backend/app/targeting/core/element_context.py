"""
Element Context

Spatial and interaction metadata about a resolved element, handed to the
downstream variant/code generator. Nothing in resolution reads it back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import soupsieve
from bs4 import Tag

from .document import collapse_text

MAX_TEXT_CHARS = 100
MAX_SIBLINGS = 3

# Most specific container first
SECTION_SELECTORS = [
    ".product-card",
    ".product-card-wrapper",
    ".card",
    ".product-item",
    ".product",
    ".featured-collection",
    ".collection",
    ".banner",
    ".hero",
    "section:not(.shopify-section)",
    ".section:not(.shopify-section)",
    "article",
    ".container",
    ".content",
    "main",
]

HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"


@dataclass
class NodeSummary:
    tag: str
    classes: List[str] = field(default_factory=list)
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"tag": self.tag, "classes": list(self.classes), "text": self.text}


@dataclass
class ElementContext:
    tag: str
    text: str
    attributes: Dict[str, str]
    parent: Optional[NodeSummary] = None
    layout: str = "block"
    siblings: List[NodeSummary] = field(default_factory=list)
    section_heading: Optional[str] = None
    has_event_handlers: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "text": self.text,
            "attributes": dict(self.attributes),
            "parent": self.parent.to_dict() if self.parent else None,
            "layout": self.layout,
            "siblings": [s.to_dict() for s in self.siblings],
            "sectionHeading": self.section_heading,
            "hasEventHandlers": self.has_event_handlers,
        }


def _short_text(node: Tag) -> str:
    return collapse_text(node.get_text())[:MAX_TEXT_CHARS]


def _class_list(node: Tag) -> List[str]:
    value = node.get("class") or []
    return value.split() if isinstance(value, str) else list(value)


def _flatten_attributes(node: Tag) -> Dict[str, str]:
    return {
        name: " ".join(value) if isinstance(value, list) else str(value)
        for name, value in node.attrs.items()
    }


def guess_layout(container: Optional[Tag]) -> str:
    """Rough layout of a container from its tag and class names"""
    if container is None:
        return "block"
    name = container.name
    if name in ("ul", "ol", "dl"):
        return "list"
    if name in ("table", "thead", "tbody", "tr"):
        return "table"
    if name == "form":
        return "form"
    classes = " ".join(_class_list(container)).lower()
    if "grid" in classes:
        return "grid"
    if "flex" in classes or "row" in classes or "inline" in classes:
        return "flex"
    if "list" in classes:
        return "list"
    return "block"


def closest_section(element: Tag) -> Optional[Tag]:
    """Nearest enclosing card/section-like container, excluding the element itself"""
    parent = element.parent
    if not isinstance(parent, Tag):
        return None
    for selector in SECTION_SELECTORS:
        section = soupsieve.closest(selector, parent)
        if section is not None:
            return section
    return None


def section_heading(element: Tag) -> Optional[str]:
    section = closest_section(element)
    if section is None:
        return None
    heading = soupsieve.select_one(HEADING_SELECTOR, section)
    if heading is None:
        return None
    return _short_text(heading) or None


def has_event_handlers(element: Tag) -> bool:
    """Inline on* handlers on the element or any ancestor"""
    node = element
    while isinstance(node, Tag):
        if any(name.lower().startswith("on") for name in node.attrs):
            return True
        node = node.parent
    return False


def build_element_context(element: Tag) -> ElementContext:
    parent = element.parent if isinstance(element.parent, Tag) else None
    siblings = [
        NodeSummary(tag=s.name, classes=_class_list(s), text=_short_text(s))
        for s in element.find_next_siblings(True, limit=MAX_SIBLINGS)
    ]
    if len(siblings) < MAX_SIBLINGS:
        previous = element.find_previous_siblings(True, limit=MAX_SIBLINGS - len(siblings))
        siblings = [
            NodeSummary(tag=s.name, classes=_class_list(s), text=_short_text(s))
            for s in reversed(previous)
        ] + siblings

    return ElementContext(
        tag=element.name,
        text=_short_text(element),
        attributes=_flatten_attributes(element),
        parent=NodeSummary(tag=parent.name, classes=_class_list(parent)) if parent and parent.name != "[document]" else None,
        layout=guess_layout(parent),
        siblings=siblings,
        section_heading=section_heading(element),
        has_event_handlers=has_event_handlers(element),
    )
