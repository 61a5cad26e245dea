"""
Selector Stability Classifier

Decides whether an id or class name was written by a person (stable across
deploys) or produced by a build step, template engine or component library
(regenerated on every render). Every component that emits or scores a
selector goes through this module so stability judgments stay comparable.
"""

import re
from typing import Iterable, List, Tuple

# ==================== Generated Identifier Shapes ====================

# (pattern, label). Any hit makes the token unstable, whatever else it matches.
GENERATED_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^\d+$"), "numeric"),
    (re.compile(r"^[0-9a-f]{8,}$", re.I), "hex"),
    (re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I), "uuid"),
    (re.compile(r"\d{10,}"), "long numeric run"),
    (re.compile(r"(?:template|sections?)--\d+"), "template section"),
    (re.compile(r"^shopify-section-template"), "template section"),
    (re.compile(r"^[a-z]+-\d+-\d+", re.I), "counter"),
    (re.compile(r"^slide-\d+", re.I), "counter"),
    (re.compile(r"^(?=[a-z]*\d)[a-z0-9]{20,}$", re.I), "random string"),
    # Component libraries and CSS-in-JS
    (re.compile(r"^ember\d+$"), "framework"),
    (re.compile(r"^ext-gen\d+"), "framework"),
    (re.compile(r"^yui_"), "framework"),
    (re.compile(r"^ui-id-\d+$"), "framework"),
    (re.compile(r"^mui-\d+"), "framework"),
    (re.compile(r"^(?:radix|headlessui|downshift|react-select|react-aria)-"), "framework"),
    (re.compile(r"^:r[0-9a-z]*:$"), "framework"),
    (re.compile(r"^ng-"), "framework"),
    (re.compile(r"^vue-"), "framework"),
    (re.compile(r"^react-"), "framework"),
    (re.compile(r"^widget[-_]?\d"), "framework"),
    (re.compile(r"^svelte-[a-z0-9]+$"), "css-in-js"),
    (re.compile(r"^css-(?=[a-z0-9]*\d)[a-z0-9]{4,}$", re.I), "css-in-js"),
    (re.compile(r"^sc-[a-zA-Z0-9]{4,}$"), "css-in-js"),
    (re.compile(r"^jsx-\d+$"), "css-in-js"),
]

# kebab-case, snake_case, BEM block__element / block--modifier, plain words
SEMANTIC_CLASS = re.compile(r"^[a-z][a-z0-9]*(?:(?:__|--|-|_)[a-z0-9]+)*$")

UTILITY_PATTERNS = [
    re.compile(r"^-?[mp][tlrbxy]?-\d+$"),
    re.compile(r"^[wh]-\d+$"),
    re.compile(r"^text-"),
    re.compile(r"^bg-"),
    re.compile(r"^flex"),
    re.compile(r"^grid"),
    re.compile(r"^gap-"),
    re.compile(r"^(?:hidden|block|inline|inline-block|absolute|relative|fixed|sticky|visible|invisible)$"),
    re.compile(r"^(?:sm|md|lg|xl|2xl):"),
]

_SEGMENT_SPLIT = re.compile(r"[-_\s]+")
_CASE_SWITCH = re.compile(r"[a-z][A-Z]")

VALID_IDENTIFIER = re.compile(r"^-?[_a-zA-Z][_a-zA-Z0-9-]*$")


def _looks_random_segment(segment: str) -> bool:
    """Hash-like chunk such as `ASG5LandCMk13OFhJQ` or `4bfhJq`"""
    digits = sum(c.isdigit() for c in segment)
    letters = sum(c.isalpha() for c in segment)
    if not digits or not letters:
        return False
    if len(segment) >= 8 and digits >= 2 and letters >= 2:
        return True
    return len(segment) >= 6 and bool(_CASE_SWITCH.search(segment))


def generated_reason(value: str) -> str:
    """Return why `value` looks generated, or an empty string"""
    if not value or not value.strip():
        return "empty"
    value = value.strip()
    for pattern, label in GENERATED_PATTERNS:
        if pattern.search(value):
            return label
    for segment in _SEGMENT_SPLIT.split(value):
        if _looks_random_segment(segment):
            return "hash-like segment"
    return ""


def is_stable_identifier(value: str, kind: str = "class") -> bool:
    """
    Judge an id or class token.

    Args:
        value: The raw id or class name
        kind: 'id' or 'class'

    Returns:
        True when the token looks author-written. Generated shapes always
        win over semantic ones.
    """
    if kind not in ("id", "class"):
        raise ValueError(f"kind must be 'id' or 'class', got {kind!r}")
    if generated_reason(value):
        return False
    value = value.strip()
    if any(c.isspace() for c in value):
        return False
    if kind == "class":
        return bool(SEMANTIC_CLASS.match(value))
    return True


def is_utility_class(name: str) -> bool:
    """Layout/spacing helpers (`mt-4`, `flex`, `hidden`) say nothing about the element"""
    return any(p.search(name) for p in UTILITY_PATTERNS)


def is_valid_css_identifier(value: str) -> bool:
    return bool(value) and bool(VALID_IDENTIFIER.match(value))


def stable_classes(classes: Iterable[str]) -> List[str]:
    """Stable, selector-safe classes in their original order"""
    out = []
    for cls in classes:
        if cls and cls not in out and is_stable_identifier(cls, "class") and is_valid_css_identifier(cls):
            out.append(cls)
    return out


def stability_rank(name: str) -> int:
    """Higher is more trustworthy. BEM beats kebab beats plain words, utilities last."""
    if not is_stable_identifier(name, "class"):
        return -2
    if is_utility_class(name):
        return -1
    if "__" in name or "--" in name:
        return 3
    if "-" in name or "_" in name:
        return 2
    return 1


def most_stable_class(classes: Iterable[str]) -> str:
    """Pick the single best class of an element, or '' when none is usable"""
    best = ""
    best_rank = -1
    for cls in stable_classes(classes):
        rank = stability_rank(cls)
        if rank > best_rank:
            best, best_rank = cls, rank
    return best if best_rank >= 0 else ""


# ==================== Selector Token Extraction ====================

_QUOTED = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')
_ATTR_VALUE = r'("(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'|[^\]\s]+)'
_ID_ATTR = re.compile(r'\[\s*id\s*=\s*' + _ATTR_VALUE + r'\s*\]')
_NAMED_ATTR = re.compile(
    r'\[\s*(?:data-[\w-]+|aria-[\w-]+|role)\s*[~|^$*]?=\s*' + _ATTR_VALUE + r'\s*(?:[is]\s*)?\]',
    re.I
)
_ID_TOKEN = re.compile(r"#((?:[_a-zA-Z0-9-]|\\.)+)")
_CLASS_TOKEN = re.compile(r"\.((?:[_a-zA-Z-][_a-zA-Z0-9-]*|\\.)+)")
_ESCAPE = re.compile(r"\\(.)")


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        raw = raw[1:-1]
    return _ESCAPE.sub(r"\1", raw)


def selector_tokens(selector: str) -> List[Tuple[str, str]]:
    """
    List the (kind, value) tokens a selector relies on.

    Kinds are 'id' and 'class' for ids and class names, and 'value' for the
    values of data-*, aria-* and role attribute selectors.
    """
    tokens: List[Tuple[str, str]] = []
    for match in _ID_ATTR.finditer(selector):
        tokens.append(("id", _unquote(match.group(1))))
    for match in _NAMED_ATTR.finditer(selector):
        tokens.append(("value", _unquote(match.group(1))))
    bare = _QUOTED.sub('""', selector)
    for match in _ID_TOKEN.finditer(bare):
        tokens.append(("id", match.group(1).replace("\\", "")))
    for match in _CLASS_TOKEN.finditer(bare):
        tokens.append(("class", match.group(1).replace("\\", "")))
    return tokens


def is_stable_value(value: str) -> bool:
    """Attribute values may be free text (`aria-label="Add to cart"`), so only generated shapes count"""
    return not value.strip() or not generated_reason(value)


def unstable_tokens(selector: str) -> List[str]:
    """Tokens in `selector` that fail the stability check"""
    unstable = []
    for kind, value in selector_tokens(selector):
        stable = is_stable_value(value) if kind == "value" else is_stable_identifier(value, kind)
        if not stable:
            unstable.append(value)
    return unstable
