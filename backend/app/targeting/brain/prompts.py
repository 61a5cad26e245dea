"""
Prompts for the AI element guess.
"""

from ..core.html_normalizer import was_truncated

ELEMENT_GUESS_PROMPT = """Analyze this A/B test hypothesis and identify the exact DOM element it targets.

HYPOTHESIS: "{hypothesis}"
PAGE: {url}

Determine:
1. Which specific element or section the hypothesis is about
2. A CSS selector that matches exactly that one element in the HTML below
3. The element's visible text, if it has any

RULES:
- Only use classes, ids and attributes that literally appear in the HTML
- Prefer data-testid / data-test / aria attributes, then semantic class names
- Avoid generated ids or classes (hashes, long numbers, template--123 sections)
- If the hypothesis names a button, link or heading, report its exact text in element_text
- Offer up to 3 alternative_selectors for the same element
- confidence is a decimal between 0 and 1
{truncation_note}
Respond with JSON only, in one of these two shapes:
{{"css_selector": "...", "element_text": "...", "section_context": "...", "confidence": 0.9, "reasoning": "...", "alternative_selectors": ["..."]}}
{{"NOT_FOUND": true, "reason": "...", "suggestions": ["..."]}}

HTML:
{html}
"""

TRUNCATION_NOTE = (
    "- The HTML was cut off at a size limit; if the element is not visible it may "
    "simply be further down the page, so answer NOT_FOUND rather than guessing\n"
)


def build_element_prompt(hypothesis: str, html: str, url: str = "") -> str:
    """Prompt asking the model to point at the hypothesis' target element"""
    return ELEMENT_GUESS_PROMPT.format(
        hypothesis=hypothesis.strip(),
        url=url or "(unknown)",
        truncation_note=TRUNCATION_NOTE if was_truncated(html) else "",
        html=html
    )
