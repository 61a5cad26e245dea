"""
Unit tests for AI response decoding and the element prompt.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from targeting.brain.prompts import TRUNCATION_NOTE, build_element_prompt
from targeting.brain.responses import ElementFound, ElementNotFound, decode, extract_json, output_schema
from targeting.core.html_normalizer import TRUNCATION_MARKER


class TestDecode:
    """Completions always decode to one of the two variants."""

    def test_found(self):
        answer = decode({
            "css_selector": "  h1.product__title ",
            "element_text": "",
            "confidence": 0.9,
            "alternative_selectors": ["h1", " ", None, ".product__info h1"],
        })

        assert isinstance(answer, ElementFound)
        assert answer.css_selector == "h1.product__title"
        assert answer.element_text is None
        assert answer.alternative_selectors == ["h1", ".product__info h1"]

    def test_defaults(self):
        answer = decode({"css_selector": "h1", "alternative_selectors": None})

        assert answer.confidence == 0.5
        assert answer.reasoning == ""
        assert answer.alternative_selectors == []

    def test_not_found(self):
        answer = decode({"NOT_FOUND": True, "reason": "not on page", "suggestions": None})

        assert isinstance(answer, ElementNotFound)
        assert answer.reason == "not on page"
        assert answer.suggestions == []

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "no json here",
        "[1, 2]",
        {"css_selector": ""},
        {"css_selector": "h1", "confidence": 1.5},
        {"element_text": "Buy"},
        {"NOT_FOUND": "yes"},
    ])
    def test_garbage_becomes_not_found(self, raw):
        answer = decode(raw)

        assert isinstance(answer, ElementNotFound)
        assert answer.reason

    def test_json_text(self):
        answer = decode('Here you go:\n{"css_selector": "#MainContent", "confidence": 0.8}\nHope that helps')

        assert isinstance(answer, ElementFound)
        assert answer.css_selector == "#MainContent"


class TestExtractJson:
    """Test fence and prose stripping."""

    def test_fenced(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_bare_fence(self):
        assert extract_json('```\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_invalid(self):
        with pytest.raises(ValueError):
            extract_json("{not: json}")


class TestSchemaAndPrompt:
    """Test the contract handed to the model."""

    def test_schema_has_both_variants(self):
        schema = output_schema()

        assert len(schema["anyOf"]) == 2
        assert "css_selector" in schema["anyOf"][0]["properties"]
        assert "NOT_FOUND" in schema["anyOf"][1]["properties"]

    def test_prompt_contents(self):
        prompt = build_element_prompt("  Add star ratings  ", "<main><h1>x</h1></main>", "https://shop.test/")

        assert 'HYPOTHESIS: "Add star ratings"' in prompt
        assert "https://shop.test/" in prompt
        assert "<main><h1>x</h1></main>" in prompt
        assert TRUNCATION_NOTE not in prompt

    def test_prompt_flags_truncation(self):
        prompt = build_element_prompt("Add star ratings", "<main>" + TRUNCATION_MARKER)

        assert TRUNCATION_NOTE in prompt
        assert "(unknown)" in prompt
