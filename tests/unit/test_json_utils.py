"""
Unit tests for LLM JSON parsing utilities.
"""

import pytest

from src.common.json_utils import parse_llm_json, parse_llm_json_list, parse_llm_json_object


class TestParseLlmJson:
    """Tests for raw payload extraction and repair."""

    def test_plain_object(self):
        assert parse_llm_json('{"a": 1}') == {"a": 1}

    def test_markdown_fence_with_prose(self):
        text = 'Here are the results:\n```json\n{"keywords": ["cook"]}\n```\nLet me know!'
        assert parse_llm_json(text) == {"keywords": ["cook"]}

    def test_embedded_in_prose(self):
        assert parse_llm_json('Result: [1, 2, 3] done') == [1, 2, 3]

    def test_repairs_trailing_comma_and_single_quotes(self):
        assert parse_llm_json("{'title': 'Cook', 'company': 'Diner',}") == {"title": "Cook", "company": "Diner"}

    @pytest.mark.parametrize("text", ["", "   ", "no json here"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_llm_json(text)


class TestParseLlmJsonObject:
    """Tests for object parsing."""

    def test_unwraps_single_item_list(self):
        assert parse_llm_json_object('[{"a": 1}]') == {"a": 1}

    def test_rejects_list(self):
        with pytest.raises(ValueError):
            parse_llm_json_object("[1, 2]")


class TestParseLlmJsonList:
    """Tests for list parsing."""

    def test_top_level_list_drops_non_dicts(self):
        assert parse_llm_json_list('[{"title": "Cook"}, "junk", 3]') == [{"title": "Cook"}]

    def test_wrapped_under_key(self):
        assert parse_llm_json_list('{"jobs": [{"title": "Cook"}]}') == [{"title": "Cook"}]

    def test_custom_key(self):
        assert parse_llm_json_list('{"results": [{"a": 1}]}', key="results") == [{"a": 1}]

    def test_missing_key(self):
        with pytest.raises(ValueError):
            parse_llm_json_list('{"other": []}')
