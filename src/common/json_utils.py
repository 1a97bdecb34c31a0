"""
JSON Utilities for LLM Response Parsing.

LLM outputs arrive wrapped in markdown fences, embedded in prose, or with
small syntax errors (single quotes, trailing commas). These helpers pull
out the JSON payload and fall back to json-repair when json.loads() fails.
"""

import json
import re
from typing import Any, Dict, List

from json_repair import repair_json


def parse_llm_json(text: str) -> Any:
    """
    Parse a JSON object or array from an LLM response.

    Args:
        text: Raw LLM response text that may contain JSON

    Returns:
        Parsed dict or list

    Raises:
        ValueError: If no valid JSON can be extracted or repaired

    Example:
        >>> parse_llm_json('```json\\n{"key": "value"}\\n```')
        {'key': 'value'}
        >>> parse_llm_json("Here you go: [{'title': 'Cook',}]")
        [{'title': 'Cook'}]
    """
    if not text or not text.strip():
        raise ValueError("Empty input: no JSON content to parse")

    json_str = _extract_json_payload(_strip_markdown_blocks(text.strip()))

    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        pass

    try:
        repaired = repair_json(json_str, return_objects=True)
    except Exception as e:
        raise ValueError(f"Failed to repair JSON: {e}")

    # repair_json returns "" when nothing salvageable was found
    if isinstance(repaired, (dict, list)) and repaired:
        return repaired

    raise ValueError(f"Failed to parse JSON. Original text (first 500 chars): {text[:500]}")


def parse_llm_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from an LLM response.

    A single-object list (``[{...}]``) is unwrapped.

    Raises:
        ValueError: If the payload is not an object
    """
    data = parse_llm_json(text)
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
        return data[0]
    if not isinstance(data, dict):
        raise ValueError(f"Expected JSON object, got {type(data).__name__}")
    return data


def parse_llm_json_list(text: str, key: str = "jobs") -> List[Dict[str, Any]]:
    """
    Parse a list of JSON objects from an LLM response.

    Accepts a top-level array or an object wrapping the array under ``key``.
    Non-dict items are dropped.

    Raises:
        ValueError: If no list can be found
    """
    data = parse_llm_json(text)
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        raise ValueError(f"Expected JSON list (or object with '{key}')")
    return [item for item in data if isinstance(item, dict)]


def _strip_markdown_blocks(text: str) -> str:
    """
    Remove markdown code block wrappers.

    Handles fences anywhere in the text, e.g. "Sure!\\n```json\\n{...}\\n```".
    """
    fenced = re.search(r"```(?:json|JSON)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def _extract_json_payload(text: str) -> str:
    """
    Extract the outermost JSON object or array from surrounding prose.

    Raises:
        ValueError: If no JSON-looking payload is found
    """
    text = text.strip()
    if text.startswith(("{", "[")):
        return text

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise ValueError(f"No JSON payload found in text: {text[:200]}")

    start = min(starts)
    closing = "}" if text[start] == "{" else "]"
    end = text.rfind(closing)
    if end <= start:
        raise ValueError(f"Unterminated JSON payload in text: {text[:200]}")
    return text[start:end + 1]
