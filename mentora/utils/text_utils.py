"""
Text utility functions for model response processing.
"""
import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced code block, or the text unchanged."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def extract_json(text: str, opening: str = "{") -> Any:
    """
    Parse a JSON document out of a model response.

    Models occasionally wrap JSON in markdown fences or add a sentence before
    or after it. Fence stripping is tried first; if that does not parse, the
    outermost ``{...}`` (or ``[...]`` when ``opening="["``) span is parsed.

    Args:
        text: Raw model response
        opening: "{" for objects, "[" for arrays

    Returns:
        The parsed JSON value

    Raises:
        ValueError: If no parseable JSON can be located
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    closing = "}" if opening == "{" else "]"
    candidate = strip_code_fences(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end <= start:
        raise ValueError(f"No JSON {opening}...{closing} span found in response")
    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e
