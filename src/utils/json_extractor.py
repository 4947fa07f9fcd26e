"""
JSON extraction utilities for LLM responses.

Handles markdown code blocks, raw JSON, and common formatting slips.
"""

import json
import logging
import re
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def extract_json_from_response(raw_response: str) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from an LLM response.

    Handles multiple formats:
    - ```json code blocks
    - ``` code blocks (without language specifier)
    - Raw JSON objects embedded in text

    Args:
        raw_response: The raw text response from an LLM

    Returns:
        Parsed JSON dictionary, or None if extraction/parsing fails
    """
    if not raw_response:
        return None

    candidate = raw_response.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    # First { to last }
    brace_start = candidate.find('{')
    brace_end = candidate.rfind('}')
    if brace_start < 0 or brace_end <= brace_start:
        return None

    json_str = candidate[brace_start:brace_end + 1]
    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.debug(f"JSON parse error: {e}")
        parsed = _try_repair_and_parse(json_str)

    return parsed if isinstance(parsed, dict) else None


def _try_repair_and_parse(json_str: str) -> Optional[Any]:
    """
    Attempt to repair common JSON issues and parse.

    Args:
        json_str: JSON string that failed to parse

    Returns:
        Parsed JSON value, or None if repair fails
    """
    repaired = _TRAILING_COMMA.sub(r"\1", json_str)
    repaired = (
        repaired.replace("“", '"').replace("”", '"')
        .replace("‘", "'").replace("’", "'")
    )
    repaired = _CONTROL_CHARS.sub("", repaired)

    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        return None
