"""
Type guard functions for runtime type checking.

Used to validate remote grading payloads before they become models.
"""

import math
from typing import Any, Optional, TypeGuard

GRADING_REQUIRED_FIELDS = ("score", "feedback", "strengths", "areas_for_improvement", "suggested_points")


def is_dict_with_keys(data: Any, keys: tuple[str, ...] | list[str]) -> TypeGuard[dict[str, Any]]:
    """
    Check if data is a dict containing all specified keys.

    Args:
        data: Value to check
        keys: Required keys

    Returns:
        True if data is a dict with all required keys
    """
    return isinstance(data, dict) and all(k in data for k in keys)


def missing_keys(data: Any, keys: tuple[str, ...] | list[str]) -> list[str]:
    """Return the required keys absent from ``data`` (all of them if not a dict)."""
    if not isinstance(data, dict):
        return list(keys)
    return [k for k in keys if k not in data or data[k] is None]


def is_grading_payload(data: Any) -> TypeGuard[dict[str, Any]]:
    """
    Check if data is a structurally valid grading payload.

    A valid payload contains:
    - score: number
    - feedback: str
    - strengths, areas_for_improvement, suggested_points: lists
    """
    if missing_keys(data, GRADING_REQUIRED_FIELDS):
        return False
    if isinstance(data['score'], bool) or ensure_finite_float(data['score']) is None:
        return False
    if not isinstance(data['feedback'], str):
        return False
    return all(isinstance(data[k], list) for k in GRADING_REQUIRED_FIELDS[2:])


def ensure_str(data: Any, default: str = "") -> str:
    """
    Ensure data is a string, returning default if not.

    Args:
        data: Value to check
        default: Default string to return

    Returns:
        data if it's a string, otherwise default
    """
    if isinstance(data, str):
        return data
    return default


def ensure_str_list(data: Any) -> list[str]:
    """Keep the non-empty string items of a list; anything else becomes []."""
    if not isinstance(data, list):
        return []
    return [item.strip() for item in data if isinstance(item, str) and item.strip()]


def ensure_finite_float(data: Any) -> Optional[float]:
    """Convert to a finite float, or None."""
    try:
        value = float(data)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def ensure_int_in_range(data: Any, low: int, high: int) -> Optional[int]:
    """Round to an int clamped into ``[low, high]``; None when not numeric."""
    value = ensure_finite_float(data)
    if value is None or isinstance(data, bool):
        return None
    return max(low, min(high, int(round(value))))
