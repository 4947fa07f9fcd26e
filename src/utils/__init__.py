"""
Utility functions for the grading assistant.
"""

from utils.retry import RetryPolicy
from utils.json_extractor import extract_json_from_response
from utils.type_guards import (
    is_dict_with_keys,
    is_grading_payload,
    missing_keys,
    ensure_str,
    ensure_str_list,
    ensure_finite_float,
    ensure_int_in_range,
)

__all__ = [
    'RetryPolicy',
    'extract_json_from_response',
    'is_dict_with_keys',
    'is_grading_payload',
    'missing_keys',
    'ensure_str',
    'ensure_str_list',
    'ensure_finite_float',
    'ensure_int_in_range',
]
