"""
Grading module.

Provides the grading orchestrator, remote payload validation and the
deterministic fallback grader.
"""

from grading.orchestrator import GradingOrchestrator
from grading.fallback import build_fallback_result, fallback_score
from grading.response_parser import parse_grading_payload, clamp_score

__all__ = [
    'GradingOrchestrator',
    'build_fallback_result',
    'fallback_score',
    'parse_grading_payload',
    'clamp_score',
]
