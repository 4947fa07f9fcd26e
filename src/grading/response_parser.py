"""
Validation of remote grading payloads.

Turns the grader's JSON object into a GradingResult. A payload missing a
required field is a ParsingError, which the orchestrator treats as a failed
attempt. Scores are clamped, off-topic answers forced to zero, and the
percentage is always derived locally.
"""

from typing import Any, Dict

from core.exceptions import ParsingError
from core.models import ComponentScores, GradingRequest, GradingResult
from utils.type_guards import (
    GRADING_REQUIRED_FIELDS,
    ensure_finite_float,
    ensure_int_in_range,
    ensure_str,
    ensure_str_list,
    is_grading_payload,
    missing_keys,
)

IRRELEVANT_FEEDBACK = (
    "The submitted answer does not match the question being graded, "
    "so it has been awarded 0 out of {max_marks} marks."
)

COMPONENT_FIELDS = {
    "concepts": "conceptsScore",
    "diagrams": "diagramScore",
    "application": "applicationScore",
    "terminology": "terminologyScore",
}


def clamp_score(score: float, max_marks: int) -> float:
    return max(0.0, min(float(score), float(max_marks)))


def _as_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("false", "no", "0"):
            return False
        if lowered in ("true", "yes", "1"):
            return True
    return default


def _component_scores(payload: Dict[str, Any]) -> ComponentScores | None:
    values = {
        name: ensure_int_in_range(payload.get(key), 0, 10)
        for name, key in COMPONENT_FIELDS.items()
    }
    if all(v is None for v in values.values()):
        return None
    return ComponentScores(**values)


def parse_grading_payload(payload: Any, request: GradingRequest) -> GradingResult:
    """
    Build a GradingResult from a remote payload.

    Args:
        payload: Parsed JSON object from the grading collaborator
        request: The request that produced it

    Returns:
        A validated, clamped GradingResult

    Raises:
        ParsingError: if required fields are missing or malformed
    """
    if not is_grading_payload(payload):
        missing = missing_keys(payload, GRADING_REQUIRED_FIELDS)
        raise ParsingError(
            "Grading payload is structurally invalid",
            {"missing": missing} if missing else {"payload_type": type(payload).__name__},
        )

    max_marks = request.max_marks
    score = round(clamp_score(ensure_finite_float(payload["score"]), max_marks), 2)
    feedback = ensure_str(payload["feedback"]).strip()
    is_relevant = _as_bool(payload.get("is_relevant"), default=True)

    if not is_relevant:
        score = 0.0
        mismatch = IRRELEVANT_FEEDBACK.format(max_marks=max_marks)
        feedback = f"{mismatch} {feedback}".strip()

    return GradingResult(
        score=score,
        out_of=max_marks,
        feedback=feedback or "No feedback was provided.",
        strengths=tuple(ensure_str_list(payload["strengths"])),
        areas_for_improvement=tuple(ensure_str_list(payload["areas_for_improvement"])),
        suggested_points=tuple(ensure_str_list(payload["suggested_points"])),
        is_relevant=is_relevant,
        approach=request.approach,
        correct_concepts=ensure_str(payload.get("correct_concepts")) or None,
        misconceptions=ensure_str(payload.get("misconceptions")) or None,
        component_scores=_component_scores(payload),
    )
