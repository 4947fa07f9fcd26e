"""
Validation of model-structured question papers.

The structuring collaborator answers with
``{"totalMarks": 40, "questions": [{"number": 1, "text": "...", "marks": 2}]}``.
A payload becomes an ExtractionResult only if every question is usable;
anything else yields None so the caller can fall back to MarkExtractor.
"""

from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from config.constants import MAX_QUESTION_MARKS, MAX_QUESTION_NUMBER, MIN_QUESTION_MARKS
from core.models import ExtractedQuestion
from extraction.marks import ExtractionResult, scan_header_total
from utils.type_guards import ensure_finite_float, ensure_str, is_dict_with_keys

STRUCTURED_LAYER = "structured"


def _question(item: Any) -> Optional[ExtractedQuestion]:
    if not is_dict_with_keys(item, ("number", "marks")):
        return None
    if isinstance(item["number"], bool) or isinstance(item["marks"], bool):
        return None
    try:
        question = ExtractedQuestion(
            number=item["number"],
            marks=item["marks"],
            text=ensure_str(item.get("text")).strip(),
        )
    except ValidationError:
        return None
    if question.number > MAX_QUESTION_NUMBER:
        return None
    if not MIN_QUESTION_MARKS <= question.marks <= MAX_QUESTION_MARKS:
        return None
    return question


def _declared_total(payload: Dict[str, Any]) -> Optional[int]:
    value = ensure_finite_float(payload.get("totalMarks"))
    if value is None or isinstance(payload.get("totalMarks"), bool) or value <= 0 or value != int(value):
        return None
    return int(value)


def parse_structured_paper(payload: Any, ocr_text: str = "") -> Optional[ExtractionResult]:
    """
    Convert a structuring payload into an ExtractionResult.

    Args:
        payload: Decoded JSON from the structuring collaborator
        ocr_text: The paper text that was structured; its printed total
            takes precedence over the model's ``totalMarks``

    Returns:
        ExtractionResult ordered by question number, or None when the
        payload is malformed, empty, or repeats a question number
    """
    if not is_dict_with_keys(payload, ("questions",)) or not isinstance(payload["questions"], list):
        logger.warning("Structured paper payload has no questions list")
        return None

    questions: Dict[int, ExtractedQuestion] = {}
    for item in payload["questions"]:
        question = _question(item)
        if question is None:
            logger.warning(f"Rejecting structured paper: unusable question entry {str(item)[:100]}")
            return None
        if question.number in questions:
            logger.warning(f"Rejecting structured paper: question {question.number} appears twice")
            return None
        questions[question.number] = question

    if not questions:
        return None

    lines = ocr_text.replace("\r\n", "\n").split("\n") if ocr_text else []
    ordered = [questions[n] for n in sorted(questions)]
    return ExtractionResult(
        marks={q.number: q.marks for q in ordered},
        question_texts={q.number: q.text for q in ordered if q.text},
        header_total=scan_header_total(lines) or _declared_total(payload),
        layers_used=(STRUCTURED_LAYER,),
    )
