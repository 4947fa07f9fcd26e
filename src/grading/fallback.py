"""
Deterministic local grading.

Used when the grading collaborator is unavailable or keeps returning
unusable output, so a turn can always complete.
"""

import math
import re
from typing import Dict, List, Tuple

from config.constants import (
    FALLBACK_CHARS_FOR_FULL_MARKS,
    FALLBACK_SUBSTANTIAL_ANSWER_CHARS,
    FALLBACK_MIN_RATIO,
    FALLBACK_MAX_RATIO,
)
from core.models import ComponentScores, GradingApproach, GradingRequest, GradingResult, SubjectArea

# subject -> (strengths, areas for improvement)
SUBJECT_FEEDBACK: Dict[SubjectArea, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    SubjectArea.ECONOMICS: (
        ("Shows understanding of fundamental economic concepts",
         "Attempts to connect economic theory to real-world examples"),
        ("Could develop economic terminology more precisely",
         "Economic diagrams would benefit from clearer labeling"),
    ),
    SubjectArea.MATHEMATICS: (
        ("Demonstrates basic mathematical problem-solving skills",
         "Shows work in a somewhat organized manner"),
        ("Step-by-step workings could be more clearly presented",
         "Mathematical notation could be more precise"),
    ),
    SubjectArea.SCIENCE: (
        ("Demonstrates basic understanding of scientific concepts",
         "Attempts to use scientific terminology appropriately"),
        ("Scientific explanations could be more thorough",
         "Could better connect theory to experimental evidence"),
    ),
}

GENERAL_AREAS = (
    "Could benefit from more detailed explanations",
    "Additional specific examples would strengthen the answer",
    "More explicit connections to the core question would improve clarity",
)

SUGGESTED_POINTS = (
    "Review NCERT textbooks to strengthen conceptual understanding",
    "Practice more detailed explanations with specific examples",
    "Focus on making clearer connections between concepts and applications",
)

# component -> share of the percentage, on a 0-10 scale
COMPONENT_WEIGHTS = {"concepts": 0.6, "diagrams": 0.5, "application": 0.55, "terminology": 0.65}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fallback_score(answer_text: str, max_marks: int) -> int:
    """
    Score proportional to answer length.

    Full marks at FALLBACK_CHARS_FOR_FULL_MARKS characters; a substantial
    answer is then held between 40% and 80% of the maximum.
    """
    length = len(answer_text.strip())
    score = min(round_half_up(length / FALLBACK_CHARS_FOR_FULL_MARKS * max_marks), max_marks)
    if length >= FALLBACK_SUBSTANTIAL_ANSWER_CHARS:
        low = round_half_up(max_marks * FALLBACK_MIN_RATIO)
        high = round_half_up(max_marks * FALLBACK_MAX_RATIO)
        score = min(max(score, low), high)
    return max(0, min(score, max_marks))


def _strengths(answer_text: str, subject: SubjectArea | None) -> List[str]:
    words = len(answer_text.split())
    sentences = len(re.findall(r"[.!?]+\s", answer_text)) + 1
    strengths = []
    if words > 100:
        strengths.append("Provides a substantive response with reasonable detail")
    if sentences > 5:
        strengths.append("Organizes thoughts in a somewhat structured manner")
    strengths.append("Makes an effort to address the key points in the question")
    if subject in SUBJECT_FEEDBACK:
        strengths.extend(SUBJECT_FEEDBACK[subject][0])
    return strengths[:4]


def _areas(subject: SubjectArea | None) -> List[str]:
    areas = list(GENERAL_AREAS)
    if subject in SUBJECT_FEEDBACK:
        areas.extend(SUBJECT_FEEDBACK[subject][1])
    return areas[:4]


def build_fallback_result(request: GradingRequest) -> GradingResult:
    """Grade ``request`` locally, without any remote call."""
    answer = request.student_answer_text or ""
    score = fallback_score(answer, request.max_marks)
    percentage = score / request.max_marks * 100
    standard = "According to CBSE standards, the" if request.approach is GradingApproach.CBSE_STANDARD else "The"

    if answer.strip():
        feedback = (
            "This answer shows a basic understanding of the concepts covered in the question. "
            "The response addresses some key points but would benefit from more comprehensive "
            f"and detailed explanations. {standard} answer demonstrates partial mastery of the required knowledge."
        )
    else:
        feedback = "No readable answer was found, so no marks could be awarded."

    return GradingResult(
        score=score,
        out_of=request.max_marks,
        feedback=feedback,
        strengths=tuple(_strengths(answer, request.subject_area)) if answer.strip() else (),
        areas_for_improvement=tuple(_areas(request.subject_area)),
        suggested_points=SUGGESTED_POINTS,
        approach=request.approach,
        correct_concepts="The response shows a foundation of understanding related to the core concepts of the topic.",
        misconceptions="There are some minor misconceptions that could be addressed with more precise explanations and examples.",
        component_scores=ComponentScores(**{
            name: min(10, round_half_up(percentage * weight / 10))
            for name, weight in COMPONENT_WEIGHTS.items()
        }),
        is_fallback=True,
    )
