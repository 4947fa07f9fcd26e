"""
Grading prompts for the grading assistant.

Contains:
- System message for the grader
- CBSE paper grading (confirmed per-question marks)
- Single-answer grading (simple workflow)
"""

from typing import Dict, Optional

from core.models import GradingApproach, GradingRequest, SubjectArea

SYSTEM_MESSAGE = """You are SuperTeacher, an experienced school examiner.

CORE PRINCIPLES:
- Accuracy: the score must be justified by the student's work
- Fairness: apply the marking scheme consistently
- Honesty: if the answer does not address the question, say so

Always answer with a single valid JSON object and nothing else."""

APPROACH_GUIDELINES: Dict[GradingApproach, str] = {
    GradingApproach.STRICT: "Grade strictly: award marks only for complete, precise answers.",
    GradingApproach.BALANCED: "Grade in a balanced way: reward correct ideas, deduct for errors and omissions.",
    GradingApproach.LENIENT: "Grade leniently: reward partial understanding and genuine attempts.",
    GradingApproach.DETAILED: "Give detailed feedback covering every part of the answer.",
    GradingApproach.QUICK: "Keep the feedback brief: two or three sentences.",
    GradingApproach.CONCEPTUAL: "Focus on conceptual understanding over presentation.",
    GradingApproach.TECHNICAL: "Focus on technical accuracy: terminology, formulas, units and diagrams.",
    GradingApproach.CBSE_STANDARD: "Grade according to CBSE marking scheme standards.",
}

SUBJECT_GUIDELINES: Dict[SubjectArea, str] = {
    SubjectArea.ECONOMICS: """For Economics, follow these CBSE guidelines:
- Award full marks for complete explanations of economic concepts
- Award partial marks for partial understanding
- Check for correct diagrams when required
- Look for proper economic terminology usage
- Evaluate application of economic theories to real-world scenarios
- Consider logical structure and flow of the answer""",
    SubjectArea.MATHEMATICS: """For Mathematics, follow these CBSE guidelines:
- Award step marks for correct method even if the final answer is wrong
- Check units, notation and the final answer""",
    SubjectArea.SCIENCE: """For Science, follow these CBSE guidelines:
- Check scientific terminology and labelled diagrams
- Award marks for correct reasoning linked to theory or experiment""",
}

RESPONSE_FORMAT = """Return your assessment as a valid JSON object with these fields:
{{
  "score": (a number from 0 to {max_marks} representing the total score),
  "is_relevant": (false if the answer does not address this question paper at all, otherwise true),
  "feedback": (professional explanation of the grade with specific examples from the student's work),
  "strengths": (array of 3-4 specific strengths demonstrated in the work),
  "areas_for_improvement": (array of 3-4 specific areas needing improvement),
  "suggested_points": (array of 2-3 actionable suggestions for improvement),
  "correct_concepts": (key concepts the student understood correctly),
  "misconceptions": (any evident misconceptions in the student's answer),
  "conceptsScore": (a number from 0-10 rating conceptual understanding),
  "diagramScore": (a number from 0-10 rating diagram accuracy if applicable),
  "applicationScore": (a number from 0-10 rating application of theories),
  "terminologyScore": (a number from 0-10 rating use of terminology)
}}

Ensure your response is ONLY valid JSON without any additional text."""


def build_grading_prompt(request: GradingRequest) -> str:
    """
    Build the grading prompt for a request.

    CBSE requests (with per-question marks or a class level) get the
    examiner prompt; everything else gets the single-answer prompt.

    Args:
        request: The grading request

    Returns:
        Formatted prompt string
    """
    if request.question_marks or request.class_level is not None:
        return _build_cbse_prompt(request)
    return _build_answer_prompt(request)


def _marks_table(question_marks: Dict[int, int]) -> str:
    return "\n".join(f"- Question {n}: {m} marks" for n, m in question_marks.items())


def _subject_guidelines(subject: Optional[SubjectArea]) -> str:
    if subject is None:
        return ""
    return SUBJECT_GUIDELINES.get(subject, "")


def _build_cbse_prompt(request: GradingRequest) -> str:
    """Examiner prompt for a full CBSE paper."""
    class_label = request.class_level.label if request.class_level else ""
    subject_label = request.subject_area.label if request.subject_area else "general"

    prompt = f"""You are a CBSE examiner grading a {class_label} {subject_label} exam.

QUESTION PAPER:
{request.question_context}

CONFIRMED MARKS DISTRIBUTION:
{_marks_table(request.question_marks) or "- Not itemised"}

STUDENT'S ANSWER:
{request.student_answer_text}

GRADING INSTRUCTIONS:
{_subject_guidelines(request.subject_area)}
- {APPROACH_GUIDELINES[request.approach]}
- Total marks for this answer: {request.max_marks}
- Allocate marks per question according to the confirmed marks distribution
- Be fair and consistent in your evaluation
"""
    if request.instruction:
        prompt += f"- Teacher's instruction: {request.instruction}\n"
    return prompt + "\n" + RESPONSE_FORMAT.format(max_marks=request.max_marks)


def _build_answer_prompt(request: GradingRequest) -> str:
    """Prompt for one question and one answer."""
    prompt = f"""QUESTION: {request.question_context}

STUDENT'S ANSWER:
{request.student_answer_text}

MAX MARKS: {request.max_marks}

GRADING INSTRUCTIONS:
- {APPROACH_GUIDELINES[request.approach]}
"""
    if request.instruction:
        prompt += f"- Teacher's instruction: {request.instruction}\n"
    return prompt + "\n" + RESPONSE_FORMAT.format(max_marks=request.max_marks)
