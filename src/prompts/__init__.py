"""
Prompt templates for the grading assistant.

Organized by category:
- grading: grading prompts (CBSE paper, single answer) and subject guidelines
- ocr: question-paper and student-answer extraction prompts
"""

from prompts.grading import (
    SYSTEM_MESSAGE,
    APPROACH_GUIDELINES,
    SUBJECT_GUIDELINES,
    build_grading_prompt,
)

from prompts.ocr import (
    build_paper_structure_prompt,
    build_question_paper_prompt,
    build_student_answer_prompt,
    is_question_paper_prompt,
)

__all__ = [
    'SYSTEM_MESSAGE',
    'APPROACH_GUIDELINES',
    'SUBJECT_GUIDELINES',
    'build_grading_prompt',
    'build_paper_structure_prompt',
    'build_question_paper_prompt',
    'build_student_answer_prompt',
    'is_question_paper_prompt',
]
