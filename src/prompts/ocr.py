"""
Text extraction prompts for the vision collaborator.

The prompt doubles as a hint: demo and remote OCR clients only look at
whether it asks for a question paper or a student answer.
"""

from typing import Optional

from core.models import SubjectArea

QUESTION_PAPER_MARKER = "question paper"
STUDENT_ANSWER_MARKER = "student's answer"


def build_question_paper_prompt(subject: Optional[SubjectArea] = None) -> str:
    """Prompt for reading a CBSE question paper."""
    subject_line = f" for {subject.label}" if subject else ""
    return f"""You are analyzing a CBSE {QUESTION_PAPER_MARKER}{subject_line}.
1. Extract all text exactly as it appears.
2. Identify all questions and their marks.
3. Pay special attention to the question numbers and marks allocated to each question.
4. Look for any text marked "MM" or "Maximum Marks" to find the total marks.
5. Keep one question per line, with its marks at the end of the line."""


def build_student_answer_prompt(subject: Optional[SubjectArea] = None) -> str:
    """Prompt for reading a handwritten student answer."""
    exam = f"a CBSE {subject.label} exam" if subject else "a question"
    return f"""You are analyzing a {STUDENT_ANSWER_MARKER} to {exam}.
Extract all text from this {STUDENT_ANSWER_MARKER} exactly as it appears, preserving formatting as much as possible.
Pay special attention to:
1. All written text in the image
2. Any diagrams or figures (describe them briefly where they appear)
3. Mathematical formulas or equations (if present)
4. Numbered points or sections in the answer"""


def is_question_paper_prompt(hint: Optional[str]) -> bool:
    return bool(hint) and QUESTION_PAPER_MARKER in hint.lower()


def build_paper_structure_prompt(paper_text: str) -> str:
    """Prompt asking for the question/marks structure of OCR'd paper text."""
    return f"""Given this extracted text from a CBSE {QUESTION_PAPER_MARKER}:

{paper_text}

Extract and structure the following information in JSON format:
1. totalMarks: The total marks for the paper
2. questions: An array of objects, each with:
   - number: The question number
   - text: The full text of the question
   - marks: The marks allocated to this question

Return ONLY valid JSON without explanation."""
