"""
Reply texts and result formatting.

Everything the assistant says lives here so handlers stay about state.
"""

from typing import Dict, Optional

from core.models import (
    ClassLevel,
    ConversationStep,
    GradingResult,
    Session,
    SubjectArea,
    WorkflowKind,
)

Step = ConversationStep

CBSE_GREETING = (
    "Hi! I'm SuperTeacher 👩‍🏫 I'll help you grade CBSE papers. "
    "Which class are you grading for? (Class 6 to Class 12)"
)
SIMPLE_GREETING = "Hi! I'm SuperTeacher 👩‍🏫 Please send me the question you'd like to grade."

CLASS_PROMPT = "Which class are you grading for? Please choose a class from 6 to 12 (for example, 'Class 10')."
SUBJECT_CHOICES = ", ".join(s.label for s in SubjectArea if s is not SubjectArea.GENERAL)
UPDATE_FORMAT = "Which question needs marks correction? You can tell me something like 'Question 3 should be 5 marks'."
STUDENT_ANSWER_PROMPT = "Great! Now please upload the student's answer paper so I can grade it according to CBSE standards."
INSTRUCTION_PROMPT = "Thanks! What would you like me to do? (e.g., 'Grade it for 6 marks', 'Give feedback')"
ANSWER_PROMPT = "Got it. Now upload the student's answer sheet image."

OCR_FAILED = "Sorry, I couldn't read that image. Please try uploading it again (a clear, well-lit photo works best)."
RECOVERY = "Sorry, something went wrong on my side, so I've restarted our conversation. "
GENERIC_ERROR = "Sorry, something went wrong while handling that. Please try again."
EMPTY_MESSAGE = "I didn't catch that. "

CBSE_HELP = """Here's how grading works:
1. Tell me the class (6 to 12) and the subject.
2. Upload the question paper. I'll read the marks for each question.
3. Confirm the marks, or correct them ("Question 3 should be 5 marks").
4. Upload the student's answer sheet and I'll grade it.
After grading you can ask why marks were lost, ask me to grade more strictly or leniently, or send a new answer sheet.
Say "start over" at any time to begin again."""

SIMPLE_HELP = """Here's how grading works:
1. Send me the question.
2. Upload a photo of the student's answer.
3. Tell me how to grade it, for example "Grade it for 6 marks" or "Grade strictly out of 10".
After grading you can ask follow-up questions or send a new question.
Say "start over" at any time to begin again."""


def help_text(workflow: WorkflowKind) -> str:
    return CBSE_HELP if workflow is WorkflowKind.CBSE else SIMPLE_HELP


def _class_label(level: Optional[ClassLevel]) -> str:
    return level.label if level else "your class"


def subject_prompt(level: Optional[ClassLevel]) -> str:
    return f"Great! You're grading for {_class_label(level)}. What subject are you grading? ({SUBJECT_CHOICES})"


def question_paper_prompt(session: Session) -> str:
    subject = session.subject_area.label if session.subject_area else "your subject"
    return (
        f"Perfect! I'll help you grade {subject} for {_class_label(session.class_level)}. "
        "Could you upload the question paper so I can analyze the questions and marks?"
    )


def format_marks(marks: Dict[int, int], texts: Optional[Dict[int, str]] = None,
                 header_total: Optional[int] = None) -> str:
    """Marks list followed by the total, noting a mismatch with the paper's header."""
    texts = texts or {}
    lines = []
    for number, value in marks.items():
        text = texts.get(number, "")
        preview = f" {text[:60]}{'...' if len(text) > 60 else ''}" if text else ""
        lines.append(f"Q{number}: {value} mark{'s' if value != 1 else ''}{preview}")
    total = sum(marks.values())
    lines.append(f"Total: {total} marks")
    if header_total is not None and header_total != total:
        lines.append(f"⚠️ The paper says the maximum marks are {header_total}, but these add up to {total}.")
    return "\n".join(lines)


def marks_confirmation(session: Session) -> str:
    return (
        "I've analyzed the question paper and extracted these marks:\n\n"
        f"{format_marks(session.draft_marks, session.question_texts, session.header_total)}\n\n"
        "Do these look correct to you? Reply 'yes' to confirm, or tell me what to change."
    )


def no_marks_found() -> str:
    return (
        "I couldn't find the marks on this question paper. "
        "Please type them one at a time, for example 'Question 1 should be 2 marks'."
    )


def step_prompt(session: Session) -> str:
    """What the assistant is waiting for at the session's current step."""
    step = session.step
    if session.workflow is WorkflowKind.SIMPLE:
        return {
            Step.INITIAL: SIMPLE_GREETING,
            Step.WAITING_FOR_QUESTION: "Please send me the question you'd like to grade.",
            Step.WAITING_FOR_ANSWER: ANSWER_PROMPT,
            Step.WAITING_FOR_INSTRUCTION: INSTRUCTION_PROMPT,
            Step.GRADING_IN_PROGRESS: "I'm grading the answer now.",
            Step.COMPLETE: "Do you want to grade another answer? If so, please send me the new question.",
            Step.FOLLOW_UP: "Ask me anything about this grading, or send a new question.",
        }.get(step, SIMPLE_GREETING)

    if step in (Step.INITIAL, Step.WAITING_FOR_CLASS):
        return CLASS_PROMPT
    if step is Step.WAITING_FOR_SUBJECT:
        return subject_prompt(session.class_level)
    if step in (Step.WAITING_FOR_QUESTION_PAPER, Step.PROCESSING_QUESTION_PAPER, Step.EXTRACTING_MARKS):
        return question_paper_prompt(session)
    if step is Step.WAITING_FOR_MARKS_CONFIRMATION:
        return marks_confirmation(session)
    if step is Step.WAITING_FOR_MARKS_UPDATE:
        return UPDATE_FORMAT
    if step is Step.WAITING_FOR_STUDENT_ANSWER:
        return STUDENT_ANSWER_PROMPT
    if step is Step.GRADING_IN_PROGRESS:
        return "I'm analyzing the student's answer and preparing a detailed assessment based on CBSE guidelines."
    if step is Step.COMPLETE:
        return (
            "I've completed the assessment. Would you like to grade another paper "
            "or do you have questions about this grading?"
        )
    return "I'm here to help with CBSE grading. What would you like to do next?"


# ==================== Results ====================

def _bullets(items) -> str:
    return "\n".join(f"- {item}" for item in items) or "- None noted"


def format_cbse_result(result: GradingResult, session: Session) -> str:
    subject = session.subject_area.label.upper() if session.subject_area else "GENERAL"
    class_name = session.class_level.label.upper() if session.class_level else ""
    score = f"{result.score:g}"
    text = f"""## CBSE {class_name} {subject} ASSESSMENT

🏆 **TOTAL SCORE: {score}/{result.out_of}** ({round(result.percentage)}%)

📝 **EXAMINER'S REMARKS:**
{result.feedback}

💪 **STRENGTHS:**
{_bullets(result.strengths)}

🔍 **AREAS FOR IMPROVEMENT:**
{_bullets(result.areas_for_improvement)}

💡 **SUGGESTIONS TO IMPROVE:**
{_bullets(result.suggested_points)}
"""
    if session.subject_area is SubjectArea.ECONOMICS:
        components = result.component_scores

        def rating(value: Optional[int]) -> str:
            return f"{value}/10" if value is not None else "Not explicitly evaluated"

        text += f"""
📊 **ECONOMICS-SPECIFIC FEEDBACK:**
- Economic Concepts: {rating(components.concepts if components else None)}
- Diagram Accuracy: {rating(components.diagrams if components else None)}
- Application of Theories: {rating(components.application if components else None)}
- Use of Terminology: {rating(components.terminology if components else None)}
"""
    text += "\nAsk me about this grading, ask me to grade it again more strictly or leniently, or say 'new paper' to start over."
    return text.strip()


def format_simple_result(result: GradingResult) -> str:
    mistakes = f"\n❌ Areas to improve:\n{_bullets(result.areas_for_improvement)}" if result.areas_for_improvement else ""
    return (
        f"✅ Score: {result.score:g}/{result.out_of}\n"
        f"📝 Feedback: {result.feedback}"
        f"{mistakes}\n\n"
        "Do you want to grade another answer? If so, please send me the new question."
    )


def format_result(result: GradingResult, session: Session) -> str:
    if session.workflow is WorkflowKind.CBSE:
        return format_cbse_result(result, session)
    return format_simple_result(result)


# ==================== Follow-up ====================

def follow_up_answer(question: str, result: Optional[GradingResult]) -> str:
    """Answer a question about the latest grading from the stored result."""
    if result is None:
        return "I haven't graded anything yet. Upload an answer and I'll grade it first."

    q = question.lower()
    score_line = f"The answer scored {result.score:g}/{result.out_of} ({round(result.percentage)}%)."
    if not result.is_relevant:
        return f"{score_line} {result.feedback}"
    if any(word in q for word in ("strength", "good", "well")):
        return f"{score_line} What the student did well:\n{_bullets(result.strengths)}"
    if any(word in q for word in ("improve", "better", "suggest", "next time", "tip")):
        return f"Suggestions for the student:\n{_bullets(result.suggested_points)}"
    if any(word in q for word in ("why", "lost", "deduct", "mistake", "error", "wrong", "weak", "low", "score")):
        parts = [score_line]
        if result.misconceptions:
            parts.append(result.misconceptions)
        parts.append(f"Marks were lost for:\n{_bullets(result.areas_for_improvement)}")
        return "\n".join(parts)
    if result.is_fallback:
        return (
            f"{score_line} This grade was estimated locally because the grading service was unavailable. "
            "Ask me to grade it again to retry."
        )
    return f"{score_line} {result.feedback}"
