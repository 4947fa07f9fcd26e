"""
Per-step handlers.

Each step of each workflow has one text handler ``(ctx, intent, text)`` and
one image handler ``(ctx, image)``, both returning the reply. Handlers only
move the session through ``ctx.advance``, so every step change is checked
against the workflow's declared edges.
"""

import asyncio

from loguru import logger

from config.constants import DEFAULT_INSTRUCTION_MARKS, DEFAULT_QUESTION_TEXT
from core.exceptions import ProviderError
from core.models import ConversationStep, GradingRequest, Intent
from conversation import messages
from conversation.context import ImagePayload, TurnContext
from conversation.intent import (
    detect_grading_approach,
    parse_class_level,
    parse_instruction_marks,
    parse_marks_update,
    parse_new_question,
    parse_subject,
)
from prompts.ocr import build_question_paper_prompt, build_student_answer_prompt

Step = ConversationStep

OCR_FAILURES = (ProviderError, asyncio.TimeoutError)


# ==================== Shared ====================

async def _grade(ctx: TurnContext, request: GradingRequest) -> str:
    """GRADING_IN_PROGRESS -> COMPLETE around one orchestrator call."""
    result = await ctx.services.orchestrator.grade(request)
    session = ctx.advance(Step.COMPLETE, grading_history=ctx.session.grading_history + (result,))
    return messages.format_result(result, session)


async def answer_follow_up(ctx: TurnContext, intent: Intent, text: str) -> str:
    ctx.advance(Step.FOLLOW_UP)
    return messages.follow_up_answer(text, ctx.session.last_result)


async def new_cycle_for_image(ctx: TurnContext, image: ImagePayload) -> str:
    """A new image after grading starts over; history is kept."""
    ctx.restart()
    logger.info(f"New image after grading, restarted session for user {ctx.session.user_id}")
    return "Starting a new grading session. " + messages.step_prompt(ctx.session)


# ==================== CBSE: class and subject ====================

def _apply_class_and_subject(ctx: TurnContext, text: str) -> str:
    level = parse_class_level(text)
    if level is None:
        return messages.CLASS_PROMPT
    subject = parse_subject(text)
    ctx.advance(Step.WAITING_FOR_SUBJECT, class_level=level)
    if subject is None:
        return messages.subject_prompt(level)
    ctx.advance(Step.WAITING_FOR_QUESTION_PAPER, subject_area=subject)
    return messages.question_paper_prompt(ctx.session)


async def cbse_initial_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.SET_CLASS:
        return _apply_class_and_subject(ctx, text)
    ctx.advance(Step.WAITING_FOR_CLASS)
    return messages.CBSE_GREETING


async def cbse_class_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.SET_CLASS:
        return _apply_class_and_subject(ctx, text)
    return "I couldn't tell which class that is. " + messages.CLASS_PROMPT


async def cbse_subject_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.SET_SUBJECT:
        level = parse_class_level(text) or ctx.session.class_level
        ctx.advance(Step.WAITING_FOR_QUESTION_PAPER, subject_area=parse_subject(text), class_level=level)
        return messages.question_paper_prompt(ctx.session)
    if intent is Intent.SET_CLASS:
        level = parse_class_level(text)
        ctx.update(class_level=level)
        return messages.subject_prompt(level)
    return f"I didn't recognise that subject. Please choose one of: {messages.SUBJECT_CHOICES}."


async def cbse_early_image(ctx: TurnContext, image: ImagePayload) -> str:
    """An image before class and subject are known."""
    if ctx.step is Step.INITIAL:
        ctx.advance(Step.WAITING_FOR_CLASS)
    return (
        "Thanks for the image! Before I can read it I need a little context. "
        + messages.step_prompt(ctx.session)
    )


# ==================== CBSE: question paper ====================

async def _extract_marks(ctx: TurnContext, paper_text: str) -> str:
    """
    PROCESSING_QUESTION_PAPER -> EXTRACTING_MARKS -> confirmation (or manual entry).

    The structuring collaborator is asked first; MarkExtractor reads the
    text when it is absent, fails, or answers with an unusable structure.
    """
    ctx.advance(Step.EXTRACTING_MARKS, question_paper_text=paper_text)
    result = await ctx.structure_paper(paper_text)
    if result is None:
        result = ctx.services.extractor.extract(paper_text, ctx.session.subject_area)
    changes = dict(
        draft_marks=result.marks,
        question_texts=result.question_texts,
        header_total=result.header_total,
        confirmed_marks=None,
        is_marking_confirmed=False,
    )
    if result.is_empty:
        logger.info(f"No marks extracted for user {ctx.session.user_id}, asking for manual entry")
        ctx.advance(Step.WAITING_FOR_MARKS_UPDATE, **changes)
        return messages.no_marks_found()
    logger.info(
        f"Extracted {len(result.marks)} questions / {result.total} marks "
        f"for user {ctx.session.user_id} via {', '.join(result.layers_used)}"
    )
    ctx.advance(Step.WAITING_FOR_MARKS_CONFIRMATION, **changes)
    return messages.marks_confirmation(ctx.session)


async def cbse_paper_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if ctx.step is not Step.WAITING_FOR_QUESTION_PAPER:
        ctx.advance(Step.WAITING_FOR_QUESTION_PAPER)
    if intent is not Intent.PROVIDE_QUESTION:
        return messages.question_paper_prompt(ctx.session)
    ctx.advance(Step.PROCESSING_QUESTION_PAPER)
    return await _extract_marks(ctx, text.strip())


async def cbse_paper_image(ctx: TurnContext, image: ImagePayload) -> str:
    if ctx.step is not Step.WAITING_FOR_QUESTION_PAPER:
        ctx.advance(Step.WAITING_FOR_QUESTION_PAPER)
    ctx.advance(Step.PROCESSING_QUESTION_PAPER)
    try:
        paper_text = await ctx.read_image(image, build_question_paper_prompt(ctx.session.subject_area))
    except OCR_FAILURES as e:
        logger.warning(f"Question paper OCR failed for user {ctx.session.user_id}: {e}")
        ctx.advance(Step.WAITING_FOR_QUESTION_PAPER)
        return messages.OCR_FAILED
    return await _extract_marks(ctx, paper_text)


# ==================== CBSE: marks ====================

def _apply_correction(ctx: TurnContext, text: str) -> str:
    number, marks = parse_marks_update(text)
    draft = dict(ctx.session.draft_marks)
    previous = draft.get(number)
    draft[number] = marks
    if ctx.step is not Step.WAITING_FOR_MARKS_UPDATE:
        ctx.advance(Step.WAITING_FOR_MARKS_UPDATE)
    ctx.advance(Step.WAITING_FOR_MARKS_CONFIRMATION, draft_marks=draft)
    change = f"from {previous} to {marks}" if previous is not None else f"as {marks}"
    return f"Updated Question {number} {change} marks.\n\n" + messages.marks_confirmation(ctx.session)


async def cbse_confirmation_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.UPDATE_MARKS:
        return _apply_correction(ctx, text)
    if intent is Intent.REJECT_MARKS:
        ctx.advance(Step.WAITING_FOR_MARKS_UPDATE)
        return messages.UPDATE_FORMAT
    if intent is Intent.CONFIRM_MARKS:
        draft = ctx.session.draft_marks
        if not draft or sum(draft.values()) <= 0:
            ctx.advance(Step.WAITING_FOR_MARKS_UPDATE)
            return messages.no_marks_found()
        ctx.advance(
            Step.WAITING_FOR_STUDENT_ANSWER,
            confirmed_marks=dict(draft),
            is_marking_confirmed=True,
        )
        return f"Marks confirmed ({ctx.session.total_marks} in total). " + messages.STUDENT_ANSWER_PROMPT
    return "Please reply 'yes' if the marks are correct or 'no' to change them.\n\n" + messages.marks_confirmation(ctx.session)


async def cbse_update_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.UPDATE_MARKS:
        return _apply_correction(ctx, text)
    return "I didn't understand that correction. " + messages.UPDATE_FORMAT


async def cbse_marks_image(ctx: TurnContext, image: ImagePayload) -> str:
    return (
        "Let's finish checking the marks before the answer sheet. "
        + messages.step_prompt(ctx.session)
    )


# ==================== CBSE: answer and grading ====================

def _cbse_request(ctx: TurnContext) -> GradingRequest:
    session = ctx.session
    return GradingRequest(
        question_context=session.question_paper_text or DEFAULT_QUESTION_TEXT,
        student_answer_text=session.student_answer_text or "",
        max_marks=session.total_marks,
        approach=session.grading_approach,
        subject_area=session.subject_area,
        class_level=session.class_level,
        question_marks=session.confirmed_marks or {},
    )


def _missing_prerequisite(ctx: TurnContext) -> str:
    """Coerce a session that cannot be graded back to the entry step."""
    logger.warning(
        f"User {ctx.session.user_id} reached grading without confirmed marks, recovering"
    )
    ctx.recover()
    return (
        "I need the question paper and confirmed marks before I can grade an answer, "
        "so let's set those up again. " + messages.step_prompt(ctx.session)
    )


async def cbse_answer_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if ctx.step is not Step.WAITING_FOR_STUDENT_ANSWER:
        ctx.advance(Step.WAITING_FOR_STUDENT_ANSWER)
    return messages.STUDENT_ANSWER_PROMPT


async def cbse_answer_image(ctx: TurnContext, image: ImagePayload) -> str:
    if ctx.step is not Step.WAITING_FOR_STUDENT_ANSWER:
        ctx.advance(Step.WAITING_FOR_STUDENT_ANSWER)
    if not ctx.session.is_marking_confirmed or ctx.session.total_marks <= 0:
        return _missing_prerequisite(ctx)
    try:
        answer = await ctx.read_image(image, build_student_answer_prompt(ctx.session.subject_area))
    except OCR_FAILURES as e:
        logger.warning(f"Answer sheet OCR failed for user {ctx.session.user_id}: {e}")
        return messages.OCR_FAILED
    ctx.advance(Step.GRADING_IN_PROGRESS, student_answer_text=answer)
    return await _grade(ctx, _cbse_request(ctx))


async def cbse_graded_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.GRADING_INSTRUCTION:
        session = ctx.session
        if not session.student_answer_text or session.total_marks <= 0:
            return _missing_prerequisite(ctx)
        approach = detect_grading_approach(text, session.grading_approach)
        ctx.advance(Step.GRADING_IN_PROGRESS, grading_approach=approach)
        return await _grade(ctx, _cbse_request(ctx))
    if intent is Intent.FOLLOW_UP_QUESTION:
        return await answer_follow_up(ctx, intent, text)
    return messages.step_prompt(ctx.session)


# ==================== Simple workflow ====================

def _save_question(ctx: TurnContext, question: str) -> str:
    if ctx.step is Step.INITIAL:
        ctx.advance(Step.WAITING_FOR_QUESTION)
    ctx.advance(Step.WAITING_FOR_ANSWER, question=question.strip())
    return messages.ANSWER_PROMPT


async def simple_question_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.PROVIDE_QUESTION:
        return _save_question(ctx, text)
    if ctx.step is Step.INITIAL:
        ctx.advance(Step.WAITING_FOR_QUESTION)
    return messages.step_prompt(ctx.session)


async def _read_answer(ctx: TurnContext, image: ImagePayload) -> str:
    try:
        answer = await ctx.read_image(image, build_student_answer_prompt())
    except OCR_FAILURES as e:
        logger.warning(f"Answer OCR failed for user {ctx.session.user_id}: {e}")
        return messages.OCR_FAILED
    if ctx.step is Step.WAITING_FOR_INSTRUCTION:
        ctx.update(student_answer_text=answer)
        return "Got the new answer. " + messages.INSTRUCTION_PROMPT
    ctx.advance(Step.WAITING_FOR_INSTRUCTION, student_answer_text=answer)
    return messages.INSTRUCTION_PROMPT


async def simple_question_image(ctx: TurnContext, image: ImagePayload) -> str:
    """An answer before any question: grade against a default question."""
    _save_question(ctx, DEFAULT_QUESTION_TEXT)
    return await _read_answer(ctx, image)


async def simple_answer_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    return messages.ANSWER_PROMPT


async def simple_answer_image(ctx: TurnContext, image: ImagePayload) -> str:
    if ctx.step is Step.GRADING_IN_PROGRESS:
        ctx.advance(Step.WAITING_FOR_ANSWER)
    return await _read_answer(ctx, image)


def _simple_request(ctx: TurnContext) -> GradingRequest:
    session = ctx.session
    return GradingRequest(
        question_context=session.question or DEFAULT_QUESTION_TEXT,
        student_answer_text=session.student_answer_text or "",
        max_marks=session.max_marks or DEFAULT_INSTRUCTION_MARKS,
        instruction=session.instruction or "",
        approach=session.grading_approach,
    )


async def _simple_grade(ctx: TurnContext, text: str) -> str:
    session = ctx.session
    if not session.student_answer_text:
        ctx.advance(Step.WAITING_FOR_ANSWER)
        return "I don't have the student's answer yet. " + messages.ANSWER_PROMPT
    ctx.advance(
        Step.GRADING_IN_PROGRESS,
        instruction=text.strip(),
        max_marks=parse_instruction_marks(text) or session.max_marks or DEFAULT_INSTRUCTION_MARKS,
        grading_approach=detect_grading_approach(text, session.grading_approach),
    )
    return await _grade(ctx, _simple_request(ctx))


async def simple_instruction_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if ctx.step is Step.GRADING_IN_PROGRESS:
        ctx.advance(Step.WAITING_FOR_INSTRUCTION)
    return await _simple_grade(ctx, text)


async def simple_graded_text(ctx: TurnContext, intent: Intent, text: str) -> str:
    if intent is Intent.PROVIDE_QUESTION:
        ctx.restart()
        return _save_question(ctx, parse_new_question(text) or text)
    if intent is Intent.GRADING_INSTRUCTION:
        return await _simple_grade(ctx, text)
    if intent is Intent.FOLLOW_UP_QUESTION:
        return await answer_follow_up(ctx, intent, text)
    return messages.step_prompt(ctx.session)
