"""
Workflow descriptors for the two conversation variants.

Adding a workflow means adding a descriptor here: its edges and its
per-step handlers. The engine itself does not change.
"""

from typing import Dict

from core.models import ConversationStep, WorkflowKind
from core.workflow import WorkflowDescriptor
from conversation import handlers as h
from conversation import messages

Step = ConversationStep


CBSE_WORKFLOW = WorkflowDescriptor(
    kind=WorkflowKind.CBSE,
    entry_step=Step.WAITING_FOR_CLASS,
    greeting=messages.CBSE_GREETING,
    transitions={
        Step.INITIAL: frozenset({Step.WAITING_FOR_CLASS, Step.WAITING_FOR_SUBJECT}),
        Step.WAITING_FOR_CLASS: frozenset({Step.WAITING_FOR_SUBJECT}),
        Step.WAITING_FOR_SUBJECT: frozenset({Step.WAITING_FOR_QUESTION_PAPER}),
        Step.WAITING_FOR_QUESTION_PAPER: frozenset({Step.PROCESSING_QUESTION_PAPER}),
        Step.PROCESSING_QUESTION_PAPER: frozenset({Step.EXTRACTING_MARKS, Step.WAITING_FOR_QUESTION_PAPER}),
        Step.EXTRACTING_MARKS: frozenset({
            Step.WAITING_FOR_MARKS_CONFIRMATION,
            Step.WAITING_FOR_MARKS_UPDATE,
            Step.WAITING_FOR_QUESTION_PAPER,
        }),
        Step.WAITING_FOR_MARKS_CONFIRMATION: frozenset({
            Step.WAITING_FOR_MARKS_UPDATE,
            Step.WAITING_FOR_STUDENT_ANSWER,
        }),
        Step.WAITING_FOR_MARKS_UPDATE: frozenset({Step.WAITING_FOR_MARKS_CONFIRMATION}),
        Step.WAITING_FOR_STUDENT_ANSWER: frozenset({Step.GRADING_IN_PROGRESS}),
        Step.GRADING_IN_PROGRESS: frozenset({Step.COMPLETE, Step.WAITING_FOR_STUDENT_ANSWER}),
        Step.COMPLETE: frozenset({Step.FOLLOW_UP, Step.GRADING_IN_PROGRESS}),
        Step.FOLLOW_UP: frozenset({Step.GRADING_IN_PROGRESS}),
    },
    text_handlers={
        Step.INITIAL: h.cbse_initial_text,
        Step.WAITING_FOR_CLASS: h.cbse_class_text,
        Step.WAITING_FOR_SUBJECT: h.cbse_subject_text,
        Step.WAITING_FOR_QUESTION_PAPER: h.cbse_paper_text,
        Step.PROCESSING_QUESTION_PAPER: h.cbse_paper_text,
        Step.EXTRACTING_MARKS: h.cbse_paper_text,
        Step.WAITING_FOR_MARKS_CONFIRMATION: h.cbse_confirmation_text,
        Step.WAITING_FOR_MARKS_UPDATE: h.cbse_update_text,
        Step.WAITING_FOR_STUDENT_ANSWER: h.cbse_answer_text,
        Step.GRADING_IN_PROGRESS: h.cbse_answer_text,
        Step.COMPLETE: h.cbse_graded_text,
        Step.FOLLOW_UP: h.cbse_graded_text,
    },
    image_handlers={
        Step.INITIAL: h.cbse_early_image,
        Step.WAITING_FOR_CLASS: h.cbse_early_image,
        Step.WAITING_FOR_SUBJECT: h.cbse_early_image,
        Step.WAITING_FOR_QUESTION_PAPER: h.cbse_paper_image,
        Step.PROCESSING_QUESTION_PAPER: h.cbse_paper_image,
        Step.EXTRACTING_MARKS: h.cbse_paper_image,
        Step.WAITING_FOR_MARKS_CONFIRMATION: h.cbse_marks_image,
        Step.WAITING_FOR_MARKS_UPDATE: h.cbse_marks_image,
        Step.WAITING_FOR_STUDENT_ANSWER: h.cbse_answer_image,
        Step.GRADING_IN_PROGRESS: h.cbse_answer_image,
        Step.COMPLETE: h.new_cycle_for_image,
        Step.FOLLOW_UP: h.new_cycle_for_image,
    },
)


SIMPLE_WORKFLOW = WorkflowDescriptor(
    kind=WorkflowKind.SIMPLE,
    entry_step=Step.WAITING_FOR_QUESTION,
    greeting=messages.SIMPLE_GREETING,
    transitions={
        Step.INITIAL: frozenset({Step.WAITING_FOR_QUESTION}),
        Step.WAITING_FOR_QUESTION: frozenset({Step.WAITING_FOR_ANSWER}),
        Step.WAITING_FOR_ANSWER: frozenset({Step.WAITING_FOR_INSTRUCTION}),
        Step.WAITING_FOR_INSTRUCTION: frozenset({Step.GRADING_IN_PROGRESS, Step.WAITING_FOR_ANSWER}),
        Step.GRADING_IN_PROGRESS: frozenset({
            Step.COMPLETE,
            Step.WAITING_FOR_INSTRUCTION,
            Step.WAITING_FOR_ANSWER,
        }),
        Step.COMPLETE: frozenset({Step.FOLLOW_UP, Step.GRADING_IN_PROGRESS}),
        Step.FOLLOW_UP: frozenset({Step.GRADING_IN_PROGRESS}),
    },
    text_handlers={
        Step.INITIAL: h.simple_question_text,
        Step.WAITING_FOR_QUESTION: h.simple_question_text,
        Step.WAITING_FOR_ANSWER: h.simple_answer_text,
        Step.WAITING_FOR_INSTRUCTION: h.simple_instruction_text,
        Step.GRADING_IN_PROGRESS: h.simple_instruction_text,
        Step.COMPLETE: h.simple_graded_text,
        Step.FOLLOW_UP: h.simple_graded_text,
    },
    image_handlers={
        Step.INITIAL: h.simple_question_image,
        Step.WAITING_FOR_QUESTION: h.simple_question_image,
        Step.WAITING_FOR_ANSWER: h.simple_answer_image,
        Step.WAITING_FOR_INSTRUCTION: h.simple_answer_image,
        Step.GRADING_IN_PROGRESS: h.simple_answer_image,
        Step.COMPLETE: h.new_cycle_for_image,
        Step.FOLLOW_UP: h.new_cycle_for_image,
    },
)


WORKFLOWS: Dict[WorkflowKind, WorkflowDescriptor] = {
    WorkflowKind.CBSE: CBSE_WORKFLOW,
    WorkflowKind.SIMPLE: SIMPLE_WORKFLOW,
}


def get_workflow(kind: WorkflowKind | str) -> WorkflowDescriptor:
    return WORKFLOWS[WorkflowKind(kind)]
