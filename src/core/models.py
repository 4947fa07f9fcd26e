"""
Core data models for the grading assistant.

This module defines the Pydantic models and enums shared by the conversation
engine, the mark extractor and the grading orchestrator.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from typing import Dict, Optional, Tuple
from datetime import datetime
from enum import Enum
import uuid


class WorkflowKind(str, Enum):
    """Conversation variant a session runs under."""
    CBSE = "cbse"
    SIMPLE = "simple"


class ConversationStep(str, Enum):
    """Every state a session can be in, across all workflows."""
    INITIAL = "initial"
    # CBSE workflow
    WAITING_FOR_CLASS = "waiting_for_class"
    WAITING_FOR_SUBJECT = "waiting_for_subject"
    WAITING_FOR_QUESTION_PAPER = "waiting_for_question_paper"
    PROCESSING_QUESTION_PAPER = "processing_question_paper"
    EXTRACTING_MARKS = "extracting_marks"
    WAITING_FOR_MARKS_CONFIRMATION = "waiting_for_marks_confirmation"
    WAITING_FOR_MARKS_UPDATE = "waiting_for_marks_update"
    WAITING_FOR_STUDENT_ANSWER = "waiting_for_student_answer"
    # Simple workflow
    WAITING_FOR_QUESTION = "waiting_for_question"
    WAITING_FOR_ANSWER = "waiting_for_answer"
    WAITING_FOR_INSTRUCTION = "waiting_for_instruction"
    # Shared tail
    GRADING_IN_PROGRESS = "grading_in_progress"
    COMPLETE = "complete"
    FOLLOW_UP = "follow_up"


WORKFLOW_STEPS: Dict[WorkflowKind, Tuple[ConversationStep, ...]] = {
    WorkflowKind.CBSE: (
        ConversationStep.INITIAL,
        ConversationStep.WAITING_FOR_CLASS,
        ConversationStep.WAITING_FOR_SUBJECT,
        ConversationStep.WAITING_FOR_QUESTION_PAPER,
        ConversationStep.PROCESSING_QUESTION_PAPER,
        ConversationStep.EXTRACTING_MARKS,
        ConversationStep.WAITING_FOR_MARKS_CONFIRMATION,
        ConversationStep.WAITING_FOR_MARKS_UPDATE,
        ConversationStep.WAITING_FOR_STUDENT_ANSWER,
        ConversationStep.GRADING_IN_PROGRESS,
        ConversationStep.COMPLETE,
        ConversationStep.FOLLOW_UP,
    ),
    WorkflowKind.SIMPLE: (
        ConversationStep.INITIAL,
        ConversationStep.WAITING_FOR_QUESTION,
        ConversationStep.WAITING_FOR_ANSWER,
        ConversationStep.WAITING_FOR_INSTRUCTION,
        ConversationStep.GRADING_IN_PROGRESS,
        ConversationStep.COMPLETE,
        ConversationStep.FOLLOW_UP,
    ),
}


class ClassLevel(str, Enum):
    """CBSE class levels supported by the assistant."""
    CLASS_6 = "class_6"
    CLASS_7 = "class_7"
    CLASS_8 = "class_8"
    CLASS_9 = "class_9"
    CLASS_10 = "class_10"
    CLASS_11 = "class_11"
    CLASS_12 = "class_12"

    @property
    def number(self) -> int:
        return int(self.value.split("_")[1])

    @property
    def label(self) -> str:
        return f"Class {self.number}"

    @classmethod
    def from_number(cls, number: int) -> Optional["ClassLevel"]:
        try:
            return cls(f"class_{number}")
        except ValueError:
            return None


class SubjectArea(str, Enum):
    """Subjects the assistant recognises."""
    MATHEMATICS = "mathematics"
    SCIENCE = "science"
    ENGLISH = "english_language_arts"
    HISTORY = "history"
    SOCIAL_STUDIES = "social_studies"
    ECONOMICS = "economics"
    BUSINESS_STUDIES = "business_studies"
    ACCOUNTANCY = "accountancy"
    POLITICAL_SCIENCE = "political_science"
    GEOGRAPHY = "geography"
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    BIOLOGY = "biology"
    COMPUTER_SCIENCE = "computer_science"
    FOREIGN_LANGUAGE = "foreign_language"
    ARTS = "arts"
    PHYSICAL_EDUCATION = "physical_education"
    GENERAL = "general"

    @property
    def label(self) -> str:
        if self is SubjectArea.ENGLISH:
            return "English"
        return self.value.replace("_", " ").title()


class GradingApproach(str, Enum):
    """Grading style requested by the teacher."""
    STRICT = "strict"
    BALANCED = "balanced"
    LENIENT = "lenient"
    DETAILED = "detailed"
    QUICK = "quick"
    CONCEPTUAL = "conceptual"
    TECHNICAL = "technical"
    CBSE_STANDARD = "cbse-standard"


class Intent(str, Enum):
    """Symbolic purpose of an inbound text message."""
    GREETING = "greeting"
    HELP = "help"
    NEW_SESSION = "new_session"
    SET_CLASS = "set_class"
    SET_SUBJECT = "set_subject"
    CONFIRM_MARKS = "confirm_marks"
    REJECT_MARKS = "reject_marks"
    UPDATE_MARKS = "update_marks"
    PROVIDE_QUESTION = "provide_question"
    GRADING_INSTRUCTION = "grading_instruction"
    FOLLOW_UP_QUESTION = "follow_up_question"
    UNKNOWN = "unknown"


def generate_user_id() -> str:
    """Generate an opaque user identifier."""
    return str(uuid.uuid4())


class ComponentScores(BaseModel):
    """Optional per-dimension ratings (0-10) returned by the grader."""
    model_config = ConfigDict(frozen=True)

    concepts: Optional[int] = Field(default=None, ge=0, le=10)
    diagrams: Optional[int] = Field(default=None, ge=0, le=10)
    application: Optional[int] = Field(default=None, ge=0, le=10)
    terminology: Optional[int] = Field(default=None, ge=0, le=10)


class GradingResult(BaseModel):
    """
    Outcome of grading one student answer.

    Immutable once produced. ``percentage`` is derived from ``score`` and
    ``out_of`` and cannot be supplied by callers.
    """
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0)
    out_of: int = Field(gt=0)
    feedback: str
    strengths: Tuple[str, ...] = ()
    areas_for_improvement: Tuple[str, ...] = ()
    suggested_points: Tuple[str, ...] = ()
    is_relevant: bool = True
    approach: GradingApproach = GradingApproach.BALANCED
    correct_concepts: Optional[str] = None
    misconceptions: Optional[str] = None
    component_scores: Optional[ComponentScores] = None
    is_fallback: bool = False
    graded_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def percentage(self) -> float:
        return self.score / self.out_of * 100

    @model_validator(mode="after")
    def check_score_bounds(self) -> "GradingResult":
        if self.score > self.out_of:
            raise ValueError(f"score {self.score} exceeds out_of {self.out_of}")
        if not self.is_relevant and self.score != 0:
            raise ValueError("an irrelevant answer must score 0")
        return self


class ExtractedQuestion(BaseModel):
    """One question recovered from a question paper."""
    model_config = ConfigDict(frozen=True)

    number: int = Field(gt=0)
    marks: int = Field(gt=0)
    text: str = ""


class GradingRequest(BaseModel):
    """Everything the grading orchestrator needs for one answer."""
    question_context: str
    student_answer_text: str
    max_marks: int = Field(gt=0)
    instruction: str = ""
    approach: GradingApproach = GradingApproach.BALANCED
    subject_area: Optional[SubjectArea] = None
    class_level: Optional[ClassLevel] = None
    question_marks: Dict[int, int] = Field(default_factory=dict)


def _sorted_marks(value: Optional[Dict[int, int]]) -> Optional[Dict[int, int]]:
    if value is None:
        return None
    for number, marks in value.items():
        if number <= 0 or marks <= 0:
            raise ValueError(f"question {number} has invalid marks {marks}")
    return dict(sorted(value.items()))


CBSE_ONLY_FIELDS = ("class_level", "subject_area", "question_paper_text", "confirmed_marks")


class Session(BaseModel):
    """
    Per-user conversation state.

    A single tagged model covers every workflow: ``workflow`` is the
    discriminant and the validator rejects fields that do not belong to it.
    Sessions are never mutated in place; ``with_updates`` returns a new,
    revalidated copy.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    workflow: WorkflowKind = WorkflowKind.CBSE
    step: ConversationStep = ConversationStep.INITIAL

    # CBSE context
    class_level: Optional[ClassLevel] = None
    subject_area: Optional[SubjectArea] = None
    question_paper_text: Optional[str] = None
    question_texts: Dict[int, str] = Field(default_factory=dict)
    header_total: Optional[int] = None
    draft_marks: Dict[int, int] = Field(default_factory=dict)
    confirmed_marks: Optional[Dict[int, int]] = None
    is_marking_confirmed: bool = False

    # Simple-flow context
    question: Optional[str] = None
    instruction: Optional[str] = None
    max_marks: Optional[int] = Field(default=None, gt=0)

    # Shared
    student_answer_text: Optional[str] = None
    image_ref: Optional[str] = None
    grading_approach: GradingApproach = GradingApproach.BALANCED
    grading_history: Tuple[GradingResult, ...] = ()
    last_interaction: datetime = Field(default_factory=datetime.now)

    @field_validator("draft_marks", "confirmed_marks")
    @classmethod
    def sort_marks(cls, v):
        return _sorted_marks(v)

    @model_validator(mode="after")
    def check_consistency(self) -> "Session":
        if self.step not in WORKFLOW_STEPS[self.workflow]:
            raise ValueError(f"step {self.step.value} is not part of the {self.workflow.value} workflow")
        if (self.confirmed_marks is not None) != self.is_marking_confirmed:
            raise ValueError("confirmed_marks must be set exactly when marking is confirmed")
        if self.workflow is WorkflowKind.SIMPLE:
            present = [name for name in CBSE_ONLY_FIELDS if getattr(self, name) is not None]
            if present or self.draft_marks:
                raise ValueError(f"CBSE fields set on a simple session: {present or ['draft_marks']}")
        return self

    @classmethod
    def initial(
        cls,
        user_id: str,
        workflow: WorkflowKind = WorkflowKind.CBSE,
        grading_history: Tuple[GradingResult, ...] = (),
        last_interaction: Optional[datetime] = None,
    ) -> "Session":
        """Build the start-state session for a user."""
        approach = GradingApproach.CBSE_STANDARD if workflow is WorkflowKind.CBSE else GradingApproach.BALANCED
        data = dict(
            user_id=user_id,
            workflow=workflow,
            grading_approach=approach,
            grading_history=tuple(grading_history),
        )
        if last_interaction is not None:
            data["last_interaction"] = last_interaction
        return cls(**data)

    @property
    def total_marks(self) -> int:
        """Sum of confirmed marks; 0 until marking is confirmed."""
        return sum(self.confirmed_marks.values()) if self.confirmed_marks else 0

    @property
    def draft_total(self) -> int:
        return sum(self.draft_marks.values())

    @property
    def last_result(self) -> Optional[GradingResult]:
        return self.grading_history[-1] if self.grading_history else None

    def with_updates(self, **changes) -> "Session":
        """Return a revalidated copy with ``changes`` applied."""
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self)(**data)

    def with_result(self, result: GradingResult) -> "Session":
        """Append a grading result to the history."""
        return self.with_updates(grading_history=self.grading_history + (result,))

    def reset(self, keep_history: bool = True) -> "Session":
        """
        Return the start-state session for the same user and workflow.

        Resetting twice yields the same session as resetting once.
        """
        return type(self).initial(
            self.user_id,
            self.workflow,
            self.grading_history if keep_history else (),
            last_interaction=self.last_interaction,
        )

    def touch(self) -> "Session":
        return self.with_updates(last_interaction=datetime.now())
