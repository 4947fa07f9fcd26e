"""
Intent classification.

Maps a free-text message plus the current session to one Intent. Keyword
sets overlap, so precedence is an explicit ordered rule list: the first rule
whose predicate holds wins. After the rules, the current step supplies a
default; UNKNOWN only when nothing applies.

Also holds the small parsers the handlers reuse (class level, subject,
marks correction, grading approach, instruction marks).
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.constants import MIN_CLASS_LEVEL, MAX_CLASS_LEVEL, TYPED_QUESTION_MIN_CHARS
from core.models import (
    ClassLevel,
    ConversationStep,
    GradingApproach,
    Intent,
    Session,
    SubjectArea,
    WorkflowKind,
)

Step = ConversationStep


# ==================== Parsers ====================

ROMAN_NUMERALS = {"vi": 6, "vii": 7, "viii": 8, "ix": 9, "x": 10, "xi": 11, "xii": 12}
_CLASS_TOKEN = r"(\d{1,2}|xii|xi|x|ix|viii|vii|vi)"

CLASS_PREFIXED = re.compile(rf"\b(?:class|grade|std\.?|standard)\s*[-:]?\s*{_CLASS_TOKEN}\b", re.IGNORECASE)
CLASS_SUFFIXED = re.compile(rf"\b{_CLASS_TOKEN}(?:st|nd|rd|th)?\s+(?:class|grade|std|standard)\b", re.IGNORECASE)
CLASS_ORDINAL = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)
CLASS_BARE = re.compile(rf"^\s*{_CLASS_TOKEN}\s*\.?\s*$", re.IGNORECASE)

MARKS_UPDATE = re.compile(
    r"\b(?:question|ques|q)\s*\.?\s*(?:no\.?\s*)?(\d{1,2})(?!\d)[a-z]?\s*"
    r"(?:should\s+(?:be|have|carry)|to|is|=|:|has|have|carries|gets|"
    r"(?:update|change|set)(?:d)?\s+to)\s*(\d{1,2})(?!\d)\s*(?:marks?)?",
    re.IGNORECASE,
)
INSTRUCTION_MARKS = re.compile(r"(\d+)\s*marks?", re.IGNORECASE)
NEW_QUESTION_PREFIX = re.compile(
    r"^\s*(?:here\s+is\s+a\s+)?new\s+question\s*[:\-]\s*(\S.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Ordered specific-first: "political science" must win over "science"
SUBJECT_KEYWORDS: Tuple[Tuple[SubjectArea, str], ...] = (
    (SubjectArea.COMPUTER_SCIENCE, r"computer(?:\s+science)?|informatics|\bcs\b|\bip\b"),
    (SubjectArea.POLITICAL_SCIENCE, r"political\s+science|pol\.?\s*science|civics"),
    (SubjectArea.SOCIAL_STUDIES, r"social\s+(?:science|studies)|\bsst\b"),
    (SubjectArea.PHYSICAL_EDUCATION, r"physical\s+education|\bpe\b|sports"),
    (SubjectArea.BUSINESS_STUDIES, r"business(?:\s+studies)?|\bbst\b"),
    (SubjectArea.ECONOMICS, r"economics|\beco\b|\becon\b"),
    (SubjectArea.ACCOUNTANCY, r"accountancy|accounts|accounting"),
    (SubjectArea.MATHEMATICS, r"mathematics|maths?\b"),
    (SubjectArea.PHYSICS, r"physics"),
    (SubjectArea.CHEMISTRY, r"chemistry"),
    (SubjectArea.BIOLOGY, r"biology|\bbio\b"),
    (SubjectArea.SCIENCE, r"science"),
    (SubjectArea.ENGLISH, r"english"),
    (SubjectArea.FOREIGN_LANGUAGE, r"foreign\s+language|french|german|spanish|japanese|sanskrit"),
    (SubjectArea.HISTORY, r"history"),
    (SubjectArea.GEOGRAPHY, r"geography|\bgeo\b"),
    (SubjectArea.ARTS, r"\barts?\b|drawing|painting|music"),
    (SubjectArea.GENERAL, r"\bgeneral\b"),
)
_SUBJECT_PATTERNS = [(subject, re.compile(pattern, re.IGNORECASE)) for subject, pattern in SUBJECT_KEYWORDS]

APPROACH_KEYWORDS: Tuple[Tuple[GradingApproach, str], ...] = (
    (GradingApproach.STRICT, r"\bstrict(?:ly)?\b|\bharsh(?:ly)?\b|\btough\b"),
    (GradingApproach.LENIENT, r"\blenient(?:ly)?\b|\bgenerous(?:ly)?\b|\beasy\b"),
    (GradingApproach.DETAILED, r"\bdetail(?:ed)?\b|\bthorough(?:ly)?\b|\bcomprehensive\b"),
    (GradingApproach.QUICK, r"\bquick(?:ly)?\b|\bbrief(?:ly)?\b|\bshort\b"),
    (GradingApproach.CONCEPTUAL, r"\bconcept(?:ual|s)?\b|\bunderstanding\b"),
    (GradingApproach.TECHNICAL, r"\btechnical(?:ly)?\b|\bprecise(?:ly)?\b|\baccura(?:te|cy)\b"),
    (GradingApproach.BALANCED, r"\bbalanced\b|\bfair(?:ly)?\b"),
)
_APPROACH_PATTERNS = [(approach, re.compile(pattern, re.IGNORECASE)) for approach, pattern in APPROACH_KEYWORDS]


def _class_number(token: str) -> Optional[int]:
    token = token.lower()
    return int(token) if token.isdigit() else ROMAN_NUMERALS.get(token)


def parse_class_level(text: str) -> Optional[ClassLevel]:
    """
    Class level named in ``text``.

    Accepts "Class 10", "grade XII", "std 9", "10th class", "11th" and a
    bare number or numeral; only classes 6-12 are recognised.
    """
    for pattern in (CLASS_PREFIXED, CLASS_SUFFIXED, CLASS_BARE, CLASS_ORDINAL):
        match = pattern.search(text)
        if match:
            number = _class_number(match.group(1))
            if number is not None and MIN_CLASS_LEVEL <= number <= MAX_CLASS_LEVEL:
                return ClassLevel.from_number(number)
            return None
    return None


def parse_subject(text: str) -> Optional[SubjectArea]:
    for subject, pattern in _SUBJECT_PATTERNS:
        if pattern.search(text):
            return subject
    return None


def parse_marks_update(text: str) -> Optional[Tuple[int, int]]:
    """(question number, marks) from "Question 3 should be 5 marks" style text."""
    match = MARKS_UPDATE.search(text)
    if not match:
        return None
    number, marks = int(match.group(1)), int(match.group(2))
    if number < 1 or marks < 1:
        return None
    return number, marks


def parse_new_question(text: str) -> Optional[str]:
    """Question text announced with a leading "New question:" label."""
    match = NEW_QUESTION_PREFIX.match(text)
    return match.group(1).strip() if match else None


def parse_instruction_marks(text: str) -> Optional[int]:
    match = INSTRUCTION_MARKS.search(text)
    if not match or int(match.group(1)) < 1:
        return None
    return int(match.group(1))


def detect_grading_approach(text: str, default: GradingApproach = GradingApproach.BALANCED) -> GradingApproach:
    for approach, pattern in _APPROACH_PATTERNS:
        if pattern.search(text):
            return approach
    return default


# ==================== Keyword sets ====================

RESET = re.compile(
    r"\b(?:start\s+over|start\s+again|start\s+fresh|new\s+session|new\s+paper|begin\s+again|reset|restart)\b",
    re.IGNORECASE,
)
GREETING = re.compile(
    r"^\s*(?:hi+|hello|hey|hiya|namaste|greetings|good\s+(?:morning|afternoon|evening))\b",
    re.IGNORECASE,
)
GREETING_MAX_WORDS = 5
HELP = re.compile(
    r"\bhelp\b|\bwhat\s+can\s+you\s+do\b|\bhow\s+(?:does\s+(?:this|it)|do\s+(?:i|you))\s+"
    r"(?:work|use|start|grade|upload)\b|^\s*\?\s*$",
    re.IGNORECASE,
)
NEGATIVE_TOKENS = frozenset({"no", "n", "nope", "nah", "not", "wrong", "incorrect", "change", "update", "fix", "edit"})
AFFIRMATIVE_TOKENS = frozenset({
    "yes", "y", "yeah", "yep", "yup", "correct", "right", "ok", "okay", "confirm", "confirmed",
    "fine", "good", "sure", "perfect", "proceed", "done",
})
GRADING_VERB = re.compile(
    r"\b(?:re-?grade|grade|evaluate|re-?evaluate|assess|mark|check)\s+"
    r"(?:it|this|that|again|the\s+(?:answer|paper|student)|out\s+of|for|more|strictly|leniently|\d)"
    r"|\b(?:be\s+)?more\s+(?:strict|lenient|detailed)\b"
    r"|\bout\s+of\s+\d+\b|\bfor\s+\d+\s+marks?\b",
    re.IGNORECASE,
)
FOLLOW_UP_CUE = re.compile(
    r"\b(?:why|how|what|explain|score[ds]?|feedback|strengths?|weak(?:ness(?:es)?)?|improve(?:ment)?|"
    r"mistakes?|errors?|suggest(?:ions?)?|lost|deducted|better|wrong)\b|\?\s*$",
    re.IGNORECASE,
)


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z]+", text.lower())


def is_negative(text: str) -> bool:
    return any(word in NEGATIVE_TOKENS for word in _words(text))


def is_affirmative(text: str) -> bool:
    return any(word in AFFIRMATIVE_TOKENS for word in _words(text))


def is_greeting(text: str) -> bool:
    return bool(GREETING.match(text)) and len(text.split()) <= GREETING_MAX_WORDS


# ==================== Rules ====================

Predicate = Callable[[str, Session], bool]


@dataclass(frozen=True)
class Rule:
    """A named predicate and the intent it yields."""
    name: str
    intent: Intent
    predicate: Predicate

    def matches(self, text: str, session: Session) -> bool:
        return self.predicate(text, session)


def _in_steps(*steps: ConversationStep) -> Callable[[Session], bool]:
    return lambda session: session.step in steps


_cbse_class_step = _in_steps(Step.INITIAL, Step.WAITING_FOR_CLASS)
_subject_step = _in_steps(Step.WAITING_FOR_SUBJECT)
_marks_steps = _in_steps(Step.WAITING_FOR_MARKS_CONFIRMATION, Step.WAITING_FOR_MARKS_UPDATE)
_confirmation_step = _in_steps(Step.WAITING_FOR_MARKS_CONFIRMATION)
_graded_steps = _in_steps(Step.COMPLETE, Step.FOLLOW_UP)
_question_steps = _in_steps(Step.WAITING_FOR_QUESTION, Step.WAITING_FOR_QUESTION_PAPER)

RULES: Tuple[Rule, ...] = (
    # 1. reset always wins
    Rule("reset", Intent.NEW_SESSION, lambda t, s: bool(RESET.search(t))),
    # 2. structural patterns tied to the current step
    Rule("class_number", Intent.SET_CLASS,
         lambda t, s: s.workflow is WorkflowKind.CBSE and _cbse_class_step(s) and parse_class_level(t) is not None),
    Rule("subject", Intent.SET_SUBJECT, lambda t, s: _subject_step(s) and parse_subject(t) is not None),
    Rule("class_change", Intent.SET_CLASS, lambda t, s: _subject_step(s) and parse_class_level(t) is not None),
    Rule("marks_update", Intent.UPDATE_MARKS, lambda t, s: _marks_steps(s) and parse_marks_update(t) is not None),
    Rule("reject_marks", Intent.REJECT_MARKS, lambda t, s: _confirmation_step(s) and is_negative(t)),
    Rule("confirm_marks", Intent.CONFIRM_MARKS, lambda t, s: _confirmation_step(s) and is_affirmative(t)),
    Rule("new_question", Intent.PROVIDE_QUESTION,
         lambda t, s: s.workflow is WorkflowKind.SIMPLE and _graded_steps(s) and parse_new_question(t) is not None),
    # 3. keyword heuristics
    Rule("greeting", Intent.GREETING, lambda t, s: is_greeting(t)),
    Rule("help", Intent.HELP, lambda t, s: bool(HELP.search(t))),
    Rule("grading_verb", Intent.GRADING_INSTRUCTION, lambda t, s: bool(GRADING_VERB.search(t))),
    Rule("follow_up", Intent.FOLLOW_UP_QUESTION,
         lambda t, s: _graded_steps(s) and bool(s.grading_history) and bool(FOLLOW_UP_CUE.search(t))),
    Rule("typed_question", Intent.PROVIDE_QUESTION,
         lambda t, s: _question_steps(s) and len(t.strip()) >= TYPED_QUESTION_MIN_CHARS),
)

# 4. intent implied by the current step
STEP_DEFAULTS: Dict[WorkflowKind, Dict[ConversationStep, Intent]] = {
    WorkflowKind.SIMPLE: {
        Step.INITIAL: Intent.PROVIDE_QUESTION,
        Step.WAITING_FOR_QUESTION: Intent.PROVIDE_QUESTION,
        Step.WAITING_FOR_INSTRUCTION: Intent.GRADING_INSTRUCTION,
        Step.COMPLETE: Intent.PROVIDE_QUESTION,
        Step.FOLLOW_UP: Intent.FOLLOW_UP_QUESTION,
    },
    WorkflowKind.CBSE: {
        Step.COMPLETE: Intent.FOLLOW_UP_QUESTION,
        Step.FOLLOW_UP: Intent.FOLLOW_UP_QUESTION,
    },
}


class IntentClassifier:
    """First matching rule wins; then the step default; then UNKNOWN."""

    def __init__(self, rules: Sequence[Rule] = RULES,
                 defaults: Dict[WorkflowKind, Dict[ConversationStep, Intent]] = STEP_DEFAULTS):
        self.rules = tuple(rules)
        self.defaults = defaults

    def classify(self, text: str, session: Session) -> Intent:
        return self.explain(text, session)[0]

    def explain(self, text: str, session: Session) -> Tuple[Intent, str]:
        """(intent, name of the rule or default that produced it)."""
        text = text or ""
        if text.strip():
            for rule in self.rules:
                if rule.matches(text, session):
                    return rule.intent, rule.name
        default = self.defaults.get(session.workflow, {}).get(session.step)
        if default is not None and text.strip():
            return default, "step_default"
        return Intent.UNKNOWN, "none"
