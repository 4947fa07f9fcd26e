"""
Question-paper mark extraction.

Recovers ``question number -> marks`` (plus the question text) from OCR text
of a scanned exam paper. Layers run in a fixed order and a later layer only
runs while the result is still insufficient; results are merged so that an
earlier layer always wins for a given question:

1. header scan       - expected total from ``MM:``/``Maximum Marks``/``Total Marks``
2. tabular layout    - a ``QUESTIONS ... MARKS`` header and a marks column
3. inline layout     - ``Q.No. 3 ... (5 marks)`` style lines
4. distribution      - ``5 questions of 2 marks each`` statements, section headings
5. known layout      - fixed CBSE paper structures keyed by subject and total,
                       or 2 marks each when only questions 1-5 were found
6. dual-number scan  - ``<n> . <text> <m>`` anywhere in the flattened text

Every layer is a plain function over lines so it can be tested on its own.
Extraction is deterministic and never raises.
"""

import re
from dataclasses import dataclass, field
from itertools import islice
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from config.constants import (
    HEADER_SCAN_LINES,
    TABLE_HEADER_SCAN_LINES,
    MIN_QUESTION_MARKS,
    MAX_QUESTION_MARKS,
    MAX_QUESTION_NUMBER,
    FIRST_PAGE_LAST_QUESTION,
    FIRST_PAGE_MARKS,
)
from core.models import SubjectArea


# ==================== Patterns ====================

HEADER_TOTAL = re.compile(
    r"\bM\.?\s?M\.?\s*[:\-=]?\s*(\d{1,3})\b"
    r"|\bMax(?:imum|\.)?\s*Marks\s*[:\-=]?\s*(\d{1,3})\b"
    r"|\bTotal\s+Marks\s*[:\-=]?\s*(\d{1,3})\b",
    re.IGNORECASE,
)

QUESTION_START = re.compile(
    r"^\s*(?:Q(?:ues(?:tion)?)?\s*\.?\s*(?:No\.?\s*)?)?"
    r"(\d{1,2})"
    r"(?:\s*[.):\]]\s*|\s+)"
    r"(?!\d)(.*)$",
    re.IGNORECASE,
)
# "2 marks questions", "5 questions of ...", "3 hours"
NOT_A_QUESTION = re.compile(r"^(?:marks?\b|questions?\b|qs\b|hours?\b|hrs?\b|minutes?\b|mins?\b|x\b|×)", re.IGNORECASE)

SECTION_HEADING = re.compile(r"^\s*(?:section|part)\s*[-:]?\s*(?:[A-E]|I{1,3}|IV|V)\b", re.IGNORECASE)

TABLE_QUESTION_LABEL = re.compile(r"\bquestions?\b|\bq\.?\s*no\b", re.IGNORECASE)
TABLE_MARKS_LABEL = re.compile(r"\bmarks?\b", re.IGNORECASE)
INTEGER_TOKEN = re.compile(r"(?<![\d.])\d{1,2}(?![\d.])")
TRAILING_SPACED_NUMBER = re.compile(r"(?:\s{2,}|\t)[\[(]?(\d{1,2})[\])]?\s*$")
COLUMN_TOLERANCE = 6

BRACKETED_MARKS = re.compile(r"[\[(]\s*(\d{1,2})\s*(?:marks?|m)\s*[\])]", re.IGNORECASE)
TRAILING_MARKS = re.compile(r"(?<![\d.])(\d{1,2})\s*marks?\s*(?:each)?\s*\.?\s*$", re.IGNORECASE)
TRAILING_BRACKET = re.compile(r"[\[(]\s*(\d{1,2})\s*[\])]\s*$")
TRAILING_NUMBER = re.compile(r"(?<=\s)(\d{1,2})\s*$")
MARKS_ONLY_LINE = re.compile(r"^\s*([\[(])?\s*(\d{1,2})\s*(marks?)?\s*[\])]?\s*\.?\s*$", re.IGNORECASE)

COUNT_OF_MARKS = re.compile(
    r"(\d{1,2})\s+(?:questions?|qs\.?)\s+(?:of|carrying|carry|with)\s+(\d{1,2})\s*marks?",
    re.IGNORECASE,
)
RANGE_MARKS = re.compile(
    r"\b(?:questions?|q\.?|qs\.?)\s*(?:nos?\.?\s*)?(\d{1,2})\s*(?:-|–|to)\s*(\d{1,2})\s*"
    r"(?:(?:carry|carries|are\s+of|are|of|have|:|=|-|–)\s*)?(\d{1,2})\s*marks?",
    re.IGNORECASE,
)
UNIFORM_MARKS = re.compile(r"\ball\s+questions\s+(?:carry|are\s+of|have)\s+(\d{1,2})\s*marks?", re.IGNORECASE)
SECTION_MARKS = re.compile(r"(\d{1,2})\s*marks?\s*(?:each|questions?)?", re.IGNORECASE)

DUAL_NUMBER = re.compile(
    r"(?<!\d)(\d{1,2})\s*\.\s*([^\d]{3,80}?)\s+(\d{1,2})(?!\d)(?!\s*\.\s*[A-Za-z])"
)

# (subject, header total) -> blocks of (first question, last question, marks)
KNOWN_LAYOUTS: Dict[Tuple[SubjectArea, int], Tuple[Tuple[int, int, int], ...]] = {
    (SubjectArea.ECONOMICS, 40): ((1, 5, 2), (6, 10, 3), (11, 13, 5)),
}


# ==================== Results ====================

@dataclass
class LayerOutput:
    """What one layer recovered. ``texts`` may hold numbers without marks."""
    marks: Dict[int, int] = field(default_factory=dict)
    texts: Dict[int, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.marks)


@dataclass(frozen=True)
class ExtractionResult:
    """Ordered marks map plus per-question text and diagnostics."""
    marks: Dict[int, int]
    question_texts: Dict[int, str]
    header_total: Optional[int] = None
    layers_used: Tuple[str, ...] = ()

    @classmethod
    def empty(cls, header_total: Optional[int] = None) -> "ExtractionResult":
        return cls(marks={}, question_texts={}, header_total=header_total)

    @property
    def total(self) -> int:
        return sum(self.marks.values())

    @property
    def is_empty(self) -> bool:
        return not self.marks

    @property
    def matches_header(self) -> Optional[bool]:
        """None when the paper declares no total."""
        if self.header_total is None:
            return None
        return self.total == self.header_total

    @property
    def is_complete(self) -> bool:
        return bool(self.marks) and self.matches_header is not False


# ==================== Helpers ====================

def _plausible_marks(value: int) -> bool:
    return MIN_QUESTION_MARKS <= value <= MAX_QUESTION_MARKS


def _plausible_number(value: int) -> bool:
    return 1 <= value <= MAX_QUESTION_NUMBER


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip(" |.-:\t")


def question_start(line: str) -> Optional[Tuple[int, str]]:
    """Return (question number, rest of line) if the line opens a question."""
    match = QUESTION_START.match(line)
    if not match:
        return None
    number, rest = int(match.group(1)), match.group(2)
    if not _plausible_number(number) or NOT_A_QUESTION.match(rest.strip()):
        return None
    return number, rest


def _question_lines(lines: Sequence[str]) -> Iterable[Tuple[int, int, str]]:
    """Yield (line index, number, rest) for question-opening lines."""
    for index, line in enumerate(lines):
        if SECTION_HEADING.match(line):
            continue
        start = question_start(line)
        if start is not None:
            yield index, start[0], start[1]


# ==================== Layer 1: header ====================

def scan_header_total(lines: Sequence[str]) -> Optional[int]:
    """Maximum-marks declaration in the first lines of the paper."""
    for line in lines[:HEADER_SCAN_LINES]:
        match = HEADER_TOTAL.search(line)
        if match:
            value = int(next(g for g in match.groups() if g))
            if value > 0:
                return value
    return None


# ==================== Layer 2: tabular ====================

def find_table_header(lines: Sequence[str]) -> Optional[Tuple[int, int]]:
    """Return (line index, marks column offset) of a questions/marks header row."""
    for index, line in enumerate(lines[:TABLE_HEADER_SCAN_LINES]):
        if re.search(r"\d", line):
            continue
        question_label = TABLE_QUESTION_LABEL.search(line)
        marks_label = TABLE_MARKS_LABEL.search(line)
        if question_label and marks_label and question_label.start() < marks_label.start():
            return index, marks_label.start()
    return None


def _row_marks(line: str, marks_col: int) -> Optional[Tuple[int, int]]:
    """(marks, start offset of the marks token) read from a table row."""
    if "|" in line:
        cells = [cell.strip() for cell in line.split("|")]
        cells = [cell for cell in cells if cell]
        if len(cells) >= 2 and cells[-1].isdigit() and _plausible_marks(int(cells[-1])):
            return int(cells[-1]), line.rindex("|")

    low, high = marks_col - COLUMN_TOLERANCE, marks_col + len("marks") + COLUMN_TOLERANCE
    for token in INTEGER_TOKEN.finditer(line):
        trailing = line[token.end():].strip(" )]\t")
        if low <= token.start() <= high and not trailing and _plausible_marks(int(token.group())):
            return int(token.group()), token.start()

    spaced = TRAILING_SPACED_NUMBER.search(line)
    if spaced and _plausible_marks(int(spaced.group(1))):
        return int(spaced.group(1)), spaced.start()
    return None


def extract_tabular(lines: Sequence[str]) -> LayerOutput:
    """
    Read a QUESTIONS/MARKS table.

    Rows open with a question number; the marks value is read from the
    marks column (or a pipe cell, or a widely spaced trailing integer).
    Multi-line question bodies accumulate until the next numbered row.
    """
    out = LayerOutput()
    header = find_table_header(lines)
    if header is None:
        return out
    header_index, marks_col = header

    current: Optional[int] = None
    body: List[str] = []

    def flush():
        if current is not None:
            out.texts.setdefault(current, _clean_text(" ".join(body)))

    for line in lines[header_index + 1:]:
        if not line.strip():
            continue
        if SECTION_HEADING.match(line):
            flush()
            current, body = None, []
            continue

        start = question_start(line)
        if start is not None:
            flush()
            current, rest = start
            body = []
            offset = len(line) - len(rest)
            found = _row_marks(line, marks_col)
            if found and found[1] >= offset:
                out.marks.setdefault(current, found[0])
                rest = line[offset:found[1]]
            body.append(rest)
            continue

        if current is None:
            continue
        found = _row_marks(line, marks_col) if current not in out.marks else None
        if found:
            out.marks.setdefault(current, found[0])
            body.append(line[:found[1]])
        else:
            body.append(line)

    flush()
    return out


# ==================== Layer 3: inline ====================

def _inline_marks(rest: str) -> Tuple[Optional[int], str]:
    """Marks written on the question's own line, and the text without them."""
    for pattern in (BRACKETED_MARKS, TRAILING_MARKS, TRAILING_BRACKET, TRAILING_NUMBER):
        matches = list(pattern.finditer(rest))
        if not matches:
            continue
        match = matches[-1]
        value = int(match.group(1))
        if _plausible_marks(value):
            text = rest[:match.start()] + rest[match.end():]
            return value, _clean_text(text)
    return None, _clean_text(rest)


def _marks_only_line(line: str, number: int) -> Optional[int]:
    """Marks on a line of their own; a bare integer equal to the next question number is not marks."""
    match = MARKS_ONLY_LINE.match(line)
    if not match:
        return None
    value = int(match.group(2))
    explicit = bool(match.group(1) or match.group(3))
    if not _plausible_marks(value) or (not explicit and value == number + 1):
        return None
    return value


def _is_statement(line: str) -> bool:
    """Headings and distribution notes; their marks belong to no single question."""
    return bool(
        SECTION_HEADING.match(line)
        or HEADER_TOTAL.search(line)
        or COUNT_OF_MARKS.search(line)
        or RANGE_MARKS.search(line)
        or UNIFORM_MARKS.search(line)
    )


def _next_line_marks(line: str, number: int) -> Tuple[Optional[int], str]:
    """Marks carried by the line after a question, and any continuation text."""
    value = _marks_only_line(line, number)
    if value is not None:
        return value, ""
    if question_start(line) is not None or _is_statement(line):
        return None, ""
    for pattern in (BRACKETED_MARKS, TRAILING_MARKS):
        matches = list(pattern.finditer(line))
        if matches and _plausible_marks(int(matches[-1].group(1))):
            match = matches[-1]
            return int(match.group(1)), _clean_text(line[:match.start()] + line[match.end():])
    return None, ""


def extract_inline(lines: Sequence[str]) -> LayerOutput:
    """
    Scan question lines for inline marks.

    If a question's own line carries no marks, exactly one following line
    is checked. It may hold nothing but a marks value, or be the wrapped end
    of the question with labelled marks (``(5 marks)``, ``5 marks``); the
    wrapped text is appended to the question. A bare integer on that line
    equal to the next question number is never marks.
    A repeated number replaces its earlier occurrence: numbered general
    instructions come before the questions that reuse those numbers.
    """
    out = LayerOutput()
    for index, number, rest in _question_lines(lines):
        value, text = _inline_marks(rest)
        if value is None and index + 1 < len(lines):
            value, continuation = _next_line_marks(lines[index + 1], number)
            if continuation:
                text = _clean_text(f"{text} {continuation}")
        out.texts[number] = text
        if value is None:
            out.marks.pop(number, None)
        else:
            out.marks[number] = value
    return out


# ==================== Layer 4: distribution ====================

def extract_distribution(
    lines: Sequence[str],
    known_numbers: Iterable[int] = (),
    header_total: Optional[int] = None,
    marked_numbers: Iterable[int] = (),
) -> LayerOutput:
    """
    Apply distribution statements.

    Explicit ``questions a-b ... M marks`` ranges apply first. ``N questions
    of M marks`` blocks then take, in declaration order, the next N questions
    still without marks: the detected question numbers in ascending order,
    or 1, 2, 3... when the paper shows no question lines. Once question lines
    are known, no entry is created for a number outside them.
    ``All questions carry M marks`` covers every known question. A
    ``Section X (M marks each)`` heading applies to the questions under it.
    """
    out = LayerOutput()
    text = "\n".join(lines)
    known = sorted(set(known_numbers))
    marked = set(marked_numbers)

    for match in RANGE_MARKS.finditer(text):
        first, last, value = (int(g) for g in match.groups())
        if first > last or not _plausible_marks(value):
            continue
        for number in range(first, last + 1):
            if _plausible_number(number) and (not known or number in known):
                out.marks.setdefault(number, value)

    candidates = known or range(1, MAX_QUESTION_NUMBER + 1)
    pending = (n for n in candidates if n not in marked and n not in out.marks)
    for match in COUNT_OF_MARKS.finditer(text):
        count, value = int(match.group(1)), int(match.group(2))
        numbers = list(islice(pending, count))
        if _plausible_marks(value):
            for number in numbers:
                out.marks[number] = value

    uniform = UNIFORM_MARKS.search(text)
    if uniform and _plausible_marks(int(uniform.group(1))):
        value = int(uniform.group(1))
        numbers = known
        if not numbers and header_total and header_total % value == 0:
            numbers = list(range(1, header_total // value + 1))
        for number in numbers:
            if _plausible_number(number):
                out.marks.setdefault(number, value)

    section_value: Optional[int] = None
    for line in lines:
        if SECTION_HEADING.match(line):
            found = SECTION_MARKS.search(line)
            section_value = int(found.group(1)) if found and _plausible_marks(int(found.group(1))) else None
            continue
        start = question_start(line)
        if start is not None and section_value is not None:
            out.marks.setdefault(start[0], section_value)

    return out


# ==================== Layer 5: known layouts ====================

def apply_known_layout(
    subject: Optional[SubjectArea],
    header_total: Optional[int],
    known_numbers: Iterable[int] = (),
) -> LayerOutput:
    """
    Fixed block structure for known CBSE papers.

    A subject layout applies when the declared total matches it, or when no
    total is declared but the questions found are exactly its contiguous
    run. Otherwise, a first page showing only questions 1-5 gets the
    short-answer weighting of 2 marks per question found.
    """
    out = LayerOutput()
    known = set(known_numbers)
    for (layout_subject, total), blocks in KNOWN_LAYOUTS.items():
        if subject is None or layout_subject is not subject:
            continue
        layout = {n: value for first, last, value in blocks for n in range(first, last + 1)}
        if header_total is not None and header_total != total:
            continue
        if header_total is None and known != set(layout):
            continue
        numbers = sorted(n for n in known if n in layout) or sorted(layout)
        out.marks = {n: layout[n] for n in numbers}
        return out
    if known and known <= set(range(1, FIRST_PAGE_LAST_QUESTION + 1)):
        out.marks = {n: FIRST_PAGE_MARKS for n in sorted(known)}
    return out


# ==================== Layer 6: dual-number scan ====================

def scan_dual_numbers(lines: Sequence[str]) -> LayerOutput:
    """Last resort: ``<n> . <short text> <m>`` pairs in the flattened text."""
    out = LayerOutput()
    flat = " ".join(line.strip() for line in lines if line.strip())
    for match in DUAL_NUMBER.finditer(flat):
        number, value = int(match.group(1)), int(match.group(3))
        if _plausible_number(number) and _plausible_marks(value):
            out.marks.setdefault(number, value)
            out.texts.setdefault(number, _clean_text(match.group(2)))
    return out


# ==================== Extractor ====================

class MarkExtractor:
    """Runs the extraction layers in order and merges their output."""

    def extract(self, ocr_text: str, subject: Optional[SubjectArea] = None) -> ExtractionResult:
        """
        Extract question marks from OCR text.

        Args:
            ocr_text: Raw OCR output of a question paper
            subject: Optional subject hint (enables known layouts)

        Returns:
            ExtractionResult; empty when nothing could be recovered
        """
        if not isinstance(ocr_text, str) or not ocr_text.strip():
            return ExtractionResult.empty()
        try:
            return self._extract(ocr_text, subject)
        except Exception:
            logger.exception("Mark extraction failed, returning empty result")
            return ExtractionResult.empty()

    def _extract(self, ocr_text: str, subject: Optional[SubjectArea]) -> ExtractionResult:
        lines = ocr_text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        header_total = scan_header_total(lines)
        marks: Dict[int, int] = {}
        texts: Dict[int, str] = {}
        layers: List[str] = []

        def merge(name: str, output: LayerOutput) -> None:
            for number, text in output.texts.items():
                if text and not texts.get(number):
                    texts[number] = text
                else:
                    texts.setdefault(number, text)
            added = {n: m for n, m in output.marks.items() if n not in marks}
            marks.update(added)
            if added:
                layers.append(name)

        merge("tabular", extract_tabular(lines))
        if self._insufficient(marks, texts, header_total):
            merge("inline", extract_inline(lines))
        if self._insufficient(marks, texts, header_total):
            merge("distribution", extract_distribution(lines, texts.keys(), header_total, marks.keys()))
        if not marks:
            merge("known_layout", apply_known_layout(subject, header_total, texts.keys()))
        if not marks:
            merge("dual_number", scan_dual_numbers(lines))

        ordered = dict(sorted(marks.items()))
        result = ExtractionResult(
            marks=ordered,
            question_texts={n: texts[n] for n in ordered if texts.get(n)},
            header_total=header_total,
            layers_used=tuple(layers),
        )
        logger.debug(
            f"Extracted {len(ordered)} questions ({result.total} marks, header {header_total}) "
            f"via {', '.join(layers) or 'no layer'}"
        )
        return result

    @staticmethod
    def _insufficient(marks: Dict[int, int], texts: Dict[int, str], header_total: Optional[int]) -> bool:
        if not marks:
            return True
        if header_total is not None and sum(marks.values()) < header_total:
            return True
        return any(number not in marks for number in texts)
