"""
Tests for question-paper mark extraction.

Each layer is exercised on literal OCR text, then the layered extractor
as a whole.
"""

import pytest

from ai.demo_provider import ECONOMICS_NOTE, ECONOMICS_PAPER, GENERAL_PAPER, SCIENCE_PAPER
from core.models import SubjectArea
from extraction.marks import (
    MarkExtractor, apply_known_layout, extract_distribution, extract_inline,
    extract_tabular, scan_dual_numbers, scan_header_total
)
from conftest import TABLE_PAPER


@pytest.fixture
def extractor():
    return MarkExtractor()


# ==================== Header ====================

def test_header_total():
    """Test maximum-marks declarations."""
    assert scan_header_total(["Class XII", "M.M: 80"]) == 80
    assert scan_header_total(["Maximum Marks - 70"]) == 70
    assert scan_header_total(["Class Test    Total Marks: 15"]) == 15
    assert scan_header_total(["Class X", "1. Define demand."]) is None


# ==================== Tabular ====================

def test_tabular_layout():
    """Test a QUESTIONS | MARKS table."""
    output = extract_tabular(TABLE_PAPER.split("\n"))

    assert output.marks == {1: 2, 2: 2, 3: 2, 4: 2, 5: 2}
    assert output.texts[1] == "What is X?"


def test_tabular_multiline_question():
    """Test that a question body spanning lines is accumulated."""
    lines = [
        "QUESTIONS | MARKS",
        "1. Explain the multiplier",
        "   with an example.   4",
    ]

    output = extract_tabular(lines)

    assert output.marks == {1: 4}
    assert output.texts[1] == "Explain the multiplier with an example"


def test_tabular_needs_header():
    """Test that the tabular layer ignores text without a table header."""
    assert not extract_tabular(["1. What is X?   2"])


# ==================== Inline ====================

def test_inline_marks_on_question_line():
    """Test bracketed and trailing marks."""
    output = extract_inline([
        "3. Explain Y (5 marks)",
        "Q.No. 4 Define opportunity cost [2 marks]",
        "Question 5: State Say's law 3 marks",
    ])

    assert output.marks == {3: 5, 4: 2, 5: 3}
    assert output.texts[3] == "Explain Y"


def test_inline_marks_on_next_line():
    """Test that exactly one following line is checked."""
    output = extract_inline([
        "1. Define demand.",
        "[2]",
        "2. Define supply.",
        "",
        "(3 marks)",
    ])

    assert output.marks == {1: 2}


def test_inline_wrapped_question_keeps_marks():
    """Test labelled marks at the end of a question that wraps onto a second line."""
    output = extract_inline([
        "1. Explain the law of demand",
        "with a suitable diagram. (5 marks)",
        "2. Define supply. (2 marks)",
        "3. State two causes of inflation",
        "in an economy 3 marks",
    ])

    assert output.marks == {1: 5, 2: 2, 3: 3}
    assert output.texts[1] == "Explain the law of demand with a suitable diagram"
    assert output.texts[3] == "State two causes of inflation in an economy"


def test_inline_distribution_note_is_not_wrapped_marks():
    """Test that a statement after the last question does not give it marks."""
    output = extract_inline([
        "3. Give the meaning of a fixed exchange rate.",
        "Section A has 5 questions of 2 marks each.",
    ])

    assert output.marks == {}
    assert output.texts[3] == "Give the meaning of a fixed exchange rate"


def test_inline_next_question_number_is_not_marks():
    """Test that a bare number equal to the next question is not read as marks."""
    assert extract_inline(["1. Define demand.", "2"]).marks == {}


def test_inline_implausible_marks_ignored():
    """Test that trailing numbers outside 1-20 are not marks."""
    assert extract_inline(["3. Describe the events of 1857 45"]).marks == {}


def test_inline_repeated_number_replaces_earlier():
    """Test that numbered instructions do not shadow the real questions."""
    output = extract_inline([
        "General Instructions:",
        "1. All questions are compulsory.",
        "1. Define demand. (3 marks)",
    ])

    assert output.marks == {1: 3}


# ==================== Distribution ====================

def test_distribution_statements():
    """Test positional distribution statements."""
    output = extract_distribution(ECONOMICS_NOTE.split("\n"))

    assert output.marks == {
        1: 2, 2: 2, 3: 2, 4: 2, 5: 2,
        6: 3, 7: 3, 8: 3, 9: 3, 10: 3,
        11: 5, 12: 5, 13: 5,
    }


def test_distribution_uniform_marks():
    """Test 'all questions carry N marks'."""
    lines = ["All questions carry 2 marks."]

    assert extract_distribution(lines, known_numbers=[1, 2, 3]).marks == {1: 2, 2: 2, 3: 2}
    assert extract_distribution(lines, header_total=10).marks == {1: 2, 2: 2, 3: 2, 4: 2, 5: 2}


def test_distribution_section_heading():
    """Test marks declared on a section heading."""
    lines = ["Section B (3 marks each)", "6. Explain X.", "7. Explain Y."]

    assert extract_distribution(lines).marks == {6: 3, 7: 3}


def test_distribution_count_only_covers_detected_questions():
    """Test that a count larger than the paper creates no extra questions."""
    lines = [
        "1. Define demand.",
        "2. Define supply.",
        "3. What is a market?",
        "Section A has 5 questions of 2 marks each",
    ]

    assert extract_distribution(lines, known_numbers=[1, 2, 3]).marks == {1: 2, 2: 2, 3: 2}


def test_distribution_count_skips_marked_questions():
    """Test that counted blocks fill the questions still without marks."""
    lines = ["Answer 2 questions of 4 marks each"]

    output = extract_distribution(lines, known_numbers=[1, 2, 3, 4], marked_numbers=[1, 2])

    assert output.marks == {3: 4, 4: 4}


def test_distribution_range_limited_to_detected_questions():
    """Test that a range statement only marks questions present on the page."""
    lines = ["Questions 6-10 carry 3 marks."]

    assert extract_distribution(lines, known_numbers=[6, 7]).marks == {6: 3, 7: 3}


# ==================== Known layout ====================

def test_known_economics_layout():
    """Test the 40-mark Economics paper structure."""
    output = apply_known_layout(SubjectArea.ECONOMICS, 40)

    assert sum(output.marks.values()) == 40
    assert output.marks[5] == 2
    assert output.marks[10] == 3
    assert output.marks[13] == 5


def test_known_layout_requires_matching_total():
    """Test that the layout is not applied to another paper."""
    assert not apply_known_layout(SubjectArea.ECONOMICS, 80)
    assert not apply_known_layout(SubjectArea.SCIENCE, 40)
    assert not apply_known_layout(None, 40)


def test_first_page_questions_get_two_marks():
    """Test the fallback for a page showing only questions 1-5 without marks."""
    assert apply_known_layout(None, None, [1, 2, 3]).marks == {1: 2, 2: 2, 3: 2}
    assert apply_known_layout(SubjectArea.SCIENCE, None, [2, 5]).marks == {2: 2, 5: 2}
    assert not apply_known_layout(None, None, [1, 2, 6])
    assert not apply_known_layout(None, None, [])


# ==================== Dual-number scan ====================

def test_dual_number_scan():
    """Test the last-resort number pair scan."""
    output = scan_dual_numbers(["scan noise 1 . define demand 3"])

    assert output.marks == {1: 3}
    assert output.texts[1] == "define demand"


# ==================== Extractor ====================

def test_extract_table(extractor):
    """Test the layered extractor on a clean table."""
    result = extractor.extract(TABLE_PAPER)

    assert result.marks == {1: 2, 2: 2, 3: 2, 4: 2, 5: 2}
    assert result.layers_used == ("tabular",)


def test_extract_inline_fallback(extractor):
    """Test that text without a table falls back to inline marks."""
    result = extractor.extract("Answer all questions.\n3. Explain Y (5 marks)")

    assert result.marks == {3: 5}
    assert result.layers_used == ("inline",)


def test_extract_science_table(extractor):
    """Test a spaced table with a declared total."""
    result = extractor.extract(SCIENCE_PAPER)

    assert result.marks == {1: 2, 2: 2, 3: 3, 4: 3, 5: 5, 6: 5}
    assert result.header_total == 20
    assert result.matches_header is True


def test_extract_general_paper(extractor):
    """Test Q-prefixed inline marks."""
    result = extractor.extract(GENERAL_PAPER)

    assert result.marks == {1: 5, 2: 5, 3: 5}
    assert result.is_complete


def test_extract_distribution_fills_gaps(extractor):
    """Test the Economics paper with its distribution note."""
    result = extractor.extract(f"{ECONOMICS_PAPER}\n{ECONOMICS_NOTE}")

    assert len(result.marks) == 13
    assert result.total == 40
    assert result.matches_header is True
    assert "distribution" in result.layers_used
    assert result.question_texts[1] == "Define marginal propensity to consume"


def test_extract_known_layout(extractor):
    """Test the known layout when the paper states no marks."""
    result = extractor.extract(ECONOMICS_PAPER, SubjectArea.ECONOMICS)

    assert result.total == 40
    assert result.layers_used == ("known_layout",)
    assert list(result.marks) == list(range(1, 14))


def test_extract_header_mismatch(extractor):
    """Test that a short total is reported against the header."""
    result = extractor.extract("Total Marks: 20\n1. A question (5 marks)\n2. Another one (5 marks)")

    assert result.marks == {1: 5, 2: 5}
    assert result.matches_header is False
    assert not result.is_complete


def test_extract_dual_number(extractor):
    """Test that the dual-number scan runs only when everything else failed."""
    result = extractor.extract("scan noise 1 . define demand 3")

    assert result.marks == {1: 3}
    assert result.layers_used == ("dual_number",)


def test_extract_wrapped_questions(extractor):
    """Test a paper whose questions wrap before their marks."""
    result = extractor.extract(
        "1. Explain the law of demand\nwith a suitable diagram. (5 marks)\n2. Define supply. (2 marks)"
    )

    assert result.marks == {1: 5, 2: 2}
    assert result.layers_used == ("inline",)


def test_extract_distribution_without_phantom_questions(extractor):
    """Test a short page whose note promises more questions than it shows."""
    result = extractor.extract(
        "1. Define demand.\n2. Define supply.\n3. What is a market?\n"
        "Section A has 5 questions of 2 marks each"
    )

    assert result.marks == {1: 2, 2: 2, 3: 2}


def test_extract_distribution_fills_unmarked_questions(extractor):
    """Test that a count statement completes a partly marked paper."""
    result = extractor.extract(
        "1. Define demand. (2 marks)\n2. Define supply. (2 marks)\n"
        "3. Explain price elasticity.\n4. Explain the law of returns.\n"
        "Answer 2 questions of 4 marks each"
    )

    assert result.marks == {1: 2, 2: 2, 3: 4, 4: 4}
    assert result.layers_used == ("inline", "distribution")


def test_extract_first_page_fallback(extractor):
    """Test questions 1-5 with no marks anywhere on the page."""
    result = extractor.extract("1. Define demand.\n2. Define supply.\n3. What is a market?")

    assert result.marks == {1: 2, 2: 2, 3: 2}
    assert result.layers_used == ("known_layout",)


@pytest.mark.parametrize("text", ["", "   ", None, "no numbers here at all", 42])
def test_extract_never_raises(extractor, text):
    """Test that malformed input gives an empty result."""
    result = extractor.extract(text)

    assert result.is_empty
    assert result.total == 0


def test_extract_is_deterministic(extractor):
    """Test that identical input gives identical output."""
    text = f"{ECONOMICS_PAPER}\n{ECONOMICS_NOTE}"

    first = extractor.extract(text, SubjectArea.ECONOMICS)
    second = MarkExtractor().extract(text, SubjectArea.ECONOMICS)

    assert first == second
    assert list(first.marks.items()) == list(second.marks.items())
