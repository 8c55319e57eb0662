"""Utilities for importing questions in bulk.

Two formats are accepted.

CSV, one question per row, header optional::

    Question,Option1,Option2,Option3,Option4,CorrectOptionIndex,Explanation,Topic
    What is 2 + 2?,3,4,5,22,1,Basic addition,Mathematics

``CorrectOptionIndex`` is zero-based. Rows that cannot be parsed are reported
by line number and skipped; the remaining rows are still imported.

Text blocks separated by blank lines or ``---``::

    Q: What is the chemical symbol for gold?
    A: Go
    B: Gd
    C: Au
    D: Ag
    CORRECT: C
    TOPIC: Science
    EXPLANATION: From the Latin word aurum.

``TOPIC`` and ``EXPLANATION`` are optional. Question and explanation text may
continue over several lines.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
import io
from pathlib import Path

from aptitude_app.constants.test_constants import OPTION_COUNT, OPTION_LETTERS
from aptitude_app.core.models import Question

_CSV_HEADER_PREFIX = "question,option1"
_MIN_CSV_COLUMNS = 6


class QuestionImportError(Exception):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestions:
    """Parsed questions plus the line numbers of rows that were skipped."""

    questions: list[Question]
    invalid_lines: list[int] = field(default_factory=list)


def load_questions_from_file(file_path: Path) -> ImportedQuestions:
    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".csv":
        return parse_questions_csv(text)
    return parse_questions_text(text)


def parse_questions(text: str) -> ImportedQuestions:
    """Parse either format, detecting text blocks by their ``Q:`` marker."""
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    if first_line.upper().startswith("Q:"):
        return parse_questions_text(text)
    return parse_questions_csv(text)


def parse_questions_csv(text: str) -> ImportedQuestions:
    rows = list(csv.reader(io.StringIO(text.strip())))
    questions: list[Question] = []
    invalid_lines: list[int] = []

    for line_number, cols in enumerate(rows, start=1):
        if not any(col.strip() for col in cols):
            continue
        if line_number == 1 and ",".join(c.strip() for c in cols).lower().startswith(_CSV_HEADER_PREFIX):
            continue
        question = _parse_csv_row(cols)
        if question is None:
            invalid_lines.append(line_number)
        else:
            questions.append(question)

    if not questions:
        raise QuestionImportError("No valid questions found in CSV data.")
    return ImportedQuestions(questions=questions, invalid_lines=invalid_lines)


def _parse_csv_row(cols: list[str]) -> Question | None:
    if len(cols) < _MIN_CSV_COLUMNS:
        return None
    cols = [col.strip() for col in cols]
    try:
        correct_option = int(cols[5])
    except ValueError:
        return None
    if not 0 <= correct_option < OPTION_COUNT:
        return None
    options = cols[1:5]
    if not cols[0] or any(not option for option in options):
        return None
    return Question(
        id="",  # assigned by the question bank
        text=cols[0],
        options=options,
        correct_option=correct_option,
        explanation=cols[6] if len(cols) > 6 and cols[6] else None,
        topic=cols[7] if len(cols) > 7 and cols[7] else None,
    )


def parse_questions_text(text: str) -> ImportedQuestions:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    questions = [_parse_block(block) for block in blocks if block]
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return ImportedQuestions(questions=questions)


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    explanation_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    topic: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("TOPIC:"):
            topic = line.split(":", 1)[1].strip() or None
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuestionImportError("Question text missing (Q: ...)")
    if len(options) != OPTION_COUNT:
        raise QuestionImportError("Each question must define exactly four options (A-D).")

    option_list = [options.get(letter, "").strip() for letter in OPTION_LETTERS]
    if any(not opt for opt in option_list):
        raise QuestionImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise QuestionImportError("CORRECT is required for every question.")
    if correct_letter not in OPTION_LETTERS:
        raise QuestionImportError("CORRECT must be one of A, B, C, or D.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionImportError("Question text cannot be empty.")

    explanation = "\n".join(explanation_lines).strip()
    return Question(
        id="",  # assigned by the question bank
        text=question_text,
        options=option_list,
        correct_option=OPTION_LETTERS.index(correct_letter),
        explanation=explanation or None,
        topic=topic,
    )
