"""Service for managing the collection of questions."""

from __future__ import annotations

from dataclasses import replace
import logging
from uuid import uuid4

from aptitude_app.constants.test_constants import OPTION_COUNT
from aptitude_app.core.errors import StorageError
from aptitude_app.core.models import Question
from aptitude_app.core.record_codec import question_from_row, question_to_row
from aptitude_app.core.services.json_storage import JsonRecordFile

logger = logging.getLogger(__name__)


class QuestionBank:
    """Manages the lifecycle and storage of questions."""

    def __init__(self, storage: JsonRecordFile | None = None) -> None:
        self._questions: dict[str, Question] = {}
        self._storage = storage
        if storage is not None:
            for row in storage.load():
                question = self._prepare_question(question_from_row(row))
                self._questions[question.id] = question
            logger.info("Loaded %d questions from %s", len(self._questions), storage.path)

    def get_questions(self) -> list[Question]:
        """Return copies of all questions, oldest first."""
        return [_copy(q) for q in self._questions.values()]

    def has_questions(self) -> bool:
        return bool(self._questions)

    def get_question_count(self) -> int:
        return len(self._questions)

    def get_question(self, question_id: str) -> Question:
        question = self._questions.get(question_id)
        if question is None:
            raise KeyError(f"Question {question_id} not found")
        return _copy(question)

    def add_question(self, question: Question) -> Question:
        prepared = self._prepare_question(question)
        if prepared.id in self._questions:
            raise ValueError(f"Question id {prepared.id} already exists.")
        previous = dict(self._questions)
        self._questions[prepared.id] = prepared
        self._persist(previous)
        return _copy(prepared)

    def add_questions(self, questions: list[Question]) -> list[Question]:
        """Insert several questions at once; nothing is stored if any is invalid."""
        prepared = [self._prepare_question(q) for q in questions]
        ids = [q.id for q in prepared]
        if len(set(ids)) != len(ids) or any(qid in self._questions for qid in ids):
            raise ValueError("Bulk import contains duplicate question ids.")
        previous = dict(self._questions)
        for question in prepared:
            self._questions[question.id] = question
        self._persist(previous)
        logger.info("Imported %d questions", len(prepared))
        return [_copy(q) for q in prepared]

    def update_question(self, question_id: str, question: Question) -> Question:
        if question_id not in self._questions:
            raise KeyError(f"Question {question_id} not found")
        # Preserve the original ID
        prepared = self._prepare_question(replace(question, id=question_id))
        previous = dict(self._questions)
        self._questions[question_id] = prepared
        self._persist(previous)
        return _copy(prepared)

    def delete_question(self, question_id: str) -> None:
        previous = dict(self._questions)
        if self._questions.pop(question_id, None) is None:
            raise KeyError(f"Question {question_id} not found")
        self._persist(previous)

    def fetch_questions_by_topic(self, topic: str) -> list[Question]:
        """Return copies of every question tagged with ``topic``."""
        return [_copy(q) for q in self._questions.values() if q.topic == topic]

    def fetch_all_topics(self) -> set[str]:
        return {q.topic for q in self._questions.values() if q.topic}

    def _persist(self, previous: dict[str, Question]) -> None:
        """Write the bank out, restoring ``previous`` in memory if the write fails."""
        if self._storage is None:
            return
        try:
            self._storage.save([question_to_row(q) for q in self._questions.values()])
        except StorageError:
            self._questions = previous
            raise

    def _prepare_question(self, question: Question) -> Question:
        """Validate and normalize a question before storage."""
        options = self._validate_options(question.options)
        if not isinstance(question.correct_option, int) or not 0 <= question.correct_option < OPTION_COUNT:
            raise ValueError(f"Correct option index must be between 0 and {OPTION_COUNT - 1}.")

        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")

        return Question(
            id=question.id or uuid4().hex,
            text=cleaned_text,
            options=options,
            correct_option=question.correct_option,
            explanation=_clean_optional(question.explanation),
            topic=_clean_optional(question.topic),
        )

    @staticmethod
    def _validate_options(options: list[str]) -> list[str]:
        if len(options) != OPTION_COUNT:
            raise ValueError("Each question must have exactly four options.")
        cleaned = [option.strip() for option in options]
        if any(not option for option in cleaned):
            raise ValueError("Option text cannot be empty.")
        return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _copy(question: Question) -> Question:
    return replace(question, options=list(question.options))
