"""Conversion between persisted rows and domain records.

Rows use the column names of the ``questions``, ``scheduled_tests`` and
``test_results`` tables. ``options`` and ``answers`` are structured blobs and
``topics`` is a string array. Older rows store ``options`` as a JSON string or
as an object keyed by position; ``parse_options`` folds those shapes into a
plain list so nothing past this module sees the raw value.
"""

from __future__ import annotations

from datetime import datetime
import json
from typing import Any, Mapping

from aptitude_app.constants.test_constants import OPTION_COUNT, UNANSWERED
from aptitude_app.core.clock import ensure_utc
from aptitude_app.core.errors import RecordFormatError
from aptitude_app.core.models import AnswerRecord, Question, ScheduledTest, TestResult


def parse_options(raw: Any) -> list[str]:
    """Return the four option strings from any stored ``options`` shape."""
    value = raw
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise RecordFormatError(f"Options are not valid JSON: {raw!r}") from exc

    if isinstance(value, Mapping):
        try:
            ordered = sorted(value.items(), key=lambda item: int(item[0]))
        except (TypeError, ValueError) as exc:
            raise RecordFormatError("Option keys must be numeric positions.") from exc
        value = [option for _, option in ordered]

    if not isinstance(value, (list, tuple)):
        raise RecordFormatError(f"Unsupported options value: {type(raw).__name__}")
    if len(value) != OPTION_COUNT:
        raise RecordFormatError(f"Expected {OPTION_COUNT} options, found {len(value)}.")
    return [str(option) for option in value]


def parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if not isinstance(raw, str) or not raw:
        raise RecordFormatError(f"Expected an ISO-8601 timestamp, got {raw!r}")
    try:
        # fromisoformat() before 3.11 does not accept a trailing Z
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise RecordFormatError(f"Invalid timestamp: {raw!r}") from exc
    return ensure_utc(parsed)


def format_datetime(value: datetime) -> str:
    return ensure_utc(value).isoformat()


def _require(row: Mapping[str, Any], column: str) -> Any:
    try:
        return row[column]
    except KeyError as exc:
        raise RecordFormatError(f"Row is missing column '{column}'.") from exc


def _require_int(row: Mapping[str, Any], column: str) -> int:
    try:
        return int(_require(row, column))
    except (TypeError, ValueError) as exc:
        raise RecordFormatError(f"{column} must be an integer.") from exc


def _load_json_column(raw: Any, column: str) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RecordFormatError(f"{column} is not valid JSON: {raw!r}") from exc


def question_from_row(row: Mapping[str, Any]) -> Question:
    correct_option = _require_int(row, "correct_option")
    return Question(
        id=str(_require(row, "id")),
        text=str(_require(row, "text")),
        options=parse_options(_require(row, "options")),
        correct_option=correct_option,
        explanation=row.get("explanation") or None,
        topic=row.get("topic") or None,
    )


def question_to_row(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "correct_option": question.correct_option,
        "explanation": question.explanation,
        "topic": question.topic,
    }


def scheduled_test_from_row(row: Mapping[str, Any]) -> ScheduledTest:
    topics = _load_json_column(_require(row, "topics"), "topics")
    if not isinstance(topics, list):
        raise RecordFormatError(f"topics must be a list, got {type(topics).__name__}.")
    return ScheduledTest(
        id=str(_require(row, "id")),
        title=str(_require(row, "title")),
        description=row.get("description") or None,
        start_date=parse_datetime(_require(row, "start_date")),
        end_date=parse_datetime(_require(row, "end_date")),
        duration_minutes=_require_int(row, "duration"),
        topics=[str(topic) for topic in topics],
        question_count=_require_int(row, "question_count"),
        is_active=bool(row.get("is_active", True)),
        created_at=parse_datetime(_require(row, "created_at")),
    )


def scheduled_test_to_row(test: ScheduledTest) -> dict[str, Any]:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "start_date": format_datetime(test.start_date),
        "end_date": format_datetime(test.end_date),
        "duration": test.duration_minutes,
        "topics": list(test.topics),
        "question_count": test.question_count,
        "is_active": test.is_active,
        "created_at": format_datetime(test.created_at),
    }


def _answer_from_blob(blob: Mapping[str, Any]) -> AnswerRecord:
    selected = blob.get("selectedOption", UNANSWERED)
    return AnswerRecord(
        question_id=str(blob["questionId"]),
        selected_option=UNANSWERED if selected is None else int(selected),
        is_correct=bool(blob["isCorrect"]),
        time_spent=int(blob.get("timeSpent", 0)),
    )


def _answer_to_blob(answer: AnswerRecord) -> dict[str, Any]:
    return {
        "questionId": answer.question_id,
        "selectedOption": answer.selected_option,
        "isCorrect": answer.is_correct,
        "timeSpent": answer.time_spent,
    }


def result_from_row(row: Mapping[str, Any]) -> TestResult:
    answers = _load_json_column(_require(row, "answers"), "answers")
    try:
        parsed_answers = tuple(_answer_from_blob(blob) for blob in answers)
    except (KeyError, TypeError, ValueError) as exc:
        raise RecordFormatError("Malformed answers blob.") from exc
    return TestResult(
        id=str(row["id"]) if row.get("id") is not None else None,
        user_id=str(_require(row, "user_id")),
        user_name=str(row.get("user_name") or ""),
        test_date=parse_datetime(_require(row, "test_date")),
        score=_require_int(row, "score"),
        total_questions=_require_int(row, "total_questions"),
        time_spent=_require_int(row, "time_spent"),
        answers=parsed_answers,
        test_id=row.get("test_id") or None,
    )


def result_to_row(result: TestResult) -> dict[str, Any]:
    return {
        "id": result.id,
        "user_id": result.user_id,
        "user_name": result.user_name,
        "test_date": format_datetime(result.test_date),
        "score": result.score,
        "total_questions": result.total_questions,
        "time_spent": result.time_spent,
        "answers": [_answer_to_blob(answer) for answer in result.answers],
        "test_id": result.test_id,
    }
