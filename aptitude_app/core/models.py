"""Domain models for the aptitude-testing service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from aptitude_app.constants.test_constants import ROLE_ADMIN, ROLE_STUDENT, UNANSWERED


@dataclass(slots=True)
class Question:
    """Multiple-choice question with exactly four options."""

    id: str
    text: str
    options: list[str]
    correct_option: int
    explanation: str | None = None
    topic: str | None = None


@dataclass(slots=True)
class ScheduledTest:
    """An administrator-defined, time-windowed test drawn from a topic pool."""

    id: str
    title: str
    start_date: datetime
    end_date: datetime
    duration_minutes: int
    topics: list[str]
    question_count: int
    created_at: datetime
    description: str | None = None
    is_active: bool = True

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    def is_available(self, now: datetime) -> bool:
        return self.is_active and self.start_date <= now <= self.end_date


class QuestionStatus(str, Enum):
    ANSWERED = "answered"
    UNANSWERED = "unanswered"
    ANSWERED_REVIEW = "answered-review"
    UNANSWERED_REVIEW = "unanswered-review"

    @classmethod
    def derive(cls, selected_option: int, marked_for_review: bool) -> "QuestionStatus":
        if selected_option != UNANSWERED:
            return cls.ANSWERED_REVIEW if marked_for_review else cls.ANSWERED
        return cls.UNANSWERED_REVIEW if marked_for_review else cls.UNANSWERED


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class CompletionReason(str, Enum):
    FINISHED = "finished"
    QUESTION_TIMEOUT = "question_timeout"
    TIME_EXPIRED = "time_expired"


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """The outcome for one question of a completed session."""

    question_id: str
    selected_option: int
    is_correct: bool
    time_spent: int


@dataclass(frozen=True, slots=True)
class TestResult:
    """Immutable record of a completed session. ``id`` is None until saved."""

    __test__ = False  # keep pytest from collecting this class

    user_id: str
    user_name: str
    test_date: datetime
    score: int
    total_questions: int
    time_spent: int
    answers: tuple[AnswerRecord, ...]
    test_id: str | None = None
    id: str | None = None

    @property
    def percentage(self) -> float:
        if not self.total_questions:
            return 0.0
        return (self.score / self.total_questions) * 100


@dataclass(frozen=True, slots=True)
class UserContext:
    """Identity of the person driving a request, created at login."""

    user_id: str
    user_name: str
    role: str = ROLE_STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
