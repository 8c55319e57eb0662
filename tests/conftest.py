"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from aptitude_app.core.models import Question, UserContext


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)

    def set(self, moment: datetime) -> None:
        self._now = moment


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def student() -> UserContext:
    return UserContext(user_id="student-1", user_name="John Doe")


@pytest.fixture
def admin() -> UserContext:
    return UserContext(user_id="admin-1", user_name="Administrator", role="admin")


@pytest.fixture
def make_question():
    counter = {"n": 0}

    def factory(topic: str | None = "Mathematics", correct_option: int = 1, qid: str | None = None) -> Question:
        counter["n"] += 1
        n = counter["n"]
        return Question(
            id=qid if qid is not None else f"q{n}",
            text=f"Question {n}?",
            options=[f"opt {n}-{i}" for i in range(4)],
            correct_option=correct_option,
            explanation=f"Because {n}.",
            topic=topic,
        )

    return factory
