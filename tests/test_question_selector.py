"""Tests for topic-balanced question selection."""

from __future__ import annotations

from collections import Counter
import random

import pytest

from aptitude_app.core.errors import LoadError, LoadErrorReason, NoQuestionsAvailable, StorageError
from aptitude_app.core.services.question_selector import round_robin_fill, select_questions, shuffled


def _pool(make_question, topic, count):
    return [make_question(topic=topic) for _ in range(count)]


def _fetcher(pools, failing=()):
    def fetch(topic):
        if topic in failing:
            raise StorageError(f"{topic} unavailable")
        return list(pools.get(topic, []))

    return fetch


def test_shuffled_returns_new_list_and_keeps_input():
    items = list(range(20))
    result = shuffled(items, random.Random(7))
    assert items == list(range(20))
    assert result is not items
    assert sorted(result) == items


def test_minority_topic_is_seeded(make_question):
    pools = {"Mathematics": _pool(make_question, "Mathematics", 3), "Science": _pool(make_question, "Science", 1)}
    outcome = select_questions(["Mathematics", "Science"], 3, _fetcher(pools), random.Random(1))

    topics = Counter(q.topic for q in outcome.questions)
    assert len(outcome.questions) == 3
    assert topics["Science"] == 1
    assert topics["Mathematics"] == 2
    assert len({q.id for q in outcome.questions}) == 3
    assert outcome.warning is None


def test_undershoot_is_reported(make_question):
    pools = {"Mathematics": _pool(make_question, "Mathematics", 3), "Science": _pool(make_question, "Science", 1)}
    outcome = select_questions(["Mathematics", "Science"], 10, _fetcher(pools))

    assert len(outcome.questions) == 4
    warning = outcome.warning
    assert warning is not None
    assert warning.undershoot
    assert warning.selected_count == 4
    assert warning.requested_count == 10


@pytest.mark.parametrize("count", [1, 2, 5, 9, 12, 40])
def test_selection_size_and_uniqueness(make_question, count):
    pools = {
        "Mathematics": _pool(make_question, "Mathematics", 6),
        "Science": _pool(make_question, "Science", 2),
        "English": _pool(make_question, "English", 4),
    }
    outcome = select_questions(list(pools), count, _fetcher(pools))
    assert len(outcome.questions) == min(count, 12)
    assert len({q.id for q in outcome.questions}) == len(outcome.questions)


def test_every_topic_represented_when_count_covers_topics(make_question):
    pools = {
        "Mathematics": _pool(make_question, "Mathematics", 10),
        "Science": _pool(make_question, "Science", 1),
        "History": _pool(make_question, "History", 1),
    }
    for _ in range(20):
        outcome = select_questions(list(pools), 3, _fetcher(pools))
        assert {q.topic for q in outcome.questions} == set(pools)


def test_round_robin_balances_abundant_topics(make_question):
    pools = [_pool(make_question, "A", 10), _pool(make_question, "B", 10)]
    selected = round_robin_fill(pools, 6)
    assert Counter(q.topic for q in selected) == {"A": 3, "B": 3}
    # Seed pass takes from topics in the given order.
    assert [q.topic for q in selected[:2]] == ["A", "B"]


def test_question_shared_between_topics_taken_once(make_question):
    shared = make_question(topic="A", qid="shared")
    pools = [[shared, make_question(topic="A")], [shared, make_question(topic="B")]]
    selected = round_robin_fill(pools, 10)
    ids = [q.id for q in selected]
    assert ids.count("shared") == 1
    assert len(ids) == 3


def test_failed_topic_is_skipped_with_warning(make_question):
    pools = {"Mathematics": _pool(make_question, "Mathematics", 2)}
    outcome = select_questions(["Mathematics", "Science"], 2, _fetcher(pools, failing={"Science"}))

    assert len(outcome.questions) == 2
    assert outcome.failed_topics == ("Science",)
    assert outcome.warning is not None
    assert "Science" in outcome.warning.message


def test_all_topics_failing_is_a_load_error():
    with pytest.raises(LoadError) as excinfo:
        select_questions(["A", "B"], 5, _fetcher({}, failing={"A", "B"}))
    assert excinfo.value.reason is LoadErrorReason.TOPICS_UNAVAILABLE


def test_no_questions_available():
    with pytest.raises(NoQuestionsAvailable):
        select_questions(["A", "B"], 5, _fetcher({}))


def test_empty_topic_is_recorded(make_question):
    pools = {"A": _pool(make_question, "A", 2)}
    outcome = select_questions(["A", "B"], 2, _fetcher(pools))
    assert outcome.empty_topics == ("B",)
    assert outcome.warning is None


def test_invalid_arguments():
    with pytest.raises(ValueError):
        select_questions([], 3, _fetcher({}))
    with pytest.raises(ValueError):
        select_questions(["A"], 0, _fetcher({}))


def test_fetched_lists_are_not_mutated(make_question):
    original = _pool(make_question, "A", 5)
    snapshot = list(original)
    select_questions(["A"], 5, lambda topic: original)
    assert original == snapshot
