"""Topic-balanced question selection.

Each topic's candidates are shuffled independently, then consumed round-robin:
the first pass takes one question per topic so small topics are always
represented, later passes keep cycling until the target count is reached or
every topic runs dry. Selection is random per call and is not meant to be
reproducible; tests may pass their own ``random.Random``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import Callable, Iterable, Sequence, TypeVar

from aptitude_app.core.errors import LoadError, LoadErrorReason, NoQuestionsAvailable, StorageError
from aptitude_app.core.models import Question

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchQuestions = Callable[[str], Sequence[Question]]


@dataclass(frozen=True, slots=True)
class PartialTopicFetchFailure:
    """Warning raised alongside a selection that could not fully use every topic."""

    requested_count: int
    selected_count: int
    failed_topics: tuple[str, ...] = ()
    empty_topics: tuple[str, ...] = ()

    @property
    def undershoot(self) -> bool:
        return self.selected_count < self.requested_count

    @property
    def message(self) -> str:
        parts: list[str] = []
        if self.failed_topics:
            parts.append(f"could not load topics: {', '.join(self.failed_topics)}")
        if self.empty_topics:
            parts.append(f"no questions for topics: {', '.join(self.empty_topics)}")
        if self.undershoot:
            parts.append(
                f"only {self.selected_count} of {self.requested_count} questions available"
            )
        return "; ".join(parts)


@dataclass(frozen=True, slots=True)
class SelectionOutcome:
    questions: list[Question]
    requested_count: int
    failed_topics: tuple[str, ...] = field(default=())
    empty_topics: tuple[str, ...] = field(default=())

    @property
    def warning(self) -> PartialTopicFetchFailure | None:
        if not self.failed_topics and len(self.questions) >= self.requested_count:
            return None
        return PartialTopicFetchFailure(
            requested_count=self.requested_count,
            selected_count=len(self.questions),
            failed_topics=self.failed_topics,
            empty_topics=self.empty_topics,
        )


def shuffled(items: Iterable[T], rng: random.Random | None = None) -> list[T]:
    """Return a uniformly shuffled copy of ``items``; the input is left untouched."""
    result = list(items)
    (rng or random).shuffle(result)
    return result


def round_robin_fill(pools: Sequence[Sequence[Question]], question_count: int) -> list[Question]:
    """Take one question per pool per pass until ``question_count`` or exhaustion."""
    if question_count <= 0:
        return []
    cursors = [0] * len(pools)
    seen: set[str] = set()
    selected: list[Question] = []

    while len(selected) < question_count:
        took_any = False
        for pool_index, pool in enumerate(pools):
            if len(selected) >= question_count:
                break
            # Skip questions already taken through another topic.
            while cursors[pool_index] < len(pool) and pool[cursors[pool_index]].id in seen:
                cursors[pool_index] += 1
            if cursors[pool_index] >= len(pool):
                continue
            question = pool[cursors[pool_index]]
            cursors[pool_index] += 1
            seen.add(question.id)
            selected.append(question)
            took_any = True
        if not took_any:
            break
    return selected


def select_questions(
    topics: Iterable[str],
    question_count: int,
    fetch_questions_by_topic: FetchQuestions,
    rng: random.Random | None = None,
) -> SelectionOutcome:
    """Select up to ``question_count`` questions balanced across ``topics``."""
    ordered_topics = list(dict.fromkeys(topic for topic in topics if topic))
    if not ordered_topics:
        raise ValueError("At least one topic is required.")
    if question_count <= 0:
        raise ValueError("Question count must be a positive integer.")

    pools: list[list[Question]] = []
    failed: list[str] = []
    empty: list[str] = []
    for topic in ordered_topics:
        try:
            candidates = list(fetch_questions_by_topic(topic))
        except (StorageError, OSError) as exc:
            logger.warning("Failed to fetch questions for topic %r: %s", topic, exc)
            failed.append(topic)
            continue
        if not candidates:
            logger.warning("Topic %r has no questions", topic)
            empty.append(topic)
            continue
        pools.append(shuffled(candidates, rng))

    if len(failed) == len(ordered_topics):
        raise LoadError(LoadErrorReason.TOPICS_UNAVAILABLE)
    if not pools:
        raise NoQuestionsAvailable(ordered_topics)

    outcome = SelectionOutcome(
        questions=round_robin_fill(pools, question_count),
        requested_count=question_count,
        failed_topics=tuple(failed),
        empty_topics=tuple(empty),
    )
    warning = outcome.warning
    if warning is not None:
        logger.warning("Question selection incomplete: %s", warning.message)
    return outcome
