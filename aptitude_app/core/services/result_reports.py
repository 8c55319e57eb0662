"""Statistics and exports over saved test results."""

from __future__ import annotations

import csv
from dataclasses import dataclass
import io

from aptitude_app.core.models import TestResult


@dataclass(slots=True)
class ResultSummary:
    """Aggregate numbers shown on the admin dashboard."""

    total_attempts: int
    distinct_students: int
    average_percentage: float
    best_percentage: float
    average_time_seconds: float


@dataclass(slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    user_id: str
    user_name: str
    score: int
    total_questions: int
    time_spent: int


def summarize_results(results: list[TestResult]) -> ResultSummary:
    if not results:
        return ResultSummary(0, 0, 0.0, 0.0, 0.0)
    percentages = [r.percentage for r in results]
    return ResultSummary(
        total_attempts=len(results),
        distinct_students=len({r.user_id for r in results}),
        average_percentage=round(sum(percentages) / len(percentages), 2),
        best_percentage=round(max(percentages), 2),
        average_time_seconds=round(sum(r.time_spent for r in results) / len(results), 2),
    )


def top_results(results: list[TestResult], limit: int = 3) -> list[LeaderboardRow]:
    """Return the top N results sorted by score and then by time taken."""
    sorted_results = sorted(results, key=lambda r: (-r.score, r.time_spent))
    return [
        LeaderboardRow(
            user_id=result.user_id,
            user_name=result.user_name,
            score=result.score,
            total_questions=result.total_questions,
            time_spent=result.time_spent,
        )
        for result in sorted_results[:limit]
    ]


def format_minutes_seconds(seconds: int) -> str:
    return f"{seconds // 60}m {seconds % 60}s"


def format_duration(seconds: int) -> str:
    """Format as MM:SS, or HH:MM:SS once an hour has passed."""
    hours, remainder = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def export_results_csv(results: list[TestResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Student Name", "Test Date", "Score", "Total Questions", "Time Spent"])
    for result in results:
        writer.writerow(
            [
                result.user_name,
                result.test_date.date().isoformat(),
                result.score,
                result.total_questions,
                format_minutes_seconds(result.time_spent),
            ]
        )
    return buffer.getvalue()
