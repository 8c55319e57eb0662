from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from aptitude_app.core.errors import SaveResultError, StorageError
from aptitude_app.core.models import AnswerRecord, TestResult
from aptitude_app.core.services.json_storage import JsonRecordFile
from aptitude_app.core.services.result_reports import (
    export_results_csv,
    format_duration,
    format_minutes_seconds,
    summarize_results,
    top_results,
)
from aptitude_app.core.services.result_store import ResultStore

BASE_DATE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FailingStorage:
    path = Path("unwritable.json")

    def load(self):
        return []

    def save(self, rows):
        raise StorageError("disk full")


def _draft(user_id="student-1", score=2, total=3, time_spent=90, days=0, name="John Doe"):
    return TestResult(
        user_id=user_id,
        user_name=name,
        test_date=BASE_DATE + timedelta(days=days),
        score=score,
        total_questions=total,
        time_spent=time_spent,
        answers=(
            AnswerRecord("q1", 1, True, 30),
            AnswerRecord("q2", -1, False, 60),
        ),
    )


def test_save_assigns_id():
    store = ResultStore()
    result_id = store.save_result(_draft())
    saved = store.get_result(result_id)
    assert saved.id == result_id
    assert saved.score == 2
    with pytest.raises(ValueError):
        store.save_result(saved)
    with pytest.raises(KeyError):
        store.get_result("missing")


def test_list_results_newest_first_and_filtered():
    store = ResultStore()
    store.save_result(_draft(days=0))
    store.save_result(_draft(days=2))
    store.save_result(_draft(user_id="student-2", days=1))

    dates = [r.test_date for r in store.list_results()]
    assert dates == sorted(dates, reverse=True)
    assert {r.user_id for r in store.list_results("student-1")} == {"student-1"}
    assert len(store.list_results("student-1")) == 2
    assert store.list_results("nobody") == []


def test_failed_save_is_rolled_back():
    store = ResultStore(FailingStorage())
    with pytest.raises(SaveResultError):
        store.save_result(_draft())
    assert store.list_results() == []


def test_results_survive_reload(tmp_path):
    path = tmp_path / "test_results.json"
    store = ResultStore(JsonRecordFile(path))
    result_id = store.save_result(_draft())

    reloaded = ResultStore(JsonRecordFile(path)).get_result(result_id)
    assert reloaded.answers[1].selected_option == -1
    assert reloaded.time_spent == 90
    assert reloaded.test_date == BASE_DATE


def test_summary():
    results = [
        _draft(user_id="a", score=1, total=2, time_spent=60),
        _draft(user_id="a", score=2, total=2, time_spent=120),
        _draft(user_id="b", score=0, total=4, time_spent=30),
    ]
    summary = summarize_results(results)
    assert summary.total_attempts == 3
    assert summary.distinct_students == 2
    assert summary.average_percentage == 50.0
    assert summary.best_percentage == 100.0
    assert summary.average_time_seconds == 70.0

    empty = summarize_results([])
    assert empty.total_attempts == 0


def test_top_results_prefers_faster_on_ties():
    results = [
        _draft(user_id="slow", score=3, time_spent=200),
        _draft(user_id="fast", score=3, time_spent=100),
        _draft(user_id="low", score=1, time_spent=10),
        _draft(user_id="mid", score=2, time_spent=10),
    ]
    assert [row.user_id for row in top_results(results)] == ["fast", "slow", "mid"]
    assert len(top_results(results, limit=10)) == 4


def test_time_formatting():
    assert format_minutes_seconds(125) == "2m 5s"
    assert format_minutes_seconds(0) == "0m 0s"
    assert format_duration(59) == "00:59"
    assert format_duration(600) == "10:00"
    assert format_duration(3725) == "01:02:05"


def test_csv_export():
    document = export_results_csv([_draft(name="Doe, John", time_spent=125)])
    lines = document.splitlines()
    assert lines[0] == "Student Name,Test Date,Score,Total Questions,Time Spent"
    assert lines[1] == '"Doe, John",2024-03-01,2,3,2m 5s'
