"""Service for persisting completed test results."""

from __future__ import annotations

from dataclasses import replace
import logging
from uuid import uuid4

from aptitude_app.core.errors import SaveResultError, StorageError
from aptitude_app.core.models import TestResult
from aptitude_app.core.record_codec import result_from_row, result_to_row
from aptitude_app.core.services.json_storage import JsonRecordFile

logger = logging.getLogger(__name__)


class ResultStore:
    """Append-only store of test results keyed by a generated identifier."""

    def __init__(self, storage: JsonRecordFile | None = None) -> None:
        self._results: dict[str, TestResult] = {}
        self._storage = storage
        if storage is not None:
            for row in storage.load():
                result = result_from_row(row)
                if result.id is None:
                    result = replace(result, id=uuid4().hex)
                self._results[result.id] = result

    def save_result(self, draft: TestResult) -> str:
        """Store a result draft and return its new identifier."""
        if draft.id is not None:
            raise ValueError("Result has already been saved.")
        result_id = uuid4().hex
        self._results[result_id] = replace(draft, id=result_id)
        try:
            self._persist()
        except StorageError as exc:
            self._results.pop(result_id, None)
            raise SaveResultError(str(exc)) from exc
        logger.info("Saved result %s for user %s", result_id, draft.user_id)
        return result_id

    def get_result(self, result_id: str) -> TestResult:
        result = self._results.get(result_id)
        if result is None:
            raise KeyError(f"Result {result_id} not found")
        return result

    def list_results(self, user_id: str | None = None) -> list[TestResult]:
        """Return results newest first, optionally only those of one user."""
        results = [
            r for r in self._results.values() if user_id is None or r.user_id == user_id
        ]
        return sorted(results, key=lambda r: r.test_date, reverse=True)

    def _persist(self) -> None:
        if self._storage is not None:
            self._storage.save([result_to_row(r) for r in self._results.values()])
