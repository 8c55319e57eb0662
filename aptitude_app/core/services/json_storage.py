"""File-backed row storage shared by the in-memory stores."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from aptitude_app.core.errors import StorageError

logger = logging.getLogger(__name__)


class JsonRecordFile:
    """Persists a list of JSON rows to a single file."""

    def __init__(self, file_path: Path) -> None:
        self._path = file_path.resolve()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(document, list):
            raise StorageError(f"{self._path} must contain a JSON array of rows.")
        return document

    def save(self, rows: list[dict[str, Any]]) -> None:
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
            os.replace(temp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Could not write {self._path}: {exc}") from exc
        logger.debug("Wrote %d rows to %s", len(rows), self._path)
