"""Runtime settings read from the environment with constant defaults."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from aptitude_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from aptitude_app.constants.test_constants import DEFAULT_QUESTION_TIME_LIMIT_SECONDS


def _getenv(key: str, default: str | None = None) -> str | None:
    """Small wrapper to read environment variables."""
    val = os.getenv(key)
    return val if (val is not None and val != "") else default


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True, slots=True)
class AppSettings:
    """Settings for one server process."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    data_dir: Path | None = None
    log_level: str = "INFO"
    # 0 disables the per-question countdown.
    question_time_limit_seconds: int = DEFAULT_QUESTION_TIME_LIMIT_SECONDS

    @property
    def question_time_limit(self) -> int | None:
        if self.question_time_limit_seconds <= 0:
            return None
        return self.question_time_limit_seconds

    def data_file(self, name: str) -> Path | None:
        """Return the JSON file backing a store, or None for in-memory storage."""
        if self.data_dir is None:
            return None
        return self.data_dir / f"{name}.json"


def load_settings() -> AppSettings:
    data_dir = _getenv("APTITEST_DATA_DIR")
    return AppSettings(
        host=_getenv("APTITEST_HOST", DEFAULT_HOST) or DEFAULT_HOST,
        port=_as_int(_getenv("APTITEST_PORT"), DEFAULT_PORT),
        data_dir=Path(data_dir) if data_dir else None,
        log_level=(_getenv("APTITEST_LOG_LEVEL", "INFO") or "INFO").upper(),
        question_time_limit_seconds=_as_int(
            _getenv("APTITEST_QUESTION_TIME_LIMIT"),
            DEFAULT_QUESTION_TIME_LIMIT_SECONDS,
        ),
    )
