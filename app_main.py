"""Application entry point for the Aptitest server."""

from __future__ import annotations

import uvicorn

from aptitude_app.config import AppSettings, load_settings
from aptitude_app.core.services.json_storage import JsonRecordFile
from aptitude_app.core.services.question_bank import QuestionBank
from aptitude_app.core.services.result_store import ResultStore
from aptitude_app.core.services.scheduled_tests import ScheduledTestRegistry
from aptitude_app.core.test_manager import TestManager
from aptitude_app.server.api_server import create_api_app
from aptitude_app.utils.logging_config import configure_logging


def _storage(settings: AppSettings, name: str) -> JsonRecordFile | None:
    path = settings.data_file(name)
    return JsonRecordFile(path) if path is not None else None


def build_test_manager(settings: AppSettings) -> TestManager:
    """Wire the stores described by ``settings`` into a manager."""
    return TestManager(
        question_bank=QuestionBank(_storage(settings, "questions")),
        scheduled_tests=ScheduledTestRegistry(_storage(settings, "scheduled_tests")),
        result_store=ResultStore(_storage(settings, "test_results")),
        question_time_limit_seconds=settings.question_time_limit,
    )


def main() -> None:
    """Initialize logging, build the services and serve the API until interrupted."""
    settings = load_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting Aptitest server…")
    if settings.data_dir is None:
        logger.warning("APTITEST_DATA_DIR is not set; data will be kept in memory only")

    test_manager = build_test_manager(settings)
    app = create_api_app(test_manager)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    finally:
        test_manager.shutdown()


if __name__ == "__main__":
    main()
