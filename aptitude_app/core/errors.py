"""Error taxonomy for question loading, selection and result persistence."""

from __future__ import annotations

from enum import Enum


class AptitudeError(Exception):
    """Base class for domain errors raised by the testing core."""


class StorageError(AptitudeError):
    """Raised when a backing store cannot be read or written."""


class RecordFormatError(StorageError):
    """Raised when a persisted row cannot be converted into a domain record."""


class LoadErrorReason(str, Enum):
    NOT_FOUND = "not_found"
    DEACTIVATED = "deactivated"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    TOPICS_UNAVAILABLE = "topics_unavailable"


_LOAD_ERROR_MESSAGES = {
    LoadErrorReason.NOT_FOUND: "The requested test could not be found.",
    LoadErrorReason.DEACTIVATED: "This test has been deactivated by an administrator.",
    LoadErrorReason.NOT_STARTED: "This test is not available yet.",
    LoadErrorReason.EXPIRED: "This test is no longer available.",
    LoadErrorReason.TOPICS_UNAVAILABLE: "Questions for this test could not be loaded.",
}


class LoadError(AptitudeError):
    """Raised when a session cannot start because its inputs could not be loaded."""

    def __init__(self, reason: LoadErrorReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or _LOAD_ERROR_MESSAGES[reason])


class NoQuestionsAvailable(AptitudeError):
    """Raised when selection found no questions for the requested topics."""

    def __init__(self, topics: list[str]) -> None:
        self.topics = list(topics)
        if not self.topics:
            super().__init__("No questions available for the test.")
        else:
            super().__init__(f"No questions available for topics: {', '.join(self.topics)}.")


class SaveResultError(AptitudeError):
    """Raised when a completed test result could not be persisted."""


class SessionStateError(RuntimeError):
    """Raised when a session is mutated outside the IN_PROGRESS state."""


class StaleSessionError(RuntimeError):
    """Raised when a session start was superseded before it finished loading."""
