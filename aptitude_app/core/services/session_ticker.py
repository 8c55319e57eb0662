"""Recurring one-second callback that drives session timers."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Callable

from aptitude_app.constants.test_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SessionTicker:
    """Calls ``callback`` every ``interval_seconds`` on a daemon thread until cancelled."""

    def __init__(
        self,
        callback: Callable[[], None],
        interval_seconds: float = TICK_INTERVAL_SECONDS,
        name: str = "SessionTicker",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self._callback = callback
        self._interval = interval_seconds
        self._cancelled = Event()
        self._thread = Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        """Stop ticking. Safe to call more than once and from inside the callback."""
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def is_running(self) -> bool:
        return self._thread.is_alive() and not self._cancelled.is_set()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Session tick failed; stopping ticker")
                self._cancelled.set()
