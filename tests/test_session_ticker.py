import threading
import time

import pytest

from aptitude_app.core.services.session_ticker import SessionTicker


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_ticks_until_cancelled():
    reached = threading.Event()
    calls = []

    def callback():
        calls.append(1)
        if len(calls) >= 3:
            reached.set()

    ticker = SessionTicker(callback, interval_seconds=0.01)
    ticker.start()
    assert reached.wait(timeout=2)
    ticker.cancel()
    ticker.cancel()
    assert ticker.is_cancelled()
    assert not ticker.is_running()

    count = len(calls)
    time.sleep(0.05)
    # At most one tick can already be in flight when cancel() lands.
    assert len(calls) <= count + 1


def test_failing_callback_stops_ticker():
    calls = []

    def callback():
        calls.append(1)
        raise RuntimeError("boom")

    ticker = SessionTicker(callback, interval_seconds=0.01)
    ticker.start()
    assert _wait_until(ticker.is_cancelled)
    time.sleep(0.05)
    assert len(calls) == 1


def test_cancel_from_inside_callback():
    holder = {}

    def callback():
        holder["ticker"].cancel()

    ticker = SessionTicker(callback, interval_seconds=0.01)
    holder["ticker"] = ticker
    ticker.start()
    assert _wait_until(ticker.is_cancelled)


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        SessionTicker(lambda: None, interval_seconds=0)
