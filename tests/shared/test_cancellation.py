"""Tests for `shared/cancellation.py`."""

import threading
import time

import pytest

from shared.cancellation import CancellationToken
from shared.errors import CancelledError


def test_token_without_deadline_never_expires_on_its_own():
    token = CancellationToken()
    assert token.remaining() is None
    assert not token.cancelled
    assert token.wait(0.01) is False


def test_deadline_expiry_marks_token_cancelled():
    token = CancellationToken.with_timeout(0.05)
    assert token.remaining() <= 0.05
    time.sleep(0.08)
    assert token.cancelled
    assert token.remaining() == 0.0
    assert token.reason == "deadline exceeded"
    with pytest.raises(CancelledError):
        token.raise_if_cancelled("refresh")


def test_wait_stops_at_deadline():
    token = CancellationToken.with_timeout(0.05)
    started = time.monotonic()
    assert token.wait(5.0) is True
    assert time.monotonic() - started < 1.0


def test_cancel_wakes_waiting_thread():
    token = CancellationToken()
    outcome = {}

    def waiter():
        outcome["fired"] = token.wait(5.0)

    thread = threading.Thread(target=waiter)
    thread.start()
    time.sleep(0.05)
    token.cancel("client went away")
    thread.join(timeout=2.0)
    assert outcome["fired"] is True
    assert token.reason == "client went away"
