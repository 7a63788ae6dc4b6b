"""
Cancellation tokens carrying a deadline and an explicit abort signal.

A `CancellationToken` is created once per inbound request by the reconciler and threaded through
every call boundary down to the resilient executor: reconciler -> provider -> executor ->
transport. The executor checks it before each attempt, bounds each transport timeout by the
remaining time, and waits on it during backoff so a retry loop stops as soon as the caller's
deadline passes or `cancel()` is called from another thread.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from shared.errors import CancelledError


class CancellationToken:
    """
    Deadline plus abort flag, safe to share between threads.

    Args:
        timeout_s (Optional[float]): Seconds from now until the token expires. None means the
            token only fires when `cancel()` is called.
    """

    def __init__(self, timeout_s: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout_s is not None:
            self._deadline = time.monotonic() + max(0.0, float(timeout_s))
        self._reason = ""

    @classmethod
    def with_timeout(cls, timeout_s: float) -> "CancellationToken":
        return cls(timeout_s=timeout_s)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Fire the token. Any thread blocked in `wait()` wakes up immediately."""
        self._reason = reason
        self._event.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, 0.0 if already past, None if there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason
        if self.cancelled:
            return "deadline exceeded"
        return ""

    def raise_if_cancelled(self, context: str = "") -> None:
        if self.cancelled:
            prefix = f"{context}: " if context else ""
            raise CancelledError(f"{prefix}{self.reason}")

    def wait(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, waking early if the token fires.

        Returns:
            bool: True if the token fired (abort or deadline) during or before the wait,
            False if the full delay elapsed.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            # Sleep only until the deadline; the caller sees the token as cancelled afterwards.
            self._event.wait(remaining)
            return True
        if self._event.wait(seconds):
            return True
        return self.cancelled
