"""
Cooperative cancellation for blocking probe and reflector loops.

A token is handed *into* each blocking call. The call waits in short slices
and checks the token between them, so a cancel request is observed within one
slice instead of after the full socket timeout.
"""

import threading
from typing import Optional


class CancelledError(RuntimeError):
    """Raised when an operation observes a cancellation request."""


class CancellationToken:
    """Thread-safe one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation. Repeated calls keep the first reason."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled."""
        if timeout is not None and timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError(self._reason or "operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self._reason!r})"
