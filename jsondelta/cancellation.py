"""Cooperative cancellation for diff computations."""

from __future__ import annotations

import threading
from typing import Optional

from .exceptions import JobCancelledError


class CancellationToken:
    """
    Flag shared between a job's owner and the computation running it.

    The computation polls the token at checkpoints; setting it never
    interrupts work in progress.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or the timeout elapses. Returns the cancelled flag."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, checkpoint: str) -> None:
        if self._event.is_set():
            raise JobCancelledError(checkpoint)
