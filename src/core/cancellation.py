# src/core/cancellation.py - v1
"""Cooperative cancellation token shared by long-running operations.

The token is passed explicitly through every scan and hash call and polled
before each unit of work. There is no global cancellation state.
"""

from __future__ import annotations

import threading


class OperationCancelledError(Exception):
    """Raised inside an operation when its token has been cancelled."""


class CancellationToken:
    """Thread-safe cancellation flag.

    Safe to cancel from another thread or a signal handler while an
    asyncio task polls it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, message: str = "Operation cancelled") -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self.cancelled:
            raise OperationCancelledError(message)
