"""Cancellation and deadline handles for core operations.

Every service operation takes an optional ``ctx`` argument. When one is
given, the service calls :func:`check` before each storage call and inside
loops, and stops with :class:`OperationCancelledError` once the token has
been cancelled or its deadline has passed.
"""

import threading
import time
from typing import Optional


class OperationCancelledError(Exception):
    """Raised when an operation is stopped by its cancellation token.

    Not a DomainError: it marks an aborted call, not a rejected request.
    """


class CancelToken:
    """Thread-safe cancellation flag with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None):
        """Initialize the token.

        Args:
            timeout: Seconds from now after which the token counts as cancelled
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "operation cancelled"

    def cancel(self, reason: str = "operation cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "deadline exceeded"
            return True
        return False

    def check(self) -> None:
        """Raise OperationCancelledError if the token is cancelled."""
        if self.cancelled:
            raise OperationCancelledError(self._reason)


def check(ctx: Optional[CancelToken]) -> None:
    """Check ctx if one was supplied."""
    if ctx is not None:
        ctx.check()
