"""Cancellation context threaded through every apply/delete call.

A Context carries a cancel flag and an optional deadline. Operators call
check() before each item so a cancelled run stops between remote calls;
clients use remaining() to bound their own request timeouts.
"""

import threading
import time
from typing import Optional

from resource_opr.errors import CancelledError


class Context:
    """Cancellable context with optional deadline."""

    def __init__(self, deadline: Optional[float] = None):
        self.deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> 'Context':
        """A context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> 'Context':
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None when unbounded)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise CancelledError if the context is done."""
        if self._cancelled.is_set():
            raise CancelledError("context cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise CancelledError("context deadline exceeded")
