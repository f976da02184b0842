"""Exception hierarchy for operator and orchestration failures."""

from typing import Optional

from common import StatusEntry


class OperatorError(Exception):
    """Base exception for operator errors."""


class NotFoundError(OperatorError):
    """A required inherited owner reference is missing."""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"{what}: not found")


class CallbackError(OperatorError):
    """A pre or post callback failed."""


class RemoteError(OperatorError):
    """The underlying client call failed.

    Attributes:
        entry: Failed status entry describing the item, if known
    """

    def __init__(self, message: str, entry: Optional[StatusEntry] = None):
        self.entry = entry
        super().__init__(message)


class CancelledError(OperatorError):
    """The operation context was cancelled or its deadline passed."""
