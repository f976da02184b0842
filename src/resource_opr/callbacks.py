"""Pre/post callback chain and owner-reference harvesting.

Pre callbacks receive the Document about to be applied or deleted.
Post callbacks receive the StatusEntry of the item and the error raised
by the remote call (None on success). Any callback raising aborts the
operator; non-operator exceptions are wrapped in CallbackError.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from common import OwnerReference, StatusEntry
from document import Document
from resource_opr.errors import CallbackError, OperatorError

logger = logging.getLogger(__name__)

PreCallback = Callable[[Document], None]
PostCallback = Callable[[StatusEntry, Optional[Exception]], None]


@dataclass
class Callbacks:
    """Ordered pre and post hooks invoked around every item."""
    pre: list[PreCallback] = field(default_factory=list)
    post: list[PostCallback] = field(default_factory=list)

    def with_post(self, *callbacks: PostCallback) -> 'Callbacks':
        """Return a copy with callbacks appended to the post chain."""
        return Callbacks(pre=list(self.pre), post=list(self.post) + list(callbacks))


def fire_callbacks(callbacks: list[Callable[..., Any]], *args: Any) -> None:
    """Invoke callbacks in order, stopping at the first failure.

    Raises:
        OperatorError: Re-raised unchanged when a callback raises one
        CallbackError: When a callback raises any other exception
    """
    for callback in callbacks:
        try:
            callback(*args)
        except OperatorError:
            raise
        except Exception as e:
            name = getattr(callback, '__name__', repr(callback))
            raise CallbackError(f"callback {name} failed: {e}") from e


class OwnerReferenceList:
    """Accumulator for owner references harvested from post callbacks.

    One instance lives for a single operator apply. The manager installs
    harvest() into the post chain and reads references afterwards.
    """

    def __init__(self) -> None:
        self.references: list[OwnerReference] = []

    def harvest(self, entry: StatusEntry, error: Optional[Exception] = None) -> None:
        """Record the identity of a successfully applied item.

        Failed items (error set, or a failed status) are skipped; the error
        itself is left for the operator to raise.

        Raises:
            CallbackError: If entry is not a StatusEntry
        """
        if not isinstance(entry, StatusEntry):
            raise CallbackError("cannot interpret result as status entry")
        if error is not None or entry.failed:
            return
        ref = entry.owner_reference()
        logger.debug(f"Harvested owner reference {ref.kind}/{ref.name} (uid={ref.uid})")
        self.references.append(ref)

    def __iter__(self) -> Iterator[OwnerReference]:
        return iter(self.references)

    def __len__(self) -> int:
        return len(self.references)
