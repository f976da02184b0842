"""Operator contract and per-call options.

An operator converges (apply) or tears down (delete) one logical unit
of remote state. Both calls return None and raise an OperatorError
subclass on failure. Per-item side effects go through the callbacks.
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from common import PROPAGATION_BACKGROUND, OwnerReference
from resource_opr.callbacks import Callbacks
from resource_opr.context import Context


@dataclass
class ApplyOptions:
    """Options for Operator.apply.

    Attributes:
        owner_references: References inherited from the parent (empty for parents)
        dry_run: Dry-run flags passed to the store (empty or ['All'])
        callbacks: Pre/post hooks fired around each item
    """
    owner_references: list[OwnerReference] = field(default_factory=list)
    dry_run: list[str] = field(default_factory=list)
    callbacks: Callbacks = field(default_factory=Callbacks)


@dataclass
class DeleteOptions:
    """Options for Operator.delete.

    Attributes:
        propagation: Cascade mode for the store (Foreground, Background, Orphan)
        dry_run: Dry-run flags passed to the store
        callbacks: Pre/post hooks fired around each item
    """
    propagation: str = PROPAGATION_BACKGROUND
    dry_run: list[str] = field(default_factory=list)
    callbacks: Callbacks = field(default_factory=Callbacks)


@runtime_checkable
class Operator(Protocol):
    """Protocol for operator classes that implement apply() and delete()."""

    def apply(self, ctx: Context, opts: ApplyOptions) -> None:
        """Converge managed items; must be idempotent."""

    def delete(self, ctx: Context, opts: DeleteOptions) -> None:
        """Remove managed items; already-absent items are not an error."""
