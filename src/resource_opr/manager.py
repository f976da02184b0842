"""Orchestration manager for parent/children operator forests.

Applies each parent, harvests owner references from its successful
items, and threads them into every child's apply. The first failure
stops the walk; with on_error=purge every parent is then deleted on a
best-effort basis before the original error is re-raised.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from common import PROPAGATION_BACKGROUND, PROPAGATION_FOREGROUND, OwnerReference, dry_run_flags
from resource_opr.callbacks import Callbacks, OwnerReferenceList
from resource_opr.context import Context
from resource_opr.operator import ApplyOptions, DeleteOptions, Operator

logger = logging.getLogger(__name__)

# Ordered (parent, children) pairs; None operators are no-ops
Forest = list[tuple[Optional[Operator], list[Optional[Operator]]]]


class OnError(str, Enum):
    """Error handling strategy for Manager.do."""
    STOP = 'stop'
    PURGE = 'purge'


@dataclass
class Options:
    """Orchestration options.

    Attributes:
        dry_run: Validate against the store without persisting
        set_owner_references: Harvest parent identities and pass them to children
        on_error: STOP (default) or PURGE all parents after a failure
        callbacks: Pre/post hooks fired around every item
    """
    dry_run: bool = False
    set_owner_references: bool = False
    on_error: OnError = OnError.STOP
    callbacks: Callbacks = field(default_factory=Callbacks)


class Manager:
    """Walks a forest of operators in order.

    A Manager holds no per-run state, but concurrent do() calls over the
    same forest are not supported (operators keep their items in memory).
    """

    def __init__(self, forest: Forest):
        self.forest: Forest = [(parent, list(children)) for parent, children in forest]

    @property
    def parents(self) -> list[Operator]:
        """Non-None parent operators in forest order."""
        return [parent for parent, _ in self.forest if parent is not None]

    def do(self, ctx: Context, options: Options) -> None:
        """Apply the forest, parents before their children.

        Raises:
            Exception: The first error raised by any operator, unchanged
        """
        try:
            self._manage_operators(ctx, options)
        except Exception as e:
            logger.error(f"[apply] Failed: {e}")
            if options.on_error == OnError.PURGE:
                self._purge_parents(options)
            raise

    def destroy(self, ctx: Context, options: Options, propagation: str = PROPAGATION_BACKGROUND) -> None:
        """Delete the forest: entries in reverse, children before their parent.

        Stops on the first error.
        """
        delete_opts = DeleteOptions(
            propagation=propagation,
            dry_run=dry_run_flags(options.dry_run),
            callbacks=options.callbacks,
        )
        for parent, children in reversed(self.forest):
            for child in reversed(children):
                if child is None:
                    continue
                logger.info(f"[destroy] Deleting {child!r}")
                child.delete(ctx, delete_opts)
            if parent is None:
                continue
            logger.info(f"[destroy] Deleting {parent!r}")
            parent.delete(ctx, delete_opts)

    def _manage_operators(self, ctx: Context, options: Options) -> None:
        for parent, children in self.forest:
            logger.info(f"[apply] Applying parent {parent!r}")
            references = self._use_operator(ctx, parent, options, [])

            for child in children:
                logger.info(f"[apply] Applying child {child!r} ({len(references)} owner references)")
                self._use_operator(ctx, child, options, references)

    def _use_operator(
        self,
        ctx: Context,
        opr: Optional[Operator],
        options: Options,
        references: list[OwnerReference],
    ) -> list[OwnerReference]:
        """Apply one operator and return the owner references it produced."""
        harvested = OwnerReferenceList()
        if opr is None:
            return []

        callbacks = options.callbacks
        if options.set_owner_references:
            callbacks = self._owner_reference_callbacks(options.callbacks, harvested)

        apply_opts = ApplyOptions(
            owner_references=list(references),
            dry_run=dry_run_flags(options.dry_run),
            callbacks=callbacks,
        )
        opr.apply(ctx, apply_opts)
        if harvested:
            logger.debug(f"[apply] {opr!r} produced {len(harvested)} owner references")
        return list(harvested)

    def _owner_reference_callbacks(self, callbacks: Callbacks, harvested: OwnerReferenceList) -> Callbacks:
        return callbacks.with_post(harvested.harvest)

    def _purge_parents(self, options: Options) -> None:
        """Best-effort delete of every parent; failures are logged, never raised."""
        delete_opts = DeleteOptions(
            propagation=PROPAGATION_FOREGROUND,
            dry_run=dry_run_flags(options.dry_run),
            callbacks=options.callbacks,
        )
        parents = self.parents
        logger.info(f"[purge] Purging {len(parents)} parent operators...")
        for opr in parents:
            # Fresh context: purge must run even if the caller's was cancelled
            try:
                opr.delete(Context.background(), delete_opts)
            except Exception as e:
                logger.warning(f"[purge] Delete failed for {opr!r}: {e}")
