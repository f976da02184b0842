"""Generic operator: applies a plain list of documents of one kind."""

import logging

from client.base import Client
from document import Document
from resource_opr.context import Context
from resource_opr.objects import apply_with_callbacks, delete_with_callbacks
from resource_opr.operator import ApplyOptions, DeleteOptions

logger = logging.getLogger(__name__)


class GenericOperator:
    """Applies and deletes documents as given.

    Inherited owner references, when present, replace the documents' own.
    """

    def __init__(self, client: Client, *items: Document):
        self.client = client
        self.items = list(items)

    def apply(self, ctx: Context, opts: ApplyOptions) -> None:
        logger.debug(f"[apply] {self!r} with {len(opts.owner_references)} owner references")
        for item in self.items:
            ctx.check()
            if opts.owner_references:
                item.set_owner_references(opts.owner_references)
            applied = apply_with_callbacks(ctx, self.client, item, opts.dry_run, opts.callbacks)
            item.set_content(applied.object)

    def delete(self, ctx: Context, opts: DeleteOptions) -> None:
        logger.debug(f"[delete] {self!r} (propagation={opts.propagation})")
        for item in self.items:
            ctx.check()
            delete_with_callbacks(
                ctx, self.client, item, opts.dry_run, opts.propagation, opts.callbacks,
            )

    def __repr__(self) -> str:
        names = ', '.join(f"{i.kind}/{i.name}" for i in self.items)
        return f"GenericOperator({names})"
