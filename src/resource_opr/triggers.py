"""Triggers operator: event triggers linked to an owning function.

Every trigger carries the owner's references and an ``ownerID`` label
holding the owner's uid. On apply, triggers previously labelled for the
same owner but no longer desired are deleted first.
"""

import logging
from typing import Optional

from client.base import Client, ClientError
from common import PROPAGATION_BACKGROUND, OwnerReference
from document import Document
from resource_opr.callbacks import Callbacks
from resource_opr.context import Context
from resource_opr.errors import NotFoundError, RemoteError
from resource_opr.objects import apply_with_callbacks, delete_with_callbacks
from resource_opr.operator import ApplyOptions, DeleteOptions

logger = logging.getLogger(__name__)

# Label key tying a trigger to its owner's uid
OWNER_LABEL = 'ownerID'

DEFAULT_OWNER_KIND = 'Function'


def find_owner_id(refs: list[OwnerReference], owner_kind: str = DEFAULT_OWNER_KIND) -> Optional[str]:
    """Return the uid of the first reference of owner_kind, or None."""
    for ref in refs:
        if ref.kind == owner_kind:
            return ref.uid
    return None


def wipe_removed(
    ctx: Context,
    client: Client,
    items: list[Document],
    owner_id: str,
    dry_run: list[str],
    callbacks: Callbacks,
) -> list[str]:
    """Delete objects labelled for owner_id whose names are not in items.

    Returns:
        Names of the wiped objects
    """
    desired = {item.name for item in items}
    selector = f"{OWNER_LABEL}={owner_id}"
    try:
        existing = client.list(ctx, selector)
    except ClientError as e:
        raise RemoteError(f"list {selector}: {e}") from e

    wiped: list[str] = []
    for doc in existing:
        if doc.name in desired:
            continue
        ctx.check()
        logger.info(f"[apply] Removing stale {doc.kind}/{doc.name} (owner {owner_id})")
        delete_with_callbacks(ctx, client, doc, dry_run, PROPAGATION_BACKGROUND, callbacks)
        wiped.append(doc.name)
    return wiped


class TriggersOperator:
    """Operator for a fixed set of owner-linked triggers."""

    def __init__(self, client: Client, *items: Document, owner_kind: str = DEFAULT_OWNER_KIND):
        self.client = client
        self.items = list(items)
        self.owner_kind = owner_kind

    def apply(self, ctx: Context, opts: ApplyOptions) -> None:
        owner_id = find_owner_id(opts.owner_references, self.owner_kind)
        if owner_id is None:
            raise NotFoundError(OWNER_LABEL)

        wipe_removed(ctx, self.client, self.items, owner_id, opts.dry_run, opts.callbacks)

        for item in self.items:
            ctx.check()
            item.set_owner_references(opts.owner_references)
            item.merge_labels({OWNER_LABEL: owner_id})
            applied = apply_with_callbacks(ctx, self.client, item, opts.dry_run, opts.callbacks)
            item.set_content(applied.object)

    def delete(self, ctx: Context, opts: DeleteOptions) -> None:
        for item in self.items:
            ctx.check()
            delete_with_callbacks(
                ctx, self.client, item, opts.dry_run, opts.propagation, opts.callbacks,
            )

    def __repr__(self) -> str:
        return f"TriggersOperator({len(self.items)} triggers, owner={self.owner_kind})"
