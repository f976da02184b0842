"""Object-level apply/delete against a client, with status entries.

apply_object() reads the current object and then skips, updates or
creates it. delete_object() treats an already-absent object as deleted.
The *_with_callbacks variants wrap one item in the pre/post chain.
"""

import logging
from typing import Any, Optional

from client.base import Client, ClientError, NotFound
from common import StatusEntry, StatusType
from document import Document
from resource_opr.callbacks import Callbacks, fire_callbacks
from resource_opr.context import Context
from resource_opr.errors import RemoteError

logger = logging.getLogger(__name__)


def is_derivative(desired: Any, current: Any) -> bool:
    """Check that every field set in desired has the same value in current.

    Unset values in desired (None, empty dict/list/string) are ignored, so
    defaults filled in by the store do not count as drift.
    """
    if desired is None or desired == {} or desired == [] or desired == '':
        return True
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            return False
        return all(is_derivative(v, current.get(k)) for k, v in desired.items())
    if isinstance(desired, list):
        if not isinstance(current, list) or len(desired) != len(current):
            return False
        return all(is_derivative(d, c) for d, c in zip(desired, current))
    return desired == current


def _up_to_date(desired: Document, current: Document) -> bool:
    if not is_derivative(desired.spec, current.spec):
        return False
    if not is_derivative(desired.labels, current.labels):
        return False
    return desired.owner_references == current.owner_references


def apply_object(
    ctx: Context,
    client: Client,
    document: Document,
    dry_run: Optional[list[str]] = None,
) -> tuple[Document, StatusEntry]:
    """Create, update or skip one object.

    Returns:
        (document returned by the store, status entry)

    Raises:
        RemoteError: On client failure, with an APPLY_FAILED entry attached
    """
    try:
        try:
            current = client.get(ctx, document.name)
        except NotFound:
            current = None

        if current is not None and _up_to_date(document, current):
            logger.debug(f"[apply] {document.kind}/{document.name} is up to date")
            return current, StatusEntry.for_document(StatusType.SKIPPED, current)

        if current is not None:
            current.object['spec'] = document.object.get('spec')
            current.merge_labels(document.labels)
            current.set_owner_references(document.owner_references)
            updated = client.update(ctx, current, dry_run)
            logger.debug(f"[apply] Updated {document.kind}/{document.name}")
            return updated, StatusEntry.for_document(StatusType.UPDATED, updated)

        created = client.create(ctx, document, dry_run)
        logger.debug(f"[apply] Created {document.kind}/{document.name}")
        return created, StatusEntry.for_document(StatusType.CREATED, created)

    except ClientError as e:
        entry = StatusEntry.for_document(StatusType.APPLY_FAILED, document)
        raise RemoteError(f"apply {document.kind}/{document.name}: {e}", entry) from e


def delete_object(
    ctx: Context,
    client: Client,
    document: Document,
    dry_run: Optional[list[str]] = None,
    propagation: Optional[str] = None,
) -> StatusEntry:
    """Delete one object; a missing object counts as deleted.

    Raises:
        RemoteError: On client failure, with a DELETE_FAILED entry attached
    """
    try:
        client.delete(ctx, document.name, dry_run, propagation)
    except NotFound:
        logger.debug(f"[delete] {document.kind}/{document.name} already absent")
    except ClientError as e:
        entry = StatusEntry.for_document(StatusType.DELETE_FAILED, document)
        raise RemoteError(f"delete {document.kind}/{document.name}: {e}", entry) from e
    return StatusEntry.for_document(StatusType.DELETED, document)


def apply_with_callbacks(
    ctx: Context,
    client: Client,
    document: Document,
    dry_run: list[str],
    callbacks: Callbacks,
) -> Document:
    """Fire pre callbacks, apply, fire post callbacks; return the stored document."""
    fire_callbacks(callbacks.pre, document)
    try:
        applied, entry = apply_object(ctx, client, document, dry_run)
    except RemoteError as e:
        fire_callbacks(callbacks.post, e.entry, e)
        raise
    fire_callbacks(callbacks.post, entry, None)
    return applied


def delete_with_callbacks(
    ctx: Context,
    client: Client,
    document: Document,
    dry_run: list[str],
    propagation: str,
    callbacks: Callbacks,
) -> None:
    """Fire pre callbacks, delete, fire post callbacks."""
    fire_callbacks(callbacks.pre, document)
    try:
        entry = delete_object(ctx, client, document, dry_run, propagation)
    except RemoteError as e:
        fire_callbacks(callbacks.post, e.entry, e)
        raise
    fire_callbacks(callbacks.post, entry, None)
