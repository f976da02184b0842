"""In-memory document store client.

Behaves like a namespaced resource endpoint of a Kubernetes-style API:
the store assigns uid and resourceVersion on create, honours dry-run by
returning the would-be result without persisting, and raises NotFound
for missing objects. Used for local previews and tests.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import TYPE_CHECKING, Optional

from client.base import ClientError, NotFound, matches_selector
from document import Document

if TYPE_CHECKING:
    from resource_opr.context import Context

logger = logging.getLogger(__name__)


class InMemoryClient:
    """Client over a dict of documents keyed by name."""

    def __init__(self, api_version: str, kind: str, namespace: str = 'default'):
        self.api_version = api_version
        self.kind = kind
        self.namespace = namespace
        self._objects: dict[str, dict] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    @property
    def names(self) -> list[str]:
        return sorted(self._objects)

    def get(self, ctx: 'Context', name: str) -> Document:
        ctx.check()
        if name not in self._objects:
            raise NotFound(self.kind, name)
        return Document(copy.deepcopy(self._objects[name]))

    def list(self, ctx: 'Context', label_selector: str = '') -> list[Document]:
        ctx.check()
        items = []
        for name in sorted(self._objects):
            obj = self._objects[name]
            labels = obj.get('metadata', {}).get('labels') or {}
            if matches_selector(labels, label_selector):
                items.append(Document(copy.deepcopy(obj)))
        return items

    def create(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        ctx.check()
        name = document.name
        if not name:
            raise ClientError("Invalid", f"{self.kind} has no metadata.name", 422)
        if name in self._objects:
            raise ClientError("AlreadyExists", f"{self.kind} '{name}' already exists", 409)

        obj = copy.deepcopy(document.object)
        meta = obj.setdefault('metadata', {})
        meta.setdefault('namespace', self.namespace)
        meta['uid'] = str(uuid.uuid4())
        meta['resourceVersion'] = self._next_version()

        if dry_run:
            logger.debug(f"[memory] Dry-run create {self.kind}/{name}")
            return Document(obj)
        self._objects[name] = obj
        logger.debug(f"[memory] Created {self.kind}/{name}")
        return Document(copy.deepcopy(obj))

    def update(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        ctx.check()
        name = document.name
        if name not in self._objects:
            raise NotFound(self.kind, name)

        current = self._objects[name]
        obj = copy.deepcopy(document.object)
        meta = obj.setdefault('metadata', {})
        meta['uid'] = current['metadata']['uid']
        meta.setdefault('namespace', self.namespace)
        meta['resourceVersion'] = self._next_version()

        if dry_run:
            logger.debug(f"[memory] Dry-run update {self.kind}/{name}")
            return Document(obj)
        self._objects[name] = obj
        logger.debug(f"[memory] Updated {self.kind}/{name}")
        return Document(copy.deepcopy(obj))

    def delete(
        self,
        ctx: 'Context',
        name: str,
        dry_run: Optional[list[str]] = None,
        propagation: Optional[str] = None,
    ) -> None:
        ctx.check()
        if name not in self._objects:
            raise NotFound(self.kind, name)
        if dry_run:
            logger.debug(f"[memory] Dry-run delete {self.kind}/{name}")
            return
        # No cascade here; dependents live behind other clients
        del self._objects[name]
        logger.debug(f"[memory] Deleted {self.kind}/{name} (propagation={propagation})")
