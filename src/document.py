"""Document wrapper for remote resources.

A Document is a thin view over a Kubernetes-style document
(``apiVersion``, ``kind``, ``metadata``, ``spec``...). It exposes the
identity and metadata fields operators need and keeps the raw dict as
the source of truth so unknown fields round-trip untouched.
"""

import copy
from typing import Any, Optional

from common import OwnerReference


class Document:
    """Mutable view over a document dict."""

    def __init__(self, obj: Optional[dict] = None):
        self.object: dict[str, Any] = obj if obj is not None else {}

    @property
    def metadata(self) -> dict:
        return self.object.setdefault('metadata', {})

    @property
    def api_version(self) -> str:
        return self.object.get('apiVersion', '')

    @property
    def kind(self) -> str:
        return self.object.get('kind', '')

    @property
    def name(self) -> str:
        return self.object.get('metadata', {}).get('name', '')

    @property
    def namespace(self) -> str:
        return self.object.get('metadata', {}).get('namespace', '')

    @property
    def uid(self) -> str:
        return self.object.get('metadata', {}).get('uid', '')

    @property
    def spec(self) -> Any:
        return self.object.get('spec')

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.object.get('metadata', {}).get('labels') or {})

    def set_labels(self, labels: dict[str, str]) -> None:
        self.metadata['labels'] = dict(labels)

    def merge_labels(self, labels: dict[str, str]) -> None:
        """Merge labels in; given keys overwrite existing ones, others are kept."""
        self.set_labels(merge_map(self.labels, labels))

    @property
    def owner_references(self) -> list[OwnerReference]:
        refs = self.object.get('metadata', {}).get('ownerReferences') or []
        return [OwnerReference.from_dict(r) for r in refs]

    def set_owner_references(self, refs: list[OwnerReference]) -> None:
        if refs:
            self.metadata['ownerReferences'] = [r.to_dict() for r in refs]
        else:
            self.metadata.pop('ownerReferences', None)

    def set_content(self, obj: dict) -> None:
        """Replace the whole document (e.g. with what the store returned)."""
        self.object = obj

    def deepcopy(self) -> 'Document':
        return Document(copy.deepcopy(self.object))

    def __repr__(self) -> str:
        return f"Document({self.kind}/{self.name})"


def merge_map(left: Optional[dict], right: dict) -> dict:
    """Return left updated with right (right wins on key collisions)."""
    merged = dict(left or {})
    merged.update(right)
    return merged
