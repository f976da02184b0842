"""Common types shared by operators, clients and the orchestration manager."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Dry-run marker understood by the remote store ("validate every stage")
DRY_RUN_ALL = 'All'

# Deletion propagation policies
PROPAGATION_FOREGROUND = 'Foreground'
PROPAGATION_BACKGROUND = 'Background'
PROPAGATION_ORPHAN = 'Orphan'

PROPAGATION_POLICIES = {PROPAGATION_FOREGROUND, PROPAGATION_BACKGROUND, PROPAGATION_ORPHAN}


def dry_run_flags(dry_run: bool) -> list[str]:
    """Translate a boolean dry-run switch into the flag list sent to the store."""
    flags: list[str] = []
    if dry_run:
        flags.append(DRY_RUN_ALL)
    return flags


class StatusType(str, Enum):
    """Outcome of a single item apply/delete."""
    CREATED = 'created'
    UPDATED = 'updated'
    SKIPPED = 'skipped'
    APPLY_FAILED = 'apply-failed'
    DELETED = 'deleted'
    DELETE_FAILED = 'delete-failed'


FAILED_STATUSES = {StatusType.APPLY_FAILED, StatusType.DELETE_FAILED}


@dataclass(frozen=True)
class OwnerReference:
    """Identifying handle of a successfully applied resource."""
    api_version: str
    kind: str
    name: str
    uid: str

    def to_dict(self) -> dict:
        return {
            'apiVersion': self.api_version,
            'kind': self.kind,
            'name': self.name,
            'uid': self.uid,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'OwnerReference':
        return cls(
            api_version=data.get('apiVersion', ''),
            kind=data.get('kind', ''),
            name=data.get('name', ''),
            uid=data.get('uid', ''),
        )


@dataclass(frozen=True)
class StatusEntry:
    """Result of one item's apply or delete.

    Carries the status kind plus the identity of the item the store
    returned (or of the desired item when the call failed).

    Attributes:
        status: Outcome kind
        api_version: apiVersion of the item
        kind: Kind of the item
        name: metadata.name of the item
        uid: metadata.uid assigned by the store ('' when unknown)
    """
    status: StatusType
    api_version: str = ''
    kind: str = ''
    name: str = ''
    uid: str = ''

    @property
    def failed(self) -> bool:
        return self.status in FAILED_STATUSES

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            'status': self.status.value,
            'apiVersion': self.api_version,
            'kind': self.kind,
            'name': self.name,
        }
        if self.uid:
            d['uid'] = self.uid
        return d

    @classmethod
    def for_document(cls, status: StatusType, document: Optional[Any]) -> 'StatusEntry':
        """Build an entry from a Document (or None for an unknown item)."""
        if document is None:
            return cls(status=status)
        return cls(
            status=status,
            api_version=document.api_version,
            kind=document.kind,
            name=document.name,
            uid=document.uid,
        )
