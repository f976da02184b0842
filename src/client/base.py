"""Client protocol and shared helpers for remote document stores.

A client is scoped to one resource kind (apiVersion + kind) in one
namespace, mirroring a Kubernetes dynamic resource interface.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from document import Document

if TYPE_CHECKING:
    from resource_opr.context import Context


class ClientError(Exception):
    """Base exception for remote client errors.

    Attributes:
        code: Short reason (e.g. NotFound, AlreadyExists, Unavailable)
        message: Human readable description
        status: HTTP-style status code (0 when not applicable)
    """

    def __init__(self, code: str, message: str, status: int = 0):
        self.code = code
        self.message = message
        self.status = status
        super().__init__(f"{code}: {message}")


class NotFound(ClientError):
    """Object does not exist in the store."""

    def __init__(self, kind: str, name: str):
        super().__init__("NotFound", f"{kind} '{name}' not found", 404)


@runtime_checkable
class Client(Protocol):
    """Protocol for remote document store clients."""

    def get(self, ctx: 'Context', name: str) -> Document:
        """Fetch one object by name. Raises NotFound."""

    def list(self, ctx: 'Context', label_selector: str = '') -> list[Document]:
        """List objects, optionally filtered by a label selector."""

    def create(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        """Create an object and return the stored document."""

    def update(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        """Replace an existing object and return the stored document."""

    def delete(
        self,
        ctx: 'Context',
        name: str,
        dry_run: Optional[list[str]] = None,
        propagation: Optional[str] = None,
    ) -> None:
        """Delete an object by name. Raises NotFound."""


def parse_label_selector(selector: str) -> list[tuple[str, str, Optional[str]]]:
    """Parse an equality-based label selector.

    Supports ``key=value``, ``key==value``, ``key!=value`` and bare ``key``
    (existence), comma separated.

    Returns:
        List of (key, operator, value) tuples; operator is one of
        '=', '!=' or 'exists' (value None)

    Raises:
        ValueError: On an empty key
    """
    requirements: list[tuple[str, str, Optional[str]]] = []
    for part in selector.split(','):
        part = part.strip()
        if not part:
            continue
        if '!=' in part:
            key, value = part.split('!=', 1)
            op = '!='
        elif '==' in part:
            key, value = part.split('==', 1)
            op = '='
        elif '=' in part:
            key, value = part.split('=', 1)
            op = '='
        else:
            key, value, op = part, None, 'exists'
        key = key.strip()
        if not key:
            raise ValueError(f"Invalid label selector: {selector!r}")
        requirements.append((key, op, value.strip() if value is not None else None))
    return requirements


def matches_selector(labels: dict[str, str], selector: str) -> bool:
    """Check whether a label set satisfies a selector."""
    for key, op, value in parse_label_selector(selector):
        if op == 'exists':
            if key not in labels:
                return False
        elif op == '=':
            if labels.get(key) != value:
                return False
        elif labels.get(key) == value:
            return False
    return True
