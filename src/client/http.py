"""HTTP client for a Kubernetes-style REST document store.

Talks to ``/api/{version}`` (core group) or ``/apis/{group}/{version}``
endpoints for one namespaced resource kind. Errors are mapped to
ClientError, with NotFound for HTTP 404.
"""

from __future__ import annotations

import json
import logging
import ssl
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from client.base import ClientError, NotFound
from document import Document

if TYPE_CHECKING:
    from resource_opr.context import Context

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def default_plural(kind: str) -> str:
    """Lowercased plural resource name for a kind (Function -> functions)."""
    lower = kind.lower()
    if lower.endswith('s'):
        return lower + 'es'
    if lower.endswith('y'):
        return lower[:-1] + 'ies'
    return lower + 's'


class HttpClient:
    """REST client for one resource kind in one namespace."""

    def __init__(
        self,
        server: str,
        api_version: str,
        kind: str,
        namespace: str = 'default',
        plural: Optional[str] = None,
        token: Optional[str] = None,
        insecure: bool = False,
        ca_cert: Optional[Path] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize HTTP client.

        Args:
            server: API server URL (e.g., https://api.example:6443)
            api_version: Resource apiVersion (e.g., v1 or eventing.knative.dev/v1)
            kind: Resource kind (e.g., Function)
            namespace: Target namespace
            plural: Resource path segment (default derived from kind)
            token: Bearer token for authentication
            insecure: Skip SSL certificate verification
            ca_cert: Path to CA certificate for verification
            timeout: Per-request timeout in seconds
        """
        self.server = server.rstrip('/')
        self.api_version = api_version
        self.kind = kind
        self.namespace = namespace
        self.plural = plural or default_plural(kind)
        self.token = token
        self.insecure = insecure
        self.ca_cert = ca_cert
        self.timeout = timeout

    @property
    def base_path(self) -> str:
        prefix = 'apis' if '/' in self.api_version else 'api'
        return f"/{prefix}/{self.api_version}/namespaces/{quote(self.namespace)}/{self.plural}"

    def _url(self, name: Optional[str] = None, query: Optional[dict] = None) -> str:
        url = f"{self.server}{self.base_path}"
        if name:
            url = f"{url}/{quote(name)}"
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"
        return url

    def _create_ssl_context(self) -> Optional[ssl.SSLContext]:
        """Create SSL context, optionally skipping verification."""
        if self.insecure:
            ctx = ssl.create_default_context()
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx

        if self.ca_cert and Path(self.ca_cert).exists():
            return ssl.create_default_context(cafile=str(self.ca_cert))

        return None

    def _timeout(self, ctx: 'Context') -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def _parse_error_response(self, body: bytes) -> tuple[str, str]:
        """Parse a Status error body.

        Returns:
            Tuple of (reason, message)
        """
        try:
            data = json.loads(body.decode('utf-8'))
            return data.get('reason') or 'Error', data.get('message') or 'Unknown error'
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
            return 'Error', 'Failed to parse error response'

    def _request(
        self,
        ctx: 'Context',
        method: str,
        url: str,
        body: Optional[dict] = None,
        name: str = '',
    ) -> Any:
        ctx.check()
        data = json.dumps(body).encode('utf-8') if body is not None else None
        request = Request(url, data=data, method=method)
        request.add_header('Accept', 'application/json')
        if data is not None:
            request.add_header('Content-Type', 'application/json')
        if self.token:
            request.add_header('Authorization', f'Bearer {self.token}')

        logger.debug("%s %s", method, url)
        try:
            with urlopen(request, context=self._create_ssl_context(), timeout=self._timeout(ctx)) as response:
                payload = response.read()
        except HTTPError as e:
            if e.code == 404:
                raise NotFound(self.kind, name) from e
            reason, message = self._parse_error_response(e.read())
            raise ClientError(reason, message, e.code) from e
        except URLError as e:
            raise ClientError('Unavailable', f"Cannot connect to server: {e.reason}") from e
        except OSError as e:
            # Read timeouts and resets surface as bare socket errors
            raise ClientError('Unavailable', f"Request failed: {e}") from e

        if not payload:
            return {}
        try:
            return json.loads(payload.decode('utf-8'))
        except json.JSONDecodeError as e:
            raise ClientError('InvalidResponse', f"Invalid JSON response: {e}") from e

    def get(self, ctx: 'Context', name: str) -> Document:
        return Document(self._request(ctx, 'GET', self._url(name), name=name))

    def list(self, ctx: 'Context', label_selector: str = '') -> list[Document]:
        query = {'labelSelector': label_selector} if label_selector else None
        data = self._request(ctx, 'GET', self._url(query=query))
        return [Document(item) for item in data.get('items') or []]

    def create(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        query = {'dryRun': dry_run} if dry_run else None
        return Document(self._request(
            ctx, 'POST', self._url(query=query), body=document.object, name=document.name,
        ))

    def update(self, ctx: 'Context', document: Document, dry_run: Optional[list[str]] = None) -> Document:
        query = {'dryRun': dry_run} if dry_run else None
        return Document(self._request(
            ctx, 'PUT', self._url(document.name, query=query), body=document.object, name=document.name,
        ))

    def delete(
        self,
        ctx: 'Context',
        name: str,
        dry_run: Optional[list[str]] = None,
        propagation: Optional[str] = None,
    ) -> None:
        body: dict[str, Any] = {'kind': 'DeleteOptions', 'apiVersion': 'v1'}
        if dry_run:
            body['dryRun'] = list(dry_run)
        if propagation:
            body['propagationPolicy'] = propagation
        self._request(ctx, 'DELETE', self._url(name), body=body, name=name)
