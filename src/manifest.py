"""Forest manifest loading and validation.

A manifest describes an ordered forest of operators:

    name: my-function
    forest:
      - parent:
          operator: generic
          resources:
            - {apiVersion: serverless.kyma-project.io/v1alpha1, kind: Function, metadata: {name: fn}}
        children:
          - operator: triggers
            owner_kind: Function
            resources:
              - {apiVersion: eventing.knative.dev/v1, kind: Trigger, metadata: {name: fn-t1}}
    settings:
      on_error: purge

Each operator manages resources of a single apiVersion/kind, served by
one client from the client factory.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from client.base import Client
from config import ConfigError, Settings
from document import Document
from resource_opr.generic import GenericOperator
from resource_opr.manager import Forest, OnError
from resource_opr.operator import Operator
from resource_opr.triggers import DEFAULT_OWNER_KIND, TriggersOperator

logger = logging.getLogger(__name__)

OPERATOR_GENERIC = 'generic'
OPERATOR_TRIGGERS = 'triggers'
OPERATOR_KINDS = {OPERATOR_GENERIC, OPERATOR_TRIGGERS}

# Keys a manifest may override in Settings
SETTINGS_KEYS = {'dry_run', 'set_owner_references', 'on_error'}

# Builds the client for (apiVersion, kind)
ClientFactory = Callable[[str, str], Client]


class ManifestError(ConfigError):
    """Manifest structure error."""


@dataclass
class OperatorSpec:
    """One operator in the manifest.

    Attributes:
        operator: Operator kind (generic, triggers)
        resources: Documents managed by the operator
        owner_kind: Owner kind looked up by the triggers operator
    """
    operator: str
    resources: list[dict] = field(default_factory=list)
    owner_kind: str = DEFAULT_OWNER_KIND

    @property
    def api_version(self) -> str:
        return self.resources[0]['apiVersion']

    @property
    def kind(self) -> str:
        return self.resources[0]['kind']

    @classmethod
    def from_dict(cls, data: Any, where: str) -> 'OperatorSpec':
        """Create OperatorSpec from dictionary.

        Raises:
            ManifestError: On invalid structure
        """
        if not isinstance(data, dict):
            raise ManifestError(f"{where}: must be a mapping")

        operator = data.get('operator', OPERATOR_GENERIC)
        if operator not in OPERATOR_KINDS:
            raise ManifestError(
                f"{where}: unknown operator '{operator}'. "
                f"Valid: {', '.join(sorted(OPERATOR_KINDS))}"
            )

        resources = data.get('resources') or []
        if not isinstance(resources, list) or not resources:
            raise ManifestError(f"{where}: resources must be a non-empty list")

        for i, res in enumerate(resources):
            _validate_resource(res, f"{where}.resources[{i}]")

        kinds = {(r['apiVersion'], r['kind']) for r in resources}
        if len(kinds) > 1:
            found = ', '.join(f"{v}/{k}" for v, k in sorted(kinds))
            raise ManifestError(f"{where}: resources must share one apiVersion/kind, found {found}")

        return cls(
            operator=operator,
            resources=resources,
            owner_kind=data.get('owner_kind', DEFAULT_OWNER_KIND),
        )


@dataclass
class ForestEntry:
    """A parent operator with its ordered children."""
    parent: Optional[OperatorSpec]
    children: list[OperatorSpec] = field(default_factory=list)


@dataclass
class Manifest:
    """Forest manifest.

    Attributes:
        name: Manifest identifier
        entries: Ordered forest entries
        description: Free text
        settings: Overrides for dry_run/set_owner_references/on_error
        source_path: File the manifest was loaded from
    """
    name: str
    entries: list[ForestEntry]
    description: str = ''
    settings: dict = field(default_factory=dict)
    source_path: Optional[Path] = None

    @property
    def operator_count(self) -> int:
        count = 0
        for entry in self.entries:
            if entry.parent is not None:
                count += 1
            count += len(entry.children)
        return count

    @classmethod
    def from_dict(cls, data: dict, source_path: Optional[Path] = None) -> 'Manifest':
        """Create Manifest from dictionary.

        Raises:
            ManifestError: On invalid structure
        """
        name = data.get('name')
        if not name:
            raise ManifestError("Manifest requires a 'name'")

        forest = data.get('forest')
        if not isinstance(forest, list) or not forest:
            raise ManifestError(f"Manifest '{name}': forest must be a non-empty list")

        entries: list[ForestEntry] = []
        for i, entry_data in enumerate(forest):
            where = f"forest[{i}]"
            if not isinstance(entry_data, dict):
                raise ManifestError(f"{where}: must be a mapping")

            parent_data = entry_data.get('parent')
            parent = None
            if parent_data is not None:
                parent = OperatorSpec.from_dict(parent_data, f"{where}.parent")

            children_data = entry_data.get('children')
            if children_data is None:
                children_data = []
            if not isinstance(children_data, list):
                raise ManifestError(f"{where}.children: must be a list")
            children = [
                OperatorSpec.from_dict(child, f"{where}.children[{j}]")
                for j, child in enumerate(children_data)
            ]
            entries.append(ForestEntry(parent=parent, children=children))

        settings = data.get('settings') or {}
        if not isinstance(settings, dict):
            raise ManifestError(f"Manifest '{name}': settings must be a mapping")
        unknown = set(settings) - SETTINGS_KEYS
        if unknown:
            raise ManifestError(
                f"Manifest '{name}': unknown settings {', '.join(sorted(unknown))}"
            )
        if 'on_error' in settings and settings['on_error'] not in {e.value for e in OnError}:
            raise ManifestError(f"Manifest '{name}': invalid on_error '{settings['on_error']}'")
        for key in ('dry_run', 'set_owner_references'):
            if key in settings and not isinstance(settings[key], bool):
                raise ManifestError(
                    f"Manifest '{name}': {key} must be true or false, got {settings[key]!r}"
                )

        return cls(
            name=name,
            entries=entries,
            description=data.get('description', ''),
            settings=settings,
            source_path=source_path,
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'Manifest':
        """Create Manifest from a JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid manifest JSON: {e}")
        if not isinstance(data, dict):
            raise ManifestError("Manifest JSON must be an object")
        return cls.from_dict(data)

    def apply_settings(self, settings: Settings) -> Settings:
        """Overlay manifest settings onto driver settings (in place)."""
        for key, value in self.settings.items():
            setattr(settings, key, value)
        return settings


def _validate_resource(res: Any, where: str) -> None:
    if not isinstance(res, dict):
        raise ManifestError(f"{where}: must be a mapping")
    for key in ('apiVersion', 'kind'):
        if not res.get(key):
            raise ManifestError(f"{where}: missing '{key}'")
    metadata = res.get('metadata')
    if not isinstance(metadata, dict) or not metadata.get('name'):
        raise ManifestError(f"{where}: missing 'metadata.name'")


def load_manifest(file_path: Optional[str] = None, json_str: Optional[str] = None) -> Manifest:
    """Load a manifest from a YAML file or an inline JSON string.

    Raises:
        ManifestError: If no source is given, the file is missing or invalid
    """
    if json_str:
        return Manifest.from_json(json_str)
    if not file_path:
        raise ManifestError("No manifest source given")

    path = Path(file_path)
    if not path.exists():
        raise ManifestError(f"Manifest file not found: {path}")

    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in manifest {path}: {e}")

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must be a YAML object (dict)")

    return Manifest.from_dict(data, source_path=path)


def build_operator(spec: OperatorSpec, client_factory: ClientFactory) -> Operator:
    """Instantiate the operator described by spec."""
    client = client_factory(spec.api_version, spec.kind)
    documents = [Document(r).deepcopy() for r in spec.resources]
    if spec.operator == OPERATOR_TRIGGERS:
        return TriggersOperator(client, *documents, owner_kind=spec.owner_kind)
    return GenericOperator(client, *documents)


def build_forest(manifest: Manifest, client_factory: ClientFactory) -> Forest:
    """Turn manifest entries into an ordered operator forest."""
    forest: Forest = []
    for entry in manifest.entries:
        parent = build_operator(entry.parent, client_factory) if entry.parent else None
        children: list[Optional[Operator]] = [
            build_operator(child, client_factory) for child in entry.children
        ]
        forest.append((parent, children))
    logger.debug(f"Built forest for '{manifest.name}' ({manifest.operator_count} operators)")
    return forest
