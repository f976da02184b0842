"""CLI handlers for forest verbs (apply, destroy, validate).

Usage:
    resource-driver apply -f <manifest.yaml> [--server URL] [--dry-run] [--purge-on-error] [--json-output]
    resource-driver destroy -f <manifest.yaml> [--server URL] [--dry-run] [--yes]
    resource-driver validate -f <manifest.yaml>
"""

import argparse
import json
import logging
import sys
import time
from typing import Optional

from client.http import HttpClient
from client.memory import InMemoryClient
from common import PROPAGATION_POLICIES, PROPAGATION_BACKGROUND, StatusEntry
from config import ConfigError, Settings, load_settings
from manifest import ClientFactory, Manifest, build_forest, load_manifest
from resource_opr.callbacks import Callbacks
from resource_opr.context import Context
from resource_opr.manager import Manager, OnError

logger = logging.getLogger(__name__)

VERBS = ('apply', 'destroy', 'validate')


class StatusReporter:
    """Post callback that records and prints per-item status."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.entries: list[dict] = []

    def __call__(self, entry: StatusEntry, error: Optional[Exception] = None) -> None:
        record = entry.to_dict()
        if error is not None:
            record['error'] = str(error)
        self.entries.append(record)
        if not self.quiet:
            suffix = f" ({error})" if error is not None else ''
            print(f"  {entry.status.value:<14} {entry.kind}/{entry.name}{suffix}")


def _common_parser(verb: str) -> argparse.ArgumentParser:
    """Build argument parser with common options for all verbs."""
    parser = argparse.ArgumentParser(
        prog=f'resource-driver {verb}',
        description=f'{verb.capitalize()} resources from a forest manifest',
    )
    parser.add_argument(
        '--manifest-file', '-f',
        help='Path to manifest file',
    )
    parser.add_argument(
        '--manifest-json',
        help='Inline manifest JSON',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    if verb == 'validate':
        return parser

    parser.add_argument(
        '--config', '-c',
        help='Driver settings file (default: $RESOURCE_DRIVER_CONFIG or ./driver.yaml)',
    )
    parser.add_argument(
        '--server',
        help='API server URL (overrides settings)',
    )
    parser.add_argument(
        '--namespace', '-n',
        help='Target namespace (overrides settings)',
    )
    parser.add_argument(
        '--memory',
        action='store_true',
        help='Use an in-memory store instead of a server (nothing persists)',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate against the store without persisting',
    )
    parser.add_argument(
        '--timeout',
        type=int,
        help='Overall timeout in seconds (overrides settings)',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs to stderr)',
    )
    return parser


def _setup_logging(verbose: bool, json_output: bool) -> None:
    """Configure logging based on flags."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    if json_output:
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root_logger.addHandler(stderr_handler)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load_manifest(args) -> Manifest:
    """Load manifest from parsed args.

    Raises:
        SystemExit: On missing or invalid manifest
    """
    if not args.manifest_file and not args.manifest_json:
        print("Error: specify a manifest with -f or --manifest-json", file=sys.stderr)
        sys.exit(1)
    try:
        return load_manifest(file_path=args.manifest_file, json_str=args.manifest_json)
    except ConfigError as e:
        print(f"Error loading manifest: {e}", file=sys.stderr)
        sys.exit(1)


def _load_settings(args, manifest: Manifest) -> Settings:
    """Resolve settings: file, then manifest overrides, then CLI flags.

    Raises:
        SystemExit: On invalid settings
    """
    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    manifest.apply_settings(settings)
    if args.server:
        settings.server = args.server
    if args.namespace:
        settings.namespace = args.namespace
    if args.timeout:
        settings.timeout = args.timeout
    if args.dry_run:
        settings.dry_run = True
    if getattr(args, 'purge_on_error', False):
        settings.on_error = OnError.PURGE.value
    if getattr(args, 'no_owner_references', False):
        settings.set_owner_references = False
    return settings


def _client_factory(settings: Settings, memory: bool) -> ClientFactory:
    """Build a client factory; one client per (apiVersion, kind).

    Raises:
        SystemExit: If no server is configured and --memory is not set
    """
    if not memory and not settings.server:
        print("Error: no server configured (use --server, settings file, or --memory)",
              file=sys.stderr)
        sys.exit(1)

    clients: dict[tuple[str, str], object] = {}

    def factory(api_version: str, kind: str):
        key = (api_version, kind)
        if key not in clients:
            if memory:
                clients[key] = InMemoryClient(api_version, kind, namespace=settings.namespace)
            else:
                clients[key] = HttpClient(
                    settings.server,
                    api_version,
                    kind,
                    namespace=settings.namespace,
                    token=settings.token or None,
                    insecure=settings.insecure,
                    ca_cert=settings.ca_cert,
                )
        return clients[key]

    return factory


def _emit_json(verb: str, success: bool, reporter: StatusReporter, duration: float,
               error: Optional[Exception] = None) -> None:
    """Emit structured JSON output."""
    output = {
        'verb': verb,
        'success': success,
        'duration_seconds': round(duration, 2),
        'items': reporter.entries,
    }
    if error is not None:
        output['error'] = str(error)
    print(json.dumps(output, indent=2))


def apply_main(argv: list) -> int:
    """Handle 'apply' verb."""
    parser = _common_parser('apply')
    parser.add_argument(
        '--purge-on-error',
        action='store_true',
        help='Delete all parents if any step fails',
    )
    parser.add_argument(
        '--no-owner-references',
        action='store_true',
        help='Do not propagate parent identities to children',
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    manifest = _load_manifest(args)
    settings = _load_settings(args, manifest)
    forest = build_forest(manifest, _client_factory(settings, args.memory))

    reporter = StatusReporter(quiet=args.json_output)
    options = settings.to_options(Callbacks(post=[reporter]))

    logger.info(f"Applying manifest '{manifest.name}' (dry_run={settings.dry_run}, on_error={settings.on_error})")

    start = time.time()
    error = None
    try:
        Manager(forest).do(Context.with_timeout(settings.timeout), options)
    except Exception as e:
        error = e
        logger.error(f"Apply failed: {e}")
    duration = time.time() - start

    if args.json_output:
        _emit_json('apply', error is None, reporter, duration, error)

    return 0 if error is None else 1


def destroy_main(argv: list) -> int:
    """Handle 'destroy' verb."""
    parser = _common_parser('destroy')
    parser.add_argument(
        '--yes', '-y',
        action='store_true',
        help='Skip confirmation prompt',
    )
    parser.add_argument(
        '--propagation',
        choices=sorted(PROPAGATION_POLICIES),
        default=PROPAGATION_BACKGROUND,
        help='Cascade mode for deletes (default: Background)',
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    manifest = _load_manifest(args)
    settings = _load_settings(args, manifest)
    forest = build_forest(manifest, _client_factory(settings, args.memory))

    # Confirmation for destructive operation
    if not settings.dry_run and not args.yes:
        print(f"\nWARNING: This will delete all resources in manifest '{manifest.name}'.")
        print("This action cannot be undone.")
        response = input("Continue? [y/N] ").strip().lower()
        if response != 'y':
            print("Aborted.")
            return 1

    reporter = StatusReporter(quiet=args.json_output)
    options = settings.to_options(Callbacks(post=[reporter]))

    logger.info(f"Destroying manifest '{manifest.name}' (dry_run={settings.dry_run})")

    start = time.time()
    error = None
    try:
        Manager(forest).destroy(Context.with_timeout(settings.timeout), options, args.propagation)
    except Exception as e:
        error = e
        logger.error(f"Destroy failed: {e}")
    duration = time.time() - start

    if args.json_output:
        _emit_json('destroy', error is None, reporter, duration, error)

    return 0 if error is None else 1


def validate_main(argv: list) -> int:
    """Handle 'validate' verb."""
    parser = _common_parser('validate')
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.manifest_file and not args.manifest_json:
        print("Error: specify a manifest with -f or --manifest-json", file=sys.stderr)
        return 1

    try:
        manifest = load_manifest(file_path=args.manifest_file, json_str=args.manifest_json)
    except ConfigError as e:
        print(f"Manifest is invalid: {e}", file=sys.stderr)
        return 1

    count = manifest.operator_count
    print(f"Manifest '{manifest.name}' is valid ({count} operator{'s' if count != 1 else ''})")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Dispatch to a verb handler."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in VERBS:
        print(f"Usage: resource-driver {{{','.join(VERBS)}}} [options]", file=sys.stderr)
        return 1

    verb, rest = argv[0], argv[1:]
    if verb == 'apply':
        return apply_main(rest)
    if verb == 'destroy':
        return destroy_main(rest)
    return validate_main(rest)


if __name__ == '__main__':
    sys.exit(main())
