"""Driver configuration management.

Settings are loaded from a driver.yaml file:
- server/namespace/token/insecure/ca_cert/timeout: remote store access
- dry_run/set_owner_references/on_error: orchestration defaults

Resolution order for the file:
1. Explicit path (--config)
2. $RESOURCE_DRIVER_CONFIG environment variable
3. ./driver.yaml in the working directory

A missing file is not an error; defaults apply. Environment variables
RESOURCE_DRIVER_SERVER and RESOURCE_DRIVER_TOKEN override file values.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from resource_opr.callbacks import Callbacks
from resource_opr.manager import OnError, Options

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = 'driver.yaml'
DEFAULT_NAMESPACE = 'default'
DEFAULT_TIMEOUT = 30


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class Settings:
    """Driver settings.

    Attributes:
        server: API server URL ('' = not configured)
        namespace: Namespace for all resources
        token: Bearer token
        insecure: Skip TLS verification
        ca_cert: CA bundle for TLS verification
        timeout: Overall operation timeout in seconds
        dry_run: Validate only, persist nothing
        set_owner_references: Propagate parent identities to children
        on_error: 'stop' or 'purge'
        source_path: File the settings were read from, if any
    """
    server: str = ''
    namespace: str = DEFAULT_NAMESPACE
    token: str = ''
    insecure: bool = False
    ca_cert: Optional[Path] = None
    timeout: int = DEFAULT_TIMEOUT
    dry_run: bool = False
    set_owner_references: bool = True
    on_error: str = OnError.STOP.value
    source_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Optional[dict], source_path: Optional[Path] = None) -> 'Settings':
        """Create Settings from a dictionary.

        Raises:
            ConfigError: On invalid values
        """
        if not data:
            return cls(source_path=source_path)

        on_error = str(data.get('on_error', OnError.STOP.value))
        if on_error not in {e.value for e in OnError}:
            raise ConfigError(f"Invalid on_error '{on_error}'. Valid: stop, purge")

        try:
            timeout = int(data.get('timeout', DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid timeout: {data.get('timeout')!r}")
        if timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {timeout}")

        ca_cert = _typed(data, 'ca_cert', str, None)
        return cls(
            server=_typed(data, 'server', str, ''),
            namespace=_typed(data, 'namespace', str, DEFAULT_NAMESPACE),
            token=_typed(data, 'token', str, ''),
            insecure=_typed(data, 'insecure', bool, False),
            ca_cert=Path(ca_cert) if ca_cert else None,
            timeout=timeout,
            dry_run=_typed(data, 'dry_run', bool, False),
            set_owner_references=_typed(data, 'set_owner_references', bool, True),
            on_error=on_error,
            source_path=source_path,
        )

    def to_options(self, callbacks: Optional[Callbacks] = None) -> Options:
        """Build manager Options from these settings."""
        return Options(
            dry_run=self.dry_run,
            set_owner_references=self.set_owner_references,
            on_error=OnError(self.on_error),
            callbacks=callbacks or Callbacks(),
        )


def _typed(data: dict, key: str, expected: type, default: Any) -> Any:
    """Return data[key] checked against expected, or default when absent.

    Raises:
        ConfigError: If the value is present with another type
    """
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, expected):
        raise ConfigError(f"Invalid {key}: expected {expected.__name__}, got {value!r}")
    return value


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a YAML object (dict)")
    return data


def find_config_file(path: Optional[str] = None) -> Optional[Path]:
    """Locate the settings file.

    Raises:
        ConfigError: If an explicitly requested file does not exist
    """
    if path:
        explicit = Path(path)
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    if env_path := os.environ.get('RESOURCE_DRIVER_CONFIG'):
        env_file = Path(env_path)
        if not env_file.exists():
            raise ConfigError(f"RESOURCE_DRIVER_CONFIG={env_path} does not exist")
        return env_file

    local = Path.cwd() / DEFAULT_CONFIG_NAME
    if local.exists():
        return local
    return None


def load_settings(path: Optional[str] = None) -> Settings:
    """Load driver settings.

    Args:
        path: Optional explicit settings file

    Returns:
        Settings instance (defaults when no file is found)

    Raises:
        ConfigError: If the file is missing (explicit path) or invalid
    """
    config_file = find_config_file(path)
    if config_file is None:
        logger.debug("No driver config file found, using defaults")
        settings = Settings()
    else:
        logger.debug(f"Loading driver config from {config_file}")
        settings = Settings.from_dict(_parse_yaml(config_file), source_path=config_file)

    if server := os.environ.get('RESOURCE_DRIVER_SERVER'):
        settings.server = server
    if token := os.environ.get('RESOURCE_DRIVER_TOKEN'):
        settings.token = token
    return settings
