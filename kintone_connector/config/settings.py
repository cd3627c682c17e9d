"""Settings loader with YAML file, environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from ..core.framework import GuardedString
from ..core.rest.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("/run/secrets")
ENV_PREFIX = "KINTONE_"
CONFIG_FILE_ENV = "KINTONE_CONFIG_FILE"

# Wrapped in GuardedString; /run/secrets wins over environment and file
SECRET_FIELDS = ("password", "http_proxy_password")


def _load_secret_from_file(secret_name: str, env_var: str | None = None,
                           secrets_dir: Path = SECRETS_DIR) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback
        secrets_dir: Directory holding the secret files

    Returns:
        Secret value or None if not found
    """
    secret_file = secrets_dir / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
        except OSError as e:
            raise ConfigurationError(f"Failed to read {secret_file}: {e}") from e
        if secret_value:
            logger.debug("Loaded %s from %s", secret_name, secrets_dir)
            return secret_value

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.debug("Loaded %s from environment (fallback)", env_var)
            return secret_value

    return None


def _split_list(value: Any) -> List[str]:
    """Accept a YAML list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value]
    raise ConfigurationError(f"Expected a list, got {value!r}")


@dataclass
class ConnectorConfig:
    """Connector configuration container."""
    # Connection
    base_url: str = ""
    login_name: str = ""
    password: Optional[GuardedString] = None
    instance_name: str = "kintone"

    # HTTP proxy
    http_proxy_host: str = ""
    http_proxy_port: int = 3128
    http_proxy_user: str = ""
    http_proxy_password: Optional[GuardedString] = None

    # Transport
    default_query_page_size: int = 50
    connection_timeout_ms: int = 10000
    read_timeout_ms: int = 10000

    # Schema
    user_attributes_schema: List[str] = field(default_factory=list)
    organization_title_delimiter: str = "#"

    # Read-path filtering (case-sensitive codes)
    ignore_organization: List[str] = field(default_factory=list)
    ignore_group: List[str] = field(default_factory=list)
    ignore_service: List[str] = field(default_factory=list)

    # Error classification
    error_phrases_file: Optional[str] = None

    def __post_init__(self):
        self.base_url = (self.base_url or "").rstrip("/")

    @property
    def ignore_organization_set(self) -> Set[str]:
        return set(self.ignore_organization)

    @property
    def ignore_group_set(self) -> Set[str]:
        return set(self.ignore_group)

    @property
    def ignore_service_set(self) -> Set[str]:
        return set(self.ignore_service)

    @property
    def timeout(self) -> tuple:
        """``(connect, read)`` timeout in seconds, as requests expects it."""
        return (self.connection_timeout_ms / 1000.0, self.read_timeout_ms / 1000.0)

    def validate(self) -> None:
        """Check required settings.

        Raises:
            ConfigurationError: Missing connection settings or bad numbers
        """
        if not self.base_url:
            raise ConfigurationError("base_url is required")
        if not self.base_url.startswith(("https://", "http://")):
            raise ConfigurationError(f"base_url must be an http(s) URL: {self.base_url}")
        if not self.login_name:
            raise ConfigurationError("login_name is required")
        if self.password is None or not self.password.reveal():
            raise ConfigurationError("password is required")
        if self.default_query_page_size < 1:
            raise ConfigurationError("default_query_page_size must be positive")
        if self.connection_timeout_ms < 0 or self.read_timeout_ms < 0:
            raise ConfigurationError("timeouts must not be negative")
        if not self.organization_title_delimiter:
            raise ConfigurationError("organization_title_delimiter must not be empty")
        if self.http_proxy_host and not 0 < self.http_proxy_port < 65536:
            raise ConfigurationError(f"Invalid http_proxy_port: {self.http_proxy_port}")


_INT_FIELDS = ("http_proxy_port", "default_query_page_size", "connection_timeout_ms", "read_timeout_ms")
_LIST_FIELDS = ("user_attributes_schema", "ignore_organization", "ignore_group", "ignore_service")


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must hold a mapping: {path}")
    return data


def load_settings(path: str | Path | None = None, secrets_dir: Path = SECRETS_DIR) -> ConnectorConfig:
    """Load connector settings.

    Priority (highest first):
    1. /run/secrets (``password``, ``http_proxy_password`` only)
    2. ``KINTONE_<FIELD>`` environment variables
    3. YAML file (``path`` or ``$KINTONE_CONFIG_FILE``)
    4. Defaults

    Raises:
        ConfigurationError: Unreadable file, unknown key or bad value
    """
    values: Dict[str, Any] = {}

    config_file = path or os.environ.get(CONFIG_FILE_ENV)
    if config_file:
        values.update(_load_file(Path(config_file)))
        logger.debug("Loaded configuration from %s", config_file)

    known = {f.name for f in fields(ConnectorConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")

    for name in known:
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None and name not in SECRET_FIELDS:
            values[name] = env_value

    for name in SECRET_FIELDS:
        secret = _load_secret_from_file(f"kintone_{name}", f"{ENV_PREFIX}{name.upper()}", secrets_dir)
        if secret is None:
            secret = values.get(name)
        values[name] = GuardedString(str(secret)) if secret else None

    for name in _INT_FIELDS:
        if name in values and values[name] is not None:
            try:
                values[name] = int(values[name])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"{name} must be an integer, got {values[name]!r}") from e

    for name in _LIST_FIELDS:
        if name in values:
            values[name] = _split_list(values[name])

    return ConnectorConfig(**values)
