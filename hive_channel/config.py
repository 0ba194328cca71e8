"""
Configuration handling for the Hive channel integration.

Two layers live here:

* ``HiveConfig`` is the immutable connection config (base URL, token,
  stream/TLS flags) handed to the request helper and the stream client.
  It is produced once at startup by ``resolve_config`` from the host
  config with environment-variable fallback.
* ``Config`` loads the launcher settings (server, logging and the host
  config itself) from a JSON file and environment overrides.
"""

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://messages.biginformatics.net/api"

# Environment fallbacks for the channels.hive section
HIVE_ENV_FALLBACKS = {
    "baseUrl": ("HIVE_BASE_URL", "string"),
    "token": ("HIVE_TOKEN", "string"),
    "sseEnabled": ("HIVE_SSE_ENABLED", "bool"),
    "insecure": ("HIVE_INSECURE", "bool"),
}


def parse_env_value(value: str, value_type: str) -> Any:
    """
    Parse environment variable value based on type.

    Args:
        value: String value from environment
        value_type: Type to parse to (string, int, bool)

    Returns:
        Parsed value

    Raises:
        ValueError: If value cannot be parsed
    """
    if value_type == "string":
        return value
    elif value_type == "int":
        return int(value)
    elif value_type == "bool":
        return value.strip().lower() in ("true", "1", "yes", "on")
    else:
        raise ValueError(f"Unknown value type: {value_type}")


@dataclass(frozen=True)
class HiveConfig:
    """Connection settings for one Hive client instance."""

    base_url: str = DEFAULT_BASE_URL
    token: str = ""
    stream_enabled: bool = True
    insecure: bool = False

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    @property
    def verify_tls(self) -> bool:
        return not self.insecure

    def require_token(self) -> str:
        """
        Return the bearer token.

        Raises:
            ConfigError: If no token is configured
        """
        if not self.token:
            raise ConfigError(
                "Hive token is not configured; set channels.hive.token or HIVE_TOKEN",
                config_key="channels.hive.token",
            )
        return self.token

    def __repr__(self) -> str:
        token = "***" if self.token else ""
        return (
            f"HiveConfig(base_url={self.base_url!r}, token={token!r}, "
            f"stream_enabled={self.stream_enabled}, insecure={self.insecure})"
        )


def hive_section(host_config: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Return the ``channels.hive`` section of a host config (empty if absent)."""
    if not isinstance(host_config, Mapping):
        return {}
    channels = host_config.get("channels")
    if not isinstance(channels, Mapping):
        return {}
    section = channels.get("hive")
    return section if isinstance(section, Mapping) else {}


def resolve_config(
    host_config: Optional[Mapping[str, Any]],
    environ: Optional[Mapping[str, str]] = None,
) -> HiveConfig:
    """
    Resolve the Hive connection config.

    Values in ``host_config["channels"]["hive"]`` win; missing keys fall
    back to the given environment mapping, then to defaults. A missing
    token stays empty so callers can surface it.

    Args:
        host_config: Host-provided configuration mapping
        environ: Environment mapping used for fallbacks (optional)

    Returns:
        Immutable HiveConfig
    """
    section = hive_section(host_config)
    environ = environ or {}
    resolved: Dict[str, Any] = {}

    for key, (env_var, value_type) in HIVE_ENV_FALLBACKS.items():
        value = section.get(key)
        # JSON configs sometimes carry flags as strings ("false")
        if value_type == "bool" and value is not None and not isinstance(value, bool):
            value = parse_env_value(str(value), "bool")
        if value is None and environ.get(env_var) is not None:
            try:
                value = parse_env_value(environ[env_var], value_type)
            except ValueError as e:
                logger.warning(f"Failed to parse {env_var}: {e}")
                value = None
        if value is not None:
            resolved[key] = value

    config = HiveConfig(
        base_url=str(resolved.get("baseUrl") or DEFAULT_BASE_URL),
        token=str(resolved.get("token") or ""),
        stream_enabled=bool(resolved.get("sseEnabled", True)),
        insecure=bool(resolved.get("insecure", False)),
    )

    if not config.has_token:
        logger.warning("Hive token is not configured; API calls and streaming will fail")
    logger.debug(f"Resolved {config!r}")
    return config


class Config:
    """Configuration manager for the Hive launcher."""

    DEFAULT_CONFIG = {
        "channels": {
            "hive": {}
        },
        "server": {
            "host": "127.0.0.1",
            "port": 8765,
            "logLevel": "info"
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None
        }
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (optional)
            environ: Environment mapping for overrides (optional)
        """
        self.config: Dict[str, Any] = {}
        self.config_path = config_path
        self.environ: Mapping[str, str] = environ if environ is not None else {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            self._load_from_file(self.config_path)

        self._load_from_env()
        self._validate_config()

        logger.info(f"Configuration loaded from {self.config_path or 'defaults'}")

    def _load_from_file(self, config_path: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return

        try:
            with open(path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a JSON object")

        self._merge_config(self.config, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    def _load_from_env(self) -> None:
        """Load launcher overrides from environment variables."""
        env_mappings = {
            "HIVE_SERVER_HOST": ("server.host", "string"),
            "HIVE_SERVER_PORT": ("server.port", "int"),
            "HIVE_LOG_LEVEL": ("logging.level", "string"),
            "HIVE_LOG_FORMAT": ("logging.format", "string"),
            "HIVE_LOG_FILE": ("logging.file", "string"),
        }

        for env_var, (config_path, value_type) in env_mappings.items():
            value = self.environ.get(env_var)
            if value is not None:
                try:
                    parsed_value = parse_env_value(value, value_type)
                    self._set_nested_value(self.config, config_path, parsed_value)
                    logger.debug(f"Loaded {env_var}={value}")
                except (ValueError, KeyError) as e:
                    logger.warning(f"Failed to parse {env_var}: {e}")

    def _merge_config(self, base: Dict, override: Dict) -> None:
        """
        Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary (modified in place)
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def _set_nested_value(self, config: Dict, path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: If configuration is invalid
        """
        port = self.get_server_port()
        if not isinstance(port, int) or not (1 <= port <= 65535):
            raise ConfigError(f"Server port must be between 1-65535, got: {port}", config_key="server.port")

        host = self.get_server_host()
        if not isinstance(host, str) or not host:
            raise ConfigError(f"Invalid server host: {host}", config_key="server.host")

        log_level = self.get_log_level()
        valid_levels = ("debug", "info", "warning", "error", "critical")
        if not isinstance(log_level, str) or log_level.lower() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}", config_key="logging.level")

        hive = self.config.get("channels", {}).get("hive", {})
        if not isinstance(hive, dict):
            raise ConfigError("channels.hive must be an object", config_key="channels.hive")
        base_url = hive.get("baseUrl")
        if base_url is not None and not str(base_url).startswith(("http://", "https://")):
            raise ConfigError(f"Invalid Hive base URL: {base_url}", config_key="channels.hive.baseUrl")

    def get_server_host(self) -> str:
        """Get server host address."""
        return self.config.get("server", {}).get("host", "127.0.0.1")

    def get_server_port(self) -> int:
        """Get server port."""
        return self.config.get("server", {}).get("port", 8765)

    def get_server_log_level(self) -> str:
        """Get uvicorn log level."""
        return self.config.get("server", {}).get("logLevel", "info")

    def get_log_level(self) -> str:
        """Get launcher log level."""
        return self.config.get("logging", {}).get("level", "INFO")

    def get_log_format(self) -> str:
        """Get log format string."""
        return self.config.get("logging", {}).get(
            "format",
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def get_log_file(self) -> Optional[str]:
        """Get log file path (None for console only)."""
        return self.config.get("logging", {}).get("file")

    def hive_config(self) -> HiveConfig:
        """Resolve the immutable Hive connection config."""
        return resolve_config(self.config, self.environ)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        current = self.config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)
