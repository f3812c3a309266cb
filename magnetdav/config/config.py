"""Configuration management for magnetdav.

Provides centralized configuration with TOML support, validation and
hierarchical loading from defaults → config file → environment.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import toml

from magnetdav.models import Config
from magnetdav.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "magnetdav.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Server
    "MAGNETDAV_HOST": "server.host",
    "MAGNETDAV_PORT": "server.port",
    "MAGNETDAV_ENV": "server.env",
    "MAGNETDAV_DOMAIN": "server.domain",
    # Database
    "MAGNETDAV_DB_PATH": "database.path",
    # Torrent
    "MAGNETDAV_ENGINE": "torrent.engine",
    "MAGNETDAV_DOWNLOAD_DIR": "torrent.download_dir",
    "MAGNETDAV_LISTEN_PORT": "torrent.listen_port",
    "MAGNETDAV_USER_AGENT": "torrent.user_agent",
    "MAGNETDAV_MAX_CONNECTIONS": "torrent.max_connections",
    "MAGNETDAV_METADATA_TIMEOUT": "torrent.metadata_timeout",
    "MAGNETDAV_READAHEAD_BYTES": "torrent.readahead_bytes",
    # Auth
    "MAGNETDAV_AUTH_ENABLED": "auth.enabled",
    "MAGNETDAV_AUTH_USERNAME": "auth.username",
    "MAGNETDAV_AUTH_PASSWORD": "auth.password",
    # Cache
    "MAGNETDAV_CACHE_VIDEO_FULL_MAX_AGE": "cache.video_full_max_age",
    "MAGNETDAV_CACHE_VIDEO_RANGE_MAX_AGE": "cache.video_range_max_age",
    "MAGNETDAV_CACHE_DEFAULT_MAX_AGE": "cache.default_max_age",
    # Observability
    "MAGNETDAV_LOG_LEVEL": "observability.log_level",
    "MAGNETDAV_LOG_FILE": "observability.log_file",
    "MAGNETDAV_STRUCTURED_LOGGING": "observability.structured_logging",
}

# Values that stay strings even when they look numeric
_STRING_PATHS = {
    "server.host",
    "server.domain",
    "database.path",
    "torrent.download_dir",
    "torrent.user_agent",
    "auth.username",
    "auth.password",
    "observability.log_file",
}

_config_manager: ConfigManager | None = None


def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
    if path in _STRING_PATHS:
        return raw
    low = raw.lower()
    if low in {"true", "1", "yes", "on"}:
        return True
    if low in {"false", "0", "no", "off"}:
        return False
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for magnetdav.toml

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                msg = f"Config file not found: {path}"
                raise ConfigurationError(msg)
            return path

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.cwd() / "config" / CONFIG_FILE_NAME,
            Path.home() / ".config" / "magnetdav" / CONFIG_FILE_NAME,
            Path("/etc/magnetdav") / CONFIG_FILE_NAME,
        ]
        for path in search_paths:
            if path.exists():
                return path
        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file is not None:
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to read config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e
            logger.debug("Configuration loaded from %s", self.config_file)

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}
        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))
        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def export(self, fmt: str = "toml", redact_secrets: bool = True) -> str:
        """Export current configuration as a string in the given format.

        Args:
            fmt: one of "toml" or "json"
            redact_secrets: replace the auth password with asterisks

        """
        data = self.config.model_dump(mode="json", exclude_none=True)
        if redact_secrets and data["auth"].get("password"):
            data["auth"]["password"] = "********"

        fmt = (fmt or "toml").lower()
        if fmt == "toml":
            return toml.dumps(data)
        if fmt == "json":
            return json.dumps(data, indent=2)
        msg = f"Unsupported export format: {fmt}"
        raise ConfigurationError(msg)


def get_config() -> Config:
    """Get the process-wide configuration, loading it on first use."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """(Re)initialize the process-wide configuration."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager


def set_config(new_config: Config) -> None:
    """Replace the process-wide configuration (used by tests and the CLI)."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager.__new__(ConfigManager)
        _config_manager.config_file = None
    _config_manager.config = new_config


def reset_config() -> None:
    """Forget the process-wide configuration."""
    global _config_manager
    _config_manager = None
