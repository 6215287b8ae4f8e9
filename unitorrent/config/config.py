"""Configuration management for unitorrent.

Configuration is loaded hierarchically: defaults → TOML config file →
environment variables. Command-line options are applied on top by the CLI.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import toml
from pydantic import ValidationError

from unitorrent.exceptions import ConfigurationError
from unitorrent.models import Config
from unitorrent.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "unitorrent.toml"

# Environment variable -> dotted config path
ENV_MAPPINGS: dict[str, str] = {
    # Backend
    "UNITORRENT_URL": "backend.url",
    "UNITORRENT_USERNAME": "backend.username",
    "UNITORRENT_PASSWORD": "backend.password",
    "UNITORRENT_TIMEOUT": "backend.timeout",
    "UNITORRENT_RPC_SEMVER": "backend.rpc_semver",
    "UNITORRENT_SETTINGS_TTL": "backend.settings_ttl",
    "UNITORRENT_TAG_CHUNK_SIZE": "backend.tag_chunk_size",
    "UNITORRENT_BACKEND": "backend.backend_type",
    # Observability
    "UNITORRENT_LOG_LEVEL": "observability.log_level",
    "UNITORRENT_LOG_FILE": "observability.log_file",
    "UNITORRENT_STRUCTURED_LOGGING": "observability.structured_logging",
}

# Paths whose values must stay strings even when they look numeric
_STRING_PATHS = frozenset(
    {
        "backend.url",
        "backend.username",
        "backend.password",
        "backend.rpc_semver",
        "backend.backend_type",
        "observability.log_file",
    }
)

# Global configuration instance
_config_manager: ConfigManager | None = None


def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
    if path in _STRING_PATHS:
        return raw
    if path == "observability.log_level":
        return raw.upper()

    low = raw.lower()
    if low in {"true", "yes", "on"}:
        return True
    if low in {"false", "no", "off"}:
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
    """Loads and validates configuration."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        configure_logging: bool = True,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Path to a TOML config file. If None, searches the
                standard locations for ``unitorrent.toml``
            configure_logging: Apply the observability section to logging

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        if configure_logging:
            self._setup_logging()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file).expanduser()

        search_paths = [
            Path.cwd() / CONFIG_FILENAME,
            Path.home() / ".config" / "unitorrent" / CONFIG_FILENAME,
            Path.home() / f".{CONFIG_FILENAME}",
        ]
        for path in search_paths:
            if path.exists():
                return path
        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file is not None:
            if not self.config_file.exists():
                msg = f"Config file not found: {self.config_file}"
                raise ConfigurationError(msg)
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e
            logger.debug("Loaded configuration from %s", self.config_file)

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except ValidationError as e:
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

    def apply_overrides(self, overrides: dict[str, Any]) -> Config:
        """Re-validate the config with dotted-path *overrides* applied.

        Used by the CLI for options such as ``--url``. ``None`` values are
        ignored.
        """
        data: dict[str, Any] = {}
        for path, value in overrides.items():
            if value is not None:
                _set_nested(data, path, value)
        if not data:
            return self.config
        merged = self._merge_config(self.config.model_dump(), data)
        try:
            self.config = Config(**merged)
        except ValidationError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e
        return self.config

    def export(self) -> str:
        """Export the current configuration as TOML (password omitted)."""
        data = self.config.model_dump(mode="json", exclude_none=True)
        data.get("backend", {}).pop("password", None)
        return toml.dumps(data)

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(
    config_file: str | Path | None = None,
    configure_logging: bool = True,
) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file, configure_logging=configure_logging)
    return _config_manager


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Reconfigures logging based on the new config.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None, configure_logging=False)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001
