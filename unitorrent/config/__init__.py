"""Configuration management.

This module handles configuration loading and validation.
"""

from __future__ import annotations

from unitorrent.config.config import (
    ConfigManager,
    get_config,
    init_config,
    set_config,
)
from unitorrent.models import BackendConfig, Config, ObservabilityConfig

__all__ = [
    "BackendConfig",
    "Config",
    "ConfigManager",
    "ObservabilityConfig",
    "get_config",
    "init_config",
    "set_config",
]
