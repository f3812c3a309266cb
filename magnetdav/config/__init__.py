"""Configuration loading for magnetdav."""

from __future__ import annotations

from magnetdav.config.config import (
    ConfigManager,
    get_config,
    init_config,
    reset_config,
    set_config,
)
from magnetdav.models import Config

__all__ = [
    "Config",
    "ConfigManager",
    "get_config",
    "init_config",
    "reset_config",
    "set_config",
]
