"""Configuration files (YAML) and helpers.

`ConfigManager` reads the default files packaged in this folder, merges user
overrides and turns them into an explicit :class:`EngineConfig` value that is
passed to every engine call.
"""

from .manager import ConfigManager, EngineConfig

__all__ = [
    "ConfigManager",
    "EngineConfig",
]
