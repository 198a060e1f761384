"""
pointsync.config - Configuration management module

Contains configuration loading, validation, host system values and the
default configuration file.
"""

from pointsync.config.generator import generate_default_config, save_config_file
from pointsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from pointsync.config.system import SystemConfig

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ConfigError",
    "ConfigLoader",
    "SystemConfig",
    "generate_default_config",
    "save_config_file",
]
