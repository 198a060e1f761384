"""
Configuration loader module for restoring point backups.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Basic validation of configuration structure
- Typed accessors with defaults for the services
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from pointsync.utils.paths import CONFIG_DIR_ENV_VAR, DEFAULT_CONFIG_DIR

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Defaults for the services
DEFAULT_CHUNK_SIZE = 100 * 1024 * 1024  # bytes
DEFAULT_MAX_PARALLEL_INSTANCES = 4
DEFAULT_MAX_PARALLEL_UPLOADS = 2
DEFAULT_REMOTE_TIMEOUT = 30.0  # seconds, per request
DEFAULT_REMOTE_MAX_RETRIES = 3
DEFAULT_INSTANCE_TIMEOUT = 3600.0  # seconds, per instance reconciliation

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Handles loading and basic validation of YAML configuration files
    for the pointsync application.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.pointsync/ or $POINTSYNC_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            if env_dir:
                self.config_dir = Path(env_dir)
            else:
                self.config_dir = DEFAULT_CONFIG_DIR

        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            # Storage options
            "storage_root": str,
            "database": str,
            "chunk_size": int,
            "app_path": str,
            # Remote options
            "remote_instances": dict,
            "default_instance": str,
            "max_parallel_instances": int,
            "max_parallel_uploads": int,
            "remote_timeout": (int, float),
            "remote_max_retries": int,
            "instance_timeout": (int, float),
            # Logging options
            "log_dir": str,
            "log_retention_count": int,
            "verbose": bool,
            # Host system values
            "system": dict,
        }

        for key, value in config.items():
            if key in valid_keys:
                expected_type = valid_keys[key]
                # bool is an int subclass, only accept it where bool is expected
                is_stray_bool = isinstance(value, bool) and expected_type is not bool
                if not isinstance(value, expected_type) or is_stray_bool:
                    if isinstance(expected_type, tuple):
                        type_name = (
                            f"{expected_type[0].__name__} or "
                            f"{expected_type[1].__name__}"
                        )
                    else:
                        type_name = expected_type.__name__  # type: ignore[union-attr]
                    raise ConfigError(
                        f"Invalid type for '{key}': expected {type_name}, "
                        f"got {type(value).__name__}"
                    )

        positive_int_keys = [
            "chunk_size",
            "max_parallel_instances",
            "max_parallel_uploads",
            "remote_max_retries",
        ]
        for key in positive_int_keys:
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

        if "log_retention_count" in config and config["log_retention_count"] < 0:
            raise ConfigError(
                f"log_retention_count must be >= 0, got {config['log_retention_count']}"
            )

        for key in ("remote_timeout", "instance_timeout"):
            if key in config and config[key] <= 0:
                raise ConfigError(f"{key} must be > 0, got {config[key]}")

        instances = config.get("remote_instances", {})
        for name, instance in instances.items():
            if not isinstance(instance, dict) or not instance.get("url"):
                raise ConfigError(f"Remote instance '{name}' must define a url")
            url = str(instance["url"])
            if not url.startswith(("http://", "https://")):
                raise ConfigError(f"Invalid url scheme for remote instance '{name}': {url}")

        default_instance = config.get("default_instance")
        if default_instance and default_instance not in instances:
            raise ConfigError(
                f"default_instance '{default_instance}' is not a configured remote instance"
            )

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
