"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the pointsync configuration
directory and the default locations derived from it.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".pointsync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "POINTSYNC_CONFIG_DIR"

# Default locations relative to the configuration directory
DEFAULT_STORAGE_DIR_NAME = "storage"
DEFAULT_DATABASE_NAME = "points.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. POINTSYNC_CONFIG_DIR environment variable
        3. Default directory (~/.pointsync)

    Args:
        config_dir: Optional explicit configuration directory path.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_storage_root(config: dict, config_dir: Path) -> Path:
    """Storage root from config, or <config_dir>/storage."""
    if config.get("storage_root"):
        return Path(config["storage_root"]).expanduser()
    return config_dir / DEFAULT_STORAGE_DIR_NAME


def resolve_database_path(config: dict, config_dir: Path) -> Path:
    """Point index database from config, or <config_dir>/points.db."""
    if config.get("database"):
        return Path(config["database"]).expanduser()
    return config_dir / DEFAULT_DATABASE_NAME
