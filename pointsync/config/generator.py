"""
Configuration file generator for pointsync.

Provides functionality to generate a default configuration file documenting
every available option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments

    Example:
        config_yaml = generate_default_config()
        Path("config.yaml").write_text(config_yaml)
    """
    return """# pointsync Configuration
# =======================
#
# To use this configuration:
#   1. Save as ~/.pointsync/config.yaml (or custom location)
#   2. Fill in the system section and your remote instances
#   3. Run pointsync commands normally


# Storage
# -------

# Directory restoring points are written to
# Default: <config dir>/storage
# storage_root: /var/backups/pointsync

# Point index database
# Default: <config dir>/points.db
# database: /var/backups/pointsync/points.db

# Maximum size of the files packed into one chunk, in bytes
# Default: 104857600 (100 MiB)
# chunk_size: 104857600


# Host system
# -----------

# Values describing the host being backed up
# system:
#   version: "25.0.2.3"
#   serverroot: /var/www/nextcloud
#   datadirectory: /var/www/nextcloud/data
#   configfile: /var/www/nextcloud/config/config.php
#   apps_paths:
#     - path: /var/www/nextcloud/custom_apps
#   dbname: nextcloud
#   dbhost: localhost
#   dbport: 3306
#   dbuser: nextcloud
#   dbpassword: secret


# Remote instances
# ----------------

# Instances restoring points are uploaded to
# remote_instances:
#   backup2:
#     url: https://backup2.example.com/api
#     token: change-me

# Instance used when none is given on the command line
# default_instance: backup2

# Instances reconciled at the same time
# Default: 4
# max_parallel_instances: 4

# Chunk uploads in flight per instance
# Default: 2
# max_parallel_uploads: 2

# Timeout of each HTTP request, in seconds
# Default: 30
# remote_timeout: 30

# Attempts per HTTP request on rate limits and server errors
# Default: 3
# remote_max_retries: 3

# Time allowed for reconciling one instance, in seconds
# Default: 3600
# instance_timeout: 3600


# Logging
# -------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Directory for log files
# Default: <config dir>/logs
# log_dir: /var/log/pointsync

# Number of log files to keep
# Default: 10
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves the
    configuration with owner-only permissions, since it may hold tokens
    and database credentials.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
