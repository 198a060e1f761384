"""
Host system configuration values.

The "system" section of the configuration file describes the host that is
being backed up: its version, data directory, server root, custom app roots
and database connection.

Example section:

    system:
      version: "25.0.2.3"
      serverroot: /var/www/nextcloud
      datadirectory: /var/www/nextcloud/data
      configfile: /var/www/nextcloud/config/config.php
      apps_paths:
        - path: /var/www/nextcloud/custom_apps
      dbname: nextcloud
      dbhost: localhost
      dbport: 3306
      dbuser: nextcloud
      dbpassword: secret
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Keys making up the database connection parameters
DB_KEYS = ("dbname", "dbhost", "dbport", "dbuser", "dbpassword")


@dataclass
class SystemConfig:
    """
    Read access to host system values.

    Attributes:
        values: Raw "system" section of the configuration file
    """

    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SystemConfig:
        system = config.get("system") or {}
        return cls(values=dict(system))

    def get_system_value(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def get_version(self) -> list[int]:
        """
        Host version as a list of integers.

        Accepts "25.0.2.3" as well as [25, 0, 2, 3]; non numeric components
        are dropped.
        """
        version = self.values.get("version", "")
        parts = version if isinstance(version, list) else str(version).split(".")
        return [int(p) for p in parts if str(p).strip().isdigit()]

    def get_db_params(self) -> dict[str, Any]:
        """Database connection parameters for the SQL dump."""
        return {key: self.values.get(key) for key in DB_KEYS}

    def get_custom_app_paths(self) -> list[str]:
        """
        Paths of the custom app roots.

        Entries that are not mappings with a "path" key are ignored.
        """
        apps_paths = self.values.get("apps_paths")
        if not isinstance(apps_paths, list):
            return []
        return [
            str(entry["path"])
            for entry in apps_paths
            if isinstance(entry, dict) and entry.get("path")
        ]
