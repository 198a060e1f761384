"""
Dataset definitions for restoring points.

A RestoringData entry describes *what* is backed up: a root category, a path
relative to that root, and the logical name its chunks are filed under.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

# Well-known dataset names
DATA = "data"
APPS = "apps"
CONFIG = "config"
SQL_DUMP_NAME = "sqldump"

# Prefix of datasets created for custom app roots
CUSTOM_APPS_PREFIX = "apps_"


class RootType(IntEnum):
    """Root category a dataset path is relative to."""

    ROOT_DISK = 1  # absolute path on disk
    ROOT_NEXTCLOUD = 2  # host application server root
    ROOT_DATA = 3  # host data directory
    ROOT_APPS = 4  # host apps directory
    FILE_CONFIG = 5  # host configuration file
    SQL_DUMP = 6  # database dump, no source path


@dataclass(frozen=True)
class RestoringData:
    """
    Logical dataset of a restoring point.

    Attributes:
        root_type: Root category the path is relative to
        path: Source path relative to the root
        name: Logical label chunks are filed under
    """

    root_type: RootType
    path: str
    name: str

    @classmethod
    def custom_apps(cls, path: str) -> RestoringData:
        """Create a dataset for a custom app root with a unique name."""
        return cls(RootType.ROOT_DISK, path, f"{CUSTOM_APPS_PREFIX}{secrets.token_hex(4)}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoringData:
        return cls(
            root_type=RootType(int(data.get("type", RootType.ROOT_DISK))),
            path=data.get("path", ""),
            name=data.get("name", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": int(self.root_type),
            "path": self.path,
            "name": self.name,
        }
