"""Shared fixtures: a small host to back up and the services wired on it."""

from dataclasses import dataclass
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pointsync.archive.service import ArchiveService
from pointsync.config.system import SystemConfig
from pointsync.point.service import PointService
from pointsync.sqldump.mysql import SqlDumpMySQL
from pointsync.storage.appdata import AppData
from pointsync.storage.db import PointDatabase

SQL_DUMP = b"CREATE TABLE oc_users (uid VARCHAR(64));\n"


@dataclass
class Host:
    """Paths of a fake host and the services backing it up."""

    root: Path
    system: SystemConfig
    storage: AppData
    archive: ArchiveService
    database: PointDatabase
    sql_dump: MagicMock
    service: PointService


def write(path: Path, content: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def host_tree(tmp_path) -> Path:
    """
    Host layout:

        server/apps/{files,photos}/...   application code
        server/custom_apps/notes/...     custom app root
        data/alice/files/...             user data
        config/config.php                configuration file
        app/__main__.py                  backup application code
    """
    root = tmp_path / "host"
    write(root / "server" / "apps" / "files" / "appinfo.xml", "<info/>")
    write(root / "server" / "apps" / "photos" / "lib" / "photo.php", "<?php")
    write(root / "server" / "custom_apps" / "notes" / "notes.php", "<?php")
    write(root / "data" / "alice" / "files" / "a.txt", "hello")
    write(root / "data" / "alice" / "files" / "b.txt", "world")
    write(root / "config" / "config.php", "<?php $CONFIG = [];")
    write(root / "app" / "__main__.py", "print('restore')")
    write(root / "app" / "lib.py", "")
    return root


def make_host(root: Path, custom_apps: int = 1, chunk_size: int = 1024 * 1024) -> Host:
    values = {
        "version": "25.0.2.3",
        "serverroot": str(root / "server"),
        "datadirectory": str(root / "data"),
        "configfile": str(root / "config" / "config.php"),
        "apps_paths": [
            {"path": str(root / "server" / "custom_apps")} for _ in range(custom_apps)
        ],
        "dbname": "nextcloud",
        "dbuser": "nextcloud",
    }
    system = SystemConfig(values)
    storage = AppData(root.parent / "storage")
    archive = ArchiveService(storage, system, chunk_size=chunk_size, app_path=root / "app")
    database = PointDatabase(":memory:")
    database.initialize()
    sql_dump = MagicMock(spec=SqlDumpMySQL)
    sql_dump.export.return_value = SQL_DUMP
    service = PointService(storage, archive, system, database, sql_dump=sql_dump)
    return Host(root, system, storage, archive, database, sql_dump, service)


@pytest.fixture
def host(host_tree) -> Host:
    return make_host(host_tree)


@pytest.fixture
def host_factory(host_tree):
    """Build a host on the shared tree with custom settings."""

    def factory(**kwargs) -> Host:
        return make_host(host_tree, **kwargs)

    return factory
