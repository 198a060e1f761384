"""
Tests for the restoring point service.

Tests point assembly, failure handling, local lookups and local health.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from pointsync.archive.service import NOBACKUP_FILE, ArchiveNotFoundError, ScriptNotFoundError
from pointsync.model.data import RestoringData, RootType
from pointsync.model.health import ChunkHealthStatus, HealthStatus
from pointsync.point.service import METADATA_FILE, SQL_DUMP_FILE, PointService
from pointsync.sqldump.mysql import SqlDumpError
from pointsync.storage.db import PointDatabase, RestoringPointNotFoundError


def dataset_types(point):
    return [data.root_type for data in point.restoring_data]


class TestCreateComplete:
    """Tests for complete point assembly."""

    def test_point_is_sealed_and_indexed(self, host):
        point = host.service.create(complete=True)

        assert point.sealed is True
        assert point.nc_version == (25, 0, 2, 3)
        assert host.database.get_point(point.id).id == point.id

    def test_datasets(self, host):
        point = host.service.create(complete=True)
        names = [data.name for data in point.restoring_data]

        assert names[:3] == ["data", "apps", "config"]
        assert names[-1] == "sqldump"
        assert names[3].startswith("apps_")
        assert dataset_types(point) == [
            RootType.ROOT_DATA,
            RootType.ROOT_NEXTCLOUD,
            RootType.FILE_CONFIG,
            RootType.ROOT_DISK,
            RootType.SQL_DUMP,
        ]

    @pytest.mark.parametrize("custom_apps", [1, 2, 5])
    def test_one_full_data_dataset_whatever_the_custom_roots(self, host_factory, custom_apps):
        point = host_factory(custom_apps=custom_apps).service.create(complete=True)
        types = dataset_types(point)

        assert types.count(RootType.ROOT_DATA) == 1
        assert types.count(RootType.ROOT_NEXTCLOUD) == 1
        assert types.count(RootType.FILE_CONFIG) == 1
        assert types.count(RootType.SQL_DUMP) == 1
        assert types.count(RootType.ROOT_DISK) == custom_apps

    def test_chunks_cover_every_dataset(self, host):
        point = host.service.create(complete=True)

        assert point.chunks["data"][0].count == 2
        assert point.chunks["apps"][0].count == 2
        assert point.chunks["config"][0].files == ("config.php",)
        dump = point.chunks["sqldump"][0]
        assert dump.name == SQL_DUMP_FILE
        assert dump.static_name is True
        assert dump.count == 1

    def test_sql_dump_uses_db_params(self, host):
        host.service.create(complete=True)
        params = host.sql_dump.export.call_args[0][0]
        assert params["dbname"] == "nextcloud"
        assert params["dbuser"] == "nextcloud"

    def test_metadata_file(self, host):
        point = host.service.create(complete=True)

        document = (host.storage.root / point.id / METADATA_FILE).read_text()
        metadata = json.loads(document)

        assert metadata["id"] == point.id
        assert "health" not in metadata
        assert all("content" not in c for chunks in metadata["chunks"].values() for c in chunks)

    def test_storage_root_marker(self, host):
        host.service.create(complete=True)
        host.service.create(complete=True)
        assert (host.storage.root / NOBACKUP_FILE).is_file()

    def test_app_is_copied(self, host):
        point = host.service.create(complete=True)
        assert (host.storage.root / point.id / "app.zip").is_file()


class TestCreateIncremental:
    """Tests for incremental point assembly."""

    def test_default_strategy_adds_no_data(self, host):
        point = host.service.create(complete=False)
        types = dataset_types(point)

        assert RootType.ROOT_DATA not in types
        assert types.count(RootType.SQL_DUMP) == 1

    def test_custom_strategy(self, host):
        strategy = MagicMock()
        strategy.add_datasets.side_effect = lambda point: point.add_restoring_data(
            RestoringData(RootType.ROOT_DATA, "alice/", "data")
        )
        service = PointService(
            host.storage,
            host.archive,
            host.system,
            host.database,
            sql_dump=host.sql_dump,
            incremental=strategy,
        )

        point = service.create(complete=False)

        strategy.add_datasets.assert_called_once()
        assert point.get_restoring_data("data").path == "alice/"
        assert point.chunks["data"][0].files == ("files/a.txt", "files/b.txt")


class TestCreateFailures:
    """Tests for aborted assemblies."""

    def test_sql_dump_failure_leaves_point_unsealed(self, host):
        host.sql_dump.export.side_effect = SqlDumpError("mysqldump failed (2)")

        with pytest.raises(SqlDumpError):
            host.service.create(complete=True)

        assert host.database.list_points() == []
        folders = [p for p in host.storage.root.iterdir() if p.is_dir()]
        assert len(folders) == 1
        assert (folders[0] / METADATA_FILE).read_text() == ""
        with pytest.raises(RestoringPointNotFoundError, match="incomplete"):
            host.service.get_local_point(folders[0].name)

    def test_missing_restore_script_aborts(self, host):
        (host.root / "app" / "__main__.py").unlink()

        with pytest.raises(ScriptNotFoundError):
            host.service.create(complete=True)
        host.sql_dump.export.assert_not_called()

    def test_missing_source_aborts(self, host):
        host.system.values["datadirectory"] = str(host.root / "absent")

        with pytest.raises(ArchiveNotFoundError):
            host.service.create(complete=True)
        assert host.database.list_points() == []


class TestLocalPoints:
    """Tests for local point lookups."""

    def test_get_from_index(self, host):
        point = host.service.create(complete=True)
        assert host.service.get_local_point(point.id).to_dict() == point.to_dict()

    def test_get_from_metadata_file(self, host):
        point = host.service.create(complete=True)
        database = PointDatabase(":memory:")
        database.initialize()
        service = PointService(host.storage, host.archive, host.system, database)

        restored = service.get_local_point(point.id)

        assert restored.to_dict() == point.to_dict()
        assert database.get_point(point.id).id == point.id

    @pytest.mark.parametrize("document", [b"{not json", b"[1, 2]", b'{"nc": 25}', b"\xff"])
    def test_corrupt_metadata_file(self, host, document):
        point = host.service.create(complete=True)
        metadata = host.storage.root / point.id / METADATA_FILE
        metadata.write_bytes(document)
        database = PointDatabase(":memory:")
        database.initialize()
        service = PointService(host.storage, host.archive, host.system, database)

        with pytest.raises(RestoringPointNotFoundError, match="unreadable"):
            service.get_local_point(point.id)
        assert database.list_points() == []

    def test_unknown_point(self, host):
        with pytest.raises(RestoringPointNotFoundError):
            host.service.get_local_point("20240101120000-unknown")

    def test_list(self, host):
        first = host.service.create(complete=True)
        second = host.service.create(complete=True)
        ids = [p.id for p in host.service.list_local_points()]
        assert sorted(ids) == sorted([first.id, second.id])


class TestLocalHealth:
    """Tests for local health generation."""

    def test_fresh_point_is_ok(self, host):
        point = host.service.create(complete=True)

        health = host.service.generate_health(point)

        assert health.status == HealthStatus.OK
        assert host.database.get_point(point.id).health == health

    def test_health_is_stamped(self, host):
        point = host.service.create(complete=True)

        with patch("pointsync.point.service.time") as clock:
            clock.time.return_value = 1700000000.5
            health = host.service.generate_health(point)

        assert health.checked == 1700000000

    def test_missing_and_corrupt_chunks(self, host):
        point = host.service.create(complete=True)
        data_chunk = point.chunks["data"][0]
        config_chunk = point.chunks["config"][0]
        (host.storage.root / point.id / "data" / data_chunk.filename).unlink()
        (host.storage.root / point.id / "config" / config_chunk.filename).write_bytes(b"bad")

        health = host.service.generate_health(point)

        assert health.status == HealthStatus.ISSUE
        assert health.chunks[f"data/{data_chunk.name}"].status == ChunkHealthStatus.MISSING
        assert health.chunks[f"config/{config_chunk.name}"].status == ChunkHealthStatus.CHECKSUM
        assert point.health is health

    def test_get_chunk_content(self, host):
        point = host.service.create(complete=True)
        chunk = host.service.get_chunk_content(point, "sqldump", SQL_DUMP_FILE)
        assert chunk.content
        assert chunk.checksum == point.chunks["sqldump"][0].checksum
