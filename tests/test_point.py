"""
Tests for the restoring point and dataset models.
"""

import json
import re
from dataclasses import replace

import pytest

from pointsync.model.chunk import RestoringChunk
from pointsync.model.data import RestoringData, RootType
from pointsync.model.health import ChunkHealthStatus, RestoringChunkHealth, RestoringHealth
from pointsync.model.point import (
    ChunkNotFoundError,
    RestoringPoint,
    SealedPointError,
    generate_point_id,
)


def make_point() -> RestoringPoint:
    point = RestoringPoint.new(nc_version=[25, 0, 2, 3])
    point.add_restoring_data(RestoringData(RootType.ROOT_DATA, "", "data"))
    point.add_restoring_data(RestoringData(RootType.FILE_CONFIG, "", "config"))
    point.add_chunk("data", RestoringChunk("a", count=2, size=10, checksum="x1"))
    point.add_chunk("data", RestoringChunk("b", count=1, size=20, checksum="x2"))
    point.add_chunk("config", RestoringChunk.static("config.php", count=1, checksum="x3"))
    return point


class TestPointId:
    """Tests for point id generation."""

    def test_format(self):
        point_id = generate_point_id(1704110400)
        assert re.fullmatch(r"20240101120000-[a-z0-9]{15}", point_id)

    def test_ids_sort_by_creation_time(self):
        assert generate_point_id(1704110400) < generate_point_id(1704110401)

    def test_new_point(self):
        point = RestoringPoint.new([25])
        assert re.fullmatch(r"\d{14}-[a-z0-9]{15}", point.id)
        assert point.date > 0
        assert point.health is None
        assert point.sealed is False


class TestRestoringData:
    """Tests for dataset definitions."""

    def test_custom_apps_name(self):
        data = RestoringData.custom_apps("/srv/custom_apps")
        assert data.root_type == RootType.ROOT_DISK
        assert data.path == "/srv/custom_apps"
        assert re.fullmatch(r"apps_[0-9a-f]{8}", data.name)

    def test_round_trip(self):
        data = RestoringData(RootType.ROOT_NEXTCLOUD, "apps/", "apps")
        assert data.to_dict() == {"type": 2, "path": "apps/", "name": "apps"}
        assert RestoringData.from_dict(data.to_dict()) == data


class TestRestoringPointAssembly:
    """Tests for building and sealing a point."""

    def test_chunks_keep_order(self):
        point = make_point()
        assert [(d, c.name) for d, c in point.iter_chunks()] == [
            ("data", "a"),
            ("data", "b"),
            ("config", "config.php"),
        ]

    def test_add_chunk_drops_content(self):
        point = RestoringPoint.new()
        point.add_chunk("data", RestoringChunk("a", content="Zm9v"))
        assert point.get_chunk("data", "a").content == ""

    def test_sealed_point_rejects_changes(self):
        point = make_point()
        point.seal()

        with pytest.raises(SealedPointError):
            point.add_chunk("data", RestoringChunk("c"))
        with pytest.raises(SealedPointError):
            point.add_restoring_data(RestoringData(RootType.SQL_DUMP, "", "sqldump"))

    def test_sealed_point_accepts_health(self):
        point = make_point()
        point.seal()
        point.health = RestoringHealth(checked=1)
        assert point.has_health()

    def test_sealed_point_rejects_attribute_changes(self):
        point = make_point()
        point_id = point.id
        point.seal()

        with pytest.raises(SealedPointError):
            point.id = "other"
        with pytest.raises(SealedPointError):
            point.chunks = {}
        with pytest.raises(SealedPointError):
            point.sealed = False
        assert point.id == point_id
        assert point.sealed is True

    def test_sealed_point_content_is_read_only(self):
        point = make_point()
        point.seal()
        forged = replace(point.get_chunk("data", "a"), checksum="forged")

        with pytest.raises(TypeError):
            point.chunks["data"][0] = forged
        with pytest.raises(TypeError):
            point.chunks["extra"] = (forged,)
        with pytest.raises(AttributeError):
            point.restoring_data.append(RestoringData(RootType.SQL_DUMP, "", "sqldump"))
        assert point.get_chunk("data", "a").checksum == "x1"
        assert len(point.restoring_data) == 2

    def test_seal_is_idempotent(self):
        point = make_point()
        point.seal()
        point.seal()
        assert [c.name for c in point.chunks["data"]] == ["a", "b"]

    def test_loaded_point_is_sealed(self):
        restored = RestoringPoint.from_dict(make_point().to_dict())

        with pytest.raises(SealedPointError):
            restored.date = 0
        with pytest.raises(TypeError):
            restored.chunks["data"][0] = restored.chunks["data"][1]

    def test_get_chunk_not_found(self):
        with pytest.raises(ChunkNotFoundError):
            make_point().get_chunk("data", "zzz")

    def test_get_restoring_data(self):
        assert make_point().get_restoring_data("config").root_type == RootType.FILE_CONFIG


class TestRestoringPointSerialization:
    """Tests for point metadata."""

    def test_key_order(self):
        assert list(make_point().to_dict()) == ["id", "date", "nc", "restoringData", "chunks"]

    def test_health_absent_means_unknown(self):
        point = make_point()
        restored = RestoringPoint.from_dict(point.to_dict())
        assert restored.health is None
        assert restored.has_health() is False

    def test_round_trip(self):
        point = make_point()
        health = RestoringHealth(checked=1700000000)
        health.add_chunk(RestoringChunkHealth("data", "a", ChunkHealthStatus.OK))
        health.add_chunk(RestoringChunkHealth("data", "b", ChunkHealthStatus.MISSING))
        point.health = health

        restored = RestoringPoint.from_json(point.to_json())

        assert restored.id == point.id
        assert restored.date == point.date
        assert list(restored.nc_version) == [25, 0, 2, 3]
        assert list(restored.restoring_data) == point.restoring_data
        assert restored.to_dict() == point.to_dict()
        assert restored.health.chunks["data/b"].status == ChunkHealthStatus.MISSING
        assert restored.sealed is True

    def test_json_is_pretty_printed(self):
        document = make_point().to_json()
        assert "\n  " in document
        assert json.loads(document)["chunks"]["data"][0]["name"] == "a"
