"""
Tests for the chunk models.

Tests RestoringChunk and RestoringChunkPart construction, invariants and
their metadata representation.
"""

import dataclasses

import pytest

from pointsync.model.chunk import RestoringChunk, RestoringChunkPart


class TestRestoringChunkCount:
    """Tests for the file count of a chunk."""

    def test_count_defaults_to_number_of_files(self):
        chunk = RestoringChunk("c", files=("a.txt", "b.txt", "c/d.txt"))
        assert chunk.count == 3

    def test_empty_chunk_has_zero_count(self):
        assert RestoringChunk("c").count == 0

    def test_explicit_count_is_kept(self):
        chunk = RestoringChunk.static("backup_sql", count=1)
        assert chunk.files == ()
        assert chunk.count == 1

    def test_overridden_count_survives_round_trip(self):
        chunk = RestoringChunk("c", files=("a", "b"), count=7, size=10, checksum="x")
        assert RestoringChunk.from_dict(chunk.to_dict()).count == 7

    def test_files_are_normalized_to_tuple(self):
        chunk = RestoringChunk("c", files=["a", "b"])
        assert chunk.files == ("a", "b")


class TestRestoringChunkNames:
    """Tests for generated and static chunk names."""

    def test_generated_name_has_base_and_suffix(self):
        chunk = RestoringChunk.generated("data")
        assert chunk.name.startswith("data-")
        assert len(chunk.name) == len("data-") + 36
        assert chunk.static_name is False

    def test_generated_names_are_unique(self):
        assert RestoringChunk.generated("data").name != RestoringChunk.generated("data").name

    def test_generated_name_without_base(self):
        assert len(RestoringChunk.generated().name) == 36

    def test_generated_filename_has_extension(self):
        chunk = RestoringChunk.generated("apps")
        assert chunk.filename == f"{chunk.name}.zip"

    def test_static_filename_is_name(self):
        chunk = RestoringChunk.static("backup_sql")
        assert chunk.static_name is True
        assert chunk.filename == "backup_sql"


class TestRestoringChunkImmutability:
    """Tests for the immutable chunk model."""

    def test_cannot_set_checksum(self):
        chunk = RestoringChunk("c", checksum="x1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            chunk.checksum = "x2"

    def test_with_payload_returns_stored_copy(self):
        chunk = RestoringChunk.generated("data", files=("a",))
        stored = chunk.with_payload(42, "abc")

        assert stored.size == 42
        assert stored.checksum == "abc"
        assert stored.stored is True
        assert stored.name == chunk.name
        assert chunk.stored is False

    def test_content_helpers(self):
        chunk = RestoringChunk("c").with_content("Zm9v")
        assert chunk.content == "Zm9v"
        assert chunk.without_content().content == ""


class TestRestoringChunkSerialization:
    """Tests for chunk metadata."""

    def test_to_dict_keys(self):
        chunk = RestoringChunk("c", count=2, size=10, checksum="x1")
        assert chunk.to_dict() == {
            "name": "c",
            "count": 2,
            "size": 10,
            "staticName": False,
            "checksum": "x1",
        }

    def test_content_only_when_not_empty(self):
        assert "content" not in RestoringChunk("c").to_dict()
        assert RestoringChunk("c", content="Zm9v").to_dict()["content"] == "Zm9v"

    def test_absent_content_is_not_an_error(self):
        chunk = RestoringChunk.from_dict({"name": "c", "count": 1, "checksum": "x"})
        assert chunk.content == ""
        assert chunk.stored is True

    def test_round_trip(self):
        part = RestoringChunkPart("p1", encrypted=True, checksum="a", encrypted_checksum="b")
        chunk = RestoringChunk.static(
            "backup_sql", count=1, size=99, checksum="x", parts=(part,)
        )

        restored = RestoringChunk.from_dict(chunk.to_dict())

        assert restored.name == chunk.name
        assert restored.count == chunk.count
        assert restored.size == chunk.size
        assert restored.checksum == chunk.checksum
        assert restored.static_name == chunk.static_name
        assert restored.parts == chunk.parts
        assert restored.to_dict() == chunk.to_dict()


class TestRestoringChunkPart:
    """Tests for chunk parts."""

    def test_filename_without_extension(self):
        assert RestoringChunkPart("p1").filename() == "p1"

    def test_filename_with_extension(self):
        part = RestoringChunkPart("p1", encrypted=True)
        assert part.filename("zip") == "p1.zip"
        assert part.filename("gz") == "p1.gz"

    def test_encrypted_checksum_requires_encryption(self):
        with pytest.raises(ValueError, match="not encrypted"):
            RestoringChunkPart("p1", encrypted=False, encrypted_checksum="abc")

    def test_to_dict_keys(self):
        part = RestoringChunkPart("p1", encrypted=True, checksum="a", encrypted_checksum="b")
        assert part.to_dict() == {
            "name": "p1",
            "encrypted": True,
            "checksum": "a",
            "encryptedChecksum": "b",
        }

    def test_round_trip_with_content(self):
        part = RestoringChunkPart("p1", checksum="a", content="Zm9v")
        assert RestoringChunkPart.from_dict(part.to_dict()) == part
