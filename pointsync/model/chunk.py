"""
Chunk data models for restoring points.

Provides the packaged, checksummed units a restoring point is made of:
- RestoringChunk: one packaged archive holding a set of files
- RestoringChunkPart: an optional sub-unit of a chunk, possibly encrypted
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any

# Extension appended to generated chunk names
CHUNK_EXTENSION = "zip"


@dataclass(frozen=True)
class RestoringChunkPart:
    """
    Sub-unit of a chunk, optionally stored in encrypted form.

    Attributes:
        name: Base name of the part, without extension
        encrypted: True if the stored form of the part is encrypted
        checksum: Digest of the plaintext payload
        encrypted_checksum: Digest of the ciphertext (only when encrypted)
        content: Transient inline payload, never required in metadata

    Usage:
        part = RestoringChunkPart("apps-1f0c-0001", checksum="ab12...")
        part.filename("zip")  # "apps-1f0c-0001.zip"
    """

    name: str
    encrypted: bool = False
    checksum: str = ""
    encrypted_checksum: str = ""
    content: str = ""

    def __post_init__(self) -> None:
        if not self.encrypted and self.encrypted_checksum:
            raise ValueError(
                f"Part {self.name} is not encrypted but has an encrypted checksum"
            )

    def filename(self, ext: str = "") -> str:
        """
        Get the physical filename of the part.

        The same logical part can live under several suffixes (plain vs.
        encrypted), so the extension is chosen by the caller.

        Args:
            ext: Extension to append, without the leading dot

        Returns:
            The part name, with ".<ext>" appended when ext is not empty
        """
        if not ext:
            return self.name
        return f"{self.name}.{ext}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoringChunkPart:
        """Create a RestoringChunkPart from its metadata representation."""
        return cls(
            name=data.get("name", ""),
            encrypted=bool(data.get("encrypted", False)),
            checksum=data.get("checksum", ""),
            encrypted_checksum=data.get("encryptedChecksum", ""),
            content=data.get("content", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to metadata format; content is only kept when not empty."""
        result: dict[str, Any] = {
            "name": self.name,
            "encrypted": self.encrypted,
            "checksum": self.checksum,
            "encryptedChecksum": self.encrypted_checksum,
        }
        if self.content:
            result["content"] = self.content
        return result


@dataclass(frozen=True)
class RestoringChunk:
    """
    Packaged, checksummed unit of backed-up content.

    A chunk aggregates zero or more files into one archive. Its size and
    checksum always describe the payload stored under its filename, so the
    model is immutable: replacing the payload means building a new chunk.

    Attributes:
        name: Chunk identifier (static, or base name plus random suffix)
        files: Relative paths of the files packaged in the chunk, in order
        count: Number of packaged files; -1 means "use len(files)"
        size: Byte length of the packaged payload
        checksum: MD5 digest of the packaged payload
        static_name: True if the name was assigned by the caller
        stored: True once the payload has been durably written
        content: Transient inline payload (base64), dropped when empty
        parts: Optional sub-units of the chunk

    Usage:
        chunk = RestoringChunk.generated("data", files=("a.txt", "b.txt"))
        chunk.count      # 2
        chunk.filename   # "data-<uuid>.zip"

        dump = RestoringChunk.static("backup_sql", count=1)
        dump.filename    # "backup_sql"
    """

    name: str
    files: tuple[str, ...] = ()
    count: int = -1
    size: int = 0
    checksum: str = ""
    static_name: bool = False
    stored: bool = False
    content: str = ""
    parts: tuple[RestoringChunkPart, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "parts", tuple(self.parts))
        if self.count == -1:
            object.__setattr__(self, "count", len(self.files))

    @classmethod
    def generated(cls, base: str = "", **kwargs: Any) -> RestoringChunk:
        """
        Create a chunk whose name is unique to this point.

        Args:
            base: Base name; a random suffix is always appended
            **kwargs: Any other RestoringChunk field

        Returns:
            RestoringChunk named "<base>-<uuid>" (or "<uuid>" if base is empty)
        """
        suffix = str(uuid.uuid4())
        name = f"{base}-{suffix}" if base else suffix
        return cls(name=name, static_name=False, **kwargs)

    @classmethod
    def static(cls, name: str, **kwargs: Any) -> RestoringChunk:
        """Create a chunk with a caller-assigned, stable name."""
        return cls(name=name, static_name=True, **kwargs)

    @property
    def filename(self) -> str:
        """Physical filename of the chunk payload."""
        if self.static_name:
            return self.name
        return f"{self.name}.{CHUNK_EXTENSION}"

    def with_payload(self, size: int, checksum: str) -> RestoringChunk:
        """Return a stored copy describing a newly written payload."""
        return replace(self, size=size, checksum=checksum, stored=True)

    def with_content(self, content: str) -> RestoringChunk:
        """Return a copy carrying an inline payload."""
        return replace(self, content=content)

    def without_content(self) -> RestoringChunk:
        """Return a copy with the transient inline payload dropped."""
        return replace(self, content="")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoringChunk:
        """
        Create a RestoringChunk from its metadata representation.

        File lists are not part of the metadata; the recorded count is kept
        as-is so an overridden count survives the round trip.

        Args:
            data: Dictionary as produced by to_dict()

        Returns:
            RestoringChunk populated from the metadata
        """
        return cls(
            name=data.get("name", ""),
            count=int(data.get("count", 0)),
            size=int(data.get("size", 0)),
            checksum=data.get("checksum", ""),
            static_name=bool(data.get("staticName", False)),
            stored=True,
            content=data.get("content", ""),
            parts=tuple(RestoringChunkPart.from_dict(p) for p in data.get("parts", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to metadata format."""
        result: dict[str, Any] = {
            "name": self.name,
            "count": self.count,
            "size": self.size,
            "staticName": self.static_name,
            "checksum": self.checksum,
        }
        if self.content:
            result["content"] = self.content
        if self.parts:
            result["parts"] = [part.to_dict() for part in self.parts]
        return result
