"""
Health model for restoring points.

Classifies each chunk of a local restoring point against the chunks another
store reports (presence and checksum), and aggregates the result into a
point-level status.

A checksum mismatch is an expected, actionable condition and is reported as
ChunkHealthStatus.CHECKSUM, never raised.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pointsync.model.point import RestoringPoint

# Remote chunk index: (data name, chunk name) -> checksum of the stored payload
ChunkIndex = Mapping[tuple[str, str], str]


class ChunkHealthStatus(IntEnum):
    """Status of a single chunk on a store."""

    UNKNOWN = 0
    OK = 1
    MISSING = 2
    CHECKSUM = 3


class HealthStatus(IntEnum):
    """Aggregate status of a restoring point."""

    UNKNOWN = 0
    OK = 1
    ISSUE = 2


def chunk_key(data_name: str, chunk_name: str) -> str:
    """Composite key a chunk health entry is filed under."""
    return f"{data_name}/{chunk_name}"


@dataclass(frozen=True)
class RestoringChunkHealth:
    """Health of one chunk, identified by its dataset and chunk names."""

    data_name: str
    chunk_name: str
    status: ChunkHealthStatus = ChunkHealthStatus.UNKNOWN

    @property
    def key(self) -> str:
        return chunk_key(self.data_name, self.chunk_name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoringChunkHealth:
        return cls(
            data_name=data.get("dataName", ""),
            chunk_name=data.get("chunkName", ""),
            status=ChunkHealthStatus(int(data.get("status", 0))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataName": self.data_name,
            "chunkName": self.chunk_name,
            "status": int(self.status),
        }


@dataclass
class RestoringHealth:
    """
    Health record of a restoring point.

    Attributes:
        chunks: Chunk health entries keyed by "<data name>/<chunk name>",
                in the point's dataset and chunk order
        checked: Epoch time the record was computed
    """

    chunks: dict[str, RestoringChunkHealth] = field(default_factory=dict)
    checked: int = 0

    @property
    def status(self) -> HealthStatus:
        """
        Aggregate status, derived from the worst chunk status.

        Returns:
            ISSUE if any chunk is missing or faulty, UNKNOWN if some chunk
            was not checked, OK otherwise (including a point with no chunks)
        """
        statuses = {chunk.status for chunk in self.chunks.values()}
        if statuses & {ChunkHealthStatus.MISSING, ChunkHealthStatus.CHECKSUM}:
            return HealthStatus.ISSUE
        if ChunkHealthStatus.UNKNOWN in statuses:
            return HealthStatus.UNKNOWN
        return HealthStatus.OK

    def is_ok(self) -> bool:
        return self.status == HealthStatus.OK

    def add_chunk(self, chunk_health: RestoringChunkHealth) -> None:
        self.chunks[chunk_health.key] = chunk_health

    def failing_chunks(self) -> list[RestoringChunkHealth]:
        """Chunks whose status is anything but OK, in recorded order."""
        return [c for c in self.chunks.values() if c.status != ChunkHealthStatus.OK]

    def count_by_status(self) -> dict[ChunkHealthStatus, int]:
        counts = {status: 0 for status in ChunkHealthStatus}
        for chunk in self.chunks.values():
            counts[chunk.status] += 1
        return counts

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestoringHealth:
        health = cls(checked=int(data.get("checked", 0)))
        for entry in data.get("chunks", {}).values():
            health.add_chunk(RestoringChunkHealth.from_dict(entry))
        return health

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": int(self.status),
            "checked": self.checked,
            "chunks": {key: chunk.to_dict() for key, chunk in self.chunks.items()},
        }


def classify_chunk(local_checksum: str, remote_checksum: str | None) -> ChunkHealthStatus:
    """
    Classify one chunk from its local and remote checksums.

    Args:
        local_checksum: Checksum recorded in the local point
        remote_checksum: Checksum reported by the other store, None if absent

    Returns:
        MISSING, CHECKSUM or OK
    """
    if remote_checksum is None:
        return ChunkHealthStatus.MISSING
    if remote_checksum != local_checksum:
        return ChunkHealthStatus.CHECKSUM
    return ChunkHealthStatus.OK


def classify(
    local: RestoringPoint, remote_index: ChunkIndex, checked: int = 0
) -> RestoringHealth:
    """
    Classify every chunk of a local point against a remote chunk index.

    Pure function of its inputs: the same point, index and ``checked`` always
    produce the same health record. The caller stamps the check time.

    Args:
        local: The local restoring point holding the reference checksums
        remote_index: Mapping of (data name, chunk name) to stored checksum
        checked: Epoch time to stamp the record with

    Returns:
        RestoringHealth with one entry per local chunk
    """
    health = RestoringHealth(checked=checked)
    for data_name, chunks in local.chunks.items():
        for chunk in chunks:
            status = classify_chunk(chunk.checksum, remote_index.get((data_name, chunk.name)))
            health.add_chunk(RestoringChunkHealth(data_name, chunk.name, status))
    return health


def chunk_index(point: RestoringPoint) -> dict[tuple[str, str], str]:
    """Build a chunk index from the checksums a point records."""
    return {
        (data_name, chunk.name): chunk.checksum
        for data_name, chunks in point.chunks.items()
        for chunk in chunks
    }
