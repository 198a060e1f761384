"""
Restoring point data model.

A RestoringPoint is the aggregate root of a backup: its datasets, the chunks
realizing them, host version metadata and an optional health record. It is
built up during assembly and sealed once its metadata is written; after that
only the health record may change.
"""

from __future__ import annotations

import json
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from pointsync.model.chunk import RestoringChunk
from pointsync.model.data import RestoringData
from pointsync.model.health import RestoringHealth

# Format of the timestamp half of a point id
POINT_ID_DATE_FORMAT = "%Y%m%d%H%M%S"

# Length of the random half of a point id
POINT_ID_TOKEN_LENGTH = 15

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


class PointModelError(Exception):
    """Base exception for restoring point model errors."""

    pass


class SealedPointError(PointModelError):
    """Raised when modifying the content of a sealed restoring point."""

    pass


class ChunkNotFoundError(PointModelError):
    """Raised when a chunk is not part of a restoring point."""

    pass


def generate_point_id(timestamp: int) -> str:
    """
    Generate a sortable, collision resistant point id.

    Args:
        timestamp: Creation epoch time

    Returns:
        "<UTC YmdHis>-<random token>"
    """
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(POINT_ID_TOKEN_LENGTH))
    return f"{date.strftime(POINT_ID_DATE_FORMAT)}-{token}"


@dataclass
class RestoringPoint:
    """
    Point-in-time backup snapshot.

    Attributes:
        id: "<UTC YmdHis>-<token>", sortable by creation time
        date: Creation epoch time
        nc_version: Version of the host system that produced the point
        restoring_data: Datasets, in insertion order
        chunks: Dataset name -> ordered chunks realizing it
        health: Health record, None when never computed
        sealed: True once the metadata has been written

    Usage:
        point = RestoringPoint.new(nc_version=[25, 0, 2, 3])
        point.add_restoring_data(RestoringData(RootType.ROOT_DATA, "", "data"))
        point.add_chunk("data", chunk)
        point.seal()
    """

    id: str
    date: int
    nc_version: Sequence[int] = field(default_factory=list)
    restoring_data: Sequence[RestoringData] = field(default_factory=list)
    chunks: Mapping[str, Sequence[RestoringChunk]] = field(default_factory=dict)
    health: Optional[RestoringHealth] = None
    sealed: bool = False

    def __post_init__(self) -> None:
        if self.sealed:
            self._freeze()

    def __setattr__(self, name: str, value: Any) -> None:
        # Once sealed, only the health record may be replaced
        if name != "health" and getattr(self, "sealed", False):
            raise SealedPointError(f"Restoring point {self.id} is sealed, cannot set {name}")
        super().__setattr__(name, value)

    def _freeze(self) -> None:
        object.__setattr__(self, "nc_version", tuple(self.nc_version))
        object.__setattr__(self, "restoring_data", tuple(self.restoring_data))
        object.__setattr__(
            self,
            "chunks",
            MappingProxyType({name: tuple(chunks) for name, chunks in self.chunks.items()}),
        )

    @classmethod
    def new(cls, nc_version: list[int] | None = None) -> RestoringPoint:
        """Create an empty point with a freshly allocated id."""
        date = int(time.time())
        return cls(id=generate_point_id(date), date=date, nc_version=list(nc_version or []))

    def _check_not_sealed(self) -> None:
        if self.sealed:
            raise SealedPointError(f"Restoring point {self.id} is sealed")

    def add_restoring_data(self, data: RestoringData) -> None:
        self._check_not_sealed()
        self.restoring_data.append(data)

    def add_chunk(self, data_name: str, chunk: RestoringChunk) -> None:
        """
        Append a chunk to a dataset.

        Transient inline content is dropped: the payload lives in storage.

        Raises:
            SealedPointError: If the point is already sealed
        """
        self._check_not_sealed()
        self.chunks.setdefault(data_name, []).append(chunk.without_content())

    def seal(self) -> None:
        """
        Freeze the point content.

        Datasets, chunks and version become read-only and any attribute but
        health can no longer be assigned.
        """
        if self.sealed:
            return
        self._freeze()
        object.__setattr__(self, "sealed", True)

    def has_health(self) -> bool:
        """True once a health record has been computed (whatever its status)."""
        return self.health is not None

    def get_restoring_data(self, name: str) -> RestoringData:
        for data in self.restoring_data:
            if data.name == name:
                return data
        raise ChunkNotFoundError(f"Dataset {name} not found in point {self.id}")

    def get_chunk(self, data_name: str, chunk_name: str) -> RestoringChunk:
        for chunk in self.chunks.get(data_name, []):
            if chunk.name == chunk_name:
                return chunk
        raise ChunkNotFoundError(
            f"Chunk {data_name}/{chunk_name} not found in point {self.id}"
        )

    def iter_chunks(self):
        """Yield (data name, chunk) pairs in dataset and chunk order."""
        for data_name, chunks in self.chunks.items():
            for chunk in chunks:
                yield data_name, chunk

    @classmethod
    def from_dict(cls, data: dict[str, Any], sealed: bool = True) -> RestoringPoint:
        """
        Create a RestoringPoint from its metadata representation.

        A missing "health" key means the health is unknown, not failed.
        """
        health_data = data.get("health")
        return cls(
            id=data.get("id", ""),
            date=int(data.get("date", 0)),
            nc_version=list(data.get("nc", [])),
            restoring_data=[RestoringData.from_dict(d) for d in data.get("restoringData", [])],
            chunks={
                name: [RestoringChunk.from_dict(c) for c in chunks]
                for name, chunks in data.get("chunks", {}).items()
            },
            health=RestoringHealth.from_dict(health_data) if health_data else None,
            sealed=sealed,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to metadata format, with a stable key order."""
        result: dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "nc": list(self.nc_version),
            "restoringData": [d.to_dict() for d in self.restoring_data],
            "chunks": {
                name: [c.to_dict() for c in chunks] for name, chunks in self.chunks.items()
            },
        }
        if self.health is not None:
            result["health"] = self.health.to_dict()
        return result

    def to_json(self) -> str:
        """Pretty-printed metadata document."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, document: str) -> RestoringPoint:
        return cls.from_dict(json.loads(document))
