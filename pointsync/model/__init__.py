"""
pointsync.model - Restoring point data model

Chunks, datasets, restoring points and their health records.
"""

from pointsync.model.chunk import RestoringChunk, RestoringChunkPart
from pointsync.model.data import RestoringData, RootType
from pointsync.model.health import (
    ChunkHealthStatus,
    HealthStatus,
    RestoringChunkHealth,
    RestoringHealth,
    chunk_index,
    classify,
)
from pointsync.model.point import (
    ChunkNotFoundError,
    RestoringPoint,
    SealedPointError,
)

__all__ = [
    "RestoringChunk",
    "RestoringChunkPart",
    "RestoringData",
    "RootType",
    "ChunkHealthStatus",
    "HealthStatus",
    "RestoringChunkHealth",
    "RestoringHealth",
    "chunk_index",
    "classify",
    "ChunkNotFoundError",
    "RestoringPoint",
    "SealedPointError",
]
