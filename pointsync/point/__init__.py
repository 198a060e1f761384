"""Assembly and lookup of local restoring points."""

from pointsync.point.incremental import IncrementalStrategy, NoIncrementalStrategy
from pointsync.point.service import (
    METADATA_FILE,
    SQL_DUMP_FILE,
    FilesystemError,
    PointService,
)

__all__ = [
    "IncrementalStrategy",
    "NoIncrementalStrategy",
    "METADATA_FILE",
    "SQL_DUMP_FILE",
    "FilesystemError",
    "PointService",
]
