"""Storage for restoring points: filesystem payloads and the SQLite index."""

from pointsync.storage.appdata import (
    AppData,
    StorageError,
    StorageNotFoundError,
    StorageNotPermittedError,
)
from pointsync.storage.db import PointDatabase, RestoringPointNotFoundError

__all__ = [
    "AppData",
    "StorageError",
    "StorageNotFoundError",
    "StorageNotPermittedError",
    "PointDatabase",
    "RestoringPointNotFoundError",
]
