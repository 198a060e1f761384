"""Packaging of restoring point datasets into zip chunks."""

from pointsync.archive.service import (
    AppCopyError,
    ArchiveCreateError,
    ArchiveDeleteError,
    ArchiveError,
    ArchiveNotFoundError,
    ArchiveService,
    ScriptNotFoundError,
)

__all__ = [
    "AppCopyError",
    "ArchiveCreateError",
    "ArchiveDeleteError",
    "ArchiveError",
    "ArchiveNotFoundError",
    "ArchiveService",
    "ScriptNotFoundError",
]
