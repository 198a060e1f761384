"""
Archive service for packaging datasets into chunks.

Provides functionality to:
- Resolve the source directory of a dataset from the host configuration
- Pack the files of a dataset into size-bounded zip chunks
- Wrap raw content (e.g. a SQL dump) into a single named chunk
- Package the application code alongside a restoring point
- Read back stored chunk payloads for upload
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import zipfile
from pathlib import Path

from pointsync.model.chunk import RestoringChunk
from pointsync.model.data import RestoringData, RootType
from pointsync.model.point import ChunkNotFoundError, RestoringPoint
from pointsync.config.system import SystemConfig
from pointsync.storage.appdata import (
    AppData,
    StorageError,
    StoredFile,
    StoredFolder,
)

# Marker file excluding a directory from backups
NOBACKUP_FILE = ".nobackup"

# Archive of the application code stored with each point
APP_ARCHIVE = "app.zip"

# Entry script the restore process runs
RESTORE_SCRIPT = "__main__.py"

# Directories never copied with the application code
APP_EXCLUDED_DIRS = {"__pycache__", ".git", ".pytest_cache"}

# Default maximum payload of a chunk, in bytes
DEFAULT_CHUNK_SIZE = 100 * 1024 * 1024

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Base exception for archive operations."""

    pass


class ArchiveCreateError(ArchiveError):
    """Raised when a chunk archive cannot be written."""

    pass


class ArchiveDeleteError(ArchiveError):
    """Raised when a previous chunk archive cannot be removed."""

    pass


class ArchiveNotFoundError(ArchiveError):
    """Raised when a chunk archive or its source is missing."""

    pass


class AppCopyError(ArchiveError):
    """Raised when the application code cannot be packaged."""

    pass


class ScriptNotFoundError(ArchiveError):
    """Raised when the restore entry script is missing from the application."""

    pass


def md5_file(path: Path) -> str:
    """MD5 hex digest of a file, read in 1 MiB blocks."""
    digest = hashlib.md5()
    with path.open("rb") as handle:
        for block in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(block)
    return digest.hexdigest()


class ArchiveService:
    """
    Packs datasets into zip chunks stored next to a restoring point.

    Chunks of a dataset are written to "<point id>/<data name>/<filename>".

    Attributes:
        storage: Storage the points live in
        system: Host system values, used to resolve dataset roots
        chunk_size: Maximum payload of a chunk in bytes
        app_path: Directory holding the application code

    Usage:
        archive = ArchiveService(AppData(root), SystemConfig(values))
        chunks = archive.create_chunks(point, data)
    """

    def __init__(
        self,
        storage: AppData,
        system: SystemConfig,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        app_path: Path | None = None,
    ):
        self.storage = storage
        self.system = system
        self.chunk_size = chunk_size
        if app_path is None:
            app_path = Path(__file__).resolve().parent.parent
        self.app_path = Path(app_path)

    # =========================================================================
    # Sources
    # =========================================================================

    def resolve_source(self, data: RestoringData) -> Path:
        """
        Get the source path of a dataset.

        Raises:
            ArchiveNotFoundError: If the root category is not configured
        """
        root_type = data.root_type
        if root_type == RootType.ROOT_DISK:
            return Path(data.path)
        if root_type == RootType.FILE_CONFIG:
            root = self.system.get_system_value("configfile")
            if not root:
                raise ArchiveNotFoundError("configfile is not configured")
            return Path(root)
        if root_type == RootType.ROOT_DATA:
            root = self.system.get_system_value("datadirectory")
        elif root_type in (RootType.ROOT_NEXTCLOUD, RootType.ROOT_APPS):
            root = self.system.get_system_value("serverroot")
        else:
            raise ArchiveNotFoundError(f"Dataset {data.name} has no source path")

        if not root:
            raise ArchiveNotFoundError(f"No root configured for dataset {data.name}")
        return Path(root) / data.path

    def list_files(self, source: Path) -> list[str]:
        """
        List the files of a source, relative to it, in a stable order.

        Directories holding a NOBACKUP_FILE marker are skipped with their
        whole subtree. A source that is a single file yields its name.

        Raises:
            ArchiveNotFoundError: If the source does not exist
        """
        if source.is_file():
            return [source.name]
        if not source.is_dir():
            raise ArchiveNotFoundError(f"Source not found: {source}")

        files: list[str] = []
        for current, dirs, names in os.walk(source):
            if NOBACKUP_FILE in names:
                dirs[:] = []
                continue
            dirs.sort()
            current_path = Path(current)
            for name in sorted(names):
                files.append((current_path / name).relative_to(source).as_posix())
        return files

    def _split(self, source: Path, files: list[str]) -> list[list[str]]:
        """Group files in order so each group stays under chunk_size."""
        groups: list[list[str]] = []
        current: list[str] = []
        current_size = 0
        base = source.parent if source.is_file() else source
        for name in files:
            size = (base / name).stat().st_size
            if current and current_size + size > self.chunk_size:
                groups.append(current)
                current, current_size = [], 0
            current.append(name)
            current_size += size
        if current:
            groups.append(current)
        return groups

    # =========================================================================
    # Chunks
    # =========================================================================

    def _data_folder(self, point: RestoringPoint, data_name: str) -> StoredFolder:
        try:
            return self.storage.get_folder(f"/{point.id}").new_folder(data_name)
        except StorageError as e:
            raise ArchiveCreateError(f"Cannot prepare folder for {data_name}: {e}") from e

    def _prepare_target(self, target: StoredFile) -> None:
        """Remove a previous archive under the same name."""
        if not target.exists():
            return
        try:
            target.delete()
        except StorageError as e:
            raise ArchiveDeleteError(f"Cannot remove previous archive {target.name}: {e}") from e

    def _finalize(self, chunk: RestoringChunk, target: StoredFile) -> RestoringChunk:
        if not target.exists():
            raise ArchiveNotFoundError(f"Archive {target.name} was not written")
        return chunk.with_payload(size=target.get_size(), checksum=md5_file(target.path))

    def create_chunks(self, point: RestoringPoint, data: RestoringData) -> list[RestoringChunk]:
        """
        Pack a dataset into one or more chunks.

        Args:
            point: Point the chunks belong to (its folder must exist)
            data: Dataset to pack

        Returns:
            Stored chunks, in packing order; empty if the dataset has no files

        Raises:
            ArchiveNotFoundError: If the dataset source is missing
            ArchiveCreateError: If an archive cannot be written
            ArchiveDeleteError: If a previous archive cannot be removed
        """
        source = self.resolve_source(data)
        files = self.list_files(source)
        if not files:
            logger.info(f"Dataset {data.name} has no files to back up")
            return []

        folder = self._data_folder(point, data.name)
        base = source.parent if source.is_file() else source
        chunks: list[RestoringChunk] = []

        for group in self._split(source, files):
            chunk = RestoringChunk.generated(data.name, files=tuple(group))
            target = folder.new_file(chunk.filename)
            self._prepare_target(target)
            try:
                with zipfile.ZipFile(target.path, "w", zipfile.ZIP_DEFLATED) as archive:
                    for name in group:
                        archive.write(base / name, arcname=name)
            except (OSError, zipfile.BadZipFile) as e:
                raise ArchiveCreateError(f"Failed to create {target.name}: {e}") from e

            chunk = self._finalize(chunk, target)
            logger.debug(
                f"Created chunk {data.name}/{chunk.name}: "
                f"{chunk.count} files, {chunk.size} bytes"
            )
            chunks.append(chunk)

        return chunks

    def create_content_chunk(
        self,
        point: RestoringPoint,
        data: RestoringData,
        filename: str,
        content: bytes | str,
    ) -> RestoringChunk:
        """
        Wrap raw content into a single static chunk.

        The chunk is not assembled from files, so its count is set to 1.

        Raises:
            ArchiveCreateError: If the archive cannot be written
            ArchiveDeleteError: If a previous archive cannot be removed
        """
        folder = self._data_folder(point, data.name)
        chunk = RestoringChunk.static(filename, count=1)
        target = folder.new_file(chunk.filename)
        self._prepare_target(target)
        try:
            with zipfile.ZipFile(target.path, "w", zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(filename, content)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveCreateError(f"Failed to create {target.name}: {e}") from e

        return self._finalize(chunk, target)

    def copy_app(self, point: RestoringPoint) -> None:
        """
        Package the application code into the point folder.

        Raises:
            AppCopyError: If the application cannot be read or written
            ScriptNotFoundError: If the restore entry script is missing
        """
        if not self.app_path.is_dir():
            raise AppCopyError(f"Application directory not found: {self.app_path}")
        if not (self.app_path / RESTORE_SCRIPT).is_file():
            raise ScriptNotFoundError(f"Restore script {RESTORE_SCRIPT} not found")

        try:
            target = self.storage.get_folder(f"/{point.id}").new_file(APP_ARCHIVE)
            with zipfile.ZipFile(target.path, "w", zipfile.ZIP_DEFLATED) as archive:
                for current, dirs, names in os.walk(self.app_path):
                    dirs[:] = sorted(d for d in dirs if d not in APP_EXCLUDED_DIRS)
                    for name in sorted(names):
                        path = Path(current) / name
                        arcname = path.relative_to(self.app_path.parent).as_posix()
                        archive.write(path, arcname=arcname)
        except (OSError, StorageError, zipfile.BadZipFile) as e:
            raise AppCopyError(f"Failed to copy application: {e}") from e

        logger.debug(f"Copied application into {point.id}/{APP_ARCHIVE}")

    # =========================================================================
    # Stored payloads
    # =========================================================================

    def _chunk_file(self, point_id: str, data_name: str, chunk: RestoringChunk) -> StoredFile:
        try:
            return self.storage.get_folder(f"/{point_id}/{data_name}").get_file(chunk.filename)
        except StorageError as e:
            raise ArchiveNotFoundError(
                f"Chunk {data_name}/{chunk.name} not found in storage"
            ) from e

    def stored_checksum(
        self, point_id: str, data_name: str, chunk: RestoringChunk
    ) -> str | None:
        """Checksum of the stored payload of a chunk, None if absent."""
        try:
            stored = self._chunk_file(point_id, data_name, chunk)
        except ArchiveNotFoundError:
            return None
        return md5_file(stored.path)

    def get_chunk_content(
        self, point: RestoringPoint, data_name: str, chunk_name: str
    ) -> RestoringChunk:
        """
        Get a chunk of a point with its stored payload attached.

        Returns:
            Copy of the recorded chunk, content set to the base64 payload

        Raises:
            ArchiveNotFoundError: If the chunk or its payload is missing
        """
        try:
            chunk = point.get_chunk(data_name, chunk_name)
        except ChunkNotFoundError as e:
            raise ArchiveNotFoundError(str(e)) from e

        stored = self._chunk_file(point.id, data_name, chunk)
        try:
            payload = stored.get_content()
        except StorageError as e:
            raise ArchiveNotFoundError(f"Cannot read {stored.name}: {e}") from e
        return chunk.with_content(base64.b64encode(payload).decode("ascii"))
