"""
Filesystem storage for restoring points.

Provides an application-data style storage rooted in one directory, with
folders and files addressed by relative paths. Missing entries and permission
problems raise dedicated exceptions, distinct from generic I/O failures.

The storage handle is opened once per process and passed explicitly to the
services that need it.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage operation fails."""

    pass


class StorageNotFoundError(StorageError):
    """Raised when a folder or file does not exist."""

    pass


class StorageNotPermittedError(StorageError):
    """Raised when the process is not allowed to access a folder or file."""

    pass


def _relative(path: str) -> PurePosixPath:
    """Normalize a storage path, refusing to escape the storage root."""
    relative = PurePosixPath("/" + path.strip("/")).relative_to("/")
    if ".." in relative.parts:
        raise StorageNotPermittedError(f"Invalid storage path: {path}")
    return relative


class StoredFile:
    """A file in storage."""

    def __init__(self, path: Path, name: str):
        self.path = path
        self.name = name

    def exists(self) -> bool:
        return self.path.is_file()

    def put_content(self, content: bytes | str) -> None:
        """
        Replace the file content.

        The content is written to a sibling temporary file first and moved in
        place, so readers never see a partially written file.
        """
        data = content.encode("utf-8") if isinstance(content, str) else content
        tmp = self.path.with_name(f".{self.path.name}.part")
        try:
            tmp.write_bytes(data)
            tmp.replace(self.path)
        except PermissionError as e:
            raise StorageNotPermittedError(f"Cannot write {self.name}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to write {self.name}: {e}") from e

    def get_content(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {self.name}") from e
        except PermissionError as e:
            raise StorageNotPermittedError(f"Cannot read {self.name}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {self.name}: {e}") from e

    def get_size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {self.name}") from e

    def delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {self.name}") from e
        except PermissionError as e:
            raise StorageNotPermittedError(f"Cannot delete {self.name}: {e}") from e


class StoredFolder:
    """A folder in storage."""

    def __init__(self, path: Path, name: str):
        self.path = path
        self.name = name

    def new_file(self, name: str) -> StoredFile:
        """Get a handle on a file of this folder; nothing is written yet."""
        return StoredFile(self.path / _relative(name), f"{self.name}/{name}")

    def get_file(self, name: str) -> StoredFile:
        stored = self.new_file(name)
        if not stored.exists():
            raise StorageNotFoundError(f"File not found: {stored.name}")
        return stored

    def ensure_file(self, name: str) -> StoredFile:
        """
        Create an empty file unless it already exists.

        Uses an exclusive create, so concurrent callers never race on a
        read-then-create sequence.
        """
        stored = self.new_file(name)
        try:
            with open(stored.path, "xb"):
                pass
            logger.debug(f"Created {stored.name}")
        except FileExistsError:
            pass
        except PermissionError as e:
            raise StorageNotPermittedError(f"Cannot create {stored.name}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to create {stored.name}: {e}") from e
        return stored

    def new_folder(self, name: str) -> StoredFolder:
        return _make_folder(self.path / _relative(name), f"{self.name}/{name}")

    def get_folder(self, name: str) -> StoredFolder:
        return _open_folder(self.path / _relative(name), f"{self.name}/{name}")


def _make_folder(path: Path, name: str) -> StoredFolder:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise StorageNotPermittedError(f"Cannot create folder {name}: {e}") from e
    except OSError as e:
        raise StorageError(f"Failed to create folder {name}: {e}") from e
    return StoredFolder(path, name)


def _open_folder(path: Path, name: str) -> StoredFolder:
    if not path.is_dir():
        raise StorageNotFoundError(f"Folder not found: {name}")
    return StoredFolder(path, name)


class AppData:
    """
    Storage root for restoring points.

    Attributes:
        root: Directory all storage paths are relative to

    Usage:
        appdata = AppData(Path("~/.pointsync/storage"))
        folder = appdata.new_folder("/20240101120000-abc")
        folder.new_file("metadata.json").put_content("")
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()

    def new_folder(self, path: str) -> StoredFolder:
        """Create a folder (no-op if it exists) and return it."""
        relative = _relative(path)
        return _make_folder(self.root / relative, "/" + str(relative).lstrip("."))

    def get_folder(self, path: str) -> StoredFolder:
        """
        Get an existing folder.

        Raises:
            StorageNotFoundError: If the folder does not exist
        """
        relative = _relative(path)
        return _open_folder(self.root / relative, "/" + str(relative).lstrip("."))
