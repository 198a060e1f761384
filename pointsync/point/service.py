"""
Restoring point service.

Assembles new restoring points and gives access to the local ones:
- create(): the assembly pipeline, run stage by stage in a fixed order
- get_local_point() / list_local_points(): lookups in the point index
- get_chunk_content(): stored payload of a chunk, ready for upload
- generate_health(): classification of a point against its stored files
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from pointsync.archive.service import ArchiveService, NOBACKUP_FILE
from pointsync.config.system import SystemConfig
from pointsync.model.chunk import RestoringChunk
from pointsync.model.data import (
    APPS,
    CONFIG,
    DATA,
    SQL_DUMP_NAME,
    RestoringData,
    RootType,
)
from pointsync.model.health import RestoringHealth, classify
from pointsync.model.point import RestoringPoint
from pointsync.point.incremental import IncrementalStrategy, NoIncrementalStrategy
from pointsync.sqldump.mysql import SqlDumpMySQL
from pointsync.storage.appdata import AppData, StorageError, StorageNotFoundError
from pointsync.storage.db import PointDatabase, RestoringPointNotFoundError

# Metadata document of a point
METADATA_FILE = "metadata.json"

# Static name of the database dump chunk
SQL_DUMP_FILE = "backup_sql"

logger = logging.getLogger(__name__)


class FilesystemError(Exception):
    """Raised when the backup storage cannot be prepared or written."""

    pass


class PointService:
    """
    Creates restoring points and serves the local ones.

    All collaborators are injected; the storage handle is shared with the
    archive service and reused for the lifetime of the process.

    Attributes:
        storage: Storage the points live in
        archive: Packs datasets into chunks
        system: Host system values
        database: Point index
        sql_dump: Database dump collaborator
        incremental: Strategy adding the datasets of incremental points

    Usage:
        service = PointService(storage, archive, system, database)
        point = service.create(complete=True)

        point = service.get_local_point("20240101120000-abc...")
        health = service.generate_health(point)
    """

    def __init__(
        self,
        storage: AppData,
        archive: ArchiveService,
        system: SystemConfig,
        database: PointDatabase,
        sql_dump: Optional[SqlDumpMySQL] = None,
        incremental: Optional[IncrementalStrategy] = None,
    ):
        self.storage = storage
        self.archive = archive
        self.system = system
        self.database = database
        self.sql_dump = sql_dump or SqlDumpMySQL()
        self.incremental = incremental or NoIncrementalStrategy()

    # =========================================================================
    # Assembly
    # =========================================================================

    def create(self, complete: bool) -> RestoringPoint:
        """
        Assemble and seal a new restoring point.

        Stages run strictly in order; the first failure aborts the assembly
        and the point is never sealed (its metadata file stays empty).

        Args:
            complete: True for a complete point, False for an incremental one

        Returns:
            The sealed restoring point

        Raises:
            FilesystemError: If the storage cannot be prepared or written
            ArchiveCreateError, ArchiveDeleteError, ArchiveNotFoundError,
            AppCopyError, ScriptNotFoundError: From the archive service
            SqlDumpError: If the database dump fails
        """
        point = self._init_restoring_point(complete)
        logger.info(f"Assembling restoring point {point.id} (complete={complete})")

        try:
            self.archive.copy_app(point)
            self._create_chunks(point)
            self._backup_sql(point)
            self._generate_metadata(point)
        except Exception:
            logger.error(f"Assembly of restoring point {point.id} failed, point is incomplete")
            raise

        self.database.save_point(point)
        logger.info(f"Restoring point {point.id} sealed")
        return point

    def _init_restoring_point(self, complete: bool) -> RestoringPoint:
        self._init_backup_fs()

        point = RestoringPoint.new(self.system.get_version())
        try:
            folder = self.storage.new_folder(f"/{point.id}")
            # Reserve the id before the heavy work begins
            folder.new_file(METADATA_FILE).put_content("")
        except StorageError as e:
            raise FilesystemError(f"Cannot create folder for point {point.id}: {e}") from e

        self._add_restoring_data(point, complete)
        return point

    def _init_backup_fs(self) -> None:
        """Create the storage root and its backup exclusion marker if absent."""
        try:
            root = self.storage.new_folder("/")
            root.ensure_file(NOBACKUP_FILE)
        except StorageError as e:
            raise FilesystemError(f"Cannot initialize backup storage: {e}") from e

    def _add_restoring_data(self, point: RestoringPoint, complete: bool) -> None:
        if complete:
            point.add_restoring_data(RestoringData(RootType.ROOT_DATA, "", DATA))
        else:
            self.incremental.add_datasets(point)

        point.add_restoring_data(RestoringData(RootType.ROOT_NEXTCLOUD, "apps/", APPS))
        point.add_restoring_data(RestoringData(RootType.FILE_CONFIG, "", CONFIG))

        for path in self.system.get_custom_app_paths():
            point.add_restoring_data(RestoringData.custom_apps(path))

    def _create_chunks(self, point: RestoringPoint) -> None:
        for data in list(point.restoring_data):
            for chunk in self.archive.create_chunks(point, data):
                point.add_chunk(data.name, chunk)

    def _backup_sql(self, point: RestoringPoint) -> None:
        content = self.sql_dump.export(self.system.get_db_params())

        data = RestoringData(RootType.SQL_DUMP, "", SQL_DUMP_NAME)
        chunk = self.archive.create_content_chunk(point, data, SQL_DUMP_FILE, content)
        point.add_restoring_data(data)
        point.add_chunk(data.name, chunk)

    def _generate_metadata(self, point: RestoringPoint) -> None:
        """Write the metadata document; this is what seals the point."""
        try:
            folder = self.storage.get_folder(f"/{point.id}")
            folder.get_file(METADATA_FILE).put_content(point.to_json())
        except StorageError as e:
            raise FilesystemError(f"Cannot write metadata of point {point.id}: {e}") from e
        point.seal()

    # =========================================================================
    # Local points
    # =========================================================================

    def get_local_point(self, point_id: str) -> RestoringPoint:
        """
        Get a sealed local point, from the index or its metadata file.

        Raises:
            RestoringPointNotFoundError: If the point is unknown, incomplete or
                its metadata is unreadable
        """
        try:
            return self.database.get_point(point_id)
        except RestoringPointNotFoundError:
            logger.debug(f"Point {point_id} not indexed, reading its metadata file")

        try:
            folder = self.storage.get_folder(f"/{point_id}")
            document = folder.get_file(METADATA_FILE).get_content()
        except StorageNotFoundError as e:
            raise RestoringPointNotFoundError(f"Restoring point {point_id} not found") from e
        except StorageError as e:
            raise RestoringPointNotFoundError(
                f"Cannot read restoring point {point_id}: {e}"
            ) from e

        if not document.strip():
            raise RestoringPointNotFoundError(f"Restoring point {point_id} is incomplete")
        try:
            point = RestoringPoint.from_json(document.decode("utf-8"))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RestoringPointNotFoundError(
                f"Metadata of restoring point {point_id} is unreadable: {e}"
            ) from e
        self.database.save_point(point)
        return point

    def list_local_points(self) -> list[RestoringPoint]:
        return self.database.list_points()

    def get_chunk_content(
        self, point: RestoringPoint, data_name: str, chunk_name: str
    ) -> RestoringChunk:
        """
        Get a chunk with its stored payload attached.

        Raises:
            ArchiveNotFoundError: If the chunk or its payload is missing
        """
        return self.archive.get_chunk_content(point, data_name, chunk_name)

    def storage_chunk_index(self, point: RestoringPoint) -> dict[tuple[str, str], str]:
        """Checksums of the chunk payloads actually present in storage."""
        index: dict[tuple[str, str], str] = {}
        for data_name, chunk in point.iter_chunks():
            checksum = self.archive.stored_checksum(point.id, data_name, chunk)
            if checksum is not None:
                index[(data_name, chunk.name)] = checksum
        return index

    def generate_health(self, point: RestoringPoint) -> RestoringHealth:
        """
        Classify a point against its stored payloads and record the result.

        Returns:
            The new health record, also attached to the point
        """
        index = self.storage_chunk_index(point)
        health = classify(point, index, checked=int(time.time()))
        point.health = health
        try:
            self.database.update_health(point.id, health)
        except RestoringPointNotFoundError:
            self.database.save_point(point)
        logger.info(f"Health of point {point.id}: {health.status.name}")
        return health
