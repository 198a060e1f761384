"""
Reconciliation of restoring points with remote instances.

For each remote instance, brings the remote copy of a sealed local point to
the same state as the local one:
1. Fetch the point remotely; create it from metadata if the instance lacks it
2. Make sure the remote point carries a health record
3. Upload every chunk the health record does not report as OK
4. Ask for a refreshed health record and report convergence or progress

Instances are reconciled concurrently with bounded parallelism, and uploads
within one instance run concurrently up to a cap. Failures stay local to the
chunk or instance they happened on.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Optional

from pointsync.archive.service import ArchiveError
from pointsync.model.chunk import RestoringChunk
from pointsync.model.health import (
    ChunkHealthStatus,
    RestoringHealth,
    chunk_key,
)
from pointsync.model.point import RestoringPoint
from pointsync.point.service import PointService
from pointsync.remote.client import RemoteError
from pointsync.remote.results import (
    Found,
    NotFound,
    RemoteClient,
    fetch_point,
    push_point,
)
from pointsync.storage.appdata import StorageError

DEFAULT_MAX_PARALLEL_INSTANCES = 4
DEFAULT_MAX_PARALLEL_UPLOADS = 2
DEFAULT_INSTANCE_TIMEOUT = 3600.0  # seconds

logger = logging.getLogger(__name__)


class ReconcileOutcome:
    """How reconciliation with one instance ended."""

    CONVERGED = "converged"  # every chunk reported OK
    PARTIAL = "partial"  # some chunks still not OK, see counts
    UNREACHABLE = "unreachable"  # the instance could not be asked
    CREATE_FAILED = "create_failed"  # point missing remotely and not creatable
    NO_HEALTH = "no_health"  # the instance gave no health record
    TIMEOUT = "timeout"  # the instance did not finish in time


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of uploading one chunk.

    Attributes:
        data_name: Dataset the chunk belongs to
        chunk_name: Name of the chunk
        status: Remote status of the chunk that triggered the upload
        uploaded: True if the upload succeeded
        error: Operator message when it did not
    """

    data_name: str
    chunk_name: str
    status: ChunkHealthStatus
    uploaded: bool
    error: str = ""

    @property
    def key(self) -> str:
        return chunk_key(self.data_name, self.chunk_name)


@dataclass
class InstanceReport:
    """
    Report of the reconciliation of one point with one instance.

    Attributes:
        instance: Instance name
        point_id: Id of the reconciled point
        outcome: One of the ReconcileOutcome values
        created: True if the point was created on the instance during this run
        health_before: Remote health record the uploads were decided from
        health_after: Remote health record after the uploads
        uploads: Upload outcomes, in chunk order
        messages: Operator-visible messages, in the order they happened
    """

    instance: str
    point_id: str
    outcome: str = ""
    created: bool = False
    health_before: Optional[RestoringHealth] = None
    health_after: Optional[RestoringHealth] = None
    uploads: list[UploadOutcome] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.outcome == ReconcileOutcome.CONVERGED

    @property
    def uploaded_count(self) -> int:
        return sum(1 for upload in self.uploads if upload.uploaded)

    @property
    def failed_uploads(self) -> list[UploadOutcome]:
        return [upload for upload in self.uploads if not upload.uploaded]

    def add_message(self, message: str) -> None:
        self.messages.append(message)

    def summary(self) -> str:
        """
        Generate a human-readable summary of the reconciliation.

        Returns:
            Formatted string with outcome, uploads, health counts and messages
        """
        lines = [f"Instance {self.instance}: {self.outcome}"]

        if self.created:
            lines.append(f"  Point {self.point_id} created on instance")

        if self.uploads:
            lines.append(
                f"  Uploads: {self.uploaded_count} succeeded, "
                f"{len(self.failed_uploads)} failed"
            )
            for upload in self.failed_uploads:
                lines.append(f"    {upload.key}: {upload.error}")

        health = self.health_after or self.health_before
        if health is not None:
            counts = health.count_by_status()
            lines.append(
                f"  Chunks: {counts[ChunkHealthStatus.OK]} ok, "
                f"{counts[ChunkHealthStatus.MISSING]} missing, "
                f"{counts[ChunkHealthStatus.CHECKSUM]} faulty"
            )

        for message in self.messages:
            lines.append(f"  {message}")

        return "\n".join(lines)


class Reconciler:
    """
    Reconciles local restoring points with remote instances.

    Attributes:
        remote: Remote instance collaborator
        point_service: Serves the local chunk payloads
        max_parallel_instances: Instances reconciled at the same time
        max_parallel_uploads: Chunk uploads in flight per instance
        instance_timeout: Seconds a batch waits for each wave of instances

    Usage:
        reconciler = Reconciler(remote, point_service)
        report = reconciler.reconcile("backup2", point)
        print(report.summary())

        reports = reconciler.reconcile_all(["backup2", "backup3"], point)
    """

    def __init__(
        self,
        remote: RemoteClient,
        point_service: PointService,
        max_parallel_instances: int = DEFAULT_MAX_PARALLEL_INSTANCES,
        max_parallel_uploads: int = DEFAULT_MAX_PARALLEL_UPLOADS,
        instance_timeout: float = DEFAULT_INSTANCE_TIMEOUT,
    ):
        self.remote = remote
        self.point_service = point_service
        self.max_parallel_instances = max(1, max_parallel_instances)
        self.max_parallel_uploads = max(1, max_parallel_uploads)
        self.instance_timeout = instance_timeout

    def reconcile(
        self,
        instance: str,
        point: RestoringPoint,
        force_health_refresh: bool = False,
    ) -> InstanceReport:
        """
        Reconcile a local point with one remote instance.

        Never raises for remote or storage failures: they are logged and
        recorded in the report.

        Args:
            instance: Configured instance name
            point: Sealed local restoring point
            force_health_refresh: Ask the instance to recompute its health
                record before deciding what to upload

        Returns:
            InstanceReport describing what happened
        """
        report = InstanceReport(instance=instance, point_id=point.id)
        logger.info(f"Reconciling point {point.id} with {instance}")

        remote_point = self._fetch_or_create(instance, point, force_health_refresh, report)
        if remote_point is None:
            return report

        health = self._ensure_health(instance, point, remote_point, report)
        if health is None:
            return report
        report.health_before = health

        pending = self._pending_chunks(point, health)
        if not pending:
            report.health_after = health
            self._conclude(report, health)
            return report

        logger.info(f"{len(pending)} chunk(s) of point {point.id} to upload to {instance}")
        report.uploads = self._upload_chunks(instance, point, pending)

        if report.uploaded_count:
            refreshed = fetch_point(self.remote, instance, point.id, force_health_refresh=True)
            if isinstance(refreshed, Found) and refreshed.point.has_health():
                report.health_after = refreshed.point.health
            else:
                reason = getattr(refreshed, "reason", "no health record returned")
                report.add_message(f"Health refresh after upload failed: {reason}")
        else:
            report.health_after = health

        self._conclude(report, report.health_after)
        return report

    def reconcile_all(
        self,
        instances: list[str],
        point: RestoringPoint,
        force_health_refresh: bool = False,
    ) -> list[InstanceReport]:
        """
        Reconcile a local point with several instances concurrently.

        An instance still running when its wave's deadline passes is reported
        as timed out; the other instances are unaffected.

        Returns:
            One InstanceReport per instance, in the order given
        """
        if not instances:
            return []

        workers = min(self.max_parallel_instances, len(instances))
        waves = math.ceil(len(instances) / workers)
        deadline = time.monotonic() + self.instance_timeout * waves

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reconcile")
        futures = [
            executor.submit(self.reconcile, instance, point, force_health_refresh)
            for instance in instances
        ]

        reports: list[InstanceReport] = []
        try:
            for instance, future in zip(instances, futures):
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    reports.append(future.result(timeout=remaining))
                except FutureTimeoutError:
                    future.cancel()
                    logger.error(f"Reconciliation with {instance} timed out")
                    report = InstanceReport(
                        instance=instance,
                        point_id=point.id,
                        outcome=ReconcileOutcome.TIMEOUT,
                    )
                    report.add_message(
                        f"Instance did not finish within {self.instance_timeout:.0f}s"
                    )
                    reports.append(report)
                except Exception as e:
                    logger.exception(f"Reconciliation with {instance} failed unexpectedly")
                    report = InstanceReport(
                        instance=instance,
                        point_id=point.id,
                        outcome=ReconcileOutcome.UNREACHABLE,
                    )
                    report.add_message(f"Unexpected error: {e}")
                    reports.append(report)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return reports

    # =========================================================================
    # Steps
    # =========================================================================

    def _fetch_or_create(
        self,
        instance: str,
        point: RestoringPoint,
        force_health_refresh: bool,
        report: InstanceReport,
    ) -> Optional[RestoringPoint]:
        lookup = fetch_point(self.remote, instance, point.id, force_health_refresh)

        if isinstance(lookup, Found):
            return lookup.point

        if isinstance(lookup, NotFound):
            report.add_message(f"Point {point.id} not found on instance, creating it")
            created = push_point(self.remote, instance, point)
            if isinstance(created, Found):
                report.created = True
                return created.point
            report.outcome = ReconcileOutcome.CREATE_FAILED
            report.add_message(f"Cannot create point on instance: {created.reason}")
            logger.error(f"Point {point.id} could not be created on {instance}, skipping")
            return None

        report.outcome = ReconcileOutcome.UNREACHABLE
        report.add_message(f"Instance unreachable: {lookup.reason}")
        logger.error(f"Instance {instance} unreachable: {lookup.reason}")
        return None

    def _ensure_health(
        self,
        instance: str,
        point: RestoringPoint,
        remote_point: RestoringPoint,
        report: InstanceReport,
    ) -> Optional[RestoringHealth]:
        if remote_point.health is not None:
            return remote_point.health

        logger.debug(f"Point {point.id} has no health on {instance}, requesting one")
        lookup = fetch_point(self.remote, instance, point.id, force_health_refresh=True)
        if isinstance(lookup, Found) and lookup.point.health is not None:
            return lookup.point.health

        report.outcome = ReconcileOutcome.NO_HEALTH
        if isinstance(lookup, Found):
            report.add_message("Instance returned no health record")
        else:
            report.add_message(f"Cannot get health record: {lookup.reason}")
        logger.error(f"No health record for point {point.id} on {instance}")
        return None

    @staticmethod
    def _pending_chunks(
        point: RestoringPoint, health: RestoringHealth
    ) -> list[tuple[str, RestoringChunk, ChunkHealthStatus]]:
        """Local chunks the remote does not report as OK, in chunk order."""
        pending = []
        for data_name, chunk in point.iter_chunks():
            entry = health.chunks.get(chunk_key(data_name, chunk.name))
            status = entry.status if entry is not None else ChunkHealthStatus.UNKNOWN
            if status != ChunkHealthStatus.OK:
                pending.append((data_name, chunk, status))
        return pending

    def _upload_chunks(
        self,
        instance: str,
        point: RestoringPoint,
        pending: list[tuple[str, RestoringChunk, ChunkHealthStatus]],
    ) -> list[UploadOutcome]:
        workers = min(self.max_parallel_uploads, len(pending))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload") as executor:
            return list(
                executor.map(
                    lambda item: self._upload_chunk(instance, point, *item), pending
                )
            )

    def _upload_chunk(
        self,
        instance: str,
        point: RestoringPoint,
        data_name: str,
        chunk: RestoringChunk,
        status: ChunkHealthStatus,
    ) -> UploadOutcome:
        key = chunk_key(data_name, chunk.name)
        try:
            with_content = self.point_service.get_chunk_content(point, data_name, chunk.name)
            self.remote.upload_chunk(instance, point, data_name, with_content)
        except (ArchiveError, StorageError, RemoteError) as e:
            logger.error(f"Upload of {key} to {instance} failed: {e}")
            return UploadOutcome(data_name, chunk.name, status, uploaded=False, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error uploading {key} to {instance}")
            return UploadOutcome(data_name, chunk.name, status, uploaded=False, error=str(e))

        logger.info(f"Uploaded {key} to {instance} (was {status.name})")
        return UploadOutcome(data_name, chunk.name, status, uploaded=True)

    @staticmethod
    def _conclude(report: InstanceReport, health: Optional[RestoringHealth]) -> None:
        if health is not None and health.is_ok():
            report.outcome = ReconcileOutcome.CONVERGED
            logger.info(f"Point {report.point_id} converged on {report.instance}")
            return

        report.outcome = ReconcileOutcome.PARTIAL
        if health is not None:
            counts = health.count_by_status()
            report.add_message(
                f"Not converged: {counts[ChunkHealthStatus.OK]} ok, "
                f"{counts[ChunkHealthStatus.MISSING]} missing, "
                f"{counts[ChunkHealthStatus.CHECKSUM]} faulty"
            )
        logger.warning(f"Point {report.point_id} not converged on {report.instance}")
