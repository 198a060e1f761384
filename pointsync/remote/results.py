"""
Lookup results for remote restoring points.

Remote lookups can end three ways: the point is there, the instance does not
have it, or the instance could not be asked at all. Callers get one of the
result classes below instead of having to know which exceptions mean what.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Union

from pointsync.model.chunk import RestoringChunk
from pointsync.model.point import RestoringPoint
from pointsync.remote.client import RemoteError
from pointsync.storage.db import RestoringPointNotFoundError

logger = logging.getLogger(__name__)


class RemoteClient(Protocol):
    """Operations a remote instance collaborator provides."""

    def get_point(
        self, instance_name: str, point_id: str, force_health_refresh: bool = False
    ) -> RestoringPoint:
        ...

    def create_point(self, instance_name: str, point: RestoringPoint) -> RestoringPoint:
        ...

    def upload_chunk(
        self,
        instance_name: str,
        point: RestoringPoint,
        data_name: str,
        chunk: RestoringChunk,
    ) -> None:
        ...


@dataclass(frozen=True)
class Found:
    """The remote instance returned the point."""

    point: RestoringPoint


@dataclass(frozen=True)
class NotFound:
    """The remote instance answered but does not have the point."""

    reason: str


@dataclass(frozen=True)
class TransportError:
    """The remote instance could not be asked or gave an unusable answer."""

    reason: str
    error: str = ""


PointLookup = Union[Found, NotFound, TransportError]


def fetch_point(
    remote: RemoteClient,
    instance_name: str,
    point_id: str,
    force_health_refresh: bool = False,
) -> PointLookup:
    """
    Fetch a point from a remote instance as a lookup result.

    Args:
        remote: Remote instance collaborator
        instance_name: Configured instance name
        point_id: Id of the point
        force_health_refresh: Ask the instance to recompute the point health

    Returns:
        Found, NotFound or TransportError
    """
    try:
        return Found(remote.get_point(instance_name, point_id, force_health_refresh))
    except RestoringPointNotFoundError as e:
        logger.debug(f"Point {point_id} not on {instance_name}: {e}")
        return NotFound(str(e))
    except RemoteError as e:
        logger.warning(f"Cannot fetch point {point_id} from {instance_name}: {e}")
        return TransportError(str(e), type(e).__name__)


def push_point(
    remote: RemoteClient, instance_name: str, point: RestoringPoint
) -> Union[Found, TransportError]:
    """
    Create a point on a remote instance from its metadata.

    Returns:
        Found with the point as the instance stored it, or TransportError
    """
    try:
        return Found(remote.create_point(instance_name, point))
    except RemoteError as e:
        logger.warning(f"Cannot create point {point.id} on {instance_name}: {e}")
        return TransportError(str(e), type(e).__name__)
