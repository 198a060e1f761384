"""
HTTP client for remote backup instances.

Provides a high-level interface to the restoring point API of remote
instances for:
- Fetching a restoring point, optionally asking for a fresh health record
- Creating a restoring point remotely from its metadata
- Uploading chunk payloads
- Exponential backoff retry logic for rate limits and server errors

API layout, relative to the instance url:
    GET  /point/<id>?health=0|1
    PUT  /point
    PUT  /point/<id>/<data name>/<chunk name>
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests.exceptions import RequestException

from pointsync import __version__
from pointsync.model.chunk import RestoringChunk
from pointsync.model.point import RestoringPoint
from pointsync.storage.db import RestoringPointNotFoundError

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 30.0  # seconds

# HTTP timeout per request
DEFAULT_TIMEOUT = 30.0  # seconds

USER_AGENT = f"pointsync/{__version__}"

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """Base exception for remote instance operations."""

    pass


class RemoteInstanceNotFoundError(RemoteError):
    """Raised when an instance name is not configured."""

    pass


class RemoteInstanceError(RemoteError):
    """Raised when an instance is unreachable, misconfigured or failing."""

    pass


class RemoteResourceNotFoundError(RemoteError):
    """Raised when an instance does not know the requested resource."""

    pass


class InvalidItemError(RemoteError):
    """Raised when a payload sent or received is not a valid item."""

    pass


@dataclass(frozen=True)
class RemoteInstance:
    """
    A configured remote instance.

    Attributes:
        name: Name the instance is referred to by
        url: Base url of the instance API
        token: Bearer token, empty when the instance needs none
    """

    name: str
    url: str
    token: str = ""

    @classmethod
    def from_config(cls, name: str, data: dict[str, Any]) -> RemoteInstance:
        return cls(name=name, url=str(data["url"]).rstrip("/"), token=str(data.get("token", "")))


class RemoteService:
    """
    Client for the restoring point API of remote instances.

    Attributes:
        instances: Configured instances by name
        timeout: Timeout of each HTTP request, in seconds

    Usage:
        remote = RemoteService.from_config(config)

        point = remote.get_point("backup2.local", point_id)
        point = remote.get_point("backup2.local", point_id, force_health_refresh=True)
        remote.create_point("backup2.local", point)
        remote.upload_chunk("backup2.local", point, "data", chunk_with_content)
    """

    def __init__(
        self,
        instances: dict[str, RemoteInstance],
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        session: Optional[requests.Session] = None,
    ):
        self.instances = instances
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> RemoteService:
        instances = {
            name: RemoteInstance.from_config(name, data)
            for name, data in (config.get("remote_instances") or {}).items()
        }
        return cls(
            instances,
            timeout=float(config.get("remote_timeout", DEFAULT_TIMEOUT)),
            max_retries=int(config.get("remote_max_retries", DEFAULT_MAX_RETRIES)),
        )

    def get_instance(self, name: str) -> RemoteInstance:
        """
        Get a configured instance.

        Raises:
            RemoteInstanceNotFoundError: If no instance has this name
        """
        try:
            return self.instances[name]
        except KeyError:
            raise RemoteInstanceNotFoundError(f"Remote instance {name} is not configured") from None

    def _request(
        self,
        instance: RemoteInstance,
        method: str,
        path: str,
        operation_name: str,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send a request with exponential backoff retry.

        Returns:
            The successful response

        Raises:
            RemoteResourceNotFoundError: On 404
            InvalidItemError: On 400 and 422
            RemoteInstanceError: On connection failures, timeouts and error
                statuses once retries are exhausted
        """
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if instance.token:
            headers["Authorization"] = f"Bearer {instance.token}"

        url = f"{instance.url}{path}"
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            last_attempt = attempt >= self.max_retries - 1
            try:
                response = self.session.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
            except RequestException as e:
                if not last_attempt:
                    logger.warning(
                        f"{operation_name} on {instance.name} failed ({e}), "
                        f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise RemoteInstanceError(
                    f"{instance.name} is unreachable: {e}"
                ) from e

            status_code = response.status_code
            if status_code < 400:
                return response

            if status_code == 404:
                raise RemoteResourceNotFoundError(
                    f"{operation_name}: resource not found on {instance.name}"
                )

            if (status_code == 429 or status_code >= 500) and not last_attempt:
                logger.warning(
                    f"{operation_name} on {instance.name} returned {status_code}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)
                continue

            if status_code in (400, 422):
                raise InvalidItemError(
                    f"{operation_name}: {instance.name} rejected the item ({status_code})"
                )

            if status_code in (401, 403):
                raise RemoteInstanceError(
                    f"{instance.name} refused the request ({status_code}), check its token"
                )

            raise RemoteInstanceError(
                f"{operation_name} on {instance.name} failed with status {status_code}"
            )

        # Only reached when max_retries < 1
        raise RemoteInstanceError(f"{operation_name} on {instance.name} failed after all retries")

    @staticmethod
    def _parse_point(response: requests.Response, instance: RemoteInstance) -> RestoringPoint:
        try:
            data = response.json()
            if not isinstance(data, dict) or not data.get("id"):
                raise ValueError("missing point id")
            return RestoringPoint.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidItemError(f"Invalid restoring point from {instance.name}: {e}") from e

    def get_point(
        self, instance_name: str, point_id: str, force_health_refresh: bool = False
    ) -> RestoringPoint:
        """
        Fetch a restoring point from an instance.

        Args:
            instance_name: Configured instance name
            point_id: Id of the point
            force_health_refresh: Ask the instance to recompute the point health

        Raises:
            RestoringPointNotFoundError: If the instance does not have the point
            RemoteInstanceNotFoundError, RemoteInstanceError, InvalidItemError
        """
        instance = self.get_instance(instance_name)
        logger.debug(f"Fetching point {point_id} from {instance.name}")
        try:
            response = self._request(
                instance,
                "GET",
                f"/point/{point_id}",
                "get_point",
                params={"health": int(force_health_refresh)},
            )
        except RemoteResourceNotFoundError as e:
            raise RestoringPointNotFoundError(
                f"Restoring point {point_id} not found on {instance.name}"
            ) from e
        return self._parse_point(response, instance)

    def create_point(self, instance_name: str, point: RestoringPoint) -> RestoringPoint:
        """
        Create a restoring point on an instance from its metadata.

        Only metadata is sent, never chunk payloads nor local health.

        Returns:
            The point as stored by the instance

        Raises:
            InvalidItemError: If the instance rejects or returns an invalid point
            RemoteInstanceNotFoundError, RemoteInstanceError,
            RemoteResourceNotFoundError
        """
        instance = self.get_instance(instance_name)
        metadata = point.to_dict()
        metadata.pop("health", None)

        logger.debug(f"Creating point {point.id} on {instance.name}")
        response = self._request(instance, "PUT", "/point", "create_point", json=metadata)
        return self._parse_point(response, instance)

    def upload_chunk(
        self,
        instance_name: str,
        point: RestoringPoint,
        data_name: str,
        chunk: RestoringChunk,
    ) -> None:
        """
        Upload a chunk payload to an instance.

        Args:
            instance_name: Configured instance name
            point: Point the chunk belongs to
            data_name: Dataset the chunk belongs to
            chunk: Chunk carrying its base64 payload in content

        Raises:
            InvalidItemError: If the chunk carries no payload or the instance
                rejects it
            RemoteInstanceNotFoundError, RemoteInstanceError,
            RemoteResourceNotFoundError
        """
        if not chunk.content:
            raise InvalidItemError(f"Chunk {data_name}/{chunk.name} has no content to upload")

        instance = self.get_instance(instance_name)
        logger.debug(f"Uploading {data_name}/{chunk.name} to {instance.name}")
        self._request(
            instance,
            "PUT",
            f"/point/{point.id}/{data_name}/{chunk.name}",
            "upload_chunk",
            json=chunk.to_dict(),
        )
