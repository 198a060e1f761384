"""Remote backup instances: HTTP client and lookup results."""

from pointsync.remote.client import (
    InvalidItemError,
    RemoteError,
    RemoteInstance,
    RemoteInstanceError,
    RemoteInstanceNotFoundError,
    RemoteResourceNotFoundError,
    RemoteService,
)
from pointsync.remote.results import (
    Found,
    NotFound,
    PointLookup,
    RemoteClient,
    TransportError,
    fetch_point,
    push_point,
)

__all__ = [
    "InvalidItemError",
    "RemoteError",
    "RemoteInstance",
    "RemoteInstanceError",
    "RemoteInstanceNotFoundError",
    "RemoteResourceNotFoundError",
    "RemoteService",
    "Found",
    "NotFound",
    "PointLookup",
    "RemoteClient",
    "TransportError",
    "fetch_point",
    "push_point",
]
