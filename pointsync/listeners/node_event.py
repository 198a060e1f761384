"""
File change events.

Raw node events arrive as loosely shaped dicts from whatever watches the
files. They are decoded once, at the boundary, into one of three fixed event
types before anything else looks at them. Each event resolves to the path of
the file that changed, which is recorded in the changed files log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from pointsync.storage.db import PointDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeCreated:
    path: str

    @property
    def changed_path(self) -> str:
        return self.path


@dataclass(frozen=True)
class NodeWritten:
    path: str

    @property
    def changed_path(self) -> str:
        return self.path


@dataclass(frozen=True)
class NodeRenamed:
    """A node moved from source to path; the new location is what changed."""

    source: str
    path: str

    @property
    def changed_path(self) -> str:
        return self.path


NodeEvent = Union[NodeCreated, NodeWritten, NodeRenamed]

# Event kind as found in raw payloads and in the changed files log
EVENT_CREATED = "created"
EVENT_WRITTEN = "written"
EVENT_RENAMED = "renamed"

_EVENT_KINDS = {
    NodeCreated: EVENT_CREATED,
    NodeWritten: EVENT_WRITTEN,
    NodeRenamed: EVENT_RENAMED,
}


@dataclass(frozen=True)
class ChangedFile:
    """A file reported as changed since it was last backed up."""

    path: str


def event_kind(event: NodeEvent) -> str:
    return _EVENT_KINDS[type(event)]


def _require_path(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Node event is missing a '{key}' path: {payload!r}")
    return value


def decode_event(payload: dict[str, Any]) -> NodeEvent:
    """
    Decode a raw event payload.

    Accepted shapes:
        {"type": "created", "path": "..."}
        {"type": "written", "path": "..."}
        {"type": "renamed", "source": "...", "target": "..."}

    Raises:
        ValueError: If the payload has an unknown type or misses a path
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Node event must be a mapping, got {type(payload).__name__}")

    kind = payload.get("type")
    if kind == EVENT_CREATED:
        return NodeCreated(_require_path(payload, "path"))
    if kind == EVENT_WRITTEN:
        return NodeWritten(_require_path(payload, "path"))
    if kind == EVENT_RENAMED:
        return NodeRenamed(
            source=_require_path(payload, "source"),
            path=_require_path(payload, "target"),
        )
    raise ValueError(f"Unknown node event type: {kind!r}")


class NodeEventListener:
    """
    Records the files node events report as changed.

    Usage:
        listener = NodeEventListener(database)
        listener.handle(decode_event({"type": "written", "path": "/alice/files/a.txt"}))
    """

    def __init__(self, database: PointDatabase):
        self.database = database

    def handle(self, event: NodeEvent) -> ChangedFile:
        changed = ChangedFile(event.changed_path)
        self.database.add_changed_file(changed.path, event_kind(event))
        logger.debug(f"Changed file recorded: {changed.path} ({event_kind(event)})")
        return changed

    def changed_files(self) -> list[ChangedFile]:
        return [ChangedFile(row["path"]) for row in self.database.list_changed_files()]
