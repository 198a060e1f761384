"""Listeners for file change events."""

from pointsync.listeners.node_event import (
    ChangedFile,
    NodeCreated,
    NodeEvent,
    NodeEventListener,
    NodeRenamed,
    NodeWritten,
    decode_event,
)

__all__ = [
    "ChangedFile",
    "NodeCreated",
    "NodeEvent",
    "NodeEventListener",
    "NodeRenamed",
    "NodeWritten",
    "decode_event",
]
