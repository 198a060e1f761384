"""Reconciliation of restoring points with remote instances."""

from pointsync.sync.engine import (
    InstanceReport,
    ReconcileOutcome,
    Reconciler,
    UploadOutcome,
)

__all__ = ["InstanceReport", "ReconcileOutcome", "Reconciler", "UploadOutcome"]
