"""
Incremental dataset selection.

An incremental restoring point only backs up what changed since the last
complete point. How "changed" is computed is left to a strategy object so the
assembly pipeline does not depend on a particular delta algorithm.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pointsync.model.point import RestoringPoint

logger = logging.getLogger(__name__)


class IncrementalStrategy(Protocol):
    """Adds the datasets of an incremental restoring point."""

    def add_datasets(self, point: RestoringPoint) -> None:
        ...


class NoIncrementalStrategy:
    """Strategy used until a delta algorithm is configured: adds nothing."""

    def add_datasets(self, point: RestoringPoint) -> None:
        logger.warning(
            f"No incremental strategy configured, point {point.id} "
            "will only hold apps, config and database"
        )
