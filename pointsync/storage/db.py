"""
SQLite database module for the restoring point index.

Provides persistent storage for sealed restoring points (metadata and last
known health) and for the log of changed files collected from file events.
"""

import json
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

from pointsync.model.health import RestoringHealth
from pointsync.model.point import RestoringPoint

# Instance name used for points stored on this host
LOCAL_INSTANCE = ""

# SQL Schema for the point index and changed files tables
SCHEMA = """
CREATE TABLE IF NOT EXISTS restoring_point (
    id INTEGER PRIMARY KEY,
    uid TEXT NOT NULL,
    instance TEXT NOT NULL DEFAULT '',
    nc TEXT,
    metadata TEXT NOT NULL,
    health TEXT,
    date INTEGER NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(uid, instance)
);

CREATE INDEX IF NOT EXISTS idx_restoring_point_uid ON restoring_point(uid);
CREATE INDEX IF NOT EXISTS idx_restoring_point_date ON restoring_point(date);

CREATE TABLE IF NOT EXISTS changed_files (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL,
    event TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(path)
);
"""


class RestoringPointNotFoundError(Exception):
    """Raised when a restoring point is not known."""

    pass


class PointDatabase:
    """
    SQLite database manager for the restoring point index.

    Provides methods for:
    - Recording sealed restoring points per instance
    - Looking points up by id and listing them by date
    - Refreshing the health record of a point
    - Logging files changed since the last backup

    Usage:
        db = PointDatabase('/path/to/points.db')
        db.initialize()

        # Or use in-memory for testing:
        db = PointDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the tables if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Restoring Point Operations
    # =========================================================================

    def save_point(self, point: RestoringPoint, instance: str = LOCAL_INSTANCE) -> None:
        """
        Insert or replace the index entry of a restoring point.

        Args:
            point: The sealed restoring point
            instance: Instance the point is stored on ('' for local)
        """
        health = json.dumps(point.health.to_dict()) if point.health else None
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO restoring_point (uid, instance, nc, metadata, health, date)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(uid, instance) DO UPDATE SET
                    nc = excluded.nc,
                    metadata = excluded.metadata,
                    health = excluded.health,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    point.id,
                    instance,
                    json.dumps(point.nc_version),
                    point.to_json(),
                    health,
                    point.date,
                ),
            )

    def get_point(self, point_id: str, instance: str = LOCAL_INSTANCE) -> RestoringPoint:
        """
        Get a restoring point by id.

        Raises:
            RestoringPointNotFoundError: If no such point is indexed
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT metadata, health FROM restoring_point "
                "WHERE uid = ? AND instance = ?",
                (point_id, instance),
            )
            row = cursor.fetchone()
            if row is None:
                raise RestoringPointNotFoundError(f"Restoring point {point_id} not found")
            return self._row_to_point(row)

    def list_points(self, instance: str = LOCAL_INSTANCE) -> list[RestoringPoint]:
        """List indexed points of an instance, oldest first."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT metadata, health FROM restoring_point "
                "WHERE instance = ? ORDER BY date, uid",
                (instance,),
            )
            return [self._row_to_point(row) for row in cursor.fetchall()]

    def update_health(
        self,
        point_id: str,
        health: RestoringHealth,
        instance: str = LOCAL_INSTANCE,
    ) -> None:
        """
        Store a refreshed health record.

        Raises:
            RestoringPointNotFoundError: If no such point is indexed
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "UPDATE restoring_point SET health = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE uid = ? AND instance = ?",
                (json.dumps(health.to_dict()), point_id, instance),
            )
            if cursor.rowcount == 0:
                raise RestoringPointNotFoundError(f"Restoring point {point_id} not found")

    @staticmethod
    def _row_to_point(row: sqlite3.Row) -> RestoringPoint:
        point = RestoringPoint.from_json(row["metadata"])
        if row["health"]:
            point.health = RestoringHealth.from_dict(json.loads(row["health"]))
        return point

    # =========================================================================
    # Changed Files Operations
    # =========================================================================

    def add_changed_file(self, path: str, event: str) -> None:
        """
        Record a changed file, keeping one entry per path.

        Args:
            path: Path of the changed file
            event: Kind of event that reported the change
        """
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO changed_files (path, event) VALUES (?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    event = excluded.event,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (path, event),
            )

    def list_changed_files(self) -> list[dict[str, Any]]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT path, event, updated_at FROM changed_files ORDER BY path"
            )
            return [dict(row) for row in cursor.fetchall()]
