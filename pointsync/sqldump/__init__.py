"""Database dumps for restoring points."""

from pointsync.sqldump.mysql import SqlDumpError, SqlDumpMySQL

__all__ = ["SqlDumpError", "SqlDumpMySQL"]
