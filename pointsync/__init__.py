"""
pointsync - Restoring point backups replicated to remote instances.

Assembles checksummed restoring points on local storage and reconciles them
with remote backup instances, uploading only the chunks a remote reports as
missing or faulty.
"""

__version__ = "0.1.0"
