"""
Entry point for running pointsync as a module.

Usage:
    python -m pointsync --help
    python -m pointsync point create --complete
    python -m pointsync point upload 20240101120000-abc123 --instance backup2
"""

from pointsync.cli import cli

if __name__ == "__main__":
    cli()
