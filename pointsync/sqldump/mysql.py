"""
MySQL dump generation for restoring points.

Runs the mysqldump client with the host database connection parameters and
returns the dump as bytes.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Any

# mysqldump executable name
MYSQLDUMP_BINARY = "mysqldump"

# Maximum time a dump may take, in seconds
DEFAULT_DUMP_TIMEOUT = 3600

# Required connection parameters
REQUIRED_PARAMS = ("dbname", "dbuser")

logger = logging.getLogger(__name__)


class SqlDumpError(Exception):
    """Raised when the database dump cannot be produced."""

    pass


class SqlDumpMySQL:
    """
    Database dump through mysqldump.

    Usage:
        dump = SqlDumpMySQL().export({
            "dbname": "nextcloud", "dbhost": "localhost", "dbport": 3306,
            "dbuser": "nextcloud", "dbpassword": "secret",
        })
    """

    def __init__(self, binary: str = MYSQLDUMP_BINARY, timeout: int = DEFAULT_DUMP_TIMEOUT):
        self.binary = binary
        self.timeout = timeout

    def build_command(self, params: dict[str, Any]) -> list[str]:
        """
        Build the mysqldump command line.

        The password is passed through the environment, never on the
        command line.

        Raises:
            SqlDumpError: If a required parameter is missing
        """
        missing = [key for key in REQUIRED_PARAMS if not params.get(key)]
        if missing:
            raise SqlDumpError(f"Missing database parameters: {', '.join(missing)}")

        host = str(params.get("dbhost") or "localhost")
        port = params.get("dbport")
        # "host:port" is accepted as well as a separate port
        if ":" in host and not port:
            host, port = host.split(":", 1)

        command = [
            self.binary,
            "--single-transaction",
            "--skip-lock-tables",
            f"--host={host}",
            f"--user={params['dbuser']}",
        ]
        if port:
            command.append(f"--port={port}")
        command.append(str(params["dbname"]))
        return command

    def export(self, params: dict[str, Any]) -> bytes:
        """
        Produce a dump of the database.

        Args:
            params: Connection parameters {dbname, dbhost, dbport, dbuser, dbpassword}

        Returns:
            The SQL dump

        Raises:
            SqlDumpError: On any failure of the dump process
        """
        command = self.build_command(params)
        if shutil.which(self.binary) is None:
            raise SqlDumpError(f"{self.binary} not found in PATH")

        env = dict(os.environ)
        if params.get("dbpassword"):
            env["MYSQL_PWD"] = str(params["dbpassword"])

        logger.debug(f"Dumping database {params['dbname']}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                env=env,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SqlDumpError(f"Database dump timed out after {self.timeout}s") from e
        except OSError as e:
            raise SqlDumpError(f"Failed to run {self.binary}: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise SqlDumpError(f"{self.binary} failed ({result.returncode}): {stderr}")

        logger.info(f"Database dump completed: {len(result.stdout)} bytes")
        return result.stdout
