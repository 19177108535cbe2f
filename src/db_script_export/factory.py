"""Backend factory.

Supports two backend modes:
1. Snapshot mode (--snapshot FILE): offline export from a JSON snapshot
2. Live mode: SQL Server over SQLAlchemy (mssql+pyodbc)

Both backends are also dependency oracles, so one object serves both roles.
"""

import logging
import re
from pathlib import Path

from sqlalchemy import URL

from db_script_export.adapters.mssql import SqlServerBackend
from db_script_export.adapters.snapshot import SnapshotBackend
from db_script_export.config.models import ExportConfig

logger = logging.getLogger(__name__)

# Characters that would break out of an ODBC connection string
_UNSAFE_SERVER_CHARS_RE = re.compile(r'[;<>"]')


# ============================================================================
# Connection URL
# ============================================================================


def build_connection_url(config: ExportConfig) -> URL:
    """Build the SQLAlchemy URL for *config*'s server and database.

    Uses integrated security when no user name is configured.

    Args:
        config: Export config with server, database and credentials

    Returns:
        ``mssql+pyodbc`` URL

    Raises:
        ValueError: If the server name is missing or contains unsafe characters

    Example:
        >>> url = build_connection_url(ExportConfig(server="db01\\\\SQLEXPRESS", database="Shop"))
        >>> url.query["Trusted_Connection"]
        'yes'
    """
    server = (config.server or "").strip()
    if not server:
        raise ValueError("Server name is required")
    if _UNSAFE_SERVER_CHARS_RE.search(server):
        raise ValueError(f"Invalid characters in server name: {server}")

    query = {
        "driver": config.driver,
        "Encrypt": "yes" if config.encrypt else "no",
        "TrustServerCertificate": "yes" if config.trust_server_certificate else "no",
    }
    if not config.user_name:
        query["Trusted_Connection"] = "yes"

    return URL.create(
        "mssql+pyodbc",
        username=config.user_name or None,
        password=config.password or None,
        host=server,
        database=config.database,
        query=query,
    )


# ============================================================================
# Backend Factory
# ============================================================================


def get_backend(
    config: ExportConfig,
    snapshot_path: str | Path | None = None,
) -> SnapshotBackend | SqlServerBackend:
    """Get the schema backend for an export.

    The returned backend is a context manager; enter it before use.

    Args:
        config: Export config
        snapshot_path: JSON snapshot to export from instead of a live server

    Returns:
        SnapshotBackend if a snapshot is given, SqlServerBackend otherwise

    Raises:
        FileNotFoundError: If the snapshot doesn't exist
        ValueError: If the snapshot or connection settings are invalid

    Example:
        >>> with get_backend(config) as backend:
        ...     DependencyGraphScripter(backend, backend, config).run()
    """
    if snapshot_path is not None:
        logger.debug(f"Loading snapshot: {snapshot_path}")
        backend = SnapshotBackend.from_file(snapshot_path)
        if config.database and config.database != backend.database:
            logger.warning(
                f"Snapshot is of database {backend.database}, not {config.database}"
            )
        return backend

    url = build_connection_url(config)
    logger.debug(f"Connecting to {config.server}/{config.database}")
    return SqlServerBackend(url, server_name=(config.server or "").strip())
