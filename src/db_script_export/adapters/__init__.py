"""Schema backends package.

Provides the ``SchemaBackend`` and ``DependencyOracle`` Protocols and two
implementations of both: ``SqlServerBackend`` (live server over
SQLAlchemy) and ``SnapshotBackend`` (JSON snapshot, no server needed).

Usage:
    from db_script_export.adapters import SchemaBackend, DependencyOracle
    from db_script_export.adapters import SnapshotBackend, SqlServerBackend
"""

from db_script_export.adapters.base import DependencyOracle, SchemaBackend
from db_script_export.adapters.mssql import SqlServerBackend
from db_script_export.adapters.snapshot import SnapshotBackend

__all__ = [
    "SchemaBackend",
    "DependencyOracle",
    "SqlServerBackend",
    "SnapshotBackend",
]
