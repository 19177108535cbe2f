"""db-script-export: dependency-ordered schema script export for SQL Server.

Scripts the objects of a database so that every script can run after the
scripts of the objects it depends on, from a live server or a JSON snapshot.

Usage:
    from db_script_export import DependencyGraphScripter, ExportConfig, get_backend
    from db_script_export import SnapshotBackend, SqlServerBackend
    from db_script_export import load_export_config, OutputType
"""

__version__ = "0.1.0"

# Adapters
from db_script_export.adapters.base import DependencyOracle, SchemaBackend
from db_script_export.adapters.mssql import SqlServerBackend
from db_script_export.adapters.snapshot import SnapshotBackend

# Config
from db_script_export.config.loader import load_export_config
from db_script_export.config.models import (
    DEFAULT_RULES,
    ExportConfig,
    OutputType,
    ScriptingRules,
)

# Export engine
from db_script_export.export.scripter import DependencyGraphScripter
from db_script_export.export.writer import ScriptArtifactWriter

# Factory
from db_script_export.factory import build_connection_url, get_backend

# Schema models
from db_script_export.schema.models import ObjectIdentifier, ScriptOptions

__all__ = [
    # Adapters
    "SchemaBackend",
    "DependencyOracle",
    "SnapshotBackend",
    "SqlServerBackend",
    # Config
    "load_export_config",
    "ExportConfig",
    "OutputType",
    "ScriptingRules",
    "DEFAULT_RULES",
    # Export engine
    "DependencyGraphScripter",
    "ScriptArtifactWriter",
    # Factory
    "get_backend",
    "build_connection_url",
    # Schema models
    "ObjectIdentifier",
    "ScriptOptions",
]
