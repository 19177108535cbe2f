"""Export engine: dependency walk, per-type scripting and output.

Usage:
    from db_script_export.export import DependencyGraphScripter, ScriptArtifactWriter
    from db_script_export.export import TypeScriptingStrategy, clean_filename
"""

from db_script_export.export.scripter import DependencyGraphScripter
from db_script_export.export.strategies import (
    ObjectCategory,
    TypeScriptingStrategy,
    configure_script_options,
    is_excluded_object,
)
from db_script_export.export.writer import ScriptArtifactWriter, clean_filename

__all__ = [
    "DependencyGraphScripter",
    "TypeScriptingStrategy",
    "ObjectCategory",
    "configure_script_options",
    "is_excluded_object",
    "ScriptArtifactWriter",
    "clean_filename",
]
