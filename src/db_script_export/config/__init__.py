"""Configuration management: TOML loading, export settings, and scripting rules.

Usage:
    >>> from db_script_export.config import load_export_config, ExportConfig
    >>> from db_script_export.config import DEFAULT_RULES, ScriptingRules
"""

from db_script_export.config.loader import load_export_config
from db_script_export.config.models import (
    DEFAULT_RULES,
    ExportConfig,
    OutputType,
    ScriptingRules,
)

__all__ = [
    "load_export_config",
    "DEFAULT_RULES",
    "ExportConfig",
    "OutputType",
    "ScriptingRules",
]
