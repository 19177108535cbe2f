"""Configuration loading for exports (export.toml)."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_script_export.config.models import ExportConfig


def load_export_config(config_path: Path | None = None) -> ExportConfig:
    """Load export configuration from TOML file.

    Only the ``[export]`` table is read; a file without one yields the
    defaults.

    Args:
        config_path: Path to export.toml (default: export.toml in the
            current working directory)

    Returns:
        ExportConfig built from the ``[export]`` table

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "export.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Export config not found: {config_path}\n"
            f"Pass --config or create export.toml with an [export] table."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    export_settings = data.get("export", {})
    if not isinstance(export_settings, dict):
        raise ValueError(f"[export] in {config_path} must be a table")

    try:
        return ExportConfig(**export_settings)
    except ValidationError as e:
        raise ValueError(f"Invalid export config in {config_path}:\n{e}") from e
