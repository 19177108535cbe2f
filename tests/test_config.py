"""Tests for export configuration loading and models."""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from db_script_export.config.loader import load_export_config
from db_script_export.config.models import DEFAULT_RULES, ExportConfig, OutputType, ScriptingRules


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "export.toml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


class TestLoadExportConfig:
    """load_export_config() TOML parsing."""

    def test_load_valid_toml(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path,
            """\
            [export]
            server = "localhost"
            database = "Shop"
            output_type = "tree"
            output_directory = "out"
            foreign_keys_separately = true
            exclude_types = ["View", "Synonym"]
            """,
        )
        config = load_export_config(path)

        assert config.server == "localhost"
        assert config.database == "Shop"
        assert config.output_type is OutputType.TREE
        assert config.output_directory == "out"
        assert config.foreign_keys_separately
        assert config.exclude_types == ["View", "Synonym"]

    def test_defaults_without_export_table(self, tmp_path: Path) -> None:
        """A file without [export] yields the defaults."""
        path = write_config(tmp_path, '[other]\nkey = "value"\n')
        config = load_export_config(path)
        assert config == ExportConfig()

    def test_default_path_is_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_config(tmp_path, '[export]\ndatabase = "Shop"\n')
        monkeypatch.chdir(tmp_path)
        assert load_export_config().database == "Shop"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Export config not found"):
            load_export_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "[export\nserver = ")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_export_config(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, '[export]\nsever = "typo"\n')
        with pytest.raises(ValueError, match="Invalid export config"):
            load_export_config(path)

    def test_bad_output_type(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, '[export]\noutput_type = "zip"\n')
        with pytest.raises(ValueError, match="Invalid export config"):
            load_export_config(path)

    def test_export_not_a_table(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, 'export = "yes"\n')
        with pytest.raises(ValueError, match="must be a table"):
            load_export_config(path)


class TestExportConfig:
    """ExportConfig defaults and helpers."""

    def test_defaults(self) -> None:
        config = ExportConfig()
        assert config.output_type is OutputType.STDOUT
        assert config.order_filename == "fileOrder.txt"
        assert config.driver == "ODBC Driver 18 for SQL Server"
        assert config.encrypt
        assert not config.trust_server_certificate
        assert not config.script_database
        assert config.exclude_types == []

    def test_exclude_types_from_string(self) -> None:
        """A comma-separated string is split and trimmed."""
        config = ExportConfig(exclude_types=" View, Synonym ,,")
        assert config.exclude_types == ["View", "Synonym"]

    def test_is_type_excluded_ignores_case(self) -> None:
        config = ExportConfig(exclude_types=["view"])
        assert config.is_type_excluded("View")
        assert config.is_type_excluded("VIEW")
        assert not config.is_type_excluded("Table")

    def test_output_type_from_string(self) -> None:
        assert ExportConfig(output_type="files").output_type is OutputType.FILES


class TestScriptingRules:
    """The constant lookup tables."""

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_RULES.excluded_schemas = frozenset()

    def test_type_orders(self) -> None:
        assert DEFAULT_RULES.dependent_type_order[:4] == (
            "UserDefinedFunction",
            "Table",
            "View",
            "StoredProcedure",
        )
        assert DEFAULT_RULES.independent_type_order == ("Role", "User", "Schema")

    def test_enumerated_types(self) -> None:
        assert len(DEFAULT_RULES.enumerated_types) == 33
        assert "DatabaseRole" in DEFAULT_RULES.enumerated_types
        assert "UserDefinedTableTypes" in DEFAULT_RULES.enumerated_types

    def test_thresholds(self) -> None:
        assert DEFAULT_RULES.system_id_thresholds["ServiceRoute"] == 65536
        assert DEFAULT_RULES.system_id_thresholds["MessageType"] == 65535

    def test_override(self) -> None:
        rules = ScriptingRules(excluded_schemas=frozenset({"audit"}))
        assert rules.excluded_schemas == frozenset({"audit"})
        assert rules.dependent_type_order == DEFAULT_RULES.dependent_type_order
