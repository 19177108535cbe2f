"""Tests for the dependency-ordered export engine."""

import copy
import io
import logging
from pathlib import Path
from typing import Any

import pytest

from db_script_export.adapters.snapshot import SnapshotBackend
from db_script_export.config.models import ExportConfig, OutputType
from db_script_export.export.scripter import DependencyGraphScripter
from db_script_export.export.writer import ScriptArtifactWriter
from db_script_export.schema.models import ScriptOptions
from db_script_export.schema.normalizer import normalize_constraint_statements

FOLDED_FK = (
    "ALTER TABLE [dbo].[Orders]  WITH NOCHECK ADD  CONSTRAINT [FK_Orders_Customers] "
    "FOREIGN KEY([CustomerId])\nREFERENCES [dbo].[Customers] ([Id])"
)


def run_to_stdout(backend: SnapshotBackend, **settings) -> str:
    config = ExportConfig(**settings)
    stream = io.StringIO()
    scripter = DependencyGraphScripter(
        backend, backend, config, writer=ScriptArtifactWriter(config, stream=stream)
    )
    scripter.run()
    return stream.getvalue()


def run_tree(backend: SnapshotBackend, directory: Path, **settings) -> list[str]:
    config = ExportConfig(output_type=OutputType.TREE, output_directory=str(directory), **settings)
    return DependencyGraphScripter(backend, backend, config).run()


def position(text: str, fragment: str) -> int:
    index = text.find(fragment)
    assert index >= 0, f"{fragment!r} not in output"
    return index


class TestExportOrder:
    """Every object is scripted after its same-database dependencies."""

    def test_dependencies_first(self, shop_backend: SnapshotBackend) -> None:
        output = run_to_stdout(shop_backend)

        customers = position(output, "CREATE TABLE [dbo].[Customers]")
        orders = position(output, "CREATE TABLE [dbo].[Orders]")
        view = position(output, "CREATE VIEW [OrderSummary]")
        procedure = position(output, "CREATE PROCEDURE [dbo].[GetOrders]")
        assert customers < orders < view < procedure

    def test_independent_objects_first(self, shop_backend: SnapshotBackend) -> None:
        """Roles, users and schemas precede the dependency walk, in that order."""
        output = run_to_stdout(shop_backend)

        role = position(output, "CREATE ROLE [Readers]")
        user = position(output, "CREATE USER [app]")
        schema = position(output, "CREATE SCHEMA [Sales]")
        assert role < user < schema < position(output, "CREATE TABLE")

    def test_tree_build_order(self, shop_backend: SnapshotBackend, tmp_path: Path) -> None:
        build_order = run_tree(shop_backend, tmp_path, script_database=True)

        assert build_order == [
            "Database.sql",
            "DdlTrigger/AuditDdl.sql",
            "Role/Readers.sql",
            "User/app.sql",
            "Schema/Sales.sql",
            "Table/Customers.sql",
            "Table/Orders.sql",
            "View/OrderSummary.sql",
            "StoredProcedure/GetOrders.sql",
        ]
        order_file = (tmp_path / "fileOrder.txt").read_text(encoding="utf-8")
        assert order_file.splitlines() == build_order
        for relative in build_order:
            assert (tmp_path / relative).read_text(encoding="utf-8").endswith("\nGO\n")

    def test_files_mode_names(self, shop_backend: SnapshotBackend, tmp_path: Path) -> None:
        config = ExportConfig(output_type=OutputType.FILES, output_directory=str(tmp_path))
        build_order = DependencyGraphScripter(shop_backend, shop_backend, config).run()
        assert "Table.Customers.sql" in build_order
        assert (tmp_path / "View.OrderSummary.sql").exists()

    def test_schema_qualified_names(self, shop_backend: SnapshotBackend, tmp_path: Path) -> None:
        build_order = run_tree(shop_backend, tmp_path, schema_qualify=True)
        assert "Table/dbo.Customers.sql" in build_order
        view = (tmp_path / "View" / "dbo.OrderSummary.sql").read_text(encoding="utf-8")
        assert "CREATE VIEW [dbo].[OrderSummary]" in view

    def test_selected_object_pulls_dependencies(self, shop_backend: SnapshotBackend) -> None:
        """Selecting one object still scripts what it depends on."""
        output = run_to_stdout(shop_backend, object_name="Orders")

        assert position(output, "[dbo].[Customers]") < position(output, "[dbo].[Orders](")
        assert "CREATE VIEW" not in output
        assert "CREATE ROLE" not in output

    def test_database_scripted_only_when_asked(self, shop_backend: SnapshotBackend) -> None:
        assert "CREATE DATABASE" not in run_to_stdout(shop_backend)
        output = run_to_stdout(shop_backend, script_database=True)
        assert output.startswith("CREATE DATABASE [Shop]\nGO\n")

    def test_excluded_types(self, shop_backend: SnapshotBackend) -> None:
        output = run_to_stdout(shop_backend, exclude_types=["StoredProcedure", "Schema"])
        assert "CREATE PROCEDURE" not in output
        assert "CREATE SCHEMA" not in output
        assert "CREATE VIEW" in output

    def test_constraint_statements_normalized(self, shop_backend: SnapshotBackend) -> None:
        """The NOCHECK follow-up is folded into the foreign key's ADD statement."""
        output = run_to_stdout(shop_backend)
        assert FOLDED_FK in output
        assert "NOCHECK CONSTRAINT [FK_Orders_Customers]" not in output

    def test_empty_database(self, tmp_path: Path) -> None:
        backend = SnapshotBackend.from_dict({"server": "srv", "database": "Empty"})
        assert run_tree(backend, tmp_path) == []
        assert not (tmp_path / "fileOrder.txt").exists()


class TestAtMostOnce:
    """Objects shared by several dependents are scripted once."""

    def test_each_object_once(self, shop_backend: SnapshotBackend) -> None:
        output = run_to_stdout(shop_backend)
        assert output.count("CREATE TABLE [dbo].[Customers]") == 1
        assert output.count("CREATE TABLE [dbo].[Orders]") == 1

    def test_state_tracks_resolved(self, shop_backend: SnapshotBackend) -> None:
        config = ExportConfig()
        scripter = DependencyGraphScripter(
            shop_backend, shop_backend, config, writer=ScriptArtifactWriter(config, io.StringIO())
        )
        scripter.run()
        assert {i.name for i in scripter.state.resolved} == {
            "Readers",
            "app",
            "Sales",
            "Customers",
            "Orders",
            "OrderSummary",
            "GetOrders",
        }
        assert scripter.state.resolving == []

    def test_dependency_on_independent_object(self, tmp_path: Path) -> None:
        """A schema scripted up front is not scripted again for a table in it."""
        backend = SnapshotBackend.from_dict(
            {
                "server": "srv",
                "database": "Shop",
                "objects": [
                    {"type": "Schema", "name": "Sales", "statements": ["CREATE SCHEMA [Sales]"]},
                    {
                        "type": "Table",
                        "schema": "Sales",
                        "name": "Orders",
                        "statements": ["CREATE TABLE [Sales].[Orders]([Id] [int] NOT NULL)"],
                        "depends_on": [{"type": "Schema", "name": "Sales"}],
                    },
                ],
            }
        )
        build_order = run_tree(backend, tmp_path)

        assert build_order == ["Schema/Sales.sql", "Table/Orders.sql"]


class TestCircularReferences:
    """Cycles are reported and broken."""

    def test_mutual_foreign_keys_warn_once(
        self, cycle_backend: SnapshotBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="db_script_export"):
            output = run_to_stdout(cycle_backend)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Circular reference" in warnings[0].getMessage()
        assert "[dbo].[A] > [dbo].[B] > [dbo].[A]" in warnings[0].getMessage()

        # The inner table is scripted first, each exactly once
        inner = position(output, "CREATE TABLE [dbo].[B]")
        assert inner < position(output, "CREATE TABLE [dbo].[A]")
        assert output.count("CREATE TABLE [dbo].[A]") == 1

    def test_foreign_keys_separately_silences_warning(
        self, cycle_backend: SnapshotBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        """With foreign keys split off, no warning and keys come after all tables."""
        with caplog.at_level(logging.WARNING, logger="db_script_export"):
            output = run_to_stdout(cycle_backend, foreign_keys_separately=True)

        assert not [r for r in caplog.records if r.levelno == logging.WARNING]
        last_table = max(
            position(output, "CREATE TABLE [dbo].[A]"), position(output, "CREATE TABLE [dbo].[B]")
        )
        assert position(output, "CONSTRAINT [FK_A_B]") > last_table
        assert position(output, "CONSTRAINT [FK_B_A]") > last_table
        assert output.count("CONSTRAINT [FK_A_B]") == 1

    def test_foreign_keys_separately_files(
        self, cycle_backend: SnapshotBackend, tmp_path: Path
    ) -> None:
        build_order = run_tree(cycle_backend, tmp_path, foreign_keys_separately=True)
        assert build_order[-2:] == ["ForeignKey/A.FK_A_B.sql", "ForeignKey/B.FK_B_A.sql"]
        table_a = (tmp_path / "Table" / "A.sql").read_text(encoding="utf-8")
        assert "FOREIGN KEY" not in table_a


class TestCrossDatabase:
    """References into other databases are never followed."""

    def test_external_dependency_skipped(
        self, shop_backend: SnapshotBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="db_script_export"):
            output = run_to_stdout(shop_backend)

        assert "OldOrders" not in output
        messages = [r.getMessage() for r in caplog.records]
        assert "Skipping external dependency: [Archive].[dbo].[OldOrders]" in messages


class TestDeterminism:
    """Same input, same output."""

    def test_repeated_runs_identical(self, shop_document: dict[str, Any]) -> None:
        first = run_to_stdout(SnapshotBackend.from_dict(copy.deepcopy(shop_document)))
        second = run_to_stdout(SnapshotBackend.from_dict(copy.deepcopy(shop_document)))
        assert first == second

    def test_document_order_does_not_matter(self, shop_document: dict[str, Any]) -> None:
        """Reversing the object list changes nothing."""
        expected = run_to_stdout(SnapshotBackend.from_dict(copy.deepcopy(shop_document)))
        shop_document["objects"].reverse()
        assert run_to_stdout(SnapshotBackend.from_dict(shop_document)) == expected

    def test_cycle_order_does_not_matter(self, cycle_document: dict[str, Any]) -> None:
        expected = run_to_stdout(SnapshotBackend.from_dict(copy.deepcopy(cycle_document)))
        cycle_document["objects"].reverse()
        assert run_to_stdout(SnapshotBackend.from_dict(cycle_document)) == expected

    def test_normalized_table_script_is_stable(self, shop_backend: SnapshotBackend) -> None:
        """Normalizing a table's statements twice gives the same statements."""
        orders = shop_backend.get_object(shop_backend.enumerate_objects("Table")[0].identifier)
        statements = shop_backend.get_script_function(orders)(ScriptOptions())
        once = normalize_constraint_statements(statements)
        assert normalize_constraint_statements(once) == once
