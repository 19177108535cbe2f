"""Tests for per-type scripting: exclusion, options and the strategy."""

import io

from db_script_export.adapters.snapshot import SnapshotBackend
from db_script_export.config.models import ExportConfig, OutputType
from db_script_export.export.strategies import (
    ObjectCategory,
    TypeScriptingStrategy,
    configure_script_options,
    is_excluded_object,
    object_display_name,
)
from db_script_export.export.writer import ScriptArtifactWriter
from db_script_export.schema.models import ObjectIdentifier, ScriptableObject, ScriptOptions


def make_obj(type_: str, name: str | None, schema: str | None = None, **kwargs) -> ScriptableObject:
    identifier = ObjectIdentifier(
        server="srv", database="Shop", type=type_, name=name, schema_name=schema
    )
    return ScriptableObject(identifier=identifier, **kwargs)


def make_strategy(
    backend: SnapshotBackend,
    config: ExportConfig,
    deferred: list[ScriptableObject] | None = None,
) -> tuple[TypeScriptingStrategy, io.StringIO]:
    stream = io.StringIO()
    writer = ScriptArtifactWriter(config, stream=stream)
    defer = deferred.append if deferred is not None else None
    return TypeScriptingStrategy(backend, config, writer, defer=defer), stream


def table(backend: SnapshotBackend, name: str) -> ScriptableObject:
    rows = [row for row in backend.enumerate_objects("Table") if row.name == name]
    return backend.get_object(rows[0].identifier)


# ============================================================================
# Exclusion filter
# ============================================================================


class TestIsExcludedObject:
    """System and default objects are never scripted."""

    def test_system_flag(self) -> None:
        assert is_excluded_object(make_obj("Table", "spt_values", "dbo", is_system_object=True))

    def test_user_object(self) -> None:
        assert not is_excluded_object(make_obj("Table", "Orders", "dbo", object_id=1))

    def test_id_thresholds(self) -> None:
        """Broker objects up to the per-type threshold belong to the server."""
        assert is_excluded_object(make_obj("MessageType", "DEFAULT", object_id=2))
        assert is_excluded_object(make_obj("ServiceContract", "DEFAULT", object_id=65535))
        assert not is_excluded_object(make_obj("ServiceContract", "//Shop/C", object_id=65536))
        assert is_excluded_object(make_obj("ServiceRoute", "AutoCreatedLocal", object_id=65536))
        assert not is_excluded_object(make_obj("ServiceRoute", "Remote", object_id=65537))

    def test_threshold_needs_object_id(self) -> None:
        assert not is_excluded_object(make_obj("MessageType", "//Shop/M"))

    def test_default_queues_and_services(self) -> None:
        assert is_excluded_object(make_obj("ServiceQueue", "ServiceBrokerQueue", "dbo"))
        assert is_excluded_object(
            make_obj(
                "BrokerService",
                "http://schemas.microsoft.com/SQL/Notifications/QueryNotificationService",
                object_id=70000,
            )
        )
        assert not is_excluded_object(make_obj("ServiceQueue", "OrderQueue", "dbo"))

    def test_tools_support_property(self) -> None:
        """Designer scaffolding is marked with an extended property."""
        obj = make_obj(
            "Table",
            "sysdiagrams",
            "dbo",
            extended_properties=frozenset({"microsoft_database_tools_support"}),
        )
        assert is_excluded_object(obj)


# ============================================================================
# Options and naming
# ============================================================================


class TestConfigureScriptOptions:
    """Per-object options from the export config."""

    def test_config_switches(self) -> None:
        config = ExportConfig(
            schema_qualify=True,
            script_collation=True,
            script_file_groups=True,
            extended_properties=True,
        )
        options = configure_script_options(config, "Table")
        assert options.schema_qualify
        assert options.schema_qualify_foreign_key_references
        assert options.include_collation
        assert options.include_file_groups
        assert options.extended_properties
        assert not options.include_if_not_exists

    def test_if_not_exists_types(self) -> None:
        config = ExportConfig()
        for object_type in ("Role", "User", "Schema", "MessageType", "ServiceQueue"):
            assert configure_script_options(config, object_type).include_if_not_exists
        assert not configure_script_options(config, "View").include_if_not_exists


class TestObjectDisplayName:
    """Names artifacts are written under."""

    def test_schema_dropped_unless_qualified(self) -> None:
        identifier = make_obj("Table", "Orders", "dbo").identifier
        assert object_display_name(identifier, False) == "[Orders]"
        assert object_display_name(identifier, True) == "[dbo].[Orders]"

    def test_foreign_key_named_after_table(self) -> None:
        parent = make_obj("Table", "Orders", "dbo").identifier
        fk = ObjectIdentifier(
            server="srv", database="Shop", type="ForeignKey", name="FK_X", parent=parent
        )
        assert object_display_name(fk, False) == "[Orders].[FK_X]"
        assert object_display_name(fk, True) == "[dbo].[Orders].[FK_X]"

    def test_unnamed(self) -> None:
        broker = make_obj("ServiceBroker", None)
        assert object_display_name(broker.identifier, False) == "ServiceBroker"


class TestObjectCategory:
    def test_for_type(self) -> None:
        assert ObjectCategory.for_type("Database") is ObjectCategory.DATABASE
        assert ObjectCategory.for_type("Table") is ObjectCategory.TABLE
        assert ObjectCategory.for_type("View") is ObjectCategory.VIEW
        assert ObjectCategory.for_type("Synonym") is ObjectCategory.GENERIC


# ============================================================================
# Strategy
# ============================================================================


class TestTypeScriptingStrategy:
    """Category-specific scripting."""

    def test_generic_without_script_capability(self, shop_backend: SnapshotBackend) -> None:
        """Objects whose backend has no script function give None."""
        strategy, _ = make_strategy(shop_backend, ExportConfig())
        index = shop_backend.get_children(table(shop_backend, "Customers"), "Index")[0]
        assert strategy.script(index, ScriptOptions()) is None

    def test_view_schema_removed(self, shop_backend: SnapshotBackend) -> None:
        """Unqualified export rewrites the view header without its schema."""
        strategy, _ = make_strategy(shop_backend, ExportConfig())
        row = shop_backend.enumerate_objects("View")[0]
        view = shop_backend.get_object(row.identifier)

        statements = strategy.script(view, ScriptOptions())
        assert statements == ["CREATE VIEW [OrderSummary] AS SELECT Id FROM [dbo].[Orders]"]

    def test_view_schema_kept_when_qualified(self, shop_backend: SnapshotBackend) -> None:
        strategy, _ = make_strategy(shop_backend, ExportConfig(schema_qualify=True))
        view = shop_backend.get_object(shop_backend.enumerate_objects("View")[0].identifier)
        statements = strategy.script(view, ScriptOptions(schema_qualify=True))
        assert statements[0].startswith("CREATE VIEW [dbo].[OrderSummary]")

    def test_table_with_foreign_keys(self, shop_backend: SnapshotBackend) -> None:
        """By default foreign keys are part of the table script."""
        deferred: list[ScriptableObject] = []
        strategy, _ = make_strategy(shop_backend, ExportConfig(), deferred)

        statements = strategy.script(table(shop_backend, "Orders"), ScriptOptions())
        assert any("FOREIGN KEY" in statement for statement in statements)
        assert deferred == []

    def test_table_foreign_keys_separately(self, shop_backend: SnapshotBackend) -> None:
        """Foreign keys are left out and handed to the defer callback."""
        deferred: list[ScriptableObject] = []
        strategy, _ = make_strategy(
            shop_backend, ExportConfig(foreign_keys_separately=True), deferred
        )

        statements = strategy.script(table(shop_backend, "Orders"), ScriptOptions())
        assert not any("FOREIGN KEY" in statement for statement in statements)
        assert [fk.name for fk in deferred] == ["FK_Orders_Customers"]

    def test_primary_key_extended_properties(self, shop_backend: SnapshotBackend) -> None:
        """Primary-key index properties are appended when requested."""
        strategy, _ = make_strategy(shop_backend, ExportConfig(extended_properties=True))

        statements = strategy.script(
            table(shop_backend, "Customers"), ScriptOptions(extended_properties=True)
        )
        assert statements[-1] == (
            "EXEC sys.sp_addextendedproperty @name=N'MS_Description', @value=N'Customer key' , "
            "@level0type=N'SCHEMA',@level0name=N'dbo', "
            "@level1type=N'TABLE',@level1name=N'Customers', "
            "@level2type=N'INDEX',@level2name=N'PK_Customers'"
        )

    def test_no_extended_properties_by_default(self, shop_backend: SnapshotBackend) -> None:
        strategy, _ = make_strategy(shop_backend, ExportConfig())
        statements = strategy.script(table(shop_backend, "Customers"), ScriptOptions())
        assert not any("sp_addextendedproperty" in statement for statement in statements)

    def test_database_written_directly(self, shop_backend: SnapshotBackend) -> None:
        """The database and its DDL triggers are written by the strategy itself."""
        config = ExportConfig(output_type=OutputType.STDOUT)
        strategy, stream = make_strategy(shop_backend, config)

        statements = strategy.script(shop_backend.get_database(), ScriptOptions())

        assert statements == []
        assert stream.getvalue() == (
            "CREATE DATABASE [Shop]\nGO\n"
            "CREATE TRIGGER [AuditDdl] ON DATABASE FOR CREATE_TABLE AS PRINT 1\nGO\n"
        )
