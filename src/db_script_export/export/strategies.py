"""Per-type scripting: options, exclusion filter, and the scripting strategy.

Most objects are scripted by the function their backend provides. Three
categories need more:
- DATABASE: the database and its DDL triggers are written directly
- TABLE: foreign keys can be split off and deferred; primary-key index
  extended properties are added
- VIEW: the schema prefix is removed when schema qualification is off

Usage:
    strategy = TypeScriptingStrategy(backend, config, writer, defer=deferred.append)
    options = configure_script_options(config, obj.type)
    statements = strategy.script(obj, options)  # None when not scriptable
"""

import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from db_script_export.config.models import DEFAULT_RULES, ExportConfig, ScriptingRules
from db_script_export.schema.models import (
    ObjectIdentifier,
    ScriptableObject,
    ScriptArtifact,
    ScriptOptions,
)
from db_script_export.schema.normalizer import clean_statements

if TYPE_CHECKING:
    from db_script_export.adapters.base import SchemaBackend
    from db_script_export.export.writer import ScriptArtifactWriter

logger = logging.getLogger(__name__)

VIEW_HEADER_RE = re.compile(r"(?P<action>[^ ]+) VIEW \[(?P<schema>[^\]]+)\]\.\[(?P<name>[^\]]+)\]")

EXTENDED_PROPERTY_TEMPLATE = (
    "EXEC sys.sp_addextendedproperty @name=N'{name}', @value=N'{value}' , "
    "@level0type=N'SCHEMA',@level0name=N'{schema}', "
    "@level1type=N'TABLE',@level1name=N'{table}', "
    "@level2type=N'INDEX',@level2name=N'{index}'"
)


def escape_sql_text(value: str) -> str:
    """Escape a value for use inside an N'...' literal."""
    return value.replace("'", "''")


class ObjectCategory(Enum):
    """Scripting categories with their own handling."""

    DATABASE = "Database"
    TABLE = "Table"
    VIEW = "View"
    GENERIC = "Generic"

    @classmethod
    def for_type(cls, object_type: str) -> "ObjectCategory":
        for category in (cls.DATABASE, cls.TABLE, cls.VIEW):
            if category.value == object_type:
                return category
        return cls.GENERIC


# ------------------------------------------------------------------
# Exclusion filter and options
# ------------------------------------------------------------------


def is_excluded_object(obj: ScriptableObject, rules: ScriptingRules = DEFAULT_RULES) -> bool:
    """True if *obj* is a system or default object that is never scripted."""
    if obj.is_system_object:
        return True

    # Server-created broker objects
    threshold = rules.system_id_thresholds.get(obj.type)
    if threshold is not None and obj.object_id is not None and obj.object_id <= threshold:
        return True

    if obj.type == "ServiceQueue" and obj.identifier.display_name in rules.default_service_queues:
        return True
    if obj.type == "BrokerService" and obj.identifier.display_name in rules.default_broker_services:
        return True

    return rules.tools_support_property in obj.extended_properties


def configure_script_options(
    config: ExportConfig,
    object_type: str,
    rules: ScriptingRules = DEFAULT_RULES,
) -> ScriptOptions:
    """Scripting options for one object of *object_type*."""
    return ScriptOptions(
        schema_qualify=config.schema_qualify,
        schema_qualify_foreign_key_references=config.schema_qualify,
        include_collation=config.script_collation,
        include_file_groups=config.script_file_groups,
        extended_properties=config.extended_properties,
        include_if_not_exists=object_type in rules.if_not_exists_types,
    )


def object_display_name(identifier: ObjectIdentifier, schema_qualify: bool) -> str:
    """Name an artifact is written under.

    Foreign keys are named after their table (``[Orders].[FK_Orders]``);
    schema-scoped objects drop the schema unless *schema_qualify* is on.
    """
    if identifier.type == "ForeignKey" and identifier.parent is not None:
        return f"{object_display_name(identifier.parent, schema_qualify)}.[{identifier.name}]"
    if not schema_qualify and identifier.schema_name is not None:
        return f"[{identifier.name}]"
    return identifier.display_name


# ------------------------------------------------------------------
# Strategy
# ------------------------------------------------------------------


class TypeScriptingStrategy:
    """Turns one object into its DDL statements.

    Args:
        backend: Schema backend providing script functions
        config: Export config
        writer: Writer for objects scripted directly (database, DDL triggers)
        rules: Scripting rules
        defer: Called with each foreign key split off a table, for
            scripting after the dependency walk
    """

    def __init__(
        self,
        backend: "SchemaBackend",
        config: ExportConfig,
        writer: "ScriptArtifactWriter",
        rules: ScriptingRules = DEFAULT_RULES,
        defer: Callable[[ScriptableObject], None] | None = None,
    ):
        self._backend = backend
        self._config = config
        self._writer = writer
        self._rules = rules
        self._defer = defer
        self._handlers: dict[
            ObjectCategory,
            Callable[[ScriptableObject, ScriptOptions], list[str] | None],
        ] = {
            ObjectCategory.DATABASE: self._script_database,
            ObjectCategory.TABLE: self._script_table,
            ObjectCategory.VIEW: self._script_view,
            ObjectCategory.GENERIC: self._script_generic,
        }

    def script(self, obj: ScriptableObject, options: ScriptOptions) -> list[str] | None:
        """Return the statements for *obj*, or None if it has no script capability."""
        return self._handlers[ObjectCategory.for_type(obj.type)](obj, options)

    def _script_generic(self, obj: ScriptableObject, options: ScriptOptions) -> list[str] | None:
        script_function = self._backend.get_script_function(obj)
        if script_function is None:
            logger.debug(
                f"Object doesn't provide a script: {obj.type}, {obj.identifier.display_name}"
            )
            return None
        return script_function(options)

    def _script_database(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        statements = self._script_generic(obj, options)
        if statements:
            self._writer.write(
                ScriptArtifact(obj.type, obj.identifier.display_name, clean_statements(statements))
            )

        for trigger in self._backend.get_children(obj, "DdlTrigger"):
            trigger_statements = self._script_generic(trigger, options)
            if trigger_statements:
                self._writer.write(
                    ScriptArtifact(
                        trigger.type,
                        trigger.identifier.display_name,
                        clean_statements(trigger_statements),
                    )
                )

        # Everything is already written
        return []

    def _script_table(self, obj: ScriptableObject, options: ScriptOptions) -> list[str] | None:
        if self._config.foreign_keys_separately:
            options = options.model_copy(
                update={
                    "foreign_keys": False,
                    "checks": True,
                    "defaults": True,
                    "indexes": True,
                    "primary_key": True,
                    "unique_keys": True,
                }
            )
            if self._defer is not None:
                for foreign_key in self._backend.get_children(obj, "ForeignKey"):
                    self._defer(foreign_key)

        statements = self._script_generic(obj, options)
        if statements is None:
            return None

        # Primary-key index properties are not part of the table script
        if options.extended_properties:
            statements = [*statements, *self._primary_key_properties(obj)]
        return statements

    def _primary_key_properties(self, table: ScriptableObject) -> list[str]:
        identifier = table.identifier
        statements = []
        for index in self._backend.get_children(table, "Index"):
            if index.key_type != "PrimaryKey":
                continue
            for name, value in self._backend.get_extended_properties(index).items():
                statements.append(
                    EXTENDED_PROPERTY_TEMPLATE.format(
                        name=escape_sql_text(name),
                        value=escape_sql_text(value),
                        schema=escape_sql_text(identifier.schema_name or ""),
                        table=escape_sql_text(identifier.name or ""),
                        index=escape_sql_text(index.name or ""),
                    )
                )
        return statements

    def _script_view(self, obj: ScriptableObject, options: ScriptOptions) -> list[str] | None:
        statements = self._script_generic(obj, options)
        if statements is None or options.schema_qualify:
            return statements
        return [
            VIEW_HEADER_RE.sub(r"\g<action> VIEW [\g<name>]", statement)
            for statement in statements
        ]
