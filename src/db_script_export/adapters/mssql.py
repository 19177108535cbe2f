"""Live SQL Server schema backend.

Reads objects and dependencies from the ``sys.*`` catalog views over a
SQLAlchemy connection (``mssql+pyodbc``) and renders their DDL:
- tables with columns, keys, defaults, checks, foreign keys, indexes,
  triggers and extended properties
- modules (views, procedures, functions, DDL triggers) from sys.sql_modules
- schemas, users, roles, synonyms, sequences, user-defined types
- Service Broker objects and the database itself

The render functions are plain functions over catalog rows (dicts), so they
can be used without a connection.

Usage:
    with SqlServerBackend(build_connection_url(config), "srv") as backend:
        scripter = DependencyGraphScripter(backend, backend, config)
        scripter.run()
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import URL, create_engine, text
from sqlalchemy.engine import Connection, Engine

from db_script_export.schema.models import (
    DependencyDirection,
    DependencyNode,
    ObjectIdentifier,
    ObjectRow,
    ScriptableObject,
    ScriptFunction,
    ScriptOptions,
    build_dependency_tree,
    reverse_edges,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Catalog Queries
# ============================================================================

# enumeration type -> (identifier type, query)
# Every query returns object_id, schema_name, name, is_system
ENUMERATION_QUERIES: dict[str, tuple[str, str]] = {
    "Table": (
        "Table",
        "SELECT t.object_id, s.name AS schema_name, t.name, t.is_ms_shipped AS is_system"
        " FROM sys.tables t JOIN sys.schemas s ON t.schema_id = s.schema_id",
    ),
    "View": (
        "View",
        "SELECT v.object_id, s.name AS schema_name, v.name, v.is_ms_shipped AS is_system"
        " FROM sys.views v JOIN sys.schemas s ON v.schema_id = s.schema_id",
    ),
    "StoredProcedure": (
        "StoredProcedure",
        "SELECT p.object_id, s.name AS schema_name, p.name, p.is_ms_shipped AS is_system"
        " FROM sys.procedures p JOIN sys.schemas s ON p.schema_id = s.schema_id"
        " WHERE p.type = 'P'",
    ),
    "UserDefinedFunction": (
        "UserDefinedFunction",
        "SELECT o.object_id, s.name AS schema_name, o.name, o.is_ms_shipped AS is_system"
        " FROM sys.objects o JOIN sys.schemas s ON o.schema_id = s.schema_id"
        " WHERE o.type IN ('FN', 'IF', 'TF', 'FS', 'FT')",
    ),
    "Synonym": (
        "Synonym",
        "SELECT y.object_id, s.name AS schema_name, y.name, y.is_ms_shipped AS is_system"
        " FROM sys.synonyms y JOIN sys.schemas s ON y.schema_id = s.schema_id",
    ),
    "Sequence": (
        "Sequence",
        "SELECT q.object_id, s.name AS schema_name, q.name, q.is_ms_shipped AS is_system"
        " FROM sys.sequences q JOIN sys.schemas s ON q.schema_id = s.schema_id",
    ),
    "Schema": (
        "Schema",
        "SELECT schema_id AS object_id, NULL AS schema_name, name,"
        " CASE WHEN schema_id < 5 OR schema_id >= 16384 THEN 1 ELSE 0 END AS is_system"
        " FROM sys.schemas",
    ),
    "User": (
        "User",
        "SELECT principal_id AS object_id, NULL AS schema_name, name,"
        " CASE WHEN principal_id < 5 THEN 1 ELSE 0 END AS is_system"
        " FROM sys.database_principals"
        " WHERE type IN ('S', 'U', 'G', 'E', 'X', 'C', 'K') AND name NOT LIKE '##%'",
    ),
    "DatabaseRole": (
        "Role",
        "SELECT principal_id AS object_id, NULL AS schema_name, name,"
        " CASE WHEN is_fixed_role = 1 OR name = 'public' THEN 1 ELSE 0 END AS is_system"
        " FROM sys.database_principals WHERE type = 'R'",
    ),
    "UserDefinedDataType": (
        "UserDefinedDataType",
        "SELECT t.user_type_id AS object_id, s.name AS schema_name, t.name, 0 AS is_system"
        " FROM sys.types t JOIN sys.schemas s ON t.schema_id = s.schema_id"
        " WHERE t.is_user_defined = 1 AND t.is_table_type = 0 AND t.is_assembly_type = 0",
    ),
    "UserDefinedTableTypes": (
        "UserDefinedTableType",
        "SELECT t.user_type_id AS object_id, s.name AS schema_name, t.name, 0 AS is_system"
        " FROM sys.table_types t JOIN sys.schemas s ON t.schema_id = s.schema_id",
    ),
    "MessageType": (
        "MessageType",
        "SELECT message_type_id AS object_id, NULL AS schema_name, name, 0 AS is_system"
        " FROM sys.service_message_types",
    ),
    "ServiceContract": (
        "ServiceContract",
        "SELECT service_contract_id AS object_id, NULL AS schema_name, name, 0 AS is_system"
        " FROM sys.service_contracts",
    ),
    "ServiceQueue": (
        "ServiceQueue",
        "SELECT q.object_id, s.name AS schema_name, q.name, q.is_ms_shipped AS is_system"
        " FROM sys.service_queues q JOIN sys.schemas s ON q.schema_id = s.schema_id",
    ),
    "ServiceRoute": (
        "ServiceRoute",
        "SELECT route_id AS object_id, NULL AS schema_name, name, 0 AS is_system FROM sys.routes",
    ),
}

# Broker objects nest under the ServiceBroker container
BROKER_TYPES = frozenset(
    {"MessageType", "ServiceContract", "ServiceQueue", "ServiceRoute", "BrokerService"}
)

# sys.objects type codes tracked by the dependency oracle
OBJECT_TYPE_CODES = {
    "U": "Table",
    "V": "View",
    "P": "StoredProcedure",
    "FN": "UserDefinedFunction",
    "IF": "UserDefinedFunction",
    "TF": "UserDefinedFunction",
    "FS": "UserDefinedFunction",
    "FT": "UserDefinedFunction",
    "SN": "Synonym",
}

# sys.extended_properties class per identifier type; anything else is 1 (object)
PROPERTY_CLASSES = {
    "Schema": 3,
    "User": 4,
    "Role": 4,
    "UserDefinedDataType": 6,
    "UserDefinedTableType": 6,
    "MessageType": 15,
    "ServiceContract": 16,
    "BrokerService": 17,
    "ServiceRoute": 19,
}

# level1type of sp_addextendedproperty per identifier type
PROPERTY_LEVEL1_TYPES = {
    "Table": "TABLE",
    "View": "VIEW",
    "StoredProcedure": "PROCEDURE",
    "UserDefinedFunction": "FUNCTION",
    "Synonym": "SYNONYM",
    "Sequence": "SEQUENCE",
}

MODULE_TYPES = frozenset({"View", "StoredProcedure", "UserDefinedFunction", "DdlTrigger"})

# sys.service_message_types.validation -> VALIDATION clause
MESSAGE_VALIDATIONS = {"N": "NONE", "E": "EMPTY", "X": "WELL_FORMED_XML"}


# ============================================================================
# Rendering
# ============================================================================


def quote_name(name: str) -> str:
    """Bracket-quote an identifier."""
    return "[" + name.replace("]", "]]") + "]"


def sql_literal(value: Any) -> str:
    """Render a value as an N'...' string literal."""
    return "N'" + str(value).replace("'", "''") + "'"


def object_name(schema: str | None, name: str, schema_qualify: bool = True) -> str:
    """``[schema].[name]``, or ``[name]`` when unqualified or schema-less."""
    if schema_qualify and schema:
        return f"{quote_name(schema)}.{quote_name(name)}"
    return quote_name(name)


def format_data_type(column: dict[str, Any]) -> str:
    """Render a column's type from its sys.types/sys.columns data."""
    type_name = column["type_name"]
    if column.get("is_user_defined"):
        return object_name(column.get("type_schema"), type_name)

    max_length = column.get("max_length")
    if type_name in ("nvarchar", "nchar"):
        size = "max" if max_length == -1 else str(max_length // 2)
        return f"{quote_name(type_name)}({size})"
    if type_name in ("varchar", "char", "varbinary", "binary"):
        size = "max" if max_length == -1 else str(max_length)
        return f"{quote_name(type_name)}({size})"
    if type_name in ("decimal", "numeric"):
        return f"{quote_name(type_name)}({column['precision']}, {column['scale']})"
    if type_name in ("datetime2", "time", "datetimeoffset"):
        return f"{quote_name(type_name)}({column['scale']})"
    return quote_name(type_name)


def render_column(column: dict[str, Any], options: ScriptOptions) -> str:
    """One column definition of a CREATE TABLE / CREATE TYPE AS TABLE."""
    name = quote_name(column["name"])
    if column.get("computed_definition"):
        line = f"{name}  AS {column['computed_definition']}"
        if column.get("is_persisted"):
            line += " PERSISTED"
        return line

    line = f"{name} {format_data_type(column)}"
    if options.include_collation and column.get("collation_name"):
        line += f" COLLATE {column['collation_name']}"
    if column.get("is_identity"):
        line += f" IDENTITY({column['seed_value']},{column['increment_value']})"
    line += " NULL" if column.get("is_nullable") else " NOT NULL"
    return line


def _index_columns(columns: Sequence[dict[str, Any]]) -> str:
    return ",\n".join(
        f"\t{quote_name(c['name'])} {'DESC' if c.get('is_descending_key') else 'ASC'}"
        for c in columns
    )


def render_key_constraint(constraint: dict[str, Any], columns: Sequence[dict[str, Any]]) -> str:
    """Inline PRIMARY KEY / UNIQUE constraint of a CREATE TABLE."""
    kind = "PRIMARY KEY" if constraint["type"] == "PK" else "UNIQUE"
    clustering = constraint.get("type_desc") or "NONCLUSTERED"
    return (
        f" CONSTRAINT {quote_name(constraint['name'])} {kind} {clustering}\n"
        f"(\n{_index_columns(columns)}\n)"
    )


def render_create_table(
    table: dict[str, Any],
    columns: Sequence[dict[str, Any]],
    key_constraints: Sequence[tuple[dict[str, Any], Sequence[dict[str, Any]]]],
    options: ScriptOptions,
) -> str:
    """CREATE TABLE statement with inline primary/unique keys."""
    parts = [render_column(column, options) for column in columns]
    for constraint, key_columns in key_constraints:
        if constraint["type"] == "PK" and not options.primary_key:
            continue
        if constraint["type"] == "UQ" and not options.unique_keys:
            continue
        parts.append(render_key_constraint(constraint, key_columns))

    body = ",\n".join(f"\t{part}" if not part.startswith(" ") else part for part in parts)
    name = object_name(table["schema_name"], table["name"], options.schema_qualify)
    statement = f"CREATE TABLE {name}(\n{body}\n)"
    if options.include_file_groups and table.get("file_group"):
        statement += f" ON {quote_name(table['file_group'])}"
    return statement


def render_index(
    table: dict[str, Any],
    index: dict[str, Any],
    key_columns: Sequence[dict[str, Any]],
    included_columns: Sequence[dict[str, Any]],
    options: ScriptOptions,
) -> str:
    """CREATE INDEX statement for an index that isn't a key constraint."""
    unique = "UNIQUE " if index.get("is_unique") else ""
    statement = (
        f"CREATE {unique}{index['type_desc']} INDEX {quote_name(index['name'])} ON "
        f"{object_name(table['schema_name'], table['name'], options.schema_qualify)}\n"
        f"(\n{_index_columns(key_columns)}\n)"
    )
    if included_columns:
        statement += "\nINCLUDE(" + ", ".join(quote_name(c["name"]) for c in included_columns) + ")"
    if index.get("filter_definition"):
        statement += f"\nWHERE {index['filter_definition']}"
    if options.include_file_groups and index.get("file_group"):
        statement += f" ON {quote_name(index['file_group'])}"
    return statement


def render_default_constraint(
    table: dict[str, Any],
    default: dict[str, Any],
    options: ScriptOptions,
) -> str:
    return (
        f"ALTER TABLE {object_name(table['schema_name'], table['name'], options.schema_qualify)} "
        f"ADD  CONSTRAINT {quote_name(default['name'])}  DEFAULT {default['definition']} "
        f"FOR {quote_name(default['column_name'])}"
    )


def render_check_constraint(
    table: dict[str, Any],
    check: dict[str, Any],
    options: ScriptOptions,
) -> list[str]:
    """WITH CHECK ADD CONSTRAINT followed by the enforcement statement."""
    table_name = object_name(table["schema_name"], table["name"], options.schema_qualify)
    trusted = "NOCHECK" if check.get("is_not_trusted") else "CHECK"
    enabled = "NOCHECK" if check.get("is_disabled") else "CHECK"
    return [
        f"ALTER TABLE {table_name}  WITH {trusted} ADD  CONSTRAINT {quote_name(check['name'])} "
        f"CHECK  {check['definition']}",
        f"ALTER TABLE {table_name} {enabled} CONSTRAINT {quote_name(check['name'])}",
    ]


def render_foreign_key(
    table: dict[str, Any],
    foreign_key: dict[str, Any],
    columns: Sequence[dict[str, Any]],
    options: ScriptOptions,
) -> list[str]:
    """WITH CHECK ADD CONSTRAINT ... FOREIGN KEY followed by the enforcement statement."""
    table_name = object_name(table["schema_name"], table["name"], options.schema_qualify)
    referenced = object_name(
        foreign_key["referenced_schema"],
        foreign_key["referenced_table"],
        options.schema_qualify_foreign_key_references,
    )
    local = ", ".join(quote_name(c["column_name"]) for c in columns)
    remote = ", ".join(quote_name(c["referenced_column"]) for c in columns)
    trusted = "NOCHECK" if foreign_key.get("is_not_trusted") else "CHECK"
    enabled = "NOCHECK" if foreign_key.get("is_disabled") else "CHECK"

    add = (
        f"ALTER TABLE {table_name}  WITH {trusted} ADD  "
        f"CONSTRAINT {quote_name(foreign_key['name'])} FOREIGN KEY({local})\n"
        f"REFERENCES {referenced} ({remote})"
    )
    for action, key in (("DELETE", "delete_action"), ("UPDATE", "update_action")):
        value = foreign_key.get(key)
        if value and value != "NO_ACTION":
            add += f"\nON {action} {value.replace('_', ' ')}"
    return [add, f"ALTER TABLE {table_name} {enabled} CONSTRAINT {quote_name(foreign_key['name'])}"]


def render_extended_property(
    name: str,
    value: Any,
    level0: tuple[str, str] | None = None,
    level1: tuple[str, str] | None = None,
    level2: tuple[str, str] | None = None,
) -> str:
    """EXEC sys.sp_addextendedproperty with up to three levels."""
    statement = (
        f"EXEC sys.sp_addextendedproperty @name={sql_literal(name)}, @value={sql_literal(value)}"
    )
    for number, level in enumerate((level0, level1, level2)):
        if level is None:
            break
        kind, level_name = level
        statement += f" , @level{number}type=N'{kind}',@level{number}name={sql_literal(level_name)}"
    return statement


def render_module(
    definition: str,
    uses_ansi_nulls: bool = True,
    uses_quoted_identifier: bool = True,
) -> list[str]:
    """SET options and the module definition as written."""
    return [
        f"SET ANSI_NULLS {'ON' if uses_ansi_nulls else 'OFF'}",
        f"SET QUOTED_IDENTIFIER {'ON' if uses_quoted_identifier else 'OFF'}",
        definition,
    ]


def if_not_exists(catalog: str, name: str, statement: str) -> str:
    """Guard *statement* with an existence check on one catalog view."""
    return f"IF NOT EXISTS (SELECT * FROM {catalog} WHERE name = {sql_literal(name)})\n{statement}"


def render_schema(schema: dict[str, Any], options: ScriptOptions) -> str:
    name = quote_name(schema["name"])
    statement = f"CREATE SCHEMA {name} AUTHORIZATION {quote_name(schema['owner'])}"
    if options.include_if_not_exists:
        # CREATE SCHEMA must be alone in its batch
        batch = f"EXEC sys.sp_executesql {sql_literal(statement)}"
        return if_not_exists("sys.schemas", schema["name"], batch)
    return statement


def render_user(user: dict[str, Any], options: ScriptOptions) -> str:
    statement = f"CREATE USER {quote_name(user['name'])}"
    if user.get("login_name"):
        statement += f" FOR LOGIN {quote_name(user['login_name'])}"
    elif user.get("type") == "S":
        statement += " WITHOUT LOGIN"
    if user.get("default_schema_name"):
        statement += f" WITH DEFAULT_SCHEMA={quote_name(user['default_schema_name'])}"
    if options.include_if_not_exists:
        return if_not_exists("sys.database_principals", user["name"], statement)
    return statement


def render_role(role: dict[str, Any], options: ScriptOptions) -> str:
    statement = f"CREATE ROLE {quote_name(role['name'])}"
    if role.get("owner"):
        statement += f" AUTHORIZATION {quote_name(role['owner'])}"
    if options.include_if_not_exists:
        return if_not_exists("sys.database_principals", role["name"], statement)
    return statement


def render_synonym(synonym: dict[str, Any], options: ScriptOptions) -> str:
    name = object_name(synonym["schema_name"], synonym["name"], options.schema_qualify)
    return f"CREATE SYNONYM {name} FOR {synonym['base_object_name']}"


def render_sequence(sequence: dict[str, Any], options: ScriptOptions) -> str:
    name = object_name(sequence["schema_name"], sequence["name"], options.schema_qualify)
    return (
        f"CREATE SEQUENCE {name} \n AS {format_data_type(sequence)}\n"
        f" START WITH {sequence['start_value']}\n"
        f" INCREMENT BY {sequence['increment']}\n"
        f" MINVALUE {sequence['minimum_value']}\n"
        f" MAXVALUE {sequence['maximum_value']}\n"
        f" {'CYCLE' if sequence.get('is_cycling') else 'NO CYCLE'} "
    )


def render_user_defined_data_type(udt: dict[str, Any], options: ScriptOptions) -> str:
    name = object_name(udt["schema_name"], udt["name"], options.schema_qualify)
    nullability = "NULL" if udt.get("is_nullable") else "NOT NULL"
    return f"CREATE TYPE {name} FROM {format_data_type(udt)} {nullability}"


def render_user_defined_table_type(
    udt: dict[str, Any],
    columns: Sequence[dict[str, Any]],
    options: ScriptOptions,
) -> str:
    name = object_name(udt["schema_name"], udt["name"], options.schema_qualify)
    body = ",\n".join(f"\t{render_column(column, options)}" for column in columns)
    return f"CREATE TYPE {name} AS TABLE(\n{body}\n)"


def render_message_type(message_type: dict[str, Any], options: ScriptOptions) -> str:
    validation = MESSAGE_VALIDATIONS.get(message_type.get("validation"), "NONE")
    statement = f"CREATE MESSAGE TYPE {quote_name(message_type['name'])} VALIDATION = {validation}"
    if options.include_if_not_exists:
        return if_not_exists("sys.service_message_types", message_type["name"], statement)
    return statement


def render_contract(
    contract: dict[str, Any],
    usages: Sequence[dict[str, Any]],
    options: ScriptOptions,
) -> str:
    messages = []
    for usage in usages:
        if usage["is_sent_by_initiator"] and usage["is_sent_by_target"]:
            sender = "ANY"
        elif usage["is_sent_by_initiator"]:
            sender = "INITIATOR"
        else:
            sender = "TARGET"
        messages.append(f"{quote_name(usage['message_type'])} SENT BY {sender}")
    statement = f"CREATE CONTRACT {quote_name(contract['name'])} ({', '.join(messages)})"
    if options.include_if_not_exists:
        return if_not_exists("sys.service_contracts", contract["name"], statement)
    return statement


def render_queue(queue: dict[str, Any], options: ScriptOptions) -> str:
    name = object_name(queue["schema_name"], queue["name"], options.schema_qualify)
    status = "ON" if queue.get("is_receive_enabled") else "OFF"
    retention = "ON" if queue.get("is_retention_enabled") else "OFF"
    statement = f"CREATE QUEUE {name} WITH STATUS = {status} , RETENTION = {retention}"
    if options.include_if_not_exists:
        return if_not_exists("sys.service_queues", queue["name"], statement)
    return statement


def render_route(route: dict[str, Any], options: ScriptOptions) -> str:
    statement = f"CREATE ROUTE {quote_name(route['name'])}"
    clauses = []
    if route.get("remote_service_name"):
        clauses.append(f"SERVICE_NAME = {sql_literal(route['remote_service_name'])}")
    if route.get("broker_instance"):
        clauses.append(f"BROKER_INSTANCE = {sql_literal(route['broker_instance'])}")
    clauses.append(f"ADDRESS = {sql_literal(route['address'])}")
    statement += " WITH " + " , ".join(clauses)
    if options.include_if_not_exists:
        return if_not_exists("sys.routes", route["name"], statement)
    return statement


def render_service(
    service: dict[str, Any],
    contracts: Sequence[str],
    options: ScriptOptions,
) -> str:
    queue = object_name(service["queue_schema"], service["queue_name"])
    statement = f"CREATE SERVICE {quote_name(service['name'])} ON QUEUE {queue}"
    if contracts:
        statement += " (" + ", ".join(quote_name(contract) for contract in contracts) + ")"
    return statement


def render_database(database: dict[str, Any], options: ScriptOptions) -> str:
    statement = f"CREATE DATABASE {quote_name(database['name'])}"
    if options.include_collation and database.get("collation_name"):
        statement += f" COLLATE {database['collation_name']}"
    return statement


# ============================================================================
# Backend
# ============================================================================


@dataclass
class CatalogHandle:
    """Backend handle: the catalog row plus extended-property coordinates."""

    row: dict[str, Any] = field(default_factory=dict)
    property_class: int | None = None
    major_id: int | None = None
    minor_id: int = 0


class SqlServerBackend:
    """Schema backend and dependency oracle over a live SQL Server database.

    Args:
        connection_url: SQLAlchemy URL (see ``build_connection_url``)
        server_name: Server name used in object identifiers
        **engine_kwargs: Forwarded to ``create_engine``

    Usage:
        with SqlServerBackend(url, "srv") as backend:
            rows = backend.enumerate_objects("Table")
            tree = backend.discover_dependencies([row.identifier for row in rows])
    """

    def __init__(self, connection_url: str | URL, server_name: str, **engine_kwargs: Any):
        self._url = connection_url
        self._server_name = server_name
        self._engine_kwargs = engine_kwargs
        self._engine: Engine | None = None
        self._conn: Connection | None = None
        self._database_name: str | None = None
        self._objects: dict[ObjectIdentifier, ScriptableObject] = {}
        self._enumerated: set[str] = set()
        self._properties: dict[tuple[int, int, int], dict[str, str]] | None = None
        self._broker_id: ObjectIdentifier | None = None

    def __enter__(self) -> "SqlServerBackend":
        """Context manager entry - opens connection."""
        self._engine = create_engine(self._url, pool_pre_ping=True, **self._engine_kwargs)
        self._conn = self._engine.connect()
        self._database_name = self._conn.scalar(text("SELECT DB_NAME()"))
        logger.debug(f"Connected to {self._server_name}/{self._database_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
        if self._engine:
            self._engine.dispose()
            self._engine = None

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _fetch(self, sql: str, **params: Any) -> list[dict[str, Any]]:
        if not self._conn:
            raise RuntimeError("SqlServerBackend not connected. Use with statement.")
        result = self._conn.execute(text(sql), params)
        return [dict(row) for row in result.mappings()]

    def _fetch_one(self, sql: str, **params: Any) -> dict[str, Any]:
        rows = self._fetch(sql, **params)
        if not rows:
            raise KeyError(f"No catalog row for query: {sql}")
        return rows[0]

    @property
    def database(self) -> str:
        if self._database_name is None:
            raise RuntimeError("SqlServerBackend not connected. Use with statement.")
        return self._database_name

    def _identifier(
        self,
        object_type: str,
        name: str | None,
        schema: str | None = None,
        parent: ObjectIdentifier | None = None,
    ) -> ObjectIdentifier:
        return ObjectIdentifier(
            server=self._server_name,
            database=self.database,
            type=object_type,
            name=name,
            schema_name=schema,
            parent=parent,
        )

    @property
    def _service_broker(self) -> ObjectIdentifier:
        if self._broker_id is None:
            self._broker_id = self._identifier("ServiceBroker", None)
        return self._broker_id

    def _extended_properties(
        self,
        property_class: int | None,
        major_id: int | None,
        minor_id: int = 0,
    ) -> dict[str, str]:
        if property_class is None or major_id is None:
            return {}
        if self._properties is None:
            self._properties = {}
            for row in self._fetch(
                "SELECT class, major_id, minor_id, name, CAST(value AS nvarchar(max)) AS value"
                " FROM sys.extended_properties"
            ):
                key = (row["class"], row["major_id"], row["minor_id"])
                self._properties.setdefault(key, {})[row["name"]] = row["value"] or ""
        return self._properties.get((property_class, major_id, minor_id), {})

    def _make_object(
        self,
        identifier: ObjectIdentifier,
        row: dict[str, Any],
        property_class: int | None,
        major_id: int | None,
        minor_id: int = 0,
        key_type: str | None = None,
    ) -> ScriptableObject:
        obj = ScriptableObject(
            identifier=identifier,
            handle=CatalogHandle(row, property_class, major_id, minor_id),
            object_id=row.get("object_id"),
            is_system_object=bool(row.get("is_system")),
            extended_properties=frozenset(
                self._extended_properties(property_class, major_id, minor_id)
            ),
            key_type=key_type,
        )
        self._objects[identifier] = obj
        return obj

    # ------------------------------------------------------------------
    # SchemaBackend
    # ------------------------------------------------------------------

    def enumerate_objects(self, object_type: str) -> list[ObjectRow]:
        if object_type == "ServiceBroker":
            broker = self._service_broker
            self._objects.setdefault(broker, ScriptableObject(identifier=broker))
            return [ObjectRow(identifier=broker, object_type="ServiceBroker")]

        if object_type not in ENUMERATION_QUERIES:
            return []

        identifier_type, sql = ENUMERATION_QUERIES[object_type]
        property_class = PROPERTY_CLASSES.get(identifier_type, 1)
        parent = self._service_broker if identifier_type in BROKER_TYPES else None
        rows = []
        for row in self._fetch(sql):
            identifier = self._identifier(identifier_type, row["name"], row["schema_name"], parent)
            self._make_object(identifier, row, property_class, row["object_id"])
            rows.append(
                ObjectRow(
                    name=row["name"],
                    schema_name=row["schema_name"],
                    identifier=identifier,
                    object_type=object_type,
                )
            )
        self._enumerated.add(object_type)
        return rows

    def get_database(self) -> ScriptableObject:
        row = self._fetch_one(
            "SELECT database_id AS object_id, name, collation_name FROM sys.databases"
            " WHERE name = DB_NAME()"
        )
        identifier = self._identifier("Database", row["name"])
        return self._make_object(identifier, row, 0, 0)

    def get_object(self, identifier: ObjectIdentifier) -> ScriptableObject:
        if identifier not in self._objects:
            # Objects reached through dependencies may not be enumerated yet
            for enumeration_type, (identifier_type, _) in ENUMERATION_QUERIES.items():
                if identifier_type == identifier.type and enumeration_type not in self._enumerated:
                    self.enumerate_objects(enumeration_type)
        try:
            return self._objects[identifier]
        except KeyError:
            raise KeyError(f"Object not found: {identifier.urn}") from None

    def get_children(self, obj: ScriptableObject, child_type: str) -> list[ScriptableObject]:
        parent = obj.identifier
        if parent.type == "Database" and child_type == "DdlTrigger":
            rows = self._fetch(
                "SELECT object_id, name, is_disabled, is_ms_shipped AS is_system"
                " FROM sys.triggers WHERE parent_class = 0"
            )
            return [
                self._make_object(
                    self._identifier("DdlTrigger", row["name"]), row, 1, row["object_id"]
                )
                for row in rows
            ]

        if parent.type == "ServiceBroker" and child_type == "BrokerService":
            rows = self._fetch(
                "SELECT sv.service_id AS object_id, sv.name,"
                " s.name AS queue_schema, q.name AS queue_name"
                " FROM sys.services sv"
                " JOIN sys.service_queues q ON sv.service_queue_id = q.object_id"
                " JOIN sys.schemas s ON q.schema_id = s.schema_id"
            )
            return [
                self._make_object(
                    self._identifier("BrokerService", row["name"], parent=parent),
                    row,
                    PROPERTY_CLASSES["BrokerService"],
                    row["object_id"],
                )
                for row in rows
            ]

        if parent.type == "Table" and child_type == "ForeignKey":
            rows = self._fetch(
                "SELECT object_id, name FROM sys.foreign_keys"
                " WHERE parent_object_id = :table_id ORDER BY name",
                table_id=obj.object_id,
            )
            return [
                self._make_object(
                    self._identifier("ForeignKey", row["name"], parent=parent),
                    row,
                    1,
                    row["object_id"],
                )
                for row in rows
            ]

        if parent.type == "Table" and child_type == "Index":
            rows = self._fetch(
                "SELECT index_id, name, is_primary_key, is_unique_constraint FROM sys.indexes"
                " WHERE object_id = :table_id AND name IS NOT NULL AND is_hypothetical = 0",
                table_id=obj.object_id,
            )
            children = []
            for row in rows:
                if row["is_primary_key"]:
                    key_type = "PrimaryKey"
                elif row["is_unique_constraint"]:
                    key_type = "UniqueKey"
                else:
                    key_type = None
                identifier = self._identifier("Index", row["name"], parent=parent)
                children.append(
                    self._make_object(identifier, row, 7, obj.object_id, row["index_id"], key_type)
                )
            return children

        return []

    def get_extended_properties(self, obj: ScriptableObject) -> dict[str, str]:
        handle = obj.handle
        if not isinstance(handle, CatalogHandle):
            return {}
        return dict(
            self._extended_properties(handle.property_class, handle.major_id, handle.minor_id)
        )

    def get_script_function(self, obj: ScriptableObject) -> ScriptFunction | None:
        scripters = {
            "Database": self._script_database,
            "Table": self._script_table,
            "ForeignKey": self._script_foreign_key,
            "Synonym": self._script_synonym,
            "Sequence": self._script_sequence,
            "Schema": self._script_schema,
            "User": self._script_user,
            "Role": self._script_role,
            "UserDefinedDataType": self._script_user_defined_data_type,
            "UserDefinedTableType": self._script_user_defined_table_type,
            "MessageType": self._script_message_type,
            "ServiceContract": self._script_contract,
            "ServiceQueue": self._script_queue,
            "ServiceRoute": self._script_route,
            "BrokerService": self._script_service,
        }
        if obj.type in MODULE_TYPES:
            return lambda options: self._script_module(obj, options)
        scripter = scripters.get(obj.type)
        if scripter is None:
            return None
        return lambda options: scripter(obj, options)

    # ------------------------------------------------------------------
    # DependencyOracle
    # ------------------------------------------------------------------

    def _dependency_edges(self) -> dict[ObjectIdentifier, list[ObjectIdentifier]]:
        """identifier -> identifiers it depends on."""
        by_id: dict[int, ObjectIdentifier] = {}
        codes = ", ".join(f"'{code}'" for code in OBJECT_TYPE_CODES)
        for row in self._fetch(
            "SELECT o.object_id, RTRIM(o.type) AS type, s.name AS schema_name, o.name"
            " FROM sys.objects o JOIN sys.schemas s ON o.schema_id = s.schema_id"
            f" WHERE o.type IN ({codes})"
        ):
            object_type = OBJECT_TYPE_CODES[row["type"]]
            by_id[row["object_id"]] = self._identifier(object_type, row["name"], row["schema_name"])

        edges: dict[ObjectIdentifier, list[ObjectIdentifier]] = {}

        def add_edge(source: ObjectIdentifier, target: ObjectIdentifier) -> None:
            targets = edges.setdefault(source, [])
            if target != source and target not in targets:
                targets.append(target)

        for row in self._fetch(
            "SELECT referencing_id, referenced_id,"
            " referenced_server_name, referenced_database_name,"
            " referenced_schema_name, referenced_entity_name"
            " FROM sys.sql_expression_dependencies WHERE referenced_class = 1"
        ):
            source = by_id.get(row["referencing_id"])
            if source is None:
                continue
            external_db = row["referenced_database_name"]
            if row["referenced_server_name"] or (external_db and external_db != self.database):
                add_edge(
                    source,
                    ObjectIdentifier(
                        server=row["referenced_server_name"] or self._server_name,
                        database=external_db or self.database,
                        type="UnresolvedEntity",
                        name=row["referenced_entity_name"],
                        schema_name=row["referenced_schema_name"],
                    ),
                )
            elif row["referenced_id"] in by_id:
                add_edge(source, by_id[row["referenced_id"]])
            else:
                logger.debug(
                    f"Unresolved reference from {source.display_name}: "
                    f"{row['referenced_schema_name']}.{row['referenced_entity_name']}"
                )

        for row in self._fetch(
            "SELECT parent_object_id, referenced_object_id FROM sys.foreign_keys"
            " WHERE parent_object_id <> referenced_object_id"
        ):
            source = by_id.get(row["parent_object_id"])
            target = by_id.get(row["referenced_object_id"])
            if source is not None and target is not None:
                add_edge(source, target)

        for row in self._fetch(
            "SELECT DISTINCT c.object_id, s.name AS schema_name, t.name"
            " FROM sys.columns c"
            " JOIN sys.types t ON c.user_type_id = t.user_type_id"
            " JOIN sys.schemas s ON t.schema_id = s.schema_id"
            " WHERE t.is_user_defined = 1 AND t.is_table_type = 0 AND t.is_assembly_type = 0"
        ):
            source = by_id.get(row["object_id"])
            if source is not None:
                udt = self._identifier("UserDefinedDataType", row["name"], row["schema_name"])
                add_edge(source, udt)

        return edges

    def discover_dependencies(
        self,
        identifiers: Sequence[ObjectIdentifier],
        direction: DependencyDirection = DependencyDirection.PARENTS,
    ) -> DependencyNode:
        edges = self._dependency_edges()
        if direction is DependencyDirection.CHILDREN:
            edges = reverse_edges(edges)
        return build_dependency_tree(identifiers, edges)

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def _row(self, obj: ScriptableObject) -> dict[str, Any]:
        handle = obj.handle
        return handle.row if isinstance(handle, CatalogHandle) else {}

    def _property_statements(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        if not options.extended_properties:
            return []
        identifier = obj.identifier
        level1_type = PROPERTY_LEVEL1_TYPES.get(identifier.type)
        if level1_type is None or identifier.name is None:
            return []
        level0 = ("SCHEMA", identifier.schema_name or "dbo")
        level1 = (level1_type, identifier.name)
        return [
            render_extended_property(name, value, level0, level1)
            for name, value in self.get_extended_properties(obj).items()
        ]

    def _script_table(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        table_id = obj.object_id
        table = self._fetch_one(
            "SELECT s.name AS schema_name, t.name, ds.name AS file_group"
            " FROM sys.tables t JOIN sys.schemas s ON t.schema_id = s.schema_id"
            " LEFT JOIN sys.indexes i ON i.object_id = t.object_id AND i.index_id IN (0, 1)"
            " LEFT JOIN sys.data_spaces ds ON i.data_space_id = ds.data_space_id"
            " WHERE t.object_id = :table_id",
            table_id=table_id,
        )
        columns = self._table_columns(table_id)

        indexes = self._fetch(
            "SELECT i.index_id, i.name, i.type_desc, i.is_unique,"
            " i.is_primary_key, i.is_unique_constraint,"
            " i.filter_definition, ds.name AS file_group"
            " FROM sys.indexes i LEFT JOIN sys.data_spaces ds ON i.data_space_id = ds.data_space_id"
            " WHERE i.object_id = :table_id AND i.name IS NOT NULL AND i.is_hypothetical = 0"
            " ORDER BY i.index_id",
            table_id=table_id,
        )
        index_columns = self._fetch(
            "SELECT ic.index_id, c.name, ic.is_descending_key, ic.is_included_column"
            " FROM sys.index_columns ic"
            " JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id"
            " WHERE ic.object_id = :table_id"
            " ORDER BY ic.index_id, ic.key_ordinal, ic.index_column_id",
            table_id=table_id,
        )

        def index_columns_of(index_id: int, included: bool) -> list[dict[str, Any]]:
            return [
                c
                for c in index_columns
                if c["index_id"] == index_id and bool(c["is_included_column"]) == included
            ]

        key_constraints = []
        for index in indexes:
            if index["is_primary_key"] or index["is_unique_constraint"]:
                constraint = {
                    "name": index["name"],
                    "type": "PK" if index["is_primary_key"] else "UQ",
                    "type_desc": index["type_desc"],
                }
                key = index_columns_of(index["index_id"], included=False)
                key_constraints.append((constraint, key))

        statements = [
            "SET ANSI_NULLS ON",
            "SET QUOTED_IDENTIFIER ON",
            render_create_table(table, columns, key_constraints, options),
        ]

        if options.indexes:
            for index in indexes:
                if index["is_primary_key"] or index["is_unique_constraint"]:
                    continue
                key = index_columns_of(index["index_id"], included=False)
                included = index_columns_of(index["index_id"], included=True)
                statements.append(render_index(table, index, key, included, options))

        if options.defaults:
            for default in self._fetch(
                "SELECT dc.name, dc.definition, c.name AS column_name"
                " FROM sys.default_constraints dc"
                " JOIN sys.columns c"
                " ON dc.parent_object_id = c.object_id AND dc.parent_column_id = c.column_id"
                " WHERE dc.parent_object_id = :table_id ORDER BY dc.name",
                table_id=table_id,
            ):
                statements.append(render_default_constraint(table, default, options))

        if options.foreign_keys:
            for foreign_key in self.get_children(obj, "ForeignKey"):
                statements.extend(self._script_foreign_key(foreign_key, options))

        if options.checks:
            for check in self._fetch(
                "SELECT name, definition, is_disabled, is_not_trusted FROM sys.check_constraints"
                " WHERE parent_object_id = :table_id ORDER BY name",
                table_id=table_id,
            ):
                statements.extend(render_check_constraint(table, check, options))

        if options.triggers:
            for trigger in self._fetch(
                "SELECT tr.name, tr.is_disabled,"
                " m.definition, m.uses_ansi_nulls, m.uses_quoted_identifier"
                " FROM sys.triggers tr JOIN sys.sql_modules m ON tr.object_id = m.object_id"
                " WHERE tr.parent_id = :table_id ORDER BY tr.name",
                table_id=table_id,
            ):
                statements.extend(
                    render_module(
                        trigger["definition"],
                        trigger["uses_ansi_nulls"],
                        trigger["uses_quoted_identifier"],
                    )
                )
                if trigger["is_disabled"]:
                    table_name = object_name(
                        table["schema_name"], table["name"], options.schema_qualify
                    )
                    trigger_name = quote_name(trigger["name"])
                    statements.append(f"ALTER TABLE {table_name} DISABLE TRIGGER {trigger_name}")

        statements.extend(self._property_statements(obj, options))
        if options.extended_properties:
            level0 = ("SCHEMA", table["schema_name"])
            level1 = ("TABLE", table["name"])
            for column in columns:
                level2 = ("COLUMN", column["name"])
                properties = self._extended_properties(1, table_id, column["column_id"])
                for name, value in properties.items():
                    statements.append(render_extended_property(name, value, level0, level1, level2))
        return statements

    def _table_columns(self, object_id: int | None) -> list[dict[str, Any]]:
        return self._fetch(
            "SELECT c.column_id, c.name,"
            " t.name AS type_name, t.is_user_defined, ts.name AS type_schema,"
            " c.max_length, c.precision, c.scale, c.is_nullable, c.is_identity, c.collation_name,"
            " CAST(ic.seed_value AS bigint) AS seed_value,"
            " CAST(ic.increment_value AS bigint) AS increment_value,"
            " cc.definition AS computed_definition, cc.is_persisted"
            " FROM sys.columns c"
            " JOIN sys.types t ON c.user_type_id = t.user_type_id"
            " JOIN sys.schemas ts ON t.schema_id = ts.schema_id"
            " LEFT JOIN sys.identity_columns ic"
            " ON c.object_id = ic.object_id AND c.column_id = ic.column_id"
            " LEFT JOIN sys.computed_columns cc"
            " ON c.object_id = cc.object_id AND c.column_id = cc.column_id"
            " WHERE c.object_id = :object_id ORDER BY c.column_id",
            object_id=object_id,
        )

    def _script_foreign_key(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        foreign_key = self._fetch_one(
            "SELECT fk.name, ps.name AS schema_name, pt.name AS table_name,"
            " rs.name AS referenced_schema, rt.name AS referenced_table,"
            " fk.is_disabled, fk.is_not_trusted,"
            " fk.delete_referential_action_desc AS delete_action,"
            " fk.update_referential_action_desc AS update_action"
            " FROM sys.foreign_keys fk"
            " JOIN sys.tables pt ON fk.parent_object_id = pt.object_id"
            " JOIN sys.schemas ps ON pt.schema_id = ps.schema_id"
            " JOIN sys.tables rt ON fk.referenced_object_id = rt.object_id"
            " JOIN sys.schemas rs ON rt.schema_id = rs.schema_id"
            " WHERE fk.object_id = :fk_id",
            fk_id=obj.object_id,
        )
        columns = self._fetch(
            "SELECT pc.name AS column_name, rc.name AS referenced_column"
            " FROM sys.foreign_key_columns fkc"
            " JOIN sys.columns pc"
            " ON fkc.parent_object_id = pc.object_id AND fkc.parent_column_id = pc.column_id"
            " JOIN sys.columns rc ON fkc.referenced_object_id = rc.object_id"
            " AND fkc.referenced_column_id = rc.column_id"
            " WHERE fkc.constraint_object_id = :fk_id ORDER BY fkc.constraint_column_id",
            fk_id=obj.object_id,
        )
        table = {"schema_name": foreign_key["schema_name"], "name": foreign_key["table_name"]}
        return render_foreign_key(table, foreign_key, columns, options)

    def _script_module(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        module = self._fetch_one(
            "SELECT definition, uses_ansi_nulls, uses_quoted_identifier FROM sys.sql_modules"
            " WHERE object_id = :object_id",
            object_id=obj.object_id,
        )
        if module["definition"] is None:
            logger.debug(f"Module definition not visible: {obj.identifier.display_name}")
            return []
        statements = render_module(
            module["definition"],
            module["uses_ansi_nulls"],
            module["uses_quoted_identifier"],
        )
        if obj.type == "DdlTrigger" and self._row(obj).get("is_disabled"):
            trigger_name = quote_name(obj.identifier.name or "")
            statements.append(f"DISABLE TRIGGER {trigger_name} ON DATABASE")
        statements.extend(self._property_statements(obj, options))
        return statements

    def _script_database(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        return [render_database(self._row(obj), options)]

    def _script_schema(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        schema = self._fetch_one(
            "SELECT s.name, p.name AS owner FROM sys.schemas s"
            " JOIN sys.database_principals p ON s.principal_id = p.principal_id"
            " WHERE s.schema_id = :schema_id",
            schema_id=obj.object_id,
        )
        return [render_schema(schema, options)]

    def _script_user(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        user = self._fetch_one(
            "SELECT dp.name, dp.type, dp.default_schema_name, sp.name AS login_name"
            " FROM sys.database_principals dp LEFT JOIN sys.server_principals sp ON dp.sid = sp.sid"
            " WHERE dp.principal_id = :principal_id",
            principal_id=obj.object_id,
        )
        return [render_user(user, options)]

    def _script_role(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        role = self._fetch_one(
            "SELECT r.name, o.name AS owner FROM sys.database_principals r"
            " LEFT JOIN sys.database_principals o ON r.owning_principal_id = o.principal_id"
            " WHERE r.principal_id = :principal_id",
            principal_id=obj.object_id,
        )
        return [render_role(role, options)]

    def _script_synonym(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        synonym = self._fetch_one(
            "SELECT s.name AS schema_name, y.name, y.base_object_name FROM sys.synonyms y"
            " JOIN sys.schemas s ON y.schema_id = s.schema_id WHERE y.object_id = :object_id",
            object_id=obj.object_id,
        )
        return [render_synonym(synonym, options), *self._property_statements(obj, options)]

    def _script_sequence(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        sequence = self._fetch_one(
            "SELECT s.name AS schema_name, q.name, t.name AS type_name, t.is_user_defined,"
            " q.precision, q.scale, t.max_length,"
            " CAST(q.start_value AS nvarchar(40)) AS start_value,"
            " CAST(q.increment AS nvarchar(40)) AS increment,"
            " CAST(q.minimum_value AS nvarchar(40)) AS minimum_value,"
            " CAST(q.maximum_value AS nvarchar(40)) AS maximum_value, q.is_cycling"
            " FROM sys.sequences q JOIN sys.schemas s ON q.schema_id = s.schema_id"
            " JOIN sys.types t ON q.user_type_id = t.user_type_id WHERE q.object_id = :object_id",
            object_id=obj.object_id,
        )
        return [render_sequence(sequence, options), *self._property_statements(obj, options)]

    def _script_user_defined_data_type(
        self, obj: ScriptableObject, options: ScriptOptions
    ) -> list[str]:
        udt = self._fetch_one(
            "SELECT s.name AS schema_name, t.name, b.name AS type_name, 0 AS is_user_defined,"
            " t.max_length, t.precision, t.scale, t.is_nullable"
            " FROM sys.types t JOIN sys.schemas s ON t.schema_id = s.schema_id"
            " JOIN sys.types b ON t.system_type_id = b.user_type_id"
            " WHERE t.user_type_id = :type_id",
            type_id=obj.object_id,
        )
        return [render_user_defined_data_type(udt, options)]

    def _script_user_defined_table_type(
        self, obj: ScriptableObject, options: ScriptOptions
    ) -> list[str]:
        udt = self._fetch_one(
            "SELECT s.name AS schema_name, t.name, t.type_table_object_id FROM sys.table_types t"
            " JOIN sys.schemas s ON t.schema_id = s.schema_id WHERE t.user_type_id = :type_id",
            type_id=obj.object_id,
        )
        columns = self._table_columns(udt["type_table_object_id"])
        return [render_user_defined_table_type(udt, columns, options)]

    def _script_message_type(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        message_type = self._fetch_one(
            "SELECT name, validation FROM sys.service_message_types WHERE message_type_id = :id",
            id=obj.object_id,
        )
        return [render_message_type(message_type, options)]

    def _script_contract(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        usages = self._fetch(
            "SELECT m.name AS message_type, u.is_sent_by_initiator, u.is_sent_by_target"
            " FROM sys.service_contract_message_usages u"
            " JOIN sys.service_message_types m ON u.message_type_id = m.message_type_id"
            " WHERE u.service_contract_id = :id ORDER BY m.name",
            id=obj.object_id,
        )
        return [render_contract({"name": obj.identifier.name}, usages, options)]

    def _script_queue(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        queue = self._fetch_one(
            "SELECT s.name AS schema_name, q.name, q.is_receive_enabled, q.is_retention_enabled"
            " FROM sys.service_queues q JOIN sys.schemas s ON q.schema_id = s.schema_id"
            " WHERE q.object_id = :object_id",
            object_id=obj.object_id,
        )
        return [render_queue(queue, options)]

    def _script_route(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        route = self._fetch_one(
            "SELECT name, remote_service_name, broker_instance, address FROM sys.routes"
            " WHERE route_id = :id",
            id=obj.object_id,
        )
        return [render_route(route, options)]

    def _script_service(self, obj: ScriptableObject, options: ScriptOptions) -> list[str]:
        contracts = self._fetch(
            "SELECT c.name FROM sys.service_contract_usages u"
            " JOIN sys.service_contracts c ON u.service_contract_id = c.service_contract_id"
            " WHERE u.service_id = :id ORDER BY c.name",
            id=obj.object_id,
        )
        return [render_service(self._row(obj), [row["name"] for row in contracts], options)]
