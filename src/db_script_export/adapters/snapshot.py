"""Offline schema backend reading a JSON snapshot of a database.

A snapshot describes one database: its objects, the DDL statements that
create them, their child objects and what each object depends on. It
implements both ``SchemaBackend`` and ``DependencyOracle``, so an export can
run without a server (reproducible builds, tests).

Document layout:

    {
      "version": 1,
      "server": "srv",
      "database": "Shop",
      "database_object": {"statements": ["CREATE DATABASE [Shop]"]},
      "objects": [
        {
          "type": "Table", "schema": "dbo", "name": "Orders",
          "statements": [
            "CREATE TABLE [dbo].[Orders] (...)",
            {"text": "ALTER TABLE ...", "requires": "foreign_keys"}
          ],
          "children": [{"type": "ForeignKey", "name": "FK_Orders_Customers",
                        "statements": ["ALTER TABLE ..."]}],
          "depends_on": [{"type": "Table", "schema": "dbo", "name": "Customers"}]
        }
      ]
    }

Objects without ``statements`` have no script capability. A ``requires``
statement is only emitted when the named ``ScriptOptions`` switch is on.
Dependencies naming another ``database`` (or ``server``) are external.

Usage:
    with SnapshotBackend.from_file("shop.json") as backend:
        scripter = DependencyGraphScripter(backend, backend, config)
        scripter.run()
"""

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

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

SNAPSHOT_VERSION = 1

# Enumeration type for identifier types whose names differ
ENUMERATION_TYPES = {
    "Role": "DatabaseRole",
    "UserDefinedTableType": "UserDefinedTableTypes",
}


# ============================================================================
# Document Models
# ============================================================================


class SnapshotStatement(BaseModel):
    """A statement emitted only when one scripting switch is on."""

    model_config = ConfigDict(extra="forbid")

    text: str
    requires: str

    @field_validator("requires")
    @classmethod
    def _known_option(cls, value: str) -> str:
        if value not in ScriptOptions.model_fields:
            raise ValueError(f"unknown scripting option: {value}")
        return value


class SnapshotReference(BaseModel):
    """Reference to another object (a dependency)."""

    model_config = ConfigDict(extra="forbid")

    type: str
    name: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    database: str | None = None
    server: str | None = None


class SnapshotObject(BaseModel):
    """One object of the snapshot, children included."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str
    name: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    enumeration_type: str | None = None
    object_id: int | None = None
    is_system_object: bool = False
    extended_properties: dict[str, str] = Field(default_factory=dict)
    statements: list[str | SnapshotStatement] | None = None
    key_type: str | None = None
    children: list["SnapshotObject"] = Field(default_factory=list)
    depends_on: list[SnapshotReference] = Field(default_factory=list)


class SnapshotDatabase(BaseModel):
    """The database object itself (optional in a document)."""

    model_config = ConfigDict(extra="forbid")

    statements: list[str | SnapshotStatement] | None = None
    extended_properties: dict[str, str] = Field(default_factory=dict)
    children: list[SnapshotObject] = Field(default_factory=list)


class SnapshotDocument(BaseModel):
    """Top level of a snapshot file."""

    model_config = ConfigDict(extra="forbid")

    version: int = SNAPSHOT_VERSION
    server: str
    database: str
    database_object: SnapshotDatabase = Field(default_factory=SnapshotDatabase)
    objects: list[SnapshotObject] = Field(default_factory=list)

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {value} (expected {SNAPSHOT_VERSION})")
        return value


# ============================================================================
# Backend
# ============================================================================


def _render(statements: list[str | SnapshotStatement], options: ScriptOptions) -> list[str]:
    """Statements enabled by *options*."""
    rendered = []
    for statement in statements:
        if isinstance(statement, str):
            rendered.append(statement)
        elif getattr(options, statement.requires):
            rendered.append(statement.text)
    return rendered


class SnapshotBackend:
    """Schema backend and dependency oracle over a snapshot document.

    Usage:
        backend = SnapshotBackend.from_dict({"server": "srv", "database": "Shop",
                                             "objects": [...]})
        rows = backend.enumerate_objects("Table")
        tree = backend.discover_dependencies([row.identifier for row in rows])
    """

    def __init__(self, document: SnapshotDocument):
        """Index a validated snapshot document.

        Raises:
            ValueError: If object identities repeat, or a dependency names
                an object of this database the snapshot doesn't contain
        """
        self._document = document
        self._objects: dict[ObjectIdentifier, ScriptableObject] = {}
        self._statements: dict[ObjectIdentifier, list[str | SnapshotStatement] | None] = {}
        self._properties: dict[ObjectIdentifier, dict[str, str]] = {}
        self._children: dict[ObjectIdentifier, list[ObjectIdentifier]] = {}
        self._depends_on: dict[ObjectIdentifier, list[ObjectIdentifier]] = {}
        self._rows: dict[str, list[ObjectRow]] = {}

        self._database_id = ObjectIdentifier(
            server=document.server,
            database=document.database,
            type="Database",
            name=document.database,
        )
        database = document.database_object
        self._add(
            ScriptableObject(
                identifier=self._database_id,
                extended_properties=frozenset(database.extended_properties),
            ),
            database.statements,
            database.extended_properties,
        )
        for child in database.children:
            self._index(child, parent=self._database_id)

        for entry in document.objects:
            identifier = self._index(entry, parent=None)
            enumeration_type = entry.enumeration_type or ENUMERATION_TYPES.get(
                entry.type, entry.type
            )
            self._rows.setdefault(enumeration_type, []).append(
                ObjectRow(
                    name=entry.name,
                    schema_name=entry.schema_name,
                    identifier=identifier,
                    object_type=enumeration_type,
                )
            )

        self._check_dependencies()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SnapshotBackend":
        """Build a backend from an already parsed document.

        Raises:
            ValueError: If the document is malformed
        """
        try:
            document = SnapshotDocument.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid snapshot document:\n{e}") from e
        return cls(document)

    @classmethod
    def from_file(cls, path: str | Path) -> "SnapshotBackend":
        """Load a snapshot JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file isn't a valid snapshot
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Snapshot {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot {path} does not contain a JSON object")
        return cls.from_dict(data)

    def __enter__(self) -> "SnapshotBackend":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    @property
    def server(self) -> str:
        return self._document.server

    @property
    def database(self) -> str:
        return self._document.database

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def _add(
        self,
        obj: ScriptableObject,
        statements: list[str | SnapshotStatement] | None,
        properties: dict[str, str],
    ) -> None:
        if obj.identifier in self._objects:
            raise ValueError(f"Duplicate object in snapshot: {obj.identifier.urn}")
        self._objects[obj.identifier] = obj
        self._statements[obj.identifier] = statements
        self._properties[obj.identifier] = properties
        self._children.setdefault(obj.identifier, [])

    def _index(self, entry: SnapshotObject, parent: ObjectIdentifier | None) -> ObjectIdentifier:
        identifier = ObjectIdentifier(
            server=self.server,
            database=self.database,
            type=entry.type,
            name=entry.name,
            schema_name=entry.schema_name,
            parent=parent if parent != self._database_id else None,
        )
        obj = ScriptableObject(
            identifier=identifier,
            handle=entry,
            object_id=entry.object_id,
            is_system_object=entry.is_system_object,
            extended_properties=frozenset(entry.extended_properties),
            key_type=entry.key_type,
        )
        self._add(obj, entry.statements, entry.extended_properties)
        if parent is not None:
            self._children[parent].append(identifier)

        self._depends_on[identifier] = [self._reference(ref) for ref in entry.depends_on]
        for child in entry.children:
            self._index(child, parent=identifier)
        return identifier

    def _reference(self, ref: SnapshotReference) -> ObjectIdentifier:
        return ObjectIdentifier(
            server=ref.server or self.server,
            database=ref.database or self.database,
            type=ref.type,
            name=ref.name,
            schema_name=ref.schema_name,
        )

    def _check_dependencies(self) -> None:
        for identifier, references in self._depends_on.items():
            for ref in references:
                if ref.same_database(identifier) and ref not in self._objects:
                    raise ValueError(
                        f"{identifier.display_name} depends on {ref.display_name} "
                        f"({ref.type}), which is not in the snapshot"
                    )

    # ------------------------------------------------------------------
    # SchemaBackend
    # ------------------------------------------------------------------

    def enumerate_objects(self, object_type: str) -> list[ObjectRow]:
        return list(self._rows.get(object_type, []))

    def get_database(self) -> ScriptableObject:
        return self._objects[self._database_id]

    def get_object(self, identifier: ObjectIdentifier) -> ScriptableObject:
        try:
            return self._objects[identifier]
        except KeyError:
            raise KeyError(f"Object not in snapshot: {identifier.urn}") from None

    def get_children(self, obj: ScriptableObject, child_type: str) -> list[ScriptableObject]:
        return [
            self._objects[child]
            for child in self._children.get(obj.identifier, [])
            if child.type == child_type
        ]

    def get_script_function(self, obj: ScriptableObject) -> ScriptFunction | None:
        statements = self._statements.get(obj.identifier)
        if statements is None:
            return None
        return lambda options: _render(statements, options)

    def get_extended_properties(self, obj: ScriptableObject) -> dict[str, str]:
        return dict(self._properties.get(obj.identifier, {}))

    # ------------------------------------------------------------------
    # DependencyOracle
    # ------------------------------------------------------------------

    def discover_dependencies(
        self,
        identifiers: Sequence[ObjectIdentifier],
        direction: DependencyDirection = DependencyDirection.PARENTS,
    ) -> DependencyNode:
        edges = self._depends_on
        if direction is DependencyDirection.CHILDREN:
            edges = reverse_edges(edges)
        return build_dependency_tree(identifiers, edges)
