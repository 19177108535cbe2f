"""Schema backend and dependency oracle protocol definitions.

The export engine never talks to a database directly. It reads objects
through a ``SchemaBackend`` and asks a ``DependencyOracle`` which objects
depend on which. Both are synchronous.

Usage:
    from db_script_export.adapters.base import DependencyOracle, SchemaBackend

    def export(backend: SchemaBackend, oracle: DependencyOracle) -> None:
        rows = backend.enumerate_objects("Table")
        tree = oracle.discover_dependencies([row.identifier for row in rows])
"""

from collections.abc import Sequence
from typing import Protocol

from db_script_export.schema.models import (
    DependencyDirection,
    DependencyNode,
    ObjectIdentifier,
    ObjectRow,
    ScriptableObject,
    ScriptFunction,
)


class SchemaBackend(Protocol):
    """Read access to the objects of one database.

    Implementations: ``SnapshotBackend`` (JSON document) and
    ``SqlServerBackend`` (live SQL Server).
    """

    def enumerate_objects(self, object_type: str) -> list[ObjectRow]:
        """Enumerate all objects of one enumerable type.

        Args:
            object_type: Enumeration type name (e.g. ``"Table"``,
                ``"DatabaseRole"``).

        Returns:
            One row per object. Types the backend doesn't know give an
            empty list.
        """
        ...

    def get_database(self) -> ScriptableObject:
        """Return the database object itself."""
        ...

    def get_object(self, identifier: ObjectIdentifier) -> ScriptableObject:
        """Resolve an identifier to a scriptable object.

        Raises:
            KeyError: If the backend has no such object.
        """
        ...

    def get_children(self, obj: ScriptableObject, child_type: str) -> list[ScriptableObject]:
        """Return child objects of *obj* of one type (e.g. ``"ForeignKey"``)."""
        ...

    def get_script_function(self, obj: ScriptableObject) -> ScriptFunction | None:
        """Return the script function of *obj*, or None if it can't be scripted."""
        ...

    def get_extended_properties(self, obj: ScriptableObject) -> dict[str, str]:
        """Return extended property names and values of *obj*."""
        ...


class DependencyOracle(Protocol):
    """Dependency discovery for a set of objects."""

    def discover_dependencies(
        self,
        identifiers: Sequence[ObjectIdentifier],
        direction: DependencyDirection = DependencyDirection.PARENTS,
    ) -> DependencyNode:
        """Build a dependency tree for *identifiers*.

        Args:
            identifiers: Objects to start from.
            direction: PARENTS for what the objects depend on, CHILDREN
                for what depends on them.

        Returns:
            Root sentinel node (``identifier`` None) whose children are the
            input objects. Nodes may be shared, and cycles are allowed.
        """
        ...
