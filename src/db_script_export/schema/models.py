"""Schema-domain models for the dependency-ordered script export.

This module contains:
- Identity: ObjectIdentifier (URN-style canonical form), ObjectRow
- Scripting inputs: ScriptableObject, ScriptOptions, ScriptFunction
- Dependency graph: DependencyNode, DependencyDirection, ResolutionState
- Output: ScriptArtifact

Configuration models (ExportConfig, ScriptingRules) live in
db_script_export.config.models.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


def _quote(value: str) -> str:
    """Quote a value for a URN filter (single quotes doubled)."""
    return "'" + value.replace("'", "''") + "'"


# ============================================================================
# Object Identity
# ============================================================================


class ObjectIdentifier(BaseModel):
    """Immutable, hashable identity of a schema object.

    Equality and hashing follow the canonical URN string, so two
    identifiers built independently for the same object compare equal.

    Example:
        >>> table = ObjectIdentifier(server="srv", database="Shop", type="Table",
        ...                          name="Orders", schema_name="dbo")
        >>> table.urn
        "Server[@Name='srv']/Database[@Name='Shop']/Table[@Name='Orders' and @Schema='dbo']"
        >>> table.display_name
        '[dbo].[Orders]'
    """

    model_config = ConfigDict(frozen=True)

    server: str
    database: str
    type: str
    name: str | None = None
    schema_name: str | None = None
    parent: "ObjectIdentifier | None" = None

    @property
    def urn(self) -> str:
        """Canonical SMO-style URN string."""
        base = f"Server[@Name={_quote(self.server)}]/Database[@Name={_quote(self.database)}]"
        if self.type == "Database":
            return base
        prefix = self.parent.urn if self.parent is not None else base
        if self.name is None:
            return f"{prefix}/{self.type}"
        segment = f"@Name={_quote(self.name)}"
        if self.schema_name is not None:
            segment += f" and @Schema={_quote(self.schema_name)}"
        return f"{prefix}/{self.type}[{segment}]"

    @property
    def display_name(self) -> str:
        """``[schema].[name]``, ``[name]``, or the type for unnamed objects."""
        if self.name is None:
            return self.type
        if self.schema_name is not None:
            return f"[{self.schema_name}].[{self.name}]"
        return f"[{self.name}]"

    @property
    def qualified_name(self) -> str:
        """Database-qualified name, used when reporting external references."""
        return f"[{self.database}].{self.display_name}"

    def same_database(self, other: "ObjectIdentifier") -> bool:
        """True if *other* lives on the same server and database."""
        return self.server == other.server and self.database == other.database

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ObjectIdentifier):
            return NotImplemented
        return self.urn == other.urn

    def __hash__(self) -> int:
        return hash(self.urn)

    def __str__(self) -> str:
        return self.urn


class ObjectRow(BaseModel):
    """One row of an object-type enumeration."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    schema_name: str | None = None
    identifier: ObjectIdentifier
    object_type: str  # enumeration type, e.g. DatabaseRole for a Role


# ============================================================================
# Scripting Inputs
# ============================================================================


@dataclass
class ScriptableObject:
    """A backend object ready to be scripted.

    ``handle`` is opaque to the engine; only the backend reads it.
    The remaining fields are what the exclusion filter needs.
    """

    identifier: ObjectIdentifier
    handle: Any = None
    object_id: int | None = None
    is_system_object: bool = False
    extended_properties: frozenset[str] = frozenset()
    key_type: str | None = None  # PrimaryKey / UniqueKey for indexes

    @property
    def type(self) -> str:
        return self.identifier.type

    @property
    def name(self) -> str | None:
        return self.identifier.name


class ScriptOptions(BaseModel):
    """Per-object scripting switches handed to a script function."""

    schema_qualify: bool = False
    schema_qualify_foreign_key_references: bool = False
    include_collation: bool = False
    include_file_groups: bool = False
    extended_properties: bool = False
    include_if_not_exists: bool = False
    foreign_keys: bool = True
    checks: bool = True
    defaults: bool = True
    indexes: bool = True
    primary_key: bool = True
    unique_keys: bool = True
    triggers: bool = True


# Turns options into the object's DDL statements (one batch each)
ScriptFunction = Callable[[ScriptOptions], list[str]]


# ============================================================================
# Dependency Graph
# ============================================================================


class DependencyDirection(Enum):
    """Which way a dependency discovery walks."""

    PARENTS = "parents"  # objects the inputs depend on
    CHILDREN = "children"  # objects depending on the inputs


@dataclass(eq=False)
class DependencyNode:
    """Node of a dependency tree; ``identifier`` is None for the root.

    Nodes may be shared between parents, so the "tree" can be a cyclic
    graph. ``parent`` is the first parent the node was attached to.
    """

    identifier: ObjectIdentifier | None = None
    parent: "DependencyNode | None" = None
    children: list["DependencyNode"] = field(default_factory=list)

    def add_child(self, child: "DependencyNode") -> None:
        """Attach *child* once; the first attachment sets its parent."""
        if any(existing is child for existing in self.children):
            return
        if child.parent is None:
            child.parent = self
        self.children.append(child)


@dataclass
class ResolutionState:
    """Per-run resolution state of the dependency walk.

    ``resolving`` is the ordered stack of identifiers currently being
    visited; ``resolved`` holds every identifier already written.
    """

    resolved: set[ObjectIdentifier] = field(default_factory=set)
    resolving: list[ObjectIdentifier] = field(default_factory=list)

    def is_resolved(self, identifier: ObjectIdentifier) -> bool:
        return identifier in self.resolved

    def is_resolving(self, identifier: ObjectIdentifier) -> bool:
        return identifier in self.resolving

    def push(self, identifier: ObjectIdentifier) -> None:
        self.resolving.append(identifier)

    def pop(self) -> ObjectIdentifier:
        return self.resolving.pop()

    def mark_resolved(self, identifier: ObjectIdentifier) -> None:
        self.resolved.add(identifier)

    def ancestor_chain(self, identifier: ObjectIdentifier) -> list[ObjectIdentifier]:
        """Identifiers being resolved, followed by *identifier*."""
        return [*self.resolving, identifier]


# ============================================================================
# Output
# ============================================================================


@dataclass(frozen=True)
class ScriptArtifact:
    """Script text of one object, ready for the writer."""

    object_type: str
    object_name: str | None
    script_text: str


# ============================================================================
# Dependency Tree Construction
# ============================================================================


def build_dependency_tree(
    identifiers: Iterable[ObjectIdentifier],
    edges: Mapping[ObjectIdentifier, Iterable[ObjectIdentifier]],
) -> DependencyNode:
    """Build a dependency tree from an adjacency mapping.

    Each identifier gets exactly one node, shared by every parent that
    reaches it, so cycles in *edges* become cycles in the tree.

    Args:
        identifiers: Objects the root sentinel starts from
        edges: identifier -> identifiers it leads to

    Returns:
        Root sentinel node
    """
    nodes: dict[ObjectIdentifier, DependencyNode] = {}

    def node_for(identifier: ObjectIdentifier) -> DependencyNode:
        node = nodes.get(identifier)
        if node is not None:
            return node
        node = nodes[identifier] = DependencyNode(identifier=identifier)
        for target in edges.get(identifier, ()):
            node.add_child(node_for(target))
        return node

    root = DependencyNode()
    for identifier in identifiers:
        root.add_child(node_for(identifier))
    return root


def reverse_edges(
    edges: Mapping[ObjectIdentifier, Iterable[ObjectIdentifier]],
) -> dict[ObjectIdentifier, list[ObjectIdentifier]]:
    """Invert an adjacency mapping (dependencies -> dependents)."""
    reversed_edges: dict[ObjectIdentifier, list[ObjectIdentifier]] = {}
    for source, targets in edges.items():
        for target in targets:
            reversed_edges.setdefault(target, []).append(source)
    return reversed_edges
