"""Deterministic ordering of objects within one export.

Two orderings are used:
- dependency-tree siblings: by position in ``dependent_type_order``, then
  case-insensitive name
- independent objects: by position in ``independent_type_order`` (unlisted
  types after all listed ones), then type, then named before unnamed,
  unnamed by canonical URN, then case-insensitive name

Both are key functions for Python's stable sort, so ties keep input order.

Usage:
    children = sort_dependency_nodes(node.children, rules)
    objects = sort_independent_objects(independent_first, rules)
"""

from collections.abc import Iterable

from db_script_export.config.models import DEFAULT_RULES, ScriptingRules
from db_script_export.schema.models import DependencyNode, ObjectIdentifier, ScriptableObject


def _type_index(order: tuple[str, ...], object_type: str, missing: int) -> int:
    try:
        return order.index(object_type)
    except ValueError:
        return missing


def _name_key(name: str | None) -> str:
    return (name or "").casefold()


def dependency_sort_key(
    identifier: ObjectIdentifier | None,
    rules: ScriptingRules = DEFAULT_RULES,
) -> tuple[int, str]:
    """Sort key for siblings in the dependency tree.

    Types missing from ``dependent_type_order`` get index -1 and so sort
    ahead of every listed type.
    """
    if identifier is None:
        return (-1, "")
    return (
        _type_index(rules.dependent_type_order, identifier.type, -1),
        _name_key(identifier.name),
    )


def independent_sort_key(
    obj: ScriptableObject | ObjectIdentifier,
    rules: ScriptingRules = DEFAULT_RULES,
) -> tuple[int, str, int, str, str]:
    """Sort key for independent (non-dependency-tracked) objects."""
    identifier = obj.identifier if isinstance(obj, ScriptableObject) else obj
    unnamed = identifier.name is None
    return (
        _type_index(
            rules.independent_type_order,
            identifier.type,
            len(rules.independent_type_order),
        ),
        identifier.type,
        1 if unnamed else 0,
        identifier.urn if unnamed else "",
        _name_key(identifier.name),
    )


def sort_dependency_nodes(
    nodes: Iterable[DependencyNode],
    rules: ScriptingRules = DEFAULT_RULES,
) -> list[DependencyNode]:
    """Return *nodes* ordered by ``dependency_sort_key``."""
    return sorted(nodes, key=lambda node: dependency_sort_key(node.identifier, rules))


def sort_independent_objects(
    objects: Iterable[ScriptableObject],
    rules: ScriptingRules = DEFAULT_RULES,
) -> list[ScriptableObject]:
    """Return *objects* ordered by ``independent_sort_key``."""
    return sorted(objects, key=lambda obj: independent_sort_key(obj, rules))
