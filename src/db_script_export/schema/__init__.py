"""Schema object identity, dependency graph, classification and ordering.

Usage:
    from db_script_export.schema import ObjectIdentifier, DependencyNode
    from db_script_export.schema import classify_objects, dependency_sort_key
    from db_script_export.schema import normalize_constraint_statements, clean_statements
"""

from db_script_export.schema.classifier import ClassifiedObjects, classify_objects
from db_script_export.schema.models import (
    DependencyDirection,
    DependencyNode,
    ObjectIdentifier,
    ObjectRow,
    ResolutionState,
    ScriptableObject,
    ScriptArtifact,
    ScriptFunction,
    ScriptOptions,
    build_dependency_tree,
    reverse_edges,
)
from db_script_export.schema.normalizer import clean_statements, normalize_constraint_statements
from db_script_export.schema.ordering import (
    dependency_sort_key,
    independent_sort_key,
    sort_dependency_nodes,
    sort_independent_objects,
)

__all__ = [
    # Models
    "ObjectIdentifier",
    "ObjectRow",
    "ScriptableObject",
    "ScriptOptions",
    "ScriptFunction",
    "ScriptArtifact",
    "DependencyDirection",
    "DependencyNode",
    "ResolutionState",
    "build_dependency_tree",
    "reverse_edges",
    # Classification
    "ClassifiedObjects",
    "classify_objects",
    # Normalization
    "normalize_constraint_statements",
    "clean_statements",
    # Ordering
    "dependency_sort_key",
    "independent_sort_key",
    "sort_dependency_nodes",
    "sort_independent_objects",
]
