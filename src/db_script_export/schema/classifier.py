"""Object classification: which objects are exported, and in which phase.

Enumerates every enumerable object type of the database and splits the
rows into three collections:
- dependent: identifiers whose order comes from the dependency oracle
- independent_first: objects scripted before the dependency walk
- independent_last: objects scripted after it (broker services)

Usage:
    from db_script_export.schema.classifier import classify_objects

    classified = classify_objects(backend, config)
    tree = oracle.discover_dependencies(classified.dependent)
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from db_script_export.config.models import DEFAULT_RULES, ExportConfig, ScriptingRules
from db_script_export.schema.models import ObjectIdentifier, ScriptableObject

if TYPE_CHECKING:
    from db_script_export.adapters.base import SchemaBackend

logger = logging.getLogger(__name__)


@dataclass
class ClassifiedObjects:
    """Result of ``classify_objects``."""

    dependent: list[ObjectIdentifier] = field(default_factory=list)
    independent_first: list[ScriptableObject] = field(default_factory=list)
    independent_last: list[ScriptableObject] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.dependent) + len(self.independent_first) + len(self.independent_last)


def classify_objects(
    backend: "SchemaBackend",
    config: ExportConfig,
    rules: ScriptingRules = DEFAULT_RULES,
) -> ClassifiedObjects:
    """Enumerate and classify the objects selected by *config*.

    Args:
        backend: Schema backend to enumerate
        config: Export config (name filter, excluded types)
        rules: Type tables and excluded schemas

    Returns:
        ClassifiedObjects, each list in enumeration order
    """
    result = ClassifiedObjects()

    for enumeration_type in rules.enumerated_types:
        if config.is_type_excluded(enumeration_type):
            continue

        logger.debug(f"Getting objects: {enumeration_type}")
        for row in backend.enumerate_objects(enumeration_type):
            # All objects, or only the named one
            if config.object_name is not None and row.name != config.object_name:
                continue
            if row.schema_name in rules.excluded_schemas:
                continue
            if config.is_type_excluded(row.identifier.type):
                continue

            if row.object_type in rules.dependent_type_order:
                result.dependent.append(row.identifier)
            elif row.object_type == "ServiceBroker":
                # The container itself is never scripted, its services are
                container = backend.get_object(row.identifier)
                result.independent_last.extend(backend.get_children(container, "BrokerService"))
            else:
                result.independent_first.append(backend.get_object(row.identifier))

    logger.debug(
        f"Classified {result.total} objects: {len(result.dependent)} dependent, "
        f"{len(result.independent_first)} first, {len(result.independent_last)} last"
    )
    return result
