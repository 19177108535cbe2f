"""Dependency-ordered export of a whole database.

Export phases:
1. classify the selected objects (dependent / independent first / last)
2. script the database itself (optional)
3. script the independent-first objects (roles, users, schemas, ...)
4. walk the dependency tree, scripting every object after its
   same-database dependencies
5. script the independent-last objects (broker services, foreign keys
   split off their tables)
6. save the build order

Circular references are reported with a warning and broken; an object is
scripted at most once per run.

Usage:
    scripter = DependencyGraphScripter(backend, oracle, config)
    build_order = scripter.run()
"""

import logging
from typing import TYPE_CHECKING

from db_script_export.config.models import DEFAULT_RULES, ExportConfig, ScriptingRules
from db_script_export.export.strategies import (
    TypeScriptingStrategy,
    configure_script_options,
    is_excluded_object,
    object_display_name,
)
from db_script_export.export.writer import ScriptArtifactWriter
from db_script_export.schema.classifier import classify_objects
from db_script_export.schema.models import (
    DependencyDirection,
    DependencyNode,
    ResolutionState,
    ScriptableObject,
    ScriptArtifact,
)
from db_script_export.schema.normalizer import clean_statements, normalize_constraint_statements
from db_script_export.schema.ordering import sort_dependency_nodes, sort_independent_objects

if TYPE_CHECKING:
    from db_script_export.adapters.base import DependencyOracle, SchemaBackend

logger = logging.getLogger(__name__)


class DependencyGraphScripter:
    """Scripts a database in dependency order.

    One instance holds the state of one run; create a new one per export.

    Args:
        backend: Schema backend to read objects from
        oracle: Dependency oracle for the dependent objects
        config: Export config
        writer: Artifact writer (default: built from *config*)
        rules: Scripting rules
    """

    def __init__(
        self,
        backend: "SchemaBackend",
        oracle: "DependencyOracle",
        config: ExportConfig,
        writer: ScriptArtifactWriter | None = None,
        rules: ScriptingRules = DEFAULT_RULES,
    ):
        self._backend = backend
        self._oracle = oracle
        self._config = config
        self._rules = rules
        self.writer = writer if writer is not None else ScriptArtifactWriter(config)
        self.state = ResolutionState()
        self.independent_last: list[ScriptableObject] = []
        self._strategy = TypeScriptingStrategy(
            backend,
            config,
            self.writer,
            rules,
            defer=self.independent_last.append,
        )

    def run(self) -> list[str]:
        """Run the export.

        Returns:
            Build order (files written, in order); empty for stdout and
            single-file output
        """
        classified = classify_objects(self._backend, self._config, self._rules)
        self.independent_last.extend(classified.independent_last)

        if self._config.script_database:
            database = self._backend.get_database()
            self.script_object(database)
            self.state.mark_resolved(database.identifier)

        # Marked resolved so the dependency walk doesn't script them again
        for obj in sort_independent_objects(classified.independent_first, self._rules):
            self.script_object(obj)
            self.state.mark_resolved(obj.identifier)

        if classified.dependent:
            root = self._oracle.discover_dependencies(
                classified.dependent, DependencyDirection.PARENTS
            )
            self.resolve(root)

        # Sorted only now: tables add their foreign keys during the walk
        for obj in sort_independent_objects(self.independent_last, self._rules):
            self.script_object(obj)

        self.writer.write_order_file()
        return list(self.writer.build_order)

    def resolve(self, node: DependencyNode) -> None:
        """Script *node*'s dependencies, then *node* itself."""
        identifier = node.identifier
        if identifier is not None:
            if self.state.is_resolved(identifier):
                return
            if self.state.is_resolving(identifier):
                if not self._config.foreign_keys_separately:
                    chain = " > ".join(
                        item.display_name for item in self.state.ancestor_chain(identifier)
                    )
                    logger.warning(
                        f"Circular reference (consider --foreign-keys-separately): {chain}"
                    )
                return
            self.state.push(identifier)

        for child in sort_dependency_nodes(node.children, self._rules):
            child_id = child.identifier
            if identifier is None or child_id is None or child_id.same_database(identifier):
                self.resolve(child)
            else:
                logger.debug(f"Skipping external dependency: {child_id.qualified_name}")

        if identifier is not None:
            self.state.pop()
            self.script_object(self._backend.get_object(identifier))
            self.state.mark_resolved(identifier)

    def script_object(self, obj: ScriptableObject) -> None:
        """Script one object and hand the result to the writer."""
        if is_excluded_object(obj, self._rules):
            logger.debug(f"Skipping excluded object: {obj.type}, {obj.identifier.display_name}")
            return

        options = configure_script_options(self._config, obj.type, self._rules)
        statements = self._strategy.script(obj, options)
        if statements is None:
            return

        script_text = clean_statements(normalize_constraint_statements(statements))
        if script_text:
            name = object_display_name(obj.identifier, self._config.schema_qualify)
            self.writer.write(ScriptArtifact(obj.type, name, script_text))
