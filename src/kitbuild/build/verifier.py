"""
Static verification pass over the shared module graph.

Runs once per build, before any entry is emitted, and reports every problem
it finds in one TypeCheckError:

- syntax errors recorded while loading the graph
- malformed stylesheets and stylesheet `@import` rules
- duplicate exports, exports of undeclared names, duplicate bindings
- imports of names the internal target does not export (`export *` followed)
- stylesheet imports that do not match the stylesheet kind
- class lookups on a CSS module mapping for classes it does not define
- dynamic import() of bundled modules
- `export * from "<external>"` outside an entry module
- internal import cycles
"""

import logging
from typing import Dict, Optional

from .css_modules import CssSyntaxError, ScopedStylesheet, scope_stylesheet
from .error_collector import ErrorCollector
from .module_graph import ModuleGraph, ModuleNode
from .module_parser import DEFAULT, NAMESPACE, ExportForm

logger = logging.getLogger(__name__)


def verify_graph(graph: ModuleGraph, collector: Optional[ErrorCollector] = None) -> Dict[str, ScopedStylesheet]:
    """
    Verify the whole graph.

    Args:
        graph: Loaded module graph
        collector: Collector to record into (a fresh one by default)

    Returns:
        Compiled stylesheets keyed by source-relative path, reused by emission

    Raises:
        TypeCheckError: If any error diagnostic was recorded
    """
    collector = collector or ErrorCollector()
    collector.extend(list(graph.diagnostics))

    stylesheets: Dict[str, ScopedStylesheet] = {}
    for path, node in graph.nodes.items():
        if node.is_script:
            continue
        try:
            stylesheets[path] = scope_stylesheet(path, node.text, scoped=node.scoped)
        except CssSyntaxError as e:
            collector.add("styles", path, e.message, e.line, e.column)
            continue
        for rule in stylesheets[path].imports:
            collector.add(
                "styles",
                path,
                f"@import of '{rule.url}' is not bundled; import the stylesheet from a script module instead",
                rule.line,
                rule.column,
            )

    for path, node in graph.nodes.items():
        if node.is_script and node.record is not None:
            _verify_module(graph, node, stylesheets, collector)

    for cycle in graph.find_cycles():
        collector.add("graph", cycle[0], f"import cycle: {' -> '.join(cycle)}")

    collector.raise_if_errors()
    logger.debug(f"Verified {len(graph)} modules, {len(stylesheets)} stylesheets")
    return stylesheets


def _verify_module(
    graph: ModuleGraph,
    node: ModuleNode,
    stylesheets: Dict[str, ScopedStylesheet],
    collector: ErrorCollector,
) -> None:
    record = node.record
    path = node.path

    # Bindings
    bound: Dict[str, int] = {}
    for statement in record.imports:
        for binding in statement.bindings:
            if binding.local in bound or binding.local in record.declarations:
                collector.add("imports", path, f"duplicate binding '{binding.local}'", statement.line, statement.column)
            bound[binding.local] = statement.line
    declared = set(record.declarations) | set(bound)

    # Exports
    exported: Dict[str, int] = {}
    for statement in record.exports:
        for name in statement.exported_names:
            if name in exported:
                collector.add("exports", path, f"duplicate export '{name}'", statement.line, statement.column)
            exported[name] = statement.line
        if statement.form is ExportForm.LOCAL_LIST:
            for spec in statement.specifiers:
                if spec.local not in declared:
                    collector.add(
                        "exports",
                        path,
                        f"export of undeclared name '{spec.local}'",
                        statement.line,
                        statement.column,
                    )
        if statement.specifier is None:
            continue
        target = node.resolved.get(statement.specifier)
        if target is None:
            if statement.form is ExportForm.FROM_ALL and not graph.is_entry(path):
                collector.add(
                    "exports",
                    path,
                    f"cannot forward 'export *' from external '{statement.specifier}' in a non-entry module",
                    statement.line,
                    statement.column,
                )
            continue
        if not graph.node(target).is_script:
            collector.add("exports", path, f"cannot re-export from stylesheet '{target}'", statement.line, statement.column)
            continue
        if statement.form is ExportForm.FROM_LIST:
            table = graph.export_table(target)
            for spec in statement.specifiers:
                if not table.provides(spec.local):
                    collector.add(
                        "exports",
                        path,
                        f"'{spec.local}' is not exported by '{target}'",
                        statement.line,
                        statement.column,
                    )

    # Imports
    style_bindings: Dict[str, str] = {}
    for statement in record.imports:
        target = node.resolved.get(statement.specifier)
        if target is None:
            continue
        target_node = graph.node(target)
        if not target_node.is_script:
            for binding in statement.bindings:
                if binding.imported != DEFAULT:
                    collector.add(
                        "styles",
                        path,
                        f"stylesheet '{target}' only provides a default import",
                        statement.line,
                        statement.column,
                    )
                elif not target_node.scoped:
                    collector.add(
                        "styles",
                        path,
                        f"global stylesheet '{target}' has no class mapping",
                        statement.line,
                        statement.column,
                    )
                else:
                    style_bindings[binding.local] = target
            continue
        table = graph.export_table(target)
        for binding in statement.bindings:
            if binding.imported == NAMESPACE:
                continue
            if not table.provides(binding.imported):
                what = "default export" if binding.imported == DEFAULT else f"'{binding.imported}'"
                collector.add(
                    "imports",
                    path,
                    f"{what} is not exported by '{target}'",
                    statement.line,
                    statement.column,
                )

    for dynamic in record.dynamic_imports:
        if not graph.classifier.is_external(dynamic.specifier):
            collector.add(
                "imports",
                path,
                f"dynamic import of bundled module '{dynamic.specifier}' is not supported",
                dynamic.line,
                dynamic.column,
            )

    # Class lookups
    for access in record.member_accesses:
        target = style_bindings.get(access.object)
        if target is None or target not in stylesheets:
            continue
        if access.property not in stylesheets[target].mapping:
            collector.add(
                "styles",
                path,
                f"class '{access.property}' is not defined in '{target}'",
                access.line,
                access.column,
            )
