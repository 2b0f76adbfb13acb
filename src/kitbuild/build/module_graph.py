"""
Shared module graph for a library build.

Every module reachable from any entry is read and parsed exactly once, then the
graph is frozen and handed read-only to the verifier and to every emission
worker. Per-entry views (closure, stylesheets, externals) are derived from the
shared graph on demand.

Example:
    graph = ModuleGraph.load(source_root, entries, classifier)
    verify_graph(graph)
    for entry in entries:
        graph.closure(entry.relative_path)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .dependency_classifier import STYLESHEET_EXTENSION, DependencyClassifier
from .error_collector import Diagnostic, ErrorSeverity
from .errors import DiscoveryError, UnresolvedImportError
from .js_lexer import LexError
from .models import SourceEntry
from .module_parser import DEFAULT, ExportForm, ModuleParseError, ModuleRecord, parse_module

logger = logging.getLogger(__name__)


class ModuleKind(Enum):
    SCRIPT = "script"
    STYLESHEET = "stylesheet"


@dataclass(frozen=True)
class ModuleNode:
    """One module of the graph.

    Attributes:
        path: Source-root-relative path
        kind: Script or stylesheet
        text: Source text
        record: Parsed surface (scripts only; None when parsing failed)
        resolved: Internal import specifier -> resolved path, in import order
        externals: External identifiers imported by this module
        scoped: Stylesheet is a CSS module (class names are scoped)
    """

    path: str
    kind: ModuleKind
    text: str
    record: Optional[ModuleRecord] = None
    resolved: Mapping[str, str] = field(default_factory=dict)
    externals: frozenset[str] = frozenset()
    scoped: bool = False

    @property
    def is_script(self) -> bool:
        return self.kind is ModuleKind.SCRIPT

    def dependencies(self) -> List[str]:
        """Resolved internal dependencies, deduplicated, in import order."""
        seen: List[str] = []
        for path in self.resolved.values():
            if path not in seen:
                seen.append(path)
        return seen


@dataclass(frozen=True)
class ExportTable:
    """Exported names of a script module (sorted), plus unenumerable star sources."""

    names: tuple[str, ...] = ()
    star_externals: tuple[str, ...] = ()

    def provides(self, name: str) -> bool:
        return name in self.names or (bool(self.star_externals) and name != DEFAULT)


class ModuleGraph:
    """Immutable graph of every module reachable from the entries."""

    def __init__(
        self,
        source_root: Path,
        entries: Sequence[SourceEntry],
        nodes: Dict[str, ModuleNode],
        classifier: DependencyClassifier,
        diagnostics: Sequence[Diagnostic] = (),
    ):
        self.source_root = source_root
        self.entries = tuple(entries)
        self.nodes: Mapping[str, ModuleNode] = MappingProxyType(dict(sorted(nodes.items())))
        self.classifier = classifier
        self.diagnostics = tuple(diagnostics)
        self._entry_set = frozenset(self.entry_paths)
        self._export_tables: Mapping[str, ExportTable] = MappingProxyType(
            {path: self._build_export_table(path, set()) for path in self.nodes}
        )

    @classmethod
    def load(
        cls,
        source_root: Path,
        entries: Iterable[SourceEntry],
        classifier: DependencyClassifier,
        style_suffix: str = ".module.css",
    ) -> "ModuleGraph":
        """
        Read and parse every module reachable from the entries.

        Parse failures are recorded as diagnostics for the verification pass;
        imports that cannot be located abort the load.

        Raises:
            UnresolvedImportError: If a bundled import is not in the source tree
            DiscoveryError: If an entry file cannot be read
        """
        entries = sorted(entries, key=lambda e: e.relative_path)
        nodes: Dict[str, ModuleNode] = {}
        diagnostics: List[Diagnostic] = []
        queue: List[str] = [e.relative_path for e in entries]
        importers: Dict[str, tuple[str, str]] = {}

        while queue:
            path = queue.pop(0)
            if path in nodes:
                continue
            text = _read_source(source_root / path, path, importers.get(path))

            if path.endswith(STYLESHEET_EXTENSION):
                nodes[path] = ModuleNode(
                    path=path,
                    kind=ModuleKind.STYLESHEET,
                    text=text,
                    scoped=path.endswith(style_suffix),
                )
                continue

            try:
                record = parse_module(path, text)
            except (LexError, ModuleParseError) as e:
                diagnostics.append(Diagnostic(ErrorSeverity.ERROR, "syntax", path, e.message, e.line, e.column))
                nodes[path] = ModuleNode(path=path, kind=ModuleKind.SCRIPT, text=text)
                continue

            resolved: Dict[str, str] = {}
            externals = set()
            for specifier in _static_specifiers(record):
                if classifier.is_external(specifier):
                    externals.add(specifier)
                    continue
                if specifier in resolved:
                    continue
                target = classifier.resolve(specifier, path)
                resolved[specifier] = target
                importers.setdefault(target, (specifier, path))
                if target not in nodes:
                    queue.append(target)

            nodes[path] = ModuleNode(
                path=path,
                kind=ModuleKind.SCRIPT,
                text=text,
                record=record,
                resolved=MappingProxyType(resolved),
                externals=frozenset(externals),
            )
            logger.debug(f"Loaded {path}: {len(resolved)} internal, {len(externals)} external imports")

        return cls(source_root, entries, nodes, classifier, diagnostics)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, path: str) -> bool:
        return path in self.nodes

    def node(self, path: str) -> ModuleNode:
        return self.nodes[path]

    @property
    def entry_paths(self) -> List[str]:
        return [e.relative_path for e in self.entries]

    def closure(self, entry_path: str) -> tuple[str, ...]:
        """Script modules reachable from an entry, dependencies first, entry last."""
        order: List[str] = []
        visited: set = set()

        def visit(path: str) -> None:
            visited.add(path)
            for dep in self.nodes[path].dependencies():
                if dep not in visited and self.nodes[dep].is_script:
                    visit(dep)
            order.append(path)

        visit(entry_path)
        return tuple(order)

    def stylesheets(self, entry_path: str) -> tuple[str, ...]:
        """Stylesheets reached by an entry's closure, in closure order."""
        sheets: List[str] = []
        for path in self.closure(entry_path):
            for dep in self.nodes[path].dependencies():
                if not self.nodes[dep].is_script and dep not in sheets:
                    sheets.append(dep)
        return tuple(sheets)

    def externals(self, entry_path: str) -> frozenset[str]:
        """External identifiers imported anywhere in an entry's closure."""
        found: set = set()
        for path in self.closure(entry_path):
            found.update(self.nodes[path].externals)
        return frozenset(found)

    def is_entry(self, path: str) -> bool:
        return path in self._entry_set

    def export_table(self, path: str) -> "ExportTable":
        """
        Names a script module exports, following `export *` chains.

        `export *` never forwards "default", and an explicit export wins over a
        star-forwarded one. Stars from external modules cannot be enumerated and
        are listed in `star_externals`. Tables are computed when the graph is
        built, so concurrent compiles only read them.
        """
        return self._export_tables[path]

    def _build_export_table(self, path: str, visiting: set) -> "ExportTable":
        node = self.nodes[path]
        if node.record is None or path in visiting:
            return ExportTable()
        visiting.add(path)
        explicit: List[str] = []
        for statement in node.record.exports:
            explicit.extend(statement.exported_names)
        names = set(explicit)
        star_externals: List[str] = []
        for statement in node.record.exports:
            if statement.form is not ExportForm.FROM_ALL:
                continue
            target = node.resolved.get(statement.specifier)
            if target is None:
                star_externals.append(statement.specifier)
                continue
            if not self.nodes[target].is_script:
                continue
            inner = self._build_export_table(target, visiting)
            names.update(n for n in inner.names if n != DEFAULT)
            star_externals.extend(inner.star_externals)
        visiting.discard(path)
        return ExportTable(names=tuple(sorted(names)), star_externals=tuple(dict.fromkeys(star_externals)))

    def find_cycles(self) -> List[List[str]]:
        """Find internal import cycles using DFS with coloring (white/gray/black).

        Returns:
            One path per back edge, each ending at the module it started from
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        color: Dict[str, int] = {path: WHITE for path in self.nodes}
        cycles: List[List[str]] = []

        def dfs(path: str, trail: List[str]) -> None:
            color[path] = GRAY
            trail.append(path)
            for dep in self.nodes[path].dependencies():
                if color[dep] == GRAY:
                    cycles.append(trail[trail.index(dep):] + [dep])
                elif color[dep] == WHITE:
                    dfs(dep, trail)
            trail.pop()
            color[path] = BLACK

        for path in self.nodes:
            if color[path] == WHITE:
                dfs(path, [])
        return cycles


def _static_specifiers(record: ModuleRecord) -> List[str]:
    """Specifiers of static imports and re-exports, in source order."""
    located = [(s.start, s.specifier) for s in record.imports]
    located.extend((s.start, s.specifier) for s in record.exports if s.specifier is not None)
    return [specifier for _, specifier in sorted(located)]


def _read_source(path: Path, relative: str, imported_by: Optional[tuple[str, str]]) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        if imported_by is None:
            raise DiscoveryError(f"cannot read entry '{relative}': {e}", path.parent) from e
        specifier, importer = imported_by
        raise UnresolvedImportError(specifier, importer, f"cannot read '{relative}': {e}") from e
