"""
Per-entry compiler.

Each entry is emitted as one self-contained ES module:

    import * as __kb_ext_react from "react";      <- externals used by inlined modules
    import { jsx } from "react/jsx-runtime";       <- the entry's own external imports

    const __kb_m0 = (() => {                       <- internal modules, dependencies first
    ...module body...
    return Object.freeze({
      get cx() { return cx; },
    });
    })();

    const cx = __kb_m0.cx;                         <- the entry's internal imports
    ...entry body...

Internal modules shared by several entries are inlined into each of them; an
output module never imports another entry's output. Comments are stripped.
Compilation only reads the shared graph, so entries can be compiled in
parallel (see compile_entries).
"""

import json
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .callbacks import NullCallback, ProgressCallback
from .css_modules import ScopedStylesheet
from .js_lexer import TokenKind
from .models import CompiledUnit, EntryPhase, OutputName, SourceEntry
from .module_graph import ModuleGraph, ModuleNode
from .module_parser import DEFAULT, NAMESPACE, ExportForm, ExportStatement, ImportStatement

logger = logging.getLogger(__name__)

MODULE_PREFIX = "__kb_m"
EXTERNAL_PREFIX = "__kb_ext_"
REEXPORT_PREFIX = "__kb_re"
DEFAULT_LOCAL = "__kb_default"

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")


class _Edits:
    """Non-overlapping text edits applied in one pass."""

    def __init__(self, text: str):
        self.text = text
        self.edits: List[Tuple[int, int, str]] = []

    def replace(self, start: int, end: int, replacement: str) -> None:
        self.edits.append((start, end, replacement))

    def remove(self, start: int, end: int) -> None:
        """Remove a range, taking its whole line(s) when nothing else is on them."""
        line_start = self.text.rfind("\n", 0, start) + 1
        line_end = self.text.find("\n", end)
        if line_end < 0:
            line_end = len(self.text)
        if not self.text[line_start:start].strip() and not self.text[end:line_end].strip():
            self.replace(line_start, min(line_end + 1, len(self.text)), "")
        else:
            self.replace(start, end, "")

    def strip_comment(self, start: int, end: int, value: str) -> None:
        line_start = self.text.rfind("\n", 0, start) + 1
        line_end = self.text.find("\n", end)
        if line_end < 0:
            line_end = len(self.text)
        if not self.text[line_start:start].strip() and not self.text[end:line_end].strip():
            self.replace(line_start, min(line_end + 1, len(self.text)), "")
        elif value.startswith("//") or value.startswith("#!"):
            while start > line_start and self.text[start - 1] in " \t":
                start -= 1
            self.replace(start, end, "")
        else:
            self.replace(start, end, "\n" if "\n" in value else " ")

    def apply(self) -> str:
        out: List[str] = []
        cursor = 0
        for start, end, replacement in sorted(self.edits, key=lambda e: (e[0], e[1])):
            if start < cursor:
                continue  # inside a range already rewritten
            out.append(self.text[cursor:start])
            out.append(replacement)
            cursor = end
        out.append(self.text[cursor:])
        return "".join(out)


@dataclass
class _UnitNames:
    """Identifiers assigned to inlined modules and hoisted externals for one unit."""

    modules: Dict[str, str] = field(default_factory=dict)
    externals: Dict[str, str] = field(default_factory=dict)


@dataclass
class _Rewritten:
    body: str
    prologue: List[str] = field(default_factory=list)
    external_statements: List[str] = field(default_factory=list)
    getters: List[Tuple[str, str]] = field(default_factory=list)
    trailer: List[str] = field(default_factory=list)


class EntryCompiler:
    """Compiles entries against a verified, shared module graph."""

    def __init__(self, graph: ModuleGraph, stylesheets: Mapping[str, ScopedStylesheet]):
        self.graph = graph
        self.stylesheets = stylesheets

    def compile(self, entry: SourceEntry, output: OutputName) -> CompiledUnit:
        """
        Compile one entry and its internal closure into a single module.

        Args:
            entry: Entry to compile
            output: Output names assigned to the entry

        Returns:
            CompiledUnit (bound_style_asset not yet set)
        """
        closure = self.graph.closure(entry.relative_path)
        inlined = closure[:-1]
        names = _UnitNames(modules={path: f"{MODULE_PREFIX}{i}" for i, path in enumerate(inlined)})

        hoisted_externals = sorted({spec for path in inlined for spec in self.graph.node(path).externals})
        used_identifiers: set = set()
        for spec in hoisted_externals:
            identifier = EXTERNAL_PREFIX + re.sub(r"[^\w$]", "_", spec)
            while identifier in used_identifiers:
                identifier += "_"
            used_identifiers.add(identifier)
            names.externals[spec] = identifier

        factories = [self._factory(self.graph.node(path), names) for path in inlined]
        entry_part = self._rewrite(self.graph.node(entry.relative_path), names, is_entry=True)

        header = [f"import * as {ident} from {json.dumps(spec)};" for spec, ident in names.externals.items()]
        header.extend(entry_part.external_statements)

        sections = []
        if header:
            sections.append("\n".join(header))
        sections.extend(factories)
        body = "\n".join(entry_part.prologue + ([entry_part.body] if entry_part.body else []) + entry_part.trailer)
        if body:
            sections.append(body)
        code = "\n\n".join(sections) + "\n"

        logger.debug(f"Compiled {entry.logical_name}: {len(closure)} modules, {len(code)} bytes")
        return CompiledUnit(
            logical_name=entry.logical_name,
            output=output,
            compiled_code=code,
            imported_externals=self.graph.externals(entry.relative_path),
            stylesheets=self.graph.stylesheets(entry.relative_path),
            closure=closure,
        )

    def _factory(self, node: ModuleNode, names: _UnitNames) -> str:
        part = self._rewrite(node, names, is_entry=False)
        lines = [f"const {names.modules[node.path]} = (() => {{"]
        lines.extend(part.prologue)
        if part.body:
            lines.append(part.body)
        getters = sorted(part.getters)
        if getters:
            lines.append("return Object.freeze({")
            lines.extend(f"  get {_property(name)}() {{ return {expression}; }}," for name, expression in getters)
            lines.append("});")
        else:
            lines.append("return Object.freeze({});")
        lines.append("})();")
        return "\n".join(lines)

    def _rewrite(self, node: ModuleNode, names: _UnitNames, is_entry: bool) -> _Rewritten:
        record = node.record
        edits = _Edits(node.text)
        result = _Rewritten(body="")

        for token in record.tokens:
            if token.kind is TokenKind.COMMENT:
                edits.strip_comment(token.start, token.end, token.value)

        for statement in record.imports:
            edits.remove(statement.start, statement.end)
            self._rewrite_import(node, statement, names, is_entry, result)

        explicit = {
            name
            for statement in record.exports
            if statement.form is not ExportForm.FROM_ALL
            for name in statement.exported_names
        }
        for statement in record.exports:
            self._rewrite_export(node, statement, names, is_entry, explicit, edits, result)

        result.body = edits.apply().strip()
        return result

    def _rewrite_import(
        self,
        node: ModuleNode,
        statement: ImportStatement,
        names: _UnitNames,
        is_entry: bool,
        result: _Rewritten,
    ) -> None:
        target = node.resolved.get(statement.specifier)
        if target is None:
            if is_entry:
                result.external_statements.append(_import_text(statement))
                return
            source = names.externals[statement.specifier]
        elif not self.graph.node(target).is_script:
            for binding in statement.bindings:
                mapping = json.dumps(self.stylesheets[target].mapping, ensure_ascii=False)
                result.prologue.append(f"const {binding.local} = Object.freeze({mapping});")
            return
        else:
            source = names.modules[target]

        for binding in statement.bindings:
            value = source if binding.imported == NAMESPACE else _member(source, binding.imported)
            result.prologue.append(f"const {binding.local} = {value};")

    def _rewrite_export(
        self,
        node: ModuleNode,
        statement: ExportStatement,
        names: _UnitNames,
        is_entry: bool,
        explicit: set,
        edits: _Edits,
        result: _Rewritten,
    ) -> None:
        form = statement.form

        if form is ExportForm.DECLARATION:
            if not is_entry:
                edits.replace(statement.start, statement.prefix_end, "")
                result.getters.extend((name, name) for name in statement.names)
            return

        if form is ExportForm.DEFAULT_DECLARATION:
            if is_entry:
                return
            edits.replace(statement.start, statement.prefix_end, "")
            if statement.default_local:
                result.getters.append((DEFAULT, statement.default_local))
            else:
                at = statement.anonymous_insert_at
                edits.replace(at, at, f" {DEFAULT_LOCAL}")
                result.getters.append((DEFAULT, DEFAULT_LOCAL))
            return

        if form is ExportForm.DEFAULT_EXPRESSION:
            if not is_entry:
                edits.replace(statement.start, statement.prefix_end, f"const {DEFAULT_LOCAL} = ")
                result.getters.append((DEFAULT, DEFAULT_LOCAL))
            return

        if form is ExportForm.LOCAL_LIST:
            if not is_entry:
                edits.remove(statement.start, statement.end)
                result.getters.extend((spec.exported, spec.local) for spec in statement.specifiers)
            return

        # Re-exports
        edits.remove(statement.start, statement.end)
        target = node.resolved.get(statement.specifier)
        if target is None:
            if is_entry:
                result.external_statements.append(_reexport_text(statement))
                return
            source = names.externals[statement.specifier]
        else:
            source = names.modules[target]

        if form is ExportForm.FROM_NAMESPACE:
            pairs = [(statement.specifiers[0].exported, source)]
        elif form is ExportForm.FROM_LIST:
            pairs = [(spec.exported, _member(source, spec.local)) for spec in statement.specifiers]
        else:
            forwarded = [
                name
                for name in self.graph.export_table(target).names
                if name != DEFAULT and name not in explicit
            ]
            explicit.update(forwarded)
            pairs = [(name, _member(source, name)) for name in forwarded]

        if not is_entry:
            result.getters.extend(pairs)
            return

        specifiers = []
        for exported, expression in pairs:
            if _IDENTIFIER_RE.fullmatch(expression):
                local = expression
            else:
                local = f"{REEXPORT_PREFIX}{len(result.trailer)}"
                result.trailer.append(f"const {local} = {expression};")
            specifiers.append(local if local == exported else f"{local} as {_property(exported)}")
        if specifiers:
            result.trailer.append(f"export {{ {', '.join(specifiers)} }};")


def compile_entries(
    compiler: EntryCompiler,
    entries: Sequence[SourceEntry],
    outputs: Mapping[str, OutputName],
    jobs: Optional[int] = None,
    callback: Optional[ProgressCallback] = None,
) -> List[CompiledUnit]:
    """
    Compile every entry in a bounded thread pool.

    The first failure cancels every entry not yet started and is re-raised;
    results are returned in entry order regardless of completion order.

    Args:
        compiler: Compiler bound to the verified graph
        entries: Entries in discovery order
        outputs: Output names by logical name
        jobs: Worker count (default: os.cpu_count())
        callback: Progress callback

    Returns:
        One CompiledUnit per entry, in entry order
    """
    callback = callback or NullCallback()
    if not entries:
        return []
    workers = max(1, min(jobs or os.cpu_count() or 1, len(entries)))
    logger.debug(f"Compiling {len(entries)} entries with {workers} workers")

    for entry in entries:
        callback.on_progress(entry.logical_name, EntryPhase.WAITING, "")

    results: Dict[str, CompiledUnit] = {}
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compile")
    try:
        futures = [
            executor.submit(_compile_one, compiler, entry, outputs[entry.logical_name], callback) for entry in entries
        ]
        for future in as_completed(futures):
            unit = future.result()
            results[unit.logical_name] = unit
    except BaseException:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return [results[entry.logical_name] for entry in entries]


def _compile_one(
    compiler: EntryCompiler,
    entry: SourceEntry,
    output: OutputName,
    callback: ProgressCallback,
) -> CompiledUnit:
    callback.on_progress(entry.logical_name, EntryPhase.COMPILING, "")
    try:
        unit = compiler.compile(entry, output)
    except Exception as e:
        callback.on_progress(entry.logical_name, EntryPhase.FAILED, str(e))
        raise
    detail = f"{len(unit.closure)} modules"
    if unit.stylesheets:
        detail += f", {len(unit.stylesheets)} stylesheets"
    callback.on_progress(entry.logical_name, EntryPhase.DONE, detail)
    return unit


def _property(name: str) -> str:
    return name if _IDENTIFIER_RE.fullmatch(name) else json.dumps(name, ensure_ascii=False)


def _member(source: str, name: str) -> str:
    if _IDENTIFIER_RE.fullmatch(name):
        return f"{source}.{name}"
    return f"{source}[{json.dumps(name, ensure_ascii=False)}]"


def _import_text(statement: ImportStatement) -> str:
    specifier = json.dumps(statement.specifier, ensure_ascii=False)
    if statement.side_effect_only:
        return f"import {specifier};"
    parts: List[str] = []
    named: List[str] = []
    for binding in statement.bindings:
        if binding.imported == DEFAULT:
            parts.insert(0, binding.local)
        elif binding.imported == NAMESPACE:
            parts.append(f"* as {binding.local}")
        elif binding.imported == binding.local:
            named.append(binding.local)
        else:
            named.append(f"{_property(binding.imported)} as {binding.local}")
    if named:
        parts.append(f"{{ {', '.join(named)} }}")
    return f"import {', '.join(parts)} from {specifier};"


def _reexport_text(statement: ExportStatement) -> str:
    specifier = json.dumps(statement.specifier, ensure_ascii=False)
    if statement.form is ExportForm.FROM_ALL:
        return f"export * from {specifier};"
    if statement.form is ExportForm.FROM_NAMESPACE:
        return f"export * as {_property(statement.specifiers[0].exported)} from {specifier};"
    named = []
    for spec in statement.specifiers:
        if spec.local == spec.exported:
            named.append(_property(spec.local))
        else:
            named.append(f"{_property(spec.local)} as {_property(spec.exported)}")
    return f"export {{ {', '.join(named)} }} from {specifier};"
