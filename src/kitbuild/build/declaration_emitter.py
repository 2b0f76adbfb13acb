"""
Type declaration emitter.

Writes one `.d.ts` per compiled unit, exporting exactly the names the compiled
module exports. Shapes are resolved statically from the shared graph:

- function declarations, arrow functions and function expressions
      -> `declare function` with JSDoc @param / @returns types (default `any`)
- classes -> `declare class` with the constructor signature
- const/let/var -> JSDoc @type, or the primitive type of a literal initializer
- a CSS module mapping -> an object type with one readonly string per class
- re-exports from external modules -> forwarded, when the module is typed

Anything else cannot be declared and fails the build with DeclarationEmitError.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .css_modules import ScopedStylesheet
from .errors import DeclarationEmitError
from .js_lexer import Token, TokenKind
from .models import CompiledUnit
from .module_graph import ModuleGraph
from .module_parser import DEFAULT, NAMESPACE, Declaration, DeclKind, ExportForm, JSDoc, Param

logger = logging.getLogger(__name__)

DEFAULT_LOCAL = "_default"

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")


class _Unresolvable(Exception):
    """Internal: an export's shape cannot be resolved statically."""


@dataclass(frozen=True)
class _Local:
    declaration: Declaration
    path: str


@dataclass(frozen=True)
class _External:
    specifier: str
    imported: str


@dataclass(frozen=True)
class _StyleMapping:
    stylesheet: str


@dataclass(frozen=True)
class _StyleClass:
    """A class name read off a CSS module mapping (`styles.root`)."""

    declaration: Declaration


_Resolved = Union[_Local, _External, _StyleMapping, _StyleClass]


class DeclarationEmitter:
    """Emits declaration files for compiled units."""

    def __init__(
        self,
        graph: ModuleGraph,
        stylesheets: Mapping[str, ScopedStylesheet],
        typed_externals: Iterable[str] = (),
    ):
        self.graph = graph
        self.stylesheets = stylesheets
        self.typed_externals = frozenset(typed_externals)

    def emit(self, unit: CompiledUnit) -> str:
        """
        Render the declaration file for one unit.

        Raises:
            DeclarationEmitError: If an export's shape cannot be resolved
        """
        entry_path = unit.closure[-1]
        record = self.graph.node(entry_path).record
        lines: List[str] = []

        for statement in record.exports:
            if statement.form is ExportForm.FROM_ALL and statement.specifier not in self.graph.node(entry_path).resolved:
                self._require_typed(unit, "*", statement.specifier)
                lines.append(f'export * from "{statement.specifier}";')

        table = self.graph.export_table(entry_path)
        ordered = [n for n in table.names if n != DEFAULT] + [n for n in table.names if n == DEFAULT]
        for name in ordered:
            try:
                resolved = self._resolve_export(entry_path, name, set())
            except _Unresolvable as e:
                raise DeclarationEmitError(unit.logical_name, name, str(e)) from None
            lines.extend(self._render(unit, name, resolved))

        if not lines:
            lines.append("export {};")
        logger.debug(f"Declared {len(ordered)} exports for {unit.logical_name}")
        return "\n".join(lines) + "\n"

    # -- resolution --------------------------------------------------------

    def _resolve_export(self, path: str, name: str, visiting: set) -> _Resolved:
        key = (path, name)
        if key in visiting:
            raise _Unresolvable(f"circular re-export of '{name}'")
        visiting.add(key)
        node = self.graph.node(path)
        record = node.record

        for statement in record.exports:
            form = statement.form
            if form is ExportForm.DECLARATION and name in statement.names:
                return self._resolve_local(path, name, visiting)
            if form is ExportForm.DEFAULT_DECLARATION and name == DEFAULT:
                return _Local(record.declarations[statement.default_local or DEFAULT], path)
            if form is ExportForm.DEFAULT_EXPRESSION and name == DEFAULT:
                declaration = statement.declaration
                alias = _alias_of(declaration)
                if alias is not None:
                    return self._resolve_local(path, alias, visiting)
                return _Local(declaration, path)
            if form is ExportForm.LOCAL_LIST:
                for spec in statement.specifiers:
                    if spec.exported == name:
                        return self._resolve_local(path, spec.local, visiting)
            if form is ExportForm.FROM_NAMESPACE and statement.specifiers[0].exported == name:
                raise _Unresolvable(f"namespace re-export of '{statement.specifier}' has no static shape")
            if form is ExportForm.FROM_LIST:
                for spec in statement.specifiers:
                    if spec.exported == name:
                        target = node.resolved.get(statement.specifier)
                        if target is None:
                            return _External(statement.specifier, spec.local)
                        return self._resolve_export(target, spec.local, visiting)

        if name != DEFAULT:
            for statement in record.exports:
                if statement.form is not ExportForm.FROM_ALL:
                    continue
                target = node.resolved.get(statement.specifier)
                if target is not None and name in self.graph.export_table(target).names:
                    return self._resolve_export(target, name, visiting)
        raise _Unresolvable(f"'{name}' is not declared in '{path}'")

    def _resolve_local(self, path: str, local: str, visiting: set) -> _Resolved:
        key = (path, "#" + local)
        if key in visiting:
            raise _Unresolvable(f"circular alias '{local}'")
        visiting.add(key)
        node = self.graph.node(path)
        record = node.record

        declaration = record.declarations.get(local)
        if declaration is not None:
            alias = _alias_of(declaration)
            if alias is not None:
                return self._resolve_local(path, alias, visiting)
            base = _member_base(declaration)
            if base is not None and self._is_style_mapping(path, base, visiting):
                return _StyleClass(declaration)
            return _Local(declaration, path)

        for statement in record.imports:
            for binding in statement.bindings:
                if binding.local != local:
                    continue
                target = node.resolved.get(statement.specifier)
                if binding.imported == NAMESPACE:
                    raise _Unresolvable(f"namespace import '{local}' has no static shape")
                if target is None:
                    return _External(statement.specifier, binding.imported)
                if not self.graph.node(target).is_script:
                    return _StyleMapping(target)
                return self._resolve_export(target, binding.imported, visiting)
        raise _Unresolvable(f"'{local}' is not declared in '{path}'")

    def _is_style_mapping(self, path: str, local: str, visiting: set) -> bool:
        try:
            return isinstance(self._resolve_local(path, local, set(visiting)), _StyleMapping)
        except _Unresolvable:
            return False

    # -- rendering -----------------------------------------------------------

    def _render(self, unit: CompiledUnit, name: str, resolved: _Resolved) -> List[str]:
        is_default = name == DEFAULT
        local = DEFAULT_LOCAL if is_default else name

        if isinstance(resolved, _External):
            self._require_typed(unit, name, resolved.specifier)
            if resolved.imported == name:
                return [f'export {{ {_property(name)} }} from "{resolved.specifier}";']
            return [f'export {{ {_property(resolved.imported)} as {_property(name)} }} from "{resolved.specifier}";']

        if isinstance(resolved, _StyleMapping):
            mapping = self.stylesheets[resolved.stylesheet].mapping
            members = " ".join(f"readonly {_property(cls)}: string;" for cls in mapping)
            shape = f"{{ {members} }}" if members else "{}"
            return _exported(f"declare const {local}: {shape};", is_default)

        if isinstance(resolved, _StyleClass):
            keyword = "const" if is_default else resolved.declaration.kind.value
            return _exported(f"declare {keyword} {local}: string;", is_default)

        declaration = resolved.declaration
        if declaration.kind is DeclKind.CLASS:
            return _exported_block(self._render_class(local, declaration), is_default)
        if declaration.params is not None:
            signature = _signature(declaration.params, declaration.jsdoc, declaration.is_async, declaration.is_generator)
            return _exported(f"declare function {local}{signature};", is_default)
        if declaration.destructured:
            raise DeclarationEmitError(unit.logical_name, name, "destructured bindings have no static shape")

        type_ = _variable_type(declaration)
        if type_ is None:
            raise DeclarationEmitError(
                unit.logical_name,
                name,
                f"cannot infer a type for '{declaration.name or name}' in {resolved.path}; add a JSDoc @type",
            )
        keyword = "const" if is_default else declaration.kind.value
        return _exported(f"declare {keyword} {local}: {type_};", is_default)

    def _render_class(self, local: str, declaration: Declaration) -> List[str]:
        lines = [f"declare class {local} {{"]
        if declaration.params is not None:
            params = _parameters(declaration.params, declaration.jsdoc)
            lines.append(f"    constructor({params});")
        lines.append("}")
        return lines

    def _require_typed(self, unit: CompiledUnit, name: str, specifier: str) -> None:
        if specifier not in self.typed_externals:
            raise DeclarationEmitError(
                unit.logical_name,
                name,
                f"re-export from external '{specifier}' requires it to be listed in typed_externals",
            )


def emit_declarations(emitter: DeclarationEmitter, units: Sequence[CompiledUnit]) -> dict[str, str]:
    """Declaration text for every unit, by logical name (unit order)."""
    return {unit.logical_name: emitter.emit(unit) for unit in units}


def _exported(line: str, is_default: bool) -> List[str]:
    if is_default:
        return [line, f"export default {DEFAULT_LOCAL};"]
    return ["export " + line]


def _exported_block(lines: List[str], is_default: bool) -> List[str]:
    if is_default:
        return lines + [f"export default {DEFAULT_LOCAL};"]
    return ["export " + lines[0]] + lines[1:]


def _alias_of(declaration: Optional[Declaration]) -> Optional[str]:
    """Name a variable initializer merely refers to (`const a = b`)."""
    if declaration is None or not declaration.is_variable or declaration.params is not None:
        return None
    if declaration.jsdoc is not None and declaration.jsdoc.type:
        return None
    init = declaration.init
    if len(init) == 1 and init[0].kind is TokenKind.IDENT and init[0].value not in _LITERAL_IDENTS:
        return init[0].value
    return None


def _member_base(declaration: Declaration) -> Optional[str]:
    """Object name of a plain member read (`a.b` or `a["b"]`)."""
    if not declaration.is_variable or declaration.params is not None:
        return None
    if declaration.jsdoc is not None and declaration.jsdoc.type:
        return None
    init = declaration.init
    if not init or init[0].kind is not TokenKind.IDENT:
        return None
    if len(init) == 3 and init[1].is_punct(".") and init[2].kind is TokenKind.IDENT:
        return init[0].value
    if len(init) == 4 and init[1].is_punct("[") and init[2].kind is TokenKind.STRING and init[3].is_punct("]"):
        return init[0].value
    return None


_LITERAL_IDENTS = {
    "true": "boolean",
    "false": "boolean",
    "null": "null",
    "undefined": "undefined",
}


def _variable_type(declaration: Declaration) -> Optional[str]:
    if declaration.jsdoc is not None and declaration.jsdoc.type:
        return ts_type(declaration.jsdoc.type)
    return _literal_type(declaration.init)


def _literal_type(init: Sequence[Token]) -> Optional[str]:
    tokens = list(init)
    if len(tokens) == 2 and tokens[0].kind is TokenKind.PUNCT and tokens[0].value in ("-", "+"):
        tokens = tokens[1:]
        if tokens[0].kind is not TokenKind.NUMBER:
            return None
    if len(tokens) != 1:
        return None
    token = tokens[0]
    if token.kind in (TokenKind.STRING, TokenKind.TEMPLATE):
        return "string"
    if token.kind is TokenKind.NUMBER:
        return "bigint" if token.value.endswith("n") else "number"
    if token.kind is TokenKind.IDENT:
        return _LITERAL_IDENTS.get(token.value)
    return None


def _signature(params: Sequence[Param], jsdoc: Optional[JSDoc], is_async: bool, is_generator: bool) -> str:
    returns = ts_type(jsdoc.returns) if jsdoc is not None and jsdoc.returns else None
    if returns is None:
        returns = "Promise<any>" if is_async else "any"
    return f"({_parameters(params, jsdoc)}): {returns}"


def _parameters(params: Sequence[Param], jsdoc: Optional[JSDoc]) -> str:
    rendered = []
    for index, param in enumerate(params):
        name = param.name or f"arg{index}"
        doc_type = jsdoc.param_type(param.name, index) if jsdoc is not None else None
        optional = param.optional or _jsdoc_optional(jsdoc, param.name, index)
        if param.rest:
            if doc_type and doc_type.startswith("..."):
                type_ = _array_of(ts_type(doc_type[3:]))
            elif doc_type:
                type_ = ts_type(doc_type)
            else:
                type_ = "any[]"
            rendered.append(f"...{name}: {type_}")
            continue
        type_ = ts_type(doc_type) if doc_type else "any"
        rendered.append(f"{name}{'?' if optional else ''}: {type_}")
    return ", ".join(rendered)


def _jsdoc_optional(jsdoc: Optional[JSDoc], name: str, index: int) -> bool:
    if jsdoc is None:
        return False
    top_level = [p for p in jsdoc.params if "." not in p[0]]
    for param_name, _, optional in top_level:
        if name and param_name == name:
            return optional
    if not name and index < len(top_level):
        return top_level[index][2]
    return False


def _array_of(type_: str) -> str:
    if _IDENTIFIER_RE.fullmatch(type_):
        return f"{type_}[]"
    return f"({type_})[]"


def ts_type(jsdoc_type: str) -> str:
    """Translate a JSDoc type expression to TypeScript syntax."""
    text = jsdoc_type.strip()
    if text in ("*", "?", ""):
        return "any"
    text = text.replace(".<", "<")
    text = re.sub(r"\bfunction\b(?!\s*\()", "Function", text)
    if text.startswith("?"):
        return f"{ts_type(text[1:])} | null"
    if text.startswith("!"):
        return ts_type(text[1:])
    return text


def _property(name: str) -> str:
    if _IDENTIFIER_RE.fullmatch(name):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'
