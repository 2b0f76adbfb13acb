"""
Module-level parser for ES module sources.

Only the module surface is parsed: import statements, export statements and
top-level declarations (with their JSDoc). Function bodies and expressions are
kept as opaque token ranges, which is all the graph builder, verifier,
compiler and declaration emitter need.

Supported forms:
    import d from "x";            import { a, b as c } from "x";
    import * as ns from "x";      import d, { a } from "x";      import "x";
    export function f() {}        export class C {}              export const a = 1, b = 2;
    export default function () {} export default <expression>;
    export { a, b as c };         export { a } from "x";
    export * from "x";            export * as ns from "x";
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .js_lexer import Token, TokenKind, significant, tokenize

logger = logging.getLogger(__name__)

DEFAULT = "default"
NAMESPACE = "*"

_OPENERS = frozenset({"(", "[", "{"})
_CLOSERS = frozenset({")", "]", "}"})
_DECLARATION_KEYWORDS = frozenset({"function", "class", "const", "let", "var"})
_STATEMENT_END_PUNCT = frozenset({")", "]", "}", "++", "--"})


class ModuleParseError(Exception):
    """Raised when an import/export statement or declaration is malformed."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at {line}:{column}")
        self.message = message
        self.line = line
        self.column = column


class DeclKind(Enum):
    FUNCTION = "function"
    CLASS = "class"
    CONST = "const"
    LET = "let"
    VAR = "var"


class ExportForm(Enum):
    DECLARATION = "declaration"  # export function|class|const|let|var
    DEFAULT_DECLARATION = "default_declaration"  # export default function|class
    DEFAULT_EXPRESSION = "default_expression"  # export default <expr>
    LOCAL_LIST = "local_list"  # export { a as b }
    FROM_LIST = "from_list"  # export { a as b } from "x"
    FROM_ALL = "from_all"  # export * from "x"
    FROM_NAMESPACE = "from_namespace"  # export * as ns from "x"


@dataclass(frozen=True)
class JSDoc:
    """Type annotations found in a /** ... */ comment."""

    params: tuple[tuple[str, str, bool], ...] = ()  # (name, type, optional)
    returns: Optional[str] = None
    type: Optional[str] = None

    def param_type(self, name: str, index: int) -> Optional[str]:
        """Type for a parameter by name, falling back to position for patterns."""
        top_level = [p for p in self.params if "." not in p[0]]
        for param_name, param_type, _ in top_level:
            if name and param_name == name:
                return param_type
        if not name and index < len(top_level):
            return top_level[index][1]
        return None


@dataclass(frozen=True)
class Param:
    name: str  # "" for destructuring patterns
    text: str  # pattern source text (destructuring) or the name
    rest: bool = False
    optional: bool = False


@dataclass(frozen=True)
class Declaration:
    """A top-level binding."""

    name: str
    kind: DeclKind
    line: int
    column: int
    params: Optional[tuple[Param, ...]] = None
    is_async: bool = False
    is_generator: bool = False
    init: tuple[Token, ...] = ()
    destructured: bool = False
    jsdoc: Optional[JSDoc] = None

    @property
    def is_variable(self) -> bool:
        return self.kind in (DeclKind.CONST, DeclKind.LET, DeclKind.VAR)


@dataclass(frozen=True)
class ImportBinding:
    local: str
    imported: str  # "default", "*" or the exported name


@dataclass(frozen=True)
class ImportStatement:
    specifier: str
    bindings: tuple[ImportBinding, ...]
    start: int
    end: int
    line: int
    column: int

    @property
    def side_effect_only(self) -> bool:
        return not self.bindings


@dataclass(frozen=True)
class ExportSpecifier:
    local: str  # name inside this module (or inside the source module for re-exports)
    exported: str


@dataclass(frozen=True)
class ExportStatement:
    """An export statement.

    For DECLARATION/DEFAULT_* forms, [start, prefix_end) covers the
    `export` / `export default` prefix; for list and from forms [start, end)
    covers the whole statement.
    """

    form: ExportForm
    start: int
    end: int
    prefix_end: int
    line: int
    column: int
    specifiers: tuple[ExportSpecifier, ...] = ()
    specifier: Optional[str] = None
    names: tuple[str, ...] = ()
    default_local: Optional[str] = None
    anonymous_insert_at: Optional[int] = None
    expression: tuple[Token, ...] = ()
    declaration: Optional[Declaration] = None
    jsdoc: Optional[JSDoc] = None

    @property
    def exported_names(self) -> tuple[str, ...]:
        if self.form is ExportForm.DECLARATION:
            return self.names
        if self.form in (ExportForm.DEFAULT_DECLARATION, ExportForm.DEFAULT_EXPRESSION):
            return (DEFAULT,)
        if self.form in (ExportForm.LOCAL_LIST, ExportForm.FROM_LIST):
            return tuple(s.exported for s in self.specifiers)
        if self.form is ExportForm.FROM_NAMESPACE:
            return tuple(s.exported for s in self.specifiers)
        return ()


@dataclass(frozen=True)
class DynamicImport:
    specifier: str
    line: int
    column: int


@dataclass(frozen=True)
class MemberAccess:
    """`obj.prop` or `obj["prop"]` on a stylesheet binding."""

    object: str
    property: str
    line: int
    column: int


@dataclass(frozen=True)
class ModuleRecord:
    """Parsed surface of one module."""

    path: str
    source: str
    tokens: tuple[Token, ...]
    imports: tuple[ImportStatement, ...]
    exports: tuple[ExportStatement, ...]
    declarations: Dict[str, Declaration] = field(default_factory=dict)
    dynamic_imports: tuple[DynamicImport, ...] = ()
    member_accesses: tuple[MemberAccess, ...] = ()

    @property
    def comments(self) -> tuple[Token, ...]:
        return tuple(t for t in self.tokens if t.kind is TokenKind.COMMENT)

    def import_bindings(self) -> Dict[str, Tuple[ImportStatement, ImportBinding]]:
        bindings: Dict[str, Tuple[ImportStatement, ImportBinding]] = {}
        for statement in self.imports:
            for binding in statement.bindings:
                bindings.setdefault(binding.local, (statement, binding))
        return bindings


def parse_module(path: str, source: str) -> ModuleRecord:
    """
    Parse the module surface of an ES module.

    Args:
        path: Source-root-relative path (used in records only)
        source: Module source text

    Returns:
        ModuleRecord

    Raises:
        LexError: If the text cannot be tokenized
        ModuleParseError: If an import/export statement is malformed
    """
    tokens = tokenize(source)
    parser = _ModuleParser(path, source, tokens)
    return parser.parse()


class _ModuleParser:
    def __init__(self, path: str, source: str, tokens: List[Token]):
        self.path = path
        self.source = source
        self.all_tokens = tokens
        self.tokens = significant(tokens)
        self.jsdoc_before = _jsdoc_index(tokens)
        self.imports: List[ImportStatement] = []
        self.exports: List[ExportStatement] = []
        self.declarations: Dict[str, Declaration] = {}

    # -- token helpers -------------------------------------------------

    def tok(self, i: int) -> Token:
        return self.tokens[min(i, len(self.tokens) - 1)]

    def fail(self, message: str, i: int) -> ModuleParseError:
        token = self.tok(i)
        return ModuleParseError(message, token.line, token.column)

    def expect_punct(self, i: int, value: str, what: str) -> int:
        if not self.tok(i).is_punct(value):
            raise self.fail(f"expected '{value}' in {what}", i)
        return i + 1

    def expect_string(self, i: int, what: str) -> Tuple[str, int]:
        token = self.tok(i)
        if token.kind is not TokenKind.STRING:
            raise self.fail(f"expected module specifier string in {what}", i)
        return _unquote(token.value), i + 1

    def matching(self, i: int) -> int:
        """Index of the bracket closing the opener at i."""
        depth = 0
        for j in range(i, len(self.tokens)):
            delta = _depth_delta(self.tokens[j])
            depth += delta
            if depth == 0 and delta < 0:
                return j
        raise self.fail("unbalanced brackets", i)

    def optional_semicolon(self, i: int) -> int:
        return i + 1 if self.tok(i).is_punct(";") else i

    def statement_end(self, i: int) -> int:
        """Index one past the last token of the statement starting at i (ASI aware)."""
        depth = 0
        j = i
        while j < len(self.tokens):
            token = self.tokens[j]
            if token.kind is TokenKind.EOF:
                return j
            if depth == 0 and j > i:
                if token.is_punct(";"):
                    return j
                if token.newline_before and _can_end(self.tokens[j - 1]) and _can_start(token):
                    return j
            depth += _depth_delta(token)
            if depth < 0:
                return j
            j += 1
        return j

    def jsdoc_for(self, i: int) -> Optional[JSDoc]:
        return self.jsdoc_before.get(self.tok(i).start)

    # -- top level walk ------------------------------------------------

    def parse(self) -> ModuleRecord:
        i = 0
        depth = 0
        while i < len(self.tokens):
            token = self.tokens[i]
            if token.kind is TokenKind.EOF:
                break
            prev = self.tokens[i - 1] if i > 0 else None
            after_dot = prev is not None and (prev.is_punct(".") or prev.is_punct("?."))

            if token.is_ident("import") and not after_dot:
                nxt = self.tok(i + 1)
                # import(), import.meta and `{ import: x }` are expressions
                if depth == 0 and not (nxt.is_punct("(") or nxt.is_punct(".") or nxt.is_punct(":")):
                    i = self.parse_import(i)
                    continue
            elif depth == 0 and token.is_ident("export") and not after_dot:
                i = self.parse_export(i)
                continue
            elif depth == 0 and not after_dot and self._starts_declaration(i):
                declarations, i = self.parse_declaration(i, self.jsdoc_for(i))
                for declaration in declarations:
                    self.declarations.setdefault(declaration.name, declaration)
                continue

            depth += _depth_delta(token)
            i += 1

        return ModuleRecord(
            path=self.path,
            source=self.source,
            tokens=tuple(self.all_tokens),
            imports=tuple(self.imports),
            exports=tuple(self.exports),
            declarations=self.declarations,
            dynamic_imports=tuple(self._dynamic_imports()),
            member_accesses=tuple(self._member_accesses()),
        )

    def _starts_declaration(self, i: int) -> bool:
        token = self.tok(i)
        if token.is_ident("async"):
            return self.tok(i + 1).is_ident("function") and not self.tok(i + 1).newline_before
        if token.is_ident("let"):
            nxt = self.tok(i + 1)
            return nxt.kind is TokenKind.IDENT or nxt.is_punct("{") or nxt.is_punct("[")
        return token.kind is TokenKind.IDENT and token.value in _DECLARATION_KEYWORDS

    def _dynamic_imports(self) -> List[DynamicImport]:
        """`import("x")` calls anywhere in the module, including function bodies."""
        found: List[DynamicImport] = []
        tokens = self.tokens
        for i, token in enumerate(tokens):
            if not token.is_ident("import") or not self.tok(i + 1).is_punct("("):
                continue
            if i > 0 and (tokens[i - 1].is_punct(".") or tokens[i - 1].is_punct("?.")):
                continue
            argument = self.tok(i + 2)
            if argument.kind is TokenKind.STRING and self.tok(i + 3).is_punct(")"):
                found.append(DynamicImport(_unquote(argument.value), token.line, token.column))
        return found

    # -- imports ---------------------------------------------------------

    def parse_import(self, i: int) -> int:
        start_token = self.tok(i)
        j = i + 1
        bindings: List[ImportBinding] = []

        if self.tok(j).kind is TokenKind.STRING:
            specifier, j = self.expect_string(j, "import")
        else:
            if self.tok(j).kind is TokenKind.IDENT and not self.tok(j).is_ident("from"):
                bindings.append(ImportBinding(self.tok(j).value, DEFAULT))
                j += 1
                if self.tok(j).is_punct(","):
                    j += 1
            elif self.tok(j).is_ident("from") and self.tok(j + 1).is_ident("from"):
                bindings.append(ImportBinding("from", DEFAULT))
                j += 1

            if self.tok(j).is_punct("*"):
                if not self.tok(j + 1).is_ident("as") or self.tok(j + 2).kind is not TokenKind.IDENT:
                    raise self.fail("expected 'as <name>' after '*' in import", j)
                bindings.append(ImportBinding(self.tok(j + 2).value, NAMESPACE))
                j += 3
            elif self.tok(j).is_punct("{"):
                specifiers, j = self.parse_specifiers(j, "import")
                bindings.extend(ImportBinding(s.exported, s.local) for s in specifiers)

            if not bindings:
                raise self.fail("malformed import statement", i)
            if not self.tok(j).is_ident("from"):
                raise self.fail("expected 'from' in import", j)
            specifier, j = self.expect_string(j + 1, "import")

        j = self.skip_attributes(j)
        end_index = self.optional_semicolon(j)
        end = self.tok(end_index - 1).end
        self.imports.append(
            ImportStatement(
                specifier=specifier,
                bindings=tuple(bindings),
                start=start_token.start,
                end=end,
                line=start_token.line,
                column=start_token.column,
            )
        )
        return end_index

    def skip_attributes(self, j: int) -> int:
        token = self.tok(j)
        if (token.is_ident("with") or token.is_ident("assert")) and not token.newline_before and self.tok(j + 1).is_punct("{"):
            return self.matching(j + 1) + 1
        return j

    def parse_specifiers(self, j: int, what: str) -> Tuple[List[ExportSpecifier], int]:
        """Parse `{ a, b as c }`; returns (local=imported/source name, exported=binding name)."""
        specifiers: List[ExportSpecifier] = []
        j = self.expect_punct(j, "{", what)
        while not self.tok(j).is_punct("}"):
            name_token = self.tok(j)
            if name_token.kind not in (TokenKind.IDENT, TokenKind.STRING):
                raise self.fail(f"expected name in {what} list", j)
            name = _unquote(name_token.value) if name_token.kind is TokenKind.STRING else name_token.value
            alias = name
            j += 1
            if self.tok(j).is_ident("as"):
                alias_token = self.tok(j + 1)
                if alias_token.kind not in (TokenKind.IDENT, TokenKind.STRING):
                    raise self.fail(f"expected alias after 'as' in {what} list", j + 1)
                alias = _unquote(alias_token.value) if alias_token.kind is TokenKind.STRING else alias_token.value
                j += 2
            specifiers.append(ExportSpecifier(local=name, exported=alias))
            if self.tok(j).is_punct(","):
                j += 1
            elif not self.tok(j).is_punct("}"):
                raise self.fail(f"expected ',' or '}}' in {what} list", j)
        return specifiers, j + 1

    # -- exports ---------------------------------------------------------

    def parse_export(self, i: int) -> int:
        start_token = self.tok(i)
        jsdoc = self.jsdoc_for(i)
        j = i + 1
        nxt = self.tok(j)

        def statement(form: ExportForm, end_index: int, **kwargs) -> ExportStatement:
            end = self.tok(end_index - 1).end
            return ExportStatement(
                form=form,
                start=start_token.start,
                end=end,
                prefix_end=end,
                line=start_token.line,
                column=start_token.column,
                jsdoc=jsdoc,
                **kwargs,
            )

        if nxt.is_punct("*"):
            j += 1
            if self.tok(j).is_ident("as"):
                alias_token = self.tok(j + 1)
                if alias_token.kind not in (TokenKind.IDENT, TokenKind.STRING):
                    raise self.fail("expected name after 'export * as'", j + 1)
                alias = _unquote(alias_token.value) if alias_token.kind is TokenKind.STRING else alias_token.value
                j += 2
                if not self.tok(j).is_ident("from"):
                    raise self.fail("expected 'from' in export", j)
                specifier, j = self.expect_string(j + 1, "export")
                end_index = self.optional_semicolon(self.skip_attributes(j))
                self.exports.append(
                    statement(
                        ExportForm.FROM_NAMESPACE,
                        end_index,
                        specifier=specifier,
                        specifiers=(ExportSpecifier(NAMESPACE, alias),),
                    )
                )
                return end_index
            if not self.tok(j).is_ident("from"):
                raise self.fail("expected 'from' in export", j)
            specifier, j = self.expect_string(j + 1, "export")
            end_index = self.optional_semicolon(self.skip_attributes(j))
            self.exports.append(statement(ExportForm.FROM_ALL, end_index, specifier=specifier))
            return end_index

        if nxt.is_punct("{"):
            specifiers, j = self.parse_specifiers(j, "export")
            if self.tok(j).is_ident("from"):
                specifier, j = self.expect_string(j + 1, "export")
                end_index = self.optional_semicolon(self.skip_attributes(j))
                self.exports.append(
                    statement(ExportForm.FROM_LIST, end_index, specifier=specifier, specifiers=tuple(specifiers))
                )
                return end_index
            end_index = self.optional_semicolon(j)
            self.exports.append(statement(ExportForm.LOCAL_LIST, end_index, specifiers=tuple(specifiers)))
            return end_index

        if nxt.is_ident("default"):
            return self.parse_export_default(i, jsdoc)

        if self._starts_declaration(j):
            declarations, end_index = self.parse_declaration(j, jsdoc or self.jsdoc_for(j))
            for declaration in declarations:
                self.declarations.setdefault(declaration.name, declaration)
            self.exports.append(
                ExportStatement(
                    form=ExportForm.DECLARATION,
                    start=start_token.start,
                    end=self.tok(end_index - 1).end,
                    prefix_end=nxt.start,
                    line=start_token.line,
                    column=start_token.column,
                    names=tuple(d.name for d in declarations),
                    jsdoc=jsdoc,
                )
            )
            return end_index

        raise self.fail("malformed export statement", i)

    def parse_export_default(self, i: int, jsdoc: Optional[JSDoc]) -> int:
        start_token = self.tok(i)
        j = i + 2
        body = self.tok(j)

        is_function = body.is_ident("function") or (body.is_ident("async") and self.tok(j + 1).is_ident("function"))
        if is_function or body.is_ident("class"):
            declarations, end_index, insert_at = self.parse_declaration(
                j, jsdoc or self.jsdoc_for(j), allow_anonymous=True, return_insert=True
            )
            declaration = declarations[0]
            if declaration.name:
                self.declarations.setdefault(declaration.name, declaration)
            else:
                self.declarations.setdefault(DEFAULT, declaration)
            self.exports.append(
                ExportStatement(
                    form=ExportForm.DEFAULT_DECLARATION,
                    start=start_token.start,
                    end=self.tok(end_index - 1).end,
                    prefix_end=body.start,
                    line=start_token.line,
                    column=start_token.column,
                    default_local=declaration.name or None,
                    anonymous_insert_at=insert_at,
                    jsdoc=jsdoc,
                )
            )
            return end_index

        end_index = self.statement_end(j)
        if end_index == j:
            raise self.fail("expected expression after 'export default'", j)
        expression = tuple(self.tokens[j:end_index])
        declaration = Declaration(
            name="",
            kind=DeclKind.CONST,
            line=body.line,
            column=body.column,
            params=_function_params(self, expression),
            is_async=expression[0].is_ident("async"),
            init=expression,
            jsdoc=jsdoc,
        )
        end_index = self.optional_semicolon(end_index)
        self.exports.append(
            ExportStatement(
                form=ExportForm.DEFAULT_EXPRESSION,
                start=start_token.start,
                end=self.tok(end_index - 1).end,
                prefix_end=body.start,
                line=start_token.line,
                column=start_token.column,
                expression=expression,
                declaration=declaration,
                jsdoc=jsdoc,
            )
        )
        return end_index

    # -- declarations ----------------------------------------------------

    def parse_declaration(self, i: int, jsdoc: Optional[JSDoc], allow_anonymous: bool = False, return_insert: bool = False):
        token = self.tok(i)
        if token.is_ident("class"):
            result = self.parse_class(i, jsdoc, allow_anonymous)
        elif token.is_ident("function") or token.is_ident("async"):
            result = self.parse_function(i, jsdoc, allow_anonymous)
        else:
            declarations, end_index = self.parse_variables(i, jsdoc)
            result = (declarations, end_index, None)
        if return_insert:
            return result
        return result[0], result[1]

    def parse_function(self, i: int, jsdoc: Optional[JSDoc], allow_anonymous: bool):
        start = self.tok(i)
        j = i
        is_async = False
        if self.tok(j).is_ident("async"):
            is_async = True
            j += 1
        j += 1  # "function"
        is_generator = False
        if self.tok(j).is_punct("*"):
            is_generator = True
            j += 1
        insert_at = self.tok(j - 1).end
        name = ""
        if self.tok(j).kind is TokenKind.IDENT:
            name = self.tok(j).value
            j += 1
        elif not allow_anonymous:
            raise self.fail("expected function name", j)
        if not self.tok(j).is_punct("("):
            raise self.fail("expected '(' after function name", j)
        params, close = self.parse_params(j)
        body = close + 1
        if not self.tok(body).is_punct("{"):
            raise self.fail("expected function body", body)
        end_index = self.matching(body) + 1
        declaration = Declaration(
            name=name,
            kind=DeclKind.FUNCTION,
            line=start.line,
            column=start.column,
            params=params,
            is_async=is_async,
            is_generator=is_generator,
            jsdoc=jsdoc,
        )
        return [declaration], end_index, (None if name else insert_at)

    def parse_class(self, i: int, jsdoc: Optional[JSDoc], allow_anonymous: bool):
        start = self.tok(i)
        j = i + 1
        insert_at = start.end
        name = ""
        if self.tok(j).kind is TokenKind.IDENT and not self.tok(j).is_ident("extends"):
            name = self.tok(j).value
            j += 1
        elif not allow_anonymous:
            raise self.fail("expected class name", j)
        depth = 0
        while not (depth == 0 and self.tok(j).is_punct("{")):
            if self.tok(j).kind is TokenKind.EOF:
                raise self.fail("expected class body", j)
            depth += _depth_delta(self.tok(j))
            j += 1
        close = self.matching(j)
        constructor = self._constructor_params(j, close)
        declaration = Declaration(
            name=name,
            kind=DeclKind.CLASS,
            line=start.line,
            column=start.column,
            params=constructor,
            jsdoc=jsdoc,
        )
        return [declaration], close + 1, (None if name else insert_at)

    def _constructor_params(self, open_index: int, close_index: int) -> Optional[tuple[Param, ...]]:
        depth = 0
        for j in range(open_index, close_index):
            token = self.tokens[j]
            if depth == 1 and token.is_ident("constructor") and self.tok(j + 1).is_punct("("):
                prev = self.tokens[j - 1]
                if not (prev.is_punct(".") or prev.is_punct("?.")):
                    return self.parse_params(j + 1)[0]
            depth += _depth_delta(token)
        return None

    def parse_variables(self, i: int, jsdoc: Optional[JSDoc]) -> Tuple[List[Declaration], int]:
        keyword = self.tok(i)
        kind = DeclKind(keyword.value)
        declarations: List[Declaration] = []
        j = i + 1
        while True:
            target = self.tok(j)
            if target.kind is TokenKind.IDENT:
                names = [target.value]
                destructured = False
                j += 1
            elif target.is_punct("{") or target.is_punct("["):
                names = self._pattern_names(j, self.matching(j))
                destructured = True
                j = self.matching(j) + 1
            else:
                raise self.fail(f"expected binding name after '{keyword.value}'", j)

            init: tuple[Token, ...] = ()
            if self.tok(j).is_punct("="):
                init_start = j + 1
                j = self._initializer_end(init_start)
                init = tuple(self.tokens[init_start:j])
                if not init:
                    raise self.fail("expected initializer", init_start)

            for name in names:
                declarations.append(
                    Declaration(
                        name=name,
                        kind=kind,
                        line=target.line,
                        column=target.column,
                        params=_function_params(self, init) if init and not destructured else None,
                        is_async=bool(init) and init[0].is_ident("async"),
                        init=() if destructured else init,
                        destructured=destructured,
                        jsdoc=jsdoc,
                    )
                )

            if self.tok(j).is_punct(","):
                j += 1
                continue
            break
        return declarations, self.optional_semicolon(j)

    def _initializer_end(self, i: int) -> int:
        end = self.statement_end(i)
        depth = 0
        for j in range(i, end):
            token = self.tokens[j]
            if depth == 0 and token.is_punct(","):
                return j
            depth += _depth_delta(token)
        return end

    def _pattern_names(self, open_index: int, close_index: int) -> List[str]:
        """Binding names declared by a destructuring pattern."""
        names: List[str] = []
        is_object = self.tok(open_index).is_punct("{")
        after_key = False
        j = open_index + 1
        while j < close_index:
            token = self.tokens[j]
            if token.is_punct(",") or token.is_punct("..."):
                j += 1
                continue
            if is_object and not after_key:
                if token.is_punct("[") and self.tok(self.matching(j) + 1).is_punct(":"):
                    j = self.matching(j) + 2  # computed key
                    after_key = True
                    continue
                if token.kind in (TokenKind.IDENT, TokenKind.STRING, TokenKind.NUMBER) and self.tok(j + 1).is_punct(":"):
                    j += 2
                    after_key = True
                    continue
            after_key = False
            if token.is_punct("{") or token.is_punct("["):
                inner_close = self.matching(j)
                names.extend(self._pattern_names(j, inner_close))
                j = inner_close + 1
            elif token.kind is TokenKind.IDENT:
                names.append(token.value)
                j += 1
            else:
                j += 1
                continue
            if self.tok(j).is_punct("="):
                depth = 0
                j += 1
                while j < close_index:
                    inner = self.tokens[j]
                    if depth == 0 and inner.is_punct(","):
                        break
                    depth += _depth_delta(inner)
                    j += 1
        return names

    def parse_params(self, open_index: int) -> Tuple[tuple[Param, ...], int]:
        close = self.matching(open_index)
        params: List[Param] = []
        segment_start = open_index + 1
        depth = 0
        for j in range(open_index + 1, close + 1):
            token = self.tokens[j]
            if j == close or (depth == 0 and token.is_punct(",")):
                if j > segment_start:
                    params.append(self._param(segment_start, j))
                segment_start = j + 1
                continue
            depth += _depth_delta(token)
        return tuple(params), close

    def _param(self, start: int, end: int) -> Param:
        j = start
        rest = False
        if self.tok(j).is_punct("..."):
            rest = True
            j += 1
        token = self.tok(j)
        if token.kind is TokenKind.IDENT:
            optional = self.tok(j + 1).is_punct("=") and j + 1 < end
            return Param(name=token.value, text=token.value, rest=rest, optional=optional)
        if token.is_punct("{") or token.is_punct("["):
            close = self.matching(j)
            text = self.source[token.start:self.tok(close).end]
            optional = close + 1 < end and self.tok(close + 1).is_punct("=")
            return Param(name="", text=text, rest=rest, optional=optional)
        raise self.fail("unsupported parameter", j)

    # -- stylesheet member accesses ---------------------------------------

    def _member_accesses(self) -> List[MemberAccess]:
        style_bindings = {
            binding.local
            for statement in self.imports
            if statement.specifier.endswith(".css")
            for binding in statement.bindings
        }
        if not style_bindings:
            return []
        accesses: List[MemberAccess] = []
        tokens = self.tokens
        for j in range(len(tokens) - 2):
            token = tokens[j]
            if token.kind is not TokenKind.IDENT or token.value not in style_bindings:
                continue
            if j > 0 and (tokens[j - 1].is_punct(".") or tokens[j - 1].is_punct("?.")):
                continue
            nxt = tokens[j + 1]
            if (nxt.is_punct(".") or nxt.is_punct("?.")) and tokens[j + 2].kind is TokenKind.IDENT:
                prop = tokens[j + 2]
                accesses.append(MemberAccess(token.value, prop.value, prop.line, prop.column))
            elif nxt.is_punct("[") and tokens[j + 2].kind is TokenKind.STRING and j + 3 < len(tokens) and tokens[j + 3].is_punct("]"):
                prop = tokens[j + 2]
                accesses.append(MemberAccess(token.value, _unquote(prop.value), prop.line, prop.column))
        return accesses


def _function_params(parser: _ModuleParser, init: Sequence[Token]) -> Optional[tuple[Param, ...]]:
    """Parameters of an arrow function or function expression initializer."""
    if not init:
        return None
    offset = parser.tokens.index(init[0])
    j = offset
    if parser.tok(j).is_ident("async") and not parser.tok(j + 1).is_punct("=>"):
        j += 1
    token = parser.tok(j)
    if token.is_ident("function"):
        j += 1
        if parser.tok(j).is_punct("*"):
            j += 1
        if parser.tok(j).kind is TokenKind.IDENT:
            j += 1
        if parser.tok(j).is_punct("("):
            return parser.parse_params(j)[0]
        return None
    if token.kind is TokenKind.IDENT and parser.tok(j + 1).is_punct("=>"):
        return (Param(name=token.value, text=token.value),)
    if token.is_punct("("):
        close = parser.matching(j)
        if parser.tok(close + 1).is_punct("=>"):
            return parser.parse_params(j)[0]
    return None


def _depth_delta(token: Token) -> int:
    if token.kind is TokenKind.PUNCT:
        if token.value in _OPENERS:
            return 1
        if token.value in _CLOSERS:
            return -1
    elif token.kind is TokenKind.TEMPLATE_HEAD:
        return 1
    elif token.kind is TokenKind.TEMPLATE_TAIL:
        return -1
    return 0


def _can_end(token: Token) -> bool:
    if token.kind in (
        TokenKind.IDENT,
        TokenKind.PRIVATE,
        TokenKind.NUMBER,
        TokenKind.STRING,
        TokenKind.TEMPLATE,
        TokenKind.TEMPLATE_TAIL,
        TokenKind.REGEX,
    ):
        return True
    return token.kind is TokenKind.PUNCT and token.value in _STATEMENT_END_PUNCT


def _can_start(token: Token) -> bool:
    if token.kind is TokenKind.IDENT:
        return token.value not in ("in", "of", "instanceof")
    return token.kind in (TokenKind.STRING, TokenKind.NUMBER, TokenKind.PRIVATE)


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    if "\\" not in body:
        return body
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t", "r": "\r"}.get(m.group(1), m.group(1)), body)


# -- JSDoc -------------------------------------------------------------------

_TAG_RE = re.compile(r"@(param|arg|argument|returns?|type)\b")


def _jsdoc_index(tokens: Sequence[Token]) -> Dict[int, JSDoc]:
    """Map the start offset of each significant token to the JSDoc block right before it."""
    index: Dict[int, JSDoc] = {}
    pending: Optional[Token] = None
    for token in tokens:
        if token.kind is TokenKind.COMMENT:
            pending = token if token.value.startswith("/**") and token.value != "/**/" else None
            continue
        if pending is not None:
            index[token.start] = parse_jsdoc(pending.value)
            pending = None
    return index


def parse_jsdoc(comment: str) -> JSDoc:
    """Extract @param, @returns and @type annotations from a /** */ comment."""
    text = comment[3:-2] if comment.endswith("*/") else comment[3:]
    text = "\n".join(line.strip().lstrip("*").strip() for line in text.splitlines())
    params: List[tuple[str, str, bool]] = []
    returns: Optional[str] = None
    type_: Optional[str] = None

    for match in _TAG_RE.finditer(text):
        tag = match.group(1)
        pos = _skip_spaces(text, match.end())
        if pos >= len(text) or text[pos] != "{":
            continue
        type_text, pos = _read_braced(text, pos)
        if type_text is None:
            continue
        if tag in ("param", "arg", "argument"):
            pos = _skip_spaces(text, pos)
            name_match = re.match(r"\[?\s*([A-Za-z_$][\w$.]*)", text[pos:])
            if name_match is None:
                continue
            optional = text[pos] == "[" or type_text.endswith("=")
            params.append((name_match.group(1), type_text.rstrip("="), optional))
        elif tag in ("returns", "return"):
            returns = type_text
        else:
            type_ = type_text

    return JSDoc(params=tuple(params), returns=returns, type=type_)


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in " \t\n":
        pos += 1
    return pos


def _read_braced(text: str, pos: int) -> Tuple[Optional[str], int]:
    depth = 0
    for j in range(pos, len(text)):
        if text[j] == "{":
            depth += 1
        elif text[j] == "}":
            depth -= 1
            if depth == 0:
                return " ".join(text[pos + 1:j].split()), j + 1
    return None, len(text)
