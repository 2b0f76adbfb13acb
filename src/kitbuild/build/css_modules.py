"""
CSS module scoping.

Rewrites every class selector of a `*.module.css` stylesheet to a name unique
to that stylesheet: `<stem>_<class>_<hash5>`, where hash5 is derived from the
stylesheet's source-root-relative path and the class name. The same input
always yields the same names.

Only rule preludes are rewritten, at the top level and inside conditional
group rules (@media, @supports, @layer, @container, @scope, @document).
Declarations, comments, strings, at-rule preludes and the bodies of other
at-rules (@keyframes, @font-face, @page ...) are copied unchanged.
`@import` rules are copied too and listed on the result; bundling never
follows them.

`:global(.x)` leaves `.x` unscoped (the wrapper is removed); `:local(.x)`
scopes explicitly. A bare `:global` / `:local` switches mode until the next
selector in the list.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

GROUPING_AT_RULES = frozenset({"media", "supports", "layer", "container", "scope", "document"})

_IDENT_RE = re.compile(r"-?(?:[_a-zA-Z\u0080-\uffff]|\\.)(?:[\w\-\u0080-\uffff]|\\.)*")
_IMPORT_RE = re.compile(r"""@import(?![\w-])\s*(?:url\(\s*)?["']?([^"')\s;]*)""", re.IGNORECASE)


class CssSyntaxError(Exception):
    """Raised for unterminated comments/strings and unbalanced braces."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at {line}:{column}")
        self.message = message
        self.line = line
        self.column = column


@dataclass(frozen=True)
class StylesheetImport:
    """An `@import` rule; the build never follows these."""

    url: str
    line: int
    column: int


@dataclass(frozen=True)
class ScopedStylesheet:
    """Compiled stylesheet and its class-name mapping (sorted by class)."""

    path: str
    css: str
    mapping: Dict[str, str] = field(default_factory=dict)
    imports: Tuple[StylesheetImport, ...] = ()



def stylesheet_stem(path: str) -> str:
    """`buttons/primary.module.css` -> `primary`."""
    name = PurePosixPath(path).name
    for suffix in (".css", ".module"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    stem = re.sub(r"[^\w-]", "_", name) or "_"
    if stem[0].isdigit() or stem[0] == "-":
        stem = "_" + stem
    return stem


def scoped_class_name(path: str, class_name: str) -> str:
    digest = hashlib.sha256(f"{path}\0{class_name}".encode("utf-8")).hexdigest()[:5]
    return f"{stylesheet_stem(path)}_{class_name}_{digest}"


def scope_stylesheet(path: str, text: str, scoped: bool = True) -> ScopedStylesheet:
    """
    Compile one stylesheet.

    Args:
        path: Source-root-relative path (feeds the scoped names)
        text: Stylesheet source
        scoped: False for global stylesheets (validated, copied unchanged)

    Returns:
        ScopedStylesheet

    Raises:
        CssSyntaxError: If the stylesheet is malformed
    """
    scoper = _Scoper(path, text, scoped)
    css = scoper.run()
    mapping = {name: scoper.names[name] for name in sorted(scoper.names)}
    logger.debug(f"Compiled {path}: {len(mapping)} scoped classes")
    return ScopedStylesheet(path=path, css=css, mapping=mapping, imports=tuple(scoper.imports))


class _Scoper:
    def __init__(self, path: str, text: str, scoped: bool):
        self.path = path
        self.text = text
        self.scoped = scoped
        self.names: Dict[str, str] = {}
        self.out: List[str] = []
        self.imports: List[StylesheetImport] = []

    def location(self, offset: int) -> Tuple[int, int]:
        line = self.text.count("\n", 0, offset) + 1
        column = offset - (self.text.rfind("\n", 0, offset) + 1) + 1
        return line, column

    def error(self, message: str, offset: int) -> CssSyntaxError:
        return CssSyntaxError(message, *self.location(offset))

    def skip_comment(self, pos: int) -> int:
        end = self.text.find("*/", pos + 2)
        if end < 0:
            raise self.error("unterminated comment", pos)
        return end + 2

    def skip_string(self, pos: int) -> int:
        quote = self.text[pos]
        j = pos + 1
        while j < len(self.text):
            ch = self.text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == quote:
                return j + 1
            if ch == "\n":
                break
            j += 1
        raise self.error("unterminated string", pos)

    def scan_prelude(self, pos: int) -> Tuple[int, str]:
        """Find the end of a prelude: index of the `{`, `;` or `}` ending it."""
        j = pos
        depth = 0
        while j < len(self.text):
            ch = self.text[j]
            if ch == "/" and self.text.startswith("/*", j):
                j = self.skip_comment(j)
                continue
            if ch in "\"'":
                j = self.skip_string(j)
                continue
            if ch in "([":
                depth += 1
            elif ch in ")]":
                depth -= 1
            elif depth <= 0 and ch in "{;}":
                return j, ch
            j += 1
        return j, ""

    def skip_block(self, open_pos: int) -> int:
        """Index one past the `}` matching the `{` at open_pos."""
        depth = 0
        j = open_pos
        while j < len(self.text):
            ch = self.text[j]
            if ch == "/" and self.text.startswith("/*", j):
                j = self.skip_comment(j)
                continue
            if ch in "\"'":
                j = self.skip_string(j)
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return j + 1
            j += 1
        raise self.error("unclosed block", open_pos)

    def run(self) -> str:
        end = self.rules(0, nested=False)
        if end < len(self.text):
            raise self.error("unexpected '}'", end)
        return "".join(self.out)

    def rules(self, pos: int, nested: bool) -> int:
        """Copy a rule list; returns the index of the closing `}` (nested) or EOF."""
        text = self.text
        while pos < len(text):
            ch = text[pos]
            if ch.isspace():
                self.out.append(ch)
                pos += 1
                continue
            if text.startswith("/*", pos):
                end = self.skip_comment(pos)
                self.out.append(text[pos:end])
                pos = end
                continue
            if ch == "}":
                if nested:
                    return pos
                raise self.error("unexpected '}'", pos)

            end, stop = self.scan_prelude(pos)
            prelude = text[pos:end]
            if stop == "}" or stop == "":
                if prelude.strip():
                    raise self.error("expected '{' after selector", pos)
                self.out.append(prelude)
                pos = end
                continue
            if stop == ";":
                import_match = _IMPORT_RE.match(prelude)
                if import_match:
                    self.imports.append(StylesheetImport(import_match.group(1), *self.location(pos)))
                self.out.append(text[pos:end + 1])
                pos = end + 1
                continue

            if prelude.startswith("@"):
                name_match = re.match(r"@([\w-]+)", prelude)
                name = name_match.group(1).lower() if name_match else ""
                self.out.append(prelude + "{")
                if name in GROUPING_AT_RULES:
                    close = self.rules(end + 1, nested=True)
                    if close >= len(text):
                        raise self.error("unclosed block", end)
                    self.out.append("}")
                    pos = close + 1
                else:
                    block_end = self.skip_block(end)
                    self.out.append(text[end + 1:block_end])
                    pos = block_end
                continue

            self.out.append(self.scope_selector(prelude, pos) + "{")
            block_end = self.skip_block(end)
            self.out.append(text[end + 1:block_end])
            pos = block_end
        return pos

    def scope_selector(self, prelude: str, offset: int) -> str:
        out: List[str] = []
        global_mode = False
        wrappers: List[Tuple[bool, bool]] = []  # (is_wrapper, mode before)
        j = 0
        while j < len(prelude):
            ch = prelude[j]
            if prelude.startswith("/*", j):
                end = prelude.find("*/", j + 2) + 2
                out.append(prelude[j:end])
                j = end
                continue
            if ch in "\"'":
                end = self.skip_string(offset + j) - offset
                out.append(prelude[j:end])
                j = end
                continue
            if ch == "[":
                end = prelude.find("]", j)
                end = len(prelude) if end < 0 else end + 1
                out.append(prelude[j:end])
                j = end
                continue
            lowered = prelude[j:j + 8].lower()
            if lowered.startswith(":global(") or lowered.startswith(":local("):
                is_global = lowered.startswith(":global(")
                wrappers.append((True, global_mode))
                global_mode = is_global
                j += len(":global(") if is_global else len(":local(")
                continue
            if lowered.startswith(":global") or lowered.startswith(":local"):
                is_global = lowered.startswith(":global")
                global_mode = is_global
                j += len(":global") if is_global else len(":local")
                while j < len(prelude) and prelude[j] in " \t\n":
                    j += 1
                continue
            if ch == "(":
                wrappers.append((False, global_mode))
                out.append(ch)
                j += 1
                continue
            if ch == ")":
                if wrappers:
                    is_wrapper, previous = wrappers.pop()
                    global_mode = previous
                    if is_wrapper:
                        j += 1
                        continue
                out.append(ch)
                j += 1
                continue
            if ch == "," and not wrappers:
                global_mode = False
                out.append(ch)
                j += 1
                continue
            if ch == ".":
                match = _IDENT_RE.match(prelude, j + 1)
                if match:
                    class_name = match.group(0)
                    if self.scoped and not global_mode:
                        out.append("." + self.scope(class_name))
                    else:
                        out.append("." + class_name)
                    j = match.end()
                    continue
            out.append(ch)
            j += 1
        return "".join(out)

    def scope(self, class_name: str) -> str:
        scoped = self.names.get(class_name)
        if scoped is None:
            scoped = scoped_class_name(self.path, class_name)
            self.names[class_name] = scoped
        return scoped
