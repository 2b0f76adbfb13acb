"""
Tokenizer for ES module sources.

Produces a flat token stream (comments included, whitespace dropped) that the
module parser walks to find import/export statements and top-level
declarations. It understands everything that can hide a stray `import`,
`export` or bracket: strings, template literals with nested substitutions,
regular expression literals and comments.

Rule: same text -> same tokens. Offsets are character offsets into the
original text; lines and columns are 1-based.
"""

import bisect
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


class TokenKind(Enum):
    """Kind of a lexical token."""

    IDENT = "ident"
    PRIVATE = "private"
    NUMBER = "number"
    STRING = "string"
    TEMPLATE = "template"  # complete template without substitutions
    TEMPLATE_HEAD = "template_head"  # `...${
    TEMPLATE_MIDDLE = "template_middle"  # }...${
    TEMPLATE_TAIL = "template_tail"  # }...`
    REGEX = "regex"
    PUNCT = "punct"
    COMMENT = "comment"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    start: int
    end: int  # exclusive
    line: int
    column: int
    newline_before: bool = False

    def is_punct(self, value: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.value == value

    def is_ident(self, value: Optional[str] = None) -> bool:
        return self.kind is TokenKind.IDENT and (value is None or self.value == value)


class LexError(Exception):
    """Raised when the source cannot be tokenized."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at {line}:{column}")
        self.message = message
        self.line = line
        self.column = column


# Longest first so that ">>>=" wins over ">>" and ">".
PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
        "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
        "*=", "/=", "%=", "&=", "|=", "^=", "<<", ">>", "**",
        "{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "/", "%",
        "&", "|", "^", "!", "~", "?", ":", "=", ".", "@",
    ],
    key=len,
    reverse=True,
)

# After these keywords a "/" starts a regular expression, not a division.
REGEX_AFTER_KEYWORDS = frozenset(
    {
        "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
        "throw", "case", "do", "else", "yield", "await",
    }
)

_IDENT_RE = re.compile(r"[A-Za-z_$\u0080-\uffff][0-9A-Za-z_$\u0080-\uffff]*")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+n?"
    r"|0[oO][0-7_]+n?"
    r"|0[bB][01_]+n?"
    r"|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d[\d_]*)?n?"
)
_WHITESPACE = " \t\r\n\v\f\u00a0\ufeff\u2028\u2029"
_LINE_TERMINATORS = "\n\r\u2028\u2029"
_CLOSERS = {")": "(", "]": "[", "}": "{"}


class _Lexer:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.tokens: List[Token] = []
        self.line_starts = [0] + [m.end() for m in re.finditer("\r\n|[\n\r\u2028\u2029]", source)]
        # Open brackets: (char, offset). "T" marks a template substitution.
        self.stack: List[tuple[str, int]] = []
        self.last_significant: Optional[Token] = None
        self.saw_newline = False

    def position(self, offset: int) -> tuple[int, int]:
        index = bisect.bisect_right(self.line_starts, offset) - 1
        return index + 1, offset - self.line_starts[index] + 1

    def error(self, message: str, offset: int) -> LexError:
        line, column = self.position(offset)
        return LexError(message, line, column)

    def emit(self, kind: TokenKind, start: int, end: int) -> Token:
        line, column = self.position(start)
        token = Token(kind, self.source[start:end], start, end, line, column, self.saw_newline)
        self.tokens.append(token)
        if kind is not TokenKind.COMMENT:
            self.last_significant = token
            self.saw_newline = False
        return token

    def run(self) -> List[Token]:
        source = self.source
        length = len(source)

        if source.startswith("#!"):
            end = self._line_end(0)
            self.emit(TokenKind.COMMENT, 0, end)
            self.pos = end

        while self.pos < length:
            ch = source[self.pos]

            if ch in _WHITESPACE:
                if ch in _LINE_TERMINATORS:
                    self.saw_newline = True
                self.pos += 1
                continue

            start = self.pos

            if source.startswith("//", start):
                end = self._line_end(start)
                self.emit(TokenKind.COMMENT, start, end)
                self.pos = end
                continue

            if source.startswith("/*", start):
                end = source.find("*/", start + 2)
                if end < 0:
                    raise self.error("unterminated comment", start)
                end += 2
                if any(c in _LINE_TERMINATORS for c in source[start:end]):
                    self.saw_newline = True
                self.emit(TokenKind.COMMENT, start, end)
                self.pos = end
                continue

            if ch in "'\"":
                self.pos = self._scan_string(start)
                self.emit(TokenKind.STRING, start, self.pos)
                continue

            if ch == "`":
                end, opened = self._scan_template(start + 1)
                if opened:
                    self.stack.append(("T", start))
                    self.emit(TokenKind.TEMPLATE_HEAD, start, end)
                else:
                    self.emit(TokenKind.TEMPLATE, start, end)
                self.pos = end
                continue

            if ch == "#":
                match = _IDENT_RE.match(source, start + 1)
                if match is None:
                    raise self.error("invalid private name", start)
                self.pos = match.end()
                self.emit(TokenKind.PRIVATE, start, self.pos)
                continue

            if ch.isdigit() or (ch == "." and start + 1 < length and source[start + 1].isdigit()):
                match = _NUMBER_RE.match(source, start)
                if match is None:  # pragma: no cover - the pattern always matches a digit
                    raise self.error("invalid number", start)
                self.pos = match.end()
                self.emit(TokenKind.NUMBER, start, self.pos)
                continue

            match = _IDENT_RE.match(source, start)
            if match is not None:
                self.pos = match.end()
                self.emit(TokenKind.IDENT, start, self.pos)
                continue

            if ch == "/" and self._regex_allowed():
                self.pos = self._scan_regex(start)
                self.emit(TokenKind.REGEX, start, self.pos)
                continue

            if ch == "}" and self.stack and self.stack[-1][0] == "T":
                self.stack.pop()
                end, opened = self._scan_template(start + 1)
                if opened:
                    self.stack.append(("T", start))
                    self.emit(TokenKind.TEMPLATE_MIDDLE, start, end)
                else:
                    self.emit(TokenKind.TEMPLATE_TAIL, start, end)
                self.pos = end
                continue

            for punct in PUNCTUATORS:
                if source.startswith(punct, start):
                    break
            else:
                raise self.error(f"unexpected character {ch!r}", start)

            self._track_bracket(punct, start)
            self.pos = start + len(punct)
            self.emit(TokenKind.PUNCT, start, self.pos)

        if self.stack:
            opener, offset = self.stack[-1]
            if opener == "T":
                raise self.error("unterminated template substitution", offset)
            raise self.error(f"unclosed '{opener}'", offset)

        self.emit(TokenKind.EOF, length, length)
        return self.tokens

    def _line_end(self, start: int) -> int:
        end = start
        while end < len(self.source) and self.source[end] not in _LINE_TERMINATORS:
            end += 1
        return end

    def _track_bracket(self, punct: str, offset: int) -> None:
        if punct in "([{":
            self.stack.append((punct, offset))
        elif punct in _CLOSERS:
            if not self.stack or self.stack[-1][0] != _CLOSERS[punct]:
                raise self.error(f"unbalanced '{punct}'", offset)
            self.stack.pop()

    def _scan_string(self, start: int) -> int:
        quote = self.source[start]
        pos = start + 1
        while pos < len(self.source):
            ch = self.source[pos]
            if ch == "\\":
                pos += 2
                continue
            if ch == quote:
                return pos + 1
            if ch in "\n\r":
                break
            pos += 1
        raise self.error("unterminated string literal", start)

    def _scan_template(self, pos: int) -> tuple[int, bool]:
        """Scan template characters from pos; return (end, opened_substitution)."""
        source = self.source
        while pos < len(source):
            ch = source[pos]
            if ch == "\\":
                pos += 2
                continue
            if ch == "`":
                return pos + 1, False
            if ch == "$" and source.startswith("${", pos):
                return pos + 2, True
            pos += 1
        raise self.error("unterminated template literal", pos)

    def _scan_regex(self, start: int) -> int:
        source = self.source
        pos = start + 1
        in_class = False
        while pos < len(source):
            ch = source[pos]
            if ch in _LINE_TERMINATORS:
                break
            if ch == "\\":
                pos += 2
                continue
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                pos += 1
                while pos < len(source) and (source[pos].isalnum() or source[pos] in "_$"):
                    pos += 1
                return pos
            pos += 1
        raise self.error("unterminated regular expression", start)

    def _regex_allowed(self) -> bool:
        prev = self.last_significant
        if prev is None:
            return True
        if prev.kind is TokenKind.PUNCT:
            return prev.value not in (")", "]")
        if prev.kind is TokenKind.IDENT:
            return prev.value in REGEX_AFTER_KEYWORDS
        if prev.kind in (TokenKind.TEMPLATE_HEAD, TokenKind.TEMPLATE_MIDDLE):
            return True
        return False


def tokenize(source: str) -> List[Token]:
    """
    Tokenize ES module source text.

    Args:
        source: Module source

    Returns:
        Tokens including comments, terminated by an EOF token

    Raises:
        LexError: On unterminated literals/comments or unbalanced brackets
    """
    return _Lexer(source).run()


def significant(tokens: Sequence[Token]) -> List[Token]:
    """Drop comment tokens."""
    return [t for t in tokens if t.kind is not TokenKind.COMMENT]
