"""Tests for the ES module tokenizer."""

import pytest

from kitbuild.build.js_lexer import LexError, TokenKind, significant, tokenize


def _kinds(source):
    return [(t.kind, t.value) for t in significant(tokenize(source)) if t.kind is not TokenKind.EOF]


class TestTokenize:
    def test_import_statement(self):
        assert _kinds('import { a as b } from "./x.js";') == [
            (TokenKind.IDENT, "import"),
            (TokenKind.PUNCT, "{"),
            (TokenKind.IDENT, "a"),
            (TokenKind.IDENT, "as"),
            (TokenKind.IDENT, "b"),
            (TokenKind.PUNCT, "}"),
            (TokenKind.IDENT, "from"),
            (TokenKind.STRING, '"./x.js"'),
            (TokenKind.PUNCT, ";"),
        ]

    def test_ends_with_eof(self):
        tokens = tokenize("a")
        assert tokens[-1].kind is TokenKind.EOF
        assert tokens[-1].start == 1

    def test_comments_are_tokens(self):
        tokens = tokenize("// line\n/* block */ a")
        comments = [t for t in tokens if t.kind is TokenKind.COMMENT]

        assert [c.value for c in comments] == ["// line", "/* block */"]
        assert [t.value for t in significant(tokens) if t.kind is TokenKind.IDENT] == ["a"]

    def test_hashbang(self):
        tokens = tokenize("#!/usr/bin/env node\nexport {};")
        assert tokens[0].kind is TokenKind.COMMENT

    def test_longest_punctuator(self):
        values = [v for _, v in _kinds("a >>>= b ?? c?.d ... e")]
        assert ">>>=" in values
        assert "??" in values
        assert "?." in values
        assert "..." in values

    def test_regex_vs_division(self):
        kinds = _kinds("const r = /a\\/[/]b/g; const d = x / y / z;")

        assert (TokenKind.REGEX, "/a\\/[/]b/g") in kinds
        assert [v for k, v in kinds if k is TokenKind.PUNCT].count("/") == 2

    def test_regex_after_keyword(self):
        assert (TokenKind.REGEX, "/x/") in _kinds("return /x/;")

    def test_template_with_substitutions(self):
        kinds = _kinds("`a ${b} c ${ {d: 1}.d } e`")

        assert kinds[0] == (TokenKind.TEMPLATE_HEAD, "`a ${")
        assert (TokenKind.TEMPLATE_MIDDLE, "} c ${") in kinds
        assert kinds[-1] == (TokenKind.TEMPLATE_TAIL, "} e`")

    def test_plain_template(self):
        assert _kinds("`no subs`") == [(TokenKind.TEMPLATE, "`no subs`")]

    def test_numbers(self):
        values = [v for k, v in _kinds("1 1.5 .5 0xff 1_000 10n 1e-3") if k is TokenKind.NUMBER]
        assert values == ["1", "1.5", ".5", "0xff", "1_000", "10n", "1e-3"]

    def test_private_name(self):
        assert (TokenKind.PRIVATE, "#count") in _kinds("class A { #count = 0 }")

    def test_positions(self):
        tokens = tokenize("a\n  b")
        b = [t for t in tokens if t.value == "b"][0]

        assert (b.line, b.column) == (2, 3)
        assert b.newline_before is True

    def test_unicode_identifier(self):
        assert (TokenKind.IDENT, "café") in _kinds("const café = 1;")


class TestLexErrors:
    @pytest.mark.parametrize(
        "source,message",
        [
            ('"open', "unterminated string"),
            ("/* open", "unterminated comment"),
            ("`open", "unterminated template"),
            ("f(a", "unclosed '('"),
            ("a)", "unbalanced ')'"),
            ("`${a", "unterminated template substitution"),
        ],
    )
    def test_errors(self, source, message):
        with pytest.raises(LexError) as exc_info:
            tokenize(source)
        assert message in exc_info.value.message

    def test_error_location(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("a;\nb = 'x")
        assert (exc_info.value.line, exc_info.value.column) == (2, 5)
