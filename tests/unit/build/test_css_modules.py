"""Tests for CSS module scoping."""

import pytest

from kitbuild.build.css_modules import CssSyntaxError, StylesheetImport, scope_stylesheet, scoped_class_name, stylesheet_stem


class TestScopedNames:
    def test_deterministic(self):
        first = scoped_class_name("buttons/primary.module.css", "root")
        second = scoped_class_name("buttons/primary.module.css", "root")

        assert first == second
        assert first.startswith("primary_root_")
        assert len(first.rsplit("_", 1)[1]) == 5

    def test_distinct_per_stylesheet(self):
        a = scoped_class_name("buttons/primary.module.css", "root")
        b = scoped_class_name("cards/primary.module.css", "root")
        assert a != b

    @pytest.mark.parametrize(
        "path,stem",
        [
            ("buttons/primary.module.css", "primary"),
            ("reset.css", "reset"),
            ("icons/2x.module.css", "_2x"),
            ("a/b c.module.css", "b_c"),
        ],
    )
    def test_stem(self, path, stem):
        assert stylesheet_stem(path) == stem


class TestScopeStylesheet:
    def test_rewrites_class_selectors(self):
        sheet = scope_stylesheet("b.module.css", ".root, .root:hover > .label { color: red; }")
        root = sheet.mapping["root"]
        label = sheet.mapping["label"]

        assert sheet.css == f".{root}, .{root}:hover > .{label} {{ color: red; }}"
        assert list(sheet.mapping) == ["label", "root"]

    def test_declarations_untouched(self):
        sheet = scope_stylesheet("b.module.css", '.a { background: url("x.y.png"); width: 1.5em; }')
        assert 'url("x.y.png")' in sheet.css
        assert "1.5em" in sheet.css
        assert list(sheet.mapping) == ["a"]

    def test_media_queries_are_scoped(self):
        sheet = scope_stylesheet("b.module.css", "@media (min-width: 10px) { .a { color: red; } }")
        assert f".{sheet.mapping['a']}" in sheet.css
        assert sheet.css.startswith("@media (min-width: 10px) {")

    def test_keyframes_copied(self):
        text = "@keyframes spin { from { opacity: 0.5; } to { opacity: 1; } }"
        sheet = scope_stylesheet("b.module.css", text)
        assert sheet.css == text
        assert sheet.mapping == {}

    def test_global_wrapper(self):
        sheet = scope_stylesheet("b.module.css", ":global(.dark) .a { color: white; }")

        assert sheet.css.startswith(".dark .")
        assert list(sheet.mapping) == ["a"]

    def test_bare_global_until_comma(self):
        sheet = scope_stylesheet("b.module.css", ":global .x .y, .z { }")

        assert sheet.css.startswith(".x .y, .")
        assert list(sheet.mapping) == ["z"]

    def test_local_wrapper_inside_global(self):
        sheet = scope_stylesheet("b.module.css", ":global .x :local(.y) { }")
        assert list(sheet.mapping) == ["y"]

    def test_attribute_selectors_and_comments_untouched(self):
        sheet = scope_stylesheet("b.module.css", '/* .c */ [data-x=".d"] .e { }')

        assert sheet.css.startswith('/* .c */ [data-x=".d"] .')
        assert list(sheet.mapping) == ["e"]

    def test_import_rules_are_listed(self):
        text = '@import "./base.css";\n@import url(theme.css) screen;\n@IMPORT url("https://fonts.example/a.css");\n.a {}\n'
        sheet = scope_stylesheet("b.module.css", text)

        assert sheet.imports == (
            StylesheetImport("./base.css", 1, 1),
            StylesheetImport("theme.css", 2, 1),
            StylesheetImport("https://fonts.example/a.css", 3, 1),
        )
        assert sheet.css.startswith('@import "./base.css";\n')

    def test_other_statement_at_rules_are_not_imports(self):
        sheet = scope_stylesheet("b.module.css", '@charset "utf-8";\n@layer base;\n.a {}')
        assert sheet.imports == ()

    def test_global_stylesheet_is_not_scoped(self):
        text = ".root { color: red; }"
        sheet = scope_stylesheet("reset.css", text, scoped=False)

        assert sheet.css == text
        assert sheet.mapping == {}

    @pytest.mark.parametrize(
        "text,message",
        [
            (".a { color: red;", "unclosed block"),
            (".a { } }", "unexpected '}'"),
            ("/* open", "unterminated comment"),
            (".a", "expected '{'"),
        ],
    )
    def test_syntax_errors(self, text, message):
        with pytest.raises(CssSyntaxError) as exc_info:
            scope_stylesheet("b.module.css", text)
        assert message in exc_info.value.message
