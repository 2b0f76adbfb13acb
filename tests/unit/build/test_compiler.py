"""Tests for the per-entry compiler."""

import threading
from pathlib import Path

import pytest

from kitbuild.build import CompiledUnit, EntryCompiler, EntryPhase, SourceEntry, compile_entries, name_output, verify_graph


class RecordingCallback:
    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def on_progress(self, logical_name, phase, detail):
        with self.lock:
            self.events.append((logical_name, phase))


@pytest.fixture
def compile_entry(load_graph):
    """Load, verify and compile one entry by logical name."""

    def _compile(logical_name: str, externals=("react", "react/jsx-runtime")):
        graph = load_graph(externals=externals)
        stylesheets = verify_graph(graph)
        compiler = EntryCompiler(graph, stylesheets)
        entry = next(e for e in graph.entries if e.logical_name == logical_name)
        return compiler.compile(entry, name_output(logical_name)), stylesheets

    return _compile


class TestEntryCompiler:
    def test_inlines_internal_module(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import { cx } from "./_cx.js";\nexport const a = cx("x");\n',
                "_cx.js": "export const cx = (s) => s;\n",
            }
        )
        unit, _ = compile_entry("a")

        assert unit.compiled_code == (
            "const __kb_m0 = (() => {\n"
            "const cx = (s) => s;\n"
            "return Object.freeze({\n"
            "  get cx() { return cx; },\n"
            "});\n"
            "})();\n"
            "\n"
            "const cx = __kb_m0.cx;\n"
            'export const a = cx("x");\n'
        )
        assert unit.closure == ("_cx.js", "a.js")
        assert unit.logical_name == "a"
        assert unit.bound_style_asset is None

    def test_entry_external_imports_are_kept(self, write_source, compile_entry):
        write_source(
            {
                "a.js": """
                    import React, { useState as useLocal } from "react";
                    import * as runtime from "react/jsx-runtime";
                    export const a = [React, useLocal, runtime];
                """,
            }
        )
        unit, _ = compile_entry("a")

        assert 'import React, { useState as useLocal } from "react";' in unit.compiled_code
        assert 'import * as runtime from "react/jsx-runtime";' in unit.compiled_code
        assert unit.imported_externals == frozenset({"react", "react/jsx-runtime"})

    def test_externals_of_inlined_modules_are_hoisted(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import { useCounter } from "./_hooks.js";\nexport const a = useCounter;\n',
                "_hooks.js": """
                    import { useState } from "react";
                    export function useCounter() { return useState(0); }
                """,
            }
        )
        code = compile_entry("a")[0].compiled_code

        assert code.startswith('import * as __kb_ext_react from "react";\n')
        assert "const useState = __kb_ext_react.useState;" in code
        assert "get useCounter() { return useCounter; }," in code

    def test_no_import_of_internal_modules_remains(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import { b } from "./b.js";\nexport const a = b;\n',
                "b.js": "export const b = 1;\n",
            }
        )
        code = compile_entry("a")[0].compiled_code

        assert "./b.js" not in code
        assert "from" not in code

    def test_css_module_mapping_inlined(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import styles from "./a.module.css";\nexport const root = styles.root;\n',
                "a.module.css": ".root { color: red; }",
            }
        )
        unit, stylesheets = compile_entry("a")
        scoped = stylesheets["a.module.css"].mapping["root"]

        assert f'const styles = Object.freeze({{"root": "{scoped}"}});' in unit.compiled_code
        assert ".module.css" not in unit.compiled_code
        assert unit.stylesheets == ("a.module.css",)

    def test_global_stylesheet_import_removed(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import "./reset.css";\nexport const a = 1;\n',
                "reset.css": "* { margin: 0; }",
            }
        )
        unit, _ = compile_entry("a")

        assert unit.compiled_code == "export const a = 1;\n"
        assert unit.stylesheets == ("reset.css",)

    def test_comments_stripped(self, write_source, compile_entry):
        write_source(
            {
                "a.js": """
                    // leading comment
                    /** @type {number} */
                    export const a = 1; // trailing
                    export const b = /* inline */ 2;
                """,
            }
        )
        code = compile_entry("a")[0].compiled_code

        assert "comment" not in code
        assert "trailing" not in code
        assert "inline" not in code
        assert "export const a = 1;\n" in code

    def test_default_exports_of_internal_modules(self, write_source, compile_entry):
        write_source(
            {
                "a.js": """
                    import Fn from "./_fn.js";
                    import Value from "./_value.js";
                    import Named from "./_named.js";
                    export const all = [Fn, Value, Named];
                """,
                "_fn.js": "export default function() { return 1; }\n",
                "_value.js": "export default 42;\n",
                "_named.js": "export default class Card {}\n",
            }
        )
        code = compile_entry("a")[0].compiled_code

        assert "function __kb_default() { return 1; }" in code
        assert "const __kb_default = 42;" in code
        assert "get default() { return __kb_default; }," in code
        assert "class Card {}" in code
        assert "get default() { return Card; }," in code
        assert "const Fn = __kb_m0.default;" in code

    def test_entry_reexports_of_internal_modules(self, write_source, compile_entry):
        write_source(
            {
                "a.js": """
                    export { cx as classNames } from "./_cx.js";
                    export * from "./_tokens.js";
                """,
                "_cx.js": "export const cx = (s) => s;\n",
                "_tokens.js": "export const space = 4;\nexport const red = 1;\nexport default 0;\n",
            }
        )
        code = compile_entry("a")[0].compiled_code

        assert "const __kb_re0 = __kb_m0.cx;\nexport { __kb_re0 as classNames };" in code
        assert "const __kb_re2 = __kb_m1.red;" in code
        assert "const __kb_re3 = __kb_m1.space;" in code
        assert "export { __kb_re2 as red, __kb_re3 as space };" in code
        assert "__kb_m1.default" not in code

    def test_entry_reexports_of_externals_kept(self, write_source, compile_entry):
        write_source({"a.js": 'export * from "react";\nexport { jsx as h } from "react/jsx-runtime";\n'})
        code = compile_entry("a")[0].compiled_code

        assert 'export * from "react";' in code
        assert 'export { jsx as h } from "react/jsx-runtime";' in code

    def test_shared_module_inlined_into_each_entry(self, write_source, load_graph):
        write_source(
            {
                "a.js": 'import { cx } from "./_cx.js";\nexport const a = cx;\n',
                "b.js": 'import { cx } from "./_cx.js";\nexport const b = cx;\n',
                "_cx.js": "export const cx = 1;\n",
            }
        )
        graph = load_graph()
        compiler = EntryCompiler(graph, verify_graph(graph))
        units = [compiler.compile(e, name_output(e.logical_name)) for e in graph.entries]

        for unit in units:
            assert "const __kb_m0 = (() => {" in unit.compiled_code
            assert unit.closure[0] == "_cx.js"

    def test_deterministic(self, write_source, compile_entry):
        write_source(
            {
                "a.js": 'import { x } from "./_x.js";\nimport "react";\nexport const a = x;\n',
                "_x.js": 'import * as R from "react";\nexport const x = R;\n',
            }
        )
        assert compile_entry("a")[0].compiled_code == compile_entry("a")[0].compiled_code


class _FakeCompiler:
    def __init__(self, failing=None):
        self.failing = failing

    def compile(self, entry, output):
        if entry.logical_name == self.failing:
            raise RuntimeError(f"boom in {entry.logical_name}")
        return CompiledUnit(entry.logical_name, output, "", frozenset())


def _entries(*names):
    return [SourceEntry(f"{n}.js", n, Path(f"/src/{n}.js")) for n in names]


class TestCompileEntries:
    def test_results_in_entry_order(self):
        entries = _entries("c", "a", "b")
        outputs = {e.logical_name: name_output(e.logical_name) for e in entries}
        units = compile_entries(_FakeCompiler(), entries, outputs, jobs=3)

        assert [u.logical_name for u in units] == ["c", "a", "b"]

    def test_progress_callback(self):
        entries = _entries("a", "b")
        outputs = {e.logical_name: name_output(e.logical_name) for e in entries}
        callback = RecordingCallback()
        compile_entries(_FakeCompiler(), entries, outputs, jobs=1, callback=callback)

        for name in ("a", "b"):
            phases = [phase for n, phase in callback.events if n == name]
            assert phases == [EntryPhase.WAITING, EntryPhase.COMPILING, EntryPhase.DONE]

    def test_first_failure_is_raised(self):
        entries = _entries("a", "b", "c")
        outputs = {e.logical_name: name_output(e.logical_name) for e in entries}
        callback = RecordingCallback()

        with pytest.raises(RuntimeError, match="boom in b"):
            compile_entries(_FakeCompiler(failing="b"), entries, outputs, jobs=1, callback=callback)
        assert ("b", EntryPhase.FAILED) in callback.events

    def test_empty(self):
        assert compile_entries(_FakeCompiler(), [], {}) == []
