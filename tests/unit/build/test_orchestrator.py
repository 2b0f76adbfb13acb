"""Tests for the library build orchestrator and its progress reporting."""

import io
import threading

import pytest
from rich.console import Console

from kitbuild.build import BuildParams, EntryPhase, LibraryOrchestrator, NamingCollisionError, NullCallback, ProgressCallback, TypeCheckError, UmbrellaConflictError
from kitbuild.build.progress_display import BuildProgressDisplay


class RecordingCallback:
    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def on_progress(self, logical_name, phase, detail):
        with self.lock:
            self.events.append((logical_name, phase, detail))


@pytest.fixture
def build(project):
    def _build(callback=None, overrides=None):
        params = BuildParams.create(project, overrides=overrides)
        return LibraryOrchestrator(tui=False).build(params, callback or NullCallback())

    return _build


class TestLibraryOrchestrator:
    def test_successful_build(self, write_source, build, project):
        write_source(
            {
                "a.js": 'import { cx } from "./_cx.js";\nexport const a = cx;\n',
                "_cx.js": "export const cx = 1;\n",
                "b.js": "export const b = 2;\n",
            }
        )
        result = build()

        assert result.success
        assert result.error is None
        assert result.output_root == (project / "dist").resolve()
        assert result.entries == ("a", "b")
        assert result.files == ("a.d.ts", "a.js", "b.d.ts", "b.js", "index.d.ts", "index.js", "package.json")
        assert result.side_effect_globs == ()
        assert result.message == "Built 2 entries"
        assert [u.closure for u in result.units] == [("_cx.js", "a.js"), ("b.js",)]

    def test_callback_sees_every_entry(self, write_source, build):
        write_source({"a.js": "export const a = 1;\n", "b.js": "export const b = 2;\n"})
        callback = RecordingCallback()
        build(callback=callback, overrides={"jobs": 2})

        for name in ("a", "b"):
            phases = [phase for n, phase, _ in callback.events if n == name]
            assert phases == [EntryPhase.WAITING, EntryPhase.COMPILING, EntryPhase.DONE]

    def test_failure_is_reported_not_raised(self, write_source, build, project):
        write_source(
            {
                "a.js": 'import { nope } from "./_b.js";\nexport const a = nope;\n',
                "_b.js": "export const b = 1;\n",
            }
        )
        result = build()

        assert not result.success
        assert result.output_root is None
        assert isinstance(result.error, TypeCheckError)
        assert result.message.startswith("[verify] 1 error(s) in module graph")
        assert "'nope' is not exported by '_b.js'" in result.message
        assert not (project / "dist").exists()

    def test_collision_fails_before_graph_load(self, write_source, build):
        write_source(
            {
                "Card.js": 'import "./_missing.js";\nexport const a = 1;\n',
                "card.js": "export const b = 1;\n",
            }
        )
        result = build()

        assert isinstance(result.error, NamingCollisionError)
        assert result.message.startswith("[naming] card: ")

    def test_umbrella_conflict_fails_before_compiling(self, write_source, build, project):
        write_source({"a.js": "export const name = 1;\n", "b.js": "export const name = 2;\n"})
        callback = RecordingCallback()

        result = build(callback=callback)

        assert isinstance(result.error, UmbrellaConflictError)
        assert result.message == (
            "[umbrella] b: export 'name' is also exported by 'a'; "
            "`export *` in the umbrella module would drop it silently"
        )
        assert callback.events == []
        assert not (project / "dist").exists()

    def test_protected_output_root(self, write_source, build):
        write_source({"a.js": "export const a = 1;\n"})
        result = build(overrides={"output_root": "lib"})

        assert not result.success
        assert result.message.startswith("[write] output root")

    def test_unknown_config_option_is_a_warning(self, write_source, build, project):
        (project / "kitbuild.ini").write_text("[build]\nturbo = yes\n")
        write_source({"a.js": "export const a = 1;\n"})

        result = build()

        assert result.success


class TestCallbacks:
    def test_null_callback_is_a_progress_callback(self):
        assert isinstance(NullCallback(), ProgressCallback)
        NullCallback().on_progress("a", EntryPhase.DONE, "")

    def test_progress_display_tracks_entries(self):
        console = Console(file=io.StringIO(), force_terminal=False, width=100)
        with BuildProgressDisplay(console, "demo") as display:
            display.on_progress("a", EntryPhase.WAITING, "")
            display.on_progress("a", EntryPhase.COMPILING, "")
            display.on_progress("b", EntryPhase.WAITING, "")
            display.on_progress("a", EntryPhase.DONE, "2 modules")

        assert isinstance(display, ProgressCallback)
        output = console.file.getvalue()
        assert "demo" in output
        assert "Done" in output
        assert "Waiting" in output
