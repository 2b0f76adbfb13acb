"""Tests for the kitbuild command-line interface."""

import pytest

from kitbuild import __version__
from kitbuild.cli import BuildArgs, main
from conftest import write_files


def run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.fixture
def library(project):
    write_files(
        project / "lib",
        {
            "buttons/primary.js": 'import styles from "./primary.module.css";\nexport const className = styles.root;\n',
            "buttons/primary.module.css": ".root { color: red; }\n",
            "buttons/_shared.js": "export const shared = 1;\n",
            "text/body.js": "export const body = 1;\n",
        },
    )
    return project


class TestMain:
    def test_no_command_shows_help(self, capsys):
        assert run([]) == 0
        assert "usage: kitbuild" in capsys.readouterr().out

    def test_version(self, capsys):
        assert run(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_missing_project_dir(self, tmp_path, capsys):
        assert run(["build", str(tmp_path / "missing")]) == 2
        assert "Path does not exist" in capsys.readouterr().out

    def test_project_dir_is_a_file(self, tmp_path, capsys):
        path = tmp_path / "file.txt"
        path.write_text("x")
        assert run(["entries", str(path)]) == 2
        assert "Path is not a directory" in capsys.readouterr().out


class TestBuildCommand:
    def test_successful_build(self, library, capsys):
        assert run(["build", str(library), "--no-tui"]) == 0

        out = capsys.readouterr().out
        assert "Build successful!" in out
        assert "Entries: 2" in out
        assert "Styles:  buttons/primary.css" in out
        assert (library / "dist" / "package.json").exists()

    def test_out_dir_override(self, library):
        assert run(["build", str(library), "--no-tui", "-o", "build/lib", "-j", "1"]) == 0
        assert (library / "build" / "lib" / "text" / "body.js").exists()
        assert not (library / "dist").exists()

    def test_external_flag_keeps_configured_externals(self, library):
        write_files(
            library / "lib",
            {"text/body.js": 'import { useState } from "react";\nimport debounce from "lodash/debounce";\nexport const body = 1;\n'},
        )

        assert run(["build", str(library), "--no-tui", "--external", "lodash"]) == 0
        module = (library / "dist" / "text" / "body.js").read_text(encoding="utf-8")
        assert '"react"' in module
        assert '"lodash/debounce"' in module

    def test_failed_build(self, library, capsys):
        write_files(library / "lib", {"broken.js": 'import { x } from "./_missing.js";\nexport const y = x;\n'})

        assert run(["build", str(library), "--no-tui"]) == 1

        out = capsys.readouterr().out
        assert "Build failed!" in out
        assert "[resolve] broken.js: cannot resolve import" in out
        assert not (library / "dist").exists()

    def test_invalid_configuration(self, library, capsys):
        (library / "kitbuild.ini").write_text("[build]\njobs = none\n")

        assert run(["build", str(library), "--no-tui"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_missing_config_file(self, library, capsys):
        assert run(["build", str(library), "--config", str(library / "nope.ini")]) == 1
        assert "File not found" in capsys.readouterr().out

    def test_overrides_mapping(self, tmp_path):
        args = BuildArgs(project_dir=tmp_path, out_dir="out", externals=["vue"], jobs=2)
        assert args.overrides() == {
            "source_root": None,
            "output_root": "out",
            "extra_externals": ["vue"],
            "asset_directory": None,
            "entry_pattern": None,
            "jobs": 2,
        }

    def test_no_externals_keeps_configured_list(self, tmp_path):
        assert BuildArgs(project_dir=tmp_path).overrides()["extra_externals"] is None


class TestEntriesCommand:
    def test_lists_entries(self, library, capsys):
        assert run(["entries", str(library)]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["buttons/primary", "buttons/primary.js"]
        assert lines[1].split() == ["text/body", "text/body.js"]

    def test_verbose(self, library, capsys):
        assert run(["entries", str(library), "-v"]) == 0

        out = capsys.readouterr().out
        assert "declaration: buttons/primary.d.ts" in out
        assert "style:       buttons/primary.css" in out
        assert "Skipped 1 non-entry files" in out

    def test_no_entries(self, project, capsys):
        assert run(["entries", str(project)]) == 1
        assert "No entries matching" in capsys.readouterr().out
