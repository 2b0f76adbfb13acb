"""Pytest configuration and fixtures for kitbuild tests.

Provides helpers that lay out a component library project on disk:

    project/
        kitbuild.ini      (optional)
        lib/              source root
        dist/             output root (created by builds)
"""

import sys
import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest

from kitbuild.build import DependencyClassifier, ModuleGraph, SourceScanner
from kitbuild.config import DEFAULT_EXTERNALS


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are restored after each test.

    The live progress display and the CLI tests replace or close the streams.
    """
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


def write_files(root: Path, files: Dict[str, str]) -> None:
    """Write `relative path -> source` pairs under root (sources are dedented)."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Empty project directory with a `lib/` source root."""
    project_dir = tmp_path / "project"
    (project_dir / "lib").mkdir(parents=True)
    return project_dir


@pytest.fixture
def source_root(project: Path) -> Path:
    return project / "lib"


@pytest.fixture
def write_source(source_root: Path) -> Callable[[Dict[str, str]], Path]:
    """Write files into the source root; returns the source root."""

    def _write(files: Dict[str, str]) -> Path:
        write_files(source_root, files)
        return source_root

    return _write


@pytest.fixture
def load_graph(source_root: Path) -> Callable[..., ModuleGraph]:
    """Discover entries and load the module graph for the current source tree."""

    def _load(externals=DEFAULT_EXTERNALS, max_depth: int = 2) -> ModuleGraph:
        entries = SourceScanner(source_root, max_depth=max_depth).scan().entries
        classifier = DependencyClassifier(externals, source_root)
        return ModuleGraph.load(source_root, entries, classifier)

    return _load
