"""Build Context - Aggregated build configuration.

This module defines:
- BuildParams: Basic build parameters from the CLI
- BuildContext: Everything the emission phases share, created by the
  orchestrator once the graph is loaded and verified

Design:
    BuildParams flows from CLI -> orchestrator. BuildContext is created after
    discovery, naming, graph loading and verification, and is handed read-only
    to the compiler, binder, declaration emitter and manifest writer.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from ..config import BuildConfig, load_build_config
from .css_modules import ScopedStylesheet
from .dependency_classifier import DependencyClassifier
from .models import OutputName, SourceEntry
from .module_graph import ModuleGraph


@dataclass(frozen=True)
class BuildParams:
    """Basic build parameters from the CLI.

    Attributes:
        project_dir: Project root directory containing kitbuild.ini
        config: Resolved build configuration
        verbose: Whether to enable verbose output
    """

    project_dir: Path
    config: BuildConfig
    verbose: bool = False

    @classmethod
    def create(
        cls,
        project_dir: Path,
        config_path: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        verbose: bool = False,
    ) -> "BuildParams":
        """Create BuildParams with the configuration loaded from disk."""
        config = load_build_config(project_dir, config_path, overrides)
        return cls(project_dir=config.project_dir, config=config, verbose=verbose)


@dataclass(frozen=True)
class BuildContext:
    """Shared, read-only state for the emission phases.

    Attributes:
        project_dir: Project root directory
        config: Resolved build configuration
        verbose: Whether to enable verbose output
        entries: Discovered entries, path-sorted
        outputs: Output names by logical name
        classifier: Dependency classifier (decisions memoised for the build)
        graph: Verified module graph
        stylesheets: Compiled stylesheets by source-relative path
    """

    project_dir: Path
    config: BuildConfig
    verbose: bool
    entries: tuple[SourceEntry, ...]
    outputs: Mapping[str, OutputName]
    classifier: DependencyClassifier
    graph: ModuleGraph
    stylesheets: Mapping[str, ScopedStylesheet]

    @property
    def source_root(self) -> Path:
        return self.config.source_root

    @property
    def output_root(self) -> Path:
        return self.config.output_root

    @classmethod
    def from_params(
        cls,
        params: BuildParams,
        entries: tuple[SourceEntry, ...],
        outputs: Mapping[str, OutputName],
        classifier: DependencyClassifier,
        graph: ModuleGraph,
        stylesheets: Mapping[str, ScopedStylesheet],
    ) -> "BuildContext":
        return cls(
            project_dir=params.project_dir,
            config=params.config,
            verbose=params.verbose,
            entries=entries,
            outputs=outputs,
            classifier=classifier,
            graph=graph,
            stylesheets=stylesheets,
        )
