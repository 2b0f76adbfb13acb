"""
Library build orchestrator.

Runs the build phases in order:

    1. Discover entries            (sequential, path-sorted)
    2. Assign output names         (collisions abort before anything is written)
    3. Load module graph           (every reachable module parsed once)
    4. Verify module graph         (one pass, all diagnostics reported together)
    5. Compile entries             (thread pool, fail fast)
    6. Bind style assets and emit declarations
    7. Write output                (staged, then swapped in)

Every fatal error is a KitBuildError and turns into a failed BuildResult; the
previous output tree is left untouched.
"""

import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..output import TimedLogger, log_detail, log_error, log_file, log_output_summary, log_phase, log_warning
from .build_context import BuildContext, BuildParams
from .callbacks import ProgressCallback
from .compiler import EntryCompiler, compile_entries
from .declaration_emitter import DeclarationEmitter, emit_declarations
from .dependency_classifier import Classification, DependencyClassifier
from .errors import KitBuildError
from .manifest_writer import ManifestWriter, build_manifest, check_umbrella_exports, collect_output_files
from .models import CompiledUnit
from .module_graph import ModuleGraph
from .output_namer import assign_output_names
from .progress_display import BuildProgressDisplay
from .source_scanner import SourceScanner
from .style_binder import bind_style_assets
from .verifier import verify_graph

logger = logging.getLogger(__name__)

TOTAL_PHASES = 7


@dataclass
class BuildResult:
    """Result of a library build.

    Attributes:
        success: Whether the output tree was written
        output_root: Output directory (None on failure)
        entries: Logical names of the built entries
        files: Written files, relative to output_root
        side_effect_globs: Style assets registered as side effects
        build_time: Wall time in seconds
        message: Summary, or the error report on failure
        error: The fatal error, if any
    """

    success: bool
    output_root: Optional[Path]
    build_time: float
    message: str
    entries: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    side_effect_globs: tuple[str, ...] = ()
    error: Optional[KitBuildError] = None
    units: List[CompiledUnit] = field(default_factory=list, repr=False)


class LibraryOrchestrator:
    """Builds a component library from a project directory.

    Args:
        tui: Render the live entry table during compilation when stdout is a terminal
    """

    def __init__(self, tui: bool = True):
        self.tui = tui

    def build(self, params: BuildParams, callback: Optional[ProgressCallback] = None) -> BuildResult:
        """Execute the complete build.

        Args:
            params: Build parameters from the CLI
            callback: Progress callback for entry emission (default: rich display or none)

        Returns:
            BuildResult; failures are reported in the result, never raised
        """
        start_time = time.time()
        try:
            return self._build(params, callback, start_time)
        except KeyboardInterrupt:
            raise
        except KitBuildError as e:
            logger.debug(f"Build failed in phase '{e.phase}': {e.message}")
            log_error(e.message)
            return BuildResult(
                success=False,
                output_root=None,
                build_time=time.time() - start_time,
                message=e.report(),
                error=e,
            )

    def _build(self, params: BuildParams, callback: Optional[ProgressCallback], start_time: float) -> BuildResult:
        config = params.config
        for warning in config.warnings:
            log_warning(warning)

        log_phase(1, TOTAL_PHASES, "Discovering entries...")
        collection = SourceScanner(
            config.source_root,
            entry_patterns=config.entry_pattern,
            max_depth=config.max_depth,
            exclude=config.exclude,
        ).scan()
        entries = collection.entries
        log_detail(f"{len(entries)} entries under {config.source_root}")
        for entry in entries:
            log_file("entry", entry.logical_name, entry.relative_path)

        log_phase(2, TOTAL_PHASES, "Assigning output names...")
        outputs = assign_output_names(entries, config.asset_directory)
        writer = ManifestWriter(config.output_root, config.source_root, params.project_dir)
        writer.check_target()

        log_phase(3, TOTAL_PHASES, "Loading module graph...")
        classifier = DependencyClassifier(config.externals, config.source_root)
        graph = ModuleGraph.load(config.source_root, entries, classifier, config.style_suffix)
        log_detail(f"{len(graph)} modules", verbose_only=True)
        for specifier, decision in classifier.decisions().items():
            if decision is Classification.EXTERNAL:
                log_file("external", specifier)

        with TimedLogger("Verifying module graph", phase=(4, TOTAL_PHASES)) as timed:
            stylesheets = verify_graph(graph)
            check_umbrella_exports({e.logical_name: graph.export_table(e.relative_path).names for e in entries})
            timed.detail(f"{len(stylesheets)} stylesheets")
        context = BuildContext.from_params(params, entries, outputs, classifier, graph, stylesheets)

        log_phase(5, TOTAL_PHASES, "Compiling entries...")
        units = self._compile(context, callback)

        log_phase(6, TOTAL_PHASES, "Binding style assets and emitting declarations...")
        binding = bind_style_assets(units, context.stylesheets)
        for asset in binding.assets:
            log_file("style", asset.output_asset_path, f"{len(asset.source_stylesheets)} stylesheets")
        emitter = DeclarationEmitter(context.graph, context.stylesheets, config.typed_externals)
        declarations = emit_declarations(emitter, units)

        log_phase(7, TOTAL_PHASES, "Writing output...")
        manifest = build_manifest(units, binding.side_effect_globs)
        files = collect_output_files(units, declarations, binding.assets, manifest)
        written = writer.write(files)
        log_detail(f"{len(written.files)} files written to {written.output_root}")

        module_bytes = sum(len(u.compiled_code.encode("utf-8")) for u in units)
        asset_bytes = sum(len(a.css.encode("utf-8")) for a in binding.assets)
        log_output_summary(len(units), len(binding.assets), module_bytes, asset_bytes)

        return BuildResult(
            success=True,
            output_root=written.output_root,
            build_time=time.time() - start_time,
            message=f"Built {len(units)} entries",
            entries=tuple(u.logical_name for u in units),
            files=written.files,
            side_effect_globs=manifest.side_effect_globs,
            units=units,
        )

    def _compile(self, context: BuildContext, callback: Optional[ProgressCallback]) -> List[CompiledUnit]:
        compiler = EntryCompiler(context.graph, context.stylesheets)
        jobs = context.config.jobs
        if callback is None and self.tui and sys.stdout.isatty():
            with BuildProgressDisplay(None, context.project_dir.name) as display:
                return compile_entries(compiler, context.entries, context.outputs, jobs, display)
        units = compile_entries(compiler, context.entries, context.outputs, jobs, callback)
        for unit in units:
            log_file("module", unit.output.module_file, f"{len(unit.closure)} modules")
        return units
