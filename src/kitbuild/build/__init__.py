"""Build system components for component libraries."""

from .build_context import BuildContext, BuildParams
from .callbacks import NullCallback, ProgressCallback
from .compiler import EntryCompiler, compile_entries
from .declaration_emitter import DeclarationEmitter, emit_declarations
from .dependency_classifier import Classification, DependencyClassifier
from .errors import (
    DeclarationEmitError,
    DiscoveryError,
    KitBuildError,
    ManifestWriteError,
    NamingCollisionError,
    TypeCheckError,
    UmbrellaConflictError,
    UnresolvedImportError,
)
from .manifest_writer import ManifestWriter, build_manifest, check_umbrella_exports, collect_output_files
from .models import BuildManifest, CompiledUnit, EntryPhase, OutputName, SourceEntry, StyleAsset
from .module_graph import ModuleGraph
from .orchestrator import BuildResult, LibraryOrchestrator
from .output_namer import assign_output_names, name_output
from .source_scanner import SourceCollection, SourceScanner, discover_entries
from .style_binder import BindingResult, bind_style_assets
from .verifier import verify_graph

__all__ = [
    "BindingResult",
    "BuildContext",
    "BuildManifest",
    "BuildParams",
    "BuildResult",
    "Classification",
    "CompiledUnit",
    "DeclarationEmitError",
    "DeclarationEmitter",
    "DependencyClassifier",
    "DiscoveryError",
    "EntryCompiler",
    "EntryPhase",
    "KitBuildError",
    "LibraryOrchestrator",
    "ManifestWriteError",
    "ManifestWriter",
    "ModuleGraph",
    "NamingCollisionError",
    "NullCallback",
    "OutputName",
    "ProgressCallback",
    "SourceCollection",
    "SourceEntry",
    "SourceScanner",
    "StyleAsset",
    "TypeCheckError",
    "UmbrellaConflictError",
    "UnresolvedImportError",
    "assign_output_names",
    "bind_style_assets",
    "build_manifest",
    "check_umbrella_exports",
    "collect_output_files",
    "compile_entries",
    "discover_entries",
    "emit_declarations",
    "name_output",
    "verify_graph",
]
