"""Data models for the library build.

Defines the records that flow between build phases:
- SourceEntry: A discovered public entry module
- OutputName: Canonical output file names for one entry
- CompiledUnit: Compiled code for one entry (plus its bound style asset)
- StyleAsset: Compiled, scoped stylesheet owned by one unit
- BuildManifest: Package metadata written last
- EntryPhase: Progress state of one entry during emission

All records are created fresh per build.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class EntryPhase(Enum):
    """Phase of an entry during per-entry emission."""

    WAITING = "waiting"
    COMPILING = "compiling"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceEntry:
    """A public entry module.

    Attributes:
        relative_path: Path under the source root, `/`-separated (e.g. "buttons/primary.js")
        logical_name: relative_path without its extension (e.g. "buttons/primary")
        path: Absolute path of the source file
    """

    relative_path: str
    logical_name: str
    path: Path


@dataclass(frozen=True)
class OutputName:
    """Output file names for one entry, relative to the output root."""

    logical_name: str
    module_file: str
    declaration_file: str
    style_file: str


@dataclass(frozen=True)
class StyleAsset:
    """A compiled stylesheet asset bound to exactly one unit.

    Attributes:
        owner_logical_name: Logical name of the owning unit
        source_stylesheets: Stylesheets compiled into the asset, in closure order
        output_asset_path: Asset path relative to the output root
        css: Compiled CSS text
    """

    owner_logical_name: str
    source_stylesheets: tuple[str, ...]
    output_asset_path: str
    css: str


@dataclass
class CompiledUnit:
    """Compiled output for one entry.

    Produced by the compiler for exactly one SourceEntry; the style binder later
    fills in bound_style_asset and prepends the asset import to compiled_code.

    Attributes:
        logical_name: Logical name of the entry
        output: Output file names
        compiled_code: Compiled ES module text
        imported_externals: External identifiers referenced by the closure
        stylesheets: Stylesheets (source-relative) reached by the closure, in order
        closure: Internal modules inlined into this unit, dependencies first
        bound_style_asset: Output path of the bound style asset, if any
    """

    logical_name: str
    output: OutputName
    compiled_code: str
    imported_externals: frozenset[str]
    stylesheets: tuple[str, ...] = ()
    closure: tuple[str, ...] = ()
    bound_style_asset: Optional[str] = None


@dataclass(frozen=True)
class BuildManifest:
    """Package metadata consumers rely on.

    Attributes:
        entry_point_name: Umbrella module re-exporting every entry
        type_entry_point_name: Umbrella declaration file
        side_effect_globs: Paths that must survive tree-shaking (style assets)
        exports: (subpath, module_file, declaration_file) per importable surface
    """

    entry_point_name: str
    type_entry_point_name: str
    side_effect_globs: tuple[str, ...]
    exports: tuple[tuple[str, str, str], ...] = field(default=())

    def to_package_json(self) -> dict[str, Any]:
        """Build the package.json record (key order is part of the output)."""
        exports: dict[str, Any] = {}
        for subpath, module_file, declaration_file in self.exports:
            exports[subpath] = {
                "types": f"./{declaration_file}",
                "import": f"./{module_file}",
            }
        return {
            "type": "module",
            "module": self.entry_point_name,
            "types": self.type_entry_point_name,
            "sideEffects": list(self.side_effect_globs) if self.side_effect_globs else False,
            "exports": exports,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_package_json(), indent=2, ensure_ascii=False) + "\n"
