"""
Manifest writer.

Builds the umbrella modules and the package manifest, then writes the complete
output tree in one step:

1. Every file is written into a staging directory next to the output root
   (`.<name>.kitbuild-tmp`)
2. The previous output root, if any, is moved aside (`.<name>.kitbuild-old`)
3. The staging directory is renamed into place and the old tree removed

A failure at any step removes the staging directory and restores the previous
output, so consumers never see a partially written library.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .errors import ManifestWriteError, UmbrellaConflictError
from .models import BuildManifest, CompiledUnit, StyleAsset
from .output_namer import MANIFEST_FILE, UMBRELLA_DECLARATION, UMBRELLA_MODULE

logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".kitbuild-tmp"
BACKUP_SUFFIX = ".kitbuild-old"


@dataclass(frozen=True)
class WriteResult:
    """Summary of a completed write."""

    output_root: Path
    files: tuple[str, ...]
    total_bytes: int


def umbrella_module(units: Sequence[CompiledUnit]) -> str:
    """`index.js` re-exporting every entry."""
    return "".join(f'export * from "./{unit.output.module_file}";\n' for unit in units)


def umbrella_declaration(units: Sequence[CompiledUnit]) -> str:
    """`index.d.ts` re-exporting every entry's declarations."""
    return "".join(f'export * from "./{unit.logical_name}";\n' for unit in units)


def check_umbrella_exports(export_names: Mapping[str, Iterable[str]]) -> None:
    """
    Ensure no two entries export the same name through the umbrella module.

    Args:
        export_names: Logical name -> names the entry exports, in entry order

    Raises:
        UmbrellaConflictError: If a non-default name is exported by two entries
    """
    owners: Dict[str, str] = {}
    for logical_name, names in export_names.items():
        for name in names:
            if name == "default":
                continue
            owner = owners.setdefault(name, logical_name)
            if owner != logical_name:
                raise UmbrellaConflictError(name, owner, logical_name)


def build_manifest(units: Sequence[CompiledUnit], side_effect_globs: Sequence[str]) -> BuildManifest:
    """Package manifest record with one export per entry plus the umbrella."""
    exports = [(".", UMBRELLA_MODULE, UMBRELLA_DECLARATION)]
    exports.extend(
        (f"./{unit.logical_name}", unit.output.module_file, unit.output.declaration_file) for unit in units
    )
    return BuildManifest(
        entry_point_name=UMBRELLA_MODULE,
        type_entry_point_name=UMBRELLA_DECLARATION,
        side_effect_globs=tuple(sorted(side_effect_globs)),
        exports=tuple(exports),
    )


def collect_output_files(
    units: Sequence[CompiledUnit],
    declarations: Mapping[str, str],
    assets: Sequence[StyleAsset],
    manifest: BuildManifest,
) -> Dict[str, str]:
    """Every output file (relative path -> content), sorted by path."""
    files: Dict[str, str] = {}
    for unit in units:
        files[unit.output.module_file] = unit.compiled_code
        files[unit.output.declaration_file] = declarations[unit.logical_name]
    for asset in assets:
        files[asset.output_asset_path] = asset.css
    files[UMBRELLA_MODULE] = umbrella_module(units)
    files[UMBRELLA_DECLARATION] = umbrella_declaration(units)
    files[MANIFEST_FILE] = manifest.to_json()
    return {path: files[path] for path in sorted(files)}


class ManifestWriter:
    """Writes a complete output tree atomically.

    Args:
        output_root: Directory to (re)create
        source_root: Source tree; the output root may neither contain it nor sit inside it
        project_dir: Project directory; the output root may sit inside it but not contain it
    """

    def __init__(self, output_root: Path, source_root: Optional[Path] = None, project_dir: Optional[Path] = None):
        self.output_root = output_root.resolve()
        self.source_root = source_root.resolve() if source_root is not None else None
        self.project_dir = project_dir.resolve() if project_dir is not None else None

    @property
    def staging_dir(self) -> Path:
        return self.output_root.parent / f".{self.output_root.name}{STAGING_SUFFIX}"

    @property
    def backup_dir(self) -> Path:
        return self.output_root.parent / f".{self.output_root.name}{BACKUP_SUFFIX}"

    def check_target(self) -> None:
        """
        Refuse output roots that would overwrite sources or the project.

        Raises:
            ManifestWriteError: If the output root overlaps a protected directory
        """
        output = self.output_root
        if self.source_root is not None:
            source = self.source_root
            if output == source or output in source.parents or source in output.parents:
                raise ManifestWriteError(f"output root {output} overlaps the source root {source}", output)
        if self.project_dir is not None:
            project = self.project_dir
            if output == project or output in project.parents:
                raise ManifestWriteError(f"output root {output} would replace the project directory {project}", output)
        if self.output_root.exists() and not self.output_root.is_dir():
            raise ManifestWriteError(f"output root {self.output_root} is not a directory", self.output_root)

    def write(self, files: Mapping[str, str]) -> WriteResult:
        """
        Stage every file and swap the staging directory into place.

        Args:
            files: Relative path -> content

        Returns:
            WriteResult

        Raises:
            ManifestWriteError: If anything cannot be written; previous output is kept
        """
        self.check_target()
        staging = self.staging_dir
        total = 0
        try:
            self.output_root.parent.mkdir(parents=True, exist_ok=True)
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir()
            for relative in sorted(files):
                data = files[relative].encode("utf-8")
                target = staging / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
                total += len(data)
            logger.debug(f"Staged {len(files)} files ({total} bytes) in {staging}")
            self._swap(staging)
        except OSError as e:
            self._cleanup(staging)
            raise ManifestWriteError(f"failed to write output: {e}", self.output_root) from e

        return WriteResult(output_root=self.output_root, files=tuple(sorted(files)), total_bytes=total)

    def _swap(self, staging: Path) -> None:
        backup = self.backup_dir
        if backup.exists():
            shutil.rmtree(backup)
        moved: Optional[Path] = None
        if self.output_root.exists():
            self.output_root.rename(backup)
            moved = backup
        try:
            staging.rename(self.output_root)
        except OSError:
            if moved is not None and not self.output_root.exists():
                moved.rename(self.output_root)
            raise
        if moved is not None:
            shutil.rmtree(moved, ignore_errors=True)

    def _cleanup(self, staging: Path) -> None:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)
        backup = self.backup_dir
        if backup.exists() and not self.output_root.exists():
            backup.rename(self.output_root)
