"""
Output naming for compiled entries.

Maps a logical name to its output files. The mapping is a pure function of the
logical name, so it is stable across runs, and it mirrors the logical path's
directory structure:

    buttons/primary -> buttons/primary.js
                       buttons/primary.d.ts
                       buttons/primary.css  (or <asset_directory>/buttons/primary.css)
"""

import logging
import unicodedata
from typing import Dict, Iterable, List

from .errors import NamingCollisionError
from .models import OutputName, SourceEntry

logger = logging.getLogger(__name__)

MODULE_EXTENSION = ".js"
DECLARATION_EXTENSION = ".d.ts"
STYLE_EXTENSION = ".css"

UMBRELLA_NAME = "index"
UMBRELLA_MODULE = UMBRELLA_NAME + MODULE_EXTENSION
UMBRELLA_DECLARATION = UMBRELLA_NAME + DECLARATION_EXTENSION
MANIFEST_FILE = "package.json"


def name_output(logical_name: str, asset_directory: str = "") -> OutputName:
    """
    Map a logical name to its output file names.

    Args:
        logical_name: `/`-separated logical name (e.g. "buttons/primary")
        asset_directory: Optional subpath for style assets

    Returns:
        OutputName with paths relative to the output root
    """
    style_file = logical_name + STYLE_EXTENSION
    if asset_directory:
        style_file = f"{asset_directory.strip('/')}/{style_file}"
    return OutputName(
        logical_name=logical_name,
        module_file=logical_name + MODULE_EXTENSION,
        declaration_file=logical_name + DECLARATION_EXTENSION,
        style_file=style_file,
    )


def normalize_output_path(path: str) -> str:
    """Normalize a path the way case-insensitive, normalizing filesystems compare it."""
    return unicodedata.normalize("NFC", path).casefold()


def assign_output_names(entries: Iterable[SourceEntry], asset_directory: str = "") -> Dict[str, OutputName]:
    """
    Assign output names to every entry, rejecting collisions.

    Collisions are detected on the normalized form of every output path the
    build will produce, including the umbrella files and manifest at the
    output root.

    Args:
        entries: Discovered entries (path-sorted)
        asset_directory: Optional subpath for style assets

    Returns:
        Mapping of logical name -> OutputName, in entry order

    Raises:
        NamingCollisionError: If two entries would write the same output path
    """
    owners: Dict[str, str] = {
        normalize_output_path(UMBRELLA_MODULE): "<umbrella>",
        normalize_output_path(UMBRELLA_DECLARATION): "<umbrella>",
        normalize_output_path(MANIFEST_FILE): "<manifest>",
    }
    names: Dict[str, OutputName] = {}
    sources: Dict[str, str] = {}

    for entry in entries:
        if entry.logical_name in names:
            raise NamingCollisionError(
                names[entry.logical_name].module_file,
                sources[entry.logical_name],
                entry.relative_path,
            )
        output = name_output(entry.logical_name, asset_directory)
        for path in _paths_of(output):
            key = normalize_output_path(path)
            owner = owners.get(key)
            if owner is not None:
                raise NamingCollisionError(path, owner, entry.logical_name)
            owners[key] = entry.logical_name
        names[entry.logical_name] = output
        sources[entry.logical_name] = entry.relative_path
        logger.debug(f"{entry.relative_path} -> {output.module_file}")

    return names


def _paths_of(output: OutputName) -> List[str]:
    return [output.module_file, output.declaration_file, output.style_file]

