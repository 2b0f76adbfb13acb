"""
Entry discovery for component libraries.

Walks the source root and returns every public entry module, sorted by path so
that discovery order never depends on filesystem iteration order.

Rules:
- An entry matches one of the entry patterns (globs relative to the source root)
- It sits at most `max_depth` directories below the source root
- No path segment starts with "_" (private modules are importable, never entries)
- It does not match an exclude pattern

The entry patterns are authoritative: a file they select that is not an ES
module (`.js`, `.mjs`) fails discovery instead of being dropped.
"""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Sequence

from .errors import DiscoveryError
from .models import SourceEntry

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".js", ".mjs")


@dataclass(frozen=True)
class SourceCollection:
    """Result of a discovery pass."""

    source_root: Path
    entries: tuple[SourceEntry, ...]
    skipped: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def logical_names(self) -> list[str]:
        return [e.logical_name for e in self.entries]


class SourceScanner:
    """Discovers public entry modules under a source root."""

    def __init__(
        self,
        source_root: Path,
        entry_patterns: Sequence[str] = ("**/*.js",),
        max_depth: int = 2,
        exclude: Sequence[str] = (),
    ):
        """
        Args:
            source_root: Directory to scan
            entry_patterns: Globs (relative to source_root) selecting entries
            max_depth: Maximum directories between source_root and an entry file
            exclude: Globs removing files from the entry set
        """
        self.source_root = source_root
        self.entry_patterns = tuple(entry_patterns)
        self.max_depth = max_depth
        self.exclude = tuple(exclude)

    def scan(self) -> SourceCollection:
        """
        Discover entries.

        Returns:
            SourceCollection with path-sorted entries

        Raises:
            DiscoveryError: If the root does not exist or no entries match
        """
        root = self.source_root
        if not root.exists():
            raise DiscoveryError(f"Source root does not exist: {root}", root)
        if not root.is_dir():
            raise DiscoveryError(f"Source root is not a directory: {root}", root)

        entries: dict[str, SourceEntry] = {}
        skipped: set[str] = set()

        for path in sorted(set(self._candidates())):
            relative = path.relative_to(root).as_posix()
            reason = self._skip_reason(relative)
            if reason:
                logger.debug(f"Skipping {relative}: {reason}")
                skipped.add(relative)
                continue
            suffix = PurePosixPath(relative).suffix
            if suffix not in SCRIPT_EXTENSIONS:
                supported = ", ".join(SCRIPT_EXTENSIONS)
                raise DiscoveryError(
                    f"Entry {relative} matches the entry pattern but {suffix or 'files without an extension'} "
                    f"is not a supported module type ({supported})",
                    root,
                )
            entries[relative] = SourceEntry(
                relative_path=relative,
                logical_name=logical_name_for(relative),
                path=path.resolve(),
            )

        if not entries:
            patterns = ", ".join(self.entry_patterns)
            raise DiscoveryError(f"No entries matching '{patterns}' under {root}", root)

        ordered = tuple(entries[key] for key in sorted(entries))
        logger.debug(f"Discovered {len(ordered)} entries under {root}")
        return SourceCollection(source_root=root, entries=ordered, skipped=tuple(sorted(skipped)))

    def _candidates(self) -> Iterable[Path]:
        for pattern in self.entry_patterns:
            for path in self.source_root.glob(pattern):
                if path.is_file():
                    yield path

    def _skip_reason(self, relative: str) -> str:
        pure = PurePosixPath(relative)
        if len(pure.parts) - 1 > self.max_depth:
            return f"deeper than {self.max_depth} directories"
        if any(part.startswith("_") for part in pure.parts):
            return "private module"
        for pattern in self.exclude:
            if pure.match(pattern):
                return f"excluded by '{pattern}'"
        return ""


def logical_name_for(relative_path: str) -> str:
    """Strip the extension from a `/`-separated relative path."""
    pure = PurePosixPath(relative_path)
    return pure.with_suffix("").as_posix()


def discover_entries(
    source_root: Path,
    entry_patterns: Sequence[str] = ("**/*.js",),
    max_depth: int = 2,
    exclude: Sequence[str] = (),
) -> List[SourceEntry]:
    """Convenience wrapper returning just the sorted entry list."""
    return list(SourceScanner(source_root, entry_patterns, max_depth, exclude).scan().entries)
