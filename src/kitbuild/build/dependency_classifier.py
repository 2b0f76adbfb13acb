"""
Dependency classification and internal import resolution.

Every import identifier met while loading the module graph is classified once:
EXTERNAL if it exactly matches a configured external, BUNDLE otherwise. The
decision is memoised for the whole build, so an identifier can never be
external for one entry and bundled for another.

BUNDLE imports must resolve to a file inside the source root:
- "./x" and "../x" resolve against the importing module's directory
- bare identifiers ("shared/cx") resolve against the source root
- a specifier without a known extension is tried as <x>.js, <x>.mjs, <x>/index.js
"""

import logging
import threading
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, Optional

from .errors import UnresolvedImportError

logger = logging.getLogger(__name__)

RESOLVE_SUFFIXES = (".js", ".mjs")
INDEX_FILES = ("index.js", "index.mjs")
STYLESHEET_EXTENSION = ".css"


class Classification(Enum):
    """Where an import identifier comes from at runtime."""

    BUNDLE = "bundle"
    EXTERNAL = "external"


class DependencyClassifier:
    """Classifies import identifiers and resolves bundled ones.

    Thread-safe: classification may be queried from emission workers.
    """

    def __init__(self, externals: Iterable[str], source_root: Path):
        self.externals = frozenset(externals)
        self.source_root = source_root.resolve()
        self._decisions: Dict[str, Classification] = {}
        self._lock = threading.Lock()

    def classify(self, specifier: str) -> Classification:
        """
        Classify an import identifier.

        Args:
            specifier: Identifier as written in the import statement

        Returns:
            Classification.EXTERNAL for exact matches of a configured external,
            Classification.BUNDLE otherwise
        """
        with self._lock:
            decision = self._decisions.get(specifier)
            if decision is None:
                decision = Classification.EXTERNAL if specifier in self.externals else Classification.BUNDLE
                self._decisions[specifier] = decision
                logger.debug(f"Classified '{specifier}' as {decision.value}")
            return decision

    def is_external(self, specifier: str) -> bool:
        return self.classify(specifier) is Classification.EXTERNAL

    def decisions(self) -> Dict[str, Classification]:
        """Snapshot of every classification made so far, sorted by identifier."""
        with self._lock:
            return {k: self._decisions[k] for k in sorted(self._decisions)}

    def resolve(self, specifier: str, importer: str) -> str:
        """
        Resolve a BUNDLE import to a source-root-relative path.

        Args:
            specifier: Identifier as written in the import statement
            importer: Source-root-relative path of the importing module

        Returns:
            `/`-separated path relative to the source root

        Raises:
            UnresolvedImportError: If the file is missing or outside the source root
        """
        if self.classify(specifier) is Classification.EXTERNAL:
            raise ValueError(f"'{specifier}' is external and cannot be resolved in the source tree")

        if specifier.startswith("/"):
            raise UnresolvedImportError(specifier, importer, "absolute paths are not allowed")

        if specifier.startswith("./") or specifier.startswith("../"):
            base = self.source_root / PurePosixPath(importer).parent
        else:
            base = self.source_root
        candidate = (base / specifier).resolve()

        try:
            candidate.relative_to(self.source_root)
        except ValueError:
            raise UnresolvedImportError(specifier, importer, "escapes the source root") from None

        found = self._locate(candidate)
        if found is None:
            raise UnresolvedImportError(specifier, importer)
        return found.relative_to(self.source_root).as_posix()

    def _locate(self, candidate: Path) -> Optional[Path]:
        if candidate.is_file():
            return candidate
        if candidate.suffix in RESOLVE_SUFFIXES or candidate.suffix == STYLESHEET_EXTENSION:
            return None
        for suffix in RESOLVE_SUFFIXES:
            path = candidate.with_name(candidate.name + suffix)
            if path.is_file():
                return path
        if candidate.is_dir():
            for index in INDEX_FILES:
                path = candidate / index
                if path.is_file():
                    return path
        return None
