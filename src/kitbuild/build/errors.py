"""
Build error taxonomy for kitbuild.

Every error raised by the build core derives from KitBuildError. All of them
are fatal to the whole build: none are retried and none leave partial output
behind. Each error carries the context needed to locate the problem (logical
name of the entry, offending specifier or path).
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .error_collector import Diagnostic


class KitBuildError(Exception):
    """Base class for all fatal build errors."""

    phase = "build"

    def __init__(self, message: str, logical_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.logical_name = logical_name

    def report(self) -> str:
        """Format the error for the user-facing failure report."""
        if self.logical_name:
            return f"[{self.phase}] {self.logical_name}: {self.message}"
        return f"[{self.phase}] {self.message}"


class DiscoveryError(KitBuildError):
    """Raised when the source root is missing or no entries match."""

    phase = "discover"

    def __init__(self, message: str, source_root: Path):
        super().__init__(message)
        self.source_root = source_root


class NamingCollisionError(KitBuildError):
    """Raised when two entries normalize to the same output path."""

    phase = "naming"

    def __init__(self, output_path: str, first: str, second: str):
        super().__init__(
            f"'{first}' and '{second}' both map to output '{output_path}'",
            logical_name=second,
        )
        self.output_path = output_path
        self.first = first
        self.second = second


class UmbrellaConflictError(KitBuildError):
    """Raised when two entries export the same name through the umbrella module."""

    phase = "umbrella"

    def __init__(self, export_name: str, first: str, second: str):
        super().__init__(
            f"export '{export_name}' is also exported by '{first}'; "
            f"`export *` in the umbrella module would drop it silently",
            logical_name=second,
        )
        self.export_name = export_name
        self.first = first
        self.second = second


class UnresolvedImportError(KitBuildError):
    """Raised when a bundled import cannot be located inside the source tree."""

    phase = "resolve"

    def __init__(self, specifier: str, importer: str, reason: str = "not found in source tree"):
        super().__init__(f"cannot resolve import '{specifier}' ({reason})", logical_name=importer)
        self.specifier = specifier
        self.importer = importer


class TypeCheckError(KitBuildError):
    """Raised when static verification of the module graph fails.

    Carries every diagnostic found by the single verification pass; the first
    one heads the message.
    """

    phase = "verify"

    def __init__(self, diagnostics: Sequence["Diagnostic"]):
        self.diagnostics = list(diagnostics)
        first = self.diagnostics[0].format() if self.diagnostics else "verification failed"
        extra = len(self.diagnostics) - 1
        message = first if extra <= 0 else f"{first} (and {extra} more)"
        super().__init__(message)

    def report(self) -> str:
        lines = [f"[{self.phase}] {len(self.diagnostics)} error(s) in module graph"]
        lines.extend(f"  {d.format()}" for d in self.diagnostics)
        return "\n".join(lines)


class DeclarationEmitError(KitBuildError):
    """Raised when an entry's public shape cannot be statically resolved."""

    phase = "declarations"

    def __init__(self, logical_name: str, export_name: str, reason: str):
        super().__init__(f"cannot declare export '{export_name}': {reason}", logical_name=logical_name)
        self.export_name = export_name


class ManifestWriteError(KitBuildError):
    """Raised when the output tree or manifest cannot be written."""

    phase = "write"

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path
