"""
Error Collector - Structured diagnostic collection for the verification pass.

The verification pass walks every module in the shared graph and records all
problems it finds instead of stopping at the first one, so a single run reports
consistent locations for the whole library.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import TypeCheckError

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity level of a diagnostic."""

    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """Single verification diagnostic."""

    severity: ErrorSeverity
    phase: str  # "syntax", "imports", "exports", "styles", "graph"
    file_path: Optional[str]
    message: str
    line: int = 0
    column: int = 0

    def location(self) -> str:
        if self.file_path is None:
            return "<graph>"
        if self.line:
            return f"{self.file_path}:{self.line}:{self.column}"
        return self.file_path

    def format(self) -> str:
        """Format diagnostic as a single human-readable line."""
        return f"{self.location()}: {self.severity.value}: {self.message} [{self.phase}]"

    def sort_key(self) -> tuple:
        return (self.file_path or "", self.line, self.column, self.message)


class ErrorCollector:
    """Collects diagnostics during verification. Thread-safe."""

    def __init__(self, max_errors: int = 200):
        """Initialize error collector.

        Args:
            max_errors: Maximum number of diagnostics to keep
        """
        self.diagnostics: list[Diagnostic] = []
        self.lock = threading.Lock()
        self.max_errors = max_errors
        self.dropped = 0

    def add(
        self,
        phase: str,
        file_path: Optional[str],
        message: str,
        line: int = 0,
        column: int = 0,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        """Record a diagnostic."""
        diagnostic = Diagnostic(severity, phase, file_path, message, line, column)
        with self.lock:
            if len(self.diagnostics) >= self.max_errors:
                self.dropped += 1
                return
            self.diagnostics.append(diagnostic)
        logger.debug(f"Added {severity.value} diagnostic: {diagnostic.format()}")

    def extend(self, diagnostics: list[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(
                diagnostic.phase,
                diagnostic.file_path,
                diagnostic.message,
                diagnostic.line,
                diagnostic.column,
                diagnostic.severity,
            )

    def get_errors(self, severity: Optional[ErrorSeverity] = None) -> list[Diagnostic]:
        """Get diagnostics sorted by location, optionally filtered by severity."""
        with self.lock:
            selected = [d for d in self.diagnostics if severity is None or d.severity == severity]
        return sorted(selected, key=Diagnostic.sort_key)

    def has_errors(self) -> bool:
        with self.lock:
            return any(d.severity == ErrorSeverity.ERROR for d in self.diagnostics)

    def raise_if_errors(self) -> None:
        """Raise TypeCheckError carrying every error diagnostic, if any."""
        if not self.has_errors():
            return
        errors = self.get_errors(ErrorSeverity.ERROR)
        if self.dropped:
            logger.warning(f"{self.dropped} diagnostics dropped (limit {self.max_errors})")
        raise TypeCheckError(errors)

    def clear(self) -> None:
        with self.lock:
            self.diagnostics.clear()
            self.dropped = 0
