"""Progress callback protocol for per-entry emission.

Defines the interface the compile pool uses to report entry progress to the
TUI display layer.
"""

from typing import Protocol, runtime_checkable

from .models import EntryPhase


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for receiving progress updates from the compile pool.

    The rich display implements this protocol to render a live table of
    entries; NullCallback discards updates.
    """

    def on_progress(self, logical_name: str, phase: EntryPhase, detail: str) -> None:
        """Called when an entry changes phase.

        Args:
            logical_name: Logical name of the entry (e.g. "buttons/primary").
            phase: New emission phase.
            detail: Human-readable status detail (e.g. "3 modules, 1 stylesheet").
        """
        ...


class NullCallback:
    """No-op callback for tests and non-interactive use."""

    def on_progress(self, logical_name: str, phase: EntryPhase, detail: str) -> None:
        pass
