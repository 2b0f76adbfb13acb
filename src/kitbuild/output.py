"""
Centralized logging and output module for kitbuild.

All user-facing output is prefixed with the elapsed time since launch in
MM:SS.cc format, which makes it easy to see where a build spends its time.

Example output:
    00:00.01 kitbuild Component Library Builder v0.3.0
    00:00.02 [1/7] Discovering entries...
    00:00.02       Source root: lib
    00:00.03       Found 2 entries
    00:00.19 [4/7] Compiling entries...
    00:00.19       [entry] buttons/primary

Usage:
    from kitbuild.output import log, log_phase, log_detail

    log_phase(1, 7, "Discovering entries...")
    log_detail("Found 2 entries")
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

# Global state for the timer
_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True
_output_file: Optional[TextIO] = None


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    If not called explicitly, it is called automatically on first log.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If True, all messages are printed. If False, only non-verbose messages.
    """
    global _verbose
    _verbose = verbose


def set_output_file(output_file: Optional[TextIO]) -> None:
    """
    Set a file to receive all log output (in addition to the stream).

    Args:
        output_file: File object to receive output, or None to disable file output
    """
    global _output_file
    _output_file = output_file


def get_elapsed() -> float:
    """Get elapsed time in seconds since timer initialization."""
    global _start_time
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str, end: str = "\n") -> None:
    timestamp = format_timestamp()
    line = f"{timestamp} {message}{end}"
    _output_stream.write(line)
    _output_stream.flush()

    if _output_file is not None:
        _output_file.write(line)
        _output_file.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a build phase message.

    Format: [N/M] message
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_file(kind: str, name: str, note: str = "", verbose_only: bool = True) -> None:
    """
    Log a per-file message.

    Format: [kind] name (note)

    Args:
        kind: Kind of file (e.g. 'entry', 'style', 'decl')
        name: Logical name or path
        note: Optional trailing note
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    suffix = f" ({note})" if note else ""
    _print(f"      [{kind}] {name}{suffix}")


def log_header(title: str, version: str) -> None:
    """Log a header message (program startup)."""
    _print(f"{title} v{version}")
    _print("")


def log_output_summary(
    entry_count: int,
    asset_count: int,
    module_bytes: int,
    asset_bytes: int,
    verbose_only: bool = False,
) -> None:
    """
    Log the size of the produced library.

    Args:
        entry_count: Number of compiled entry modules
        asset_count: Number of style assets
        module_bytes: Total size of compiled modules in bytes
        asset_bytes: Total size of style assets in bytes
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print("Library Output:")
    _print(f"  Modules:  {entry_count:6d} files ({module_bytes} bytes)")
    _print(f"  Styles:   {asset_count:6d} files ({asset_bytes} bytes)")


def log_build_complete(build_time: float, verbose_only: bool = False) -> None:
    """Log build completion message."""
    if verbose_only and not _verbose:
        return
    _print("")
    _print(f"Build time: {build_time:.2f}s")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Verifying module graph", phase=(3, 7)) as timed:
            timed.detail("12 modules")
        # Logs "Done (0.04s)" on success
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail message within this operation."""
        log_detail(message, verbose_only=self.verbose_only)

    def log(self, message: str) -> None:
        """Log a message within this operation."""
        log(message, self.verbose_only)
