"""
Command-line interface for kitbuild.

This module provides the `kitbuild` CLI tool for building component libraries.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from kitbuild import __version__
from kitbuild.build import BuildParams, KitBuildError, LibraryOrchestrator, SourceScanner, assign_output_names
from kitbuild.config import ConfigError
from kitbuild.output import init_timer, log_build_complete, log_header, set_verbose

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    config: Optional[Path] = None
    source_root: Optional[str] = None
    out_dir: Optional[str] = None
    externals: List[str] = field(default_factory=list)
    asset_dir: Optional[str] = None
    entry_pattern: Optional[str] = None
    jobs: Optional[int] = None
    verbose: bool = False
    tui: bool = True

    def overrides(self) -> dict:
        return {
            "source_root": self.source_root,
            "output_root": self.out_dir,
            "extra_externals": self.externals or None,
            "asset_directory": self.asset_dir,
            "entry_pattern": self.entry_pattern,
            "jobs": self.jobs,
        }


@dataclass
class EntriesArgs:
    """Arguments for the entries command."""

    project_dir: Path
    config: Optional[Path] = None
    verbose: bool = False


def setup_logging(verbose: bool) -> None:
    """Route internal debug logging to stderr in verbose mode."""
    logger = logging.getLogger("kitbuild")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(handler)


def build_command(args: BuildArgs) -> None:
    """Build the component library.

    Examples:
        kitbuild build                          # Build the current project
        kitbuild build path/to/library          # Build a specific project
        kitbuild build --out-dir build/lib      # Override the output root
        kitbuild build --external lodash        # Keep an extra package external
        kitbuild build --verbose                # Verbose output
    """
    init_timer()
    set_verbose(args.verbose)
    setup_logging(args.verbose)
    log_header("kitbuild", __version__)

    try:
        params = BuildParams.create(args.project_dir, args.config, args.overrides(), verbose=args.verbose)

        if args.verbose:
            print(f"Building project: {params.project_dir}")
            print(f"Sources: {params.config.source_root}")
            print(f"Output:  {params.config.output_root}")
            print()

        orchestrator = LibraryOrchestrator(tui=args.tui)
        result = orchestrator.build(params)

        if result.success:
            print()
            print("\033[1;32m✓ Build successful!\033[0m")
            print()
            print(f"Library: {result.output_root}")
            print(f"Entries: {len(result.entries)}")
            if result.side_effect_globs:
                print(f"Styles:  {', '.join(result.side_effect_globs)}")
            log_build_complete(result.build_time)
            sys.exit(0)
        else:
            print()
            print("\033[1;31m✗ Build failed!\033[0m")
            print()
            print(result.message)
            sys.exit(1)

    except ConfigError as e:
        print()
        print("\033[1;31m✗ Error: Invalid configuration\033[0m")
        print()
        print(str(e))
        sys.exit(1)

    except FileNotFoundError as e:
        print()
        print("\033[1;31m✗ Error: File not found\033[0m")
        print()
        print(str(e))
        sys.exit(1)

    except KeyboardInterrupt:
        print()
        print("\033[1;33m✗ Build interrupted\033[0m")
        sys.exit(130)  # Standard exit code for SIGINT

    except Exception as e:
        print()
        print("\033[1;31m✗ Unexpected error\033[0m")
        print()
        print(f"{type(e).__name__}: {e}")

        if args.verbose:
            import traceback

            print()
            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


def entries_command(args: EntriesArgs) -> None:
    """List the public entries of a project and their output files."""
    setup_logging(args.verbose)
    try:
        params = BuildParams.create(args.project_dir, args.config, verbose=args.verbose)
        config = params.config
        collection = SourceScanner(
            config.source_root,
            entry_patterns=config.entry_pattern,
            max_depth=config.max_depth,
            exclude=config.exclude,
        ).scan()
        outputs = assign_output_names(collection.entries, config.asset_directory)
    except (KitBuildError, ConfigError, FileNotFoundError) as e:
        print(f"\033[1;31m✗ Error: {e}\033[0m")
        sys.exit(1)

    for entry in collection.entries:
        output = outputs[entry.logical_name]
        print(f"{entry.logical_name:<32} {output.module_file}")
        if args.verbose:
            print(f"  source:      {entry.relative_path}")
            print(f"  declaration: {output.declaration_file}")
            print(f"  style:       {output.style_file}")
    if args.verbose and collection.skipped:
        print()
        print(f"Skipped {len(collection.skipped)} non-entry files")
    sys.exit(0)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """kitbuild - per-entry build system for component libraries."""
    parser = argparse.ArgumentParser(
        prog="kitbuild",
        description="kitbuild - per-entry build system for tree-shakable component libraries",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"kitbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build the component library",
    )
    build_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    build_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: <project_dir>/kitbuild.ini)",
    )
    build_parser.add_argument(
        "--source-root",
        default=None,
        help="Directory holding the component sources (default: lib)",
    )
    build_parser.add_argument(
        "-o",
        "--out-dir",
        default=None,
        help="Output directory (default: dist)",
    )
    build_parser.add_argument(
        "--external",
        action="append",
        default=[],
        dest="externals",
        help="Import identifier to keep external in addition to the configured list (repeatable)",
    )
    build_parser.add_argument(
        "--asset-dir",
        default=None,
        help="Subdirectory of the output for style assets (default: next to each module)",
    )
    build_parser.add_argument(
        "--entry-pattern",
        default=None,
        help="Glob selecting entry modules (default: **/*.js)",
    )
    build_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of parallel compile workers (default: CPU count)",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )
    build_parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable the live entry table",
    )

    # Entries command
    entries_parser = subparsers.add_parser(
        "entries",
        help="List public entries and their output files",
    )
    entries_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    entries_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: <project_dir>/kitbuild.ini)",
    )
    entries_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show source and output paths",
    )

    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    # Validate project directory exists
    if not parsed_args.project_dir.exists():
        print(f"\033[1;31m✗ Error: Path does not exist: {parsed_args.project_dir}\033[0m")
        sys.exit(2)
    if not parsed_args.project_dir.is_dir():
        print(f"\033[1;31m✗ Error: Path is not a directory: {parsed_args.project_dir}\033[0m")
        sys.exit(2)

    if parsed_args.command == "build":
        args = BuildArgs(
            project_dir=parsed_args.project_dir,
            config=parsed_args.config,
            source_root=parsed_args.source_root,
            out_dir=parsed_args.out_dir,
            externals=parsed_args.externals,
            asset_dir=parsed_args.asset_dir,
            entry_pattern=parsed_args.entry_pattern,
            jobs=parsed_args.jobs,
            verbose=parsed_args.verbose,
            tui=not parsed_args.no_tui,
        )
        build_command(args)
    elif parsed_args.command == "entries":
        entries_args = EntriesArgs(
            project_dir=parsed_args.project_dir,
            config=parsed_args.config,
            verbose=parsed_args.verbose,
        )
        entries_command(entries_args)


if __name__ == "__main__":
    main()
