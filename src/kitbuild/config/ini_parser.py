"""
kitbuild.ini parser.

The project configuration lives in a `[build]` section. List values may be
written on one line separated by whitespace or commas, or one per line:

    [build]
    source_root = lib
    output_root = dist
    entry_pattern = **/*.js
    externals =
        react
        react-dom
        react/jsx-runtime

Paths are resolved relative to the project directory. Command-line overrides
take precedence over file values, which take precedence over defaults.
"""

import configparser
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "kitbuild.ini"
BUILD_SECTION = "build"

# The UI framework and its runtime helpers are provided by the host app.
DEFAULT_EXTERNALS: tuple[str, ...] = ("react", "react-dom", "react/jsx-runtime")

_LIST_KEYS = ("entry_pattern", "exclude", "externals", "typed_externals")
_INT_KEYS = ("max_depth", "jobs")
_KNOWN_KEYS = frozenset(
    {
        "source_root",
        "output_root",
        "asset_directory",
        "style_suffix",
        *_LIST_KEYS,
        *_INT_KEYS,
    }
)


class ConfigError(ValueError):
    """Raised when kitbuild.ini contains an invalid value."""


@dataclass(frozen=True)
class BuildConfig:
    """Resolved build configuration.

    Attributes:
        project_dir: Project root directory containing kitbuild.ini
        source_root: Directory holding the component sources
        output_root: Directory receiving the built library
        entry_pattern: Glob patterns (relative to source_root) selecting entries
        max_depth: Maximum number of directories between source_root and an entry
        exclude: Glob patterns removed from the entry set
        externals: Import identifiers that are never bundled
        typed_externals: Externals whose type contract may be re-exported in declarations
        asset_directory: Subpath of output_root for style assets ("" = next to the module)
        style_suffix: File suffix marking scoped stylesheets
        jobs: Worker count for per-entry emission (None = one per CPU)
    """

    project_dir: Path
    source_root: Path
    output_root: Path
    entry_pattern: tuple[str, ...] = ("**/*.js",)
    max_depth: int = 2
    exclude: tuple[str, ...] = ()
    externals: tuple[str, ...] = DEFAULT_EXTERNALS
    typed_externals: tuple[str, ...] = ()
    asset_directory: str = ""
    style_suffix: str = ".module.css"
    jobs: Optional[int] = None
    warnings: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def defaults(cls, project_dir: Path) -> "BuildConfig":
        return cls(
            project_dir=project_dir,
            source_root=project_dir / "lib",
            output_root=project_dir / "dist",
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> "BuildConfig":
        """
        Return a copy with non-None override values applied.

        `extra_externals` appends to the configured externals instead of
        replacing them.
        """
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None or (key in _INT_KEYS and value == ""):
                continue
            if key == "extra_externals":
                current = changes.get("externals", self.externals)
                changes["externals"] = tuple(dict.fromkeys((*current, *_coerce("externals", value, self.project_dir))))
                continue
            if key not in _KNOWN_KEYS:
                raise ConfigError(f"Unknown configuration option: {key}")
            changes[key] = _coerce(key, value, self.project_dir)
        return replace(self, **changes) if changes else self


class KitbuildConfig:
    """Parser for kitbuild.ini files."""

    def __init__(self, ini_path: Path):
        """
        Load and parse a kitbuild.ini file.

        Args:
            ini_path: Path to the ini file

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the file is not valid ini syntax
        """
        self.ini_path = ini_path
        if not ini_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {ini_path}")

        self.config = configparser.ConfigParser(interpolation=None)
        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Invalid configuration file {ini_path}: {e}") from e

    def has_build_section(self) -> bool:
        return self.config.has_section(BUILD_SECTION)

    def get_build_section(self) -> Dict[str, str]:
        """Get the raw [build] section as a dictionary (empty if missing)."""
        if not self.has_build_section():
            return {}
        return dict(self.config.items(BUILD_SECTION))

    def get_list(self, key: str) -> List[str]:
        """Get a list value from the [build] section."""
        raw = self.get_build_section().get(key, "")
        return _split_list(raw)

    def unknown_keys(self) -> List[str]:
        return sorted(k for k in self.get_build_section() if k not in _KNOWN_KEYS)

    def to_build_config(self, project_dir: Path) -> BuildConfig:
        """Resolve the [build] section on top of the defaults."""
        base = BuildConfig.defaults(project_dir)
        section = self.get_build_section()
        values = {k: v for k, v in section.items() if k in _KNOWN_KEYS}
        warnings = tuple(f"Unknown option '{k}' in {self.ini_path.name}" for k in self.unknown_keys())
        for warning in warnings:
            logger.warning(warning)
        config = base.with_overrides(values)
        return replace(config, warnings=warnings)


def load_build_config(
    project_dir: Path,
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BuildConfig:
    """
    Load the build configuration for a project.

    Args:
        project_dir: Project root directory
        config_path: Explicit ini path (default: <project_dir>/kitbuild.ini, optional)
        overrides: Command-line overrides; None values are ignored

    Returns:
        Fully resolved BuildConfig

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ConfigError: If a value is invalid
    """
    project_dir = project_dir.resolve()
    if config_path is not None:
        config = KitbuildConfig(config_path).to_build_config(project_dir)
    else:
        default_path = project_dir / DEFAULT_CONFIG_NAME
        if default_path.exists():
            config = KitbuildConfig(default_path).to_build_config(project_dir)
        else:
            logger.debug(f"No {DEFAULT_CONFIG_NAME} in {project_dir}, using defaults")
            config = BuildConfig.defaults(project_dir)

    if overrides:
        config = config.with_overrides(overrides)
    return config


def _split_list(raw: str) -> List[str]:
    items: List[str] = []
    for line in raw.replace(",", "\n").splitlines():
        for part in line.split():
            if part:
                items.append(part)
    return items


def _coerce(key: str, value: Any, project_dir: Path) -> Any:
    if key in ("source_root", "output_root"):
        path = Path(value)
        return path if path.is_absolute() else project_dir / path

    if key in _LIST_KEYS:
        if isinstance(value, str):
            return tuple(_split_list(value))
        return tuple(str(v) for v in value)

    if key in _INT_KEYS:
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Option '{key}' must be an integer, got {value!r}") from e
        if number < (0 if key == "max_depth" else 1):
            raise ConfigError(f"Option '{key}' is out of range: {number}")
        return number

    if key == "asset_directory":
        directory = str(value).strip().replace("\\", "/").strip("/")
        if any(part in ("..", ".") for part in directory.split("/")) or ":" in directory:
            raise ConfigError(f"Option 'asset_directory' must be a plain subpath of output_root, got {value!r}")
        return directory

    return str(value)
