"""Configuration parsing modules for kitbuild."""

from .ini_parser import (
    DEFAULT_CONFIG_NAME,
    DEFAULT_EXTERNALS,
    BuildConfig,
    ConfigError,
    KitbuildConfig,
    load_build_config,
)

__all__ = [
    "BuildConfig",
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_EXTERNALS",
    "KitbuildConfig",
    "load_build_config",
]
