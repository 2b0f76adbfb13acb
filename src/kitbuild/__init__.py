"""kitbuild - per-entry build system for tree-shakable component libraries."""

__version__ = "0.3.0"

__all__ = ["__version__"]
