"""
Style asset binding.

Runs after every unit has been compiled. For each unit whose closure reaches
stylesheets, the compiled stylesheets are concatenated (closure order) into
one asset owned by that unit, the unit's code gets exactly one unconditional
`import "<asset>";` at the top, and the asset path is registered as a side
effect so consuming bundlers keep it when tree-shaking.

A stylesheet reached by several entries is compiled whole into each owner's
asset; no asset is ever shared between units.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import List, Mapping, Sequence

from .css_modules import ScopedStylesheet
from .models import CompiledUnit, StyleAsset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindingResult:
    """Assets produced by a binding pass.

    Attributes:
        assets: One asset per unit that reaches stylesheets, in unit order
        side_effect_globs: Output-root-relative asset paths, sorted
    """

    assets: tuple[StyleAsset, ...]
    side_effect_globs: tuple[str, ...]


def asset_import_path(module_file: str, asset_file: str) -> str:
    """Import specifier for an asset, relative to the importing module."""
    relative = posixpath.relpath(asset_file, posixpath.dirname(module_file) or ".")
    if not relative.startswith("../"):
        relative = "./" + relative
    return relative


def bind_style_assets(units: Sequence[CompiledUnit], stylesheets: Mapping[str, ScopedStylesheet]) -> BindingResult:
    """
    Bind a style asset to every unit that reaches stylesheets.

    Mutates each bound unit: bound_style_asset is set and the asset import is
    prepended to compiled_code.

    Args:
        units: Every compiled unit of the build
        stylesheets: Compiled stylesheets by source-relative path

    Returns:
        BindingResult

    Raises:
        ValueError: If a unit was already bound
    """
    assets: List[StyleAsset] = []
    for unit in units:
        if unit.bound_style_asset is not None:
            raise ValueError(f"'{unit.logical_name}' already has a bound style asset")
        if not unit.stylesheets:
            continue

        css = "\n\n".join(stylesheets[path].css.strip() for path in unit.stylesheets).strip() + "\n"
        asset = StyleAsset(
            owner_logical_name=unit.logical_name,
            source_stylesheets=unit.stylesheets,
            output_asset_path=unit.output.style_file,
            css=css,
        )
        specifier = asset_import_path(unit.output.module_file, asset.output_asset_path)
        unit.compiled_code = f'import "{specifier}";\n' + unit.compiled_code
        unit.bound_style_asset = asset.output_asset_path
        assets.append(asset)
        logger.debug(f"Bound {asset.output_asset_path} to {unit.logical_name} ({len(unit.stylesheets)} stylesheets)")

    globs = tuple(sorted(asset.output_asset_path for asset in assets))
    return BindingResult(assets=tuple(assets), side_effect_globs=globs)
