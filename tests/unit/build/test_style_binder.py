"""Tests for style asset binding."""

import pytest

from kitbuild.build import CompiledUnit, bind_style_assets, name_output
from kitbuild.build.css_modules import ScopedStylesheet
from kitbuild.build.style_binder import asset_import_path


def _unit(logical_name, stylesheets=(), asset_directory=""):
    return CompiledUnit(
        logical_name=logical_name,
        output=name_output(logical_name, asset_directory),
        compiled_code="export const x = 1;\n",
        imported_externals=frozenset(),
        stylesheets=tuple(stylesheets),
    )


@pytest.fixture
def stylesheets():
    return {
        "buttons/primary.module.css": ScopedStylesheet("buttons/primary.module.css", ".primary_root_abcde { }\n"),
        "_shared/reset.css": ScopedStylesheet("_shared/reset.css", "* { margin: 0; }"),
    }


class TestBindStyleAssets:
    def test_one_asset_per_unit_with_styles(self, stylesheets):
        styled = _unit("buttons/primary", ["_shared/reset.css", "buttons/primary.module.css"])
        plain = _unit("text/body")

        result = bind_style_assets([styled, plain], stylesheets)

        assert len(result.assets) == 1
        asset = result.assets[0]
        assert asset.owner_logical_name == "buttons/primary"
        assert asset.output_asset_path == "buttons/primary.css"
        assert asset.css == "* { margin: 0; }\n\n.primary_root_abcde { }\n"
        assert result.side_effect_globs == ("buttons/primary.css",)

    def test_asset_import_prepended_once(self, stylesheets):
        unit = _unit("buttons/primary", ["buttons/primary.module.css"])
        bind_style_assets([unit], stylesheets)

        assert unit.compiled_code == 'import "./primary.css";\nexport const x = 1;\n'
        assert unit.compiled_code.count("primary.css") == 1
        assert unit.bound_style_asset == "buttons/primary.css"

    def test_unit_without_styles_untouched(self, stylesheets):
        unit = _unit("text/body")
        bind_style_assets([unit], stylesheets)

        assert unit.compiled_code == "export const x = 1;\n"
        assert unit.bound_style_asset is None

    def test_shared_stylesheet_owned_by_each_unit(self, stylesheets):
        a = _unit("a", ["_shared/reset.css"])
        b = _unit("b", ["_shared/reset.css"])
        result = bind_style_assets([a, b], stylesheets)

        assert [x.output_asset_path for x in result.assets] == ["a.css", "b.css"]
        assert a.bound_style_asset != b.bound_style_asset

    def test_asset_directory(self, stylesheets):
        unit = _unit("buttons/primary", ["buttons/primary.module.css"], asset_directory="styles")
        result = bind_style_assets([unit], stylesheets)

        assert unit.compiled_code.startswith('import "../styles/buttons/primary.css";\n')
        assert result.side_effect_globs == ("styles/buttons/primary.css",)

    def test_binding_twice_is_an_error(self, stylesheets):
        unit = _unit("a", ["_shared/reset.css"])
        bind_style_assets([unit], stylesheets)

        with pytest.raises(ValueError, match="already has a bound style asset"):
            bind_style_assets([unit], stylesheets)

    def test_globs_sorted(self, stylesheets):
        units = [_unit("z", ["_shared/reset.css"]), _unit("a", ["_shared/reset.css"])]
        result = bind_style_assets(units, stylesheets)

        assert result.side_effect_globs == ("a.css", "z.css")


@pytest.mark.parametrize(
    "module_file,asset_file,expected",
    [
        ("a.js", "a.css", "./a.css"),
        ("buttons/primary.js", "buttons/primary.css", "./primary.css"),
        ("buttons/primary.js", "css/buttons/primary.css", "../css/buttons/primary.css"),
        ("a.js", "css/a.css", "./css/a.css"),
    ],
)
def test_asset_import_path(module_file, asset_file, expected):
    assert asset_import_path(module_file, asset_file) == expected
