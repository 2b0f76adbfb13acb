"""Tests for entry discovery."""

import pytest

from kitbuild.build import DiscoveryError, SourceCollection, SourceScanner, discover_entries
from kitbuild.build.source_scanner import logical_name_for


class TestSourceScanner:
    """Test entry discovery under a source root."""

    def test_scan_sorted_by_path(self, write_source, source_root):
        """Entries come back path-sorted regardless of creation order."""
        write_source(
            {
                "text/body.js": "export const a = 1;",
                "buttons/primary.js": "export const b = 1;",
                "avatar.js": "export const c = 1;",
            }
        )
        result = SourceScanner(source_root).scan()

        assert isinstance(result, SourceCollection)
        assert [e.relative_path for e in result.entries] == [
            "avatar.js",
            "buttons/primary.js",
            "text/body.js",
        ]
        assert result.logical_names == ["avatar", "buttons/primary", "text/body"]
        assert len(result) == 3

    def test_entry_paths_are_absolute(self, write_source, source_root):
        write_source({"buttons/primary.js": "export const a = 1;"})
        entry = SourceScanner(source_root).scan().entries[0]

        assert entry.path.is_absolute()
        assert entry.path.name == "primary.js"

    def test_private_segments_are_skipped(self, write_source, source_root):
        """Files or directories starting with "_" are importable, never entries."""
        write_source(
            {
                "buttons/primary.js": "export const a = 1;",
                "buttons/_helpers.js": "export const b = 1;",
                "_shared/cx.js": "export const c = 1;",
            }
        )
        result = SourceScanner(source_root).scan()

        assert result.logical_names == ["buttons/primary"]
        assert "_shared/cx.js" in result.skipped
        assert "buttons/_helpers.js" in result.skipped

    def test_max_depth(self, write_source, source_root):
        write_source(
            {
                "a.js": "export const a = 1;",
                "one/b.js": "export const b = 1;",
                "one/two/c.js": "export const c = 1;",
                "one/two/three/d.js": "export const d = 1;",
            }
        )

        assert SourceScanner(source_root, max_depth=0).scan().logical_names == ["a"]
        assert SourceScanner(source_root, max_depth=2).scan().logical_names == ["a", "one/b", "one/two/c"]

    def test_exclude_patterns(self, write_source, source_root):
        write_source(
            {
                "buttons/primary.js": "export const a = 1;",
                "buttons/primary.test.js": "export const b = 1;",
            }
        )
        result = SourceScanner(source_root, exclude=["*.test.js"]).scan()

        assert result.logical_names == ["buttons/primary"]
        assert result.skipped == ("buttons/primary.test.js",)

    def test_unsupported_entry_is_an_error(self, write_source, source_root):
        """A file the entry pattern selects is never silently dropped."""
        write_source({"a.js": "export const a = 1;", "b.jsx": "export const b = 1;"})

        with pytest.raises(DiscoveryError, match=r"b\.jsx .*\.jsx is not a supported module type"):
            SourceScanner(source_root, entry_patterns=["**/*.js", "**/*.jsx"]).scan()

    def test_excluded_non_script_files(self, write_source, source_root):
        write_source(
            {
                "buttons/primary.js": "export const a = 1;",
                "buttons/primary.module.css": ".root { color: red; }",
                "README.md": "# docs",
            }
        )
        result = SourceScanner(source_root, entry_patterns=["**/*"], exclude=["*.css", "*.md"]).scan()

        assert result.logical_names == ["buttons/primary"]
        assert result.skipped == ("README.md", "buttons/primary.module.css")

    def test_patterns_select_mjs(self, write_source, source_root):
        write_source({"a.js": "", "b.mjs": "", "c.js": ""})
        result = SourceScanner(source_root, entry_patterns=["*.mjs"]).scan()

        assert result.logical_names == ["b"]

    def test_missing_source_root(self, tmp_path):
        with pytest.raises(DiscoveryError, match="does not exist"):
            SourceScanner(tmp_path / "missing").scan()

    def test_source_root_is_a_file(self, tmp_path):
        path = tmp_path / "lib"
        path.write_text("")
        with pytest.raises(DiscoveryError, match="not a directory"):
            SourceScanner(path).scan()

    def test_no_entries(self, source_root):
        """A source root without entries is a discovery failure, not an empty build."""
        with pytest.raises(DiscoveryError, match="No entries"):
            SourceScanner(source_root).scan()

    def test_discover_entries_wrapper(self, write_source, source_root):
        write_source({"b.js": "", "a.js": ""})
        entries = discover_entries(source_root)

        assert [e.logical_name for e in entries] == ["a", "b"]


class TestLogicalName:
    @pytest.mark.parametrize(
        "relative,expected",
        [
            ("buttons/primary.js", "buttons/primary"),
            ("text/body.mjs", "text/body"),
            ("avatar.js", "avatar"),
        ],
    )
    def test_logical_name_strips_extension(self, relative, expected):
        assert logical_name_for(relative) == expected
