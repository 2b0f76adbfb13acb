"""Tests for dependency classification and internal resolution."""

import threading

import pytest

from kitbuild.build import Classification, DependencyClassifier, UnresolvedImportError


@pytest.fixture
def classifier(write_source):
    root = write_source(
        {
            "buttons/primary.js": "",
            "buttons/primary.module.css": "",
            "shared/cx.js": "",
            "shared/icons/index.js": "",
            "legacy.mjs": "",
        }
    )
    return DependencyClassifier(["react", "react/jsx-runtime"], root)


class TestClassify:
    def test_exact_match_is_external(self, classifier):
        assert classifier.classify("react") is Classification.EXTERNAL
        assert classifier.classify("react/jsx-runtime") is Classification.EXTERNAL

    def test_subpath_of_external_is_bundled(self, classifier):
        """Only exact identifiers are external; `react/other` is not."""
        assert classifier.classify("react/other") is Classification.BUNDLE
        assert classifier.classify("./x") is Classification.BUNDLE

    def test_decisions_are_memoised(self, classifier):
        classifier.classify("react")
        classifier.classify("./x")
        classifier.classify("react")

        assert classifier.decisions() == {
            "./x": Classification.BUNDLE,
            "react": Classification.EXTERNAL,
        }

    def test_concurrent_classification_is_consistent(self, classifier):
        results = []

        def worker():
            results.append(classifier.classify("react"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert set(results) == {Classification.EXTERNAL}


class TestResolve:
    def test_relative(self, classifier):
        assert classifier.resolve("./primary.module.css", "buttons/primary.js") == "buttons/primary.module.css"
        assert classifier.resolve("../shared/cx.js", "buttons/primary.js") == "shared/cx.js"

    def test_tries_script_extensions(self, classifier):
        assert classifier.resolve("../shared/cx", "buttons/primary.js") == "shared/cx.js"
        assert classifier.resolve("./legacy", "index.js") == "legacy.mjs"

    def test_tries_directory_index(self, classifier):
        assert classifier.resolve("../shared/icons", "buttons/primary.js") == "shared/icons/index.js"

    def test_bare_identifier_resolves_from_source_root(self, classifier):
        assert classifier.resolve("shared/cx", "buttons/primary.js") == "shared/cx.js"

    def test_missing_module(self, classifier):
        with pytest.raises(UnresolvedImportError) as exc_info:
            classifier.resolve("lodash", "buttons/primary.js")

        error = exc_info.value
        assert error.specifier == "lodash"
        assert error.importer == "buttons/primary.js"
        assert "not found" in error.message

    def test_explicit_extension_is_used_as_is(self, classifier):
        with pytest.raises(UnresolvedImportError):
            classifier.resolve("../shared/cx.mjs", "buttons/primary.js")

    def test_escaping_source_root(self, classifier):
        with pytest.raises(UnresolvedImportError, match="escapes the source root"):
            classifier.resolve("../../outside.js", "buttons/primary.js")

    def test_absolute_path_rejected(self, classifier):
        with pytest.raises(UnresolvedImportError, match="absolute"):
            classifier.resolve("/etc/passwd", "buttons/primary.js")

    def test_external_cannot_be_resolved(self, classifier):
        with pytest.raises(ValueError):
            classifier.resolve("react", "buttons/primary.js")
