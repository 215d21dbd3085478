"""Tests for path resolution and directory-shape checks."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import MEMORY_ROOT, make_memory_project, make_test_document

from structfile.models import DocumentKind, ViolationKind
from structfile.paths import (
    check_directory_rules,
    check_document_paths,
    forbidden_prefixes,
    is_pattern_value,
    normalize_prefix,
    relative_to_root,
    resolve_path,
)


def _root_doc(**extra):
    raw = {"version": "1.0.0", "project-name": "demo"}
    raw.update(extra)
    return make_test_document(raw)


def _check(doc, fs, *, validate_paths=True, forbidden=()):
    return check_document_paths(
        doc,
        project_root=MEMORY_ROOT,
        filesystem=fs,
        validate_paths=validate_paths,
        forbidden=forbidden,
    )


class TestHelpers:
    def test_resolve_path_is_lexical(self):
        assert resolve_path("src/../docs/./a.md", Path("/project")) == Path("/project/docs/a.md")

    def test_relative_to_root(self):
        assert relative_to_root(Path("/project/src/app"), MEMORY_ROOT) == "src/app"
        assert relative_to_root(Path("/project"), MEMORY_ROOT) == "."
        assert relative_to_root(Path("/etc/passwd"), MEMORY_ROOT) is None

    def test_sibling_with_shared_prefix_is_outside(self):
        assert relative_to_root(Path("/project-other/x"), MEMORY_ROOT) is None

    @pytest.mark.parametrize("value", ["src/*.py", "docs/?", "a/[ab]", "src/{{ name }}"])
    def test_pattern_values(self, value):
        assert is_pattern_value(value)

    def test_plain_value_is_not_a_pattern(self):
        assert not is_pattern_value("src/main.py")

    def test_normalize_prefix(self):
        assert normalize_prefix(" build/ ") == "build"
        assert normalize_prefix("./dist/out/") == "dist/out"

    def test_forbidden_prefixes(self):
        doc = _root_doc(rules={"forbidden": ["build/", "", 3, "tmp"]})
        assert forbidden_prefixes(doc) == ["build", "tmp"]

    def test_forbidden_prefixes_without_rules(self):
        assert forbidden_prefixes(_root_doc()) == []
        assert forbidden_prefixes(make_test_document([1])) == []


class TestDocumentPaths:
    def test_existing_paths_are_clean(self):
        fs = make_memory_project({"README.md": "# demo"}, directories=("src",))
        doc = _root_doc(
            **{
                "key-directories": [{"path": "src"}],
                "key-files": [{"path": "README.md"}],
            }
        )
        assert _check(doc, fs) == []

    def test_escape_is_forbidden_even_without_validation(self):
        fs = make_memory_project({})
        doc = _root_doc(**{"key-files": [{"path": "../../etc/passwd"}]})
        for validate_paths in (True, False):
            violations = _check(doc, fs, validate_paths=validate_paths)
            assert [v.kind for v in violations] == [ViolationKind.FORBIDDEN_PATH]
            assert violations[0].field_path == "key-files[0].path"

    def test_missing_path_only_when_validating(self):
        fs = make_memory_project({})
        doc = _root_doc(**{"key-directories": [{"path": "src"}]})
        violations = _check(doc, fs)
        assert [v.kind for v in violations] == [ViolationKind.PATH_NOT_FOUND]
        assert _check(doc, fs, validate_paths=False) == []

    def test_pattern_values_are_not_existence_checked(self):
        fs = make_memory_project({})
        doc = _root_doc(
            **{"key-files": [{"path": "src/*.py"}, {"path": "{{ name }}/main.py"}]}
        )
        assert _check(doc, fs) == []

    def test_pattern_values_still_cannot_escape(self):
        fs = make_memory_project({})
        doc = _root_doc(**{"key-files": [{"path": "../*.py"}]})
        assert [v.kind for v in _check(doc, fs)] == [ViolationKind.FORBIDDEN_PATH]

    def test_forbidden_prefix_reports_once(self):
        fs = make_memory_project({})
        doc = _root_doc(**{"key-directories": [{"path": "build/out"}]})
        violations = _check(doc, fs, forbidden=["build"])
        assert len(violations) == 1
        assert violations[0].kind is ViolationKind.FORBIDDEN_PATH
        assert "forbidden prefix" in violations[0].message

    def test_prefix_match_is_component_wise(self):
        fs = make_memory_project({}, directories=("builder",))
        doc = _root_doc(**{"key-directories": [{"path": "builder"}]})
        assert _check(doc, fs, forbidden=["build"]) == []

    def test_mistyped_path_is_left_to_schema(self):
        fs = make_memory_project({})
        doc = _root_doc(**{"key-files": [{"path": 7}]})
        assert _check(doc, fs) == []

    def test_pattern_reference_paths(self):
        fs = make_memory_project({})
        doc = make_test_document(
            {
                "name": "api",
                "version": "1.0.0",
                "rules": [{"name": "Docs", "reference": "docs/api.md"}],
            },
            kind=DocumentKind.PATTERN,
            source_path=".structure/patterns/api.yaml",
        )
        violations = _check(doc, fs)
        assert [v.field_path for v in violations] == ["rules[0].reference"]

    def test_template_outputs_are_contained_but_not_existence_checked(self):
        fs = make_memory_project({})
        doc = make_test_document(
            {
                "name": "svc",
                "version": "1.0.0",
                "structure": [{"path": "README.md"}, {"path": "../../etc/passwd"}],
            },
            kind=DocumentKind.TEMPLATE,
            source_path=".structure/templates/svc.yaml",
        )
        for validate_paths in (True, False):
            violations = _check(doc, fs, validate_paths=validate_paths)
            assert [(v.kind, v.field_path) for v in violations] == [
                (ViolationKind.FORBIDDEN_PATH, "structure[1].path"),
            ]


class TestDirectoryRules:
    def _rules(self, fs, ignore=(), **rules):
        return check_directory_rules(
            _root_doc(rules=rules),
            project_root=MEMORY_ROOT,
            filesystem=fs,
            ignore=ignore,
        )

    def test_required_directories_present(self):
        fs = make_memory_project({}, directories=("src", "tests"))
        assert self._rules(fs, **{"required-directories": ["src", "tests"]}) == []

    def test_missing_required_directory(self):
        fs = make_memory_project({}, directories=("src",))
        violations = self._rules(fs, **{"required-directories": ["src", "docs"]})
        assert [v.kind for v in violations] == [ViolationKind.MISSING_DIRECTORY]
        assert violations[0].field_path == "rules.required-directories[1]"

    def test_file_does_not_satisfy_required_directory(self):
        fs = make_memory_project({"docs": "not a directory"})
        violations = self._rules(fs, **{"required-directories": ["docs"]})
        assert [v.kind for v in violations] == [ViolationKind.MISSING_DIRECTORY]

    def test_nested_required_directory_within_default_depth(self):
        fs = make_memory_project({}, directories=("src/app/core",))
        assert self._rules(fs, **{"required-directories": ["src/app/core"]}) == []

    def test_max_depth_bounds_the_walk(self):
        fs = make_memory_project({}, directories=("src/app/core",))
        violations = self._rules(
            fs, **{"required-directories": ["src/app/core"], "max-depth": 2},
        )
        assert [v.kind for v in violations] == [ViolationKind.MISSING_DIRECTORY]
        assert "depth 2" in violations[0].message

    def test_escaping_required_directory_is_forbidden(self):
        fs = make_memory_project({})
        violations = self._rules(fs, **{"required-directories": ["../outside"]})
        assert [v.kind for v in violations] == [ViolationKind.FORBIDDEN_PATH]

    def test_forbidden_entry_found_in_walk(self):
        fs = make_memory_project({"build/app.bin": ""}, directories=("src",))
        violations = self._rules(fs, forbidden=["build"])
        assert [v.kind for v in violations] == [ViolationKind.FORBIDDEN_PATH]
        assert violations[0].field_path == "rules.forbidden[0]"

    def test_forbidden_directory_is_not_descended(self):
        fs = make_memory_project({"build/out/x.o": ""})
        violations = self._rules(fs, forbidden=["build", "build/out"], **{"max-depth": 3})
        assert len(violations) == 1
        assert violations[0].field_path == "rules.forbidden[0]"

    def test_ignored_entries_are_skipped(self):
        fs = make_memory_project({".git/HEAD": "ref"}, directories=("src",))
        assert self._rules(fs, ignore=(".git",), forbidden=[".git"]) == []

    def test_no_rules_no_walk(self):
        fs = make_memory_project({"anything/at/all": ""})
        assert self._rules(fs) == []
