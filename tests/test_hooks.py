"""Tests for the hook registry."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from conftest import make_test_document

from structfile.config import RunSettings, resolve_settings
from structfile.errors import HookNotFoundError
from structfile.filesystem import DirEntry
from structfile.hooks import HookRegistry, ProcessRunner, hook_name
from structfile.models import DocumentKind, HookDescriptor, Severity, ViolationKind

HOOKS_DIR = Path("/project/.structure/hooks")


def _settings(hooks=None):
    raw = {} if hooks is None else {"hooks": hooks}
    return resolve_settings(
        None, make_test_document(raw, DocumentKind.CONFIG, ".structure/config.yaml"),
    )


def _scan(entries, settings=None):
    registry = HookRegistry(HOOKS_DIR)
    violations = registry.scan(entries, settings or RunSettings())
    return registry, violations


class FakeRunner:
    """Scripted ProcessRunner keyed by script file name."""

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.calls = []
        self._lock = threading.Lock()

    def run(self, command, *, cwd, env, timeout):
        name = Path(command[0]).name
        with self._lock:
            self.calls.append((name, timeout))
        outcome = self.outcomes.get(name, (0, "ok", ""))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_fake_runner_satisfies_protocol():
    assert isinstance(FakeRunner(), ProcessRunner)


def test_hook_name_strips_extension():
    assert hook_name("pre-commit.sh") == "pre-commit"
    assert hook_name("post-update") == "post-update"


class TestScan:
    def test_executable_hooks_are_registered(self):
        registry, violations = _scan([
            DirEntry("post-update", is_executable=True),
            DirEntry("pre-commit.sh", is_executable=True),
        ])
        assert violations == []
        assert [h.name for h in registry.all()] == ["post-update", "pre-commit"]
        descriptor = registry.get("pre-commit")
        assert descriptor.script_path == HOOKS_DIR / "pre-commit.sh"
        assert descriptor.timeout_seconds == 30
        assert descriptor.enabled

    def test_non_executable_known_hook(self):
        registry, violations = _scan([DirEntry("pre-commit")])
        assert len(registry) == 0
        assert [v.kind for v in violations] == [ViolationKind.NOT_EXECUTABLE]
        assert violations[0].document_path == ".structure/hooks/pre-commit"
        assert violations[0].severity is Severity.ERROR

    def test_non_executable_with_ignore_errors_is_warning(self):
        settings = _settings({"overrides": [{"name": "pre-commit", "ignore-errors": True}]})
        _, violations = _scan([DirEntry("pre-commit")], settings)
        assert [v.severity for v in violations] == [Severity.WARNING]

    def test_non_executable_unknown_file_is_ignored(self):
        registry, violations = _scan([DirEntry("README.md")])
        assert violations == []
        assert len(registry) == 0

    def test_hidden_and_directories_are_skipped(self):
        registry, violations = _scan([
            DirEntry(".keep", is_executable=True),
            DirEntry("_lib.sh", is_executable=True),
            DirEntry("lib", is_dir=True),
        ])
        assert violations == []
        assert len(registry) == 0

    def test_invalid_name_is_skipped_and_reported(self):
        registry, violations = _scan([DirEntry("Pre_Commit", is_executable=True)])
        assert len(registry) == 0
        assert [(v.kind, v.severity) for v in violations] == [
            (ViolationKind.CONSTRAINT_VIOLATION, Severity.WARNING),
        ]
        assert violations[0].document_path == ".structure/hooks/Pre_Commit"

    def test_name_with_trailing_newline_is_invalid(self):
        registry, violations = _scan([DirEntry("pre-commit\n", is_executable=True)])
        assert len(registry) == 0
        assert [v.kind for v in violations] == [ViolationKind.CONSTRAINT_VIOLATION]

    def test_two_files_for_one_hook(self):
        registry, violations = _scan([
            DirEntry("pre-commit", is_executable=True),
            DirEntry("pre-commit.sh", is_executable=True),
        ])
        assert len(registry) == 1
        assert [v.kind for v in violations] == [ViolationKind.DANGLING_HOOK_REFERENCE]

    def test_override_without_file(self):
        settings = _settings({"overrides": [{"name": "pre-push", "timeout": 5}]})
        _, violations = _scan([DirEntry("pre-commit", is_executable=True)], settings)
        assert [v.kind for v in violations] == [ViolationKind.DANGLING_HOOK_REFERENCE]
        assert violations[0].document_path == ".structure/config.yaml"
        assert violations[0].field_path == "hooks.overrides[0].name"

    def test_repeated_override_name(self):
        settings = _settings({
            "overrides": [
                {"name": "pre-commit", "timeout": 5},
                {"name": "pre-commit", "timeout": 50},
            ],
        })
        registry, violations = _scan([DirEntry("pre-commit", is_executable=True)], settings)
        assert [(v.kind, v.field_path) for v in violations] == [
            (ViolationKind.DANGLING_HOOK_REFERENCE, "hooks.overrides[1].name"),
        ]
        assert registry.get("pre-commit").timeout_seconds == 5

    def test_override_index_counts_malformed_entries(self):
        settings = _settings({"overrides": [{"timeout": 5}, {"name": "pre-push"}]})
        _, violations = _scan([DirEntry("pre-commit", is_executable=True)], settings)
        assert [v.field_path for v in violations] == ["hooks.overrides[1].name"]

    def test_settings_layering(self):
        settings = _settings({
            "timeout": 12,
            "parallel": True,
            "overrides": [
                {"name": "pre-push", "timeout": 90, "enabled": False, "parallel": False},
            ],
        })
        registry, violations = _scan([
            DirEntry("pre-commit", is_executable=True),
            DirEntry("pre-push", is_executable=True),
        ], settings)
        assert violations == []
        commit, push = registry.get("pre-commit"), registry.get("pre-push")
        assert (commit.timeout_seconds, commit.parallel, commit.enabled) == (12, True, True)
        assert (push.timeout_seconds, push.parallel, push.enabled) == (90, False, False)

    def test_register_rejects_duplicates(self):
        registry = HookRegistry(HOOKS_DIR)
        descriptor = HookDescriptor(name="pre-commit", script_path=HOOKS_DIR / "pre-commit")
        registry.register(descriptor)
        with pytest.raises(ValueError, match="Duplicate"):
            registry.register(descriptor)


class TestInvoke:
    def _registry(self, **overrides):
        registry = HookRegistry(HOOKS_DIR)
        registry.register(HookDescriptor(
            name="pre-commit", script_path=HOOKS_DIR / "pre-commit", **overrides,
        ))
        return registry

    def test_success(self):
        runner = FakeRunner()
        result = self._registry(timeout_seconds=7).invoke(
            "pre-commit", runner, cwd=Path("/project"),
        )
        assert result.ran and result.success
        assert result.exit_code == 0
        assert result.violation is None
        assert runner.calls == [("pre-commit", 7)]

    def test_non_zero_exit_is_failure(self):
        runner = FakeRunner({"pre-commit": (2, "", "lint failed")})
        result = self._registry().invoke("pre-commit", runner, cwd=Path("/project"))
        assert not result.success
        assert result.stderr == "lint failed"
        assert result.violation.kind is ViolationKind.HOOK_FAILED
        assert result.violation.severity is Severity.ERROR

    def test_timeout(self):
        runner = FakeRunner({"pre-commit": TimeoutError()})
        result = self._registry().invoke("pre-commit", runner, cwd=Path("/project"))
        assert result.ran and not result.success
        assert result.violation.kind is ViolationKind.HOOK_TIMEOUT

    def test_ignore_errors_downgrades_failures(self):
        runner = FakeRunner({"pre-commit": TimeoutError()})
        result = self._registry(ignore_errors=True).invoke(
            "pre-commit", runner, cwd=Path("/project"),
        )
        assert result.success
        assert result.violation.severity is Severity.WARNING

    def test_disabled_hook_does_not_run(self):
        runner = FakeRunner()
        result = self._registry(enabled=False).invoke("pre-commit", runner, cwd=Path("/project"))
        assert not result.ran
        assert runner.calls == []

    def test_unknown_hook(self):
        with pytest.raises(HookNotFoundError, match="pre-push"):
            self._registry().invoke("pre-push", FakeRunner(), cwd=Path("/project"))


def test_invoke_all_keeps_declared_order():
    registry = HookRegistry(HOOKS_DIR)
    for name, parallel in (("pre-validate", True), ("post-validate", True), ("pre-push", False)):
        registry.register(HookDescriptor(
            name=name, script_path=HOOKS_DIR / name, parallel=parallel,
        ))
    runner = FakeRunner({"post-validate": (1, "", "")})
    results = registry.invoke_all(
        ["pre-validate", "post-validate", "pre-push"], runner, cwd=Path("/project"),
    )
    assert [r.name for r in results] == ["pre-validate", "post-validate", "pre-push"]
    assert [r.success for r in results] == [True, False, True]
    assert sorted(name for name, _ in runner.calls) == [
        "post-validate", "pre-push", "pre-validate",
    ]


def test_invoke_all_unknown_name():
    registry = HookRegistry(HOOKS_DIR)
    runner = FakeRunner()
    with pytest.raises(HookNotFoundError):
        registry.invoke_all(["pre-commit"], runner, cwd=Path("/project"))
    assert runner.calls == []
