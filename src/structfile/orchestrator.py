"""Validation orchestrator -- the single entry point, ``validate()``.

One run walks a fixed state machine::

    START -> DISCOVER_ROOT -> LOAD_ROOT -> LOAD_STRUCTURE_TREE
          -> VALIDATE_ALL -> REPORT -> PASSED | FAILED
    DISCOVER_ROOT -> ABORTED   (no structure file anywhere)

This is the only component that knows the on-disk layout. Loading and
per-document checks fan out on a thread pool; results are collected on the
calling thread in discovery order so the report is deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypeVar

from structfile.config import RunSettings, ValidationOptions, resolve_settings
from structfile.errors import DocumentLoadError, EncodingError
from structfile.filesystem import FileSystem, LocalFileSystem
from structfile.graph import Category, GraphResolution, PatternGraph, build_graph
from structfile.hooks import HookRegistry
from structfile.loader import STRUCTURE_EXTENSIONS, load_document
from structfile.models import (
    Document,
    DocumentKind,
    RunState,
    Severity,
    ValidationReport,
    Violation,
    ViolationKind,
    make_violation,
)
from structfile.paths import check_directory_rules, check_document_paths, forbidden_prefixes
from structfile.report import write_report
from structfile.schema.fields import FieldSpec
from structfile.schema.tables import SCOPED_STRUCTURE_SCHEMA
from structfile.schema.validator import validate_document
from structfile.telemetry import NoOpTelemetrySink, TelemetryEvent, TelemetrySink

logger = logging.getLogger(__name__)

ROOT_CANDIDATES = ("structure.yaml", "structure.yml", "structure.json")
CONFIG_CANDIDATES = ("config.yaml", "config.yml", "config.json")
STRUCTURE_DIR = ".structure"

_T = TypeVar("_T")
_R = TypeVar("_R")


class Stage(str, Enum):
    START = "start"
    DISCOVER_ROOT = "discover_root"
    LOAD_ROOT = "load_root"
    LOAD_STRUCTURE_TREE = "load_structure_tree"
    VALIDATE_ALL = "validate_all"
    REPORT = "report"
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class _Slot:
    """One discovered document and the violations filed against it."""

    display: str
    path: Path
    kind: DocumentKind
    document: Document | None = None
    violations: list[Violation] = field(default_factory=list)
    schema: tuple[FieldSpec, ...] | None = None


class Orchestrator:
    def __init__(
        self,
        project_root: str | Path,
        options: ValidationOptions | None = None,
        *,
        filesystem: FileSystem | None = None,
        telemetry_sink: TelemetrySink | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.options = options or ValidationOptions()
        self.fs = filesystem or LocalFileSystem()
        self.telemetry = telemetry_sink or NoOpTelemetrySink()
        self.stage = Stage.START
        self.settings = RunSettings()
        self.graph = PatternGraph()
        self.resolution = GraphResolution()
        self.hooks = HookRegistry(self.project_root / STRUCTURE_DIR / "hooks")
        self._slots: list[_Slot] = []
        self._hook_violations: list[Violation] = []

    # ── helpers ────────────────────────────────────────────────────

    def _enter(self, stage: Stage) -> None:
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _fan_out(self, fn: Callable[[_T], _R], items: Iterable[_T]) -> list[_R]:
        items = list(items)
        if self.options.max_workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.options.max_workers) as pool:
            return list(pool.map(fn, items))

    def _slot(self, relative: str, kind: DocumentKind) -> _Slot:
        return _Slot(display=relative, path=self.project_root / relative, kind=kind)

    def _probe(self, directory: str, names: tuple[str, ...]) -> str | None:
        for name in names:
            relative = f"{directory}/{name}" if directory else name
            path = self.project_root / relative
            if self.fs.exists(path) and not self.fs.is_dir(path):
                return relative
        return None

    def _list_documents(self, directory: str, kind: DocumentKind) -> list[_Slot]:
        slots: list[_Slot] = []
        for entry in self.fs.list_directory(self.project_root / directory):
            if entry.is_dir or entry.name.startswith(("_", ".")):
                continue
            if not entry.name.lower().endswith(STRUCTURE_EXTENSIONS):
                logger.debug("Ignoring non-document file %s/%s", directory, entry.name)
                continue
            slots.append(self._slot(f"{directory}/{entry.name}", kind))
        return slots

    def _slots_of(self, kind: DocumentKind) -> list[_Slot]:
        return [s for s in self._slots if s.kind is kind and s.document is not None]

    # ── stages ────────────────────────────────────────────────────

    def _discover_root(self) -> tuple[_Slot | None, _Slot | None]:
        self._enter(Stage.DISCOVER_ROOT)
        root = self._probe("", ROOT_CANDIDATES)
        main = None
        if self.fs.is_dir(self.project_root / STRUCTURE_DIR):
            main = self._probe(STRUCTURE_DIR, ROOT_CANDIDATES)
        self.telemetry.emit(TelemetryEvent(
            name="structure.discover",
            attributes={"root_file": root or "", "structure_file": main or ""},
        ))
        return (
            self._slot(root, DocumentKind.ROOT_STRUCTURE) if root else None,
            self._slot(main, DocumentKind.ROOT_STRUCTURE) if main else None,
        )

    def _load(self, slot: _Slot) -> _Slot:
        try:
            content = self.fs.read_file(slot.path)
            slot.document = load_document(
                content,
                slot.display,
                kind=slot.kind,
                base_directory=self.project_root,
            )
        except DocumentLoadError as exc:
            kind = (
                ViolationKind.ENCODING_ERROR
                if isinstance(exc, EncodingError)
                else ViolationKind.PARSE_ERROR
            )
            message = exc.message
            if exc.line is not None:
                message = f"line {exc.line}, column {exc.column}: {message}"
            logger.warning("Failed to load %s: %s", slot.display, exc.describe())
            slot.violations.append(make_violation(slot.display, "", kind, message))
        except OSError as exc:
            logger.warning("Failed to read %s: %s", slot.display, exc)
            slot.violations.append(make_violation(
                slot.display, "", ViolationKind.PARSE_ERROR, f"Could not read file: {exc}",
            ))
        return slot

    def _load_structure_tree(self, main: _Slot | None) -> None:
        self._enter(Stage.LOAD_STRUCTURE_TREE)
        if not self.fs.is_dir(self.project_root / STRUCTURE_DIR):
            return
        tree: list[_Slot] = []
        if main is not None:
            tree.append(main)
        config = self._probe(STRUCTURE_DIR, CONFIG_CANDIDATES)
        if config:
            tree.append(self._slot(config, DocumentKind.CONFIG))
        tree.extend(self._list_documents(f"{STRUCTURE_DIR}/patterns", DocumentKind.PATTERN))
        tree.extend(self._list_documents(f"{STRUCTURE_DIR}/templates", DocumentKind.TEMPLATE))
        self._slots.extend(self._fan_out(self._load, tree))

    def _check_document(self, slot: _Slot, forbidden: list[str]) -> list[Violation]:
        assert slot.document is not None
        document = slot.document
        found = validate_document(
            document, strict=self.settings.strict_mode, schema=slot.schema,
        )
        found.extend(check_document_paths(
            document,
            project_root=self.project_root,
            filesystem=self.fs,
            validate_paths=self.settings.validate_paths,
            forbidden=forbidden,
        ))
        if document.kind is DocumentKind.ROOT_STRUCTURE:
            found.extend(check_directory_rules(
                document,
                project_root=self.project_root,
                filesystem=self.fs,
                ignore=self.settings.ignore,
            ))
        return found

    def _file(self, violations: Iterable[Violation]) -> None:
        by_path = {s.display: s for s in self._slots}
        for violation in violations:
            slot = by_path.get(violation.document_path)
            if slot is not None:
                slot.violations.append(violation)
            else:
                self._hook_violations.append(violation)

    def _check_references(self) -> list[Violation]:
        violations: list[Violation] = []
        for slot in self._slots_of(DocumentKind.ROOT_STRUCTURE):
            raw = slot.document.raw if slot.document else None
            config = raw.get("structure-config") if isinstance(raw, dict) else None
            if not isinstance(config, dict):
                continue
            for field_name, category in (
                ("patterns", Category.PATTERN),
                ("templates", Category.TEMPLATE),
            ):
                names = config.get(field_name)
                if not isinstance(names, list):
                    continue
                for index, name in enumerate(names):
                    if not isinstance(name, str) or not name.strip():
                        continue
                    if self.graph.lookup(category, name) is None:
                        violations.append(make_violation(
                            slot.display,
                            f"structure-config.{field_name}[{index}]",
                            ViolationKind.DANGLING_REFERENCE,
                            f"{category.value.capitalize()} {name!r} is not declared "
                            f"under {STRUCTURE_DIR}/{field_name}",
                        ))
        return violations

    def _validate_all(self) -> None:
        self._enter(Stage.VALIDATE_ALL)
        config = next(iter(self._slots_of(DocumentKind.CONFIG)), None)
        self.settings = resolve_settings(self.options, config.document if config else None)

        forbidden: list[str] = []
        for slot in self._slots_of(DocumentKind.ROOT_STRUCTURE):
            assert slot.document is not None
            forbidden.extend(p for p in forbidden_prefixes(slot.document) if p not in forbidden)

        loaded = [s for s in self._slots if s.document is not None]
        results = self._fan_out(lambda s: self._check_document(s, forbidden), loaded)
        for slot, found in zip(loaded, results):
            slot.violations.extend(found)

        definitions = [
            s.document
            for s in loaded
            if s.kind in (DocumentKind.PATTERN, DocumentKind.TEMPLATE) and s.document
        ]
        self.graph, duplicates = build_graph(definitions)
        self.resolution = self.graph.resolve()
        self._file(duplicates)
        self._file(self.resolution.violations)
        self._file(self._check_references())

        hooks_dir = self.project_root / STRUCTURE_DIR / "hooks"
        if self.settings.hooks_enabled and self.fs.is_dir(hooks_dir):
            self._hook_violations.extend(self.hooks.scan(
                self.fs.list_directory(hooks_dir),
                self.settings,
                config_path=config.display if config else f"{STRUCTURE_DIR}/config.yaml",
            ))

        self.telemetry.emit(TelemetryEvent(
            name="structure.validate",
            attributes={
                "documents": len(loaded),
                "definitions": len(self.graph),
                "merged": len(self.resolution.merged),
                "hooks": len(self.hooks),
            },
        ))

    def _report(self) -> ValidationReport:
        self._enter(Stage.REPORT)
        violations = [v for s in self._slots for v in s.violations]
        violations.extend(self._hook_violations)
        has_error = any(v.severity is Severity.ERROR for v in violations)
        report = ValidationReport(
            state=RunState.FAILED if has_error else RunState.PASSED,
            violations=tuple(violations),
            documents=tuple(s.display for s in self._slots),
        )
        self._enter(Stage.FAILED if has_error else Stage.PASSED)
        return report

    def _abort(self) -> ValidationReport:
        fatal = make_violation(
            str(self.project_root),
            "",
            ViolationKind.NO_STRUCTURE_FILE,
            f"No structure file found (tried {', '.join(ROOT_CANDIDATES)} "
            f"and {STRUCTURE_DIR}/structure.yaml)",
        )
        self._enter(Stage.ABORTED)
        logger.error("%s", fatal.message)
        return ValidationReport(state=RunState.ABORTED, fatal=fatal)

    # ── public API ────────────────────────────────────────────────

    def run(self) -> ValidationReport:
        root, main = self._discover_root()
        if root is None and main is None:
            report = self._abort()
        else:
            self._enter(Stage.LOAD_ROOT)
            if root is not None:
                self._slots.append(self._load(root))
                if main is not None:
                    main.schema = SCOPED_STRUCTURE_SCHEMA
            self._load_structure_tree(main)
            self.telemetry.emit(TelemetryEvent(
                name="structure.load",
                attributes={
                    "discovered": len(self._slots),
                    "loaded": sum(1 for s in self._slots if s.document is not None),
                },
            ))
            self._validate_all()
            report = self._report()

        self.telemetry.emit(TelemetryEvent(
            name="structure.report",
            attributes={
                "state": report.state.value,
                "violations": len(report.violations),
                "errors": len(report.errors()),
            },
        ))
        logger.info(
            "Validation of %s finished: %s (%d violations)",
            self.project_root, report.state.value, len(report.violations),
        )
        if self.options.report_path:
            try:
                write_report(report, Path(self.options.report_path))
            except OSError as exc:
                logger.warning("Failed to write report to %s: %s", self.options.report_path, exc)
        return report


def validate(
    project_root: str | Path,
    options: ValidationOptions | None = None,
    *,
    filesystem: FileSystem | None = None,
    telemetry_sink: TelemetrySink | None = None,
) -> ValidationReport:
    """Validate the structure files of ``project_root`` and return the report."""
    return Orchestrator(
        project_root, options, filesystem=filesystem, telemetry_sink=telemetry_sink,
    ).run()
