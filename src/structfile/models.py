"""Pydantic models shared by every structfile component."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _FrozenModel(BaseModel):
    """Shared settings for immutable records."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class DocumentKind(str, Enum):
    ROOT_STRUCTURE = "root_structure"
    PATTERN = "pattern"
    TEMPLATE = "template"
    CONFIG = "config"


class DocumentFormat(str, Enum):
    YAML = "yaml"
    JSON = "json"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    FATAL = "fatal"


class ViolationKind(str, Enum):
    PARSE_ERROR = "ParseError"
    ENCODING_ERROR = "EncodingError"
    MISSING_FIELD = "MissingField"
    TYPE_MISMATCH = "TypeMismatch"
    CONSTRAINT_VIOLATION = "ConstraintViolation"
    UNKNOWN_FIELD = "UnknownField"
    FORBIDDEN_PATH = "ForbiddenPath"
    PATH_NOT_FOUND = "PathNotFound"
    MISSING_DIRECTORY = "MissingDirectory"
    CIRCULAR_DEPENDENCY = "CircularDependency"
    DANGLING_OVERRIDE = "DanglingOverride"
    DUPLICATE_RULE_NAME = "DuplicateRuleName"
    DUPLICATE_DEFINITION = "DuplicateDefinition"
    UNDEFINED_VARIABLE = "UndefinedVariable"
    DANGLING_REFERENCE = "DanglingReference"
    DANGLING_HOOK_REFERENCE = "DanglingHookReference"
    NOT_EXECUTABLE = "NotExecutable"
    HOOK_TIMEOUT = "HookTimeout"
    HOOK_FAILED = "HookFailed"
    NO_STRUCTURE_FILE = "NoStructureFile"


# UnknownField is promoted to ERROR by strict mode; hook kinds are demoted
# to WARNING by ignore-errors. Callers pass the adjusted severity explicitly.
DEFAULT_SEVERITY: dict[ViolationKind, Severity] = {
    kind: Severity.ERROR for kind in ViolationKind
}
DEFAULT_SEVERITY[ViolationKind.UNKNOWN_FIELD] = Severity.WARNING
DEFAULT_SEVERITY[ViolationKind.NO_STRUCTURE_FILE] = Severity.FATAL


class Document(_FrozenModel):
    """A parsed configuration unit. ``raw`` is the key-ordered value tree."""

    kind: DocumentKind
    source_path: str
    base_directory: Path
    raw: Any = None
    format: DocumentFormat


class Violation(_FrozenModel):
    """One reported problem, located by document and dotted field path."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    document_path: str
    field_path: str = ""
    kind: ViolationKind
    message: str
    severity: Severity = Severity.ERROR

    def to_record(self) -> dict[str, str]:
        return self.model_dump(mode="json", by_alias=True)

    def describe(self) -> str:
        location = self.document_path
        if self.field_path:
            location = f"{location} [{self.field_path}]"
        return f"{location}: {self.kind.value}: {self.message}"


def make_violation(
    document_path: str,
    field_path: str,
    kind: ViolationKind,
    message: str,
    *,
    severity: Severity | None = None,
) -> Violation:
    """Build a Violation, defaulting severity from the kind."""
    return Violation(
        document_path=document_path,
        field_path=field_path,
        kind=kind,
        message=message,
        severity=severity or DEFAULT_SEVERITY[kind],
    )


class HookDescriptor(_FrozenModel):
    """An indexed hook script and its effective settings."""

    name: str
    script_path: Path
    timeout_seconds: int = 30
    enabled: bool = True
    parallel: bool = False
    ignore_errors: bool = False


class RunState(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"


class ValidationReport(_FrozenModel):
    """Outcome of a single orchestrator run."""

    state: RunState
    violations: tuple[Violation, ...] = ()
    fatal: Violation | None = None
    documents: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        if self.state is RunState.ABORTED:
            return False
        return not any(v.severity is Severity.ERROR for v in self.violations)

    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.severity is Severity.ERROR]

    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if v.severity is Severity.WARNING]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "state": self.state.value,
            "violations": [v.to_record() for v in self.violations],
            "fatal": self.fatal.to_record() if self.fatal else None,
        }
