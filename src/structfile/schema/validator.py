"""Schema validation of a Document's value tree against its FieldSpec table.

Validation is total: every violation is collected in one depth-first pass.
Object members are visited in declaration order (unknown members afterwards,
in document order), array elements in index order.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from structfile.models import (
    Document,
    Severity,
    Violation,
    ViolationKind,
    make_violation,
)
from structfile.schema.fields import FieldSpec, FieldType, describe_value_type, matches_type
from structfile.schema.tables import schema_for

ROOT_FIELD_PATH = "<root>"


def join_field_path(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


class _Walker:
    def __init__(self, document: Document, strict: bool) -> None:
        self.document = document
        self.strict = strict
        self.violations: list[Violation] = []

    def emit(
        self,
        field_path: str,
        kind: ViolationKind,
        message: str,
        severity: Severity | None = None,
    ) -> None:
        self.violations.append(
            make_violation(
                self.document.source_path, field_path, kind, message, severity=severity,
            )
        )

    def check_members(
        self, children: tuple[FieldSpec, ...], mapping: dict[Any, Any], prefix: str,
    ) -> None:
        for child in children:
            field_path = join_field_path(prefix, child.name)
            value = mapping.get(child.name)
            if value is None:
                if child.required:
                    self.emit(
                        field_path,
                        ViolationKind.MISSING_FIELD,
                        f"Required field '{child.name}' is missing",
                    )
                continue
            self.check_value(child, value, field_path)

        declared = {child.name for child in children}
        for key in mapping:
            if key in declared:
                continue
            self.emit(
                join_field_path(prefix, str(key)),
                ViolationKind.UNKNOWN_FIELD,
                f"Unknown field '{key}'",
                Severity.ERROR if self.strict else Severity.WARNING,
            )

    def check_value(self, spec: FieldSpec, value: Any, field_path: str) -> None:
        if not matches_type(value, spec.type):
            self.emit(
                field_path,
                ViolationKind.TYPE_MISMATCH,
                f"Expected {spec.type.value}, got {describe_value_type(value)}",
            )
            return

        for constraint in spec.constraints:
            problem = constraint.check(value)
            if problem:
                self.emit(field_path, ViolationKind.CONSTRAINT_VIOLATION, problem)

        if spec.type is FieldType.OBJECT and spec.children:
            self.check_members(spec.children, value, field_path)
        elif spec.type is FieldType.ARRAY and spec.items is not None:
            for index, element in enumerate(value):
                self.check_value(spec.items, element, f"{field_path}[{index}]")


def validate_document(
    document: Document,
    *,
    strict: bool = False,
    schema: tuple[FieldSpec, ...] | None = None,
) -> list[Violation]:
    """Check ``document.raw`` against the schema table for its kind."""
    walker = _Walker(document, strict)
    if not isinstance(document.raw, dict):
        walker.emit(
            ROOT_FIELD_PATH,
            ViolationKind.TYPE_MISMATCH,
            f"Document root must be an object, got {describe_value_type(document.raw)}",
        )
        return walker.violations
    walker.check_members(schema or schema_for(document.kind), document.raw, "")
    return walker.violations


def iter_path_fields(
    document: Document, schema: tuple[FieldSpec, ...] | None = None,
) -> Iterator[tuple[str, str]]:
    """Yield ``(field_path, value)`` for every well-typed path-valued field."""
    if not isinstance(document.raw, dict):
        return
    yield from _iter_members(schema or schema_for(document.kind), document.raw, "")


def _iter_members(
    children: tuple[FieldSpec, ...], mapping: dict[Any, Any], prefix: str,
) -> Iterator[tuple[str, str]]:
    for child in children:
        value = mapping.get(child.name)
        if value is not None:
            yield from _iter_value(child, value, join_field_path(prefix, child.name))


def _iter_value(spec: FieldSpec, value: Any, field_path: str) -> Iterator[tuple[str, str]]:
    if not matches_type(value, spec.type):
        return
    if spec.type is FieldType.PATH:
        yield field_path, value
    elif spec.type is FieldType.OBJECT and spec.children:
        yield from _iter_members(spec.children, value, field_path)
    elif spec.type is FieldType.ARRAY and spec.items is not None:
        for index, element in enumerate(value):
            yield from _iter_value(spec.items, element, f"{field_path}[{index}]")
