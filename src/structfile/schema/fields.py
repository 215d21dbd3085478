"""FieldSpec and constraint definitions.

Schemas are plain data: a tuple of FieldSpec per document kind. Adding a
document kind means adding a table, not a class.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

NAME_PATTERN = r"^[a-z][a-z0-9-]*$"
IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    PATH = "path"
    ANY = "any"


def matches_type(value: Any, field_type: FieldType) -> bool:
    # bool is a subclass of int in Python; it is never an integer here
    if field_type is FieldType.ANY:
        return True
    if field_type in (FieldType.STRING, FieldType.PATH):
        return isinstance(value, str)
    if field_type is FieldType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if field_type is FieldType.BOOLEAN:
        return isinstance(value, bool)
    if field_type is FieldType.ARRAY:
        return isinstance(value, list)
    if field_type is FieldType.OBJECT:
        return isinstance(value, dict)
    return False


def describe_value_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if value is None:
        return "null"
    return type(value).__name__


@dataclass(frozen=True)
class Constraint:
    """A single value constraint. ``check`` returns an error message or None."""

    kind: str
    argument: Any = None

    def check(self, value: Any) -> str | None:
        if self.kind == "non_empty":
            if isinstance(value, str) and not value.strip():
                return "must not be empty"
            if isinstance(value, (list, dict)) and not value:
                return "must not be empty"
            return None
        if self.kind == "semver":
            if isinstance(value, str) and not _SEMVER_RE.fullmatch(value):
                return f"{value!r} is not a semantic version (MAJOR.MINOR.PATCH)"
            return None
        if self.kind == "pattern":
            if isinstance(value, str) and not re.fullmatch(self.argument, value):
                return f"{value!r} does not match {self.argument}"
            return None
        if self.kind == "one_of":
            if value not in self.argument:
                allowed = ", ".join(str(a) for a in self.argument)
                return f"{value!r} is not one of: {allowed}"
            return None
        if self.kind == "minimum":
            if isinstance(value, int) and value < self.argument:
                return f"{value} is less than the minimum {self.argument}"
            return None
        if self.kind == "valid_regex":
            if isinstance(value, str):
                try:
                    re.compile(value)
                except re.error as exc:
                    return f"{value!r} is not a valid regular expression: {exc}"
            return None
        raise ValueError(f"Unknown constraint kind: {self.kind!r}")


def non_empty() -> Constraint:
    return Constraint("non_empty")


def semver() -> Constraint:
    return Constraint("semver")


def pattern(regex: str) -> Constraint:
    return Constraint("pattern", regex)


def one_of(*values: Any) -> Constraint:
    return Constraint("one_of", tuple(values))


def minimum(value: int) -> Constraint:
    return Constraint("minimum", value)


def valid_regex() -> Constraint:
    return Constraint("valid_regex")


@dataclass(frozen=True)
class FieldSpec:
    """One schema field.

    ``children`` lists the members of an object field in declaration order;
    an object with no children is free-form. ``items`` describes the elements
    of an array field (its ``name`` is unused).
    """

    name: str
    type: FieldType
    required: bool = False
    constraints: tuple[Constraint, ...] = ()
    children: tuple[FieldSpec, ...] = ()
    items: FieldSpec | None = None

    @property
    def is_free_form(self) -> bool:
        return self.type is FieldType.OBJECT and not self.children


def string(name: str, *constraints: Constraint, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.STRING, required, tuple(constraints))


def path(name: str, *constraints: Constraint, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.PATH, required, tuple(constraints))


def integer(name: str, *constraints: Constraint, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.INTEGER, required, tuple(constraints))


def boolean(name: str, *, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.BOOLEAN, required)


def any_value(name: str) -> FieldSpec:
    return FieldSpec(name, FieldType.ANY)


def array(name: str, items: FieldSpec, *, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.ARRAY, required, items=items)


def obj(name: str, *children: FieldSpec, required: bool = False) -> FieldSpec:
    return FieldSpec(name, FieldType.OBJECT, required, children=tuple(children))


def item(field_type: FieldType, *constraints: Constraint) -> FieldSpec:
    return FieldSpec("", field_type, constraints=tuple(constraints))


def item_object(*children: FieldSpec) -> FieldSpec:
    return FieldSpec("", FieldType.OBJECT, children=tuple(children))
