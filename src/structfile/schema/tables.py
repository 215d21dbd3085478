"""Static schema tables, one per document kind.

Built once at import time and treated as read-only for the process lifetime.
"""

from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType

from structfile.models import DocumentKind
from structfile.schema.fields import (
    IDENTIFIER_PATTERN,
    NAME_PATTERN,
    FieldSpec,
    FieldType,
    any_value,
    array,
    boolean,
    integer,
    item,
    item_object,
    minimum,
    non_empty,
    obj,
    one_of,
    path,
    pattern,
    semver,
    string,
    valid_regex,
)

_NAME = pattern(NAME_PATTERN)

_RULE_ENTRY = item_object(
    string("name", non_empty(), required=True),
    string("description"),
    string("severity", one_of("error", "warning", "info")),
    array("applies-to", item(FieldType.STRING, non_empty())),
    array("required-files", item(FieldType.PATH)),
    path("reference"),
    string("pattern", valid_regex()),
)

_VARIABLE_ENTRY = item_object(
    string("name", pattern(IDENTIFIER_PATTERN), required=True),
    string("type", one_of("string", "integer", "boolean", "array")),
    boolean("required"),
    any_value("default"),
    string("description"),
)

_STRUCTURE_ENTRY = item_object(
    path("path", non_empty(), required=True),
    string("type", one_of("file", "directory")),
    string("content"),
)

_HOOK_SETTINGS = (
    boolean("enabled"),
    integer("timeout", minimum(1)),
    boolean("parallel"),
    boolean("ignore-errors"),
)

ROOT_STRUCTURE_SCHEMA: tuple[FieldSpec, ...] = (
    string("version", semver(), required=True),
    string("project-name", non_empty(), required=True),
    string("description"),
    array("languages", item(FieldType.STRING, non_empty())),
    array(
        "key-directories",
        item_object(path("path", required=True), string("purpose")),
    ),
    array(
        "key-files",
        item_object(path("path", required=True), string("description")),
    ),
    obj(
        "rules",
        array("required-directories", item(FieldType.STRING, non_empty())),
        array("required-files", item(FieldType.PATH)),
        array("forbidden", item(FieldType.STRING, non_empty())),
        integer("max-depth", minimum(1)),
    ),
    obj(
        "structure-config",
        array("patterns", item(FieldType.STRING, non_empty())),
        array("templates", item(FieldType.STRING, non_empty())),
    ),
    obj("conventions"),
    obj("ai-context"),
)

# .structure/structure.* next to a root file: project metadata is optional there.
SCOPED_STRUCTURE_SCHEMA: tuple[FieldSpec, ...] = tuple(
    replace(spec, required=False) for spec in ROOT_STRUCTURE_SCHEMA
)

PATTERN_SCHEMA: tuple[FieldSpec, ...] = (
    string("name", _NAME, required=True),
    string("version", semver(), required=True),
    string("description"),
    string("extends", non_empty()),
    array("applies-to", item(FieldType.STRING, non_empty())),
    array("rules", _RULE_ENTRY),
    array("override", _RULE_ENTRY),
    array("add", _RULE_ENTRY),
)

TEMPLATE_SCHEMA: tuple[FieldSpec, ...] = (
    string("name", _NAME, required=True),
    string("version", semver(), required=True),
    string("description"),
    string("extends", non_empty()),
    array("variables", _VARIABLE_ENTRY),
    array("override", _VARIABLE_ENTRY),
    array("add", _VARIABLE_ENTRY),
    array("structure", _STRUCTURE_ENTRY),
)

CONFIG_SCHEMA: tuple[FieldSpec, ...] = (
    string("version", semver()),
    boolean("strict-mode"),
    boolean("validate-paths"),
    array("ignore", item(FieldType.STRING, non_empty())),
    obj(
        "hooks",
        *_HOOK_SETTINGS,
        array(
            "overrides",
            item_object(string("name", _NAME, required=True), *_HOOK_SETTINGS),
        ),
    ),
)

SCHEMAS = MappingProxyType({
    DocumentKind.ROOT_STRUCTURE: ROOT_STRUCTURE_SCHEMA,
    DocumentKind.PATTERN: PATTERN_SCHEMA,
    DocumentKind.TEMPLATE: TEMPLATE_SCHEMA,
    DocumentKind.CONFIG: CONFIG_SCHEMA,
})


def schema_for(kind: DocumentKind) -> tuple[FieldSpec, ...]:
    return SCHEMAS[kind]
