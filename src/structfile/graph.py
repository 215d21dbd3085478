"""Pattern graph resolver -- flattens ``extends`` / ``override`` / ``add``.

Definitions live in a hash-keyed node store keyed by ``(category, name)``;
edges run child -> parent, one per ``extends``. Each definition has at most
one parent, so traversal follows parent pointers iteratively with a
three-colour marker (unvisited / in-progress / done). Re-entering an
in-progress node is a cycle.

Merge order for one node:
  1. start from the parent's merged entries (empty without ``extends``)
  2. each ``override`` entry replaces the same-named parent entry in place
  3. own entries (``rules`` / ``variables``) and ``add`` entries are appended

Merged results are memoized per resolution, so an ancestor shared by several
children is merged once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, ClassVar

from structfile.loader import STRUCTURE_EXTENSIONS
from structfile.models import Document, DocumentKind, Violation, ViolationKind, make_violation

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)")


class Category(str, Enum):
    PATTERN = "pattern"
    TEMPLATE = "template"


NodeKey = tuple[Category, str]


class _Color(Enum):
    IN_PROGRESS = 1
    DONE = 2


@dataclass(frozen=True)
class Entry:
    """A named rule or variable (or a path-keyed structure item)."""

    name: str
    data: dict[str, Any]
    source_path: str
    field_path: str


@dataclass(frozen=True)
class Definition:
    category: ClassVar[Category]
    entry_field: ClassVar[str]
    entry_noun: ClassVar[str]

    name: str
    source_path: str
    file_stem: str
    version: str | None = None
    extends: str | None = None
    entries: tuple[Entry, ...] = ()
    overrides: tuple[Entry, ...] = ()
    additions: tuple[Entry, ...] = ()

    @property
    def key(self) -> NodeKey:
        return (self.category, self.name)


@dataclass(frozen=True)
class PatternDefinition(Definition):
    category: ClassVar[Category] = Category.PATTERN
    entry_field: ClassVar[str] = "rules"
    entry_noun: ClassVar[str] = "rule"


@dataclass(frozen=True)
class TemplateDefinition(Definition):
    category: ClassVar[Category] = Category.TEMPLATE
    entry_field: ClassVar[str] = "variables"
    entry_noun: ClassVar[str] = "variable"

    structure: tuple[Entry, ...] = ()


@dataclass(frozen=True)
class MergedDefinition:
    """The flattened form of a definition after its whole ``extends`` chain."""

    category: Category
    name: str
    source_path: str
    lineage: tuple[str, ...]
    entries: tuple[Entry, ...]
    structure: tuple[Entry, ...] = ()

    def entry_names(self) -> list[str]:
        return [e.name for e in self.entries]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "category": self.category.value,
            "name": self.name,
            "source": self.source_path,
            "lineage": list(self.lineage),
            "rules" if self.category is Category.PATTERN else "variables": [
                e.data for e in self.entries
            ],
        }
        if self.category is Category.TEMPLATE:
            payload["structure"] = [e.data for e in self.structure]
        return payload


@dataclass
class GraphResolution:
    merged: dict[NodeKey, MergedDefinition] = field(default_factory=dict)
    violations: list[Violation] = field(default_factory=list)
    merges_performed: int = 0

    def get(self, category: Category, name: str) -> MergedDefinition | None:
        return self.merged.get((category, name))


def _named_entries(
    raw: dict[str, Any], field_name: str, source_path: str, key: str = "name",
) -> tuple[Entry, ...]:
    items = raw.get(field_name)
    if not isinstance(items, list):
        return ()
    entries: list[Entry] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        name = item.get(key)
        if isinstance(name, str) and name.strip():
            entries.append(Entry(name, dict(item), source_path, f"{field_name}[{index}]"))
    return tuple(entries)


def definition_from_document(document: Document) -> Definition | None:
    """Build a Definition from a pattern or template Document.

    Documents whose root is not a mapping yield None; a missing or ill-typed
    ``name`` falls back to the file stem (the schema validator reports it).
    """
    if document.kind not in (DocumentKind.PATTERN, DocumentKind.TEMPLATE):
        return None
    raw = document.raw
    if not isinstance(raw, dict):
        return None

    stem = PurePosixPath(document.source_path).stem
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        name = stem
    version = raw.get("version") if isinstance(raw.get("version"), str) else None
    extends = raw.get("extends")
    extends = extends.strip() if isinstance(extends, str) and extends.strip() else None

    cls = PatternDefinition if document.kind is DocumentKind.PATTERN else TemplateDefinition
    common: dict[str, Any] = dict(
        name=name.strip(),
        source_path=document.source_path,
        file_stem=stem,
        version=version,
        extends=extends,
        entries=_named_entries(raw, cls.entry_field, document.source_path),
        overrides=_named_entries(raw, "override", document.source_path),
        additions=_named_entries(raw, "add", document.source_path),
    )
    if cls is TemplateDefinition:
        common["structure"] = _named_entries(
            raw, "structure", document.source_path, key="path",
        )
    return cls(**common)


def reference_name(reference: str) -> str:
    """``patterns/api.yaml`` -> ``api``; bare names pass through."""
    name = PurePosixPath(reference.strip()).name
    for ext in STRUCTURE_EXTENSIONS:
        if name.lower().endswith(ext):
            return name[: -len(ext)]
    return name


class PatternGraph:
    """Node store plus child -> parent edges for patterns and templates."""

    def __init__(self) -> None:
        self._nodes: dict[NodeKey, Definition] = {}
        self._stems: dict[NodeKey, NodeKey] = {}

    def add(self, definition: Definition) -> Violation | None:
        """Register a definition. A second definition of the same name is refused."""
        key = definition.key
        existing = self._nodes.get(key)
        if existing is not None:
            return make_violation(
                definition.source_path,
                "name",
                ViolationKind.DUPLICATE_DEFINITION,
                f"{definition.category.value.capitalize()} {definition.name!r} is "
                f"already defined in {existing.source_path}",
            )
        self._nodes[key] = definition
        self._stems.setdefault((definition.category, definition.file_stem), key)
        return None

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def definitions(self) -> list[Definition]:
        return [self._nodes[k] for k in sorted(self._nodes, key=_sort_key)]

    def lookup(self, category: Category, reference: str) -> NodeKey | None:
        name = reference_name(reference)
        key = (category, name)
        if key in self._nodes:
            return key
        return self._stems.get(key)

    def _parent(
        self, definition: Definition, resolution: GraphResolution,
    ) -> tuple[NodeKey | None, bool]:
        """Return ``(parent_key, dangling)`` for a definition."""
        if definition.extends is None:
            return None, False
        parent = self.lookup(definition.category, definition.extends)
        if parent is None:
            resolution.violations.append(make_violation(
                definition.source_path,
                "extends",
                ViolationKind.DANGLING_REFERENCE,
                f"{definition.category.value.capitalize()} {definition.name!r} extends "
                f"unknown {definition.category.value} {definition.extends!r}",
            ))
            return None, True
        return parent, False

    def resolve(self, keys: Iterable[NodeKey] | None = None) -> GraphResolution:
        """Merge the given nodes (default: all) and every ancestor they reach."""
        resolution = GraphResolution()
        starts = sorted(keys if keys is not None else self._nodes, key=_sort_key)
        state: dict[NodeKey, _Color] = {}
        parents: dict[NodeKey, NodeKey | None] = {}
        failed: set[NodeKey] = set()

        for start in starts:
            if start not in self._nodes or state.get(start) is _Color.DONE:
                continue
            path: list[NodeKey] = []
            node: NodeKey | None = start
            while node is not None:
                color = state.get(node)
                if color is _Color.DONE:
                    break
                if color is _Color.IN_PROGRESS:
                    self._report_cycle(path, node, resolution)
                    failed.update(path)
                    break
                state[node] = _Color.IN_PROGRESS
                path.append(node)
                parent, dangling = self._parent(self._nodes[node], resolution)
                parents[node] = parent
                if dangling:
                    failed.add(node)
                node = parent

            for key in reversed(path):
                state[key] = _Color.DONE
                parent = parents.get(key)
                if key in failed or (parent is not None and parent in failed):
                    failed.add(key)
                    continue
                parent_merged = resolution.merged.get(parent) if parent else None
                resolution.merged[key] = self._merge(
                    self._nodes[key], parent_merged, resolution,
                )
                resolution.merges_performed += 1

        logger.debug(
            "Resolved %d definitions (%d skipped)", len(resolution.merged), len(failed),
        )
        return resolution

    def _report_cycle(
        self, path: list[NodeKey], node: NodeKey, resolution: GraphResolution,
    ) -> None:
        cycle = path[path.index(node):] + [node]
        names = " -> ".join(name for _, name in cycle)
        definition = self._nodes[node]
        resolution.violations.append(make_violation(
            definition.source_path,
            "extends",
            ViolationKind.CIRCULAR_DEPENDENCY,
            f"Circular {definition.category.value} inheritance: {names}",
        ))

    def _merge(
        self,
        definition: Definition,
        parent: MergedDefinition | None,
        resolution: GraphResolution,
    ) -> MergedDefinition:
        noun = definition.entry_noun
        entries: list[Entry] = list(parent.entries) if parent else []
        index = {e.name: i for i, e in enumerate(entries)}

        for override in definition.overrides:
            position = index.get(override.name)
            if position is None:
                target = f"parent {parent.name!r}" if parent else "a parent (no extends)"
                resolution.violations.append(make_violation(
                    override.source_path,
                    f"{override.field_path}.name",
                    ViolationKind.DANGLING_OVERRIDE,
                    f"Override {override.name!r} matches no {noun} in {target}",
                ))
                continue
            entries[position] = override

        for entry in (*definition.entries, *definition.additions):
            if entry.name in index:
                resolution.violations.append(make_violation(
                    entry.source_path,
                    f"{entry.field_path}.name",
                    ViolationKind.DUPLICATE_RULE_NAME,
                    f"Duplicate {noun} name {entry.name!r}",
                ))
                continue
            index[entry.name] = len(entries)
            entries.append(entry)

        structure: tuple[Entry, ...] = ()
        if isinstance(definition, TemplateDefinition):
            structure = _merge_structure(parent, definition)
        lineage = (*(parent.lineage if parent else ()), definition.name)
        merged = MergedDefinition(
            category=definition.category,
            name=definition.name,
            source_path=definition.source_path,
            lineage=lineage,
            entries=tuple(entries),
            structure=structure,
        )
        if isinstance(definition, TemplateDefinition):
            resolution.violations.extend(check_template_variables(definition, merged))
        return merged


def _merge_structure(
    parent: MergedDefinition | None, definition: TemplateDefinition,
) -> tuple[Entry, ...]:
    items: list[Entry] = list(parent.structure) if parent else []
    positions = {e.name: i for i, e in enumerate(items)}
    for entry in definition.structure:
        if entry.name in positions:
            items[positions[entry.name]] = entry
        else:
            positions[entry.name] = len(items)
            items.append(entry)
    return tuple(items)


def placeholders(text: str) -> list[str]:
    return _PLACEHOLDER_RE.findall(text)


def check_template_variables(
    definition: TemplateDefinition, merged: MergedDefinition,
) -> list[Violation]:
    """Every ``{{ var }}`` in the template's own structure must be declared."""
    declared = set(merged.entry_names())
    violations: list[Violation] = []
    for entry in definition.structure:
        for member in ("path", "content"):
            text = entry.data.get(member)
            if not isinstance(text, str):
                continue
            for var in placeholders(text):
                if var in declared:
                    continue
                violations.append(make_violation(
                    entry.source_path,
                    f"{entry.field_path}.{member}",
                    ViolationKind.UNDEFINED_VARIABLE,
                    f"Template variable {var!r} is not declared in {definition.name!r}",
                ))
    return violations


def _sort_key(key: NodeKey) -> tuple[str, str]:
    return (key[0].value, key[1])


def build_graph(documents: Iterable[Document]) -> tuple[PatternGraph, list[Violation]]:
    """Register every pattern/template document; returns duplicate-name violations."""
    graph = PatternGraph()
    violations: list[Violation] = []
    for document in documents:
        definition = definition_from_document(document)
        if definition is None:
            continue
        duplicate = graph.add(definition)
        if duplicate is not None:
            violations.append(duplicate)
    return graph, violations


def resolve_definitions(documents: Iterable[Document]) -> GraphResolution:
    graph, violations = build_graph(documents)
    resolution = graph.resolve()
    resolution.violations[:0] = violations
    return resolution
