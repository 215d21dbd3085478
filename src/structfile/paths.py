"""Path resolution, containment and directory-shape checks.

All normalization is lexical (``os.path.normpath``); symlinks are not
followed, so containment does not depend on the state of the disk.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path, PurePosixPath
from typing import Any

from structfile.filesystem import FileSystem
from structfile.models import Document, DocumentKind, Violation, ViolationKind, make_violation
from structfile.schema.validator import iter_path_fields

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


def resolve_path(value: str, base_directory: Path) -> Path:
    """Join ``value`` onto ``base_directory`` and normalize lexically."""
    return Path(os.path.normpath(os.path.join(base_directory, value)))


def relative_to_root(path: Path, project_root: Path) -> str | None:
    """Return ``path`` relative to the root in posix form, or None if outside."""
    root = os.path.normpath(project_root)
    candidate = os.path.normpath(path)
    try:
        if os.path.commonpath([root, candidate]) != root:
            return None
    except ValueError:
        return None
    rel = os.path.relpath(candidate, root)
    return PurePosixPath(*Path(rel).parts).as_posix()


def is_pattern_value(value: str) -> bool:
    """Globs and template placeholders are not existence-checked."""
    return "{{" in value or any(c in _GLOB_CHARS for c in value)


def normalize_prefix(prefix: str) -> str:
    return PurePosixPath(os.path.normpath(prefix.strip())).as_posix().rstrip("/")


def matches_prefix(rel: str, prefix: str) -> bool:
    return rel == prefix or rel.startswith(prefix + "/")


def forbidden_prefixes(document: Document) -> list[str]:
    """``rules.forbidden`` of a root structure document, normalized."""
    rules = _rules(document)
    forbidden = rules.get("forbidden")
    if not isinstance(forbidden, list):
        return []
    return [normalize_prefix(p) for p in forbidden if isinstance(p, str) and p.strip()]


def is_output_path(document: Document, field_path: str) -> bool:
    """Template ``structure[].path`` values name files a template will create."""
    return document.kind is DocumentKind.TEMPLATE and field_path.startswith("structure[")


def _rules(document: Document) -> dict[str, Any]:
    if not isinstance(document.raw, dict):
        return {}
    rules = document.raw.get("rules")
    return rules if isinstance(rules, dict) else {}


def check_document_paths(
    document: Document,
    *,
    project_root: Path,
    filesystem: FileSystem,
    validate_paths: bool,
    forbidden: list[str] | tuple[str, ...] = (),
) -> list[Violation]:
    """Resolve every path-typed field of ``document``.

    Escaping the project root is always ``ForbiddenPath``; existence is only
    checked when ``validate_paths`` is set, and never for template outputs.
    """
    violations: list[Violation] = []
    for field_path, value in iter_path_fields(document):
        resolved = resolve_path(value, document.base_directory)
        rel = relative_to_root(resolved, project_root)
        if rel is None:
            violations.append(make_violation(
                document.source_path,
                field_path,
                ViolationKind.FORBIDDEN_PATH,
                f"Path {value!r} resolves outside the project root",
            ))
            continue

        hit = next((p for p in forbidden if matches_prefix(rel, p)), None)
        if hit is not None:
            violations.append(make_violation(
                document.source_path,
                field_path,
                ViolationKind.FORBIDDEN_PATH,
                f"Path {value!r} is under forbidden prefix {hit!r}",
            ))
            continue

        if not validate_paths or is_pattern_value(value):
            continue
        if is_output_path(document, field_path):
            continue
        if not filesystem.exists(resolved):
            violations.append(make_violation(
                document.source_path,
                field_path,
                ViolationKind.PATH_NOT_FOUND,
                f"Path {value!r} does not exist",
            ))
    return violations


def _depth(rel: str) -> int:
    return len(PurePosixPath(rel).parts)


def check_directory_rules(
    document: Document,
    *,
    project_root: Path,
    filesystem: FileSystem,
    ignore: tuple[str, ...] = (),
) -> list[Violation]:
    """Walk the base directory level by level against ``rules``.

    Required directories not seen within ``max-depth`` levels are
    ``MissingDirectory``; walked entries under a forbidden prefix are
    ``ForbiddenPath`` (and are not descended into).
    """
    rules = _rules(document)
    violations: list[Violation] = []

    required: list[tuple[int, str]] = []
    raw_required = rules.get("required-directories")
    if isinstance(raw_required, list):
        for index, value in enumerate(raw_required):
            if not isinstance(value, str) or not value.strip():
                continue
            resolved = resolve_path(value, document.base_directory)
            if relative_to_root(resolved, project_root) is None:
                violations.append(make_violation(
                    document.source_path,
                    f"rules.required-directories[{index}]",
                    ViolationKind.FORBIDDEN_PATH,
                    f"Directory {value!r} resolves outside the project root",
                ))
                continue
            rel_to_base = relative_to_root(resolved, document.base_directory)
            if rel_to_base is None or rel_to_base == ".":
                continue
            required.append((index, rel_to_base))

    forbidden: list[tuple[int, str]] = []
    raw_forbidden = rules.get("forbidden")
    if isinstance(raw_forbidden, list):
        for index, value in enumerate(raw_forbidden):
            if isinstance(value, str) and value.strip():
                forbidden.append((index, normalize_prefix(value)))

    if not required and not forbidden:
        return violations

    max_depth = rules.get("max-depth")
    if not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1:
        wanted = [_depth(rel) for _, rel in required] + [_depth(p) for _, p in forbidden]
        max_depth = max(wanted, default=1)

    found_dirs: set[str] = set()
    queue: deque[tuple[Path, str, int]] = deque([(document.base_directory, "", 0)])
    while queue:
        directory, rel_dir, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for entry in filesystem.list_directory(directory):
            if entry.name in ignore:
                continue
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            hit = next(((i, p) for i, p in forbidden if matches_prefix(rel, p)), None)
            if hit is not None:
                violations.append(make_violation(
                    document.source_path,
                    f"rules.forbidden[{hit[0]}]",
                    ViolationKind.FORBIDDEN_PATH,
                    f"{rel!r} matches forbidden prefix {hit[1]!r}",
                ))
                continue
            if entry.is_dir:
                found_dirs.add(rel)
                queue.append((directory / entry.name, rel, depth + 1))

    logger.debug(
        "Walked %d directories under %s (max depth %d)",
        len(found_dirs), document.base_directory, max_depth,
    )
    for index, rel in required:
        if rel not in found_dirs:
            violations.append(make_violation(
                document.source_path,
                f"rules.required-directories[{index}]",
                ViolationKind.MISSING_DIRECTORY,
                f"Required directory {rel!r} not found within depth {max_depth}",
            ))
    return violations
