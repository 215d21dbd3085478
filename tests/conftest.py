"""Test fixtures for structfile tests."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Any

import pytest

from structfile.filesystem import MemoryFileSystem
from structfile.models import Document, DocumentFormat, DocumentKind

MEMORY_ROOT = Path("/project")

MINIMAL_ROOT_YAML = """\
version: "1.0.0"
project-name: demo
"""

API_PATTERN_YAML = """\
name: api
version: "1.0.0"
rules:
  - name: Authentication
    description: Every endpoint checks credentials
  - name: Versioning
    description: Routes carry a version prefix
"""


def make_test_document(
    raw: Any,
    kind: DocumentKind = DocumentKind.ROOT_STRUCTURE,
    source_path: str = "structure.yaml",
    base_directory: str | Path = MEMORY_ROOT,
) -> Document:
    """Create a Document directly from a value tree."""
    return Document(
        kind=kind,
        source_path=source_path,
        base_directory=Path(base_directory),
        raw=raw,
        format=DocumentFormat.YAML,
    )


def make_pattern(
    name: str,
    *,
    extends: str | None = None,
    rules: list[str] | None = None,
    override: list[str] | None = None,
    add: list[str] | None = None,
) -> Document:
    """Create a pattern Document whose entries are named rules."""
    raw: dict[str, Any] = {"name": name, "version": "1.0.0"}
    if extends is not None:
        raw["extends"] = extends
    for key, names in (("rules", rules), ("override", override), ("add", add)):
        if names is not None:
            raw[key] = [{"name": n, "description": f"{key} {n}"} for n in names]
    return make_test_document(
        raw, DocumentKind.PATTERN, f".structure/patterns/{name}.yaml",
    )


def make_memory_project(
    files: dict[str, str],
    *,
    executable: tuple[str, ...] = (),
    directories: tuple[str, ...] = (),
) -> MemoryFileSystem:
    """Create an in-memory project rooted at MEMORY_ROOT."""
    fs = MemoryFileSystem()
    fs.add_directory(MEMORY_ROOT)
    for relative, content in files.items():
        fs.add_file(MEMORY_ROOT / relative, content, executable=relative in executable)
    for relative in directories:
        fs.add_directory(MEMORY_ROOT / relative)
    return fs


def write_project(
    root: Path, files: dict[str, str], *, executable: tuple[str, ...] = (),
) -> Path:
    """Write a project tree to disk (for LocalFileSystem tests)."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if relative in executable:
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            path.chmod(path.stat().st_mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
    return root


@pytest.fixture
def posix_only():
    if os.name != "posix":
        pytest.skip("executable bits are POSIX-only")
