"""Filesystem collaborator: the only way the engine touches the disk.

The engine reads through this protocol and never writes (the optional report
file is written by the orchestrator directly at the end of a run).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool = False
    is_executable: bool = False


@runtime_checkable
class FileSystem(Protocol):
    """Read-only view of a directory tree.

    ``list_directory`` returns entries sorted by name, or an empty list when
    the path is not a directory.
    """

    def list_directory(self, path: Path) -> list[DirEntry]: ...

    def read_file(self, path: Path) -> bytes: ...

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...


class LocalFileSystem:
    """FileSystem backed by the real disk."""

    def list_directory(self, path: Path) -> list[DirEntry]:
        if not os.path.isdir(path):
            return []
        entries: list[DirEntry] = []
        with os.scandir(path) as it:
            for entry in it:
                is_dir = entry.is_dir()
                entries.append(
                    DirEntry(
                        name=entry.name,
                        is_dir=is_dir,
                        is_executable=(not is_dir) and os.access(entry.path, os.X_OK),
                    )
                )
        return sorted(entries, key=lambda e: e.name)

    def read_file(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def exists(self, path: Path) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: Path) -> bool:
        return os.path.isdir(path)


class MemoryFileSystem:
    """In-memory FileSystem for tests and embedders that hold files in RAM.

    Parent directories are implied by the files added under them.
    """

    def __init__(self) -> None:
        self._files: dict[PurePosixPath, bytes] = {}
        self._executables: set[PurePosixPath] = set()
        self._dirs: set[PurePosixPath] = set()

    @staticmethod
    def _key(path: str | Path) -> PurePosixPath:
        return PurePosixPath(os.path.normpath(str(path)))

    def _add_parents(self, key: PurePosixPath) -> None:
        for parent in key.parents:
            self._dirs.add(parent)

    def add_file(
        self, path: str | Path, content: bytes | str = b"", *, executable: bool = False,
    ) -> None:
        key = self._key(path)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._files[key] = content
        if executable:
            self._executables.add(key)
        else:
            self._executables.discard(key)
        self._add_parents(key)

    def add_directory(self, path: str | Path) -> None:
        key = self._key(path)
        self._dirs.add(key)
        self._add_parents(key)

    def list_directory(self, path: Path) -> list[DirEntry]:
        key = self._key(path)
        if key not in self._dirs:
            return []
        entries: dict[str, DirEntry] = {}
        for d in self._dirs:
            if d.parent == key and d != key:
                entries[d.name] = DirEntry(name=d.name, is_dir=True)
        for f in self._files:
            if f.parent == key:
                entries[f.name] = DirEntry(
                    name=f.name, is_executable=f in self._executables,
                )
        return [entries[name] for name in sorted(entries)]

    def read_file(self, path: Path) -> bytes:
        key = self._key(path)
        if key not in self._files:
            raise FileNotFoundError(str(path))
        return self._files[key]

    def exists(self, path: Path) -> bool:
        key = self._key(path)
        return key in self._files or key in self._dirs

    def is_dir(self, path: Path) -> bool:
        return self._key(path) in self._dirs
