"""Exception types raised inside structfile components.

These never escape ``validate()``: the orchestrator turns load failures into
violations. Only the hook invocation API raises to its caller.
"""

from __future__ import annotations


class StructfileError(Exception):
    """Base class for all structfile errors."""


class DocumentLoadError(StructfileError):
    """A document could not be turned into a value tree."""

    def __init__(
        self,
        message: str,
        *,
        source_path: str = "",
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.source_path = source_path
        self.line = line
        self.column = column
        super().__init__(self.describe())

    def describe(self) -> str:
        where = self.source_path or "<input>"
        if self.line is not None:
            where = f"{where}:{self.line}"
            if self.column is not None:
                where = f"{where}:{self.column}"
        return f"{where}: {self.message}"


class ParseError(DocumentLoadError):
    pass


class EncodingError(DocumentLoadError):
    pass


class HookNotFoundError(StructfileError, KeyError):
    def __str__(self) -> str:
        return Exception.__str__(self)
