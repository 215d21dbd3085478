"""Document loading: bytes in, a typed Document (or a load error) out.

YAML goes through a ``yaml.SafeLoader`` subclass that rejects duplicate
mapping keys instead of silently keeping the last one. JSON uses an
``object_pairs_hook`` for the same check.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Hashable
from pathlib import Path, PurePath
from typing import Any

import yaml
from yaml.constructor import ConstructorError

from structfile.errors import EncodingError, ParseError
from structfile.models import Document, DocumentFormat, DocumentKind

logger = logging.getLogger(__name__)

_EXTENSIONS: dict[str, DocumentFormat] = {
    ".yaml": DocumentFormat.YAML,
    ".yml": DocumentFormat.YAML,
    ".json": DocumentFormat.JSON,
}

STRUCTURE_EXTENSIONS = tuple(_EXTENSIONS)


class _UniqueKeyLoader(yaml.SafeLoader):
    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


class _DuplicateJsonKey(ValueError):
    pass


def _reject_duplicate_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise _DuplicateJsonKey(key)
        result[key] = value
    return result


def infer_format(source_path: str | PurePath) -> DocumentFormat:
    """Map a file extension to a DocumentFormat. Raises ParseError otherwise."""
    suffix = PurePath(source_path).suffix.lower()
    fmt = _EXTENSIONS.get(suffix)
    if fmt is None:
        raise ParseError(
            f"Unsupported document extension {suffix or '(none)'!r}",
            source_path=str(source_path),
        )
    return fmt


def _decode(content: bytes, source_path: str) -> str:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(
            f"Content is not valid UTF-8 (byte offset {exc.start})",
            source_path=source_path,
        ) from exc
    return text.removeprefix("\ufeff")


def _parse_yaml(text: str, source_path: str) -> Any:
    try:
        return yaml.load(text, Loader=_UniqueKeyLoader)  # noqa: S506
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        problem = exc.problem or "invalid YAML"
        raise ParseError(
            problem,
            source_path=source_path,
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
        ) from exc
    except yaml.YAMLError as exc:
        raise ParseError(str(exc), source_path=source_path) from exc


def _parse_json(text: str, source_path: str) -> Any:
    try:
        return json.loads(text, object_pairs_hook=_reject_duplicate_pairs)
    except json.JSONDecodeError as exc:
        raise ParseError(
            exc.msg, source_path=source_path, line=exc.lineno, column=exc.colno,
        ) from exc
    except _DuplicateJsonKey as exc:
        raise ParseError(
            f"found duplicate key {exc.args[0]!r}", source_path=source_path,
        ) from exc


def load_document(
    content: bytes,
    source_path: str,
    *,
    kind: DocumentKind,
    base_directory: str | Path,
    fmt: DocumentFormat | None = None,
) -> Document:
    """Parse ``content`` into a Document of the given kind.

    Raises EncodingError for non-UTF-8 input and ParseError for malformed
    syntax (with 1-based line/column when the parser reports them).
    """
    fmt = fmt or infer_format(source_path)
    text = _decode(content, source_path)
    if fmt is DocumentFormat.YAML:
        raw = _parse_yaml(text, source_path)
        if raw is None:
            raw = {}
    else:
        raw = _parse_json(text, source_path)

    logger.debug("Loaded %s document %s (%s)", kind.value, source_path, fmt.value)
    return Document(
        kind=kind,
        source_path=source_path,
        base_directory=Path(base_directory),
        raw=raw,
        format=fmt,
    )
