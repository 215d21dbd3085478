#!/usr/bin/env python3
"""CI enforcement: only the document loader may import a parser library.

Every other component works on already-loaded Documents, so ``yaml`` (and
``json`` for parsing) imports elsewhere are a layering leak. Report output
in ``report.py`` is the one allowed ``json`` user besides the loader.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

PARSER_MODULES = {"yaml": {"loader.py"}, "json": {"loader.py", "report.py"}}
SRC_DIR = Path(__file__).resolve().parent.parent / "src" / "structfile"


def check() -> list[str]:
    violations: list[str] = []
    for py_file in sorted(SRC_DIR.rglob("*.py")):
        try:
            tree = ast.parse(py_file.read_text())
        except SyntaxError:
            continue
        rel = py_file.relative_to(SRC_DIR)
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules = [alias.name for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.module:
                modules = [node.module]
            else:
                continue
            for module in modules:
                root = module.split(".")[0]
                allowed = PARSER_MODULES.get(root)
                if allowed is not None and py_file.name not in allowed:
                    violations.append(f"{rel}:{node.lineno}: import {module}")
    return violations


def main() -> None:
    violations = check()
    if violations:
        print("ERROR: parser imports found outside the document loader:")
        for v in violations:
            print(f"  {v}")
        sys.exit(1)
    print("OK: parser imports confined to the document loader")


if __name__ == "__main__":
    main()
