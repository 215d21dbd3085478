"""Dump the static FieldSpec tables as JSON, for authoring docs and editors."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from structfile.schema.fields import FieldSpec
from structfile.schema.tables import SCHEMAS


def _field_to_dict(spec: FieldSpec) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": spec.type.value}
    if spec.required:
        payload["required"] = True
    if spec.constraints:
        payload["constraints"] = [
            {"kind": c.kind, "argument": c.argument} if c.argument is not None else {"kind": c.kind}
            for c in spec.constraints
        ]
    if spec.children:
        payload["fields"] = {child.name: _field_to_dict(child) for child in spec.children}
    if spec.items is not None:
        payload["items"] = _field_to_dict(spec.items)
    return payload


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("docs/structure.schema.json"),
        help="Path to write the schema tables.",
    )
    args = parser.parse_args()

    tables = {
        kind.value: {spec.name: _field_to_dict(spec) for spec in schema}
        for kind, schema in SCHEMAS.items()
    }
    output_path = args.output
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(tables, indent=2, default=list) + "\n", encoding="utf-8")
    print(f"Wrote schema tables to {output_path}")


if __name__ == "__main__":
    main()
