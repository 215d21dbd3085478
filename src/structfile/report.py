"""Output formatters for validation reports: aligned table and JSON."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from structfile.graph import Category, MergedDefinition
from structfile.models import RunState, ValidationReport

logger = logging.getLogger(__name__)


def _row(cols: list[str], widths: list[int]) -> str:
    return "  ".join(c.ljust(w) for c, w in zip(cols, widths)).rstrip()


def format_table(report: ValidationReport) -> str:
    lines: list[str] = []
    lines.append("Structure Validation Report")
    lines.append("=" * 78)

    if report.state is RunState.ABORTED:
        assert report.fatal is not None
        lines.append(f"ABORTED: {report.fatal.kind.value}: {report.fatal.message}")
        return "\n".join(lines)

    if report.violations:
        hdr = ["Severity", "Kind", "Document", "Field"]
        widths = [8, 22, 34, 20]
        lines.append(_row(hdr, widths))
        lines.append("-" * 78)
        for v in report.violations:
            lines.append(
                _row([v.severity.value, v.kind.value, v.document_path, v.field_path], widths)
            )
            lines.append(f"    {v.message}")
        lines.append("-" * 78)
    else:
        lines.append("No violations.")

    n_docs = len(report.documents)
    lines.append(
        f"Result: {'PASSED' if report.passed else 'FAILED'}"
        f" | documents: {n_docs}"
        f" | errors: {len(report.errors())}"
        f" | warnings: {len(report.warnings())}"
    )
    return "\n".join(lines)


def format_json(report: ValidationReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def format_definitions_json(definitions: list[MergedDefinition]) -> str:
    payload: list[dict[str, Any]] = [d.to_dict() for d in definitions]
    return json.dumps(payload, indent=2, default=str)


def format_definitions_table(definitions: list[MergedDefinition]) -> str:
    lines: list[str] = []
    for d in definitions:
        noun = "rules" if d.category is Category.PATTERN else "variables"
        lines.append(f"{d.category.value} {d.name}  ({d.source_path})")
        lines.append(f"  lineage: {' -> '.join(d.lineage)}")
        lines.append(f"  {noun}: {', '.join(d.entry_names()) or '(none)'}")
        if d.structure:
            lines.append(f"  structure: {', '.join(e.name for e in d.structure)}")
    return "\n".join(lines)


def write_report(report: ValidationReport, path: Path) -> None:
    """Write the JSON report in a single write."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_json(report) + "\n", encoding="utf-8")
    logger.info("Wrote validation report to %s", path)
