"""CLI handler for ``structfile resolve``."""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path

from structfile.config import ValidationOptions
from structfile.models import RunState
from structfile.orchestrator import Orchestrator
from structfile.report import format_definitions_json, format_definitions_table


def run_resolve(args: Namespace) -> None:
    root = Path(args.root)
    orchestrator = Orchestrator(
        root, ValidationOptions(validate_paths=False, hooks_enabled=False),
    )
    report = orchestrator.run()
    if report.state is RunState.ABORTED:
        assert report.fatal is not None
        print(f"Error: {report.fatal.message}", file=sys.stderr)
        sys.exit(2)

    merged = [orchestrator.resolution.merged[k] for k in sorted(
        orchestrator.resolution.merged, key=lambda k: (k[0].value, k[1]),
    )]
    if not merged:
        print("No patterns or templates resolved.", file=sys.stderr)
        sys.exit(1)

    for violation in orchestrator.resolution.violations:
        print(f"Warning: {violation.describe()}", file=sys.stderr)

    if args.json:
        print(format_definitions_json(merged))
    else:
        print(format_definitions_table(merged))
