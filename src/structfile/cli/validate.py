"""CLI handler for ``structfile validate``."""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path

from structfile.config import ValidationOptions
from structfile.models import RunState
from structfile.orchestrator import validate
from structfile.report import format_json, format_table

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2


def run_validate(args: Namespace) -> None:
    root = Path(args.root)
    if not root.is_dir():
        print(f"Error: project root does not exist: {root}", file=sys.stderr)
        sys.exit(EXIT_ABORTED)

    options = ValidationOptions(
        strict_mode=args.strict,
        validate_paths=args.validate_paths,
        hooks_enabled=args.hooks_enabled,
        max_workers=max(1, args.workers),
        report_path=args.output or None,
    )
    report = validate(root, options)

    if args.json:
        print(format_json(report))
    else:
        print(format_table(report))

    if report.state is RunState.ABORTED:
        sys.exit(EXIT_ABORTED)
    sys.exit(EXIT_PASSED if report.passed else EXIT_FAILED)
