"""structfile -- validation and pattern resolution for project structure files.

A project describes its layout in ``structure.yaml`` (or ``.yml`` / ``.json``)
and an optional ``.structure/`` tree of patterns, templates, config and
hooks. structfile loads, validates and cross-references all of it and
returns a single report.

Public API::

    from structfile import ValidationOptions, validate
    report = validate("path/to/project", ValidationOptions(strict_mode=True))
    for violation in report.violations:
        print(violation.describe())
"""

from structfile.config import ValidationOptions
from structfile.models import (
    RunState,
    Severity,
    ValidationReport,
    Violation,
    ViolationKind,
)
from structfile.orchestrator import Orchestrator, validate

__all__ = [
    "Orchestrator",
    "RunState",
    "Severity",
    "ValidationOptions",
    "ValidationReport",
    "Violation",
    "ViolationKind",
    "validate",
]
__version__ = "0.1.0"
