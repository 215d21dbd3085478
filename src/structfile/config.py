"""Run configuration: caller options layered over ``.structure/config.yaml``.

Example usage::

    options = ValidationOptions(strict_mode=True, hooks_enabled=False)
    report = validate("/path/to/project", options)

Any option left as ``None`` falls back to the project's ``config.yaml`` and
then to the defaults below.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from structfile.models import Document

logger = logging.getLogger(__name__)

DEFAULT_STRICT_MODE = False
DEFAULT_VALIDATE_PATHS = True
DEFAULT_HOOKS_ENABLED = True
DEFAULT_HOOK_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 4
ALWAYS_IGNORED = (".git", ".structure")


@dataclass
class ValidationOptions:
    """Caller-side switches for one ``validate()`` run.

    Attributes:
        strict_mode: Report unknown fields as errors instead of warnings.
        validate_paths: Check declared paths exist on disk.
        hooks_enabled: Scan and index ``.structure/hooks``.
        max_workers: Thread-pool width for loading and per-document
            validation. ``1`` runs everything on the calling thread.
        report_path: When set, the JSON report is written here at the end
            of the run.
    """

    strict_mode: bool | None = None
    validate_paths: bool | None = None
    hooks_enabled: bool | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    report_path: str | Path | None = None


@dataclass(frozen=True)
class HookSettings:
    enabled: bool | None = None
    timeout: int | None = None
    parallel: bool | None = None
    ignore_errors: bool | None = None


@dataclass(frozen=True)
class RunSettings:
    """Effective settings after layering options, config file and defaults."""

    strict_mode: bool = DEFAULT_STRICT_MODE
    validate_paths: bool = DEFAULT_VALIDATE_PATHS
    hooks_enabled: bool = DEFAULT_HOOKS_ENABLED
    ignore: tuple[str, ...] = ALWAYS_IGNORED
    hook_defaults: HookSettings = field(default_factory=HookSettings)
    # (index in hooks.overrides, hook name, settings)
    hook_overrides: tuple[tuple[int, str, HookSettings], ...] = ()

    def override_for(self, hook_name: str) -> HookSettings | None:
        for _, name, settings in self.hook_overrides:
            if name == hook_name:
                return settings
        return None


def _typed(mapping: dict[str, Any], key: str, expected: type) -> Any:
    """Read ``key`` only when it has the expected type.

    Ill-typed values are already reported by the schema validator; here they
    are ignored so a bad config cannot break the run.
    """
    value = mapping.get(key)
    if isinstance(value, bool) and expected is int:
        return None
    return value if isinstance(value, expected) else None


def _hook_settings(mapping: dict[str, Any]) -> HookSettings:
    return HookSettings(
        enabled=_typed(mapping, "enabled", bool),
        timeout=_typed(mapping, "timeout", int),
        parallel=_typed(mapping, "parallel", bool),
        ignore_errors=_typed(mapping, "ignore-errors", bool),
    )


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_settings(
    options: ValidationOptions | None, config: Document | None,
) -> RunSettings:
    options = options or ValidationOptions()
    raw: dict[str, Any] = {}
    if config is not None and isinstance(config.raw, dict):
        raw = config.raw

    hooks_raw = raw.get("hooks") if isinstance(raw.get("hooks"), dict) else {}
    overrides: list[tuple[int, str, HookSettings]] = []
    overrides_raw = hooks_raw.get("overrides")
    if isinstance(overrides_raw, list):
        for index, entry in enumerate(overrides_raw):
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                overrides.append((index, entry["name"], _hook_settings(entry)))

    ignore = list(ALWAYS_IGNORED)
    ignore_raw = raw.get("ignore")
    if isinstance(ignore_raw, list):
        ignore.extend(v for v in ignore_raw if isinstance(v, str) and v not in ignore)

    hook_defaults = _hook_settings(hooks_raw)
    settings = RunSettings(
        strict_mode=_first(
            options.strict_mode, _typed(raw, "strict-mode", bool), DEFAULT_STRICT_MODE,
        ),
        validate_paths=_first(
            options.validate_paths,
            _typed(raw, "validate-paths", bool),
            DEFAULT_VALIDATE_PATHS,
        ),
        hooks_enabled=_first(
            options.hooks_enabled, hook_defaults.enabled, DEFAULT_HOOKS_ENABLED,
        ),
        ignore=tuple(ignore),
        hook_defaults=hook_defaults,
        hook_overrides=tuple(overrides),
    )
    logger.debug("Resolved run settings: %s", settings)
    return settings
