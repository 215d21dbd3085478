"""Hook registry -- in-memory index of ``.structure/hooks`` scripts.

The registry never spawns processes. It builds one HookDescriptor per
executable hook file, applies ``config.yaml`` overrides, and exposes an
invocation contract that an external ProcessRunner honors:

  - exit code 0 is success, anything else is ``HookFailed``
  - a runner raising ``TimeoutError`` is ``HookTimeout``
  - both are downgraded to warnings for hooks with ``ignore-errors``
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

from structfile.config import DEFAULT_HOOK_TIMEOUT, HookSettings, RunSettings
from structfile.errors import HookNotFoundError
from structfile.filesystem import DirEntry
from structfile.models import (
    HookDescriptor,
    Severity,
    Violation,
    ViolationKind,
    make_violation,
)
from structfile.schema.fields import NAME_PATTERN

logger = logging.getLogger(__name__)

KNOWN_HOOKS = frozenset({
    "pre-commit",
    "post-commit",
    "pre-push",
    "pre-update",
    "post-update",
    "pre-validate",
    "post-validate",
    "pre-generate",
    "post-generate",
})

_NAME_RE = re.compile(NAME_PATTERN)


@runtime_checkable
class ProcessRunner(Protocol):
    """Runs an external command. Implemented by callers, not by structfile.

    Must raise ``TimeoutError`` (after cancelling the process) when the
    command outlives ``timeout`` seconds.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None,
        timeout: float,
    ) -> tuple[int, str, str]: ...


@dataclass(frozen=True)
class HookResult:
    name: str
    ran: bool
    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    violation: Violation | None = None


def hook_name(file_name: str) -> str:
    """``pre-commit.sh`` -> ``pre-commit``."""
    return PurePosixPath(file_name).stem


def _pick(
    override: HookSettings | None, default: HookSettings, attr: str, fallback: Any,
) -> Any:
    for source in (override, default):
        value = getattr(source, attr) if source is not None else None
        if value is not None:
            return value
    return fallback


class HookRegistry:
    """In-memory registry of hook descriptors, keyed by hook name."""

    def __init__(self, hooks_dir: Path, *, display_prefix: str = ".structure/hooks") -> None:
        self.hooks_dir = hooks_dir
        self.display_prefix = display_prefix
        self._hooks: dict[str, HookDescriptor] = {}

    def _display(self, file_name: str) -> str:
        return f"{self.display_prefix}/{file_name}"

    def register(self, descriptor: HookDescriptor) -> None:
        """Raises ValueError if a hook with the same name is already registered."""
        if descriptor.name in self._hooks:
            raise ValueError(f"Duplicate hook name registered: {descriptor.name!r}")
        self._hooks[descriptor.name] = descriptor

    def get(self, name: str) -> HookDescriptor | None:
        return self._hooks.get(name)

    def all(self) -> list[HookDescriptor]:
        return list(self._hooks.values())

    def __len__(self) -> int:
        return len(self._hooks)

    def scan(
        self,
        entries: Sequence[DirEntry],
        settings: RunSettings,
        *,
        config_path: str = ".structure/config.yaml",
    ) -> list[Violation]:
        """Index a hooks directory listing against the config overrides."""
        violations: list[Violation] = []
        claimed: dict[str, str] = {}

        for entry in entries:
            if entry.is_dir or entry.name.startswith((".", "_")):
                continue
            name = hook_name(entry.name)
            override = settings.override_for(name)
            ignore_errors = bool(
                _pick(override, settings.hook_defaults, "ignore_errors", False)
            )

            if not entry.is_executable:
                if name in KNOWN_HOOKS:
                    violations.append(make_violation(
                        self._display(entry.name),
                        "",
                        ViolationKind.NOT_EXECUTABLE,
                        f"Hook {name!r} is not executable",
                        severity=Severity.WARNING if ignore_errors else None,
                    ))
                else:
                    logger.debug("Skipping non-executable file in hooks dir: %s", entry.name)
                continue

            if not _NAME_RE.fullmatch(name):
                logger.warning("Skipping hook with invalid name: %s", entry.name)
                violations.append(make_violation(
                    self._display(entry.name),
                    "",
                    ViolationKind.CONSTRAINT_VIOLATION,
                    f"Hook name {name!r} does not match {NAME_PATTERN}",
                    severity=Severity.WARNING,
                ))
                continue

            if name in claimed:
                violations.append(make_violation(
                    self._display(entry.name),
                    "",
                    ViolationKind.DANGLING_HOOK_REFERENCE,
                    f"Hook name {name!r} is already provided by {claimed[name]}",
                ))
                continue
            claimed[name] = entry.name

            self.register(HookDescriptor(
                name=name,
                script_path=self.hooks_dir / entry.name,
                timeout_seconds=_pick(
                    override, settings.hook_defaults, "timeout", DEFAULT_HOOK_TIMEOUT,
                ),
                enabled=override.enabled if override and override.enabled is not None else True,
                parallel=bool(_pick(override, settings.hook_defaults, "parallel", False)),
                ignore_errors=ignore_errors,
            ))

        present = {hook_name(e.name) for e in entries if not e.is_dir}
        declared: set[str] = set()
        for index, name, _ in settings.hook_overrides:
            if name in declared:
                violations.append(make_violation(
                    config_path,
                    f"hooks.overrides[{index}].name",
                    ViolationKind.DANGLING_HOOK_REFERENCE,
                    f"Override for hook {name!r} is declared more than once",
                ))
                continue
            declared.add(name)
            if name not in present:
                violations.append(make_violation(
                    config_path,
                    f"hooks.overrides[{index}].name",
                    ViolationKind.DANGLING_HOOK_REFERENCE,
                    f"Override for hook {name!r} has no matching file in {self.display_prefix}",
                ))

        logger.debug("Indexed %d hooks from %s", len(self._hooks), self.hooks_dir)
        return violations

    def invoke(
        self,
        name: str,
        runner: ProcessRunner,
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> HookResult:
        """Run one hook through ``runner`` and translate the outcome."""
        descriptor = self._hooks.get(name)
        if descriptor is None:
            raise HookNotFoundError(f"No hook registered under {name!r}")
        if not descriptor.enabled:
            logger.info("Hook %s is disabled, skipping", name)
            return HookResult(name=name, ran=False, success=True)

        display = self._display(descriptor.script_path.name)
        severity = Severity.WARNING if descriptor.ignore_errors else None
        try:
            exit_code, stdout, stderr = runner.run(
                [str(descriptor.script_path)],
                cwd=cwd,
                env=env,
                timeout=descriptor.timeout_seconds,
            )
        except TimeoutError:
            logger.warning("Hook %s timed out after %ss", name, descriptor.timeout_seconds)
            return HookResult(
                name=name,
                ran=True,
                success=descriptor.ignore_errors,
                violation=make_violation(
                    display,
                    "",
                    ViolationKind.HOOK_TIMEOUT,
                    f"Hook {name!r} exceeded its {descriptor.timeout_seconds}s timeout",
                    severity=severity,
                ),
            )

        if exit_code == 0:
            return HookResult(
                name=name, ran=True, success=True, exit_code=0, stdout=stdout, stderr=stderr,
            )
        return HookResult(
            name=name,
            ran=True,
            success=descriptor.ignore_errors,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            violation=make_violation(
                display,
                "",
                ViolationKind.HOOK_FAILED,
                f"Hook {name!r} exited with status {exit_code}",
                severity=severity,
            ),
        )

    def invoke_all(
        self,
        names: Sequence[str],
        runner: ProcessRunner,
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        max_workers: int = 4,
    ) -> list[HookResult]:
        """Run hooks in declared order.

        Consecutive hooks flagged ``parallel`` run together on a thread pool;
        results are returned in declared order either way.
        """
        results: list[HookResult] = []
        batch: list[str] = []

        def flush() -> None:
            if not batch:
                return
            if len(batch) == 1:
                results.append(self.invoke(batch[0], runner, cwd=cwd, env=env))
            else:
                with ThreadPoolExecutor(max_workers=max_workers) as pool:
                    results.extend(pool.map(
                        lambda n: self.invoke(n, runner, cwd=cwd, env=env), batch,
                    ))
            batch.clear()

        for name in names:
            descriptor = self._hooks.get(name)
            if descriptor is None:
                raise HookNotFoundError(f"No hook registered under {name!r}")
            if descriptor.parallel:
                batch.append(name)
                continue
            flush()
            results.append(self.invoke(name, runner, cwd=cwd, env=env))
        flush()
        return results
