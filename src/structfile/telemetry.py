"""Structured telemetry for validation runs.

The orchestrator emits one event per state-machine stage:
``structure.discover``, ``structure.load``, ``structure.validate`` and
``structure.report``. Sinks decide what to do with them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class TelemetryEvent:
    """Single structured telemetry event."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp_ms: float = field(default_factory=lambda: time.time() * 1000)


@runtime_checkable
class TelemetrySink(Protocol):
    def emit(self, event: TelemetryEvent) -> None: ...


class NoOpTelemetrySink:
    """Default sink that records nothing."""

    def emit(self, event: TelemetryEvent) -> None:
        _ = event


class InMemoryTelemetrySink:
    """Test-friendly sink that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    def emit(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def last(self, name: str) -> TelemetryEvent | None:
        for event in reversed(self.events):
            if event.name == name:
                return event
        return None


class LoggerTelemetrySink:
    """Sink that forwards events to Python logging at INFO level."""

    def __init__(self, logger_name: str = "structfile.telemetry") -> None:
        self.logger = logging.getLogger(logger_name)

    def emit(self, event: TelemetryEvent) -> None:
        self.logger.info(
            "%s %s",
            event.name,
            " ".join(f"{k}={v}" for k, v in sorted(event.attributes.items())),
            extra={"event_name": event.name, "event_timestamp_ms": event.timestamp_ms},
        )
