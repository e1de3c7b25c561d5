"""Diagnostic channel for handler misses, failures and configuration warnings."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import logging
from typing import Any

from .events.bus import EventBus
from .events.topics import DIAGNOSTIC_REPORTED

LOGGER = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    RESOLUTION_MISS = "resolution_miss"
    HANDLER_FAILURE = "handler_failure"
    PERSISTENCE_FAILURE = "persistence_failure"
    UNKNOWN_EVENT = "unknown_event"


@dataclass(frozen=True)
class DiagnosticRecord:
    """Structured record consumed by logging and telemetry collaborators."""

    kind: DiagnosticKind
    component: str
    event_name: str
    description: str
    error_type: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "component": self.component,
            "event_name": self.event_name,
            "description": self.description,
            "error_type": self.error_type,
            "timestamp": self.timestamp.isoformat(),
        }


class DiagnosticSink:
    """Collects diagnostic records, logs them and republishes them on a bus.

    Resolution misses are recorded only when ``report_missing_handlers`` is
    enabled; with it disabled an unconfigured handler is a silent no-op.
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        max_records: int = 200,
        report_missing_handlers: bool = True,
    ) -> None:
        self._bus = bus
        self._records: deque[DiagnosticRecord] = deque(maxlen=max(1, max_records))
        self.report_missing_handlers = report_missing_handlers

    def bind_bus(self, bus: EventBus) -> None:
        """Republish future records on ``bus``."""
        self._bus = bus

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DiagnosticRecord]:
        return iter(tuple(self._records))

    @property
    def records(self) -> list[DiagnosticRecord]:
        return list(self._records)

    def of_kind(self, kind: DiagnosticKind) -> list[DiagnosticRecord]:
        return [record for record in self._records if record.kind is kind]

    def clear(self) -> None:
        self._records.clear()

    def report(self, record: DiagnosticRecord) -> DiagnosticRecord | None:
        if record.kind is DiagnosticKind.RESOLUTION_MISS and not self.report_missing_handlers:
            return None
        self._records.append(record)
        level = logging.DEBUG if record.kind is DiagnosticKind.RESOLUTION_MISS else logging.INFO
        LOGGER.log(
            level,
            f"diagnostic.{record.kind.value}",
            extra={
                "event": f"diagnostic.{record.kind.value}",
                "component": record.component,
                "event_name": record.event_name,
                "description": record.description,
                "error_type": record.error_type,
            },
        )
        if self._bus is not None:
            self._bus.publish(DIAGNOSTIC_REPORTED, record)
        return record

    def resolution_miss(self, component: str, event_name: str) -> DiagnosticRecord | None:
        return self.report(
            DiagnosticRecord(
                kind=DiagnosticKind.RESOLUTION_MISS,
                component=component,
                event_name=event_name,
                description=f"No handler configured at event.{event_name}",
            )
        )

    def handler_failure(
        self, component: str, event_name: str, exc: BaseException
    ) -> DiagnosticRecord | None:
        return self.report(
            DiagnosticRecord(
                kind=DiagnosticKind.HANDLER_FAILURE,
                component=component,
                event_name=event_name,
                description=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
            )
        )

    def persistence_failure(self, atom: str, description: str) -> DiagnosticRecord | None:
        return self.report(
            DiagnosticRecord(
                kind=DiagnosticKind.PERSISTENCE_FAILURE,
                component=atom,
                event_name="",
                description=description,
            )
        )

    def unknown_event(
        self, component: str, event_name: str, description: str
    ) -> DiagnosticRecord | None:
        return self.report(
            DiagnosticRecord(
                kind=DiagnosticKind.UNKNOWN_EVENT,
                component=component,
                event_name=event_name,
                description=description,
            )
        )
