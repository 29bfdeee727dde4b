"""Audit notifications for payroll run transitions."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from planilla_engine.services.ports import AuditSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunTransitionEvent:
    """Something happened to a payroll run."""

    run_id: UUID
    tenant_id: UUID
    action: str  # created, processed, approved, paid, deleted
    from_status: str | None
    to_status: str | None
    actor: str | None
    version: int
    occurred_at: datetime
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)


class LoggingAuditSink:
    """Writes transitions to the ``planilla_engine.audit`` logger."""

    def __init__(self, logger_name: str = "planilla_engine.audit"):
        self._logger = logging.getLogger(logger_name)

    def record(self, event: RunTransitionEvent) -> None:
        self._logger.info("payroll_run.%s %s", event.action, event.to_json())


class MemoryAuditSink:
    """Keeps events in a list. Handy for tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[RunTransitionEvent] = []

    def record(self, event: RunTransitionEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]


def notify(sink: AuditSink | None, event: RunTransitionEvent) -> None:
    """Hand an event to the sink, isolating sink failures from the caller.

    The transition has already been committed when this runs, so a failing
    sink is logged, not raised.
    """
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:
        logger.exception(
            "Audit sink %s failed for run %s action %s",
            sink,
            event.run_id,
            event.action,
        )
