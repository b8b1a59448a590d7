"""Synapse — lifecycle events for batches and commits.

Every job transition, dismissal and commit produces a SynapseEvent.  Events
sharing a ``correlation_id`` (``batch:<id>``) form the trace of one batch.
The bus keeps events in memory and, when ``persist`` is set, also appends
them to ``~/.scout/traces/<correlation_id>.jsonl``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from scout.utils.clock import now_utc

logger = structlog.get_logger().bind(component="synapse")

_TRACE_DIR = Path.home() / ".scout" / "traces"


def batch_correlation_id(batch_id: int) -> str:
    return f"batch:{batch_id}"


class SynapseEvent(BaseModel):
    """A single pipeline event."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(description="Ties this event to one batch lifecycle")
    event_type: str = Field(
        description="Type: batch_created, dispatch, job_complete, job_error, "
        "job_discarded, batch_dismissed, commit, export"
    )
    source: str = Field(description="Component that emitted this event (e.g., 'pipeline.orchestrator')")
    target: str = Field(default="", description="Job the event concerns, if any")
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str = Field(default="", description="Error message if this is an error event")
    timestamp: datetime = Field(default_factory=now_utc)


class SynapseTrace(BaseModel):
    """All events of one correlation_id, in time order."""

    correlation_id: str
    events: list[SynapseEvent] = Field(default_factory=list)
    total_duration_ms: float = 0.0
    success: bool = True
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def of_type(self, event_type: str) -> list[SynapseEvent]:
        return [e for e in self.events if e.event_type == event_type]


class SynapseEventBus:
    """In-memory event bus with optional JSONL persistence."""

    def __init__(self, trace_dir: Path | None = None, persist: bool = False) -> None:
        self._events: list[SynapseEvent] = []
        self._trace_dir = trace_dir or _TRACE_DIR
        self._persist = persist

    def emit(self, event: SynapseEvent) -> None:
        self._events.append(event)
        if self._persist:
            self._write_to_file(event)

    def _write_to_file(self, event: SynapseEvent) -> None:
        try:
            self._trace_dir.mkdir(parents=True, exist_ok=True)
            trace_file = self._trace_dir / f"{event.correlation_id.replace(':', '_')}.jsonl"
            with trace_file.open("a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")
        except OSError as exc:
            # Tracing never takes the pipeline down
            logger.warning("trace_write_failed", error=str(exc))

    def get_trace(self, correlation_id: str) -> SynapseTrace:
        events = sorted(
            (e for e in self._events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )
        trace = SynapseTrace(correlation_id=correlation_id, events=events)
        if events:
            trace.started_at = events[0].timestamp
            trace.completed_at = events[-1].timestamp
            total = (trace.completed_at - trace.started_at).total_seconds() * 1000
            trace.total_duration_ms = round(total, 2)
            trace.success = not any(e.error for e in events)
        return trace

    def clear(self) -> None:
        """Clear in-memory events (does not delete files)."""
        self._events.clear()

    @property
    def event_count(self) -> int:
        return len(self._events)
