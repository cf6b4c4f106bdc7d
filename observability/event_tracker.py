"""RunTracker context manager: one RunEvent per replay step.

Usage:
    tracker = RunTracker()
    with tracker.track("REPLAY", "router_smoke") as event:
        for row in rows:
            engine.ingest(...)
        event.records_processed = len(rows)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class RunEvent:
    """Mutable event object; caller code sets counts inside the with block."""

    event_type: str
    run_name: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: float = 0.0
    status: str = "SUCCESS"
    error_message: str | None = None
    event_detail: str | None = None
    records_processed: int = 0
    records_per_second: float = 0.0


class RunTracker:
    """Tracks the steps of one scoreboard run and logs each on completion."""

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.events: list[RunEvent] = []

    @contextmanager
    def track(self, event_type: str, run_name: str):
        """Context manager that yields a RunEvent for the caller to populate."""
        event = RunEvent(event_type=event_type, run_name=run_name)
        event.started_at = datetime.now(timezone.utc)
        try:
            yield event
            # Preserve explicitly-set statuses (SKIPPED, FAILED)
            if event.status not in ("FAILED", "SKIPPED"):
                event.status = "SUCCESS"
        except Exception as e:
            event.status = "FAILED"
            event.error_message = str(e)[:4000]
            raise
        finally:
            event.completed_at = datetime.now(timezone.utc)
            event.duration_ms = (
                (event.completed_at - event.started_at).total_seconds() * 1000
            )
            if event.duration_ms > 0 and event.records_processed > 0:
                event.records_per_second = event.records_processed / (event.duration_ms / 1000)
            self._write_event(event)

    def _write_event(self, event: RunEvent) -> None:
        self.events.append(event)
        level = logging.ERROR if event.status == "FAILED" else logging.INFO
        logger.log(
            level,
            "Run %s step %s for %s: status=%s records=%d duration=%.1fms (%.0f rec/s)%s",
            self.run_id,
            event.event_type,
            event.run_name,
            event.status,
            event.records_processed,
            event.duration_ms,
            event.records_per_second,
            f" error={event.error_message}" if event.error_message else "",
        )
