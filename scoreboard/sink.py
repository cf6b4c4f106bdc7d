"""Append-only, ordered sink for scoreboard signals.

Every event is appended under a lock, logged at the level implied by its
severity, and passed to any subscribed listeners. The sink ends with one
terminal SummaryReport per run.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import fields
from typing import Any

import polars as pl

from scoreboard.events import Event, Severity
from scoreboard.models import SummaryReport

logger = logging.getLogger(__name__)

# Matches are the common case; keep them out of INFO-level run logs.
_LOG_LEVELS = {
    Severity.INFO: logging.DEBUG,
    Severity.WARNING: logging.WARNING,
    Severity.FAILURE: logging.ERROR,
}


class EventSink:
    """Collects events in emission order.

    Usage:
        sink = EventSink()
        sink.subscribe(lambda ev: print(ev.describe()))
        engine = RoutedScoreboard(sink=sink)
        ...
        engine.finalize()
        df = sink.to_frame()
    """

    def __init__(self, name: str = "scoreboard") -> None:
        self.name = name
        self._events: list[Event] = []
        self._summary: SummaryReport | None = None
        self._listeners: list[Callable[[Any], None]] = []
        self._owner: Any = None
        self._lock = threading.Lock()

    def attach(self, owner: Any) -> None:
        """Bind the sink to the one engine whose run it records.

        Raises:
            ValueError: If the sink is closed or already bound to another engine.
        """
        with self._lock:
            if self._summary is not None:
                raise ValueError(f"sink {self.name!r} is closed; use a new sink per run")
            if self._owner is not None and self._owner is not owner:
                raise ValueError(
                    f"sink {self.name!r} already records another engine's run"
                )
            self._owner = owner

    def subscribe(self, listener: Callable[[Any], None]) -> None:
        """Register a callback invoked with every event and the terminal summary."""
        with self._lock:
            self._listeners.append(listener)

    def emit(self, event: Event) -> None:
        with self._lock:
            if self._summary is not None:
                raise RuntimeError(f"sink {self.name!r} is closed; summary already emitted")
            self._events.append(event)
            listeners = list(self._listeners)
        logger.log(_LOG_LEVELS[event.severity], "[%s] %s", self.name, event.describe())
        for listener in listeners:
            listener(event)

    def close(self, summary: SummaryReport) -> None:
        """Append the terminal summary. Nothing may be emitted afterwards."""
        with self._lock:
            if self._summary is not None:
                return
            self._summary = summary
            listeners = list(self._listeners)
        for listener in listeners:
            listener(summary)

    @property
    def summary(self) -> SummaryReport | None:
        return self._summary

    @property
    def events(self) -> tuple[Event, ...]:
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def of_type(self, event_type: type) -> list[Any]:
        return [ev for ev in self.events if isinstance(ev, event_type)]

    def failures(self) -> list[Event]:
        return [ev for ev in self.events if ev.severity is Severity.FAILURE]

    def to_frame(self) -> pl.DataFrame:
        """One row per event. Values are rendered as strings so mixed payload
        types (ints, hex strings, floats) share a column."""
        rows: list[dict[str, Any]] = []
        for seq, event in enumerate(self.events):
            row: dict[str, Any] = {
                "seq": seq,
                "event": type(event).__name__,
                "severity": event.severity.value,
                "key": event.key,
                "dimension": None,
                "expected": None,
                "observed": None,
                "stream": None,
            }
            for f in fields(event):
                if f.name == "key":
                    continue
                value = getattr(event, f.name)
                row[f.name] = None if value is None else str(value)
            rows.append(row)

        schema = {
            "seq": pl.Int64,
            "event": pl.Utf8,
            "severity": pl.Utf8,
            "key": pl.Int64,
            "dimension": pl.Utf8,
            "expected": pl.Utf8,
            "observed": pl.Utf8,
            "stream": pl.Utf8,
        }
        if not rows:
            return pl.DataFrame(schema=schema)
        return pl.DataFrame(rows, schema=schema)
