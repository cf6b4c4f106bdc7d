"""Shared machinery for the routed (asymmetric) and peer (symmetric) scoreboards.

Each engine instance owns its stores, counters, sink and lock. Nothing is
module-level, so concurrent runs are isolated by constructing one engine per
run.

Ingestion is lookup-then-branch under one lock: either a stored counterpart
exists and the pair is compared and consumed, or the record is parked and
control returns. No call ever waits for a counterpart.

Events are queued in an outbox while the state lock is held and delivered to
the sink after it is released, in queue order. Sink listeners may therefore
read the engine (or ingest into it) without deadlocking.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections import deque
from collections.abc import Callable, Mapping
from contextlib import contextmanager
from typing import Any, ClassVar

import config
from scoreboard.events import Duplicate, Event, MissingObserved, UnmatchedObserved
from scoreboard.guards import check_backlog
from scoreboard.models import (
    Counters,
    Record,
    Role,
    ScoreboardClosedError,
    StreamTag,
    SummaryReport,
    coerce_record,
)
from scoreboard.sink import EventSink
from scoreboard.store import KeyedStore

logger = logging.getLogger(__name__)


class Scoreboard:
    """Base class: state, duplicate handling, parking and finalization.

    Subclasses define ``variant``, the roles they serve (``_handlers``), the
    late-correlation sweep, and which stores hold orphans at finalization.

    The sink is owned by exactly one engine; passing a sink already attached
    to another engine raises ValueError.
    """

    variant: ClassVar[str] = ""

    def __init__(
        self,
        name: str | None = None,
        sink: EventSink | None = None,
        backlog_warn_threshold: int = config.BACKLOG_WARN_THRESHOLD,
    ) -> None:
        self.name = name or self.variant
        self.sink = sink if sink is not None else EventSink(self.name)
        self.sink.attach(self)
        self.counters = Counters()
        self.backlog_warn_threshold = backlog_warn_threshold
        self.expected = KeyedStore("expected")
        self._lock = threading.Lock()
        # Reentrant so a listener that ingests can drain its own events
        self._dispatch_lock = threading.RLock()
        self._outbox: deque[Event | SummaryReport] = deque()
        self._report: SummaryReport | None = None
        self._backlog_warned: dict[str, bool] = {}

    # ------------------------------------------------------------------
    # Producer interface
    # ------------------------------------------------------------------

    def _handlers(self) -> dict[Role, Callable[[StreamTag, Record], None]]:
        raise NotImplementedError

    def ingest(self, tag: StreamTag | str, record: Record | Mapping[str, Any]) -> None:
        """Accept one record from the stream named by ``tag``.

        Raises:
            ValueError: If this engine does not serve the tag's role.
            MalformedRecordError: If the record has no usable key.
            ScoreboardClosedError: If finalize() has already run.
        """
        if not isinstance(tag, StreamTag):
            tag = StreamTag.parse(tag)
        handler = self._handlers().get(tag.role)
        if handler is None:
            served = ", ".join(role.value for role in self._handlers())
            raise ValueError(
                f"{self.name}: stream {tag} not served (roles: {served})"
            )
        handler(tag, coerce_record(record))

    def port(self, tag: StreamTag | str) -> Callable[[Record | Mapping[str, Any]], None]:
        """Bind a stream tag, returning ``emit(record)`` for a single-stream producer."""
        if not isinstance(tag, StreamTag):
            tag = StreamTag.parse(tag)
        if tag.role not in self._handlers():
            raise ValueError(f"{self.name}: stream {tag} not served")
        return functools.partial(self.ingest, tag)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _stores(self) -> list[KeyedStore]:
        return [self.expected]

    def outstanding(self) -> dict[str, int]:
        """Parked-record count per store."""
        with self._lock:
            return {store.name: len(store) for store in self._stores()}

    @property
    def finalized(self) -> bool:
        return self._report is not None

    # ------------------------------------------------------------------
    # Helpers for subclasses (call with self._lock held, via _guarded)
    # ------------------------------------------------------------------

    @contextmanager
    def _guarded(self):
        """Hold the state lock for the body, then deliver queued events."""
        try:
            with self._lock:
                yield
        finally:
            self._dispatch()

    def _dispatch(self) -> None:
        with self._dispatch_lock:
            while self._outbox:
                item = self._outbox.popleft()
                if isinstance(item, SummaryReport):
                    self.sink.close(item)
                else:
                    self.sink.emit(item)

    def _check_open(self) -> None:
        if self._report is not None:
            raise ScoreboardClosedError(
                f"{self.name}: finalize() already ran; no further records accepted"
            )

    def _emit(self, event: Event) -> None:
        self._outbox.append(event)

    def _flag_duplicate(self, store: KeyedStore, record: Record) -> None:
        if record.key in store:
            self.counters.duplicates += 1
            self._emit(Duplicate(key=record.key, stream=str(record.origin)))

    def _park(self, store: KeyedStore, record: Record) -> None:
        store.put(record)
        within = check_backlog(
            self.name,
            store.name,
            len(store),
            self.backlog_warn_threshold,
            already_warned=self._backlog_warned.get(store.name, False),
        )
        self._backlog_warned[store.name] = not within

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def _sweep(self) -> None:
        """Correlate any pair both of whose halves are still parked."""

    def _orphan_observed_store(self) -> KeyedStore | None:
        return None

    def _build_report(self, missing: list[Record], unmatched: list[Record]) -> SummaryReport:
        raise NotImplementedError

    def finalize(self) -> SummaryReport:
        """Sweep, report every uncorrelated record, and close the run.

        Calling it again returns the same report without re-emitting events.
        """
        with self._guarded():
            if self._report is not None:
                return self._report

            self._sweep()

            missing = self.expected.drain()
            for record in missing:
                self._emit(MissingObserved(key=record.key, expected=str(record)))

            unmatched: list[Record] = []
            pending = self._orphan_observed_store()
            if pending is not None:
                unmatched = pending.drain()
                for record in unmatched:
                    self._emit(UnmatchedObserved(key=record.key, observed=str(record)))

            report = self._build_report(missing, unmatched)
            self._report = report
            self._outbox.append(report)

        _log_report(self.name, report)
        return report


def _log_report(name: str, report: SummaryReport) -> None:
    if report.is_clean:
        logger.info(
            "Scoreboard PASSED for %s (%s): %d matched, 0 mismatches, "
            "%d duplicates",
            name, report.variant, report.match_count, report.duplicate_count,
        )
    else:
        logger.warning(
            "Scoreboard FAILED for %s (%s): matched=%d, mismatched=%d, "
            "extra=%s, missing=%d, unmatched_observed=%s, duplicates=%d",
            name, report.variant, report.match_count, report.mismatch_count,
            report.extra_count, report.missing_count,
            report.unmatched_observed_count, report.duplicate_count,
        )
