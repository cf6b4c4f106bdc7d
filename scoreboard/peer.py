"""Peer scoreboard: expected and observed are equal-standing streams.

Whichever half of a pair arrives second triggers the comparison; the first
half waits in its own store. There is no "extra" classification since either
side may legitimately lead. A disagreeing pair counts one mismatch, whatever
number of fields differ.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import config
from scoreboard.core import Scoreboard
from scoreboard.events import Match, Mismatch
from scoreboard.models import (
    EXPECTED,
    OBSERVED,
    Record,
    Role,
    StreamTag,
    SummaryReport,
    coerce_record,
)
from scoreboard.predicates import Comparator, payloads_equal
from scoreboard.sink import EventSink
from scoreboard.store import KeyedStore

PAYLOAD = "payload"


class PeerScoreboard(Scoreboard):
    """Symmetric scoreboard over one expected stream and one observed stream."""

    variant = "peer"

    def __init__(
        self,
        comparator: Comparator = payloads_equal,
        name: str | None = None,
        sink: EventSink | None = None,
        backlog_warn_threshold: int = config.BACKLOG_WARN_THRESHOLD,
    ) -> None:
        super().__init__(name=name, sink=sink, backlog_warn_threshold=backlog_warn_threshold)
        self.comparator = comparator
        self.pending_observed = KeyedStore("observed")

    def _handlers(self):
        return {
            Role.EXPECTED: self._on_expected,
            Role.OBSERVED: self._on_observed,
        }

    def _stores(self) -> list[KeyedStore]:
        return [self.expected, self.pending_observed]

    def ingest_expected(self, record: Record | Mapping[str, Any]) -> None:
        self._on_expected(EXPECTED, coerce_record(record))

    def ingest_observed(self, record: Record | Mapping[str, Any]) -> None:
        self._on_observed(OBSERVED, coerce_record(record))

    def _on_expected(self, tag: StreamTag, record: Record) -> None:
        record = record.tagged(tag)
        with self._guarded():
            self._check_open()
            self._flag_duplicate(self.expected, record)
            counterpart = self.pending_observed.take(record.key)
            if counterpart is None:
                self._park(self.expected, record)
                return
            # a parked duplicate is superseded by this record, not compared
            self.expected.take(record.key)
            self._compare(record, counterpart)

    def _on_observed(self, tag: StreamTag, record: Record) -> None:
        record = record.tagged(tag)
        with self._guarded():
            self._check_open()
            self._flag_duplicate(self.pending_observed, record)
            counterpart = self.expected.take(record.key)
            if counterpart is None:
                self._park(self.pending_observed, record)
                return
            self.pending_observed.take(record.key)
            self._compare(counterpart, record)

    def compare(self, expected: Record, observed: Record) -> bool:
        """Compare one correlated pair, counting and emitting the verdict."""
        with self._guarded():
            self._check_open()
            return self._compare(expected, observed)

    def _compare(self, expected: Record, observed: Record) -> bool:
        if self.comparator(expected, observed):
            self.counters.matches += 1
            self._emit(Match(key=expected.key, expected=str(expected), observed=str(observed)))
            return True
        self.counters.mismatches += 1
        self._emit(Mismatch(
            key=expected.key,
            dimension=PAYLOAD,
            expected=str(expected),
            observed=str(observed),
        ))
        return False

    def _sweep(self) -> None:
        for key in self.expected.keys():
            if key not in self.pending_observed:
                continue
            self._compare(self.expected.take(key), self.pending_observed.take(key))

    def _orphan_observed_store(self) -> KeyedStore:
        return self.pending_observed

    def _build_report(self, missing: list[Record], unmatched: list[Record]) -> SummaryReport:
        return SummaryReport(
            variant=self.variant,
            match_count=self.counters.matches,
            mismatch_count=self.counters.mismatches,
            missing_count=len(missing),
            unmatched_observed_count=len(unmatched),
            duplicate_count=self.counters.duplicates,
            missing_keys=[r.key for r in missing],
            unmatched_observed_keys=[r.key for r in unmatched],
        )
