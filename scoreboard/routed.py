"""Routed scoreboard: input ports establish expectations, output ports are checked.

Algorithm per record:
  - input:  duplicate check, then park (overwrite) in the expectation store
  - output: no expectation -> ExtraObserved (final, counted)
            expectation     -> consume it; check destination and each payload
                               field independently; one Mismatch per failing
                               dimension, or one Match if all agree
  - finalize: every expectation still parked -> MissingObserved

Mismatches are counted per failing dimension, so an output on the wrong port
with a corrupted data field counts two.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import config
from scoreboard.core import Scoreboard
from scoreboard.events import ExtraObserved, Match, Mismatch
from scoreboard.models import Record, Role, StreamTag, SummaryReport, coerce_record
from scoreboard.predicates import FieldDiffer, Router, address_bit_router, fieldwise_differences
from scoreboard.sink import EventSink

DESTINATION = "destination"


class RoutedScoreboard(Scoreboard):
    """Asymmetric scoreboard for a router with numbered input and output ports."""

    variant = "routed"

    def __init__(
        self,
        router: Router | None = None,
        differ: FieldDiffer = fieldwise_differences,
        name: str | None = None,
        sink: EventSink | None = None,
        backlog_warn_threshold: int = config.BACKLOG_WARN_THRESHOLD,
    ) -> None:
        super().__init__(name=name, sink=sink, backlog_warn_threshold=backlog_warn_threshold)
        self.router = router if router is not None else address_bit_router()
        self.differ = differ

    def _handlers(self):
        return {
            Role.INPUT: self._on_input,
            Role.OUTPUT: self._on_output,
        }

    def ingest_input(self, port: int, record: Record | Mapping[str, Any]) -> None:
        self._on_input(StreamTag.input(port), coerce_record(record))

    def ingest_output(self, port: int, record: Record | Mapping[str, Any]) -> None:
        self._on_output(StreamTag.output(port), coerce_record(record))

    def _on_input(self, tag: StreamTag, record: Record) -> None:
        record = record.tagged(tag)
        with self._guarded():
            self._check_open()
            self._flag_duplicate(self.expected, record)
            self._park(self.expected, record)

    def _on_output(self, tag: StreamTag, record: Record) -> None:
        observed = record.tagged(tag)
        with self._guarded():
            self._check_open()
            exp = self.expected.peek(observed.key)
            if exp is None:
                self.counters.extras += 1
                self._emit(ExtraObserved(key=observed.key, observed=str(observed)))
                return

            # Route before consuming so a router error leaves the expectation parked.
            expected_port = self.router(exp)
            self.expected.take(observed.key)

            failures: list[Mismatch] = []
            if tag.index != expected_port:
                failures.append(Mismatch(
                    key=observed.key,
                    dimension=DESTINATION,
                    expected=f"{Role.OUTPUT.value}-{expected_port}",
                    observed=str(tag),
                ))
            for field_name, want, got in self.differ(exp, observed):
                failures.append(Mismatch(
                    key=observed.key,
                    dimension=field_name,
                    expected=want,
                    observed=got,
                ))

            if not failures:
                self.counters.matches += 1
                self._emit(Match(key=observed.key, expected=str(exp), observed=str(observed)))
                return

            for mismatch in failures:
                self.counters.mismatches += 1
                self._emit(mismatch)

    def _build_report(self, missing: list[Record], unmatched: list[Record]) -> SummaryReport:
        return SummaryReport(
            variant=self.variant,
            match_count=self.counters.matches,
            mismatch_count=self.counters.mismatches,
            extra_count=self.counters.extras,
            missing_count=len(missing),
            duplicate_count=self.counters.duplicates,
            missing_keys=[r.key for r in missing],
        )
