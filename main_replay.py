"""CLI entry point: replay a recorded trace through a scoreboard.

Usage:
    python3 main_replay.py trace.csv --mode routed
    python3 main_replay.py trace.parquet --mode peer --workers 2
    python3 main_replay.py trace.csv --shuffle --seed 7 --events-out events.csv

Trace format (CSV or Parquet): one row per record with a ``stream`` column
(input-0, output-1, expected, observed, ...), a ``key`` column, and any
number of payload columns. String values of the form ``0x...`` are parsed as
hex integers. Rows of one stream are always replayed in file order.

Exit status is 0 when the run is clean, 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

import polars as pl

import cli_common
import config
from observability.event_tracker import RunTracker
from observability.log_context import RunContextFilter
from scoreboard import EventSink, PeerScoreboard, Record, RoutedScoreboard, StreamTag
from scoreboard.core import Scoreboard
from scoreboard.predicates import address_bit_router

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("stream", "key")


def load_trace(path: str | Path) -> pl.DataFrame:
    """Read a trace file and validate its required columns.

    Raises:
        ValueError: If the suffix is unsupported or a required column is missing.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pl.read_csv(path)
    elif suffix in (".parquet", ".pq"):
        df = pl.read_parquet(path)
    else:
        raise ValueError(f"Unsupported trace format {suffix!r} (expected .csv or .parquet)")

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Trace {path} is missing required columns: {missing}")
    return df


def _parse_value(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            try:
                return int(text, 16)
            except ValueError:
                return value
    return value


def row_to_record(row: dict[str, Any]) -> Record:
    return Record.from_mapping({name: _parse_value(v) for name, v in row.items()})


def build_engine(
    mode: str,
    sink: EventSink | None = None,
    route_field: str = config.ROUTE_FIELD,
    route_bit: int = config.ROUTE_BIT,
    name: str | None = None,
) -> Scoreboard:
    if mode == "routed":
        return RoutedScoreboard(
            router=address_bit_router(field=route_field, bit=route_bit),
            name=name,
            sink=sink,
        )
    if mode == "peer":
        return PeerScoreboard(name=name, sink=sink)
    raise ValueError(f"Unknown scoreboard mode: {mode!r}")


def _replay_stream(
    engine: Scoreboard,
    stream: str,
    rows: list[dict[str, Any]],
    context: RunContextFilter | None,
) -> int:
    if context is not None:
        context.set_stream(stream)
    emit = engine.port(StreamTag.parse(stream))
    for row in rows:
        emit(row_to_record(row))
    return len(rows)


def replay(
    engine: Scoreboard,
    df: pl.DataFrame,
    workers: int = 1,
    context: RunContextFilter | None = None,
) -> int:
    """Feed every trace row to ``engine``; return the number of records replayed.

    With ``workers <= 1`` rows are replayed in file order. Otherwise each
    stream gets its own producer thread (at most ``workers`` at once),
    preserving per-stream order only.
    """
    if workers <= 1:
        for row in df.iter_rows(named=True):
            engine.ingest(str(row["stream"]), row_to_record(row))
        return df.height

    streams = df["stream"].cast(pl.Utf8).unique(maintain_order=True).to_list()
    cli_common.warn_workers(workers, len(streams))

    replayed = 0
    with ThreadPoolExecutor(max_workers=min(workers, len(streams))) as executor:
        futures = {
            executor.submit(
                _replay_stream,
                engine,
                stream,
                df.filter(pl.col("stream").cast(pl.Utf8) == stream).to_dicts(),
                context,
            ): stream
            for stream in streams
        }
        for future in as_completed(futures):
            # Producer errors (malformed rows) propagate to the caller
            replayed += future.result()
            logger.debug("Producer for %s finished", futures[future])
    return replayed


def print_summary(report) -> None:
    print(f"\n{'Variant':<28} {report.variant}")
    print("-" * 40)
    rows = [
        ("Matched", report.match_count),
        ("Mismatched (dimensions)" if report.variant == "routed" else "Mismatched (pairs)",
         report.mismatch_count),
        ("Extra observed", report.extra_count),
        ("Missing observed", report.missing_count),
        ("Unmatched observed", report.unmatched_observed_count),
        ("Duplicates", report.duplicate_count),
    ]
    for label, value in rows:
        if value is None:
            continue
        print(f"{label:<28} {value}")
    print(f"\nResult: {'PASSED' if report.is_clean else 'FAILED'}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a recorded trace through a scoreboard")
    parser.add_argument("trace", type=Path, help="Trace file (.csv or .parquet)")
    parser.add_argument("--mode", choices=("routed", "peer"), default="routed",
                        help="routed: input/output ports with destination check; peer: expected/observed")
    parser.add_argument("--workers", type=int, default=config.REPLAY_WORKERS,
                        help="Producer threads, one per stream (default: 1 = sequential file order)")
    parser.add_argument("--route-field", default=config.ROUTE_FIELD, help="Payload field the router reads")
    parser.add_argument("--route-bit", type=int, default=config.ROUTE_BIT, help="Bit of the route field selecting the output port")
    parser.add_argument("--shuffle", action="store_true", help="Permute rows before replay")
    parser.add_argument("--seed", type=int, default=None, help="Seed for --shuffle")
    parser.add_argument("--events-out", type=Path, default=None, help="Write the event log to this CSV")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    tracker = RunTracker()
    context = cli_common.setup_logging(run_id=tracker.run_id, variant=args.mode, level=args.log_level)
    run_name = args.trace.name

    with tracker.track("LOAD", run_name) as load_event:
        df = load_trace(args.trace)
        if args.shuffle:
            df = df.sample(fraction=1.0, shuffle=True, seed=args.seed)
        load_event.records_processed = df.height

    sink = EventSink(run_name)
    engine = build_engine(
        args.mode,
        sink=sink,
        route_field=args.route_field,
        route_bit=args.route_bit,
        name=run_name,
    )

    logger.info("Starting replay: run_id=%s, mode=%s, records=%d, workers=%d",
                tracker.run_id, args.mode, df.height, args.workers)

    with tracker.track("REPLAY", run_name) as replay_event:
        replay_event.records_processed = replay(engine, df, workers=args.workers, context=context)

    with tracker.track("FINALIZE", run_name) as final_event:
        report = engine.finalize()
        final_event.records_processed = len(sink)
        if not report.is_clean:
            final_event.event_detail = f"{len(sink.failures())} failure events"

    if args.events_out is not None:
        args.events_out.parent.mkdir(parents=True, exist_ok=True)
        sink.to_frame().write_csv(args.events_out)
        logger.info("Wrote %d events to %s", len(sink), args.events_out)

    cli_common.check_rss_memory(run_name)
    print_summary(report)
    return 0 if report.is_clean else 1


if __name__ == "__main__":
    sys.exit(main())
