from __future__ import annotations

from pathlib import Path

import polars as pl
import pytest

import main_replay
from scoreboard import EventSink, MalformedRecordError

ROUTER_TRACE = """stream,key,addr,data
input-0,10,0xAAA0,0xDEAD0001
input-1,50,0xBBB1,0xBEEF0002
input-0,999,0xCCC0,0xFFFF0000
output-1,50,0xBBB1,0xBEEF0002
output-0,10,0xAAA0,0xDEAD0001
output-0,99,0x0000,0x00000000
"""

PEER_TRACE = """stream,key,data
observed,1,100
expected,1,100
expected,2,200
observed,2,200
expected,3,300
observed,3,300
"""


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def test_load_trace_requires_stream_and_key(tmp_path: Path) -> None:
    path = _write(tmp_path, "bad.csv", "key,data\n1,2\n")
    with pytest.raises(ValueError, match="stream"):
        main_replay.load_trace(path)


def test_load_trace_rejects_unknown_suffix(tmp_path: Path) -> None:
    path = _write(tmp_path, "trace.json", "{}")
    with pytest.raises(ValueError, match="Unsupported"):
        main_replay.load_trace(path)


def test_row_to_record_parses_hex_strings() -> None:
    rec = main_replay.row_to_record({"stream": "input-0", "key": 10, "addr": "0xAAA0", "tag": "x"})
    assert rec.key == 10
    assert dict(rec.payload) == {"addr": 0xAAA0, "tag": "x"}


def test_replay_routed_trace_sequentially(tmp_path: Path) -> None:
    df = main_replay.load_trace(_write(tmp_path, "router.csv", ROUTER_TRACE))
    engine = main_replay.build_engine("routed", sink=EventSink("router"))

    assert main_replay.replay(engine, df) == 6
    report = engine.finalize()
    assert (report.match_count, report.extra_count, report.missing_count) == (2, 1, 1)
    assert report.missing_keys == [999]


def test_replay_peer_trace_with_parallel_producers(tmp_path: Path) -> None:
    df = main_replay.load_trace(_write(tmp_path, "peer.csv", PEER_TRACE))
    engine = main_replay.build_engine("peer")

    assert main_replay.replay(engine, df, workers=2) == 6
    report = engine.finalize()
    assert report.match_count == 3
    assert report.is_clean


def test_replay_parquet_trace(tmp_path: Path) -> None:
    path = tmp_path / "peer.parquet"
    pl.DataFrame({
        "stream": ["expected", "observed"],
        "key": [5, 5],
        "data": [1, 2],
    }).write_parquet(path)

    engine = main_replay.build_engine("peer")
    main_replay.replay(engine, main_replay.load_trace(path))
    assert engine.finalize().mismatch_count == 1


def test_replay_surfaces_malformed_rows(tmp_path: Path) -> None:
    df = main_replay.load_trace(_write(tmp_path, "neg.csv", "stream,key,data\nexpected,-4,1\n"))
    engine = main_replay.build_engine("peer")
    with pytest.raises(MalformedRecordError):
        main_replay.replay(engine, df)


def test_build_engine_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError):
        main_replay.build_engine("mesh")


def test_main_exit_status_and_events_out(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    trace = _write(tmp_path, "router.csv", ROUTER_TRACE)
    events_out = tmp_path / "out" / "events.csv"

    status = main_replay.main([str(trace), "--mode", "routed", "--events-out", str(events_out)])

    assert status == 1
    assert "FAILED" in capsys.readouterr().out
    events = pl.read_csv(events_out)
    assert events.filter(pl.col("event") == "ExtraObserved")["key"].to_list() == [99]
    assert events.filter(pl.col("event") == "MissingObserved")["key"].to_list() == [999]


def test_main_clean_peer_run_with_shuffle(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    trace = _write(tmp_path, "peer.csv", PEER_TRACE)
    status = main_replay.main([str(trace), "--mode", "peer", "--shuffle", "--seed", "7"])

    assert status == 0
    assert "PASSED" in capsys.readouterr().out
