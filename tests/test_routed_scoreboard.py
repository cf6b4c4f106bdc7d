from __future__ import annotations

import itertools

import pytest

from scoreboard import (
    Duplicate,
    EventSink,
    ExtraObserved,
    MalformedRecordError,
    Match,
    Mismatch,
    MissingObserved,
    Record,
    RoutedScoreboard,
    ScoreboardClosedError,
    StreamTag,
)
from scoreboard.predicates import address_bit_router


def _rec(key: int, addr: int, data: int) -> Record:
    return Record(key, {"addr": addr, "data": data})


def _engine(**kwargs) -> RoutedScoreboard:
    return RoutedScoreboard(sink=EventSink("test"), **kwargs)


def test_router_smoke_run() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(10, 0xAAA0, 0xDEAD0001))
    sb.ingest_input(1, _rec(50, 0xBBB1, 0xBEEF0002))
    sb.ingest_input(0, _rec(999, 0xCCC0, 0xFFFF0000))

    sb.ingest_output(1, _rec(50, 0xBBB1, 0xBEEF0002))
    sb.ingest_output(0, _rec(10, 0xAAA0, 0xDEAD0001))
    sb.ingest_output(0, _rec(99, 0x0000, 0x00000000))

    report = sb.finalize()

    assert report.variant == "routed"
    assert report.match_count == 2
    assert report.mismatch_count == 0
    assert report.extra_count == 1
    assert report.missing_count == 1
    assert report.missing_keys == [999]
    assert report.unmatched_observed_count is None
    assert not report.is_clean

    extras = sb.sink.of_type(ExtraObserved)
    assert [e.key for e in extras] == [99]
    assert [e.key for e in sb.sink.of_type(MissingObserved)] == [999]


def test_misrouted_extra_and_missing_keys() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(10, 0xAAA0, 0xDEAD0001))
    sb.ingest_output(0, _rec(10, 0xAAA0, 0xDEAD0001))
    sb.ingest_input(1, _rec(50, 0xCCC0, 0x1234))
    sb.ingest_output(1, _rec(50, 0xCCC0, 0x1234))
    sb.ingest_output(0, _rec(999, 0x10, 0))
    sb.ingest_input(0, _rec(99, 0x20, 0))

    report = sb.finalize()

    assert report.match_count == 1
    assert report.mismatch_count == 1
    (mismatch,) = sb.sink.of_type(Mismatch)
    assert (mismatch.key, mismatch.dimension) == (50, "destination")
    assert report.extra_count == 1
    assert [e.key for e in sb.sink.of_type(MissingObserved)] == [99]


def test_output_before_input_is_extra_and_input_goes_missing() -> None:
    sb = _engine()
    sb.ingest_output(0, _rec(4, 0x10, 1))
    sb.ingest_input(0, _rec(4, 0x10, 1))
    report = sb.finalize()

    assert report.extra_count == 1
    assert report.missing_count == 1
    assert report.match_count == 0


def test_wrong_port_with_correct_payload_is_one_destination_mismatch() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(7, 0x11, 5))  # odd addr routes to output 1
    sb.ingest_output(0, _rec(7, 0x11, 5))
    report = sb.finalize()

    assert report.mismatch_count == 1
    assert report.match_count == 0
    (mismatch,) = sb.sink.of_type(Mismatch)
    assert mismatch.dimension == "destination"
    assert mismatch.expected == "output-1"
    assert mismatch.observed == "output-0"
    assert report.missing_count == 0


def test_wrong_port_and_corrupt_data_counts_two() -> None:
    sb = _engine()
    sb.ingest_input(1, _rec(8, 0x20, 0xAA))  # even addr routes to output 0
    sb.ingest_output(1, _rec(8, 0x20, 0xAB))
    report = sb.finalize()

    assert report.mismatch_count == 2
    assert sorted(m.dimension for m in sb.sink.of_type(Mismatch)) == ["data", "destination"]
    assert report.match_count == 0


def test_payload_mismatch_on_right_port_names_the_field() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(3, 0x40, 1))
    sb.ingest_output(0, _rec(3, 0x40, 2))
    sb.finalize()

    (mismatch,) = sb.sink.of_type(Mismatch)
    assert mismatch.dimension == "data"
    assert (mismatch.expected, mismatch.observed) == (1, 2)


def test_correlated_pair_is_consumed() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(1, 0x0, 1))
    sb.ingest_output(0, _rec(1, 0x0, 1))
    assert sb.outstanding() == {"expected": 0}

    # a second observation of the same key has nothing left to match
    sb.ingest_output(0, _rec(1, 0x0, 1))
    report = sb.finalize()
    assert report.match_count == 1
    assert report.extra_count == 1


def test_duplicate_input_overwrites_and_warns() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(2, 0x0, 1))
    sb.ingest_input(1, _rec(2, 0x2, 9))
    sb.ingest_output(0, _rec(2, 0x2, 9))
    report = sb.finalize()

    assert report.duplicate_count == 1
    assert report.match_count == 1
    (dup,) = sb.sink.of_type(Duplicate)
    assert dup.key == 2
    assert dup.stream == "input-1"


def test_router_error_leaves_expectation_parked() -> None:
    sb = _engine()
    sb.ingest_input(0, Record(5, {"data": 1}))  # no addr field to route on
    with pytest.raises(MalformedRecordError):
        sb.ingest_output(0, Record(5, {"data": 1}))

    report = sb.finalize()
    assert report.missing_keys == [5]


def test_custom_router_bit() -> None:
    sb = _engine(router=address_bit_router(field="addr", bit=4))
    sb.ingest_input(0, _rec(1, 0x10, 0))
    sb.ingest_output(1, _rec(1, 0x10, 0))
    assert sb.finalize().is_clean


def test_ingest_by_tag_and_port() -> None:
    sb = _engine()
    sb.ingest("input-0", {"key": 6, "addr": 0, "data": 3})
    emit = sb.port(StreamTag.output(0))
    emit({"key": 6, "addr": 0, "data": 3})
    assert sb.finalize().match_count == 1


def test_peer_tags_are_not_served() -> None:
    sb = _engine()
    with pytest.raises(ValueError):
        sb.ingest("expected", Record(1))
    with pytest.raises(ValueError):
        sb.port("observed")


def test_ingest_after_finalize_raises() -> None:
    sb = _engine()
    sb.finalize()
    with pytest.raises(ScoreboardClosedError):
        sb.ingest_input(0, _rec(1, 0, 0))
    with pytest.raises(ScoreboardClosedError):
        sb.ingest_output(0, _rec(1, 0, 0))


def test_finalize_is_idempotent() -> None:
    sb = _engine()
    sb.ingest_input(0, _rec(1, 0, 0))
    first = sb.finalize()
    events_after_first = len(sb.sink)
    second = sb.finalize()

    assert second is first
    assert len(sb.sink) == events_after_first
    assert sb.finalized
    assert sb.sink.summary is first


def test_clean_run_reports_match_events() -> None:
    sb = _engine()
    for key in range(4):
        sb.ingest_input(key % 2, _rec(key, key, key * 10))
    for key in reversed(range(4)):
        sb.ingest_output(key % 2, _rec(key, key, key * 10))
    report = sb.finalize()

    assert report.is_clean
    assert report.extra_count == 0
    assert len(sb.sink.of_type(Match)) == 4
    assert sb.sink.failures() == []


def test_outcome_is_independent_of_interleaving() -> None:
    arrivals = [
        ("input-0", _rec(1, 0x0, 1)),
        ("output-0", _rec(1, 0x0, 1)),
        ("input-0", _rec(2, 0x1, 2)),
        ("output-0", _rec(2, 0x1, 2)),  # odd addr belongs on output 1
        ("input-1", _rec(3, 0x2, 3)),
        ("output-1", _rec(4, 0x3, 4)),
    ]
    outcomes = set()
    for order in itertools.permutations(arrivals):
        tags = [(tag, rec.key) for tag, rec in order]
        # each key's input must precede its output
        if tags.index(("input-0", 1)) > tags.index(("output-0", 1)):
            continue
        if tags.index(("input-0", 2)) > tags.index(("output-0", 2)):
            continue
        sb = _engine()
        for tag, rec in order:
            sb.ingest(tag, rec)
        report = sb.finalize()
        outcomes.add((
            report.match_count,
            report.mismatch_count,
            report.extra_count,
            report.missing_count,
            tuple(report.missing_keys),
        ))
    assert outcomes == {(1, 1, 1, 1, (3,))}


@pytest.mark.parametrize("addr", [None, "zz", ""])
def test_unusable_route_field_is_malformed(addr) -> None:
    sb = _engine()
    sb.ingest_input(0, Record(3, {"addr": addr, "data": 1}))
    with pytest.raises(MalformedRecordError):
        sb.ingest_output(0, Record(3, {"addr": addr, "data": 1}))
    assert sb.outstanding() == {"expected": 1}
    assert sb.finalize().missing_keys == [3]


def test_sink_cannot_be_shared_between_engines() -> None:
    sink = EventSink("shared")
    first = RoutedScoreboard(sink=sink)
    with pytest.raises(ValueError):
        RoutedScoreboard(sink=sink)

    first.finalize()
    with pytest.raises(ValueError):
        RoutedScoreboard(sink=sink)


def test_engine_with_own_sink_is_unaffected_by_another_run() -> None:
    a = _engine()
    b = _engine()
    a.finalize()

    b.ingest_output(0, _rec(1, 0x0, 1))
    b.ingest_input(0, _rec(2, 0x0, 1))
    report = b.finalize()
    assert (report.extra_count, report.missing_count) == (1, 1)
    assert b.sink.summary is report


def test_listener_can_read_engine_state() -> None:
    sink = EventSink("reader")
    sb = RoutedScoreboard(sink=sink)
    seen = []
    sink.subscribe(lambda item: seen.append(sb.outstanding()))

    sb.ingest_input(0, _rec(1, 0x0, 1))
    sb.ingest_input(0, _rec(1, 0x0, 2))  # duplicate
    sb.ingest_output(0, _rec(1, 0x0, 3))  # mismatch on data
    sb.finalize()

    assert seen[0] == {"expected": 1}
    assert seen[1] == {"expected": 0}
