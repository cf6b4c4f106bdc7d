from __future__ import annotations

from scoreboard.models import Record
from scoreboard.store import KeyedStore


def test_put_overwrites_and_returns_previous() -> None:
    store = KeyedStore("expected")
    first = Record(7, {"data": 1})
    second = Record(7, {"data": 2})

    assert store.put(first) is None
    assert store.put(second) is first
    assert len(store) == 1
    assert store.peek(7) is second


def test_take_removes_record() -> None:
    store = KeyedStore("expected")
    store.put(Record(1))
    assert store.take(1).key == 1
    assert 1 not in store
    assert store.take(1) is None


def test_drain_is_latest_arrival_order() -> None:
    store = KeyedStore("observed")
    for key in (3, 1, 2):
        store.put(Record(key))
    # re-arrival moves key 3 to the back
    store.put(Record(3, {"data": 9}))

    drained = store.drain()
    assert [r.key for r in drained] == [1, 2, 3]
    assert len(store) == 0


def test_high_water_tracks_peak_size() -> None:
    store = KeyedStore("expected")
    for key in range(4):
        store.put(Record(key))
    store.take(0)
    store.take(1)
    assert len(store) == 2
    assert store.high_water == 4
