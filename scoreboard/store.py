"""Keyed record store: one parked record per key, overwrite on duplicate."""

from __future__ import annotations

from collections.abc import Iterator

from scoreboard.models import Record


class KeyedStore:
    """Hash map from key to the record that currently owns it.

    Not thread-safe on its own; engines serialize access under their lock.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._records: dict[int, Record] = {}
        self._high_water = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records.values()))

    @property
    def high_water(self) -> int:
        """Largest number of records held at once."""
        return self._high_water

    def keys(self) -> list[int]:
        return list(self._records)

    def peek(self, key: int) -> Record | None:
        return self._records.get(key)

    def put(self, record: Record) -> Record | None:
        """Store ``record`` under its key; return the record it superseded, if any."""
        previous = self._records.pop(record.key, None)
        # pop + insert keeps key order = order of latest arrival
        self._records[record.key] = record
        if len(self._records) > self._high_water:
            self._high_water = len(self._records)
        return previous

    def take(self, key: int) -> Record | None:
        """Remove and return the record for ``key``."""
        return self._records.pop(key, None)

    def drain(self) -> list[Record]:
        """Remove every record, oldest arrival first."""
        records = list(self._records.values())
        self._records.clear()
        return records
