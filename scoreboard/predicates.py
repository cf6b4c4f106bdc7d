"""Router and comparator predicates.

Engines take these as plain functions at construction time, so alternate
routing or comparison policies are swapped in without subclassing:

  router(expected)                -> destination port (int)
  differ(expected, observed)      -> [(field, expected_value, observed_value), ...]
  comparator(expected, observed)  -> bool (whole-payload verdict)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import config
from scoreboard.models import MalformedRecordError, Record

Router = Callable[[Record], int]
FieldDiffer = Callable[[Record, Record], list[tuple[str, Any, Any]]]
Comparator = Callable[[Record, Record], bool]


def address_bit_router(
    field: str = config.ROUTE_FIELD,
    bit: int = config.ROUTE_BIT,
) -> Router:
    """Route on one bit of a payload field: bit clear -> port 0, bit set -> port 1.

    With the defaults, an even ``addr`` goes to output 0 and an odd one to
    output 1.
    """
    if bit < 0:
        raise ValueError(f"route bit must be >= 0, got {bit}")

    def route(expected: Record) -> int:
        try:
            value = expected.payload[field]
        except KeyError:
            raise MalformedRecordError(
                f"record {expected.key} has no {field!r} field to route on"
            ) from None
        try:
            return (int(value) >> bit) & 1
        except (TypeError, ValueError):
            raise MalformedRecordError(
                f"record {expected.key} has a non-integer {field!r} value: {value!r}"
            ) from None

    route.__name__ = f"route_{field}_bit{bit}"
    return route


def fieldwise_differences(expected: Record, observed: Record) -> list[tuple[str, Any, Any]]:
    """Fields of ``expected`` whose observed value differs.

    Each field is its own dimension. A field absent on the observed side
    compares as None. Fields only the observed side carries are ignored:
    the expectation defines what is checked.
    """
    diffs = []
    for name, want in expected.payload.items():
        got = observed.payload.get(name)
        if got != want:
            diffs.append((name, want, got))
    return diffs


def payloads_equal(expected: Record, observed: Record) -> bool:
    """Whole-payload equality: same field names, same values."""
    return dict(expected.payload) == dict(observed.payload)
