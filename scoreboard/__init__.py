"""Keyed out-of-order stream reconciliation (scoreboard).

Correlates records from independent, unordered streams by key, checks each
correlated pair, and at finalize() reports every record that never found
its counterpart.

Two engine shapes share one core:
  - RoutedScoreboard: numbered input ports set expectations; output ports
    are checked for destination and per-field agreement.
  - PeerScoreboard: expected and observed streams are peers; whichever half
    of a pair arrives second triggers a whole-payload comparison.

Usage:
    from scoreboard import Record, RoutedScoreboard

    sb = RoutedScoreboard()
    sb.ingest_input(0, Record(10, {"addr": 0xAAA0, "data": 0xDEAD0001}))
    sb.ingest_output(0, Record(10, {"addr": 0xAAA0, "data": 0xDEAD0001}))
    report = sb.finalize()
    assert report.is_clean
"""

# --- Models ---
from scoreboard.models import (
    EXPECTED,
    OBSERVED,
    Counters,
    MalformedRecordError,
    Record,
    Role,
    ScoreboardClosedError,
    StreamTag,
    SummaryReport,
)

# --- Events and sink ---
from scoreboard.events import (
    Duplicate,
    ExtraObserved,
    Match,
    Mismatch,
    MissingObserved,
    Severity,
    UnmatchedObserved,
)
from scoreboard.sink import EventSink

# --- Predicates ---
from scoreboard.predicates import address_bit_router, fieldwise_differences, payloads_equal

# --- Engines ---
from scoreboard.core import Scoreboard
from scoreboard.peer import PeerScoreboard
from scoreboard.routed import RoutedScoreboard

__all__ = [
    # Models
    "Record",
    "Role",
    "StreamTag",
    "EXPECTED",
    "OBSERVED",
    "Counters",
    "SummaryReport",
    "MalformedRecordError",
    "ScoreboardClosedError",
    # Events
    "Severity",
    "Duplicate",
    "Match",
    "Mismatch",
    "ExtraObserved",
    "MissingObserved",
    "UnmatchedObserved",
    "EventSink",
    # Predicates
    "address_bit_router",
    "fieldwise_differences",
    "payloads_equal",
    # Engines
    "Scoreboard",
    "RoutedScoreboard",
    "PeerScoreboard",
]
