"""Backlog guard for parked-record stores.

Correlation never times out: a record with no counterpart stays parked
until finalize(). When one side of a run stalls (a dead producer, a DUT
that stopped emitting) the other side's store grows without bound. The
guard turns that growth into a WARNING instead of a silent memory climb.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def check_backlog(
    engine_name: str,
    store_name: str,
    size: int,
    threshold: int,
    *,
    already_warned: bool = False,
) -> bool:
    """Check whether a store's parked-record count is within bounds.

    Args:
        engine_name: Engine name for logging.
        store_name: Store name for logging (e.g. "expected").
        size: Current number of parked records.
        threshold: Warn above this size. 0 or negative disables the guard.
        already_warned: Suppress the log line when the caller has already
            warned for the current crossing.

    Returns:
        True if the store is within bounds, False if it exceeds the threshold.
    """
    if threshold <= 0 or size <= threshold:
        return True

    if not already_warned:
        logger.warning(
            "BACKLOG GUARD: %s %s store holds %d parked records (threshold=%d). "
            "A producer may have stalled; records wait for finalize() with "
            "no timeout.",
            engine_name, store_name, size, threshold,
        )
    return False
