"""CLI common boilerplate: shared setup for the replay entry point.

Centralizes logging setup, RSS monitoring and worker-count warnings so
main_replay.py stays focused on trace loading and dispatch.
"""

from __future__ import annotations

import logging
import sys

import psutil

import config
from observability.log_context import RunContextFilter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(run_id)s %(stream)s] - %(message)s"


def setup_logging(
    run_id: str | None = None,
    variant: str | None = None,
    level: str | None = None,
) -> RunContextFilter:
    """Configure logging: stdout StreamHandler with run context.

    Args:
        run_id: Run identifier stamped onto every record.
        variant: Scoreboard variant (routed / peer) for log context.
        level: Overrides config.LOG_LEVEL.

    Returns:
        The RunContextFilter instance (for per-thread stream context).
    """
    level_name = (level or config.LOG_LEVEL).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Repeated calls (tests, embedded runs) replace the previous console handler
    for handler in list(root.handlers):
        if any(isinstance(f, RunContextFilter) for f in handler.filters):
            root.removeHandler(handler)

    context = RunContextFilter()
    context.set_context(run_id=run_id, variant=variant)

    console = logging.StreamHandler(sys.stdout)
    console.addFilter(context)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    return context


def warn_workers(workers: int, stream_count: int) -> None:
    """Warn when more producer threads are requested than there are streams."""
    if workers > stream_count:
        logger.warning(
            "Requested %d workers but the trace has %d streams; "
            "producers are one thread per stream, so %d threads will run.",
            workers, stream_count, stream_count,
        )


def check_rss_memory(run_name: str) -> None:
    """Check RSS memory after a replay.

    Parked records are held until finalize(), so a long trace with one
    stalled side grows RSS monotonically. Logs WARNING at 85% of
    MAX_RSS_GB and ERROR at the limit.
    """
    rss_gb = psutil.Process().memory_info().rss / (1024 ** 3)
    if rss_gb > config.MAX_RSS_GB:
        logger.error(
            "RSS memory %.2f GB exceeds MAX_RSS_GB (%.1f GB) after %s. "
            "Check for a stalled stream leaving records parked.",
            rss_gb, config.MAX_RSS_GB, run_name,
        )
    elif rss_gb > config.MAX_RSS_GB * 0.85:
        logger.warning(
            "RSS memory %.2f GB approaching MAX_RSS_GB (%.1f GB) after %s.",
            rss_gb, config.MAX_RSS_GB, run_name,
        )
