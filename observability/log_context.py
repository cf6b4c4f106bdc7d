"""RunContextFilter: stamps run_id / variant / stream onto every log record.

Every module uses standard logger = logging.getLogger(__name__) calls.
The filter holds the run context in thread-local storage so producer
threads can each carry the stream they are replaying.
"""

from __future__ import annotations

import logging
import threading


class RunContextFilter(logging.Filter):
    """Logging filter that adds run context attributes to each record.

    Usage:
        ctx = RunContextFilter()
        ctx.set_context(run_id="a1b2c3", variant="routed")
        handler.addFilter(ctx)
        handler.setFormatter(logging.Formatter("%(run_id)s %(stream)s %(message)s"))
    """

    def __init__(self) -> None:
        super().__init__()
        self._context = threading.local()
        # run-wide values are shared by all threads
        self._run_id: str = "-"
        self._variant: str = "-"

    def set_context(
        self,
        run_id: str | None = None,
        variant: str | None = None,
    ) -> None:
        if run_id is not None:
            self._run_id = run_id
        if variant is not None:
            self._variant = variant

    def set_stream(self, stream: str | None) -> None:
        """Set the stream for the calling thread only."""
        self._context.stream = stream

    def _get_stream(self) -> str:
        return getattr(self._context, "stream", None) or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self._run_id
        record.variant = self._variant
        record.stream = self._get_stream()
        return True
