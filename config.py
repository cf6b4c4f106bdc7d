"""Environment variables and defaults for the scoreboard engines and replay CLI."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env path is overridable so CI and local runs can point at different files
ENV_FILE = Path(os.getenv("SCOREBOARD_ENV_FILE", ".env"))
load_dotenv(ENV_FILE)

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Address-bit router defaults
# ---------------------------------------------------------------------------
# The routed scoreboard derives each expectation's destination port from one
# bit of one payload field. For a two-output router keyed on the low address
# bit: even addr -> output 0, odd addr -> output 1.
ROUTE_FIELD = os.getenv("ROUTE_FIELD", "addr")
ROUTE_BIT = int(os.getenv("ROUTE_BIT", "0"))

# ---------------------------------------------------------------------------
# Backlog guard
# ---------------------------------------------------------------------------
# Parked records wait for their counterpart or finalize() with no timeout, so
# a store can grow without bound when one side stalls. Crossing this size logs
# a WARNING (once per crossing). 0 disables the guard.
BACKLOG_WARN_THRESHOLD = int(os.getenv("BACKLOG_WARN_THRESHOLD", "10000"))

# --- Replay CLI ---
# Producer threads for main_replay.py; 1 = sequential replay in file order.
REPLAY_WORKERS = int(os.getenv("REPLAY_WORKERS", "1"))

# RSS memory ceiling in GB. Replay logs WARNING at 85% of this limit and
# ERROR at the limit.
MAX_RSS_GB = float(os.getenv("MAX_RSS_GB", "8.0"))
