"""
In-memory concurrency guard for background workflow runs.

Each run can fan out to several paid generation calls, so the worker caps
how many runs are in flight at once. State is per-process and resets on
restart.
"""

import os
import threading

# ── Configuration ─────────────────────────────────────────────────────────────
MAX_CONCURRENT_RUNS = int(os.getenv("MAX_CONCURRENT_RUNS", "3"))

# ── State ─────────────────────────────────────────────────────────────────────
_lock = threading.Lock()
_active_runs = 0


def acquire_run_slot(limit: int = MAX_CONCURRENT_RUNS) -> bool:
    """
    Try to acquire a slot for a background run.
    Returns True if a slot is available, False if at capacity.
    """
    global _active_runs
    with _lock:
        if _active_runs >= limit:
            return False
        _active_runs += 1
        return True


def release_run_slot():
    """Release a run slot after the run settles."""
    global _active_runs
    with _lock:
        _active_runs = max(0, _active_runs - 1)


def get_active_runs() -> int:
    with _lock:
        return _active_runs
