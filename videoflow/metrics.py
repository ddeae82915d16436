"""
Thread-safe in-memory metrics collector for workflow runs.

Tracks:
  - Traffic: runs started, nodes dispatched per kind
  - Errors: node failures per kind, last 50 error messages
  - Latency: node duration samples per kind (last 100)
  - Saturation: active runs gauge

All data is ephemeral (resets on restart).
"""

import time
import threading
from typing import Dict, List
from collections import defaultdict

_lock = threading.Lock()

# ── Counters ──────────────────────────────────────────────────────────────────
_counters: Dict[str, int] = defaultdict(int)

# ── Latency samples (last 100 per node kind) ─────────────────────────────────
_latency_samples: Dict[str, List[float]] = defaultdict(list)
MAX_SAMPLES = 100

# ── Gauges ────────────────────────────────────────────────────────────────────
_gauges: Dict[str, float] = defaultdict(float)

# ── Error log (last 50 node errors) ──────────────────────────────────────────
_recent_errors: List[dict] = []
MAX_ERRORS = 50


# ── Public API ────────────────────────────────────────────────────────────────

def inc_counter(name: str, amount: int = 1):
    """Increment a counter (e.g. 'runs.started', 'nodes.textToVideo.failed')."""
    with _lock:
        _counters[name] += amount


def record_latency(kind: str, duration_ms: float):
    """Record a node duration sample in milliseconds."""
    with _lock:
        samples = _latency_samples[kind]
        samples.append(duration_ms)
        if len(samples) > MAX_SAMPLES:
            _latency_samples[kind] = samples[-MAX_SAMPLES:]


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_error(kind: str, node_id: str, message: str, run_id: str = ""):
    """Keep a node failure for the /metrics error feed."""
    with _lock:
        _recent_errors.append({
            "timestamp": time.time(),
            "kind": kind,
            "node_id": node_id,
            "run_id": run_id,
            "message": message[:300],
        })
        if len(_recent_errors) > MAX_ERRORS:
            _recent_errors.pop(0)


def reset():
    """Clear everything. Used by tests."""
    with _lock:
        _counters.clear()
        _latency_samples.clear()
        _gauges.clear()
        _recent_errors.clear()


def get_snapshot() -> dict:
    now = time.time()

    with _lock:
        latency_stats = {}
        for kind, samples in _latency_samples.items():
            if not samples:
                continue
            sorted_s = sorted(samples)
            n = len(sorted_s)
            latency_stats[kind] = {
                "p50": sorted_s[n // 2],
                "p95": sorted_s[int(n * 0.95)] if n >= 20 else sorted_s[-1],
                "avg": sum(sorted_s) / n,
                "count": n,
            }

        error_patterns: Dict[str, int] = defaultdict(int)
        for err in _recent_errors:
            error_patterns[err["kind"]] += 1

        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": latency_stats,
            "recent_errors": list(_recent_errors[-10:]),
            "error_patterns": dict(error_patterns),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }
