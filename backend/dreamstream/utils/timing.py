# ------------------------------------------------------------
# Module: dreamstream/utils/timing.py
# Purpose: Millisecond timers for stream latency and store-call logging.
# ------------------------------------------------------------

from __future__ import annotations

import logging
import time
from contextlib import contextmanager


def now_ns() -> int:
    """Get the current high-resolution time in nanoseconds."""
    return time.perf_counter_ns()


def ms_since(t0_ns: int) -> float:
    """Return the elapsed time in milliseconds since t0_ns."""
    return (time.perf_counter_ns() - t0_ns) / 1_000_000.0


@contextmanager
def log_timer(msg: str, log: logging.Logger | logging.LoggerAdapter, **ctx):
    """Log `<msg> ok duration_ms=..` on success, `<msg> failed ..` with traceback on error.

    Usage:
        with log_timer("dreams.save", log, text_len=len(text)):
            ...
    """
    t0 = now_ns()
    try:
        yield
    except Exception:
        log.error("%s failed duration_ms=%.1f %s", msg, ms_since(t0), ctx, exc_info=True)
        raise
    log.debug("%s ok duration_ms=%.1f %s", msg, ms_since(t0), ctx)
