# ------------------------------------------------------------
# Module: dreamstream/core/logging.py
# Purpose: Configure unified logging for the interpretation API and client core.
# ------------------------------------------------------------

"""Unified, stdout-based logging for the dreamstream backend.

Responsibilities
----------------
- Initialize a single consistent logging setup at app startup.
- Respect env-based toggles from `settings` (log level, mute, access logs).
- Align Uvicorn's loggers with the app-level configuration.

Notes
-----
- Always retrieve module loggers via `logging.getLogger(__name__)`.
- Use `settings.MUTE_ALL_LOGS` to silence all logs for CI or benchmarks.
"""

import logging
import sys

from dreamstream.core.config import Settings, settings as _settings


def configure_logging(settings: Settings = _settings) -> None:
    """Initialize global logging once at startup.

    Notes
    -----
    - Hard-mutes all logs if `MUTE_ALL_LOGS` is set.
    - Keeps Uvicorn loggers aligned with app-level log level.
    """
    # Hard mute: disables ALL logging below CRITICAL globally.
    if settings.MUTE_ALL_LOGS:
        logging.disable(logging.CRITICAL)
        return

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
    )

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "dreamstream"):
        logging.getLogger(name).setLevel(settings.LOG_LEVEL)

    # Per-request access lines are noisy for long-lived SSE connections.
    if not settings.ACCESS_LOG:
        logging.getLogger("uvicorn.access").disabled = True
