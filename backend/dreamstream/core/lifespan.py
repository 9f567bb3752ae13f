# ------------------------------------------------------------
# Module: dreamstream/core/lifespan.py
# Purpose: Manage FastAPI startup and shutdown lifecycle events.
# ------------------------------------------------------------

"""FastAPI lifespan context for startup and shutdown events.

Developer Guidance
------------------
- Fail fast on startup errors; don't silently ignore them.
- Extend only for cross-cutting lifecycle concerns (not business logic).
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dreamstream.core.config import settings

logger = logging.getLogger("dreamstream.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup/shutdown and surface configuration problems early."""
    t0 = time.perf_counter()
    try:
        logger.info("startup begin")
        if not settings.has_api_key:
            # Not fatal: the probe reports missing_api_key and POST returns 500.
            logger.warning("startup OPENAI_API_KEY missing; interpretation disabled")
        logger.info(
            "startup ok provider=%s model=%s duration_ms=%.1f",
            settings.LLM_PROVIDER,
            settings.GEN_MODEL,
            (time.perf_counter() - t0) * 1000,
        )
        yield
    except Exception:
        logger.exception("startup failed")
        raise
    finally:
        logger.info("shutdown ok")
