# ------------------------------------------------------------
# Module: dreamstream/api/v1/health.py
# Purpose: Lightweight readiness probe for the interpretation backend.
# ------------------------------------------------------------

"""Health check endpoints.

Details:
    - `/v1/health/ready` returns HTTP 200 `{"status": "ready"}` when the
      upstream credential is configured, HTTP 503 `{"status": "degraded"}`
      otherwise.
    - Keep this endpoint fast; it never calls the model.
"""

import logging

from fastapi import APIRouter, Depends, Response

from dreamstream.core.config import Settings, get_settings

router: APIRouter = APIRouter()
log = logging.getLogger("dreamstream.api.health")


@router.get("/ready", include_in_schema=True)
def ready(res: Response, settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Readiness probe.

    Example:
        GET /v1/health/ready → {"status": "ready"}
        (no API key) → 503 {"status": "degraded"}
    """
    if settings.has_api_key:
        log.debug("ready check ok")
        return {"status": "ready"}
    log.warning("ready check degraded reason=missing_api_key")
    res.status_code = 503
    return {"status": "degraded"}
