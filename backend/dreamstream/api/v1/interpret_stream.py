# ------------------------------------------------------------
# Module: dreamstream/api/v1/interpret_stream.py
# Purpose: FastAPI SSE endpoint streaming progressive interpretation snapshots.
# ------------------------------------------------------------

"""Streaming interpretation endpoint.

Thin adapter around `dreamstream.services.interpretation`.

Responsibilities
----------------
- Reject unconfigured (MISSING_API_KEY) and empty (MISSING_DREAM) requests as JSON.
- Open the upstream stream before committing headers.
- Stream snapshot frames as Server-Sent Events with proxy-safe headers.
- Report readiness on GET.
"""

import json
import logging
import uuid

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from dreamstream.api.v1.models import ErrorBody, HealthStatus, InterpretRequest
from dreamstream.core.config import Settings, get_settings
from dreamstream.core.errors import MissingApiKeyError
from dreamstream.llm.openai_client import shared_client
from dreamstream.llm.protocols import StructuredStreamClient
from dreamstream.services.interpretation import open_interpretation
from dreamstream.transport.frames import MEDIA_TYPE, SSE_HEADERS
from dreamstream.utils.logging_extras import log_adapter

router = APIRouter()
logger = logging.getLogger(__name__)


def get_llm_client(
    settings: Settings = Depends(get_settings),
) -> StructuredStreamClient | None:
    """Dependency: upstream client built from settings; None when unconfigured."""
    if not settings.has_api_key:
        return None
    return shared_client(settings)


@router.get("/interpret-structured", response_model=HealthStatus)
def interpret_health(res: Response, settings: Settings = Depends(get_settings)) -> HealthStatus:
    ready = settings.has_api_key
    if not ready:
        res.status_code = 503
    return HealthStatus(
        status="ready" if ready else "missing_api_key",
        provider=settings.LLM_PROVIDER,
        model=settings.GEN_MODEL,
    )


@router.post(
    "/interpret-structured",
    responses={
        200: {"content": {MEDIA_TYPE: {}}, "description": "Snapshot frames, then [DONE]"},
        400: {"model": ErrorBody, "description": "MISSING_DREAM"},
        500: {"model": ErrorBody, "description": "MISSING_API_KEY or INTERPRETATION_ERROR"},
    },
)
async def interpret_structured(
    req: Request,
    client: StructuredStreamClient | None = Depends(get_llm_client),
):
    # Credential first, then body.
    if client is None:
        raise MissingApiKeyError("API-avainta ei ole määritetty")

    try:
        body = await req.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    payload = InterpretRequest.parse_body(body)

    cid = req.headers.get("x-correlation-id") or str(uuid.uuid4())
    lad = log_adapter(logger, cid)
    lad.info("interpret.start dream_len=%d language=%s", len(payload.dream), payload.language)

    # Blocking SDK connect runs in the threadpool. Raises UpstreamError (JSON 500)
    # if the model stream cannot be opened.
    frames = await run_in_threadpool(
        open_interpretation, payload.dream, client, language=payload.language, cid=cid
    )

    return StreamingResponse(
        frames,
        media_type=MEDIA_TYPE,
        headers={**SSE_HEADERS, "x-correlation-id": cid},
    )
