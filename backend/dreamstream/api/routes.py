# ------------------------------------------------------------
# Module: dreamstream/api/routes.py
# Purpose: Compose and expose the API routers.
# ------------------------------------------------------------

"""Composition root for API routing.

- `api_router` is mounted under `/api` (the path mobile clients already call).
- `v1_router` is mounted under `/v1` for operational endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from dreamstream.api.v1.health import router as health_router
from dreamstream.api.v1.interpret_stream import router as interpret_router

api_router: APIRouter = APIRouter()
api_router.include_router(interpret_router, tags=["interpret"])

v1_router: APIRouter = APIRouter()
v1_router.include_router(health_router, prefix="/health", tags=["health"])
