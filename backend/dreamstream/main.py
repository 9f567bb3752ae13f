# ------------------------------------------------------------
# Module: dreamstream/main.py
# Purpose: FastAPI application factory and ASGI entry point.
# ------------------------------------------------------------

"""ASGI entry point.

Run locally:
    uvicorn dreamstream.main:app --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dreamstream.api.routes import api_router, v1_router
from dreamstream.core.config import Settings, settings
from dreamstream.core.errors import InterpretationError
from dreamstream.core.lifespan import lifespan
from dreamstream.core.logging import configure_logging


def create_app(app_settings: Settings = settings) -> FastAPI:
    configure_logging(app_settings)
    # Interactive docs only outside production.
    docs = app_settings.APP_ENV != "prod"
    app = FastAPI(
        title="Dreamstream",
        lifespan=lifespan,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
    )

    # Mobile clients call from arbitrary origins; tighten via CORS_ORIGINS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "x-correlation-id"],
    )

    @app.exception_handler(InterpretationError)
    async def _interpretation_error(_: Request, exc: InterpretationError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    app.include_router(api_router, prefix="/api")
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
