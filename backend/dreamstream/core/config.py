# ------------------------------------------------------------
# Module: dreamstream/core/config.py
# Purpose: Central, typed application settings with opt-in env/.env overrides.
# ------------------------------------------------------------

"""Typed configuration hub for the interpretation backend and client core.

Responsibilities
----------------
- Provide strongly-typed toggles, paths and model/provider parameters.
- Build the settings once from the process environment (and `.env`, if present).

Notes
-----
- Import `settings` anywhere; do not re-create `Settings()` per request.
- API handlers reach settings through `get_settings()` so tests can override it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


def _detect_backend_root() -> Path:
    """Locate repo root (directory containing pyproject.toml)."""
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    # Fallback: 3 levels up from .../dreamstream/core/config.py
    return here.parents[3]


class Settings(BaseModel):
    """
    Application configuration.

    Notes
    -----
    - Extras are forbidden to surface typos/unknown keys early.
    - `OPENAI_API_KEY` may be empty; the endpoint reports `missing_api_key`.
    """

    model_config = dict(extra="forbid")

    # App toggles
    APP_ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    ACCESS_LOG: bool = True
    MUTE_ALL_LOGS: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # Model/provider knobs
    LLM_PROVIDER: Literal["openai"] = "openai"
    OPENAI_API_KEY: str | None = None
    # Any OpenAI-compatible endpoint (e.g. Ollama's /v1); None = api.openai.com
    OPENAI_BASE_URL: str | None = None
    GEN_MODEL: str = "gpt-4o-mini"
    LLM_TEMP: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(
        2048, ge=256, le=16384, description="Max completion tokens"
    )
    LLM_TIMEOUT_S: float = Field(60.0, gt=0, description="Upstream connect/read timeout")

    # Client core
    API_BASE_URL: str = "http://127.0.0.1:8000"
    STREAM_IDLE_TIMEOUT_S: float | None = Field(
        None, gt=0, description="Abort a stalled stream; None = wait forever"
    )
    DREAMS_DB: Path = Field(
        default_factory=lambda: _detect_backend_root() / "ops" / "data" / "dreams.sqlite"
    )

    # Accept comma-separated string or list for CORS_ORIGINS; normalize to list[str].
    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _coerce_origins(cls, v: str | list[str]):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    # Blank strings from .env files mean "unset".
    @field_validator(
        "OPENAI_API_KEY", "OPENAI_BASE_URL", "STREAM_IDLE_TIMEOUT_S", mode="before"
    )
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("DREAMS_DB", mode="before")
    @classmethod
    def _coerce_path(cls, v: str | Path):
        return v if isinstance(v, Path) else Path(v).expanduser()

    @field_validator("API_BASE_URL", mode="after")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def has_api_key(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @classmethod
    def from_env(cls, **overrides) -> Settings:
        """Create settings from OS env (after loading `.env`) plus explicit overrides."""
        load_dotenv()
        values: dict = {}
        for name in cls.model_fields:
            raw = os.getenv(name)
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls(**values)


# Eagerly instantiate once at import.
settings = Settings.from_env()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
