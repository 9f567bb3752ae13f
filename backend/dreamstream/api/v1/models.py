# ------------------------------------------------------------
# Module: dreamstream/api/v1/models.py
# Purpose: Public request/response contracts for the interpretation API.
# ------------------------------------------------------------
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from dreamstream.core.errors import MissingDreamError


# JSON request for POST /api/interpret-structured.
# - Unknown keys are ignored (older clients send includePremium).
# - A missing/blank dream is a 400 with code MISSING_DREAM, not a 422.
class InterpretRequest(BaseModel):
    """Request payload: one free-text dream plus optional prompt language."""

    model_config = ConfigDict(extra="ignore")

    dream: str
    language: Literal["fi", "en"] = "fi"

    @field_validator("dream", mode="after")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("dream must not be blank")
        return v

    @field_validator("language", mode="before")
    @classmethod
    def _default_language(cls, v: Any):
        return v if v in ("fi", "en") else "fi"

    @classmethod
    def parse_body(cls, body: Any) -> InterpretRequest:
        """Validate a decoded JSON body; every failure maps to MissingDreamError."""
        if not isinstance(body, dict):
            raise MissingDreamError("Unta ei annettu")
        try:
            return cls.model_validate(body)
        except ValidationError as e:
            raise MissingDreamError("Unta ei annettu") from e


class HealthStatus(BaseModel):
    """GET probe payload for the interpretation endpoint."""

    status: Literal["ready", "missing_api_key"]
    provider: str
    model: str
    type: Literal["structured-stream"] = "structured-stream"


class ErrorBody(BaseModel):
    """Non-streaming error response body."""

    error: str
    code: str
    details: str | None = None
