# ------------------------------------------------------------
# Module: dreamstream/llm/openai_client.py
# Purpose: OpenAI(-compatible) chat client streaming one structured JSON object.
# ------------------------------------------------------------

"""Structured-output streaming over the OpenAI chat completions API.

Responsibilities
----------------
- Build one shared client per upstream configuration (key, optional base URL
  for Ollama-style servers) so the SDK connection pool is reused.
- Request a strict `json_schema` response and stream its text deltas.
- Log stream open/close with model and delta counts.

Notes
-----
- The SDK is synchronous here; Starlette iterates the body generator in its
  threadpool, one request per connection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from functools import lru_cache

from openai import OpenAI

from dreamstream.core.config import Settings, settings as _settings
from dreamstream.schemas.interpretation import response_format

log = logging.getLogger(__name__)


class OpenAIStructuredClient:
    """Thin wrapper: small public surface, SDK details kept here."""

    provider = "openai"

    def __init__(
        self,
        client: OpenAI,
        model: str,
        temperature: float,
        max_tokens: int,
        lad: logging.LoggerAdapter | None = None,
    ):
        self.client, self.model, self.temperature, self.max_tokens = (
            client,
            model,
            temperature,
            max_tokens,
        )
        self.lad = lad or logging.LoggerAdapter(log, {})

    def stream_json(self, system: str, prompt: str) -> Iterator[str]:
        # Issued eagerly: failures here still allow a plain JSON error response.
        stream = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format=response_format(),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )
        self.lad.info("llm.stream.open model=%s", self.model)
        return self._deltas(stream)

    def _deltas(self, stream) -> Iterator[str]:
        n = 0
        finish = None
        with stream:
            for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                finish = choice.finish_reason or finish
                text = choice.delta.content if choice.delta else None
                if text:
                    n += 1
                    yield text
        self.lad.info("llm.stream.close deltas=%d finish_reason=%s", n, finish)


@lru_cache(maxsize=8)
def _shared_client(
    api_key: str,
    base_url: str | None,
    model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> OpenAIStructuredClient:
    client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
    log.info("llm.client.created model=%s base_url=%s", model, base_url or "default")
    return OpenAIStructuredClient(client, model, temperature, max_tokens)


def shared_client(settings: Settings = _settings) -> OpenAIStructuredClient:
    """One client (and HTTP pool) per distinct upstream configuration per process."""
    if settings.LLM_PROVIDER != "openai":
        raise RuntimeError(f"Unsupported LLM_PROVIDER={settings.LLM_PROVIDER}")
    return _shared_client(
        settings.OPENAI_API_KEY,
        settings.OPENAI_BASE_URL,
        settings.GEN_MODEL,
        settings.LLM_TEMP,
        settings.LLM_MAX_TOKENS,
        settings.LLM_TIMEOUT_S,
    )
