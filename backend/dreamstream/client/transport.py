# ------------------------------------------------------------
# Module: dreamstream/client/transport.py
# Purpose: POST a dream and yield decoded frame batches from the SSE response.
# ------------------------------------------------------------

"""HTTP side of the consumer: one request, frames in arrival order.

Responsibilities
----------------
- POST `{dream}` to the streaming endpoint with `httpx.AsyncClient`.
- Turn non-2xx responses into `TransportError(message, code)` from the JSON body.
- Feed body chunks through `FrameDecoder`; yield all frames of a chunk together.
- Accept a plain JSON body (non-streaming endpoint) as snapshot + done.
- Optional idle timeout per chunk read.

Notes
-----
- Suspension points are the request itself and each chunk read; nothing else awaits.
- Cancellation surfaces as `asyncio.CancelledError` at those points.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator

import httpx

from dreamstream.client.state import INTERPRETATION_ERROR, STREAM_TIMEOUT
from dreamstream.core.config import Settings
from dreamstream.transport.frames import (
    MEDIA_TYPE,
    DoneFrame,
    ErrorFrame,
    Frame,
    FrameDecoder,
    SnapshotFrame,
)

log = logging.getLogger(__name__)

INTERPRET_PATH = "/api/interpret-structured"
DEFAULT_FAILURE = "API-kutsu epäonnistui"


class TransportError(Exception):
    """Fatal stream failure with a user-facing message and optional code."""

    def __init__(self, message: str, code: str | None = INTERPRETATION_ERROR):
        super().__init__(message)
        self.message = message
        self.code = code


def _error_from_body(resp: httpx.Response) -> TransportError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str) and message:
            return TransportError(message, body.get("code") or INTERPRETATION_ERROR)
    return TransportError(f"{DEFAULT_FAILURE} (HTTP {resp.status_code})")


class StreamTransport:
    """Frame source for one interpretation request at a time."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str = "",
        *,
        idle_timeout: float | None = None,
    ):
        self.http = http
        self.url = base_url.rstrip("/") + INTERPRET_PATH
        self.idle_timeout = idle_timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, http: httpx.AsyncClient | None = None
    ) -> StreamTransport:
        # No read timeout: a slow model must not abort the stream (see idle_timeout).
        http = http or httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))
        return cls(http, settings.API_BASE_URL, idle_timeout=settings.STREAM_IDLE_TIMEOUT_S)

    async def frames(self, dream: str, *, cid: str | None = None) -> AsyncIterator[list[Frame]]:
        """Yield frame batches (one per network chunk that completed any frame)."""
        headers = {"x-correlation-id": cid or str(uuid.uuid4())}
        async with self.http.stream(
            "POST", self.url, json={"dream": dream}, headers=headers
        ) as resp:
            if resp.status_code >= 400:
                await resp.aread()
                raise _error_from_body(resp)

            if MEDIA_TYPE not in resp.headers.get("content-type", ""):
                # Non-streaming endpoint: the whole document at once.
                await resp.aread()
                yield self._json_fallback(resp)
                return

            decoder = FrameDecoder()
            chunks = resp.aiter_bytes()
            while True:
                try:
                    chunk = await self._next_chunk(chunks)
                except StopAsyncIteration:
                    break
                batch = decoder.feed(chunk)
                if batch:
                    yield batch
            tail = decoder.flush()
            if tail:
                yield tail

    async def _next_chunk(self, chunks: AsyncIterator[bytes]) -> bytes:
        if self.idle_timeout is None:
            return await anext(chunks)
        try:
            return await asyncio.wait_for(anext(chunks), self.idle_timeout)
        except asyncio.TimeoutError as e:
            log.warning("stream.idle_timeout after=%.1fs", self.idle_timeout)
            raise TransportError("Yhteys aikakatkaistiin", STREAM_TIMEOUT) from e

    @staticmethod
    def _json_fallback(resp: httpx.Response) -> list[Frame]:
        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError("Vastausta ei voitu lukea") from e
        if not isinstance(body, dict):
            raise TransportError("Vastausta ei voitu lukea")
        if "error" in body:
            return [ErrorFrame(str(body["error"]), body.get("code"))]
        return [SnapshotFrame(body), DoneFrame()]

    async def aclose(self) -> None:
        await self.http.aclose()
