# ------------------------------------------------------------
# Test: backend/tests/conftest.py
# Purpose: Shared fixtures: settings, scripted LLM, fake store, API client, SSE streams.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from dreamstream.api.v1.interpret_stream import get_llm_client
from dreamstream.core.config import Settings, get_settings
from dreamstream.main import app
from dreamstream.storage.dreams_db import SavedDreamRecord

FULL_DOC = {
    "summary": "Lentäminen kuvaa vapauden kaipuuta",
    "mood": "peaceful",
    "symbols": [
        {"symbol": "pilvet", "meaning": "Kevyt mieli", "relevance": "high"},
        {"symbol": "taivas", "meaning": "Rajattomat mahdollisuudet", "relevance": "medium"},
    ],
    "emotionalAnalysis": {
        "primaryEmotion": "vapaus",
        "secondaryEmotions": ["ilo", "uteliaisuus"],
        "subconscious": "Halu irtautua arjesta",
        "jungianPerspective": "Itse pyrkii kokonaisuuteen",
    },
    "lifeConnections": [
        {
            "area": "personal_growth",
            "insight": "Olet valmis uuteen vaiheeseen",
            "actionSuggestion": "Kirjaa unelmasi ylos",
        }
    ],
    "keyMessage": "Anna itsellesi lupa kasvaa",
    "reflectionQuestions": ["Mika saa sinut tuntemaan olosi vapaaksi?"],
    "tags": ["lentaminen", "vapaus"],
    "confidence": "medium",
}


class ScriptedLLM:
    """StructuredStreamClient fake: yields canned deltas, optionally failing."""

    provider = "openai"
    model = "gpt-4o-mini"

    def __init__(
        self,
        deltas: list[str] | None = None,
        *,
        fail_on_open: Exception | None = None,
        fail_after: int | None = None,
    ):
        self.deltas = deltas or []
        self.fail_on_open = fail_on_open
        self.fail_after = fail_after
        self.calls: list[tuple[str, str]] = []

    def stream_json(self, system: str, prompt: str) -> Iterator[str]:
        self.calls.append((system, prompt))
        if self.fail_on_open:
            raise self.fail_on_open
        return self._gen()

    def _gen(self) -> Iterator[str]:
        for i, d in enumerate(self.deltas):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError("upstream connection reset")
            yield d


def char_deltas(doc: dict, size: int = 7) -> list[str]:
    text = json.dumps(doc, ensure_ascii=False)
    return [text[i : i + size] for i in range(0, len(text), size)]


class FakeStore:
    """DreamStore fake counting save calls."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: list[tuple[str, str]] = []

    def save(self, original_text: str, formatted_interpretation: str) -> SavedDreamRecord:
        self.saved.append((original_text, formatted_interpretation))
        if self.fail:
            raise OSError("disk full")
        return SavedDreamRecord(
            id=f"dream_{len(self.saved)}",
            original_text=original_text,
            formatted_interpretation=formatted_interpretation,
            created_at="2026-01-01T00:00:00+00:00",
        )


class ScriptedStream:
    """Response body the test feeds by hand; `close()` ends it."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue()

    def send(self, raw: str | bytes) -> None:
        self.queue.put_nowait(raw.encode("utf-8") if isinstance(raw, str) else raw)

    def frame(self, payload: dict | str) -> None:
        body = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        self.send(f"data: {body}\n\n")

    def done(self) -> None:
        self.send("data: [DONE]\n\n")
        self.close()

    def close(self) -> None:
        self.queue.put_nowait(None)

    async def body(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.queue.get()
            if chunk is None:
                return
            yield chunk


def sse_transport(streams: dict[str, ScriptedStream]) -> httpx.MockTransport:
    """Route POSTs by dream text to hand-fed SSE bodies."""

    async def handler(request: httpx.Request) -> httpx.Response:
        dream = json.loads(request.content)["dream"]
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=streams[dream].body(),
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def keyed_settings() -> Settings:
    return Settings(OPENAI_API_KEY="sk-test", MUTE_ALL_LOGS=True)


@pytest.fixture
def api(keyed_settings):
    """TestClient factory: api(llm=None, settings=None)."""

    def _make(llm: ScriptedLLM | None = None, settings: Settings | None = None) -> TestClient:
        s = settings or keyed_settings
        app.dependency_overrides[get_settings] = lambda: s
        if llm is not None:
            app.dependency_overrides[get_llm_client] = lambda: llm
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
