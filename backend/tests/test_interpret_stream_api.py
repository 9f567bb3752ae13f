# ------------------------------------------------------------
# Test: backend/tests/test_interpret_stream_api.py
# Purpose: /api/interpret-structured contract: JSON errors, SSE frames, readiness.
# ------------------------------------------------------------
from __future__ import annotations

import asyncio
import time

import httpx
import pytest
from conftest import FULL_DOC, ScriptedLLM, char_deltas
from fastapi.testclient import TestClient

from dreamstream.api.v1.interpret_stream import get_llm_client
from dreamstream.core.config import Settings, get_settings
from dreamstream.main import app, create_app
from dreamstream.transport.frames import DoneFrame, ErrorFrame, FrameDecoder, SnapshotFrame

URL = "/api/interpret-structured"


def _frames(text: str):
    dec = FrameDecoder()
    return dec.feed(text) + dec.flush()


def test_stream_happy_path(api):
    llm = ScriptedLLM(char_deltas(FULL_DOC))
    client = api(llm)
    r = client.post(URL, json={"dream": "  Lensin pilvien yläpuolella  "})

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache"
    assert r.headers["x-accel-buffering"] == "no"
    assert r.text.endswith("data: [DONE]\n\n")

    frames = _frames(r.text)
    assert isinstance(frames[-1], DoneFrame)
    snaps = [f.document for f in frames if isinstance(f, SnapshotFrame)]
    assert snaps and snaps[-1] == FULL_DOC
    # Snapshots only ever gain fields.
    for prev, new in zip(snaps, snaps[1:]):
        assert set(prev) <= set(new)

    system, prompt = llm.calls[0]
    assert '"Lensin pilvien yläpuolella"' in prompt
    assert "suomeksi" in system


def test_english_prompt_and_correlation_id(api):
    llm = ScriptedLLM(char_deltas(FULL_DOC))
    r = api(llm).post(
        URL,
        json={"dream": "I was flying", "language": "en"},
        headers={"x-correlation-id": "cid-123"},
    )
    assert r.status_code == 200
    assert r.headers["x-correlation-id"] == "cid-123"
    assert "Always answer in English" in llm.calls[0][0]


def test_empty_dream_is_rejected_before_model_call(api):
    llm = ScriptedLLM(char_deltas(FULL_DOC))
    client = api(llm)
    for body in ({"dream": ""}, {"dream": "   \n\t"}, {}, {"dream": 42}):
        r = client.post(URL, json=body)
        assert r.status_code == 400
        assert r.json()["code"] == "MISSING_DREAM"
        assert r.json()["error"]
    assert llm.calls == []


def test_unparseable_body_is_missing_dream(api):
    r = api(ScriptedLLM()).post(
        URL, content=b"{not json", headers={"content-type": "application/json"}
    )
    assert r.status_code == 400
    assert r.json()["code"] == "MISSING_DREAM"


def test_missing_api_key(api):
    client = api(settings=Settings(MUTE_ALL_LOGS=True))
    # Checked before the body, so an empty dream still reports the key.
    r = client.post(URL, json={"dream": ""})
    assert r.status_code == 500
    assert r.json()["code"] == "MISSING_API_KEY"

    status = client.get(URL)
    assert status.status_code == 503
    assert status.json()["status"] == "missing_api_key"


def test_readiness_when_ready(api):
    r = api().get(URL)
    assert r.status_code == 200
    assert r.json() == {
        "status": "ready",
        "provider": "openai",
        "model": "gpt-4o-mini",
        "type": "structured-stream",
    }


def test_upstream_open_failure_is_json_500(api):
    llm = ScriptedLLM(fail_on_open=RuntimeError("401 invalid key"))
    r = api(llm).post(URL, json={"dream": "Uni"})
    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "INTERPRETATION_ERROR"
    assert body["error"]
    assert body["details"] == "401 invalid key"


def test_mid_stream_failure_emits_error_frame_without_done(api):
    llm = ScriptedLLM(char_deltas(FULL_DOC), fail_after=20)
    r = api(llm).post(URL, json={"dream": "Uni"})

    assert r.status_code == 200
    assert "[DONE]" not in r.text
    frames = _frames(r.text)
    assert isinstance(frames[-1], ErrorFrame)
    assert frames[-1].code == "INTERPRETATION_ERROR"
    assert frames[-1].message == "upstream connection reset"
    assert all(isinstance(f, SnapshotFrame) for f in frames[:-1])
    assert len(frames) > 1


class SlowOpenLLM(ScriptedLLM):
    """Blocks in stream_json like the SDK's synchronous connect."""

    def stream_json(self, system: str, prompt: str):
        time.sleep(0.3)
        return super().stream_json(system, prompt)


@pytest.mark.asyncio
async def test_upstream_connect_does_not_block_the_event_loop(keyed_settings):
    llm = SlowOpenLLM(char_deltas(FULL_DOC))
    app.dependency_overrides[get_settings] = lambda: keyed_settings
    app.dependency_overrides[get_llm_client] = lambda: llm
    gaps: list[float] = []
    stop = asyncio.Event()

    async def ticker() -> None:
        loop = asyncio.get_running_loop()
        last = loop.time()
        while not stop.is_set():
            await asyncio.sleep(0.01)
            now = loop.time()
            gaps.append(now - last)
            last = now

    try:
        tick = asyncio.create_task(ticker())
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as http:
            r = await http.post(URL, json={"dream": "Uni"})
        stop.set()
        await tick
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 200
    assert r.text.endswith("data: [DONE]\n\n")
    assert max(gaps) < 0.2


def test_llm_client_is_shared_per_configuration(keyed_settings):
    first = get_llm_client(keyed_settings)
    assert first is get_llm_client(keyed_settings)
    assert first.model == "gpt-4o-mini"
    other = Settings(OPENAI_API_KEY="sk-other", MUTE_ALL_LOGS=True)
    assert get_llm_client(other) is not first
    assert get_llm_client(Settings(MUTE_ALL_LOGS=True)) is None


def test_error_bodies_are_documented(api):
    schema = api().get("/openapi.json").json()
    post = schema["paths"][URL]["post"]["responses"]
    assert post["400"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorBody")
    assert "text/event-stream" in post["200"]["content"]


def test_production_hides_docs():
    client = TestClient(create_app(Settings(APP_ENV="prod", OPENAI_API_KEY="sk-test")))
    assert client.get("/docs").status_code == 404
    assert client.get("/openapi.json").status_code == 404
    assert client.get("/v1/health/ready").status_code in (200, 503)
