from __future__ import annotations

import asyncio
import base64
import json
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import ClientDisconnect

from fakes import FakeSpeechProvider, FakeSpeechStream
from voice_studio.elevenlabs import ElevenLabsError
from voice_studio.errors import install_exception_handlers
from voice_studio.routers.audio import router
from voice_studio.routers.dependencies import get_speech_service
from voice_studio.services.speech import SpeechService

CHUNKS = [b"ID3\x04\x00", b"\xff\xfb" * 64, b"\xff\xf3end"]


def make_app(provider: FakeSpeechProvider) -> FastAPI:
    app = FastAPI()
    install_exception_handlers(app)
    service = SpeechService(provider, model_id="eleven_multilingual_v2")

    def _override_service() -> SpeechService:
        return service

    app.dependency_overrides[get_speech_service] = _override_service
    app.include_router(router)
    return app


def make_client(provider: FakeSpeechProvider, **kwargs: Any) -> TestClient:
    return TestClient(make_app(provider), **kwargs)


def test_stream_audio_returns_chunked_mpeg() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post(
        "/api/stream-audio",
        json={
            "text": "Hello from the relay",
            "voiceId": "voice-abc",
            "settings": {"stability": 0.3, "use_speaker_boost": False},
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["transfer-encoding"] == "chunked"
    assert response.content == b"".join(CHUNKS)

    call = provider.calls[0]
    assert call["voice_id"] == "voice-abc"
    assert call["voice_settings"] == {
        "stability": 0.3,
        "similarity_boost": 0.75,
        "style": 0.0,
        "use_speaker_boost": False,
    }


def test_stream_audio_uses_default_voice() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post("/api/stream-audio", json={"text": "Hi"})

    assert response.status_code == 200
    assert provider.calls[0]["voice_id"] == "EXAVITQu4vr4xnSDxMaL"


def test_stream_audio_rejects_empty_text() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post("/api/stream-audio", json={"text": "  "})

    assert response.status_code == 400
    assert response.json() == {"error": "Text is required"}
    assert provider.calls == []


def test_stream_audio_rejects_missing_text() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post("/api/stream-audio", json={"voiceId": "voice-abc"})

    assert response.status_code == 400
    assert response.json() == {"error": "Text is required"}
    assert provider.calls == []


def test_stream_audio_rejects_out_of_range_settings() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post(
        "/api/stream-audio",
        json={"text": "Hello", "settings": {"stability": 1.5}},
    )

    assert response.status_code == 400
    assert "stability" in response.json()["error"]
    assert provider.calls == []


def test_stream_audio_reports_upstream_failure_as_json() -> None:
    provider = FakeSpeechProvider(
        error=ElevenLabsError(404, "A voice with the voice_id bogus was not found.")
    )
    client = make_client(provider)

    response = client.post(
        "/api/stream-audio", json={"text": "Hello", "voiceId": "bogus"}
    )

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {
        "error": "A voice with the voice_id bogus was not found."
    }


def test_preview_audio_returns_base64_payload() -> None:
    provider = FakeSpeechProvider(FakeSpeechStream(CHUNKS))
    client = make_client(provider)

    response = client.post("/api/audio/preview", json={"text": "Preview me"})

    assert response.status_code == 200
    body = response.json()
    assert body["media_type"] == "audio/mpeg"
    assert base64.b64decode(body["audio_base64"]) == b"".join(CHUNKS)


def test_stream_audio_reports_unexpected_provider_error_as_json() -> None:
    provider = FakeSpeechProvider(error=RuntimeError("sdk blew up"))
    client = make_client(provider)

    response = client.post("/api/stream-audio", json={"text": "Hello"})

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"error": "sdk blew up"}


def test_preview_audio_reports_mid_stream_failure_as_json() -> None:
    stream = FakeSpeechStream(CHUNKS, fail_after=1, failure=OSError("socket closed"))
    client = make_client(FakeSpeechProvider(stream))

    response = client.post("/api/audio/preview", json={"text": "Preview me"})

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"error": "Upstream read failed: socket closed"}
    assert stream.close_calls == 1


def test_stream_audio_truncates_body_on_mid_stream_failure(close_calls) -> None:
    stream = FakeSpeechStream(CHUNKS, fail_after=2)
    client = make_client(FakeSpeechProvider(stream), raise_server_exceptions=False)

    response = client.post("/api/stream-audio", json={"text": "Hello"})

    assert response.status_code == 200
    assert response.content == b"".join(CHUNKS[:2])
    assert len(close_calls) == 1
    assert close_calls[0] is not None
    assert stream.close_calls == 1


async def _post_stream_audio(app: FastAPI, send: Any) -> None:
    """Drive ``/api/stream-audio`` through the ASGI interface with a custom ``send``."""
    body = json.dumps({"text": "Hello from the relay"}).encode()
    body_sent = False

    async def receive() -> dict[str, Any]:
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        await asyncio.Event().wait()
        return {"type": "http.disconnect"}

    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/stream-audio",
        "raw_path": b"/api/stream-audio",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"content-type", b"application/json")],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    await app(scope, receive, send)


@pytest.mark.anyio
async def test_disconnect_before_first_chunk_releases_relay(close_calls) -> None:
    stream = FakeSpeechStream([b"frame-%d" % index for index in range(8)])
    app = make_app(FakeSpeechProvider(stream))

    async def send(message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            raise OSError("client went away")

    with pytest.raises((OSError, ClientDisconnect)):
        await _post_stream_audio(app, send)

    assert len(close_calls) == 1
    assert stream.close_calls == 1
    assert stream.reads <= 2


@pytest.mark.anyio
async def test_disconnect_mid_stream_cancels_relay(close_calls) -> None:
    chunks = [b"frame-%d" % index for index in range(8)]
    stream = FakeSpeechStream(chunks)
    app = make_app(FakeSpeechProvider(stream))
    delivered: list[bytes] = []

    async def send(message: dict[str, Any]) -> None:
        if message["type"] != "http.response.body" or not message.get("body"):
            return
        if len(delivered) == 2:
            raise OSError("client went away")
        delivered.append(message["body"])

    with pytest.raises((OSError, ClientDisconnect)):
        await _post_stream_audio(app, send)

    assert delivered == chunks[:2]
    assert len(close_calls) == 1
    assert stream.close_calls == 1
    # One chunk was pending in the sink and one more was in flight.
    assert stream.reads <= 5
