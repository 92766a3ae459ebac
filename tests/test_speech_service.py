from __future__ import annotations

import pytest
from pydantic import ValidationError

from fakes import FakeSpeechProvider, FakeSpeechStream
from voice_studio.elevenlabs import ElevenLabsError
from voice_studio.errors import InvalidArgument, StreamInterrupted, UpstreamUnavailable
from voice_studio.schemas.audio import DEFAULT_VOICE_ID, SynthesisRequest, VoiceSettings
from voice_studio.services.speech import SpeechService


def make_service(provider: FakeSpeechProvider) -> SpeechService:
    return SpeechService(provider, model_id="eleven_multilingual_v2")


@pytest.mark.anyio
@pytest.mark.parametrize("text", ["", "   \n"])
async def test_relay_rejects_empty_text_without_calling_provider(text):
    provider = FakeSpeechProvider(FakeSpeechStream([b"x"]))

    with pytest.raises(InvalidArgument, match="Text is required"):
        await make_service(provider).relay(SynthesisRequest(text=text))

    assert provider.calls == []


@pytest.mark.anyio
async def test_synthesize_complete_rejects_empty_text():
    provider = FakeSpeechProvider(FakeSpeechStream([b"x"]))

    with pytest.raises(InvalidArgument):
        await make_service(provider).synthesize_complete(SynthesisRequest(text=""))

    assert provider.calls == []


@pytest.mark.anyio
async def test_upstream_open_failure_is_reported_before_streaming():
    provider = FakeSpeechProvider(error=ElevenLabsError(401, "Invalid API key"))

    with pytest.raises(UpstreamUnavailable, match="Invalid API key"):
        await make_service(provider).relay(SynthesisRequest(text="Hello"))

    assert len(provider.calls) == 1


@pytest.mark.anyio
async def test_default_voice_settings_are_applied():
    stream = FakeSpeechStream([b"x"])
    provider = FakeSpeechProvider(stream)

    await make_service(provider).synthesize_complete(SynthesisRequest(text="Hello"))

    call = provider.calls[0]
    assert call["voice_id"] == DEFAULT_VOICE_ID
    assert call["model_id"] == "eleven_multilingual_v2"
    assert call["voice_settings"] == {
        "stability": 0.5,
        "similarity_boost": 0.75,
        "style": 0.0,
        "use_speaker_boost": True,
    }


@pytest.mark.anyio
async def test_partial_settings_override_only_given_fields():
    provider = FakeSpeechProvider(FakeSpeechStream([b"x"]))
    request = SynthesisRequest(
        text="Hello",
        voice_id="voice-123",
        settings=VoiceSettings(stability=0.2, use_speaker_boost=False),
    )

    await make_service(provider).synthesize_complete(request)

    call = provider.calls[0]
    assert call["voice_id"] == "voice-123"
    assert call["voice_settings"] == {
        "stability": 0.2,
        "similarity_boost": 0.75,
        "style": 0.0,
        "use_speaker_boost": False,
    }


def test_zero_valued_settings_are_not_replaced_by_defaults():
    payload = VoiceSettings(stability=0.0, similarity_boost=0.0).to_provider_payload()

    assert payload["stability"] == 0.0
    assert payload["similarity_boost"] == 0.0


@pytest.mark.anyio
async def test_synthesize_complete_concatenates_chunks():
    stream = FakeSpeechStream([b"ab", b"cd", b"", b"ef"])
    provider = FakeSpeechProvider(stream)

    audio = await make_service(provider).synthesize_complete(
        SynthesisRequest(text="Hello")
    )

    assert audio == b"abcdef"
    assert stream.close_calls == 1


@pytest.mark.anyio
async def test_synthesize_complete_mid_stream_failure():
    stream = FakeSpeechStream([b"ab", b"cd", b"ef"], fail_after=2)
    provider = FakeSpeechProvider(stream)

    with pytest.raises(StreamInterrupted):
        await make_service(provider).synthesize_complete(SynthesisRequest(text="Hello"))

    assert stream.close_calls == 1


def test_synthesis_request_is_immutable():
    request = SynthesisRequest(text="Hello")

    with pytest.raises(ValidationError):
        request.text = "changed"  # type: ignore[misc]
