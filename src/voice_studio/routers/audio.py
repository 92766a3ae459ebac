"""Speech synthesis routes: chunked streaming and buffered previews."""

from __future__ import annotations

import base64
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..schemas.audio import AudioPreviewResponse, SpeechPayload
from ..services.speech import SpeechService
from ..services.stream_relay import StreamHandle
from .dependencies import get_speech_service

router = APIRouter(prefix="/api", tags=["audio"])


class RelayStreamingResponse(StreamingResponse):
    """Streaming response that always releases its relay, even if sending fails."""

    def __init__(self, handle: StreamHandle):
        super().__init__(
            handle.iter_chunks(),
            media_type=handle.media_type,
            headers=handle.headers,
        )
        self.handle = handle

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.handle.aclose()


@router.post("/stream-audio", response_model=None, status_code=200)
async def stream_audio(
    payload: SpeechPayload,
    service: SpeechService = Depends(get_speech_service),
) -> StreamingResponse:
    """Stream synthesized speech to the client as it is generated."""

    handle = await service.relay(payload.to_synthesis_request())
    return RelayStreamingResponse(handle)


@router.post("/audio/preview", response_model=AudioPreviewResponse)
async def preview_audio(
    payload: SpeechPayload,
    service: SpeechService = Depends(get_speech_service),
) -> AudioPreviewResponse:
    """Return the complete audio as base64 for inline playback."""

    audio = await service.synthesize_complete(payload.to_synthesis_request())
    return AudioPreviewResponse(audio_base64=base64.b64encode(audio).decode("ascii"))


__all__ = ["RelayStreamingResponse", "router"]
