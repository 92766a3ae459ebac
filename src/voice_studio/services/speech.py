"""Text-to-speech entry points: streaming relay and buffered synthesis."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Optional, Protocol

from ..elevenlabs import ElevenLabsError
from ..errors import InvalidArgument, StreamInterrupted, UpstreamUnavailable
from ..schemas.audio import SynthesisRequest
from .stream_relay import ChunkSink, StreamHandle, StreamRelay, UpstreamStream

logger = logging.getLogger(__name__)


class SpeechProvider(Protocol):
    async def convert(
        self,
        voice_id: str,
        *,
        text: str,
        model_id: str,
        voice_settings: Mapping[str, Any],
    ) -> UpstreamStream: ...


def _require_text(request: SynthesisRequest) -> None:
    if not request.text or not request.text.strip():
        raise InvalidArgument("Text is required")


class SpeechService:
    """Synthesize speech for saved or stock voices."""

    def __init__(
        self,
        provider: SpeechProvider,
        *,
        model_id: str,
        relay_timeout: Optional[float] = None,
        max_pending_chunks: int = 1,
    ) -> None:
        self._provider = provider
        self._model_id = model_id
        self._relay_timeout = relay_timeout
        self._max_pending_chunks = max_pending_chunks

    async def _open_upstream(self, request: SynthesisRequest) -> UpstreamStream:
        _require_text(request)
        try:
            return await self._provider.convert(
                request.voice_id,
                text=request.text,
                model_id=self._model_id,
                voice_settings=request.settings.to_provider_payload(),
            )
        except ElevenLabsError as exc:
            logger.error(
                "Failed to open speech stream for voice %s: %s",
                request.voice_id,
                exc.detail,
            )
            detail = exc.detail if isinstance(exc.detail, str) else str(exc)
            raise UpstreamUnavailable(detail) from exc
        except Exception as exc:
            logger.exception(
                "Unexpected error opening speech stream for voice %s", request.voice_id
            )
            raise UpstreamUnavailable(str(exc) or "Failed to stream audio") from exc

    async def relay(self, request: SynthesisRequest) -> StreamHandle:
        """Start streaming audio for ``request`` and return the live handle.

        Validation and upstream failures are raised here, before any byte is
        committed downstream. Everything after that is reported by closing the
        stream.
        """

        upstream = await self._open_upstream(request)
        label = uuid.uuid4().hex[:8]
        logger.info(
            "[%s] Relaying speech for voice %s (%d chars)",
            label,
            request.voice_id,
            len(request.text),
        )
        relay = StreamRelay(
            upstream,
            ChunkSink(max_pending=self._max_pending_chunks),
            timeout=self._relay_timeout,
            label=label,
        )
        return relay.start()

    async def synthesize_complete(self, request: SynthesisRequest) -> bytes:
        """Return the full encoded audio for ``request`` as one buffer."""

        upstream = await self._open_upstream(request)
        buffer = bytearray()
        try:
            async for chunk in upstream.iter_chunks():
                buffer.extend(chunk)
        except Exception as exc:
            logger.error("Speech stream for voice %s failed: %s", request.voice_id, exc)
            raise StreamInterrupted(f"Upstream read failed: {exc}") from exc
        finally:
            await upstream.aclose()

        logger.info(
            "Synthesized %d bytes for voice %s", len(buffer), request.voice_id
        )
        return bytes(buffer)


__all__ = ["SpeechProvider", "SpeechService"]
