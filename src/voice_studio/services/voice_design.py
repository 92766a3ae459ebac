"""Design new voices from descriptions and promote a preview to a saved voice."""

from __future__ import annotations

import logging
from typing import Optional

from ..elevenlabs import ElevenLabsClient, ElevenLabsError
from ..errors import InvalidArgument, UpstreamUnavailable
from ..repository import VoiceRepository
from ..schemas.voices import (
    VoiceCreatePayload,
    VoiceDesignPayload,
    VoiceDesignResult,
    VoiceRecord,
)

logger = logging.getLogger(__name__)


def _provider_failure(action: str, exc: ElevenLabsError) -> UpstreamUnavailable:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc)
    logger.error("%s failed (%s): %s", action, exc.status_code, detail)
    return UpstreamUnavailable(f"{action} failed: {detail}")


class VoiceDesignService:
    """Text-to-voice flow: describe, preview several candidates, keep one."""

    def __init__(
        self,
        client: ElevenLabsClient,
        repository: VoiceRepository,
        *,
        default_output_format: str = "mp3_44100_128",
    ) -> None:
        self._client = client
        self._repository = repository
        self._default_output_format = default_output_format

    async def create_previews(self, payload: VoiceDesignPayload) -> VoiceDesignResult:
        description = payload.voice_description.strip()
        text = payload.text.strip()
        if not description or not text:
            raise InvalidArgument("Please provide both voice description and sample text")

        try:
            result = await self._client.create_previews(
                voice_description=description,
                text=text,
                output_format=payload.output_format or self._default_output_format,
            )
        except ElevenLabsError as exc:
            raise _provider_failure("Voice design", exc) from exc

        logger.info("Generated %d voice previews", len(result.previews))
        return result

    async def create_voice(
        self, user_id: str, payload: VoiceCreatePayload
    ) -> VoiceRecord:
        """Create the permanent provider voice, then save it for ``user_id``."""

        name = payload.voice_name.strip()
        if not name:
            raise InvalidArgument("Voice name is required")

        try:
            voice = await self._client.create_voice_from_preview(
                generated_voice_id=payload.generated_voice_id,
                voice_name=name,
                voice_description=payload.voice_description,
                labels=payload.labels,
            )
        except ElevenLabsError as exc:
            raise _provider_failure("Voice creation", exc) from exc

        settings: Optional[dict] = (
            payload.settings.model_dump(exclude_none=True) if payload.settings else None
        )
        row = await self._repository.create_voice(
            user_id=user_id,
            voice_id=voice.voice_id,
            name=voice.name,
            description=payload.voice_description,
            preview_url=payload.preview_url,
            settings=settings,
        )
        logger.info("Saved voice %s (%s) for user %s", voice.name, voice.voice_id, user_id)
        return VoiceRecord.model_validate(row)


__all__ = ["VoiceDesignService"]
