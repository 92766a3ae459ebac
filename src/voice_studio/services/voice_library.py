"""Saved voice library and provider voice catalogue."""

from __future__ import annotations

import logging
from typing import List

from ..elevenlabs import ElevenLabsClient, ElevenLabsError
from ..errors import UpstreamUnavailable, VoiceNotFound
from ..repository import VoiceRepository
from ..schemas.voices import ProviderVoice, VoiceRecord, VoiceUpdatePayload

logger = logging.getLogger(__name__)


class VoiceLibraryService:
    def __init__(self, client: ElevenLabsClient, repository: VoiceRepository) -> None:
        self._client = client
        self._repository = repository

    async def list_voices(self, user_id: str) -> List[VoiceRecord]:
        rows = await self._repository.list_voices(user_id)
        return [VoiceRecord.model_validate(row) for row in rows]

    async def update_voice(
        self, user_id: str, record_id: str, payload: VoiceUpdatePayload
    ) -> VoiceRecord:
        updates = payload.model_dump(exclude_unset=True)
        if updates.get("name") is None:
            updates.pop("name", None)
        if "settings" in updates and payload.settings is not None:
            updates["settings"] = payload.settings.model_dump(exclude_none=True)
        row = await self._repository.update_voice(user_id, record_id, updates)
        if row is None:
            raise VoiceNotFound(f"Voice {record_id} not found")
        return VoiceRecord.model_validate(row)

    async def delete_voice(self, user_id: str, record_id: str) -> None:
        deleted = await self._repository.delete_voice(user_id, record_id)
        if not deleted:
            raise VoiceNotFound(f"Voice {record_id} not found")
        logger.info("Deleted voice %s for user %s", record_id, user_id)

    async def list_provider_voices(self) -> List[ProviderVoice]:
        try:
            return await self._client.list_voices()
        except ElevenLabsError as exc:
            logger.error("Fetching provider voices failed: %s", exc.detail)
            raise UpstreamUnavailable("Failed to fetch voices") from exc


__all__ = ["VoiceLibraryService"]
