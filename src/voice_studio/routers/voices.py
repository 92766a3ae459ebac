"""API routes for the saved voice library."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..schemas.voices import ProviderVoice, VoiceRecord, VoiceUpdatePayload
from ..services.voice_library import VoiceLibraryService
from .dependencies import get_current_user_id, get_voice_library_service

router = APIRouter(prefix="/api/voices", tags=["voices"])


@router.get("", response_model=List[VoiceRecord])
async def list_voices(
    service: VoiceLibraryService = Depends(get_voice_library_service),
    user_id: str = Depends(get_current_user_id),
) -> List[VoiceRecord]:
    return await service.list_voices(user_id)


@router.get("/provider", response_model=List[ProviderVoice])
async def list_provider_voices(
    service: VoiceLibraryService = Depends(get_voice_library_service),
) -> List[ProviderVoice]:
    """List stock and custom voices available in the ElevenLabs account."""
    return await service.list_provider_voices()


@router.patch("/{record_id}", response_model=VoiceRecord)
async def update_voice(
    record_id: str,
    payload: VoiceUpdatePayload,
    service: VoiceLibraryService = Depends(get_voice_library_service),
    user_id: str = Depends(get_current_user_id),
) -> VoiceRecord:
    return await service.update_voice(user_id, record_id, payload)


@router.delete("/{record_id}", response_model=dict)
async def delete_voice(
    record_id: str,
    service: VoiceLibraryService = Depends(get_voice_library_service),
    user_id: str = Depends(get_current_user_id),
) -> dict:
    await service.delete_voice(user_id, record_id)
    return {"deleted": True}


__all__ = ["router"]
