"""API routes for designing voices from natural-language descriptions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..schemas.voices import (
    VoiceCreatePayload,
    VoiceDesignPayload,
    VoiceDesignResult,
    VoiceRecord,
)
from ..services.voice_design import VoiceDesignService
from .dependencies import get_current_user_id, get_voice_design_service

router = APIRouter(prefix="/api/voice-design", tags=["voice-design"])


@router.post("/previews", response_model=VoiceDesignResult)
async def create_previews(
    payload: VoiceDesignPayload,
    service: VoiceDesignService = Depends(get_voice_design_service),
) -> VoiceDesignResult:
    return await service.create_previews(payload)


@router.post(
    "/voices",
    response_model=VoiceRecord,
    status_code=status.HTTP_201_CREATED,
)
async def create_voice(
    payload: VoiceCreatePayload,
    service: VoiceDesignService = Depends(get_voice_design_service),
    user_id: str = Depends(get_current_user_id),
) -> VoiceRecord:
    """Keep the selected preview as a permanent voice."""
    return await service.create_voice(user_id, payload)


__all__ = ["router"]
