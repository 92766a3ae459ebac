"""Shared FastAPI dependencies resolving services from application state."""

from __future__ import annotations

from fastapi import Depends, Request

from ..config import Settings, get_settings
from ..services.speech import SpeechService
from ..services.voice_design import VoiceDesignService
from ..services.voice_library import VoiceLibraryService


def get_speech_service(request: Request) -> SpeechService:
    service = getattr(request.app.state, "speech_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Speech service is not configured")
    return service


def get_voice_design_service(request: Request) -> VoiceDesignService:
    service = getattr(request.app.state, "voice_design_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Voice design service is not configured")
    return service


def get_voice_library_service(request: Request) -> VoiceLibraryService:
    service = getattr(request.app.state, "voice_library_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Voice library service is not configured")
    return service


def get_current_user_id(settings: Settings = Depends(get_settings)) -> str:
    # Single placeholder owner; there is no login yet.
    return settings.default_user_id


__all__ = [
    "get_current_user_id",
    "get_speech_service",
    "get_voice_design_service",
    "get_voice_library_service",
]
