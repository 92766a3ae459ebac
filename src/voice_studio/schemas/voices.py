"""Pydantic models for voice design and the saved voice library."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .audio import VoiceSettings

OutputFormat = Literal[
    "mp3_22050_32",
    "mp3_44100_64",
    "mp3_44100_96",
    "mp3_44100_128",
    "mp3_44100_192",
]


class VoiceDesignPreview(BaseModel):
    """One candidate voice generated from a description."""

    generated_voice_id: str = Field(..., min_length=1)
    audio_base64: str
    media_type: str = "audio/mpeg"
    duration_secs: float = 0.0

    model_config = ConfigDict(extra="ignore")


class VoiceDesignResult(BaseModel):
    previews: List[VoiceDesignPreview]
    text: str


class VoiceDesignPayload(BaseModel):
    """Request to generate candidate voices from a description."""

    voice_description: str = Field(..., min_length=20, max_length=1000)
    text: str = Field(..., min_length=100, max_length=1000)
    output_format: Optional[OutputFormat] = None


class VoiceCreatePayload(BaseModel):
    """Promote a chosen preview into a permanent, saved voice."""

    generated_voice_id: str = Field(..., min_length=1)
    voice_name: str = Field(..., min_length=1, max_length=100)
    voice_description: str = Field(..., min_length=1, max_length=1000)
    labels: Optional[Dict[str, str]] = None
    preview_url: Optional[str] = None
    settings: Optional[VoiceSettings] = None


class ProviderVoice(BaseModel):
    """A voice available in the provider account."""

    voice_id: str
    name: str = "Unnamed Voice"
    description: Optional[str] = None


class VoiceRecord(BaseModel):
    """A voice saved to the library of one user."""

    id: str
    user_id: str
    voice_id: str
    name: str
    description: Optional[str] = None
    preview_url: Optional[str] = None
    settings: VoiceSettings = Field(default_factory=VoiceSettings)
    created_at: str
    updated_at: str


class VoiceUpdatePayload(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    preview_url: Optional[str] = None
    settings: Optional[VoiceSettings] = None


__all__ = [
    "OutputFormat",
    "ProviderVoice",
    "VoiceCreatePayload",
    "VoiceDesignPayload",
    "VoiceDesignPreview",
    "VoiceDesignResult",
    "VoiceRecord",
    "VoiceUpdatePayload",
]
