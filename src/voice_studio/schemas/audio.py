"""Pydantic models for speech synthesis requests."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"  # Bella

DEFAULT_STABILITY = 0.5
DEFAULT_SIMILARITY_BOOST = 0.75
DEFAULT_STYLE = 0.0
DEFAULT_USE_SPEAKER_BOOST = True


class VoiceSettings(BaseModel):
    """Voice tuning knobs; unset fields fall back to provider defaults."""

    stability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    similarity_boost: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    style: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    use_speaker_boost: Optional[bool] = None

    model_config = ConfigDict(frozen=True)

    def to_provider_payload(self) -> Dict[str, Any]:
        """Return the `voice_settings` object expected by ElevenLabs."""

        return {
            "stability": _default(self.stability, DEFAULT_STABILITY),
            "similarity_boost": _default(
                self.similarity_boost, DEFAULT_SIMILARITY_BOOST
            ),
            "style": _default(self.style, DEFAULT_STYLE),
            "use_speaker_boost": _default(
                self.use_speaker_boost, DEFAULT_USE_SPEAKER_BOOST
            ),
        }


def _default(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


class SynthesisRequest(BaseModel):
    """One accepted request to turn text into speech with a given voice."""

    text: str
    voice_id: str = Field(default=DEFAULT_VOICE_ID, min_length=1)
    settings: VoiceSettings = Field(default_factory=VoiceSettings)

    model_config = ConfigDict(frozen=True)


class SpeechPayload(BaseModel):
    """Incoming JSON body for the audio endpoints."""

    text: str = ""
    voice_id: str = Field(default=DEFAULT_VOICE_ID, alias="voiceId", min_length=1)
    settings: Optional[VoiceSettings] = None

    model_config = ConfigDict(populate_by_name=True)

    def to_synthesis_request(self) -> SynthesisRequest:
        return SynthesisRequest(
            text=self.text,
            voice_id=self.voice_id,
            settings=self.settings or VoiceSettings(),
        )


class AudioPreviewResponse(BaseModel):
    audio_base64: str
    media_type: str = "audio/mpeg"


__all__ = [
    "AudioPreviewResponse",
    "DEFAULT_VOICE_ID",
    "SpeechPayload",
    "SynthesisRequest",
    "VoiceSettings",
]
