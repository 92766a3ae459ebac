"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    elevenlabs_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "elevenlabs_api_key"),
    )
    elevenlabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.elevenlabs.io/v1"),
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "elevenlabs_base_url"),
    )
    elevenlabs_model_id: str = Field(
        default="eleven_multilingual_v2",
        validation_alias=AliasChoices("ELEVENLABS_MODEL_ID", "elevenlabs_model_id"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("ELEVENLABS_TIMEOUT", "timeout"),
        ge=1,
    )
    # Unset means the forwarding loop has no deadline
    stream_relay_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices(
            "STREAM_RELAY_TIMEOUT",
            "stream_relay_timeout",
        ),
    )
    preview_output_format: str = Field(
        default="mp3_44100_128",
        validation_alias=AliasChoices(
            "PREVIEW_OUTPUT_FORMAT",
            "preview_output_format",
        ),
    )
    voices_database_path: Path = Field(
        default_factory=lambda: Path("data/voices.db"),
        validation_alias=AliasChoices("VOICES_DATABASE_PATH", "voices_db"),
    )
    # Placeholder owner for saved voices until real accounts exist
    default_user_id: str = Field(
        default="00000000-0000-0000-0000-000000000001",
        min_length=1,
        validation_alias=AliasChoices("DEFAULT_USER_ID", "default_user_id"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
