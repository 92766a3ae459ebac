"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .elevenlabs import ElevenLabsClient
from .errors import install_exception_handlers
from .repository import VoiceRepository
from .routers.audio import router as audio_router
from .routers.voice_design import router as voice_design_router
from .routers.voices import router as voices_router
from .services.speech import SpeechService
from .services.voice_design import VoiceDesignService
from .services.voice_library import VoiceLibraryService

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_file = os.getenv("LOG_FILE")
    handlers: list[logging.Handler] = []

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        )
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    )
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("voice_studio").setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # httpx logs every request at INFO; keep it for DEBUG sessions only
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()

    project_root = Path(__file__).resolve().parent.parent.parent

    def _resolve_under(base: Path, p: Path) -> Path:
        # Allow absolute paths as-is (useful for tests and external mounts).
        if p.is_absolute():
            return p.resolve()
        resolved = (base / p).resolve()
        if not resolved.is_relative_to(base):
            raise ValueError(f"Configured path {resolved} escapes project root {base}")
        return resolved

    elevenlabs_client = ElevenLabsClient(settings)
    repository = VoiceRepository(
        _resolve_under(project_root, settings.voices_database_path)
    )

    speech_service = SpeechService(
        elevenlabs_client,
        model_id=settings.elevenlabs_model_id,
        relay_timeout=settings.stream_relay_timeout,
    )
    voice_design_service = VoiceDesignService(
        elevenlabs_client,
        repository,
        default_output_format=settings.preview_output_format,
    )
    voice_library_service = VoiceLibraryService(elevenlabs_client, repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await repository.initialize()
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(elevenlabs_client.aclose(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("ElevenLabs client shutdown timed out after 10s")
            await repository.close()

    app = FastAPI(
        title="Voice Studio Backend",
        version="0.1.0",
        description="Design voices with ElevenLabs and stream speech from them.",
        lifespan=lifespan,
    )

    app.state.elevenlabs_client = elevenlabs_client
    app.state.voice_repository = repository
    app.state.speech_service = speech_service
    app.state.voice_design_service = voice_design_service
    app.state.voice_library_service = voice_library_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_exception_handlers(app)

    app.include_router(audio_router)
    app.include_router(voice_design_router)
    app.include_router(voices_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


__all__ = ["create_app"]
