"""Error taxonomy shared by services and HTTP routes."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class VoiceStudioError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(VoiceStudioError):
    """Missing or empty required input, detected before any network call."""

    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamUnavailable(VoiceStudioError):
    """The speech provider failed before any audio was streamed."""


class StreamInterrupted(VoiceStudioError):
    """A stream failed after bytes were already committed downstream."""


class VoiceNotFound(VoiceStudioError):
    status_code = status.HTTP_404_NOT_FOUND


def _format_validation_error(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(
            str(item) for item in error.get("loc", ()) if item != "body"
        )
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def install_exception_handlers(app: FastAPI) -> None:
    """Report errors as ``{"error": ...}`` JSON bodies."""

    @app.exception_handler(VoiceStudioError)
    async def _handle_voice_studio_error(
        request: Request, exc: VoiceStudioError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _format_validation_error(exc)},
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc) or "Internal server error"},
        )


__all__ = [
    "InvalidArgument",
    "StreamInterrupted",
    "UpstreamUnavailable",
    "VoiceNotFound",
    "VoiceStudioError",
    "install_exception_handlers",
]
