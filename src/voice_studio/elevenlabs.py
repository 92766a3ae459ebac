"""ElevenLabs API client used for speech synthesis and voice design."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Mapping, Optional

import httpx
from fastapi import status
from pydantic import ValidationError

from .config import Settings
from .schemas.voices import ProviderVoice, VoiceDesignPreview, VoiceDesignResult

logger = logging.getLogger(__name__)


class ElevenLabsError(Exception):
    """Wrap transport or API failures when communicating with ElevenLabs."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class SpeechStream:
    """An open text-to-speech response yielding audio chunks as they arrive."""

    def __init__(self, response: httpx.Response):
        self._response = response

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise ElevenLabsError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    async def aclose(self) -> None:
        await self._response.aclose()


class ElevenLabsClient:
    """Client for the ElevenLabs REST API.

    One instance is built at startup and shared by reference; it owns a single
    pooled ``httpx.AsyncClient`` that is released by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
            limits = httpx.Limits(
                max_connections=50,
                max_keepalive_connections=20,
            )
            self._http_client = httpx.AsyncClient(timeout=timeout, limits=limits)
            logger.info("Created httpx.AsyncClient for ElevenLabs")
        return self._http_client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "xi-api-key": self._settings.elevenlabs_api_key.get_secret_value(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @property
    def _base_url(self) -> str:
        """Return the ElevenLabs API base URL without a trailing slash."""

        return str(self._settings.elevenlabs_base_url).rstrip("/")

    async def convert(
        self,
        voice_id: str,
        *,
        text: str,
        model_id: str,
        voice_settings: Mapping[str, Any],
    ) -> SpeechStream:
        """Open a streaming text-to-speech response.

        The returned stream must be closed by the caller. Failures before any
        audio arrives raise :class:`ElevenLabsError`.
        """

        url = f"{self._base_url}/text-to-speech/{voice_id}/stream"
        headers = dict(self._headers)
        headers["Accept"] = "audio/mpeg"
        payload = {
            "text": text,
            "model_id": model_id,
            "voice_settings": dict(voice_settings),
        }

        client = self._get_http_client()
        request = client.build_request("POST", url, headers=headers, json=payload)
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ElevenLabsError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            raise ElevenLabsError(response.status_code, self._extract_error_detail(body))

        logger.debug(
            "Opened ElevenLabs speech stream for voice %s (%d chars)",
            voice_id,
            len(text),
        )
        return SpeechStream(response)

    async def create_previews(
        self,
        *,
        voice_description: str,
        text: str,
        output_format: str,
    ) -> VoiceDesignResult:
        """Generate candidate voices for a natural-language description."""

        body = await self._request_json(
            "POST",
            "/text-to-voice/create-previews",
            params={"output_format": output_format},
            json={"voice_description": voice_description, "text": text},
        )
        raw_previews = body.get("previews")
        if not isinstance(raw_previews, list):
            raise ElevenLabsError(
                status.HTTP_502_BAD_GATEWAY, "Voice design response missing previews"
            )
        try:
            previews = [VoiceDesignPreview.model_validate(item) for item in raw_previews]
        except ValidationError as exc:
            raise ElevenLabsError(
                status.HTTP_502_BAD_GATEWAY, f"Malformed voice preview: {exc}"
            ) from exc
        returned_text = body.get("text")
        return VoiceDesignResult(
            previews=previews,
            text=returned_text if isinstance(returned_text, str) else text,
        )

    async def create_voice_from_preview(
        self,
        *,
        generated_voice_id: str,
        voice_name: str,
        voice_description: str,
        labels: Optional[Mapping[str, str]] = None,
    ) -> ProviderVoice:
        """Turn a generated preview into a permanent provider voice."""

        payload: dict[str, Any] = {
            "generated_voice_id": generated_voice_id,
            "voice_name": voice_name,
            "voice_description": voice_description,
        }
        if labels:
            payload["labels"] = dict(labels)

        body = await self._request_json("POST", "/text-to-voice", json=payload)
        voice_id = body.get("voice_id")
        if not isinstance(voice_id, str) or not voice_id:
            raise ElevenLabsError(
                status.HTTP_502_BAD_GATEWAY, "Voice creation response missing voice_id"
            )
        name = body.get("name")
        return ProviderVoice(
            voice_id=voice_id,
            name=name if isinstance(name, str) and name else voice_name,
            description=voice_description,
        )

    async def list_voices(self) -> list[ProviderVoice]:
        """Return the voices available to the configured account."""

        body = await self._request_json("GET", "/voices")
        raw_voices = body.get("voices")
        if not isinstance(raw_voices, list):
            return []

        voices: list[ProviderVoice] = []
        for item in raw_voices:
            if not isinstance(item, Mapping):
                continue
            voice_id = item.get("voice_id")
            if not isinstance(voice_id, str) or not voice_id:
                continue
            name = item.get("name")
            description = item.get("description")
            voices.append(
                ProviderVoice(
                    voice_id=voice_id,
                    name=name if isinstance(name, str) and name else "Unnamed Voice",
                    description=description if isinstance(description, str) else None,
                )
            )
        return voices

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        client = self._get_http_client()
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                params=params,
                json=json,
            )
        except httpx.HTTPError as exc:
            raise ElevenLabsError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            raise ElevenLabsError(response.status_code, detail)

        try:
            body = response.json()
        except ValueError as exc:
            raise ElevenLabsError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc
        if not isinstance(body, dict):
            raise ElevenLabsError(
                status.HTTP_502_BAD_GATEWAY, "Unexpected ElevenLabs response shape"
            )
        return body

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("Closed ElevenLabs HTTP client")

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "ElevenLabs returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            detail = payload.get("detail") or payload.get("error") or payload
            if isinstance(detail, dict) and isinstance(detail.get("message"), str):
                return detail["message"]
            return detail
        return payload


__all__ = ["ElevenLabsClient", "ElevenLabsError", "SpeechStream"]
