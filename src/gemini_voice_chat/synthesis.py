"""Speech synthesis through the Gemini TTS model."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from gemini_voice_chat.audio import encode_wav, parse_sample_rate, pcm16_to_samples
from gemini_voice_chat.completion import first_part, generate_content_url
from gemini_voice_chat.config import Settings, settings
from gemini_voice_chat.errors import SynthesisError
from gemini_voice_chat.models import AudioClip


class SpeechSynthesisClient:
    """Turns text into a playable WAV clip using the configured prebuilt voice."""

    def __init__(
        self,
        cfg: Settings = settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = cfg
        self._http_client = http_client
        self._logger = logger or logging.getLogger("gemini_voice_chat.synthesis")

    async def synthesize(self, text: str) -> AudioClip:
        if not self._settings.api_key:
            raise SynthesisError(code="MISSING_API_KEY", message="GEMINI_VOICE_CHAT_API_KEY is not set")

        url = generate_content_url(self._settings, self._settings.tts_model_name)
        try:
            response = await self._post(url, self.build_request_body(text))
        except httpx.RequestError as exc:
            raise SynthesisError(code="NETWORK_ERROR", message=f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise SynthesisError(
                code="TTS_API_ERROR",
                message=f"TTS API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise SynthesisError(code="INVALID_RESPONSE", message="TTS API returned a body that is not JSON") from exc

        clip = self.clip_from_response(data)
        self._logger.info(
            "speech_synthesized",
            extra={"chars": len(text), "sample_rate": clip.sample_rate, "bytes": len(clip.wav)},
        )
        return clip

    def build_request_body(self, text: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self._settings.voice_name}},
                },
            },
            "model": self._settings.tts_model_name,
        }

    @staticmethod
    def clip_from_response(data: Any) -> AudioClip:
        inline = first_part(data).get("inlineData") or {}
        encoded = inline.get("data")
        mime_type = inline.get("mimeType")
        if not encoded or not isinstance(mime_type, str) or not mime_type.startswith("audio/"):
            raise SynthesisError(code="NO_AUDIO", message="TTS response contained no audio data")

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisError(code="BAD_AUDIO_ENCODING", message="TTS audio is not valid base64") from exc

        sample_rate = parse_sample_rate(mime_type)
        return AudioClip(wav=encode_wav(pcm16_to_samples(raw), sample_rate), sample_rate=sample_rate)

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        params = {"key": self._settings.api_key}
        if self._http_client is not None:
            return await self._http_client.post(url, json=body, params=params)
        async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
            return await client.post(url, json=body, params=params)
