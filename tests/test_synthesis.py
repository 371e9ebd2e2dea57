from __future__ import annotations

import asyncio
import base64
import json
import struct

import httpx
import pytest

from gemini_voice_chat.audio import decode_wav
from gemini_voice_chat.config import Settings
from gemini_voice_chat.errors import SynthesisError
from gemini_voice_chat.synthesis import SpeechSynthesisClient


def _audio_response(samples: list[int], mime_type: str = "audio/L16;codec=pcm;rate=16000") -> httpx.Response:
    pcm = struct.pack(f"<{len(samples)}h", *samples)
    part = {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(pcm).decode("ascii")}}
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [part]}}]})


def _synthesize(response: httpx.Response, requests: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return response

    async def _call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = SpeechSynthesisClient(Settings(api_key="k", voice_name="Puck"), http_client=http)
            return await client.synthesize("سلام")

    return asyncio.run(_call())


def test_pcm_response_is_wrapped_into_wav_clip() -> None:
    requests: list[httpx.Request] = []

    clip = _synthesize(_audio_response([1, -2, 3]), requests)

    decoded = decode_wav(clip.wav)
    assert clip.sample_rate == 16_000
    assert decoded.samples == [1, -2, 3]
    assert decoded.sample_rate == 16_000

    body = json.loads(requests[0].content)
    assert body["generationConfig"]["responseModalities"] == ["AUDIO"]
    assert body["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Puck"
    assert requests[0].url.path.endswith("/models/gemini-2.5-flash-preview-tts:generateContent")


def test_http_error_raises_synthesis_error() -> None:
    with pytest.raises(SynthesisError) as excinfo:
        _synthesize(httpx.Response(500))

    assert excinfo.value.code == "TTS_API_ERROR"


def test_response_without_audio_raises() -> None:
    with pytest.raises(SynthesisError) as excinfo:
        _synthesize(httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "no audio"}]}}]}))

    assert excinfo.value.code == "NO_AUDIO"


def test_request_level_httpx_error_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip")

    async def _call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = SpeechSynthesisClient(Settings(api_key="k"), http_client=http)
            return await client.synthesize("سلام")

    with pytest.raises(SynthesisError) as excinfo:
        asyncio.run(_call())

    assert excinfo.value.code == "NETWORK_ERROR"
    assert "bad gzip" in excinfo.value.message
