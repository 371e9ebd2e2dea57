"""Gemini ``generateContent`` client with bounded retry and exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from gemini_voice_chat.config import Settings, settings
from gemini_voice_chat.errors import FatalRequestError, RetriesExhaustedError
from gemini_voice_chat.models import MessageRole, RequestPayload

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_STATUSES = frozenset({403, 429})
_ERROR_DETAIL_CHARS = 150


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES or status_code >= 500


def backoff_ms(attempt: int) -> int:
    """Delay after the ``attempt``-th failure (1-based): 2000, 4000, 8000, ..."""
    return 2**attempt * 1000


def generate_content_url(cfg: Settings, model: str) -> str:
    return f"{cfg.api_base_url.rstrip('/')}/models/{model}:generateContent"


def build_request_body(payload: RequestPayload) -> dict[str, Any]:
    """Serialize a payload to the Gemini ``contents``/``systemInstruction`` shape."""
    body: dict[str, Any] = {
        "contents": [
            {
                "role": "model" if turn.role == MessageRole.assistant else "user",
                "parts": [{"text": turn.text}],
            }
            for turn in payload.turns
        ]
    }
    if payload.system_prompt:
        body["systemInstruction"] = {"parts": [{"text": payload.system_prompt}]}
    return body


def first_part(data: Any) -> dict[str, Any]:
    """Return ``candidates[0].content.parts[0]`` or an empty dict."""
    if not isinstance(data, dict):
        return {}
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        return {}
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return {}
    content = candidate.get("content")
    if not isinstance(content, dict):
        return {}
    parts = content.get("parts") or []
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return {}
    return parts[0]


def extract_text(data: Any) -> str:
    text = first_part(data).get("text")
    return text if isinstance(text, str) else ""


class CompletionClient:
    """Issues one logical completion made of up to ``max_retries`` physical attempts.

    403, 429, 5xx and request-level httpx failures are retried after ``2**attempt`` seconds.
    Any other non-2xx status is raised immediately as :class:`FatalRequestError`.
    A 2xx response without generated text yields ``""``.
    """

    def __init__(
        self,
        cfg: Settings = settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = cfg
        self._http_client = http_client
        self._sleep = sleep
        self._logger = logger or logging.getLogger("gemini_voice_chat.completion")

    @property
    def max_retries(self) -> int:
        return self._settings.max_retries

    async def complete(self, payload: RequestPayload) -> str:
        if not self._settings.api_key:
            raise FatalRequestError(code="MISSING_API_KEY", message="GEMINI_VOICE_CHAT_API_KEY is not set")

        url = generate_content_url(self._settings, self._settings.model_name)
        body = build_request_body(payload)
        last_error = "unknown error"

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._post(url, body)
            except httpx.RequestError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                self._logger.warning(
                    "completion_transport_error",
                    extra={"attempt": attempt, "error": last_error},
                )
            else:
                if response.is_success:
                    self._logger.info(
                        "completion_succeeded",
                        extra={"attempt": attempt, "status": response.status_code},
                    )
                    return self._parse(response)

                if not is_retryable_status(response.status_code):
                    detail = response.text[:_ERROR_DETAIL_CHARS]
                    self._logger.error(
                        "completion_fatal_status",
                        extra={"attempt": attempt, "status": response.status_code},
                    )
                    raise FatalRequestError(
                        code="REQUEST_REJECTED",
                        message=f"Client or API configuration error! Status: {response.status_code}. Details: {detail}",
                        status_code=response.status_code,
                    )

                last_error = f"API Error: {response.status_code} {response.reason_phrase}"
                self._logger.warning(
                    "completion_retryable_status",
                    extra={"attempt": attempt, "status": response.status_code},
                )

            if attempt < self.max_retries:
                await self._sleep(backoff_ms(attempt) / 1000)

        raise RetriesExhaustedError(
            code="RETRIES_EXHAUSTED",
            message=f"Failed to fetch response after {self.max_retries} attempts ({last_error})",
            attempts=self.max_retries,
            last_error=last_error,
        )

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        params = {"key": self._settings.api_key}
        if self._http_client is not None:
            return await self._http_client.post(url, json=body, params=params)
        async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
            return await client.post(url, json=body, params=params)

    def _parse(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as exc:
            raise FatalRequestError(
                code="INVALID_RESPONSE",
                message="API returned a body that is not JSON",
                status_code=response.status_code,
            ) from exc
        return extract_text(data)
