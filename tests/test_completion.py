from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from gemini_voice_chat.completion import CompletionClient, build_request_body
from gemini_voice_chat.config import Settings
from gemini_voice_chat.errors import FatalRequestError, RetriesExhaustedError
from gemini_voice_chat.models import MessageRole, RequestPayload, Turn

PAYLOAD = RequestPayload(turns=[Turn(role=MessageRole.user, text="سلام")])


def _ok(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


class ScriptedHandler:
    """Returns the scripted responses in order, repeating the last one."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


def _run(handler: ScriptedHandler, *, api_key: str = "test-key", max_retries: int = 5):
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def _call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(
                Settings(api_key=api_key, max_retries=max_retries),
                http_client=http,
                sleep=fake_sleep,
            )
            return await client.complete(PAYLOAD)

    return asyncio.run(_call()), delays


def test_rate_limit_then_success_retries_once() -> None:
    handler = ScriptedHandler(httpx.Response(429), _ok("درود"))

    text, delays = _run(handler)

    assert text == "درود"
    assert len(handler.requests) == 2
    assert delays == [2.0]
    assert delays[0] >= 1.0


def test_bad_request_is_fatal_after_one_attempt() -> None:
    handler = ScriptedHandler(httpx.Response(400, text="invalid argument"))

    with pytest.raises(FatalRequestError) as excinfo:
        _run(handler)

    assert len(handler.requests) == 1
    assert excinfo.value.status_code == 400
    assert "invalid argument" in excinfo.value.message


def test_server_errors_exhaust_retries_with_exponential_backoff() -> None:
    handler = ScriptedHandler(httpx.Response(500))
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def _call() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(Settings(api_key="k"), http_client=http, sleep=fake_sleep)
            await client.complete(PAYLOAD)

    with pytest.raises(RetriesExhaustedError) as excinfo:
        asyncio.run(_call())

    assert len(handler.requests) == 5
    assert excinfo.value.attempts == 5
    assert [delay * 1000 for delay in delays] == [2000, 4000, 8000, 16000]


def test_forbidden_and_transport_errors_are_retryable() -> None:
    handler = ScriptedHandler(
        httpx.Response(403),
        httpx.ConnectError("connection refused"),
        _ok("ok"),
    )

    text, delays = _run(handler)

    assert text == "ok"
    assert len(handler.requests) == 3
    assert delays == [2.0, 4.0]


def test_success_without_text_is_empty_string() -> None:
    handler = ScriptedHandler(httpx.Response(200, json={"candidates": []}))

    text, delays = _run(handler)

    assert text == ""
    assert delays == []


def test_request_level_httpx_errors_are_retryable() -> None:
    handler = ScriptedHandler(
        httpx.DecodingError("bad gzip"),
        httpx.TooManyRedirects("redirect loop"),
        _ok("ok"),
    )

    text, delays = _run(handler)

    assert text == "ok"
    assert len(handler.requests) == 3
    assert delays == [2.0, 4.0]


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": ["x"]},
        {"candidates": [{"content": "x"}]},
        {"candidates": [{"content": {"parts": ["x"]}}]},
        ["not", "an", "object"],
    ],
)
def test_malformed_candidates_yield_empty_string(body) -> None:
    handler = ScriptedHandler(httpx.Response(200, json=body))

    text, _ = _run(handler)

    assert text == ""


def test_missing_api_key_fails_without_network() -> None:
    handler = ScriptedHandler(_ok("unused"))

    with pytest.raises(FatalRequestError) as excinfo:
        _run(handler, api_key="")

    assert excinfo.value.code == "MISSING_API_KEY"
    assert handler.requests == []


def test_request_targets_model_and_carries_turns() -> None:
    handler = ScriptedHandler(_ok("ok"))

    _run(handler)

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path.endswith("/models/gemini-2.5-flash-preview-05-20:generateContent")
    assert request.url.params["key"] == "test-key"
    assert json.loads(request.content) == {"contents": [{"role": "user", "parts": [{"text": "سلام"}]}]}


def test_request_body_maps_roles_and_system_prompt() -> None:
    body = build_request_body(
        RequestPayload(
            turns=[Turn(role=MessageRole.user, text="q"), Turn(role=MessageRole.assistant, text="a")],
            system_prompt="be brief",
        )
    )

    assert [content["role"] for content in body["contents"]] == ["user", "model"]
    assert body["systemInstruction"] == {"parts": [{"text": "be brief"}]}
