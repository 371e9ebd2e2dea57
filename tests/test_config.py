from __future__ import annotations

import pytest
from pydantic import ValidationError

from gemini_voice_chat.config import Settings


def test_defaults_target_gemini_flash_with_five_attempts(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_VOICE_CHAT_MAX_RETRIES", raising=False)

    cfg = Settings(_env_file=None)

    assert cfg.max_retries == 5
    assert cfg.voice_name == "Kore"
    assert cfg.speech_language == "fa-IR"
    assert cfg.api_base_url.endswith("/v1beta")


def test_environment_overrides_use_prefix(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_VOICE_CHAT_MAX_RETRIES", "3")
    monkeypatch.setenv("GEMINI_VOICE_CHAT_SPEAK_IN_CHAT", "true")

    cfg = Settings(_env_file=None)

    assert cfg.max_retries == 3
    assert cfg.speak_in_chat is True


def test_retry_budget_must_allow_one_attempt(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_VOICE_CHAT_MAX_RETRIES", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
