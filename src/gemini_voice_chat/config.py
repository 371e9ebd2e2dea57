"""Runtime configuration for Gemini Voice Chat."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_VOICE_CHAT_", env_file=".env", extra="ignore")

    app_name: str = "gemini-voice-chat"
    log_level: str = "INFO"
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the completion and synthesis endpoints.",
    )
    api_key: str = ""
    model_name: str = "gemini-2.5-flash-preview-05-20"
    tts_model_name: str = "gemini-2.5-flash-preview-tts"
    voice_name: str = "Kore"
    max_retries: int = Field(default=5, ge=1)
    typing_interval_ms: int = Field(default=25, ge=0)
    http_timeout: float = 60.0
    speech_language: str = "fa-IR"
    speak_in_chat: bool = False


settings = Settings()
