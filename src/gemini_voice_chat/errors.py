"""Error types shared across the assistant.

Every error raised across module boundaries derives from ``AssistantError`` so
the session layer can catch one type and turn it into a message or a notice.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base error carrying a machine-readable code and a readable message."""

    def __init__(self, code: str, message: str, **extra) -> None:
        self.code = code
        self.message = message
        self.extra = extra
        super().__init__(message)


class CompletionError(AssistantError):
    """The completion request failed for good."""


class FatalRequestError(CompletionError):
    """Request rejected in a way a retry cannot fix (e.g. HTTP 400)."""

    def __init__(self, code: str, message: str, status_code: int | None = None, **extra) -> None:
        super().__init__(code, message, **extra)
        self.status_code = status_code


class RetriesExhaustedError(CompletionError):
    """Every physical attempt failed with a retryable error."""

    def __init__(self, code: str, message: str, attempts: int, **extra) -> None:
        super().__init__(code, message, **extra)
        self.attempts = attempts


class SynthesisError(AssistantError):
    """Speech synthesis request failed or returned no audio."""


class PlaybackError(AssistantError):
    """The playback engine reported an error."""


class CaptureError(AssistantError):
    """The speech recognition engine reported an error."""


class AudioFormatError(AssistantError):
    """Bytes are not a mono 16-bit PCM WAV container."""


class PendingReplyError(AssistantError):
    """A reply placeholder is already pending."""
