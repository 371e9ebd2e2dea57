"""Speech playback and typed-out text reveal for assistant replies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Protocol

from gemini_voice_chat.conversation import ConversationStore
from gemini_voice_chat.errors import AssistantError
from gemini_voice_chat.models import AudioClip, MessageHandle
from gemini_voice_chat.prompts import ANNOUNCEMENTS
from gemini_voice_chat.voice.playback import PlaybackController

Sleep = Callable[[float], Awaitable[None]]


class Synthesizer(Protocol):
    async def synthesize(self, text: str) -> AudioClip:
        """Return a playable clip for ``text``."""


class SpeechOutcomeKind(str, Enum):
    PLAYED = "played"
    INTERRUPTED = "interrupted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class SpeechOutcome:
    kind: SpeechOutcomeKind
    error: str | None = None


class ResponseRenderer:
    """Reveals a reply one character per tick while its speech plays independently.

    :meth:`render` returns when the reveal is complete. The speech task is
    handed back to the caller still running, since playback can outlast typing.
    Speech failures are reported in the task's :class:`SpeechOutcome` and never
    interrupt the reveal.
    """

    def __init__(
        self,
        store: ConversationStore,
        synthesizer: Synthesizer | None,
        playback: PlaybackController | None,
        *,
        typing_interval_ms: int = 25,
        sleep: Sleep = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._synthesizer = synthesizer
        self._playback = playback
        self._interval = typing_interval_ms / 1000
        self._sleep = sleep
        self._logger = logger or logging.getLogger("gemini_voice_chat.rendering")

    @property
    def can_speak(self) -> bool:
        return self._synthesizer is not None and self._playback is not None

    async def render(
        self,
        text: str,
        handle: MessageHandle,
        *,
        speak: bool = True,
        on_speech: Callable[[asyncio.Task[SpeechOutcome]], None] | None = None,
    ) -> asyncio.Task[SpeechOutcome] | None:
        speech_task = None
        if speak and self.can_speak:
            speech_task = asyncio.create_task(self._speak(handle, text), name="response-speech")
            if on_speech is not None:
                on_speech(speech_task)
        await self._reveal(text, handle)
        return speech_task

    async def replay(self, handle: MessageHandle) -> SpeechOutcome:
        """Play a rendered message again, reusing its cached clip when present."""
        message = self._store.get(handle)
        if message is None or not self.can_speak:
            return SpeechOutcome(kind=SpeechOutcomeKind.SKIPPED)
        if message.audio is not None:
            self._logger.info("replay_cached", extra={"index": handle.index})
            return await self._play(message.audio)
        return await self._speak(handle, message.text)

    async def _reveal(self, text: str, handle: MessageHandle) -> None:
        self._store.update(handle, text="")
        for count in range(1, len(text) + 1):
            await self._sleep(self._interval)
            self._store.update(handle, text=text[:count])
        self._logger.debug("reveal_finished", extra={"index": handle.index, "chars": len(text)})

    async def _speak(self, handle: MessageHandle, text: str) -> SpeechOutcome:
        message = self._store.get(handle)
        if message is None:
            return SpeechOutcome(kind=SpeechOutcomeKind.SKIPPED)
        spoken = ANNOUNCEMENTS.get(message.tag, text) if message.tag is not None else text
        if not spoken.strip():
            return SpeechOutcome(kind=SpeechOutcomeKind.SKIPPED)

        try:
            clip = await self._synthesizer.synthesize(spoken)
        except AssistantError as exc:
            self._logger.warning("speech_synthesis_failed", extra={"index": handle.index, "error": exc.message})
            return SpeechOutcome(kind=SpeechOutcomeKind.FAILED, error=exc.message)

        self._store.attach_audio(handle, clip)
        return await self._play(clip)

    async def _play(self, clip: AudioClip) -> SpeechOutcome:
        try:
            ended = await self._playback.play(clip)
        except AssistantError as exc:
            self._logger.warning("speech_playback_failed", extra={"error": exc.message})
            return SpeechOutcome(kind=SpeechOutcomeKind.FAILED, error=exc.message)
        return SpeechOutcome(kind=SpeechOutcomeKind.PLAYED if ended else SpeechOutcomeKind.INTERRUPTED)
