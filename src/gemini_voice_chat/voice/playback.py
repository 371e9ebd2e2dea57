"""Single-slot audio playback exposed as an awaitable."""

from __future__ import annotations

import asyncio
import logging

from gemini_voice_chat.errors import PlaybackError
from gemini_voice_chat.models import AudioClip

from .interfaces import PlaybackEngine


class PlaybackController:
    """Keeps at most one clip playing; a new ``play`` stops the previous one."""

    def __init__(self, engine: PlaybackEngine, *, logger: logging.Logger | None = None) -> None:
        self._engine = engine
        self._logger = logger or logging.getLogger("gemini_voice_chat.voice.playback")
        self._current: asyncio.Future[bool] | None = None

    @property
    def is_playing(self) -> bool:
        return self._current is not None and not self._current.done()

    async def play(self, clip: AudioClip) -> bool:
        """Play ``clip``; True when it ended, False when it was interrupted.

        Raises :class:`PlaybackError` when the engine reports an error.
        """
        self.stop()
        done: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._current = done

        def _ended() -> None:
            if not done.done():
                done.set_result(True)

        def _failed(message: str) -> None:
            if not done.done():
                done.set_exception(PlaybackError(code="PLAYBACK_FAILED", message=message))

        try:
            self._engine.play(clip.wav, on_ended=_ended, on_error=_failed)
        except Exception as exc:  # noqa: BLE001 - surfaced as a playback error.
            self._current = None
            raise PlaybackError(code="PLAYBACK_FAILED", message=f"{type(exc).__name__}: {exc}") from exc

        self._logger.info("playback_started", extra={"seconds": round(clip.duration_seconds, 2)})
        try:
            return await done
        finally:
            if self._current is done:
                self._current = None

    def stop(self) -> None:
        current = self._current
        if current is None or current.done():
            return
        current.set_result(False)
        self._current = None
        self._engine.stop()
        self._logger.info("playback_stopped")
