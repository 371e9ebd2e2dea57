"""Playback engine powered by ``simpleaudio``."""

from __future__ import annotations

import asyncio
import io
import threading
import wave
from typing import Callable

from .interfaces import PlaybackEngine


class SimpleaudioPlaybackEngine(PlaybackEngine):
    """Speaker playback of WAV bytes; completion is awaited on a worker thread."""

    def __init__(self) -> None:
        try:
            import simpleaudio
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Audio output backend unavailable. Install extras with: pip install 'gemini-voice-chat[voice]'"
            ) from exc
        self._sa = simpleaudio
        self._play_object = None

    def play(
        self,
        wav: bytes,
        *,
        on_ended: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None:
        loop = asyncio.get_running_loop()
        with wave.open(io.BytesIO(wav), "rb") as reader:
            wave_object = self._sa.WaveObject.from_wave_read(reader)
        play_object = wave_object.play()
        self._play_object = play_object

        def _wait() -> None:
            try:
                play_object.wait_done()
            except Exception as exc:  # noqa: BLE001 - reported through on_error.
                loop.call_soon_threadsafe(on_error, f"{type(exc).__name__}: {exc}")
                return
            loop.call_soon_threadsafe(on_ended)

        threading.Thread(target=_wait, name="simpleaudio-wait", daemon=True).start()

    def stop(self) -> None:
        play_object, self._play_object = self._play_object, None
        if play_object is not None and play_object.is_playing():
            play_object.stop()
