"""Capture engine powered by ``speech_recognition``."""

from __future__ import annotations

import asyncio
import threading
from typing import Callable

from gemini_voice_chat.errors import CaptureError

from .interfaces import CaptureEngine, CaptureOptions, RecognitionSegment


def _deliver(loop: asyncio.AbstractEventLoop, callback: Callable[..., None], *args) -> None:
    if not loop.is_closed():
        loop.call_soon_threadsafe(callback, *args)


class SpeechRecognitionCaptureEngine(CaptureEngine):
    """Continuous microphone recognition using the Google Web Speech API.

    A listener thread records one phrase at a time and recognizes it before
    listening again; every recognized phrase is delivered as a final segment
    on the event loop that called :meth:`start`. :meth:`stop` lets the phrase
    being spoken finish and be recognized, then ``on_end`` fires.
    """

    supported = True

    def __init__(
        self,
        *,
        phrase_time_limit: float | None = 10.0,
        listen_timeout: float = 1.0,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
        adjust_noise_seconds: float = 0.2,
    ) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Voice capture backend unavailable. Install extras with: pip install 'gemini-voice-chat[voice]'"
            ) from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._phrase_time_limit = phrase_time_limit
        self._listen_timeout = listen_timeout
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._stopping: threading.Event | None = None

    def start(
        self,
        options: CaptureOptions,
        *,
        on_result: Callable[[RecognitionSegment], None],
        on_error: Callable[[str], None],
        on_end: Callable[[], None],
    ) -> None:
        loop = asyncio.get_running_loop()
        try:
            microphone = self._sr.Microphone(sample_rate=self._sample_rate, chunk_size=self._chunk_size)
        except (AttributeError, OSError) as exc:
            raise CaptureError(
                code="MICROPHONE_UNAVAILABLE",
                message="Microphone unavailable. Install PyAudio and check the input device.",
            ) from exc

        stopping = threading.Event()
        self._stopping = stopping
        threading.Thread(
            target=self._listen,
            args=(microphone, options, loop, stopping, on_result, on_error, on_end),
            name="speech-capture",
            daemon=True,
        ).start()

    def stop(self) -> None:
        stopping, self._stopping = self._stopping, None
        if stopping is not None:
            stopping.set()

    def _listen(
        self,
        microphone,
        options: CaptureOptions,
        loop: asyncio.AbstractEventLoop,
        stopping: threading.Event,
        on_result: Callable[[RecognitionSegment], None],
        on_error: Callable[[str], None],
        on_end: Callable[[], None],
    ) -> None:
        sr = self._sr
        try:
            with microphone as source:
                if self._adjust_noise_seconds > 0:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)
                while not stopping.is_set():
                    try:
                        audio = self._recognizer.listen(
                            source,
                            timeout=self._listen_timeout,
                            phrase_time_limit=self._phrase_time_limit,
                        )
                    except sr.WaitTimeoutError:
                        continue
                    try:
                        text = self._recognizer.recognize_google(audio, language=options.language)
                    except sr.UnknownValueError:
                        continue
                    except sr.RequestError as exc:
                        _deliver(loop, on_error, f"Speech recognition service request failed: {exc}")
                        return
                    _deliver(loop, on_result, RecognitionSegment(text=text, final=True))
                    if not options.continuous:
                        return
        except OSError as exc:
            _deliver(loop, on_error, f"Microphone failed: {exc}")
        finally:
            _deliver(loop, on_end)
